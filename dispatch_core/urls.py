from django.contrib import admin
from django.urls import path, include
from drf_yasg import openapi
from drf_yasg.views import get_schema_view
from rest_framework import permissions
from rest_framework.decorators import api_view, authentication_classes
from rest_framework.response import Response

from dispatch_core import __version__

schema_view = get_schema_view(
    openapi.Info(
        title="Truck Dispatch API",
        default_version=f"v{__version__}",
        description="Task import, assignment, delivery completion and invoice reconciliation.",
    ),
    public=True,
    permission_classes=[permissions.AllowAny],
)


@api_view(['GET'])
@authentication_classes([])
def welcome(request):
    return Response({'message': 'Truck dispatch API', 'docs': '/swagger/'})


urlpatterns = [
    path('', welcome, name='welcome'),
    path('admin/', admin.site.urls),
    path('api/auth/', include('accounts.urls')),
    path('api/tasks/', include('tasks.urls')),
    path('api/driver/', include('drivers.urls')),
    path('api/gmail/', include('inbox.urls')),
    path('swagger/', schema_view.with_ui('swagger', cache_timeout=0), name='schema-swagger-ui'),
    path('swagger.json', schema_view.without_ui(cache_timeout=0), name='schema-json'),
]
