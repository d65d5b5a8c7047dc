from django.urls import path, include
from rest_framework.routers import DefaultRouter

from drivers.views import DriverViewSet

router = DefaultRouter(trailing_slash=False)
router.register(r'', DriverViewSet, basename='driver')

urlpatterns = [
    path('', include(router.urls)),
]
