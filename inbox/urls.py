from django.urls import path

from inbox import views

app_name = 'inbox'

urlpatterns = [
    path('push', views.gmail_push, name='gmail_push'),
]
