from django.test import TestCase
from django.urls import reverse
from rest_framework import status
from rest_framework.test import APIClient


class RootURLTestCase(TestCase):

    def setUp(self):
        self.client = APIClient()

    def test_welcome(self):
        response = self.client.get(reverse('welcome'))
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['docs'], '/swagger/')

    def test_api_routes_resolve(self):
        self.assertEqual(reverse('accounts:login'), '/api/auth/login')
        self.assertEqual(reverse('inbox:gmail_push'), '/api/gmail/push')
        self.assertEqual(reverse('tasks-upload-excel'), '/api/tasks/upload-excel')
        self.assertEqual(reverse('driver-complete-assignment'), '/api/driver/completeAssignment')
