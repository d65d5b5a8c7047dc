from django.contrib.auth.hashers import make_password, check_password
from django.db import models


class Account(models.Model):
    """Operator login for the dispatch console."""
    ROLE_ADMIN = 'admin'
    ROLE_DISPATCHER = 'dispatcher'
    ROLE_CHOICES = [
        (ROLE_ADMIN, 'Admin'),
        (ROLE_DISPATCHER, 'Dispatcher'),
    ]

    username = models.CharField(max_length=150, unique=True)
    email = models.EmailField(blank=True, default='')
    password = models.CharField(max_length=128)
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default=ROLE_ADMIN)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['username']

    def set_password(self, raw_password):
        self.password = make_password(raw_password)

    def check_password(self, raw_password):
        return check_password(raw_password, self.password)

    def __str__(self):
        return f"{self.username} ({self.role})"
