from django.contrib.auth.hashers import make_password, check_password
from django.db import models


class Driver(models.Model):
    STATUS_AVAILABLE = 'available'
    STATUS_ON_DUTY = 'on_duty'
    STATUS_UNAVAILABLE = 'unavailable'
    STATUS_CHOICES = [
        (STATUS_AVAILABLE, 'Available'),
        (STATUS_ON_DUTY, 'On Duty'),
        (STATUS_UNAVAILABLE, 'Unavailable'),
    ]

    # Imported roster rows have no login until the driver signs up
    username = models.CharField(max_length=150, unique=True, null=True, blank=True)
    password = models.CharField(max_length=128, blank=True, default='')
    driver_name = models.CharField(max_length=255, null=True, blank=True, db_index=True)
    truck_no = models.IntegerField(null=True, blank=True)
    truck_type = models.CharField(max_length=100, null=True, blank=True)
    cubic = models.FloatField(null=True, blank=True, help_text="Load volume in m3")
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_AVAILABLE)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['driver_name', 'truck_no']

    def set_password(self, raw_password):
        self.password = make_password(raw_password)

    def check_password(self, raw_password):
        return bool(self.password) and check_password(raw_password, self.password)

    @property
    def is_available(self):
        return self.status == self.STATUS_AVAILABLE

    def __str__(self):
        return f"{self.driver_name or self.username} - truck {self.truck_no}"
