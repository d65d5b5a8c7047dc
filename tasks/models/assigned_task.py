from django.db import models
from django.utils import timezone

from tasks.models.base import TaskFields, AssignmentFields
from tasks.models.task import Task


class AssignedTask(TaskFields, AssignmentFields):
    STATUS_NOT_STARTED = 'not_started'
    STATUS_STARTED = 'started'
    STATUS_CHOICES = [
        (STATUS_NOT_STARTED, 'Not Started'),
        (STATUS_STARTED, 'Started'),
    ]

    # One live assignment per source line; completion deletes this row.
    task = models.OneToOneField(Task, on_delete=models.PROTECT, related_name='assignment')
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_NOT_STARTED)
    started_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ['-assigned_at']
        indexes = [
            models.Index(fields=['order_number']),
            models.Index(fields=['invoice_id']),
        ]

    def mark_started(self, truck_no=None, start_time=None):
        """Idempotent: restarting keeps the first start time and may change the truck."""
        self.status = self.STATUS_STARTED
        self.started_at = self.started_at or start_time or timezone.now()
        update_fields = ['status', 'started_at']
        if truck_no is not None:
            self.truck_no = truck_no
            update_fields.append('truck_no')
        self.save(update_fields=update_fields)

    def completion_values(self, driver_name=None, truck_no=None):
        """Snapshot for the CompletedTask row; driver/truck overrides win when given."""
        values = self.spreadsheet_values()
        values.update({name: getattr(self, name) for name in self.assignment_field_names()})
        if driver_name:
            values['driver_name'] = driver_name
        if truck_no is not None:
            values['truck_no'] = truck_no
        values['task_id'] = self.task_id
        return values

    def __str__(self):
        return f"Order {self.order_number} -> {self.driver_name or 'unassigned driver'} ({self.status})"
