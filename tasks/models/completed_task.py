from django.db import models

from tasks.models.base import TaskFields, AssignmentFields
from tasks.models.task import Task


class CompletedTask(TaskFields, AssignmentFields):
    task = models.ForeignKey(
        Task, on_delete=models.SET_NULL, null=True, blank=True, related_name='completions'
    )
    pod_url = models.URLField(max_length=1024, help_text="Public link to the proof-of-delivery PDF")
    completed_at = models.DateTimeField(db_index=True)

    class Meta:
        ordering = ['-completed_at']

    def __str__(self):
        return f"Order {self.order_number} completed {self.completed_at:%Y-%m-%d %H:%M}"
