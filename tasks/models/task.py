from django.db import models

from tasks.models.base import TaskFields


def build_line_key(order_co, or_ty, order_number, line_number, item_number):
    """
    Identity of one spreadsheet line. Re-delivering the same sheet produces
    the same keys, so the importer can skip lines it has already stored.
    """
    parts = [order_co, or_ty, order_number, line_number, item_number]
    return "|".join("" if p is None else str(p) for p in parts)


class Task(TaskFields):
    """A delivery line waiting in the unassigned pool."""
    line_key = models.CharField(max_length=191, unique=True)
    is_assigned = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['id']
        indexes = [
            models.Index(fields=['is_assigned']),
        ]

    def save(self, *args, **kwargs):
        if not self.line_key:
            self.line_key = build_line_key(
                self.order_co, self.or_ty, self.order_number, self.line_number, self.item_number
            )
        super().save(*args, **kwargs)

    def __str__(self):
        state = "assigned" if self.is_assigned else "unassigned"
        return f"Order {self.order_number} line {self.line_number} ({state})"
