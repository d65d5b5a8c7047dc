from .base import TaskFields, AssignmentFields
from .task import Task, build_line_key
from .assigned_task import AssignedTask
from .completed_task import CompletedTask
