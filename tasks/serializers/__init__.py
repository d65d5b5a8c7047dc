from .task import TaskSerializer, AssignedTaskSerializer, CompletedTaskSerializer
from .requests import (
    AssignTaskEntrySerializer,
    AssignTasksRequestSerializer,
    InvoiceManifestEntrySerializer,
    UpdateInvoiceManifestRequestSerializer,
    SpreadsheetUploadSerializer,
)
