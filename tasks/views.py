import logging
from datetime import timedelta

from django.conf import settings
from django.utils import timezone
from drf_yasg.utils import swagger_auto_schema
from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.parsers import MultiPartParser, FormParser
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from dispatch_core.exceptions import SpreadsheetParseError, ConflictError
from drivers.models import Driver
from drivers.serializers import DriverSerializer
from tasks.filters import UnassignedTaskFilter, AssignedTaskFilter
from tasks.models import Task, AssignedTask, CompletedTask
from tasks.serializers import (
    TaskSerializer,
    AssignedTaskSerializer,
    CompletedTaskSerializer,
    AssignTasksRequestSerializer,
    UpdateInvoiceManifestRequestSerializer,
    SpreadsheetUploadSerializer,
)
from tasks.services.assignment_engine import assign_tasks
from tasks.services.invoice_alerts import run_missing_invoice_scan
from tasks.services.invoice_reconciler import ManualUpdate, apply_manual_updates, reconcile_invoice_sheet
from tasks.services.task_importer import import_task_sheet

logger = logging.getLogger(__name__)


def read_uploaded_sheet(request):
    """Return (content, error_response) for the multipart ``file`` field."""
    upload = request.FILES.get('file')
    if upload is None:
        return None, Response({'error': 'file required'}, status=status.HTTP_400_BAD_REQUEST)
    if upload.size > settings.MAX_SPREADSHEET_BYTES:
        return None, Response(
            {'error': f'File exceeds {settings.MAX_SPREADSHEET_BYTES} bytes'},
            status=status.HTTP_400_BAD_REQUEST,
        )
    return upload.read(), None


class TaskViewSet(viewsets.GenericViewSet):
    """
    Task pipeline endpoints mounted under /api/tasks/.

    Unassigned tasks come from task sheet uploads, move to the assigned pool
    through assignTasks and leave it when a driver completes them.
    """
    queryset = Task.objects.all()
    serializer_class = TaskSerializer

    @swagger_auto_schema(
        request_body=SpreadsheetUploadSerializer,
        responses={200: "Rows imported", 400: "Missing or unreadable file", 500: "Import failed"},
        tags=['Tasks'],
    )
    @action(detail=False, methods=['post'], url_path='upload-excel', parser_classes=[MultiPartParser, FormParser])
    def upload_excel(self, request):
        content, error = read_uploaded_sheet(request)
        if error:
            return error
        try:
            result = import_task_sheet(content)
        except SpreadsheetParseError as e:
            return Response({'error': e.message, 'details': e.details}, status=status.HTTP_400_BAD_REQUEST)
        except Exception as e:
            logger.exception(f"Task sheet import failed: {e}")
            return Response({'error': 'Failed to import task sheet'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

        return Response({
            'message': 'Excel data inserted into DB.',
            'inserted': result.inserted,
            'skipped': result.skipped,
        }, status=status.HTTP_200_OK)

    @swagger_auto_schema(
        request_body=SpreadsheetUploadSerializer,
        responses={200: "Invoice/manifest numbers merged", 400: "Missing or unreadable file"},
        tags=['Tasks'],
    )
    @action(detail=False, methods=['post'], url_path='upload-invoice-excel',
            parser_classes=[MultiPartParser, FormParser])
    def upload_invoice_excel(self, request):
        content, error = read_uploaded_sheet(request)
        if error:
            return error
        try:
            result = reconcile_invoice_sheet(content)
        except SpreadsheetParseError as e:
            return Response({'error': e.message, 'details': e.details}, status=status.HTTP_400_BAD_REQUEST)
        except Exception as e:
            logger.exception(f"Invoice sheet processing failed: {e}")
            return Response({'error': 'Failed to process invoice sheet'},
                            status=status.HTTP_500_INTERNAL_SERVER_ERROR)

        run_missing_invoice_scan()
        return Response({
            'message': 'Invoice sheet processed',
            'updated': result.updated,
            'totalOrders': result.total_orders,
        }, status=status.HTTP_200_OK)

    @swagger_auto_schema(responses={200: TaskSerializer(many=True)}, tags=['Tasks'])
    @action(detail=False, methods=['get'], url_path='getUnassignedTasks')
    def unassigned_tasks(self, request):
        qs = Task.objects.filter(is_assigned=False)
        qs = UnassignedTaskFilter(request.query_params, queryset=qs).qs
        return Response(TaskSerializer(qs, many=True).data)

    @swagger_auto_schema(responses={200: DriverSerializer(many=True)}, tags=['Drivers'])
    @action(detail=False, methods=['get'], url_path='getAvailableDrivers')
    def available_drivers(self, request):
        drivers = Driver.objects.filter(status=Driver.STATUS_AVAILABLE)
        return Response(DriverSerializer(drivers, many=True).data)

    @swagger_auto_schema(
        request_body=AssignTasksRequestSerializer,
        responses={201: "Tasks assigned", 400: "Invalid request", 500: "Assignment failed"},
        tags=['Tasks'],
    )
    @action(detail=False, methods=['post'], url_path='assignTasks', permission_classes=[IsAuthenticated])
    def assign(self, request):
        serializer = AssignTasksRequestSerializer(data=request.data)
        if not serializer.is_valid():
            logger.error(f"assignTasks validation error: {serializer.errors}")
            return Response({'error': 'tasks array required', 'details': serializer.errors},
                            status=status.HTTP_400_BAD_REQUEST)
        try:
            result = assign_tasks(serializer.validated_data['tasks'])
        except ConflictError as e:
            logger.error(f"Assignment batch rolled back: {e.message}")
            return Response({'error': 'Failed to assign tasks'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
        except Exception as e:
            logger.exception(f"Assignment failed: {e}")
            return Response({'error': 'Failed to assign tasks'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

        return Response({
            'message': 'Tasks assigned',
            'assigned': result.assigned,
            'skipped': result.skipped,
        }, status=status.HTTP_201_CREATED)

    @swagger_auto_schema(responses={200: AssignedTaskSerializer(many=True)}, tags=['Tasks'])
    @action(detail=False, methods=['get'], url_path='getTasksInProgress', permission_classes=[IsAuthenticated])
    def in_progress(self, request):
        return Response(AssignedTaskSerializer(AssignedTask.objects.all(), many=True).data)

    @swagger_auto_schema(responses={200: CompletedTaskSerializer(many=True)}, tags=['Tasks'])
    @action(detail=False, methods=['get'], url_path='getCompletedTasks', permission_classes=[IsAuthenticated])
    def completed(self, request):
        since = timezone.now() - timedelta(days=settings.COMPLETED_TASK_WINDOW_DAYS)
        tasks = CompletedTask.objects.filter(completed_at__gte=since)
        return Response(CompletedTaskSerializer(tasks, many=True).data)

    @swagger_auto_schema(responses={200: AssignedTaskSerializer(many=True)}, tags=['Tasks'])
    @action(detail=False, methods=['get'], url_path='myTasks', permission_classes=[IsAuthenticated])
    def my_tasks(self, request):
        username = getattr(request.user, 'username', None)
        if not username:
            return Response({'error': 'Invalid user context'}, status=status.HTTP_400_BAD_REQUEST)
        tasks = AssignedTask.objects.filter(driver_name=username)
        return Response(AssignedTaskSerializer(tasks, many=True).data)

    @swagger_auto_schema(responses={200: AssignedTaskSerializer(many=True)}, tags=['Tasks'])
    @action(detail=False, methods=['get'], url_path='assignedTasks', permission_classes=[IsAuthenticated])
    def assigned_tasks(self, request):
        qs = AssignedTaskFilter(request.query_params, queryset=AssignedTask.objects.all()).qs
        qs = qs.order_by('-assigned_at')[:settings.ASSIGNED_TASK_LIST_LIMIT]
        return Response({'tasks': AssignedTaskSerializer(qs, many=True).data})

    @swagger_auto_schema(
        request_body=UpdateInvoiceManifestRequestSerializer,
        responses={200: "Updates applied", 400: "Invalid request"},
        tags=['Tasks'],
    )
    @action(detail=False, methods=['post'], url_path='assignedTasks/updateInvoiceManifest',
            permission_classes=[IsAuthenticated])
    def update_invoice_manifest(self, request):
        serializer = UpdateInvoiceManifestRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return Response({'error': 'updates array required', 'details': serializer.errors},
                            status=status.HTTP_400_BAD_REQUEST)

        entries = [
            ManualUpdate(
                assigned_task_id=entry.get('assigned_task_id'),
                order_number=entry.get('order_number'),
                invoice_id=entry.get('invoice_id'),
                manifest_no=entry.get('manifest_no'),
                set_invoice='invoice_id' in entry,
                set_manifest='manifest_no' in entry,
            )
            for entry in serializer.validated_data['updates']
        ]
        try:
            updated = apply_manual_updates(entries)
        except Exception as e:
            logger.exception(f"Invoice/manifest update failed: {e}")
            return Response({'error': 'Failed to update records'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
        return Response({'message': 'Updates applied', 'updated': updated}, status=status.HTTP_200_OK)
