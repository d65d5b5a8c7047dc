import logging

from django.conf import settings
from drf_yasg import openapi
from drf_yasg.utils import swagger_auto_schema
from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.parsers import MultiPartParser, FormParser
from rest_framework.response import Response

from accounts.tokens import issue_token
from dispatch_core.exceptions import NotFoundError, UpstreamError, SpreadsheetParseError
from drivers.models import Driver
from drivers.serializers import (
    DriverSerializer,
    DriverSignupSerializer,
    DriverLoginSerializer,
    StartAssignmentSerializer,
    CompleteAssignmentSerializer,
)
from drivers.services.driver_importer import import_driver_sheet
from tasks.serializers import AssignedTaskSerializer, SpreadsheetUploadSerializer
from tasks.services.assignment_lifecycle import AssignmentLifecycleController
from tasks.views import read_uploaded_sheet

logger = logging.getLogger(__name__)

CHECKLIST_FIELDS = ('checklist', 'checklistJson', 'checklistString')


def read_image(upload):
    if upload is None:
        return None
    return upload.read()


class DriverViewSet(viewsets.GenericViewSet):
    """
    Driver-facing endpoints mounted under /api/driver/: roster upload,
    driver signup/login and the start/complete steps of a delivery.
    """
    queryset = Driver.objects.all()
    serializer_class = DriverSerializer

    def get_lifecycle_controller(self):
        return AssignmentLifecycleController()

    @swagger_auto_schema(
        request_body=StartAssignmentSerializer,
        responses={200: AssignedTaskSerializer, 400: "Invalid request", 404: "Assigned task not found"},
        tags=['Driver'],
    )
    @action(detail=False, methods=['post'], url_path='startAssignment')
    def start_assignment(self, request):
        serializer = StartAssignmentSerializer(data=request.data)
        if not serializer.is_valid():
            return Response({'error': 'assignedTaskId required', 'details': serializer.errors},
                            status=status.HTTP_400_BAD_REQUEST)
        try:
            assigned = self.get_lifecycle_controller().start(
                serializer.validated_data['assigned_task_id'],
                truck_no=serializer.validated_data.get('truck_no'),
            )
        except NotFoundError as e:
            return Response({'error': e.message}, status=status.HTTP_404_NOT_FOUND)
        except Exception as e:
            logger.exception(f"startAssignment failed: {e}")
            return Response({'error': 'Internal server error'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

        return Response({'message': 'Assignment started', 'updated': AssignedTaskSerializer(assigned).data},
                        status=status.HTTP_200_OK)

    @swagger_auto_schema(
        request_body=CompleteAssignmentSerializer,
        manual_parameters=[
            openapi.Parameter('checklist', openapi.IN_FORM, type=openapi.TYPE_STRING,
                              description="Free text or JSON (list of points, list of {point, comment}, or object)"),
        ],
        responses={200: "Assignment completed", 400: "Invalid request", 404: "Assigned task not found",
                   500: "POD upload failed"},
        tags=['Driver'],
    )
    @action(detail=False, methods=['post'], url_path='completeAssignment',
            parser_classes=[MultiPartParser, FormParser])
    def complete_assignment(self, request):
        serializer = CompleteAssignmentSerializer(data=request.data)
        if not serializer.is_valid():
            return Response({'error': 'assignedTaskId required', 'details': serializer.errors},
                            status=status.HTTP_400_BAD_REQUEST)
        data = serializer.validated_data

        for upload in (data.get('pod_image'), data.get('invoice_image')):
            if upload is not None and upload.size > settings.MAX_POD_IMAGE_BYTES:
                return Response({'error': f'Image exceeds {settings.MAX_POD_IMAGE_BYTES} bytes'},
                                status=status.HTTP_400_BAD_REQUEST)

        checklist = next((request.data.get(name) for name in CHECKLIST_FIELDS if request.data.get(name)), None)

        try:
            completed = self.get_lifecycle_controller().complete(
                data['assigned_task_id'],
                driver_name=data.get('driver_name'),
                truck_no=data.get('truck_no'),
                invoice_id=data.get('invoice_id'),
                pod_image=read_image(data.get('pod_image')),
                invoice_image=read_image(data.get('invoice_image')),
                checklist=checklist,
            )
        except NotFoundError as e:
            return Response({'error': e.message}, status=status.HTTP_404_NOT_FOUND)
        except UpstreamError as e:
            logger.error(f"completeAssignment upstream failure: {e.message} ({e.details})")
            return Response({'error': 'Failed to upload PDF to OneDrive', 'details': e.message},
                            status=status.HTTP_500_INTERNAL_SERVER_ERROR)
        except Exception as e:
            logger.exception(f"completeAssignment failed: {e}")
            return Response({'error': 'Internal server error'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

        return Response({'message': 'Assignment completed', 'podUrl': completed.pod_url},
                        status=status.HTTP_200_OK)

    @swagger_auto_schema(
        request_body=SpreadsheetUploadSerializer,
        responses={200: "Drivers inserted", 400: "Missing or unreadable file"},
        tags=['Driver'],
    )
    @action(detail=False, methods=['post'], url_path='upload-excel', parser_classes=[MultiPartParser, FormParser])
    def upload_excel(self, request):
        content, error = read_uploaded_sheet(request)
        if error:
            return error
        try:
            result = import_driver_sheet(content)
        except SpreadsheetParseError as e:
            return Response({'error': e.message, 'details': e.details}, status=status.HTTP_400_BAD_REQUEST)
        except Exception as e:
            logger.exception(f"Driver sheet import failed: {e}")
            return Response({'error': 'Upload failed'}, status=status.HTTP_500_INTERNAL_SERVER_ERROR)

        return Response({'message': 'Drivers inserted into DB.', 'inserted': result.inserted,
                         'skipped': result.skipped}, status=status.HTTP_200_OK)

    @swagger_auto_schema(request_body=DriverSignupSerializer, responses={201: DriverSerializer}, tags=['Driver'])
    @action(detail=False, methods=['post'], url_path='signup')
    def signup(self, request):
        serializer = DriverSignupSerializer(data=request.data)
        if not serializer.is_valid():
            return Response({'error': 'Invalid driver data', 'details': serializer.errors},
                            status=status.HTTP_400_BAD_REQUEST)
        driver = serializer.save()
        logger.info(f"Driver {driver.username} signed up (truck {driver.truck_no}).")
        return Response({'message': 'Driver created successfully', 'driver': DriverSerializer(driver).data},
                        status=status.HTTP_201_CREATED)

    @swagger_auto_schema(request_body=DriverLoginSerializer, tags=['Driver'])
    @action(detail=False, methods=['post'], url_path='login')
    def login(self, request):
        serializer = DriverLoginSerializer(data=request.data)
        if not serializer.is_valid():
            return Response({'error': 'username and password required'}, status=status.HTTP_400_BAD_REQUEST)

        driver = Driver.objects.filter(username=serializer.validated_data['username']).first()
        if driver is None:
            return Response({'error': 'Driver not found'}, status=status.HTTP_404_NOT_FOUND)
        if not driver.check_password(serializer.validated_data['password']):
            return Response({'error': 'Invalid credentials'}, status=status.HTTP_401_UNAUTHORIZED)

        token = issue_token(driver.id, driver.username, 'driver')
        return Response({'message': 'Login successful', 'truckNo': driver.truck_no, 'token': token},
                        status=status.HTTP_200_OK)
