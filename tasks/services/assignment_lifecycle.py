import logging
from typing import Optional

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from dispatch_core.exceptions import NotFoundError, UpstreamError
from tasks.models import AssignedTask, CompletedTask
from tasks.services.checklist import parse_checklist
from tasks.services.pod_document import PodDocumentRenderer

logger = logging.getLogger(__name__)


def build_pod_path(invoice_id: Optional[str], when=None, folder: Optional[str] = None) -> str:
    """<folder>/<dd-mm-yyyy>/POD_<invoice>_<HH-MM-SS>.pdf in local time."""
    when = timezone.localtime(when or timezone.now())
    folder = folder or settings.ONEDRIVE_FOLDER
    invoice = str(invoice_id).strip() if invoice_id else 'unknown'
    invoice = invoice.replace('/', '-') or 'unknown'
    return f"{folder}/{when:%d-%m-%Y}/POD_{invoice}_{when:%H-%M-%S}.pdf"


class AssignmentLifecycleController:
    """
    Drives an AssignedTask through started and completed.

    Completion renders and uploads the POD before touching the database, so
    a storage failure leaves the assignment untouched. The archive step
    (CompletedTask create + AssignedTask delete) is a single transaction.
    """

    def __init__(self, storage=None, renderer=None):
        if storage is None:
            from tasks.clients.onedrive_client import OneDriveClient
            storage = OneDriveClient()
        self.storage = storage
        self.renderer = renderer or PodDocumentRenderer()

    def start(self, assigned_task_id: int, truck_no: Optional[int] = None) -> AssignedTask:
        with transaction.atomic():
            assigned = AssignedTask.objects.select_for_update().filter(id=assigned_task_id).first()
            if assigned is None:
                raise NotFoundError(f"Assigned task {assigned_task_id} not found")
            assigned.mark_started(truck_no=truck_no)
        logger.info(f"Assigned task {assigned_task_id} started (truck {assigned.truck_no}).")
        return assigned

    def complete(self,
                 assigned_task_id: int,
                 driver_name: Optional[str] = None,
                 truck_no: Optional[int] = None,
                 invoice_id: Optional[str] = None,
                 pod_image: Optional[bytes] = None,
                 invoice_image: Optional[bytes] = None,
                 checklist=None) -> CompletedTask:
        assigned = AssignedTask.objects.filter(id=assigned_task_id).first()
        if assigned is None:
            raise NotFoundError(f"Assigned task {assigned_task_id} not found")

        try:
            pdf = self.renderer.render(pod_image, invoice_image, parse_checklist(checklist))
        except Exception as e:
            logger.error(f"POD rendering failed for assigned task {assigned_task_id}: {e}", exc_info=True)
            raise UpstreamError("POD document could not be rendered", details=str(e))

        path = build_pod_path(invoice_id or assigned.invoice_id)
        pod_url = self.storage.upload_pdf(pdf, path)

        with transaction.atomic():
            locked = AssignedTask.objects.select_for_update().filter(id=assigned_task_id).first()
            if locked is None:
                # A concurrent completion archived it while we were uploading
                raise NotFoundError(f"Assigned task {assigned_task_id} was already completed")
            completed = CompletedTask.objects.create(
                pod_url=pod_url,
                completed_at=timezone.now(),
                **locked.completion_values(driver_name=driver_name, truck_no=truck_no),
            )
            locked.delete()

        logger.info(f"Assigned task {assigned_task_id} completed; POD at {pod_url}")
        return completed
