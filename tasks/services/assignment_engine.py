import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from django.db import transaction
from django.utils import timezone

from dispatch_core.exceptions import ConflictError
from tasks.models import Task, AssignedTask

logger = logging.getLogger(__name__)


@dataclass
class AssignmentRequest:
    task_id: int
    truck_no: Optional[int] = None
    driver_name: Optional[str] = None
    truck_type: Optional[str] = None
    cubic: Optional[float] = None
    invoice_id: Optional[str] = None
    manifest_no: Optional[str] = None


@dataclass
class AssignmentResult:
    assigned: List[int] = field(default_factory=list)  # AssignedTask ids
    skipped: List[int] = field(default_factory=list)  # Task ids


class AssignmentEngine:
    """
    Moves unassigned tasks into the assigned pool.

    A whole batch is one transaction: the AssignedTask copies and the
    ``is_assigned`` flags on their source rows commit together or not at all.
    Unknown or already-assigned task ids are skipped rather than failing the
    batch.
    """

    def assign(self, requests: List[AssignmentRequest]) -> AssignmentResult:
        result = AssignmentResult()
        if not requests:
            return result

        # First entry wins when a task id is repeated within the batch
        by_task_id: Dict[int, AssignmentRequest] = {}
        for req in requests:
            if req.task_id in by_task_id:
                logger.warning(f"Task {req.task_id} listed twice in assignment batch; keeping the first entry.")
                result.skipped.append(req.task_id)
                continue
            by_task_id[req.task_id] = req

        with transaction.atomic():
            tasks = {
                t.id: t for t in Task.objects.select_for_update().filter(
                    id__in=list(by_task_id.keys()), is_assigned=False
                )
            }

            assigned_at = timezone.now()
            records: List[AssignedTask] = []
            for task_id, req in by_task_id.items():
                task = tasks.get(task_id)
                if task is None:
                    logger.info(f"Task {task_id} not found or already assigned. Skipping.")
                    result.skipped.append(task_id)
                    continue
                records.append(self._build_assigned_task(task, req, assigned_at))

            if records:
                created = AssignedTask.objects.bulk_create(records)
                flagged = Task.objects.filter(
                    id__in=[r.task_id for r in records], is_assigned=False
                ).update(is_assigned=True)
                if flagged != len(records):
                    # Another writer flagged a row after we locked it; roll the batch back
                    raise ConflictError(
                        f"Expected to flag {len(records)} tasks as assigned, flagged {flagged}"
                    )
                result.assigned = [a.id for a in created if a.id is not None]

        logger.info(f"Assigned {len(records)} tasks, skipped {len(result.skipped)}.")
        return result

    @staticmethod
    def _build_assigned_task(task: Task, req: AssignmentRequest, assigned_at) -> AssignedTask:
        return AssignedTask(
            task=task,
            truck_no=req.truck_no,
            driver_name=req.driver_name or None,
            truck_type=req.truck_type or None,
            cubic=req.cubic,
            invoice_id=req.invoice_id or None,
            manifest_no=req.manifest_no or None,
            status=AssignedTask.STATUS_NOT_STARTED,
            assigned_at=assigned_at,
            **task.spreadsheet_values(),
        )


def assign_tasks(entries: List[Dict[str, Any]]) -> AssignmentResult:
    """Convenience wrapper taking plain dicts with AssignmentRequest keys."""
    return AssignmentEngine().assign([AssignmentRequest(**entry) for entry in entries])
