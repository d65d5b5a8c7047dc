import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Set

from django.core.exceptions import ValidationError
from django.db import transaction

from tasks.models import Task, build_line_key
from tasks.services.row_normalizer import normalize_rows
from tasks.services.spreadsheet import read_first_sheet

logger = logging.getLogger(__name__)


@dataclass
class ImportResult:
    received: int = 0
    inserted: int = 0
    skipped: int = 0


def _line_key(record: Dict[str, Any]) -> str:
    return build_line_key(
        record.get("order_co"),
        record.get("or_ty"),
        record.get("order_number"),
        record.get("line_number"),
        record.get("item_number"),
    )


def _stored_line_keys(keys: List[str]) -> Set[str]:
    return set(Task.objects.filter(line_key__in=keys).values_list('line_key', flat=True))


def import_tasks(records: Iterable[Dict[str, Any]]) -> ImportResult:
    """
    Insert normalized task records into the unassigned pool.

    Lines already stored (same line key) are skipped, which makes a
    re-delivered sheet a no-op. Each record is checked against the Task
    field limits first; a record that would not fit is logged and skipped
    so one bad cell cannot abort the batch. The insert runs as one
    transaction and ignores unique conflicts so a concurrent import of the
    same sheet cannot fail it.

    ``inserted`` counts the rows this call submitted. When a concurrent
    import stores some of the same lines first, those are dropped by the
    conflict handling but still counted here.
    """
    records = list(records)
    result = ImportResult(received=len(records))

    candidates: Dict[str, Task] = {}
    for record in records:
        key = _line_key(record)
        if key in candidates:
            logger.debug(f"Duplicate line {key} within batch, skipping.")
            continue
        try:
            task = Task(line_key=key, is_assigned=False, **record)
        except TypeError as e:
            logger.warning(f"Skipping task record for order {record.get('order_number')}: {e}")
            continue
        try:
            task.clean_fields(exclude=['id', 'created_at'])
        except ValidationError as e:
            logger.warning(f"Skipping task record for order {record.get('order_number')}: {e.message_dict}")
            continue
        candidates[key] = task

    if not candidates:
        result.skipped = result.received
        logger.info("No importable task rows found.")
        return result

    with transaction.atomic():
        existing = _stored_line_keys(list(candidates.keys()))
        new_tasks: List[Task] = [t for key, t in candidates.items() if key not in existing]
        if new_tasks:
            Task.objects.bulk_create(new_tasks, ignore_conflicts=True)

    result.inserted = len(new_tasks)
    result.skipped = result.received - result.inserted
    logger.info(
        f"Task import finished: {result.inserted} inserted, {result.skipped} skipped "
        f"of {result.received} rows."
    )
    return result


def import_task_sheet(content: bytes) -> ImportResult:
    """Read, normalize and import a task spreadsheet."""
    rows = read_first_sheet(content)
    records = normalize_rows(rows)
    result = import_tasks(records)
    # Rows dropped by the normalizer count as skipped too
    result.skipped += len(rows) - len(records)
    result.received = len(rows)
    return result
