import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from django.core.exceptions import ValidationError
from django.db import transaction

from drivers.models import Driver
from tasks.services.row_normalizer import safe_integer, safe_number, safe_text
from tasks.services.spreadsheet import read_first_sheet
from tasks.services.task_importer import ImportResult

logger = logging.getLogger(__name__)

DRIVER_SHEET_COLUMNS = {
    "Truck No": "truck_no",
    "Cubic (m3)": "cubic",
    "Drivers Name": "driver_name",
    "Truck": "truck_type",
}


def normalize_driver_row(row: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    values = {field: row.get(column) for column, field in DRIVER_SHEET_COLUMNS.items()}
    record = {
        'truck_no': safe_integer(values['truck_no']),
        'cubic': safe_number(values['cubic']),
        'driver_name': safe_text(values['driver_name']),
        'truck_type': safe_text(values['truck_type']),
    }
    if record['driver_name'] is None and record['truck_no'] is None:
        return None
    return record


def import_drivers(rows: Iterable[Dict[str, Any]]) -> ImportResult:
    """Add roster rows as available drivers, skipping known (name, truck) pairs."""
    rows = list(rows)
    result = ImportResult(received=len(rows))

    pending: Dict[Tuple[Optional[str], Optional[int]], Dict[str, Any]] = {}
    for index, row in enumerate(rows, start=1):
        record = normalize_driver_row(row)
        if record is None:
            logger.debug(f"Driver row {index} has no name or truck number, skipping.")
            continue
        try:
            Driver(**record).clean_fields(exclude=['id', 'username', 'password', 'created_at', 'updated_at'])
        except ValidationError as e:
            logger.warning(f"Skipping driver row {index}: {e.message_dict}")
            continue
        pending.setdefault((record['driver_name'], record['truck_no']), record)

    with transaction.atomic():
        existing = set(Driver.objects.values_list('driver_name', 'truck_no'))
        new_drivers: List[Driver] = [
            Driver(status=Driver.STATUS_AVAILABLE, **record)
            for key, record in pending.items() if key not in existing
        ]
        Driver.objects.bulk_create(new_drivers)

    result.inserted = len(new_drivers)
    result.skipped = result.received - result.inserted
    logger.info(f"Driver import: {result.inserted} inserted, {result.skipped} skipped of {result.received} rows.")
    return result


def import_driver_sheet(content: bytes) -> ImportResult:
    return import_drivers(read_first_sheet(content))
