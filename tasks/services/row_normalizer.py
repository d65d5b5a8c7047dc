"""
Conversion of raw task-sheet rows into Task field dictionaries.

Every parser here is permissive: bad cells become None, and only a missing
order number removes a row, because the order number is the key every later
stage joins on.
"""
import datetime
import logging
import math
import re
from typing import Any, Dict, Iterable, List, Optional

from django.utils import timezone
from django.utils.dateparse import parse_date, parse_datetime

logger = logging.getLogger(__name__)

NUMBER = 'number'
INTEGER = 'integer'
DATE = 'date'
TEXT = 'text'

# Column title -> (Task field, kind)
TASK_SHEET_COLUMNS = {
    "Order Co": ("order_co", INTEGER),
    "Or Ty": ("or_ty", TEXT),
    "Order Number": ("order_number", INTEGER),
    "Branch Plant": ("branch_plant", TEXT),
    "Customer PO": ("customer_po", TEXT),
    "Suburb/Town": ("suburb_town", TEXT),
    "Name": ("name", TEXT),
    "Description": ("description", TEXT),
    "Quantity Shipped": ("quantity_shipped", NUMBER),
    "Item Number": ("item_number", INTEGER),
    "Postal Code": ("postal_code", INTEGER),
    "Rev Nbr": ("rev_nbr", INTEGER),
    "Revision Reason": ("revision_reason", TEXT),
    "Route Code": ("route_code", TEXT),
    "Sched Pick": ("sched_pick", DATE),
    "Truck I.D.": ("truck_id", TEXT),
    "Location": ("location", TEXT),
    "Scheduled Pick Time": ("scheduled_pick_time", INTEGER),
    "Request Date": ("request_date", DATE),
    "Sold To": ("sold_to", INTEGER),
    "Ship To": ("ship_to", INTEGER),
    "Deliver To": ("deliver_to", INTEGER),
    "State Code": ("state_code", TEXT),
    "Ln Ty": ("ln_ty", TEXT),
    "Description Line 2": ("description_line_2", TEXT),
    "Zone No.": ("zone_no", TEXT),
    "Stop Code": ("stop_code", TEXT),
    "Next Stat": ("next_stat", INTEGER),
    "Last Stat": ("last_stat", INTEGER),
    "Priority (1/0)": ("priority", INTEGER),
    "Future Qty Committed": ("future_qty_committed", NUMBER),
    "Quantity Ordered": ("quantity_ordered", NUMBER),
    "Reason Code": ("reason_code", TEXT),
    "Line Number": ("line_number", NUMBER),
}

_NUMERIC_JUNK = re.compile(r"[,\s]")


def normalize_header(header: Any) -> str:
    return re.sub(r"\s+", " ", str(header or "")).strip().lower()


_COLUMNS_BY_NORMALIZED_HEADER = {normalize_header(k): v for k, v in TASK_SHEET_COLUMNS.items()}


def is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    try:
        # NaN and NaT are the only values unequal to themselves
        return bool(value != value)
    except (TypeError, ValueError):
        return False


def safe_number(value: Any) -> Optional[float]:
    if is_blank(value) or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        try:
            number = float(_NUMERIC_JUNK.sub("", str(value)))
        except ValueError:
            return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def safe_integer(value: Any) -> Optional[int]:
    number = safe_number(value)
    if number is None or not number.is_integer():
        return None
    return int(number)


def safe_date(value: Any) -> Optional[datetime.datetime]:
    if is_blank(value):
        return None

    # pandas.Timestamp subclasses datetime
    if isinstance(value, datetime.datetime):
        parsed = value
    elif isinstance(value, datetime.date):
        parsed = datetime.datetime.combine(value, datetime.time.min)
    elif isinstance(value, str):
        text = value.strip()
        try:
            parsed = parse_datetime(text)
            if parsed is None:
                day = parse_date(text)
                parsed = datetime.datetime.combine(day, datetime.time.min) if day else None
        except ValueError:
            # Well-formed but impossible dates, e.g. 2024-02-30
            parsed = None
        if parsed is None:
            return None
    else:
        return None

    if hasattr(parsed, 'to_pydatetime'):
        parsed = parsed.to_pydatetime()
    if timezone.is_naive(parsed):
        parsed = timezone.make_aware(parsed)
    return parsed


def safe_text(value: Any) -> Optional[str]:
    if is_blank(value):
        return None
    if isinstance(value, float) and value.is_integer():
        # Codes typed into numeric cells come back as 12.0
        value = int(value)
    return str(value).strip()


_PARSERS = {
    NUMBER: safe_number,
    INTEGER: safe_integer,
    DATE: safe_date,
    TEXT: safe_text,
}


def _resolve_column(header: Any):
    if header in TASK_SHEET_COLUMNS:
        return TASK_SHEET_COLUMNS[header]
    return _COLUMNS_BY_NORMALIZED_HEADER.get(normalize_header(header))


def normalize_row(row: Dict[str, Any]) -> Dict[str, Any]:
    """
    Map a single sheet row onto Task fields. Unknown columns are ignored and
    fields with no column come back as None.
    """
    record = {field: None for field, _ in TASK_SHEET_COLUMNS.values()}
    for header, value in row.items():
        column = _resolve_column(header)
        if column is None:
            continue
        field, kind = column
        parsed = _PARSERS[kind](value)
        # An exact-title column and a loosely matched duplicate: keep the first real value
        if record[field] is None:
            record[field] = parsed
    return record


def normalize_rows(rows: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """
    Normalize task-sheet rows, dropping those without a usable order number.
    """
    normalized = []
    index = 0
    for index, row in enumerate(rows, start=1):
        try:
            record = normalize_row(row)
        except (TypeError, ValueError, AttributeError, OverflowError) as e:
            logger.warning(f"Skipping task sheet row {index}: {e}")
            continue

        if record["order_number"] is None:
            logger.debug(f"Dropping task sheet row {index}: no order number")
            continue
        normalized.append(record)

    logger.info(f"Normalized {len(normalized)} of {index} task sheet rows.")
    return normalized
