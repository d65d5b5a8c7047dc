"""
Merges the invoice/manifest feed into assigned tasks.

Invoice sheets come from several systems with different column titles, so
headers are matched against an ordered rule list instead of a fixed map:

1. exact aliases ("order number", "orderno", ...)
2. substring rules ("order" + "number", "document" + "number", "invoice", ...)
3. literal fallback keys, tried only when no header matched

Each header is claimed by the first rule it satisfies. A field takes its
value from the highest-priority rule that matched a non-empty cell.
"""
import logging
import math
import re
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Tuple

from django.db import DatabaseError, transaction

from tasks.models import AssignedTask
from tasks.services.row_normalizer import is_blank, normalize_header
from tasks.services.spreadsheet import read_first_sheet

logger = logging.getLogger(__name__)

ORDER = 'order_number'
INVOICE = 'invoice_id'
MANIFEST = 'manifest_no'

EXACT = 'exact'
CONTAINS_ALL = 'contains_all'


@dataclass(frozen=True)
class HeaderRule:
    field: str
    kind: str
    terms: Tuple[str, ...]

    def matches(self, normalized_header: str) -> bool:
        if self.kind == EXACT:
            return normalized_header in self.terms
        return all(term in normalized_header for term in self.terms)


HEADER_RULES: Tuple[HeaderRule, ...] = (
    HeaderRule(ORDER, EXACT, ("order number", "ordernumber", "orderno", "order no")),
    HeaderRule(ORDER, CONTAINS_ALL, ("order", "number")),
    HeaderRule(INVOICE, CONTAINS_ALL, ("document", "number")),
    HeaderRule(INVOICE, CONTAINS_ALL, ("invoice",)),
    HeaderRule(INVOICE, CONTAINS_ALL, ("document",)),
    HeaderRule(MANIFEST, CONTAINS_ALL, ("manifest",)),
)

FALLBACK_KEYS: Dict[str, Tuple[str, ...]] = {
    ORDER: ("Order Number", "orderNumber", "OrderNo", "Order No"),
    INVOICE: ("Document Number", "DocumentNumber", "Invoice No", "InvoiceNumber"),
    MANIFEST: ("Manifest Number", "ManifestNo", "Manifest"),
}

_ORDER_NUMBER_JUNK = re.compile(r"[^0-9.\-]+")


@dataclass
class ReconcileResult:
    updated: int = 0
    total_orders: int = 0


def match_invoice_columns(row: Dict[str, Any]) -> Dict[str, Any]:
    """Pick order/invoice/manifest values out of one feed row."""
    best: Dict[str, Tuple[int, Any]] = {}
    for header, value in row.items():
        if is_blank(value):
            continue
        normalized = normalize_header(header)
        for priority, rule in enumerate(HEADER_RULES):
            if rule.matches(normalized):
                current = best.get(rule.field)
                if current is None or priority < current[0]:
                    best[rule.field] = (priority, value)
                break

    values = {name: match[1] for name, match in best.items()}
    for name, keys in FALLBACK_KEYS.items():
        if name in values:
            continue
        for key in keys:
            if not is_blank(row.get(key)):
                values[name] = row[key]
                break
    return values


def parse_order_number(value: Any) -> Optional[int]:
    if is_blank(value) or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    else:
        cleaned = _ORDER_NUMBER_JUNK.sub("", str(value))
        try:
            number = float(cleaned)
        except ValueError:
            return None
    if math.isnan(number) or math.isinf(number) or not number.is_integer():
        return None
    return int(number)


def _as_reference(value: Any) -> Optional[str]:
    if is_blank(value):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def collect_invoice_updates(rows: Iterable[Dict[str, Any]]) -> Dict[int, Dict[str, str]]:
    """
    Coalesce feed rows into one pending update per order number.
    Later rows win field by field.
    """
    updates: Dict[int, Dict[str, str]] = {}
    for index, row in enumerate(rows, start=1):
        try:
            values = match_invoice_columns(row)
            order_number = parse_order_number(values.get(ORDER))
            if order_number is None:
                logger.debug(f"Invoice row {index}: no usable order number, skipping.")
                continue

            invoice_id = _as_reference(values.get(INVOICE))
            manifest_no = _as_reference(values.get(MANIFEST))
            if not invoice_id and not manifest_no:
                logger.debug(f"Invoice row {index}: order {order_number} has no invoice or manifest, skipping.")
                continue
        except (TypeError, ValueError, AttributeError) as e:
            logger.warning(f"Invoice row {index} could not be parsed: {e}")
            continue

        pending = updates.setdefault(order_number, {})
        if invoice_id:
            pending[INVOICE] = invoice_id
        if manifest_no:
            pending[MANIFEST] = manifest_no
    return updates


def apply_invoice_updates(updates: Dict[int, Dict[str, str]]) -> int:
    """
    Write each order's coalesced values to every AssignedTask carrying that
    order number. Each order gets its own savepoint so one failed write is
    logged without undoing the others.
    """
    updated = 0
    for order_number, data in updates.items():
        try:
            with transaction.atomic():
                updated += AssignedTask.objects.filter(order_number=order_number).update(**data)
        except DatabaseError as e:
            logger.error(f"Invoice update failed for order {order_number}: {e}", exc_info=True)
    return updated


def reconcile_rows(rows: Iterable[Dict[str, Any]]) -> ReconcileResult:
    updates = collect_invoice_updates(rows)
    updated = apply_invoice_updates(updates)
    logger.info(f"Invoice reconciliation: {updated} assigned tasks updated across {len(updates)} orders.")
    return ReconcileResult(updated=updated, total_orders=len(updates))


def reconcile_invoice_sheet(content: bytes) -> ReconcileResult:
    """Read an invoice/manifest workbook and merge it into assigned tasks."""
    return reconcile_rows(read_first_sheet(content))


@dataclass
class ManualUpdate:
    assigned_task_id: Optional[int] = None
    order_number: Optional[int] = None
    invoice_id: Optional[str] = None
    manifest_no: Optional[str] = None
    set_invoice: bool = False
    set_manifest: bool = False


def apply_manual_updates(entries: List[ManualUpdate]) -> int:
    """
    Apply operator edits of invoice/manifest numbers in one transaction.

    Entries target an AssignedTask by id, or every AssignedTask with an order
    number. Entries with no target or nothing to set, and unknown targets,
    are skipped.
    """
    updated = 0
    with transaction.atomic():
        for entry in entries:
            data = {}
            if entry.set_invoice:
                data[INVOICE] = entry.invoice_id
            if entry.set_manifest:
                data[MANIFEST] = entry.manifest_no
            if not data:
                continue

            if entry.assigned_task_id:
                qs = AssignedTask.objects.filter(id=entry.assigned_task_id)
            elif entry.order_number:
                qs = AssignedTask.objects.filter(order_number=entry.order_number)
            else:
                continue

            count = qs.update(**data)
            if not count:
                logger.info(
                    f"No assigned task for id={entry.assigned_task_id} order={entry.order_number}; skipped."
                )
            updated += count
    return updated
