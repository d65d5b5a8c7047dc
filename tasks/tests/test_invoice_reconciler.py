from django.db import connection
from django.test import TestCase, SimpleTestCase
from django.test.utils import CaptureQueriesContext

from tasks.models import AssignedTask
from tasks.services.invoice_reconciler import (
    ManualUpdate,
    apply_manual_updates,
    collect_invoice_updates,
    match_invoice_columns,
    parse_order_number,
    reconcile_invoice_sheet,
    reconcile_rows,
)
from tasks.tests.factories import make_task, make_assigned_task, make_workbook


class HeaderMatchingTests(SimpleTestCase):

    def test_exact_alias_beats_substring_match(self):
        values = match_invoice_columns({"Customer Order Number": 2, "OrderNo": 1})
        self.assertEqual(values["order_number"], 1)

    def test_document_number_beats_plain_invoice_column(self):
        values = match_invoice_columns({"Invoice Date": "2024-01-01", "Document Number": "INV-9"})
        self.assertEqual(values["invoice_id"], "INV-9")

    def test_manifest_and_invoice_columns(self):
        values = match_invoice_columns({"Order Number": 1001, "Invoice": "A1", "Manifest No": "M7"})
        self.assertEqual(values, {"order_number": 1001, "invoice_id": "A1", "manifest_no": "M7"})

    def test_empty_cells_are_ignored(self):
        values = match_invoice_columns({"Order Number": 1001, "Invoice": None, "Manifest": ""})
        self.assertEqual(values, {"order_number": 1001})

    def test_parse_order_number(self):
        self.assertEqual(parse_order_number("SO1001"), 1001)
        self.assertEqual(parse_order_number("#1,001"), 1001)
        self.assertEqual(parse_order_number(1001.0), 1001)
        self.assertIsNone(parse_order_number("abc"))
        self.assertIsNone(parse_order_number(10.5))
        self.assertIsNone(parse_order_number(None))

    def test_rows_for_same_order_are_coalesced(self):
        updates = collect_invoice_updates([
            {"Order Number": 1001, "Invoice": "A"},
            {"Order Number": 1001, "Invoice": "B", "Manifest": "M1"},
            {"Order Number": "x", "Invoice": "C"},
            {"Order Number": 1002},
        ])
        self.assertEqual(updates, {1001: {"invoice_id": "B", "manifest_no": "M1"}})


class ReconcilerTests(TestCase):

    def test_coalesced_rows_produce_one_update_per_order(self):
        first = make_assigned_task(make_task(order_number=1001, line_number=1.0))
        second = make_assigned_task(make_task(order_number=1001, line_number=2.0))

        with CaptureQueriesContext(connection) as ctx:
            result = reconcile_rows([
                {"Order Number": 1001, "Invoice": "A"},
                {"Order Number": 1001, "Invoice": "B"},
            ])

        updates = [q for q in ctx.captured_queries if q['sql'].upper().startswith('UPDATE')]
        self.assertEqual(len(updates), 1)
        self.assertEqual(result.updated, 2)
        self.assertEqual(result.total_orders, 1)
        for assigned in (first, second):
            assigned.refresh_from_db()
            self.assertEqual(assigned.invoice_id, "B")

    def test_reconcile_invoice_sheet(self):
        assigned = make_assigned_task(make_task(order_number=3003))
        content = make_workbook([
            {"Order No": "3003", "Document Number": 88001.0, "Manifest Number": "MF-2"},
            {"Order No": "4004", "Document Number": 88002.0, "Manifest Number": "MF-3"},
        ])
        result = reconcile_invoice_sheet(content)

        self.assertEqual(result.updated, 1)
        self.assertEqual(result.total_orders, 2)
        assigned.refresh_from_db()
        self.assertEqual(assigned.invoice_id, "88001")
        self.assertEqual(assigned.manifest_no, "MF-2")

    def test_manual_updates_by_id_and_by_order(self):
        a = make_assigned_task(make_task(order_number=5005, line_number=1.0))
        b = make_assigned_task(make_task(order_number=6006, line_number=1.0))
        c = make_assigned_task(make_task(order_number=6006, line_number=2.0))

        updated = apply_manual_updates([
            ManualUpdate(assigned_task_id=a.id, invoice_id="INV-A", set_invoice=True),
            ManualUpdate(order_number=6006, manifest_no="MAN-6", set_manifest=True),
            ManualUpdate(order_number=7007, invoice_id="nobody", set_invoice=True),
            ManualUpdate(assigned_task_id=a.id),
            ManualUpdate(invoice_id="no target", set_invoice=True),
        ])

        self.assertEqual(updated, 3)
        a.refresh_from_db()
        b.refresh_from_db()
        c.refresh_from_db()
        self.assertEqual(a.invoice_id, "INV-A")
        self.assertEqual(b.manifest_no, "MAN-6")
        self.assertEqual(c.manifest_no, "MAN-6")
        self.assertIsNone(b.invoice_id)

    def test_manual_update_can_clear_a_value(self):
        a = make_assigned_task(invoice_id="OLD")
        apply_manual_updates([ManualUpdate(assigned_task_id=a.id, invoice_id=None, set_invoice=True)])
        a.refresh_from_db()
        self.assertIsNone(a.invoice_id)
