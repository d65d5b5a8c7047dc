from unittest.mock import patch

from django.test import TestCase

from dispatch_core.exceptions import SpreadsheetParseError
from tasks.models import Task
from tasks.services.task_importer import import_tasks, import_task_sheet
from tasks.tests.factories import make_workbook, TASK_SHEET_ROWS


class TaskImporterTests(TestCase):

    def test_import_sheet(self):
        result = import_task_sheet(make_workbook(TASK_SHEET_ROWS))
        self.assertEqual(result.received, 3)
        self.assertEqual(result.inserted, 3)
        self.assertEqual(result.skipped, 0)
        self.assertEqual(Task.objects.filter(is_assigned=False).count(), 3)

        task = Task.objects.get(order_number=1001, line_number=2.0)
        self.assertEqual(task.route_code, "R1")
        self.assertEqual(task.line_key, "100|SO|1001|2.0|5002")
        self.assertIsNone(Task.objects.get(order_number=1002).quantity_shipped)

    def test_reimporting_same_sheet_is_a_no_op(self):
        content = make_workbook(TASK_SHEET_ROWS)
        import_task_sheet(content)
        second = import_task_sheet(content)

        self.assertEqual(second.inserted, 0)
        self.assertEqual(second.skipped, 3)
        self.assertEqual(Task.objects.count(), 3)

    def test_duplicates_within_batch_are_skipped(self):
        record = {"order_number": 2001, "line_number": 1.0, "order_co": 1, "or_ty": "SO", "item_number": 9}
        result = import_tasks([record, dict(record)])
        self.assertEqual(result.inserted, 1)
        self.assertEqual(result.skipped, 1)

    def test_rows_without_order_number_count_as_skipped(self):
        rows = TASK_SHEET_ROWS + [{"Order Number": "n/a", "Route Code": "R9"}]
        result = import_task_sheet(make_workbook(rows))
        self.assertEqual(result.received, 4)
        self.assertEqual(result.inserted, 3)
        self.assertEqual(result.skipped, 1)

    def test_out_of_range_cells_skip_only_their_rows(self):
        rows = TASK_SHEET_ROWS + [
            {"Order Number": 3001, "Line Number": 1.0, "Item Number": "99999999999999999999"},
            {"Order Number": 3002, "Line Number": 1.0, "Or Ty": "X" * 40},
        ]
        with self.assertLogs('tasks.services.task_importer', level='WARNING') as logs:
            result = import_task_sheet(make_workbook(rows))

        self.assertEqual(result.received, 5)
        self.assertEqual(result.inserted, 3)
        self.assertEqual(result.skipped, 2)
        self.assertEqual(
            sorted(Task.objects.values_list('order_number', flat=True).distinct()), [1001, 1002]
        )
        self.assertEqual(len(logs.records), 2)

    def test_oversized_record_does_not_abort_batch(self):
        good = {"order_number": 4001, "line_number": 1.0, "item_number": 7}
        too_big = {"order_number": 4002, "line_number": 1.0, "item_number": 10 ** 20}
        too_long = {"order_number": 4003, "line_number": 1.0, "state_code": "Q" * 17}

        result = import_tasks([too_big, good, too_long])

        self.assertEqual(result.inserted, 1)
        self.assertEqual(result.skipped, 2)
        self.assertEqual(list(Task.objects.values_list('order_number', flat=True)), [4001])

    def test_line_stored_by_concurrent_import_is_not_duplicated(self):
        record = {"order_number": 5001, "line_number": 1.0, "item_number": 3}
        import_tasks([record])

        # The other import commits after this one looked up stored keys
        with patch('tasks.services.task_importer._stored_line_keys', return_value=set()):
            result = import_tasks([dict(record)])

        self.assertEqual(result.inserted, 1)  # submitted, not necessarily stored
        self.assertEqual(Task.objects.filter(order_number=5001).count(), 1)

    def test_unreadable_file_raises_and_imports_nothing(self):
        with self.assertRaises(SpreadsheetParseError):
            import_task_sheet(b"this is not a workbook")
        with self.assertRaises(SpreadsheetParseError):
            import_task_sheet(b"")
        self.assertEqual(Task.objects.count(), 0)
