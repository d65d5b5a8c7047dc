import datetime
from unittest.mock import MagicMock, patch

from django.db import DatabaseError
from django.test import TestCase, override_settings
from django.utils import timezone

from dispatch_core.exceptions import NotFoundError, UpstreamError
from tasks.models import AssignedTask, CompletedTask
from tasks.services.assignment_lifecycle import AssignmentLifecycleController, build_pod_path
from tasks.tests.factories import make_assigned_task, make_task, make_png

POD_URL = "https://1drv.ms/b/s!pod"


class BuildPodPathTests(TestCase):

    @override_settings(ONEDRIVE_FOLDER='FleetPODs', TIME_ZONE='UTC')
    def test_path_layout(self):
        when = datetime.datetime(2024, 3, 5, 14, 7, 9, tzinfo=datetime.timezone.utc)
        self.assertEqual(build_pod_path("INV-1", when), "FleetPODs/05-03-2024/POD_INV-1_14-07-09.pdf")
        self.assertEqual(build_pod_path(None, when), "FleetPODs/05-03-2024/POD_unknown_14-07-09.pdf")


class AssignmentLifecycleTests(TestCase):

    def setUp(self):
        self.storage = MagicMock()
        self.storage.upload_pdf.return_value = POD_URL
        self.controller = AssignmentLifecycleController(storage=self.storage)
        self.task = make_task(order_number=4242, route_code="R4")
        self.assigned = make_assigned_task(self.task, driver_name="alice", truck_no=3, invoice_id="INV-77")

    def test_start_sets_status_and_truck(self):
        started = self.controller.start(self.assigned.id, truck_no=9)
        self.assertEqual(started.status, AssignedTask.STATUS_STARTED)
        self.assertIsNotNone(started.started_at)
        self.assigned.refresh_from_db()
        self.assertEqual(self.assigned.truck_no, 9)

    def test_restart_refreshes_truck_number(self):
        self.controller.start(self.assigned.id, truck_no=9)
        self.controller.start(self.assigned.id, truck_no=11)
        self.assigned.refresh_from_db()
        self.assertEqual(self.assigned.status, AssignedTask.STATUS_STARTED)
        self.assertEqual(self.assigned.truck_no, 11)

    def test_restart_keeps_first_start_time(self):
        first = self.controller.start(self.assigned.id).started_at
        self.controller.start(self.assigned.id, truck_no=11)
        self.assigned.refresh_from_db()
        self.assertEqual(self.assigned.started_at, first)

    def test_start_unknown(self):
        with self.assertRaises(NotFoundError):
            self.controller.start(999999)

    def test_complete_archives_row(self):
        completed = self.controller.complete(
            self.assigned.id, driver_name="bob", pod_image=make_png(), checklist='["Signed"]'
        )

        self.assertEqual(completed.pod_url, POD_URL)
        self.assertEqual(completed.driver_name, "bob")
        self.assertEqual(completed.truck_no, 3)
        self.assertEqual(completed.invoice_id, "INV-77")
        self.assertEqual(completed.route_code, "R4")
        self.assertEqual(completed.task_id, self.task.id)
        self.assertFalse(AssignedTask.objects.filter(id=self.assigned.id).exists())

        pdf, path = self.storage.upload_pdf.call_args[0]
        self.assertTrue(pdf.startswith(b"%PDF"))
        self.assertIn("/POD_INV-77_", path)

    def test_request_invoice_id_names_the_file(self):
        self.controller.complete(self.assigned.id, invoice_id="REQ-1")
        _, path = self.storage.upload_pdf.call_args[0]
        self.assertIn("/POD_REQ-1_", path)

    def test_complete_unknown_never_uploads(self):
        with self.assertRaises(NotFoundError):
            self.controller.complete(999999)
        self.storage.upload_pdf.assert_not_called()

    def test_upload_failure_leaves_assignment_untouched(self):
        self.storage.upload_pdf.side_effect = UpstreamError("OneDrive down")
        with self.assertRaises(UpstreamError):
            self.controller.complete(self.assigned.id)
        self.assertTrue(AssignedTask.objects.filter(id=self.assigned.id).exists())
        self.assertEqual(CompletedTask.objects.count(), 0)

    def test_render_failure_is_upstream_error(self):
        renderer = MagicMock()
        renderer.render.side_effect = RuntimeError("boom")
        controller = AssignmentLifecycleController(storage=self.storage, renderer=renderer)
        with self.assertRaises(UpstreamError):
            controller.complete(self.assigned.id)
        self.storage.upload_pdf.assert_not_called()

    def test_failure_between_create_and_delete_rolls_back(self):
        with patch.object(AssignedTask, 'delete', side_effect=DatabaseError("disk full")):
            with self.assertRaises(DatabaseError):
                self.controller.complete(self.assigned.id)

        self.assertTrue(AssignedTask.objects.filter(id=self.assigned.id).exists())
        self.assertEqual(CompletedTask.objects.count(), 0)

    def test_concurrent_completion_loses_cleanly(self):
        def archive_during_upload(pdf, path):
            AssignedTask.objects.filter(id=self.assigned.id).delete()
            return POD_URL

        self.storage.upload_pdf.side_effect = archive_during_upload
        with self.assertRaises(NotFoundError):
            self.controller.complete(self.assigned.id)
        self.assertEqual(CompletedTask.objects.count(), 0)
