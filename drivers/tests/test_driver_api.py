import json
from unittest.mock import patch

from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import override_settings
from rest_framework import status
from rest_framework.test import APITestCase

from accounts.tokens import decode_token, issue_token
from drivers.models import Driver
from tasks.models import Task, AssignedTask, CompletedTask
from tasks.tests.factories import make_workbook, make_png, make_task, make_assigned_task, TASK_SHEET_ROWS

XLSX = 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet'
POD_URL = "https://1drv.ms/b/s!pod"


class DriverAccountAPITestCase(APITestCase):

    def signup(self, **overrides):
        payload = {"username": "alice", "password": "s3cret", "driverName": "Alice Smith",
                   "truckNo": 14, "truckType": "Rigid", "cubic": 30}
        payload.update(overrides)
        return self.client.post("/api/driver/signup", payload, format="json")

    def test_signup_hashes_password(self):
        response = self.signup()

        self.assertEqual(response.status_code, status.HTTP_201_CREATED, msg=response.data)
        self.assertNotIn("password", response.data["driver"])
        driver = Driver.objects.get(username="alice")
        self.assertEqual(driver.truck_no, 14)
        self.assertNotEqual(driver.password, "s3cret")
        self.assertTrue(driver.check_password("s3cret"))

    def test_duplicate_username(self):
        self.signup()
        response = self.signup(truckNo=15)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn("username", response.data["details"])

    def test_login(self):
        self.signup()
        response = self.client.post("/api/driver/login", {"username": "alice", "password": "s3cret"}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data["truckNo"], 14)
        payload = decode_token(response.data["token"])
        self.assertEqual(payload["username"], "alice")
        self.assertEqual(payload["role"], "driver")

    def test_login_failures(self):
        self.signup()
        unknown = self.client.post("/api/driver/login", {"username": "bob", "password": "x"}, format="json")
        self.assertEqual(unknown.status_code, status.HTTP_404_NOT_FOUND)

        wrong = self.client.post("/api/driver/login", {"username": "alice", "password": "nope"}, format="json")
        self.assertEqual(wrong.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_roster_driver_without_password_cannot_login(self):
        Driver.objects.create(username="carol", driver_name="Carol", truck_no=3)
        response = self.client.post("/api/driver/login", {"username": "carol", "password": ""}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

        response = self.client.post("/api/driver/login", {"username": "carol", "password": "x"}, format="json")
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_roster_upload(self):
        rows = [{"Truck No": 1, "Cubic (m3)": 20, "Drivers Name": "Dan", "Truck": "Van"}]
        upload = SimpleUploadedFile("drivers.xlsx", make_workbook(rows), content_type=XLSX)
        response = self.client.post("/api/driver/upload-excel", {"file": upload}, format="multipart")

        self.assertEqual(response.status_code, status.HTTP_200_OK, msg=response.data)
        self.assertEqual(response.data["inserted"], 1)
        self.assertTrue(Driver.objects.filter(driver_name="Dan", truck_no=1).exists())


class AssignmentLifecycleAPITestCase(APITestCase):

    def test_start_assignment(self):
        assigned = make_assigned_task()
        response = self.client.post("/api/driver/startAssignment",
                                    {"assignedTaskId": assigned.id, "truckNo": 21}, format="json")

        self.assertEqual(response.status_code, status.HTTP_200_OK, msg=response.data)
        self.assertEqual(response.data["updated"]["status"], AssignedTask.STATUS_STARTED)
        assigned.refresh_from_db()
        self.assertEqual(assigned.truck_no, 21)
        self.assertIsNotNone(assigned.started_at)

    def test_start_unknown_assignment(self):
        response = self.client.post("/api/driver/startAssignment", {"assignedTaskId": 404}, format="json")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)

    def test_start_requires_id(self):
        response = self.client.post("/api/driver/startAssignment", {}, format="json")
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    @patch('tasks.clients.onedrive_client.OneDriveClient.upload_pdf', return_value=POD_URL)
    def test_complete_assignment(self, mock_upload):
        assigned = make_assigned_task(invoice_id="INV-77")
        payload = {
            "assignedTaskId": assigned.id,
            "driverName": "alice",
            "truckNo": 14,
            "checklist": json.dumps([{"point": "Goods intact", "comment": "one box dented"}]),
            "podImage": SimpleUploadedFile("pod.png", make_png(), content_type="image/png"),
        }
        response = self.client.post("/api/driver/completeAssignment", payload, format="multipart")

        self.assertEqual(response.status_code, status.HTTP_200_OK, msg=response.data)
        self.assertEqual(response.data["podUrl"], POD_URL)

        content, path = mock_upload.call_args[0]
        self.assertTrue(content.startswith(b"%PDF"))
        self.assertIn("/POD_INV-77_", path)

        self.assertFalse(AssignedTask.objects.filter(id=assigned.id).exists())
        completed = CompletedTask.objects.get(task=assigned.task)
        self.assertEqual(completed.pod_url, POD_URL)
        self.assertEqual(completed.driver_name, "alice")
        self.assertEqual(completed.invoice_id, "INV-77")

    @patch('tasks.clients.onedrive_client.OneDriveClient.upload_pdf', return_value=POD_URL)
    def test_complete_unknown_assignment(self, mock_upload):
        response = self.client.post("/api/driver/completeAssignment", {"assignedTaskId": 404}, format="multipart")
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        mock_upload.assert_not_called()

    @patch('tasks.clients.onedrive_client.OneDriveClient.upload_pdf')
    def test_upload_failure_keeps_assignment(self, mock_upload):
        from dispatch_core.exceptions import UpstreamError
        mock_upload.side_effect = UpstreamError("Graph API unavailable")
        assigned = make_assigned_task()

        response = self.client.post("/api/driver/completeAssignment",
                                    {"assignedTaskId": assigned.id, "checklist": "all good"}, format="multipart")

        self.assertEqual(response.status_code, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.assertEqual(response.data["error"], "Failed to upload PDF to OneDrive")
        self.assertTrue(AssignedTask.objects.filter(id=assigned.id).exists())
        self.assertFalse(CompletedTask.objects.exists())

    @override_settings(MAX_POD_IMAGE_BYTES=16)
    @patch('tasks.clients.onedrive_client.OneDriveClient.upload_pdf', return_value=POD_URL)
    def test_oversized_image_rejected(self, mock_upload):
        assigned = make_assigned_task()
        payload = {
            "assignedTaskId": assigned.id,
            "podImage": SimpleUploadedFile("pod.png", make_png(), content_type="image/png"),
        }
        response = self.client.post("/api/driver/completeAssignment", payload, format="multipart")

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        mock_upload.assert_not_called()
        self.assertTrue(AssignedTask.objects.filter(id=assigned.id).exists())


class DispatchFlowTestCase(APITestCase):
    """Task sheet upload through to an archived delivery."""

    @patch('tasks.clients.onedrive_client.OneDriveClient.upload_pdf', return_value=POD_URL)
    def test_full_delivery(self, mock_upload):
        upload = SimpleUploadedFile("tasks.xlsx", make_workbook(TASK_SHEET_ROWS), content_type=XLSX)
        imported = self.client.post("/api/tasks/upload-excel", {"file": upload}, format="multipart")
        self.assertEqual(imported.data["inserted"], 3)

        task = Task.objects.get(order_number=1002)
        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {issue_token(1, 'dispatcher', 'admin')}")
        assigned = self.client.post("/api/tasks/assignTasks",
                                    {"tasks": [{"taskId": task.id, "driverName": "alice", "truckNo": 7}]},
                                    format="json")
        self.assertEqual(assigned.status_code, status.HTTP_201_CREATED, msg=assigned.data)
        assigned_id = assigned.data["assigned"][0]

        unassigned = self.client.get("/api/tasks/getUnassignedTasks")
        self.assertNotIn(task.id, [t["id"] for t in unassigned.data])

        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {issue_token(2, 'alice', 'driver')}")
        mine = self.client.get("/api/tasks/myTasks")
        self.assertEqual([t["id"] for t in mine.data], [assigned_id])

        started = self.client.post("/api/driver/startAssignment", {"assignedTaskId": assigned_id}, format="json")
        self.assertEqual(started.status_code, status.HTTP_200_OK)

        completed = self.client.post("/api/driver/completeAssignment",
                                     {"assignedTaskId": assigned_id, "checklist": "Delivered to reception"},
                                     format="multipart")
        self.assertEqual(completed.status_code, status.HTTP_200_OK, msg=completed.data)

        self.assertFalse(AssignedTask.objects.exists())
        archived = CompletedTask.objects.get()
        self.assertEqual(archived.order_number, 1002)
        self.assertEqual(archived.driver_name, "alice")
        self.assertEqual(archived.truck_no, 7)
        # the source line stays assigned so a re-import cannot queue it again
        self.assertTrue(Task.objects.get(id=task.id).is_assigned)
        # no invoice number was ever recorded
        self.assertIn("/POD_unknown_", mock_upload.call_args[0][1])
