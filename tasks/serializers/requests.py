"""
Request bodies for the task endpoints. Clients send camelCase keys; each
field maps onto the snake_case name the services expect via ``source``.
"""
from rest_framework import serializers


class AssignTaskEntrySerializer(serializers.Serializer):
    taskId = serializers.IntegerField(source='task_id')
    truckNo = serializers.IntegerField(source='truck_no', required=False, allow_null=True)
    driverName = serializers.CharField(source='driver_name', required=False, allow_null=True, allow_blank=True)
    truckType = serializers.CharField(source='truck_type', required=False, allow_null=True, allow_blank=True)
    cubic = serializers.FloatField(required=False, allow_null=True)
    invoiceId = serializers.CharField(source='invoice_id', required=False, allow_null=True, allow_blank=True)
    manifestNo = serializers.CharField(source='manifest_no', required=False, allow_null=True, allow_blank=True)


class AssignTasksRequestSerializer(serializers.Serializer):
    tasks = AssignTaskEntrySerializer(many=True, allow_empty=False)


class InvoiceManifestEntrySerializer(serializers.Serializer):
    assignedTaskId = serializers.IntegerField(source='assigned_task_id', required=False, allow_null=True)
    orderNumber = serializers.IntegerField(source='order_number', required=False, allow_null=True)
    invoiceId = serializers.CharField(source='invoice_id', required=False, allow_null=True, allow_blank=True)
    manifestNo = serializers.CharField(source='manifest_no', required=False, allow_null=True, allow_blank=True)


class UpdateInvoiceManifestRequestSerializer(serializers.Serializer):
    updates = InvoiceManifestEntrySerializer(many=True, allow_empty=False)


class SpreadsheetUploadSerializer(serializers.Serializer):
    file = serializers.FileField()
