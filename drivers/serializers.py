from rest_framework import serializers

from drivers.models import Driver


class DriverSerializer(serializers.ModelSerializer):
    class Meta:
        model = Driver
        exclude = ['password']


class DriverSignupSerializer(serializers.ModelSerializer):
    username = serializers.CharField(max_length=150)
    password = serializers.CharField(write_only=True, min_length=1)
    driverName = serializers.CharField(source='driver_name', required=False, allow_null=True, allow_blank=True)
    truckNo = serializers.IntegerField(source='truck_no', required=False, allow_null=True)
    truckType = serializers.CharField(source='truck_type', required=False, allow_null=True, allow_blank=True)
    cubic = serializers.FloatField(required=False, allow_null=True)
    status = serializers.ChoiceField(choices=Driver.STATUS_CHOICES, required=False)

    class Meta:
        model = Driver
        fields = ['username', 'password', 'driverName', 'truckNo', 'truckType', 'cubic', 'status']

    def validate_username(self, value):
        if Driver.objects.filter(username=value).exists():
            raise serializers.ValidationError("Username already exists")
        return value

    def create(self, validated_data):
        password = validated_data.pop('password')
        driver = Driver(**validated_data)
        driver.set_password(password)
        driver.save()
        return driver


class DriverLoginSerializer(serializers.Serializer):
    username = serializers.CharField()
    password = serializers.CharField(write_only=True)


class StartAssignmentSerializer(serializers.Serializer):
    assignedTaskId = serializers.IntegerField(source='assigned_task_id')
    truckNo = serializers.IntegerField(source='truck_no', required=False, allow_null=True)


class CompleteAssignmentSerializer(serializers.Serializer):
    assignedTaskId = serializers.IntegerField(source='assigned_task_id')
    truckNo = serializers.IntegerField(source='truck_no', required=False, allow_null=True)
    driverName = serializers.CharField(source='driver_name', required=False, allow_null=True, allow_blank=True)
    invoiceId = serializers.CharField(source='invoice_id', required=False, allow_null=True, allow_blank=True)
    podImage = serializers.FileField(source='pod_image', required=False, allow_null=True)
    invoiceImage = serializers.FileField(source='invoice_image', required=False, allow_null=True)
