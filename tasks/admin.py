from django.contrib import admin

from .models import Task, AssignedTask, CompletedTask


@admin.register(Task)
class TaskAdmin(admin.ModelAdmin):
    list_display = ('id', 'order_number', 'line_number', 'route_code', 'branch_plant', 'is_assigned', 'created_at')
    list_filter = ('is_assigned', 'branch_plant')
    search_fields = ('order_number', 'customer_po', 'name', 'route_code')
    readonly_fields = ('line_key', 'created_at')
    ordering = ('-created_at',)


@admin.register(AssignedTask)
class AssignedTaskAdmin(admin.ModelAdmin):
    list_display = (
        'id', 'order_number', 'driver_name', 'truck_no', 'status',
        'invoice_id', 'manifest_no', 'assigned_at', 'started_at'
    )
    list_filter = ('status',)
    search_fields = ('order_number', 'driver_name', 'invoice_id', 'manifest_no')
    ordering = ('-assigned_at',)


@admin.register(CompletedTask)
class CompletedTaskAdmin(admin.ModelAdmin):
    list_display = ('id', 'order_number', 'driver_name', 'truck_no', 'invoice_id', 'completed_at', 'get_pod_link')
    search_fields = ('order_number', 'driver_name', 'invoice_id')
    ordering = ('-completed_at',)

    @admin.display(description="POD")
    def get_pod_link(self, obj):
        return obj.pod_url or "N/A"
