from django.contrib import admin

from .models import Driver


@admin.register(Driver)
class DriverAdmin(admin.ModelAdmin):
    list_display = ('driver_name', 'username', 'truck_no', 'truck_type', 'cubic', 'status', 'updated_at')
    list_filter = ('status', 'truck_type')
    search_fields = ('driver_name', 'username', 'truck_no')
    exclude = ('password',)
    readonly_fields = ('created_at', 'updated_at')
