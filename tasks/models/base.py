from django.db import models


class TaskFields(models.Model):
    """
    Column set of the delivery task spreadsheet, shared by every stage of a
    task's life (unassigned, assigned, completed).
    """
    order_co = models.BigIntegerField(null=True, blank=True)
    or_ty = models.CharField(max_length=16, null=True, blank=True, help_text="Order type")
    order_number = models.BigIntegerField(db_index=True)
    branch_plant = models.CharField(max_length=64, null=True, blank=True)
    customer_po = models.CharField(max_length=128, null=True, blank=True)
    suburb_town = models.CharField(max_length=128, null=True, blank=True)
    name = models.CharField(max_length=255, null=True, blank=True)
    description = models.CharField(max_length=255, null=True, blank=True)
    quantity_shipped = models.FloatField(null=True, blank=True)
    item_number = models.BigIntegerField(null=True, blank=True)
    postal_code = models.IntegerField(null=True, blank=True)
    rev_nbr = models.IntegerField(null=True, blank=True)
    revision_reason = models.CharField(max_length=255, null=True, blank=True)
    route_code = models.CharField(max_length=64, null=True, blank=True)
    sched_pick = models.DateTimeField(null=True, blank=True)
    truck_id = models.CharField(max_length=64, null=True, blank=True)
    location = models.CharField(max_length=128, null=True, blank=True)
    scheduled_pick_time = models.IntegerField(null=True, blank=True)
    request_date = models.DateTimeField(null=True, blank=True)
    sold_to = models.BigIntegerField(null=True, blank=True)
    ship_to = models.BigIntegerField(null=True, blank=True)
    deliver_to = models.BigIntegerField(null=True, blank=True)
    state_code = models.CharField(max_length=16, null=True, blank=True)
    ln_ty = models.CharField(max_length=16, null=True, blank=True, help_text="Line type")
    description_line_2 = models.CharField(max_length=255, null=True, blank=True)
    zone_no = models.CharField(max_length=32, null=True, blank=True)
    stop_code = models.CharField(max_length=32, null=True, blank=True)
    next_stat = models.IntegerField(null=True, blank=True)
    last_stat = models.IntegerField(null=True, blank=True)
    priority = models.IntegerField(null=True, blank=True)
    future_qty_committed = models.FloatField(null=True, blank=True)
    quantity_ordered = models.FloatField(null=True, blank=True)
    reason_code = models.CharField(max_length=64, null=True, blank=True)
    line_number = models.FloatField(null=True, blank=True)

    class Meta:
        abstract = True

    @classmethod
    def spreadsheet_field_names(cls):
        return [f.name for f in TaskFields._meta.local_fields]

    def spreadsheet_values(self):
        """Field values of the spreadsheet columns, ready to copy onto the next stage."""
        return {name: getattr(self, name) for name in self.spreadsheet_field_names()}


class AssignmentFields(models.Model):
    """Driver/truck binding carried from assignment through to completion."""
    driver_name = models.CharField(max_length=128, null=True, blank=True, db_index=True)
    truck_no = models.IntegerField(null=True, blank=True)
    truck_type = models.CharField(max_length=64, null=True, blank=True)
    cubic = models.FloatField(null=True, blank=True, help_text="Truck capacity in m3")
    invoice_id = models.CharField(max_length=64, null=True, blank=True)
    manifest_no = models.CharField(max_length=64, null=True, blank=True)
    assigned_at = models.DateTimeField()

    class Meta:
        abstract = True

    @classmethod
    def assignment_field_names(cls):
        return [f.name for f in AssignmentFields._meta.local_fields]
