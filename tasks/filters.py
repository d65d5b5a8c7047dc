import django_filters

from tasks.models import Task, AssignedTask


class UnassignedTaskFilter(django_filters.FilterSet):
    route_code = django_filters.CharFilter(field_name='route_code', lookup_expr='iexact')
    branch_plant = django_filters.CharFilter(field_name='branch_plant', lookup_expr='iexact')
    order_number = django_filters.NumberFilter(field_name='order_number')

    class Meta:
        model = Task
        fields = ['route_code', 'branch_plant', 'order_number']


class AssignedTaskFilter(django_filters.FilterSet):
    truck_id = django_filters.CharFilter(field_name='truck_id')
    truck_no = django_filters.NumberFilter(field_name='truck_no')

    class Meta:
        model = AssignedTask
        fields = ['truck_id', 'truck_no']
