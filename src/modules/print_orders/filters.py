import django_filters

from modules.print_orders.models import PrintOrder


class PrintOrderFilter(django_filters.FilterSet):
    status = django_filters.CharFilter(
        field_name="fulfillment_status", lookup_expr="iexact"
    )
    approval = django_filters.CharFilter(
        field_name="approval_status", lookup_expr="iexact"
    )
    payment = django_filters.CharFilter(
        field_name="payment_status", lookup_expr="iexact"
    )
    parent = django_filters.CharFilter(field_name="parent_uid")
    mixam_order = django_filters.CharFilter(field_name="mixam_order_id")
    start_date = django_filters.DateFilter(field_name="created_at", lookup_expr="gte")
    end_date = django_filters.DateFilter(field_name="created_at", lookup_expr="lte")

    class Meta:
        model = PrintOrder
        fields = [
            "status",
            "approval",
            "payment",
            "parent",
            "mixam_order",
            "start_date",
            "end_date",
        ]
