"""
Logistics App Filters - shipment list query parameters
"""

import django_filters
from django.db.models import Q

from .models import Shipment, normalize_status


class ShipmentFilter(django_filters.FilterSet):
    """
    ?status=in_transit&created_after=2024-01-01&created_before=2024-02-01&search=UEX123
    """

    status = django_filters.CharFilter(method='filter_status')
    created_after = django_filters.DateFilter(field_name='created_at', lookup_expr='date__gte')
    created_before = django_filters.DateFilter(field_name='created_at', lookup_expr='date__lte')
    search = django_filters.CharFilter(method='filter_search')
    payment_mode = django_filters.CharFilter(field_name='payment_mode', lookup_expr='iexact')

    class Meta:
        model = Shipment
        fields = ['status', 'created_after', 'created_before', 'search', 'payment_mode']

    def filter_status(self, queryset, name, value):
        status = normalize_status(value)
        if status is None:
            return queryset.none()
        return queryset.filter(current_status=status)

    def filter_search(self, queryset, name, value):
        value = value.strip()
        if not value:
            return queryset
        return queryset.filter(
            Q(awb_code__icontains=value)
            | Q(receiver_name__icontains=value)
            | Q(client_order_id__icontains=value)
        )
