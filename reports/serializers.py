"""
Reports App Serializers
"""
from django.conf import settings
from rest_framework import serializers

from logistics.models import Shipment


class InvoiceRowSerializer(serializers.ModelSerializer):
    """One row of the seller invoice listing."""

    invoice_url = serializers.SerializerMethodField()
    label_url = serializers.SerializerMethodField()
    amount = serializers.SerializerMethodField()

    class Meta:
        model = Shipment
        fields = [
            'awb_code', 'client_order_id', 'receiver_name', 'receiver_city',
            'payment_mode', 'cod_amount', 'declared_value', 'amount',
            'current_status', 'created_at', 'invoice_url', 'label_url'
        ]

    def get_amount(self, obj):
        """What the invoice's last row shows."""
        return obj.cod_amount if obj.is_cod else obj.declared_value

    def get_invoice_url(self, obj):
        return f"{settings.SITE_URL}/api/shipments/{obj.awb_code}/invoice/"

    def get_label_url(self, obj):
        return f"{settings.SITE_URL}/print/{obj.awb_code}/"
