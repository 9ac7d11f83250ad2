"""
Logistics App Serializers - Shipments, Tracking, Package Types
"""

from django.conf import settings
from rest_framework import serializers

from .models import (
    Shipment, TrackingEvent, PODImage, PackageType, PaymentMode,
    normalize_status,
)
from .utils import estimate_delivery_date, format_estimated_date, build_timeline


class PackageTypeSerializer(serializers.ModelSerializer):
    class Meta:
        model = PackageType
        fields = ['id', 'package_type', 'created_at']
        read_only_fields = ['id', 'created_at']


class TrackingEventSerializer(serializers.ModelSerializer):
    class Meta:
        model = TrackingEvent
        fields = ['id', 'status', 'location', 'description', 'timestamp']


class PODImageSerializer(serializers.ModelSerializer):
    image_url = serializers.SerializerMethodField()

    class Meta:
        model = PODImage
        fields = ['id', 'image_url', 'uploaded_at']

    def get_image_url(self, obj):
        request = self.context.get('request')
        url = obj.image.url
        return request.build_absolute_uri(url) if request else url


class TimelineEntrySerializer(serializers.Serializer):
    status = serializers.CharField()
    location = serializers.CharField(allow_blank=True)
    description = serializers.CharField(allow_blank=True)
    timestamp = serializers.DateTimeField()


class ShipmentListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for shipment tables."""

    delivery_boy_name = serializers.CharField(source='delivery_boy.name', read_only=True, default=None)

    class Meta:
        model = Shipment
        fields = [
            'id', 'awb_code', 'client_order_id', 'sender_name', 'receiver_name',
            'receiver_phone', 'receiver_city', 'receiver_pincode',
            'payment_mode', 'cod_amount', 'declared_value', 'payment_status',
            'current_status', 'delivery_boy', 'delivery_boy_name', 'created_at'
        ]


class ShipmentSerializer(serializers.ModelSerializer):
    """Full shipment detail with timeline, POD images and ETA."""

    delivery_boy_name = serializers.CharField(source='delivery_boy.name', read_only=True, default=None)
    timeline = serializers.SerializerMethodField()
    pod_images = PODImageSerializer(many=True, read_only=True)
    estimated_delivery = serializers.SerializerMethodField()
    label_url = serializers.SerializerMethodField()
    invoice_url = serializers.SerializerMethodField()

    class Meta:
        model = Shipment
        fields = [
            'id', 'awb_code', 'user', 'client_order_id', 'reference_id',
            'sender_name', 'sender_phone', 'sender_address', 'sender_city',
            'sender_state', 'sender_pincode',
            'receiver_name', 'receiver_phone', 'receiver_address', 'receiver_city',
            'receiver_state', 'receiver_pincode',
            'weight', 'package_type', 'payment_mode', 'declared_value',
            'cod_amount', 'payment_status', 'current_status', 'failure_reason',
            'delivery_boy', 'delivery_boy_name', 'cost', 'base_fee', 'tax_amount',
            'estimated_delivery', 'timeline', 'pod_images', 'label_url',
            'invoice_url', 'created_at', 'updated_at'
        ]
        read_only_fields = fields

    def get_timeline(self, obj):
        return TimelineEntrySerializer(build_timeline(obj), many=True).data

    def get_estimated_delivery(self, obj):
        return format_estimated_date(estimate_delivery_date(obj.package_type, obj.created_at))

    def get_label_url(self, obj):
        return f"{settings.SITE_URL}/print/{obj.awb_code}/"

    def get_invoice_url(self, obj):
        return f"{settings.SITE_URL}/api/shipments/{obj.awb_code}/invoice/"


class ShipmentCreateSerializer(serializers.Serializer):
    """Booking form input (customer, seller, admin)."""

    sender_name = serializers.CharField(max_length=150)
    sender_phone = serializers.CharField(max_length=20, required=False, allow_blank=True)
    sender_address = serializers.CharField(required=False, allow_blank=True)
    sender_city = serializers.CharField(max_length=100, required=False, allow_blank=True)
    sender_state = serializers.CharField(max_length=100, required=False, allow_blank=True)
    sender_pincode = serializers.CharField(max_length=10, required=False, allow_blank=True)
    receiver_name = serializers.CharField(max_length=150)
    receiver_phone = serializers.CharField(max_length=20, required=False, allow_blank=True)
    receiver_address = serializers.CharField()
    receiver_city = serializers.CharField(max_length=100, required=False, allow_blank=True)
    receiver_state = serializers.CharField(max_length=100, required=False, allow_blank=True)
    receiver_pincode = serializers.CharField(max_length=10, required=False, allow_blank=True)
    weight = serializers.DecimalField(max_digits=8, decimal_places=3, required=False, min_value=0)
    package_type = serializers.CharField(max_length=100, required=False, allow_blank=True)
    payment_mode = serializers.ChoiceField(choices=PaymentMode.choices, default=PaymentMode.PREPAID)
    declared_value = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, min_value=0)
    cod_amount = serializers.DecimalField(max_digits=12, decimal_places=2, required=False, min_value=0)
    client_order_id = serializers.CharField(max_length=100, required=False, allow_blank=True)
    user_id = serializers.UUIDField(required=False, help_text="Admin only: book for this account")

    def validate(self, data):
        if data.get('payment_mode') == PaymentMode.PREPAID and data.get('cod_amount'):
            raise serializers.ValidationError(
                {'cod_amount': "Prepaid shipments cannot carry a COD amount."}
            )
        return data


# ============================================
# LIFECYCLE ACTION INPUTS
# ============================================

class LocationSerializer(serializers.Serializer):
    location = serializers.CharField(max_length=255)


class FailSerializer(LocationSerializer):
    reason = serializers.CharField(max_length=200)
    status = serializers.CharField(required=False, default='undelivered')


class StatusOverrideSerializer(serializers.Serializer):
    status = serializers.CharField()
    location = serializers.CharField(max_length=255)
    reason = serializers.CharField(max_length=200, required=False, allow_blank=True, allow_null=True)
    timestamp = serializers.DateTimeField(required=False, allow_null=True)

    def validate_status(self, value):
        status = normalize_status(value)
        if status is None:
            raise serializers.ValidationError(f"Unknown status '{value}'")
        return status


class AssignDriverSerializer(serializers.Serializer):
    staff_id = serializers.UUIDField(allow_null=True)


class BulkSyncSerializer(serializers.Serializer):
    file = serializers.FileField()
    targetColumn = serializers.CharField()
    refColumn = serializers.CharField(required=False, default='AWB')
    valueColumn = serializers.CharField(required=False, default='Value')


class BulkCreateSerializer(serializers.Serializer):
    file = serializers.FileField()
    userId = serializers.UUIDField(required=False)


# ============================================
# PUBLIC TRACKING
# ============================================

class PublicTrackingSerializer(serializers.ModelSerializer):
    """Anonymous tracking view: no contact details beyond names and cities."""

    history = serializers.SerializerMethodField()
    pod_images = PODImageSerializer(many=True, read_only=True)
    estimated_delivery = serializers.SerializerMethodField()

    class Meta:
        model = Shipment
        fields = [
            'awb_code', 'current_status', 'sender_name', 'sender_city',
            'receiver_name', 'receiver_city', 'package_type', 'weight',
            'payment_mode', 'failure_reason', 'estimated_delivery',
            'created_at', 'history', 'pod_images'
        ]

    def get_history(self, obj):
        return TimelineEntrySerializer(build_timeline(obj), many=True).data

    def get_estimated_delivery(self, obj):
        return format_estimated_date(estimate_delivery_date(obj.package_type, obj.created_at))
