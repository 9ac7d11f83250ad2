"""
LOGISTICS App - Shipments & Tracking for UEX Logistics

Handles: Shipments, Tracking Events (timeline), POD Images, Package Types
"""

import uuid
from decimal import Decimal
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.utils import timezone


class ShipmentStatus(models.TextChoices):
    """Canonical shipment status vocabulary."""
    CREATED = 'created', 'Created'
    MANIFESTED = 'manifested', 'Manifested'
    IN_TRANSIT = 'in_transit', 'In Transit'
    OUT_FOR_DELIVERY = 'out_for_delivery', 'Out for Delivery'
    DELIVERED = 'delivered', 'Delivered'
    PICKUP_FAILED = 'pickup_failed', 'Pickup Failed'
    DELIVERY_FAILED = 'delivery_failed', 'Delivery Failed'
    UNDELIVERED = 'undelivered', 'Undelivered'
    RTO = 'rto', 'Return to Origin'
    RTO_DELIVERED = 'rto_delivered', 'RTO Delivered'
    CANCELLED = 'cancelled', 'Cancelled'


# Legacy synonyms still sent by older clients and spreadsheets
STATUS_ALIASES = {
    'picked_up': ShipmentStatus.MANIFESTED,
    'rto_initiated': ShipmentStatus.RTO,
    'pending': ShipmentStatus.CREATED,
}

# Creation marker used only on the timeline
ORDER_PLACED = 'order_placed'

FAILURE_STATUSES = (
    ShipmentStatus.PICKUP_FAILED,
    ShipmentStatus.DELIVERY_FAILED,
    ShipmentStatus.UNDELIVERED,
    ShipmentStatus.RTO,
)

TERMINAL_STATUSES = (
    ShipmentStatus.DELIVERED,
    ShipmentStatus.RTO_DELIVERED,
    ShipmentStatus.CANCELLED,
)


def normalize_status(value):
    """
    Map any accepted spelling to the canonical status.

    Returns None for unknown values.
    """
    if value is None:
        return None
    key = str(value).strip().lower().replace(' ', '_').replace('-', '_')
    if key in STATUS_ALIASES:
        return STATUS_ALIASES[key]
    if key in ShipmentStatus.values:
        return ShipmentStatus(key)
    return None


class PaymentMode(models.TextChoices):
    PREPAID = 'Prepaid', 'Prepaid'
    COD = 'COD', 'Cash on Delivery'


def normalize_payment_mode(value):
    if value is None or str(value).strip() == '':
        return PaymentMode.PREPAID
    key = str(value).strip().lower()
    if key in ('cod', 'cash', 'cash on delivery'):
        return PaymentMode.COD
    if key in ('prepaid', 'paid', 'online'):
        return PaymentMode.PREPAID
    return None


class PackageType(models.Model):
    """
    Pricing config row: one allowed package type.

    Admins edit the list; booking forms read it.
    """

    package_type = models.CharField(max_length=100, unique=True, verbose_name="Package type")
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Package type"
        verbose_name_plural = "Package types"
        ordering = ['package_type']

    def __str__(self):
        return self.package_type


def default_weight() -> Decimal:
    """Billable weight for bookings that do not state one."""
    return Decimal(settings.DEFAULT_WEIGHT_KG)


class Shipment(models.Model):
    """
    Core shipment model.

    The AWB code is assigned once at booking and never changes.
    Pricing fields are recorded as zero (no rating engine).
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    awb_code = models.CharField(
        max_length=20,
        unique=True,
        editable=False,
        verbose_name="AWB code"
    )

    # Booking account
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name='shipments',
        verbose_name="Booked by"
    )
    client_order_id = models.CharField(max_length=100, blank=True, verbose_name="Client order ID")
    reference_id = models.CharField(max_length=100, blank=True, verbose_name="Reference ID")

    # Sender
    sender_name = models.CharField(max_length=150)
    sender_phone = models.CharField(max_length=20, blank=True)
    sender_address = models.TextField(blank=True)
    sender_city = models.CharField(max_length=100, blank=True)
    sender_state = models.CharField(max_length=100, blank=True)
    sender_pincode = models.CharField(max_length=10, blank=True)

    # Receiver
    receiver_name = models.CharField(max_length=150)
    receiver_phone = models.CharField(max_length=20, blank=True)
    receiver_address = models.TextField()
    receiver_city = models.CharField(max_length=100, blank=True)
    receiver_state = models.CharField(max_length=100, blank=True)
    receiver_pincode = models.CharField(max_length=10, blank=True)

    # Package
    weight = models.DecimalField(
        max_digits=8,
        decimal_places=3,
        default=default_weight,
        verbose_name="Weight (kg)"
    )
    package_type = models.CharField(max_length=100, blank=True)

    # Payment
    payment_mode = models.CharField(
        max_length=10,
        choices=PaymentMode.choices,
        default=PaymentMode.PREPAID
    )
    declared_value = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))
    cod_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))
    payment_status = models.CharField(max_length=30, default='Unpaid')

    # Status
    current_status = models.CharField(
        max_length=20,
        choices=ShipmentStatus.choices,
        default=ShipmentStatus.CREATED,
        verbose_name="Current status"
    )
    failure_reason = models.TextField(null=True, blank=True)

    delivery_boy = models.ForeignKey(
        'core.Staff',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='shipments',
        verbose_name="Assigned driver"
    )

    # Pricing (always zero)
    cost = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))
    base_fee = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))
    tax_amount = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal('0'))

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Shipment"
        verbose_name_plural = "Shipments"
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['current_status', 'created_at'], name='logistics_s_current_8a1c2e_idx'),
            models.Index(fields=['delivery_boy', 'current_status'], name='logistics_s_deliver_5b7d1f_idx'),
        ]

    def __str__(self):
        return f"{self.awb_code} - {self.current_status}"

    def clean(self):
        if self.payment_mode == PaymentMode.PREPAID and self.cod_amount:
            raise ValidationError({'cod_amount': "Prepaid shipments cannot carry a COD amount"})
        if self.cod_amount and self.cod_amount > 0 and self.payment_mode != PaymentMode.COD:
            raise ValidationError({'payment_mode': "A COD amount requires payment mode COD"})

    def save(self, *args, **kwargs):
        if self.pk and not self._state.adding:
            stored = type(self).objects.filter(pk=self.pk).values_list('awb_code', flat=True).first()
            if stored is not None and stored != self.awb_code:
                raise ValidationError("AWB code cannot be changed once assigned")
        super().save(*args, **kwargs)

    @property
    def is_cod(self) -> bool:
        return self.payment_mode == PaymentMode.COD

    @property
    def collectable_amount(self) -> Decimal:
        """Cash to collect at the door; declared value never counts."""
        return self.cod_amount if self.is_cod else Decimal('0')

    @property
    def is_cancellable(self) -> bool:
        return self.current_status == ShipmentStatus.CREATED


class TrackingEvent(models.Model):
    """
    Append-only timeline row: one status change with location and time.

    Rows are never updated or deleted individually; they go away only
    when their shipment is deleted.
    """

    id = models.BigAutoField(primary_key=True)
    shipment = models.ForeignKey(
        Shipment,
        on_delete=models.CASCADE,
        related_name='tracking_events'
    )
    status = models.CharField(max_length=30)
    location = models.CharField(max_length=255, blank=True)
    description = models.CharField(max_length=255, blank=True)
    timestamp = models.DateTimeField(default=timezone.now)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Tracking event"
        verbose_name_plural = "Tracking events"
        ordering = ['-timestamp', '-id']
        indexes = [
            models.Index(fields=['shipment', 'timestamp'], name='logistics_t_shipmen_3c9e4a_idx'),
        ]

    def __str__(self):
        return f"{self.shipment_id} {self.status} @ {self.location}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("Tracking events are append-only")
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("Tracking events are append-only")


class PODImage(models.Model):
    """Proof-of-delivery photo."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    shipment = models.ForeignKey(
        Shipment,
        on_delete=models.CASCADE,
        related_name='pod_images'
    )
    image = models.ImageField(upload_to='evidence/%Y/%m/')
    uploaded_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "POD image"
        verbose_name_plural = "POD images"
        ordering = ['uploaded_at']

    def __str__(self):
        return f"POD {self.shipment_id} {self.image.name}"
