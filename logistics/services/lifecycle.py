"""
LOGISTICS App - Shipment Lifecycle Engine

Single owner of every shipment status change. Each operation:
1. locks the shipment row (select_for_update)
2. checks the transition is allowed for the caller
3. writes current_status and appends exactly one TrackingEvent
4. broadcasts the change once the transaction commits

A failure anywhere rolls back both the status write and the event.
"""

import logging
from dataclasses import dataclass, field, fields
from decimal import Decimal
from typing import Iterable, List, Optional

from django.conf import settings
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import transaction
from django.utils import timezone

from core.models import Staff, StaffStatus
from logistics.events import broadcast_shipment_status
from logistics.models import (
    Shipment, ShipmentStatus, TrackingEvent, PODImage, PaymentMode,
    ORDER_PLACED, FAILURE_STATUSES, TERMINAL_STATUSES,
    default_weight, normalize_status, normalize_payment_mode,
)
from logistics.services.awb import allocate_awb, generate_awb

logger = logging.getLogger(__name__)


class ShipmentTransitionError(ValueError):
    """The requested status change is not allowed from the current state."""


class ShipmentValidationError(ValueError):
    """The request carries missing or malformed input."""


DEFAULT_BOOKING_LOCATION = 'Online Booking'
DEFAULT_RTO_REASON = 'Maximum delivery attempts exceeded'
ADMIN_POD_LOCATION = 'Admin Upload'

STATUS_DESCRIPTIONS = {
    ORDER_PLACED: 'Order placed',
    ShipmentStatus.MANIFESTED: 'Shipment details received',
    ShipmentStatus.IN_TRANSIT: 'Shipment on the way',
    ShipmentStatus.OUT_FOR_DELIVERY: 'Out for delivery',
    ShipmentStatus.DELIVERED: 'Delivered successfully',
    ShipmentStatus.RTO: 'Returning to origin',
    ShipmentStatus.CANCELLED: 'Shipment cancelled',
}

# Driver-side sources per target status
PICKUP_SOURCES = (ShipmentStatus.CREATED,)
TRANSIT_SOURCES = (ShipmentStatus.MANIFESTED, ShipmentStatus.IN_TRANSIT)
START_DELIVERY_SOURCES = (ShipmentStatus.MANIFESTED, ShipmentStatus.IN_TRANSIT)
DELIVER_SOURCES = (ShipmentStatus.OUT_FOR_DELIVERY,)
FAIL_SOURCES = {
    ShipmentStatus.UNDELIVERED: (ShipmentStatus.OUT_FOR_DELIVERY,),
    ShipmentStatus.DELIVERY_FAILED: (ShipmentStatus.OUT_FOR_DELIVERY,),
    ShipmentStatus.PICKUP_FAILED: (ShipmentStatus.CREATED, ShipmentStatus.OUT_FOR_DELIVERY),
}


def describe_status(status: str) -> str:
    return STATUS_DESCRIPTIONS.get(status, f"Status updated to {status}")


def _check_location_length(location: str) -> str:
    limit = TrackingEvent._meta.get_field('location').max_length
    if len(location) > limit:
        raise ShipmentValidationError(
            f"Location and reason together exceed {limit} characters"
        )
    return location


def format_failure_location(location: str, reason: Optional[str]) -> str:
    if reason:
        return _check_location_length(f"{location} [Reason: {reason}]")
    return _check_location_length(location)


# ============================================
# BOOKING DRAFT
# ============================================

@dataclass
class ShipmentDraft:
    """Validated input for a new shipment, whatever channel it came from."""

    sender_name: str
    receiver_name: str
    receiver_address: str
    sender_phone: str = ''
    sender_address: str = ''
    sender_city: str = ''
    sender_state: str = ''
    sender_pincode: str = ''
    receiver_phone: str = ''
    receiver_city: str = ''
    receiver_state: str = ''
    receiver_pincode: str = ''
    weight: Decimal = field(default_factory=default_weight)
    package_type: str = ''
    payment_mode: str = PaymentMode.PREPAID
    declared_value: Decimal = Decimal('0')
    cod_amount: Decimal = Decimal('0')
    client_order_id: str = ''
    payment_status: str = 'Unpaid'

    @classmethod
    def from_dict(cls, data: dict) -> 'ShipmentDraft':
        """Build a draft from loose input, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        values = {}
        for key in known:
            value = data.get(key)
            if value is None:
                continue
            values[key] = value.strip() if isinstance(value, str) else value
        for required in ('sender_name', 'receiver_name', 'receiver_address'):
            values.setdefault(required, '')
        draft = cls(**values)
        draft.normalize()
        return draft

    def normalize(self):
        for required in ('sender_name', 'receiver_name', 'receiver_address'):
            if not str(getattr(self, required) or '').strip():
                raise ShipmentValidationError(f"{required} is required")

        mode = normalize_payment_mode(self.payment_mode)
        if mode is None:
            raise ShipmentValidationError(f"Unknown payment mode '{self.payment_mode}'")
        self.payment_mode = mode

        self.weight = _to_decimal(self.weight, 'weight', default=default_weight())
        if self.weight <= 0:
            self.weight = default_weight()
        self.declared_value = _to_decimal(self.declared_value, 'declared_value')
        self.cod_amount = _to_decimal(self.cod_amount, 'cod_amount')
        if self.cod_amount < 0 or self.declared_value < 0:
            raise ShipmentValidationError("Amounts cannot be negative")

        # Prepaid never collects cash
        if self.payment_mode == PaymentMode.PREPAID:
            self.cod_amount = Decimal('0')
        return self


def _to_decimal(value, name, default=Decimal('0')) -> Decimal:
    if value is None or (isinstance(value, str) and value.strip() == ''):
        return default
    try:
        amount = Decimal(str(value).strip())
    except (ArithmeticError, ValueError):
        raise ShipmentValidationError(f"{name} must be a number, got '{value}'")
    # NaN and Infinity parse but cannot be compared or stored
    if not amount.is_finite():
        raise ShipmentValidationError(f"{name} must be a number, got '{value}'")
    return amount


# ============================================
# INTERNALS
# ============================================

_UNSET = object()


def _flatten_errors(error: DjangoValidationError) -> str:
    if hasattr(error, 'message_dict'):
        return '; '.join(
            f"{name}: {' '.join(messages)}" for name, messages in error.message_dict.items()
        )
    return ' '.join(error.messages)


def _lock(shipment: Shipment) -> Shipment:
    return Shipment.objects.select_for_update().get(pk=shipment.pk)


def _require_location(location: str) -> str:
    location = (location or '').strip()
    if not location:
        raise ShipmentValidationError("Location is required")
    return _check_location_length(location)


def _require_source(shipment: Shipment, allowed: Iterable[str], action: str):
    if shipment.current_status not in allowed:
        raise ShipmentTransitionError(
            f"Cannot {action} shipment {shipment.awb_code} "
            f"in status '{shipment.current_status}'"
        )


def _broadcast_on_commit(awb_code, status, location='', description='', deleted=False):
    transaction.on_commit(
        lambda: broadcast_shipment_status(
            awb_code, status, location=location, description=description, deleted=deleted
        )
    )


def _apply_transition(
    shipment: Shipment,
    new_status: str,
    location: str,
    description: Optional[str] = None,
    timestamp=None,
    failure_reason=_UNSET,
) -> TrackingEvent:
    """Status write + paired event. Caller holds the row lock."""
    update_fields = ['current_status', 'updated_at']
    shipment.current_status = new_status
    if failure_reason is not _UNSET:
        shipment.failure_reason = failure_reason
        update_fields.append('failure_reason')
    shipment.save(update_fields=update_fields)

    event = TrackingEvent.objects.create(
        shipment=shipment,
        status=new_status,
        location=location,
        description=description or describe_status(new_status),
        timestamp=timestamp or timezone.now(),
    )
    _broadcast_on_commit(shipment.awb_code, new_status, location, event.description)

    logger.info(f"[LIFECYCLE] {shipment.awb_code} -> {new_status} @ {location}")
    return event


def _store_photos(shipment: Shipment, photos: List) -> List[PODImage]:
    """Store photos one after another, in upload order."""
    stored = []
    for photo in photos:
        pod = PODImage(shipment=shipment)
        pod.image.save(f"{shipment.awb_code}_{photo.name}", photo, save=False)
        pod.save()
        stored.append(pod)
    return stored


def _delete_stored_file(pod: PODImage):
    try:
        pod.image.delete(save=False)
    except Exception as e:
        logger.error(f"[LIFECYCLE] Could not delete POD file {pod.image.name}: {e}")


# ============================================
# OPERATIONS
# ============================================

def book_shipment(draft: ShipmentDraft, user, location: str = DEFAULT_BOOKING_LOCATION,
                  awb_generator=generate_awb, reserved_awbs=None) -> Shipment:
    """
    Book a shipment in status `created` with its `order_placed` event.

    Pricing fields stay zero.
    """
    draft.normalize()
    with transaction.atomic():
        shipment = Shipment(
            awb_code=allocate_awb(awb_generator, reserved_awbs),
            user=user,
            current_status=ShipmentStatus.CREATED,
            cost=Decimal('0'),
            base_fee=Decimal('0'),
            tax_amount=Decimal('0'),
            **{f.name: getattr(draft, f.name) for f in fields(draft)},
        )
        try:
            shipment.full_clean(exclude=['awb_code', 'user', 'delivery_boy'])
        except DjangoValidationError as e:
            raise ShipmentValidationError(_flatten_errors(e))
        shipment.save()

        event = TrackingEvent.objects.create(
            shipment=shipment,
            status=ORDER_PLACED,
            location=location or DEFAULT_BOOKING_LOCATION,
            description=describe_status(ORDER_PLACED),
        )
        _broadcast_on_commit(shipment.awb_code, ShipmentStatus.CREATED, event.location, event.description)

    logger.info(f"[LIFECYCLE] Booked {shipment.awb_code} for {user}")
    return shipment


@transaction.atomic
def pickup(shipment: Shipment, location: str) -> Shipment:
    location = _require_location(location)
    shipment = _lock(shipment)
    _require_source(shipment, PICKUP_SOURCES, 'pick up')
    _apply_transition(shipment, ShipmentStatus.MANIFESTED, location, failure_reason=None)
    return shipment


@transaction.atomic
def mark_in_transit(shipment: Shipment, location: str, by_admin: bool = False) -> Shipment:
    """Drivers move manifested/in-transit shipments; admins any non-terminal one."""
    location = _require_location(location)
    shipment = _lock(shipment)
    if by_admin:
        if shipment.current_status in TERMINAL_STATUSES:
            raise ShipmentTransitionError(
                f"Shipment {shipment.awb_code} is already {shipment.current_status}"
            )
    else:
        _require_source(shipment, TRANSIT_SOURCES, 'move')
    _apply_transition(shipment, ShipmentStatus.IN_TRANSIT, location, failure_reason=None)
    return shipment


@transaction.atomic
def start_delivery(shipment: Shipment, location: str) -> Shipment:
    location = _require_location(location)
    shipment = _lock(shipment)
    _require_source(shipment, START_DELIVERY_SOURCES, 'start delivery for')
    _apply_transition(shipment, ShipmentStatus.OUT_FOR_DELIVERY, location, failure_reason=None)
    return shipment


def deliver(shipment: Shipment, location: str, photos: List) -> Shipment:
    """
    Mark delivered with proof-of-delivery photos.

    Zero photos is rejected before anything is written.
    """
    photos = [p for p in (photos or []) if p]
    if not photos:
        raise ShipmentValidationError("At least one proof-of-delivery photo is required")
    if len(photos) > settings.MAX_POD_PHOTOS:
        raise ShipmentValidationError(
            f"At most {settings.MAX_POD_PHOTOS} proof-of-delivery photos are allowed"
        )
    for photo in photos:
        content_type = getattr(photo, 'content_type', '') or ''
        if not content_type.startswith('image/'):
            raise ShipmentValidationError(f"{photo.name} is not an image")
    location = _require_location(location)

    stored = []
    try:
        with transaction.atomic():
            shipment = _lock(shipment)
            _require_source(shipment, DELIVER_SOURCES, 'deliver')
            stored = _store_photos(shipment, photos)
            _apply_transition(shipment, ShipmentStatus.DELIVERED, location, failure_reason=None)
    except Exception:
        for pod in stored:
            _delete_stored_file(pod)
        raise
    return shipment


@transaction.atomic
def fail_delivery(shipment: Shipment, location: str, reason: str,
                  status: str = ShipmentStatus.UNDELIVERED) -> Shipment:
    """Record a failed attempt; the reason is kept on the row and in the event location."""
    reason = (reason or '').strip()
    if not reason:
        raise ShipmentValidationError("A failure reason is required")
    target = normalize_status(status)
    if target not in FAIL_SOURCES:
        raise ShipmentValidationError(f"'{status}' is not a failure status")
    event_location = format_failure_location(_require_location(location), reason)

    shipment = _lock(shipment)
    _require_source(shipment, FAIL_SOURCES[target], 'fail')
    _apply_transition(shipment, target, event_location, failure_reason=reason)
    return shipment


@transaction.atomic
def override_status(shipment: Shipment, status: str, location: str = '',
                    reason: Optional[str] = None, timestamp=None) -> Shipment:
    """
    Admin override: any canonical status from any status.

    Failure statuses keep the reason (RTO defaults one); others clear it.
    `timestamp` backdates the event.
    """
    target = normalize_status(status)
    if target is None:
        raise ShipmentValidationError(f"Unknown status '{status}'")
    location = _require_location(location)

    reason = (reason or '').strip() or None
    if target == ShipmentStatus.RTO and not reason:
        reason = DEFAULT_RTO_REASON

    if target in FAILURE_STATUSES:
        event_location = format_failure_location(location, reason)
    else:
        event_location, reason = location, None

    shipment = _lock(shipment)
    _apply_transition(
        shipment, target, event_location, timestamp=timestamp, failure_reason=reason,
    )
    return shipment


@transaction.atomic
def cancel(shipment: Shipment, location: str = '') -> Shipment:
    """Owner cancellation, allowed only before pickup."""
    shipment = _lock(shipment)
    _require_source(shipment, (ShipmentStatus.CREATED,), 'cancel')
    _apply_transition(
        shipment,
        ShipmentStatus.CANCELLED,
        location or 'Cancelled by customer',
        failure_reason=None,
    )
    return shipment


def delete_cancelled(shipment: Shipment):
    """Admin hard delete of a cancelled shipment and its stored POD files."""
    with transaction.atomic():
        shipment = _lock(shipment)
        _require_source(shipment, (ShipmentStatus.CANCELLED,), 'delete')
        awb_code = shipment.awb_code
        pods = list(shipment.pod_images.all())
        shipment.delete()
        _broadcast_on_commit(awb_code, ShipmentStatus.CANCELLED, deleted=True)

    for pod in pods:
        _delete_stored_file(pod)
    logger.info(f"[LIFECYCLE] Deleted cancelled shipment {awb_code}")


def attach_pod_images(shipment: Shipment, files: List, location: str = ADMIN_POD_LOCATION):
    """
    Admin POD upload; marks the shipment delivered.

    Files that fail to store are skipped and logged. Returns
    (shipment, stored_images, skipped_names).
    """
    files = [f for f in (files or []) if f]
    if not files:
        raise ShipmentValidationError("No files uploaded")

    with transaction.atomic():
        shipment = _lock(shipment)
        stored, skipped = [], []
        for upload in files:
            try:
                with transaction.atomic():
                    stored.extend(_store_photos(shipment, [upload]))
            except Exception as e:
                logger.error(f"[LIFECYCLE] POD upload skipped for {shipment.awb_code} ({upload.name}): {e}")
                skipped.append(upload.name)

        if not stored:
            raise ShipmentValidationError("None of the uploaded files could be stored")

        _apply_transition(
            shipment,
            ShipmentStatus.DELIVERED,
            location or ADMIN_POD_LOCATION,
            description='Delivered (proof of delivery uploaded)',
            failure_reason=None,
        )
    return shipment, stored, skipped


def delete_pod_image(pod: PODImage):
    """Remove the stored object, then the row."""
    _delete_stored_file(pod)
    awb_code = pod.shipment.awb_code
    pod.delete()
    logger.info(f"[LIFECYCLE] POD image removed from {awb_code}")


@transaction.atomic
def assign_driver(shipment: Shipment, staff: Optional[Staff]) -> Shipment:
    """Assign (or with None, unassign) a driver. Status is unchanged."""
    shipment = _lock(shipment)
    if staff is not None and staff.status != StaffStatus.ACTIVE:
        raise ShipmentValidationError(f"{staff.name} is not an active staff member")
    shipment.delivery_boy = staff
    shipment.save(update_fields=['delivery_boy', 'updated_at'])
    _broadcast_on_commit(shipment.awb_code, shipment.current_status)

    logger.info(
        f"[LIFECYCLE] {shipment.awb_code} assigned to {staff.name if staff else 'nobody'}"
    )
    return shipment

