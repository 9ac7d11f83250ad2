"""
Partners App Services - API Keys, Partner Bookings & Call Logging
"""
import logging
from typing import List, Tuple

from django.conf import settings
from django.db import transaction
from django.db.models import F
from django.utils import timezone

from core.models import UserRole
from logistics.models import Shipment, ShipmentStatus, PaymentMode
from logistics.serializers import TimelineEntrySerializer
from logistics.services import lifecycle
from logistics.services.awb import generate_awb
from logistics.services.lifecycle import ShipmentDraft, ShipmentValidationError
from logistics.utils import build_timeline

from .models import SellerAPIKey, ApiRequestLog

logger = logging.getLogger(__name__)

PARTNER_BOOKING_LOCATION = 'API Booking'
PARTNER_REQUIRED_FIELDS = ('sender_name', 'receiver_name', 'receiver_address', 'package_type')


class PartnerAPIService:
    """Key issuance and the business side of the partner API."""

    # ==========================================
    # KEYS
    # ==========================================

    @staticmethod
    @transaction.atomic
    def issue_key(seller) -> Tuple[SellerAPIKey, str]:
        """
        Issue a fresh key for a seller, replacing any previous one.

        Returns (api_key, raw_key). The raw key is only available here.
        """
        if seller.role != UserRole.SELLER:
            raise ValueError("API keys can only be issued to seller accounts")

        SellerAPIKey.objects.filter(seller=seller).delete()
        profile = getattr(seller, 'profile', None)
        label = (profile.business_name if profile and profile.business_name else seller.email)[:40]
        api_key, raw_key = SellerAPIKey.objects.create_key(name=f"{label} API", seller=seller)

        logger.info(f"[PARTNER API] Issued key {api_key.prefix} for {seller.email}")
        return api_key, raw_key

    @staticmethod
    def record_call(api_key: SellerAPIKey, endpoint: str, method: str, status_code: int,
                    request_body=None, response_body=None) -> ApiRequestLog:
        """Log one call and bump the key's usage counter."""
        SellerAPIKey.objects.filter(pk=api_key.pk).update(
            usage_count=F('usage_count') + 1,
            last_used_at=timezone.now(),
        )
        return ApiRequestLog.objects.create(
            seller=api_key.seller,
            endpoint=endpoint,
            method=method,
            status_code=status_code,
            request_body=request_body or {},
            response_body=response_body or {},
        )

    # ==========================================
    # BOOKING
    # ==========================================

    @staticmethod
    def build_drafts(items: List[dict]) -> List[ShipmentDraft]:
        """Validate every item before anything is booked."""
        drafts = []
        for index, item in enumerate(items, start=1):
            if not isinstance(item, dict):
                raise ShipmentValidationError(f"Shipment #{index} must be an object")
            missing = [name for name in PARTNER_REQUIRED_FIELDS if not str(item.get(name) or '').strip()]
            if missing:
                receiver = item.get('receiver_name') or 'Unknown'
                raise ShipmentValidationError(
                    f"Missing required fields for receiver: {receiver} ({', '.join(missing)})"
                )
            try:
                drafts.append(ShipmentDraft.from_dict(item))
            except ShipmentValidationError as e:
                raise ShipmentValidationError(f"Shipment #{index}: {e}")
        return drafts

    @staticmethod
    def book(items: List[dict], seller) -> List[Shipment]:
        """All-or-nothing: one invalid item books none."""
        drafts = PartnerAPIService.build_drafts(items)
        reserved = set()
        with transaction.atomic():
            shipments = [
                lifecycle.book_shipment(
                    draft, seller,
                    location=PARTNER_BOOKING_LOCATION,
                    awb_generator=generate_awb,
                    reserved_awbs=reserved,
                )
                for draft in drafts
            ]
        logger.info(f"[PARTNER API] {seller.email} booked {len(shipments)} shipment(s)")
        return shipments

    # ==========================================
    # RESPONSE SHAPES
    # ==========================================

    @staticmethod
    def label_url(shipment) -> str:
        return f"{settings.SITE_URL}/print/{shipment.awb_code}/"

    @staticmethod
    def booking_summary(shipment) -> dict:
        return {
            'awb_code': shipment.awb_code,
            'receiver_name': shipment.receiver_name,
            'payment_mode': shipment.payment_mode,
            'cod_amount': shipment.cod_amount,
            'status': shipment.current_status,
            'label_url': PartnerAPIService.label_url(shipment),
        }

    @staticmethod
    def tracking_payload(shipment) -> dict:
        """Seller-facing tracking view of one shipment."""
        current = shipment.current_status
        return {
            'awb': shipment.awb_code,
            'reference_id': shipment.reference_id or None,
            'client_order_id': shipment.client_order_id or None,
            'status': {
                'current': 'Pending' if current == ShipmentStatus.CREATED else current,
                'booked_on': shipment.created_at,
                'failure_reason': shipment.failure_reason,
            },
            'route': {
                'origin': f"{shipment.sender_city}, {shipment.sender_state}",
                'destination': f"{shipment.receiver_city}, {shipment.receiver_state}",
            },
            'parties': {
                'sender': shipment.sender_name,
                'receiver': shipment.receiver_name,
            },
            'details': {
                'weight': shipment.weight,
                'type': shipment.package_type,
            },
            'financials': {
                'payment_mode': shipment.payment_mode,
                'cod_to_collect': shipment.cod_amount if shipment.payment_mode == PaymentMode.COD else 0,
                'insured_value': shipment.declared_value,
            },
            'documents': {
                'label_url': PartnerAPIService.label_url(shipment),
            },
            'history': TimelineEntrySerializer(build_timeline(shipment), many=True).data,
        }
