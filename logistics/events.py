"""
LOGISTICS App - Real-time Event Broadcasting

Pushes shipment changes to Django Channels groups. Called by the
lifecycle engine after the database transaction commits.

Groups:
- shipment_<AWB>   : tracking / detail pages of one shipment
- admin_shipments  : admin shipment table (refetch signal)
"""

import logging
from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.utils import timezone

logger = logging.getLogger(__name__)

ADMIN_SHIPMENTS_GROUP = 'admin_shipments'


def shipment_group_name(awb_code: str) -> str:
    return f'shipment_{awb_code.upper()}'


def _send_group_event(group_name: str, event: dict) -> bool:
    """Send event to a channel group; failures are logged, never raised."""
    channel_layer = get_channel_layer()
    if not channel_layer:
        return False

    try:
        async_to_sync(channel_layer.group_send)(group_name, event)
        return True
    except Exception as e:
        logger.error(f"[EVENTS] Failed to send to group {group_name}: {e}")
        return False


def broadcast_shipment_status(
    awb_code: str,
    new_status: str,
    location: str = "",
    description: str = "",
    deleted: bool = False,
):
    """
    Broadcast a shipment change.

    Notifies:
    - clients watching this shipment
    - the admin shipment table
    """
    timestamp = timezone.now().isoformat()

    _send_group_event(
        shipment_group_name(awb_code),
        {
            'type': 'shipment_status_update',
            'awb_code': awb_code,
            'status': new_status,
            'location': location,
            'description': description,
            'timestamp': timestamp,
        }
    )

    _send_group_event(
        ADMIN_SHIPMENTS_GROUP,
        {
            'type': 'shipment_status_update',
            'awb_code': awb_code,
            'status': new_status,
            'deleted': deleted,
            'timestamp': timestamp,
        }
    )

    logger.debug(f"[EVENTS] Broadcasted {awb_code} -> {new_status}")
