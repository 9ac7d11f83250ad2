"""
LOGISTICS App - Celery Tasks

Periodic reconciliation between shipment status and tracking timeline.
"""

from celery import shared_task
import logging

from django.db import transaction
from django.db.models import OuterRef, Subquery

logger = logging.getLogger(__name__)

RECONCILIATION_LOCATION = 'System Reconciliation'


@shared_task(name='logistics.tasks.reconcile_tracking_events')
def reconcile_tracking_events():
    """
    Append a tracking event to every shipment whose latest event does not
    match its current status.

    Rows written before status changes became atomic can have a status
    ahead of their timeline; this brings the audit trail back in line.
    Runs every 30 minutes.
    """
    from logistics.models import Shipment, ShipmentStatus, TrackingEvent, ORDER_PLACED
    from logistics.services.lifecycle import describe_status

    latest_status = (
        TrackingEvent.objects.filter(shipment=OuterRef('pk'))
        .order_by('-created_at', '-id')
        .values('status')[:1]
    )
    candidates = Shipment.objects.annotate(latest_event_status=Subquery(latest_status))

    repaired = 0
    for shipment in candidates.iterator():
        latest = shipment.latest_event_status
        if latest == shipment.current_status:
            continue
        # A fresh booking only carries its creation marker (or nothing, on
        # legacy rows, where the timeline shows an implicit one)
        if shipment.current_status == ShipmentStatus.CREATED and latest in (ORDER_PLACED, None):
            continue

        with transaction.atomic():
            TrackingEvent.objects.create(
                shipment=shipment,
                status=shipment.current_status,
                location=RECONCILIATION_LOCATION,
                description=describe_status(shipment.current_status),
            )
        repaired += 1
        logger.warning(
            f"[RECONCILE] {shipment.awb_code}: timeline said '{latest}', "
            f"status is '{shipment.current_status}'"
        )

    logger.info(f"[RECONCILE] Repaired {repaired} shipment timelines")
    return repaired
