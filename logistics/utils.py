"""
LOGISTICS App - Utility Functions

Delivery date estimation and tracking timeline assembly.
"""

from datetime import date, datetime, timedelta
from typing import List, Optional

from logistics.models import ORDER_PLACED

EXPRESS_KEYWORDS = ('express', 'premium')
EXPRESS_BUSINESS_DAYS = 2
STANDARD_BUSINESS_DAYS = 5


def estimate_delivery_date(package_type: str, start: Optional[date] = None) -> date:
    """
    Estimated delivery date for a package type.

    Express/premium types take 2 business days, everything else 5.
    Sundays are not business days.
    """
    if start is None:
        start = date.today()
    if isinstance(start, datetime):
        start = start.date()

    kind = (package_type or '').lower()
    days_to_add = (
        EXPRESS_BUSINESS_DAYS if any(k in kind for k in EXPRESS_KEYWORDS)
        else STANDARD_BUSINESS_DAYS
    )

    current = start
    counted = 0
    while counted < days_to_add:
        current += timedelta(days=1)
        if current.weekday() != 6:
            counted += 1
    return current


def format_estimated_date(value: date) -> str:
    """e.g. 'Tue, 14 Oct'"""
    return f"{value.strftime('%a')}, {value.day} {value.strftime('%b')}"


def build_timeline(shipment) -> List[dict]:
    """
    Tracking history, newest first.

    Shipments booked before creation events were recorded get an
    implicit "Order Placed" entry from their creation time.
    """
    events = list(shipment.tracking_events.all())
    timeline = [
        {
            'status': e.status,
            'location': e.location,
            'description': e.description,
            'timestamp': e.timestamp,
        }
        for e in events
    ]

    if not any(e.status == ORDER_PLACED for e in events):
        timeline.append({
            'status': ORDER_PLACED,
            'location': shipment.sender_city or 'Online Booking',
            'description': 'Order Placed',
            'timestamp': shipment.created_at,
        })

    timeline.sort(key=lambda item: item['timestamp'], reverse=True)
    return timeline
