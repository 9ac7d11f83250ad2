"""
LOGISTICS App - WebSocket Routing Configuration

Maps WebSocket URLs to consumers for real-time shipment updates.
"""

from django.urls import re_path
from . import consumers


websocket_urlpatterns = [
    # Track one shipment
    # ws://localhost:8000/ws/shipments/<awb>/
    re_path(
        r'ws/shipments/(?P<awb>[A-Za-z0-9]+)/$',
        consumers.ShipmentTrackingConsumer.as_asgi()
    ),

    # Admin shipment table
    # ws://localhost:8000/ws/admin/shipments/
    re_path(
        r'ws/admin/shipments/$',
        consumers.AdminShipmentsConsumer.as_asgi()
    ),
]
