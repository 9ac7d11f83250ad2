"""
LOGISTICS App - WebSocket Consumers for Real-time Tracking

Provides real-time updates for:
- Shipment tracking / detail pages (anyone holding the AWB)
- The admin shipment table (admins only)
"""

import logging
from typing import Any, Dict, Optional
from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncJsonWebsocketConsumer

from .events import ADMIN_SHIPMENTS_GROUP, shipment_group_name

logger = logging.getLogger(__name__)


class ShipmentTrackingConsumer(AsyncJsonWebsocketConsumer):
    """
    WebSocket consumer for one shipment.

    Clients connect to: ws://host/ws/shipments/<awb>/

    Events received:
    - shipment_status_update: a status change committed for this AWB
    """

    async def connect(self):
        self.awb_code = self.scope['url_route']['kwargs']['awb'].upper()
        self.room_group_name = shipment_group_name(self.awb_code)

        shipment = await self.get_shipment()
        if not shipment:
            await self.close(code=4004)
            return

        await self.channel_layer.group_add(self.room_group_name, self.channel_name)
        await self.accept()

        await self.send_json({
            'type': 'connection_established',
            'awb_code': self.awb_code,
            'status': shipment['status'],
        })
        logger.info(f"[WS] Client connected to shipment {self.awb_code}")

    async def disconnect(self, close_code):
        if hasattr(self, 'room_group_name'):
            await self.channel_layer.group_discard(self.room_group_name, self.channel_name)

    async def receive_json(self, content):
        if content.get('type') == 'ping':
            await self.send_json({'type': 'pong'})

    # ============================================
    # Event Handlers (called via channel_layer.group_send)
    # ============================================

    async def shipment_status_update(self, event):
        await self.send_json({
            'type': 'status_update',
            'awb_code': event['awb_code'],
            'status': event['status'],
            'location': event.get('location', ''),
            'description': event.get('description', ''),
            'timestamp': event['timestamp'],
        })

    # ============================================
    # Database helpers
    # ============================================

    @database_sync_to_async
    def get_shipment(self) -> Optional[Dict[str, Any]]:
        from logistics.models import Shipment

        shipment = Shipment.objects.filter(awb_code=self.awb_code).only('current_status').first()
        if shipment is None:
            return None
        return {'status': shipment.current_status}


class AdminShipmentsConsumer(AsyncJsonWebsocketConsumer):
    """
    Admin shipment table feed.

    Clients connect to: ws://host/ws/admin/shipments/

    Every message is a signal to refetch the table; no incremental merge.
    """

    async def connect(self):
        user = self.scope.get('user')
        if not user or not user.is_authenticated or not await self.is_admin(user):
            await self.close(code=4003)
            return

        await self.channel_layer.group_add(ADMIN_SHIPMENTS_GROUP, self.channel_name)
        await self.accept()
        await self.send_json({'type': 'connection_established'})

    async def disconnect(self, close_code):
        await self.channel_layer.group_discard(ADMIN_SHIPMENTS_GROUP, self.channel_name)

    async def receive_json(self, content):
        if content.get('type') == 'ping':
            await self.send_json({'type': 'pong'})

    async def shipment_status_update(self, event):
        await self.send_json({
            'type': 'refetch',
            'awb_code': event['awb_code'],
            'status': event['status'],
            'deleted': event.get('deleted', False),
            'timestamp': event['timestamp'],
        })

    @database_sync_to_async
    def is_admin(self, user) -> bool:
        from core.models import UserRole
        return user.role == UserRole.ADMIN
