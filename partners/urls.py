"""
Partners App URLs (mounted under /api/)
"""
from django.urls import path

from .views import (
    SellerAPIKeyView,
    AdminSellerAPIKeyView,
    ShipmentCreateAPIView,
    ShipmentTrackAPIView,
    BulkTrackAPIView,
    ShipmentBulkAPIView,
)

urlpatterns = [
    # Key management
    path('seller/api-key/', SellerAPIKeyView.as_view(), name='seller-api-key'),
    path('admin/sellers/<uuid:user_id>/api-key/', AdminSellerAPIKeyView.as_view(), name='admin-seller-api-key'),

    # Partner API (X-Api-Key)
    path('v1/shipment/create', ShipmentCreateAPIView.as_view(), name='partner-shipment-create'),
    path('v1/shipment/track', ShipmentTrackAPIView.as_view(), name='partner-shipment-track'),
    path('v1/shipment/track/bulk', BulkTrackAPIView.as_view(), name='partner-shipment-track-bulk'),
    path('v1/shipment/bulk', ShipmentBulkAPIView.as_view(), name='partner-shipment-bulk'),
]
