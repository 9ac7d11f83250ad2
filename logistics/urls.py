"""
Logistics App URLs (mounted under /api/)
"""

from django.urls import path, include
from rest_framework.routers import DefaultRouter

from .views import (
    ShipmentViewSet, PackageTypeViewSet,
    BulkStatusSyncView, DriverTaskView, PublicTrackingView,
)

router = DefaultRouter()
router.register(r'shipments', ShipmentViewSet, basename='shipment')
router.register(r'package-types', PackageTypeViewSet, basename='package-type')

urlpatterns = [
    # Admin bulk column sync
    path('admin/shipments/bulk-status/', BulkStatusSyncView.as_view(), name='bulk-status-sync'),

    # Driver task list
    path('driver/tasks/', DriverTaskView.as_view(), name='driver-tasks'),

    # Public tracking API
    path('track/<str:awb>/', PublicTrackingView.as_view(), name='public-tracking'),

    # Router URLs
    path('', include(router.urls)),
]
