"""
UEX Logistics Main URL Configuration
"""

from django.contrib import admin
from django.urls import path, include
from django.conf import settings
from django.conf.urls.static import static
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from core.health import health_check, readiness_check
from logistics.views import tracking_page
from reports.views import label_view


# ===========================================
# ADMIN SITE CUSTOMIZATION
# ===========================================
admin.site.site_header = "UEX Logistics Control Tower"
admin.site.site_title = "UEX Admin"
admin.site.index_title = "Operations"


@api_view(['GET'])
@permission_classes([AllowAny])
def api_root(request):
    """API Root endpoint with available routes."""
    return Response({
        'name': 'UEX Logistics API',
        'version': '1.0.0',
        'endpoints': {
            'auth': {
                'token': '/api/auth/token/',
                'refresh': '/api/auth/token/refresh/',
                'signup': '/api/auth/signup/',
                'partner_signup': '/api/auth/partner-signup/',
            },
            'me': '/api/users/me/',
            'profile': '/api/profile/',
            'shipments': '/api/shipments/',
            'package_types': '/api/package-types/',
            'driver_tasks': '/api/driver/tasks/',
            'track': '/api/track/<awb>/',
            'seller': {
                'api_key': '/api/seller/api-key/',
                'invoices': '/api/seller/invoices/',
            },
            'partner_api': {
                'create': '/api/v1/shipment/create',
                'track': '/api/v1/shipment/track?awb=<awb>',
                'track_bulk': '/api/v1/shipment/track/bulk',
                'bulk': '/api/v1/shipment/bulk',
            },
            'docs': '/api/docs/',
        }
    })


urlpatterns = [
    # Admin
    path('admin/', admin.site.urls),

    # Monitoring
    path('health/', health_check, name='health'),
    path('health/ready/', readiness_check, name='health-ready'),

    # API Root
    path('api/', api_root, name='api-root'),

    # API Documentation
    path('api/schema/', SpectacularAPIView.as_view(), name='schema'),
    path('api/docs/', SpectacularSwaggerView.as_view(url_name='schema'), name='docs'),

    # App URLs
    path('api/', include('core.urls')),
    path('api/', include('logistics.urls')),
    path('api/', include('partners.urls')),
    path('api/', include('reports.urls')),

    # Public pages (no login required)
    path('track/<str:awb>/', tracking_page, name='tracking-page'),
    path('print/<str:awb>/', label_view, name='print-label'),
]

# Serve media files in development
if settings.DEBUG:
    urlpatterns += static(settings.MEDIA_URL, document_root=settings.MEDIA_ROOT)
