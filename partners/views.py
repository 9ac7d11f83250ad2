"""
Partners App Views - Seller API Keys & Partner Shipment API

Key management is session/JWT authenticated (seller portal, admin
console). The /api/v1/ endpoints authenticate with the seller's API key
and log every call.
"""
import logging

from django.conf import settings
from django.contrib.auth import get_user_model
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.parsers import MultiPartParser, FormParser
from rest_framework.response import Response
from rest_framework.views import APIView

from core.models import UserRole
from core.permissions import IsAdmin, IsSeller
from logistics.models import Shipment
from logistics.services import bulk
from logistics.services.awb import normalize_awb
from logistics.services.lifecycle import ShipmentValidationError

from .models import SellerAPIKey
from .permissions import SellerAPIKeyAuthentication, HasSellerAPIKey
from .services import PartnerAPIService

logger = logging.getLogger(__name__)

User = get_user_model()


def key_details(api_key):
    if api_key is None:
        return {'has_key': False}
    return {
        'has_key': True,
        'prefix': api_key.prefix,
        'masked_key': api_key.masked,
        'created': api_key.created,
        'usage_count': api_key.usage_count,
        'last_used_at': api_key.last_used_at,
    }


# ==========================================
# KEY MANAGEMENT
# ==========================================

class SellerAPIKeyView(APIView):
    """
    GET: current key (masked). POST: regenerate.

    The raw key is returned once, on regeneration.
    """

    permission_classes = [IsSeller]

    def get(self, request):
        api_key = SellerAPIKey.objects.filter(seller=request.user).first()
        return Response(key_details(api_key))

    def post(self, request):
        try:
            api_key, raw_key = PartnerAPIService.issue_key(request.user)
        except ValueError as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response({'api_key': raw_key, **key_details(api_key)}, status=status.HTTP_201_CREATED)


class AdminSellerAPIKeyView(APIView):
    """Admin issues (or re-issues) a seller's key."""

    permission_classes = [IsAdmin]

    def get(self, request, user_id):
        seller = get_object_or_404(User, pk=user_id, role=UserRole.SELLER)
        return Response(key_details(SellerAPIKey.objects.filter(seller=seller).first()))

    def post(self, request, user_id):
        seller = get_object_or_404(User, pk=user_id, role=UserRole.SELLER)
        api_key, raw_key = PartnerAPIService.issue_key(seller)
        logger.info(f"[PARTNER API] Admin {request.user.email} issued key for {seller.email}")
        return Response({'api_key': raw_key, **key_details(api_key)}, status=status.HTTP_201_CREATED)


# ==========================================
# PARTNER API (API key)
# ==========================================

class PartnerAPIView(APIView):
    """
    Base for API-key endpoints.

    Every authenticated call is written to ApiRequestLog and counted
    against the key, whatever its outcome.
    """

    authentication_classes = [SellerAPIKeyAuthentication]
    permission_classes = [HasSellerAPIKey]
    endpoint = ''

    def log_request_body(self, request):
        return dict(request.query_params.items())

    def log_response_body(self, response):
        data = response.data if isinstance(response.data, dict) else {}
        if response.status_code >= 400:
            return {'success': False, 'error': data.get('error') or data.get('detail') or data}
        return {'success': True}

    def finalize_response(self, request, response, *args, **kwargs):
        response = super().finalize_response(request, response, *args, **kwargs)
        api_key = getattr(request, 'auth', None)
        if isinstance(api_key, SellerAPIKey):
            PartnerAPIService.record_call(
                api_key,
                endpoint=self.endpoint or request.path,
                method=request.method,
                status_code=response.status_code,
                request_body=self.log_request_body(request),
                response_body=self.log_response_body(response),
            )
        return response


class ShipmentCreateAPIView(PartnerAPIView):
    """
    POST /api/v1/shipment/create

    Body: one shipment object or a list of them. All-or-nothing.
    """

    endpoint = '/api/v1/shipment/create'

    def log_request_body(self, request):
        items = request.data if isinstance(request.data, list) else [request.data]
        return {'count': len(items), 'sample': items[0] if items else None}

    def log_response_body(self, response):
        body = super().log_response_body(response)
        if response.status_code < 400:
            body['count'] = len(response.data['data'])
        return body

    def post(self, request):
        items = request.data if isinstance(request.data, list) else [request.data]
        if not items or items == [{}]:
            return Response({'success': False, 'error': 'No shipment data provided'},
                            status=status.HTTP_400_BAD_REQUEST)

        try:
            shipments = PartnerAPIService.book(items, request.partner)
        except ShipmentValidationError as e:
            return Response({'success': False, 'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

        data = [PartnerAPIService.booking_summary(s) for s in shipments]
        return Response({
            'success': True,
            'message': f"{len(data)} Shipment(s) booked successfully",
            'data': data,
        }, status=status.HTTP_201_CREATED)


class ShipmentTrackAPIView(PartnerAPIView):
    """GET /api/v1/shipment/track?awb=<AWB> (own shipments only)"""

    endpoint = '/api/v1/shipment/track'

    def get(self, request):
        awb = request.query_params.get('awb')
        if not awb:
            return Response({'success': False, 'error': 'Missing "awb" query parameter'},
                            status=status.HTTP_400_BAD_REQUEST)

        shipment = (
            Shipment.objects.prefetch_related('tracking_events')
            .filter(awb_code=normalize_awb(awb), user=request.partner)
            .first()
        )
        if shipment is None:
            return Response({'success': False, 'error': 'Shipment not found or access denied'},
                            status=status.HTTP_404_NOT_FOUND)

        return Response({'success': True, 'data': PartnerAPIService.tracking_payload(shipment)})


class BulkTrackAPIView(PartnerAPIView):
    """POST /api/v1/shipment/track/bulk  {"awbs": [...]}"""

    endpoint = '/api/v1/shipment/track/bulk'

    def log_request_body(self, request):
        awbs = request.data.get('awbs') if isinstance(request.data, dict) else None
        return {'count': len(awbs) if isinstance(awbs, list) else 0}

    def log_response_body(self, response):
        body = super().log_response_body(response)
        if response.status_code < 400:
            body['found'] = response.data['total_found']
        return body

    def post(self, request):
        awbs = request.data.get('awbs') if isinstance(request.data, dict) else None
        if not isinstance(awbs, list) or not awbs:
            return Response({'success': False, 'error': 'Please provide an array of "awbs"'},
                            status=status.HTTP_400_BAD_REQUEST)

        limit = settings.BULK_TRACK_LIMIT
        if len(awbs) > limit:
            return Response({'success': False, 'error': f'Maximum {limit} AWBs allowed per request'},
                            status=status.HTTP_400_BAD_REQUEST)

        codes = {normalize_awb(a) for a in awbs}
        shipments = (
            Shipment.objects.prefetch_related('tracking_events')
            .filter(user=request.partner, awb_code__in=codes)
        )
        results = [PartnerAPIService.tracking_payload(s) for s in shipments]

        return Response({
            'success': True,
            'total_requested': len(awbs),
            'total_found': len(results),
            'data': results,
        })


class ShipmentBulkAPIView(PartnerAPIView):
    """
    POST /api/v1/shipment/bulk

    Multipart `file` (.xlsx or .csv) using the bulk booking template.
    Rows are independent; bad rows come back in `errors`.
    """

    endpoint = '/api/v1/shipment/bulk'
    parser_classes = [MultiPartParser, FormParser]

    def log_request_body(self, request):
        upload = request.FILES.get('file')
        return {'file': upload.name if upload else None}

    def log_response_body(self, response):
        body = super().log_response_body(response)
        if response.status_code < 400:
            body['count'] = response.data['count']
        return body

    def post(self, request):
        upload = request.FILES.get('file')
        if not upload:
            return Response({'success': False, 'error': 'Missing file'}, status=status.HTTP_400_BAD_REQUEST)

        try:
            rows = bulk.read_rows(upload)
        except ShipmentValidationError as e:
            return Response({'success': False, 'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        if not rows:
            return Response({'success': False, 'error': 'File is empty'}, status=status.HTTP_400_BAD_REQUEST)

        result = bulk.bulk_create_shipments(rows, request.partner)
        if not result['shipments']:
            return Response({'success': False, 'error': 'No valid rows found.', 'errors': result['errors']},
                            status=status.HTTP_400_BAD_REQUEST)

        return Response({
            'success': True,
            'message': 'Upload Successful',
            'count': len(result['shipments']),
            'shipments': [PartnerAPIService.booking_summary(s) for s in result['shipments']],
            'errors': result['errors'],
        }, status=status.HTTP_201_CREATED)
