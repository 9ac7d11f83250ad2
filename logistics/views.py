"""
Logistics App Views - Shipments, Tracking & Bulk API

Every status change goes through logistics.services.lifecycle; views only
resolve the caller, pick the operation and translate its errors.
"""

import logging

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError as DjangoValidationError
from django.http import Http404
from django.shortcuts import get_object_or_404, render
from django_filters.rest_framework import DjangoFilterBackend
from rest_framework import viewsets, status, permissions, mixins
from rest_framework.decorators import action
from rest_framework.parsers import MultiPartParser, FormParser, JSONParser
from rest_framework.response import Response
from rest_framework.views import APIView

from core.models import Staff, UserRole
from core.permissions import IsAdmin, IsAdminOrDriver, IsDriver, IsAdminOrSeller
from .filters import ShipmentFilter
from .models import Shipment, ShipmentStatus, PODImage, PackageType
from .serializers import (
    ShipmentSerializer, ShipmentListSerializer, ShipmentCreateSerializer,
    PackageTypeSerializer, PODImageSerializer, PublicTrackingSerializer,
    LocationSerializer, FailSerializer, StatusOverrideSerializer,
    AssignDriverSerializer, BulkSyncSerializer, BulkCreateSerializer,
)
from .services import lifecycle, bulk
from .services.awb import generate_awb, generate_professional_awb, normalize_awb
from .services.lifecycle import (
    ShipmentDraft, ShipmentTransitionError, ShipmentValidationError,
)
from .utils import build_timeline

logger = logging.getLogger(__name__)

User = get_user_model()

DRIVER_COMPLETED_STATUSES = (
    ShipmentStatus.DELIVERED,
    ShipmentStatus.UNDELIVERED,
    ShipmentStatus.DELIVERY_FAILED,
    ShipmentStatus.PICKUP_FAILED,
    ShipmentStatus.RTO_DELIVERED,
    ShipmentStatus.CANCELLED,
)


def lifecycle_error_response(error: ValueError) -> Response:
    """409 for lifecycle violations, 400 for bad input."""
    if isinstance(error, ShipmentTransitionError):
        return Response({'error': str(error)}, status=status.HTTP_409_CONFLICT)
    return Response({'error': str(error)}, status=status.HTTP_400_BAD_REQUEST)


def get_staff_for(user):
    return Staff.objects.filter(user=user).first() if user.is_authenticated else None


def visible_shipments(user):
    """Admins see everything; drivers their assignments and own bookings; others own bookings."""
    queryset = Shipment.objects.select_related('delivery_boy')
    if user.role == UserRole.ADMIN:
        return queryset
    staff = get_staff_for(user)
    if staff:
        return queryset.filter(delivery_boy=staff) | queryset.filter(user=user)
    return queryset.filter(user=user)


class ShipmentViewSet(mixins.ListModelMixin,
                      mixins.RetrieveModelMixin,
                      mixins.DestroyModelMixin,
                      viewsets.GenericViewSet):
    """
    ViewSet for Shipment management.

    Scope:
    - Admin: every shipment
    - Driver: assigned shipments (plus own bookings)
    - Seller / customer: own bookings
    """

    lookup_field = 'awb_code'
    lookup_value_regex = '[A-Za-z0-9]+'
    permission_classes = [permissions.IsAuthenticated]
    filter_backends = [DjangoFilterBackend]
    filterset_class = ShipmentFilter
    parser_classes = [JSONParser, MultiPartParser, FormParser]

    def get_queryset(self):
        return visible_shipments(self.request.user)

    def get_serializer_class(self):
        if self.action == 'list':
            return ShipmentListSerializer
        return ShipmentSerializer

    def get_object(self):
        awb = normalize_awb(self.kwargs[self.lookup_field])
        shipment = get_object_or_404(self.get_queryset(), awb_code=awb)
        self.check_object_permissions(self.request, shipment)
        return shipment

    def _detail(self, shipment, status_code=status.HTTP_200_OK):
        shipment.refresh_from_db()
        serializer = ShipmentSerializer(shipment, context=self.get_serializer_context())
        return Response(serializer.data, status=status_code)

    def _driver_shipment(self):
        """Drivers may only act on shipments assigned to them."""
        shipment = self.get_object()
        user = self.request.user
        if user.role != UserRole.ADMIN:
            staff = get_staff_for(user)
            if staff is None or shipment.delivery_boy_id != staff.id:
                raise Http404
        return shipment

    # ==========================================
    # BOOKING
    # ==========================================

    def create(self, request):
        """Book a shipment for the caller (admins may book for any account)."""
        serializer = ShipmentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)

        owner = request.user
        target_user_id = data.pop('user_id', None)
        if target_user_id:
            if request.user.role != UserRole.ADMIN:
                return Response(
                    {'error': 'Only admins can book on behalf of another account.'},
                    status=status.HTTP_403_FORBIDDEN
                )
            owner = get_object_or_404(User, pk=target_user_id)

        # Self-service bookings get the check-digit AWB format
        generator = generate_awb if request.user.role == UserRole.ADMIN else generate_professional_awb

        try:
            draft = ShipmentDraft.from_dict(data)
            shipment = lifecycle.book_shipment(draft, owner, awb_generator=generator)
        except ValueError as e:
            return lifecycle_error_response(e)

        return self._detail(shipment, status.HTTP_201_CREATED)

    def destroy(self, request, awb_code=None):
        """Admin hard delete, cancelled shipments only."""
        if request.user.role != UserRole.ADMIN:
            return Response({'error': 'Admin access required.'}, status=status.HTTP_403_FORBIDDEN)
        shipment = self.get_object()
        try:
            lifecycle.delete_cancelled(shipment)
        except ValueError as e:
            return lifecycle_error_response(e)
        return Response(status=status.HTTP_204_NO_CONTENT)

    # ==========================================
    # DRIVER / ADMIN TRANSITIONS
    # ==========================================

    @action(detail=True, methods=['post'], permission_classes=[IsAdminOrDriver])
    def pickup(self, request, awb_code=None):
        shipment = self._driver_shipment()
        serializer = LocationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            shipment = lifecycle.pickup(shipment, serializer.validated_data['location'])
        except ValueError as e:
            return lifecycle_error_response(e)
        return self._detail(shipment)

    @action(detail=True, methods=['post'], permission_classes=[IsAdminOrDriver])
    def transit(self, request, awb_code=None):
        shipment = self._driver_shipment()
        serializer = LocationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            shipment = lifecycle.mark_in_transit(
                shipment,
                serializer.validated_data['location'],
                by_admin=request.user.role == UserRole.ADMIN,
            )
        except ValueError as e:
            return lifecycle_error_response(e)
        return self._detail(shipment)

    @action(detail=True, methods=['post'], url_path='start-delivery',
            permission_classes=[IsAdminOrDriver])
    def start_delivery(self, request, awb_code=None):
        shipment = self._driver_shipment()
        serializer = LocationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            shipment = lifecycle.start_delivery(shipment, serializer.validated_data['location'])
        except ValueError as e:
            return lifecycle_error_response(e)
        return self._detail(shipment)

    @action(detail=True, methods=['post'], permission_classes=[IsAdminOrDriver])
    def deliver(self, request, awb_code=None):
        """Multipart: location + one to four `photos`."""
        shipment = self._driver_shipment()
        try:
            shipment = lifecycle.deliver(
                shipment,
                request.data.get('location', ''),
                request.FILES.getlist('photos'),
            )
        except ValueError as e:
            return lifecycle_error_response(e)
        return self._detail(shipment)

    @action(detail=True, methods=['post'], permission_classes=[IsAdminOrDriver])
    def fail(self, request, awb_code=None):
        shipment = self._driver_shipment()
        serializer = FailSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            shipment = lifecycle.fail_delivery(
                shipment,
                serializer.validated_data['location'],
                serializer.validated_data['reason'],
                serializer.validated_data['status'],
            )
        except ValueError as e:
            return lifecycle_error_response(e)
        return self._detail(shipment)

    # ==========================================
    # ADMIN OPERATIONS
    # ==========================================

    @action(detail=True, methods=['post'], url_path='status', permission_classes=[IsAdmin])
    def override_status(self, request, awb_code=None):
        """Set any status, optionally backdated."""
        shipment = self.get_object()
        serializer = StatusOverrideSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        try:
            shipment = lifecycle.override_status(
                shipment,
                data['status'],
                location=data['location'],
                reason=data.get('reason'),
                timestamp=data.get('timestamp'),
            )
        except ValueError as e:
            return lifecycle_error_response(e)
        return self._detail(shipment)

    @action(detail=True, methods=['post'], permission_classes=[IsAdmin])
    def assign(self, request, awb_code=None):
        shipment = self.get_object()
        serializer = AssignDriverSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        staff = None
        staff_id = serializer.validated_data['staff_id']
        if staff_id:
            try:
                staff = Staff.objects.get(pk=staff_id)
            except Staff.DoesNotExist:
                return Response({'error': 'Staff member not found.'}, status=status.HTTP_404_NOT_FOUND)

        try:
            shipment = lifecycle.assign_driver(shipment, staff)
        except ValueError as e:
            return lifecycle_error_response(e)
        return self._detail(shipment)

    @action(detail=True, methods=['post'])
    def cancel(self, request, awb_code=None):
        """Owner cancellation before pickup."""
        shipment = self.get_object()
        if shipment.user_id != request.user.pk and request.user.role != UserRole.ADMIN:
            return Response(
                {'error': 'Only the booking account can cancel this shipment.'},
                status=status.HTTP_403_FORBIDDEN
            )
        try:
            shipment = lifecycle.cancel(shipment)
        except ValueError as e:
            return lifecycle_error_response(e)
        return self._detail(shipment)

    @action(detail=True, methods=['post'], url_path='pod', permission_classes=[IsAdmin])
    def upload_pod(self, request, awb_code=None):
        """Admin POD upload; marks the shipment delivered."""
        shipment = self.get_object()
        try:
            shipment, stored, skipped = lifecycle.attach_pod_images(
                shipment,
                request.FILES.getlist('photos') or request.FILES.getlist('files'),
                location=request.data.get('location') or lifecycle.ADMIN_POD_LOCATION,
            )
        except ValueError as e:
            return lifecycle_error_response(e)

        return Response({
            'uploaded': PODImageSerializer(stored, many=True, context={'request': request}).data,
            'skipped': skipped,
            'current_status': shipment.current_status,
        }, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['delete'], url_path=r'pod/(?P<pod_id>[0-9a-f-]+)',
            permission_classes=[IsAdmin])
    def delete_pod(self, request, awb_code=None, pod_id=None):
        shipment = self.get_object()
        try:
            pod = PODImage.objects.get(pk=pod_id, shipment=shipment)
        except (PODImage.DoesNotExist, DjangoValidationError):
            return Response({'error': 'Image not found.'}, status=status.HTTP_404_NOT_FOUND)
        lifecycle.delete_pod_image(pod)
        return Response(status=status.HTTP_204_NO_CONTENT)

    # ==========================================
    # BULK
    # ==========================================

    @action(detail=False, methods=['post'], url_path='bulk', permission_classes=[IsAdminOrSeller],
            parser_classes=[MultiPartParser, FormParser])
    def bulk_create(self, request):
        """
        Spreadsheet booking: one shipment per row.

        Sellers book for themselves; admins pass userId.
        """
        serializer = BulkCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        owner = request.user
        user_id = serializer.validated_data.get('userId')
        if user_id and user_id != request.user.pk:
            if request.user.role != UserRole.ADMIN:
                return Response(
                    {'error': 'Sellers can only upload shipments for their own account.'},
                    status=status.HTTP_403_FORBIDDEN
                )
            owner = get_object_or_404(User, pk=user_id)

        try:
            rows = bulk.read_rows(serializer.validated_data['file'])
        except ValueError as e:
            return lifecycle_error_response(e)
        if not rows:
            return Response({'error': 'Spreadsheet is empty.'}, status=status.HTTP_400_BAD_REQUEST)

        result = bulk.bulk_create_shipments(rows, owner)
        if not result['shipments']:
            return Response(
                {'error': 'No valid rows found. Check column headers.', 'errors': result['errors']},
                status=status.HTTP_400_BAD_REQUEST
            )

        return Response({
            'shipments': ShipmentListSerializer(result['shipments'], many=True).data,
            'errors': result['errors'],
            'count': len(result['shipments']),
        }, status=status.HTTP_201_CREATED)


class BulkStatusSyncView(APIView):
    """
    Admin column sync.

    POST multipart: file, targetColumn, refColumn (default AWB),
    valueColumn (default Value).
    """

    permission_classes = [IsAdmin]
    parser_classes = [MultiPartParser, FormParser]

    def post(self, request):
        data = {key: request.data.get(key) for key in request.data}
        # Older clients send the column names under these keys
        for legacy, current in (('targetDbColumn', 'targetColumn'),
                                ('excelRefCol', 'refColumn'),
                                ('excelValCol', 'valueColumn')):
            if legacy in data and current not in data:
                data[current] = data.pop(legacy)

        serializer = BulkSyncSerializer(data=data)
        if not serializer.is_valid():
            return Response({'error': 'Missing configuration or file'}, status=status.HTTP_400_BAD_REQUEST)
        params = serializer.validated_data

        if params['targetColumn'] not in bulk.SYNC_COLUMNS:
            return Response(
                {'error': f"Column '{params['targetColumn']}' cannot be bulk updated"},
                status=status.HTTP_400_BAD_REQUEST
            )

        try:
            rows = bulk.read_rows(params['file'])
            results = bulk.bulk_sync_column(
                rows, params['targetColumn'], params['refColumn'], params['valueColumn']
            )
        except ValueError as e:
            return lifecycle_error_response(e)

        return Response({'results': results})


class DriverTaskView(APIView):
    """Driver task list. ?tab=pending (default) or completed."""

    permission_classes = [IsDriver]

    def get(self, request):
        staff = get_staff_for(request.user)
        queryset = Shipment.objects.filter(delivery_boy=staff).order_by('-created_at')

        tab = request.query_params.get('tab', 'pending')
        if tab == 'completed':
            queryset = queryset.filter(current_status__in=DRIVER_COMPLETED_STATUSES)
        else:
            queryset = queryset.exclude(current_status__in=DRIVER_COMPLETED_STATUSES)

        return Response({
            'driver': {'id': str(staff.id), 'name': staff.name},
            'tab': 'completed' if tab == 'completed' else 'pending',
            'tasks': ShipmentListSerializer(queryset, many=True).data,
        })


class PackageTypeViewSet(viewsets.ModelViewSet):
    """Pricing config: readable by anyone, editable by admins."""

    queryset = PackageType.objects.all()
    serializer_class = PackageTypeSerializer
    pagination_class = None

    def get_permissions(self):
        if self.action in ('list', 'retrieve'):
            return [permissions.AllowAny()]
        return [IsAdmin()]


# ==========================================
# PUBLIC TRACKING
# ==========================================

class PublicTrackingView(APIView):
    """Anonymous tracking by AWB (case-insensitive)."""

    permission_classes = [permissions.AllowAny]
    authentication_classes = []

    def get(self, request, awb):
        try:
            shipment = Shipment.objects.prefetch_related('tracking_events', 'pod_images').get(
                awb_code=normalize_awb(awb)
            )
        except Shipment.DoesNotExist:
            return Response({'error': 'Shipment not found'}, status=status.HTTP_404_NOT_FOUND)

        return Response(PublicTrackingSerializer(shipment, context={'request': request}).data)


def tracking_page(request, awb):
    """HTML tracking page."""
    shipment = (
        Shipment.objects.prefetch_related('tracking_events', 'pod_images')
        .filter(awb_code=normalize_awb(awb))
        .first()
    )
    context = {'awb': normalize_awb(awb), 'shipment': shipment}
    if shipment:
        data = PublicTrackingSerializer(shipment, context={'request': request}).data
        context.update({
            'estimated_delivery': data['estimated_delivery'],
            'timeline': build_timeline(shipment),
            'pod_images': data['pod_images'],
        })
    return render(request, 'logistics/tracking.html', context, status=200 if shipment else 404)
