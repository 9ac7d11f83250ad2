"""
Core App Views - Accounts API

Handles: current user context, profile settings, signups, admin-created
drivers and partners, password reset, customer/seller/staff directories.
"""

from django.contrib.auth import get_user_model
from django.db.models import Count, Q
from rest_framework import viewsets, status, permissions, mixins, filters
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.views import APIView

from .models import Profile, Staff
from .permissions import IsAdmin
from .serializers import (
    UserSerializer, ProfileSerializer, SignupSerializer, PartnerSerializer,
    DriverCreateSerializer, PasswordResetSerializer, StaffSerializer,
    DirectoryEntrySerializer,
)
from .services import AccountService

User = get_user_model()


class UserViewSet(viewsets.ReadOnlyModelViewSet):
    """
    ViewSet for User model.

    - List/Retrieve: Admin only
    - me: any authenticated account
    """

    queryset = User.objects.all()
    serializer_class = UserSerializer
    permission_classes = [IsAdmin]

    @action(detail=False, methods=['get'], permission_classes=[permissions.IsAuthenticated])
    def me(self, request):
        """Current user with role, landing area and profile."""
        return Response(self.get_serializer(request.user).data)


class ProfileView(APIView):
    """GET/PATCH the caller's profile (created on first access)."""

    permission_classes = [permissions.IsAuthenticated]

    def _get_profile(self, user):
        profile, _ = Profile.objects.get_or_create(
            user=user,
            defaults={'full_name': user.full_name, 'email': user.email, 'phone': user.phone},
        )
        return profile

    def get(self, request):
        return Response(ProfileSerializer(self._get_profile(request.user)).data)

    def patch(self, request):
        profile = self._get_profile(request.user)
        serializer = ProfileSerializer(profile, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        # Only sellers carry a business identity
        if not request.user.is_seller:
            serializer.validated_data.pop('business_name', None)
            serializer.validated_data.pop('gst_number', None)

        serializer.save()
        return Response(serializer.data)


# ===========================================
# SIGNUP (public)
# ===========================================

class SignupView(APIView):
    permission_classes = [permissions.AllowAny]

    def post(self, request):
        serializer = SignupSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            user = AccountService.signup_customer(**serializer.validated_data)
        except ValueError as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(UserSerializer(user).data, status=status.HTTP_201_CREATED)


class PartnerSignupView(APIView):
    permission_classes = [permissions.AllowAny]

    def post(self, request):
        serializer = PartnerSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            user = AccountService.create_partner(**serializer.validated_data)
        except ValueError as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(UserSerializer(user).data, status=status.HTTP_201_CREATED)


# ===========================================
# ADMIN ACCOUNT OPERATIONS
# ===========================================

class CreateDriverView(APIView):
    """Admin: create a driver login together with its staff record."""

    permission_classes = [IsAdmin]

    def post(self, request):
        serializer = DriverCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            staff = AccountService.create_driver(**serializer.validated_data)
        except ValueError as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(
            {'success': True, 'staff': StaffSerializer(staff).data},
            status=status.HTTP_201_CREATED
        )


class CreatePartnerView(APIView):
    """Admin: create a seller account with its business profile."""

    permission_classes = [IsAdmin]

    def post(self, request):
        serializer = PartnerSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            user = AccountService.create_partner(**serializer.validated_data)
        except ValueError as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(
            {'success': True, 'user': UserSerializer(user).data},
            status=status.HTTP_201_CREATED
        )


class ResetPasswordView(APIView):
    """Admin: set a new password for any account."""

    permission_classes = [IsAdmin]

    def post(self, request):
        serializer = PasswordResetSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        try:
            AccountService.reset_password(
                serializer.validated_data['userId'],
                serializer.validated_data['newPassword'],
            )
        except ValueError as e:
            return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)
        return Response({'success': True})


# ===========================================
# ADMIN DIRECTORIES
# ===========================================

class CustomerDirectoryViewSet(viewsets.ReadOnlyModelViewSet):
    """Profiles without a business identity."""

    serializer_class = DirectoryEntrySerializer
    permission_classes = [IsAdmin]
    filter_backends = [filters.SearchFilter]
    search_fields = ['full_name', 'email', 'phone']
    lookup_field = 'user_id'

    def get_queryset(self):
        return (
            Profile.objects.filter(business_name__isnull=True)
            .select_related('user')
            .annotate(shipment_count=Count('user__shipments'))
            .order_by('-user__date_joined')
        )


class SellerDirectoryViewSet(viewsets.ReadOnlyModelViewSet):
    """Profiles carrying a business identity."""

    serializer_class = DirectoryEntrySerializer
    permission_classes = [IsAdmin]
    filter_backends = [filters.SearchFilter]
    search_fields = ['business_name', 'full_name', 'email', 'phone']
    lookup_field = 'user_id'

    def get_queryset(self):
        return (
            Profile.objects.filter(business_name__isnull=False)
            .select_related('user')
            .annotate(shipment_count=Count('user__shipments'))
            .order_by('-user__date_joined')
        )


class StaffViewSet(mixins.ListModelMixin,
                   mixins.RetrieveModelMixin,
                   mixins.UpdateModelMixin,
                   mixins.DestroyModelMixin,
                   viewsets.GenericViewSet):
    """
    Admin staff directory.

    DELETE deactivates the staff record and its login; assigned shipments
    keep their reference.
    """

    serializer_class = StaffSerializer
    permission_classes = [IsAdmin]
    http_method_names = ['get', 'patch', 'delete', 'head', 'options']

    def get_queryset(self):
        queryset = Staff.objects.select_related('user')
        search = self.request.query_params.get('search')
        if search:
            queryset = queryset.filter(
                Q(name__icontains=search) | Q(email__icontains=search) | Q(phone__icontains=search)
            )
        status_filter = self.request.query_params.get('status')
        if status_filter:
            queryset = queryset.filter(status__iexact=status_filter)
        return queryset

    def perform_destroy(self, instance):
        AccountService.deactivate_staff(instance)
