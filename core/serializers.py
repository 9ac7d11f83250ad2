"""
Core App Serializers - Accounts, Profiles, Staff
"""

from rest_framework import serializers
from django.contrib.auth import get_user_model
from django.contrib.auth.password_validation import validate_password

from .models import Profile, Staff, StaffStatus

User = get_user_model()


class ProfileSerializer(serializers.ModelSerializer):
    """Profile settings (contact + business info)."""

    is_seller_profile = serializers.ReadOnlyField()

    class Meta:
        model = Profile
        fields = [
            'full_name', 'email', 'phone', 'address', 'city', 'state',
            'pincode', 'business_name', 'gst_number', 'logo',
            'is_seller_profile', 'updated_at'
        ]
        read_only_fields = ['updated_at']


class UserSerializer(serializers.ModelSerializer):
    """
    Current-user context: identity, role, landing area and profile.

    Clients call /api/users/me/ once after login instead of re-deriving
    the session on every page.
    """

    is_driver = serializers.ReadOnlyField()
    home_area = serializers.ReadOnlyField()
    profile = ProfileSerializer(read_only=True)
    staff_id = serializers.SerializerMethodField()

    class Meta:
        model = User
        fields = [
            'id', 'email', 'full_name', 'phone', 'role',
            'is_driver', 'home_area', 'staff_id', 'profile',
            'is_active', 'date_joined'
        ]
        read_only_fields = ['id', 'email', 'role', 'date_joined']

    def get_staff_id(self, obj):
        staff = Staff.objects.filter(user=obj).only('id').first()
        return str(staff.id) if staff else None


class SignupSerializer(serializers.Serializer):
    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, validators=[validate_password])
    full_name = serializers.CharField(max_length=150, required=False, allow_blank=True)
    phone = serializers.CharField(max_length=20, required=False, allow_blank=True)


class PartnerSerializer(serializers.Serializer):
    """Seller account fields (self-signup and admin creation)."""

    email = serializers.EmailField()
    password = serializers.CharField(write_only=True, min_length=6)
    business_name = serializers.CharField(max_length=200)
    full_name = serializers.CharField(max_length=150, required=False, allow_blank=True)
    phone = serializers.CharField(max_length=20, required=False, allow_blank=True)
    gst_number = serializers.CharField(max_length=15, required=False, allow_blank=True)


class DriverCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=150)
    email = serializers.EmailField()
    phone = serializers.CharField(max_length=20, required=False, allow_blank=True)
    designation = serializers.CharField(max_length=100, required=False, allow_blank=True)
    password = serializers.CharField(write_only=True, min_length=6)


class PasswordResetSerializer(serializers.Serializer):
    userId = serializers.UUIDField()
    newPassword = serializers.CharField(write_only=True, min_length=6)


class StaffSerializer(serializers.ModelSerializer):
    """Driver / staff directory row."""

    user_id = serializers.UUIDField(source='user.id', read_only=True)
    is_active = serializers.ReadOnlyField()

    class Meta:
        model = Staff
        fields = [
            'id', 'user_id', 'name', 'email', 'phone', 'designation',
            'status', 'is_active', 'created_at'
        ]
        read_only_fields = ['id', 'email', 'created_at']

    def validate_status(self, value):
        if value not in StaffStatus.values:
            raise serializers.ValidationError(f"Unknown staff status '{value}'")
        return value


class DirectoryEntrySerializer(serializers.ModelSerializer):
    """Admin customer / seller directory row (profile + account id)."""

    id = serializers.UUIDField(source='user.id', read_only=True)
    role = serializers.CharField(source='user.role', read_only=True)
    date_joined = serializers.DateTimeField(source='user.date_joined', read_only=True)
    shipment_count = serializers.IntegerField(read_only=True, default=0)

    class Meta:
        model = Profile
        fields = [
            'id', 'role', 'full_name', 'email', 'phone', 'address', 'city',
            'state', 'pincode', 'business_name', 'gst_number',
            'shipment_count', 'date_joined'
        ]
