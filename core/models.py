"""
CORE App - Accounts for UEX Logistics

Handles: Users (Customers, Sellers, Admins), Profiles, Staff (Drivers)
"""

import uuid
from django.contrib.auth.models import AbstractBaseUser, BaseUserManager, PermissionsMixin
from django.core.validators import RegexValidator
from django.db import models


class UserRole(models.TextChoices):
    """User role enumeration (one role per account)."""
    ADMIN = 'admin', 'Administrator'
    SELLER = 'seller', 'Seller / B2B Partner'
    USER = 'user', 'Customer'


class StaffStatus(models.TextChoices):
    """Employment status of a staff member."""
    ACTIVE = 'Active', 'Active'
    INACTIVE = 'Inactive', 'Inactive'


class UserManager(BaseUserManager):
    """Custom user manager for email-based authentication."""

    def create_user(self, email, password=None, **extra_fields):
        if not email:
            raise ValueError('Email address is required')

        email = self.normalize_email(email)
        user = self.model(email=email, **extra_fields)
        if password:
            user.set_password(password)
        else:
            user.set_unusable_password()
        user.save(using=self._db)
        return user

    def create_superuser(self, email, password=None, **extra_fields):
        extra_fields.setdefault('is_staff', True)
        extra_fields.setdefault('is_superuser', True)
        extra_fields.setdefault('role', UserRole.ADMIN)

        if extra_fields.get('is_staff') is not True:
            raise ValueError('Superuser must have is_staff=True.')
        if extra_fields.get('is_superuser') is not True:
            raise ValueError('Superuser must have is_superuser=True.')

        return self.create_user(email, password, **extra_fields)


class User(AbstractBaseUser, PermissionsMixin):
    """
    Custom User model using email as primary identifier.

    Key Business Logic:
    - role is the authorization model: admin / seller / user
    - drivers are plain accounts that own a Staff record
    - home_area tells the client where to land after login
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    email = models.EmailField(unique=True, verbose_name="Email address")

    # Profile
    full_name = models.CharField(max_length=150, blank=True, verbose_name="Full name")
    phone = models.CharField(max_length=20, blank=True, verbose_name="Phone")
    role = models.CharField(
        max_length=20,
        choices=UserRole.choices,
        default=UserRole.USER,
        verbose_name="Role"
    )

    # Django Auth Fields
    is_active = models.BooleanField(default=True)
    is_staff = models.BooleanField(default=False)
    date_joined = models.DateTimeField(auto_now_add=True)

    objects = UserManager()

    USERNAME_FIELD = 'email'
    REQUIRED_FIELDS = []

    class Meta:
        verbose_name = "User"
        verbose_name_plural = "Users"
        ordering = ['-date_joined']

    def __str__(self):
        return f"{self.full_name or self.email} ({self.role})"

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_seller(self) -> bool:
        return self.role == UserRole.SELLER

    @property
    def is_driver(self) -> bool:
        """A driver is any account linked to a staff record."""
        return Staff.objects.filter(user_id=self.pk).exists()

    @property
    def home_area(self) -> str:
        """Landing area for this account after login."""
        if self.role == UserRole.ADMIN:
            return '/admin/shipments'
        if self.role == UserRole.SELLER:
            return '/seller'
        if self.is_driver:
            return '/driver'
        return '/dashboard'


class Profile(models.Model):
    """
    Contact & business information, one per account.

    A non-null business_name marks a seller profile; the admin customer
    directory and seller directory split on it.
    """

    pincode_regex = RegexValidator(
        regex=r'^[0-9]{6}$',
        message="Pincode must be 6 digits"
    )

    user = models.OneToOneField(
        User,
        on_delete=models.CASCADE,
        primary_key=True,
        related_name='profile',
        verbose_name="Account"
    )
    full_name = models.CharField(max_length=150, blank=True)
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=20, blank=True)
    address = models.TextField(blank=True)
    city = models.CharField(max_length=100, blank=True)
    state = models.CharField(max_length=100, blank=True)
    pincode = models.CharField(max_length=6, blank=True, validators=[pincode_regex])

    # Seller (B2B) fields
    business_name = models.CharField(
        max_length=200,
        null=True,
        blank=True,
        verbose_name="Business name"
    )
    gst_number = models.CharField(max_length=15, blank=True, verbose_name="GSTIN")
    logo = models.ImageField(
        upload_to='branding/logos/',
        null=True,
        blank=True,
        verbose_name="Business logo"
    )

    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "Profile"
        verbose_name_plural = "Profiles"

    def __str__(self):
        return self.business_name or self.full_name or self.email

    @property
    def is_seller_profile(self) -> bool:
        return self.business_name is not None


class Staff(models.Model):
    """
    Driver / employee record linking a display profile to an auth identity.

    Shipments reference staff through Shipment.delivery_boy.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    user = models.OneToOneField(
        User,
        on_delete=models.CASCADE,
        related_name='staff_record',
        verbose_name="Auth identity"
    )
    name = models.CharField(max_length=150)
    email = models.EmailField()
    phone = models.CharField(max_length=20, blank=True)
    designation = models.CharField(max_length=100, blank=True, default='Driver')
    status = models.CharField(
        max_length=10,
        choices=StaffStatus.choices,
        default=StaffStatus.ACTIVE
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "Staff member"
        verbose_name_plural = "Staff"
        ordering = ['name']

    def __str__(self):
        return f"{self.name} ({self.designation})"

    @property
    def is_active(self) -> bool:
        return self.status == StaffStatus.ACTIVE
