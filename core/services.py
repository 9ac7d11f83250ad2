"""
Account Service for UEX Logistics

Server-mediated account operations that need elevated trust:
1. Customer and seller self-signup
2. Admin-created driver accounts (auth identity + staff record)
3. Admin-created partner (seller) accounts
4. Admin password reset
"""

import logging
from django.core.exceptions import ValidationError
from django.db import transaction

from .models import User, UserRole, Profile, Staff, StaffStatus

logger = logging.getLogger(__name__)


class AccountService:
    """Creates auth identities together with their linked rows."""

    @staticmethod
    def _ensure_email_free(email: str):
        if User.objects.filter(email__iexact=email).exists():
            raise ValueError(f"An account with email {email} already exists")

    @staticmethod
    @transaction.atomic
    def signup_customer(email, password, full_name='', phone='') -> User:
        """Public signup: role `user` plus an empty-business profile."""
        AccountService._ensure_email_free(email)
        user = User.objects.create_user(
            email=email,
            password=password,
            full_name=full_name,
            phone=phone,
            role=UserRole.USER,
        )
        Profile.objects.create(user=user, full_name=full_name, email=user.email, phone=phone)
        logger.info(f"[ACCOUNTS] Customer signup {user.email}")
        return user

    @staticmethod
    @transaction.atomic
    def create_partner(email, password, business_name, phone='', gst_number='',
                       full_name='') -> User:
        """
        Create a seller account with its business profile.

        Used by partner self-signup and by the admin "create partner" form.
        """
        if not business_name:
            raise ValueError("Business name is required")
        AccountService._ensure_email_free(email)

        user = User.objects.create_user(
            email=email,
            password=password,
            full_name=full_name or business_name,
            phone=phone,
            role=UserRole.SELLER,
        )
        Profile.objects.create(
            user=user,
            full_name=full_name or business_name,
            email=user.email,
            phone=phone,
            business_name=business_name,
            gst_number=gst_number or '',
        )
        logger.info(f"[ACCOUNTS] Partner account {user.email} ({business_name})")
        return user

    @staticmethod
    def create_driver(name, email, password, phone='', designation='Driver') -> Staff:
        """
        Create a driver: auth identity first, then the staff record.

        Both writes share one transaction so a failed staff insert leaves no
        orphaned login behind.
        """
        AccountService._ensure_email_free(email)

        with transaction.atomic():
            user = User.objects.create_user(
                email=email,
                password=password,
                full_name=name,
                phone=phone or '',
                role=UserRole.USER,
            )
            staff = Staff.objects.create(
                user=user,
                name=name,
                email=user.email,
                phone=phone or '',
                designation=designation or 'Driver',
                status=StaffStatus.ACTIVE,
            )

        logger.info(f"[ACCOUNTS] Driver {staff.name} created ({user.email})")
        return staff

    @staticmethod
    def reset_password(user_id, new_password) -> User:
        try:
            user = User.objects.get(pk=user_id)
        except (User.DoesNotExist, ValidationError):
            raise ValueError("User not found")

        user.set_password(new_password)
        user.save(update_fields=['password'])
        logger.info(f"[ACCOUNTS] Password reset for {user.email}")
        return user

    @staticmethod
    @transaction.atomic
    def deactivate_staff(staff: Staff) -> Staff:
        """Mark staff inactive and disable the login; shipments keep their link."""
        staff.status = StaffStatus.INACTIVE
        staff.save(update_fields=['status'])
        staff.user.is_active = False
        staff.user.save(update_fields=['is_active'])
        logger.info(f"[ACCOUNTS] Staff {staff.name} deactivated")
        return staff
