"""
UEX Core Tests
==============

Tests for:
1. Custom User model (email login, roles, landing area)
2. Account operations (signup, partner accounts, drivers, password reset)
3. Profile settings and admin directories
4. Security middleware (rate limiting, headers)
5. Health endpoints
"""

from unittest import mock

from django.core.cache import cache
from django.db import DatabaseError
from django.test import TestCase, RequestFactory, override_settings
from rest_framework.test import APIClient

from core.middleware import RateLimitMiddleware
from core.models import User, UserRole, Profile, Staff, StaffStatus
from core.services import AccountService


class TestUserModel(TestCase):
    """Tests for the custom User model."""

    def test_email_is_identifier(self):
        user = User.objects.create_user(email='Asha@UEX.test', password='testpass123')
        self.assertEqual(user.email, 'Asha@uex.test')
        self.assertTrue(user.check_password('testpass123'))
        self.assertEqual(user.role, UserRole.USER)

    def test_email_required(self):
        with self.assertRaises(ValueError):
            User.objects.create_user(email='', password='testpass123')

    def test_superuser_is_admin(self):
        user = User.objects.create_superuser(email='root@uex.test', password='testpass123')
        self.assertTrue(user.is_superuser)
        self.assertTrue(user.is_staff)
        self.assertTrue(user.is_admin)

    def test_home_area_per_role(self):
        admin = User.objects.create_user(email='a@uex.test', password='x', role=UserRole.ADMIN)
        seller = AccountService.create_partner(
            email='s@uex.test', password='testpass123', business_name='Acme Traders'
        )
        customer = AccountService.signup_customer(email='c@uex.test', password='testpass123')
        staff = AccountService.create_driver(
            name='Ravi Kumar', email='d@uex.test', phone='9000000001', password='testpass123'
        )

        self.assertEqual(admin.home_area, '/admin/shipments')
        self.assertEqual(seller.home_area, '/seller')
        self.assertEqual(staff.user.home_area, '/driver')
        self.assertEqual(customer.home_area, '/dashboard')
        self.assertTrue(staff.user.is_driver)
        self.assertFalse(customer.is_driver)


# ==========================================
# Account Operation Tests
# ==========================================

class TestAccountService(TestCase):
    """Server-side account creation."""

    def test_customer_signup_creates_profile(self):
        user = AccountService.signup_customer(
            email='asha@uex.test', password='testpass123', full_name='Asha Rao', phone='9876543210'
        )
        profile = Profile.objects.get(user=user)
        self.assertEqual(profile.full_name, 'Asha Rao')
        self.assertIsNone(profile.business_name)
        self.assertFalse(profile.is_seller_profile)

    def test_partner_has_business_profile(self):
        user = AccountService.create_partner(
            email='acme@uex.test', password='testpass123', business_name='Acme Traders',
            gst_number='27ABCDE1234F1Z5',
        )
        self.assertEqual(user.role, UserRole.SELLER)
        self.assertEqual(user.profile.business_name, 'Acme Traders')
        self.assertEqual(user.profile.gst_number, '27ABCDE1234F1Z5')

    def test_duplicate_email_rejected(self):
        AccountService.signup_customer(email='asha@uex.test', password='testpass123')
        with self.assertRaises(ValueError):
            AccountService.create_partner(
                email='ASHA@uex.test', password='testpass123', business_name='Acme Traders'
            )

    def test_driver_gets_staff_record(self):
        staff = AccountService.create_driver(
            name='Ravi Kumar', email='ravi@uex.test', phone='9000000001', password='testpass123'
        )
        self.assertEqual(staff.status, StaffStatus.ACTIVE)
        self.assertEqual(staff.designation, 'Driver')
        self.assertEqual(staff.user.role, UserRole.USER)
        self.assertTrue(staff.user.check_password('testpass123'))

    def test_driver_phone_optional(self):
        staff = AccountService.create_driver(
            name='Ravi Kumar', email='ravi@uex.test', password='testpass123'
        )
        self.assertEqual(staff.phone, '')
        self.assertEqual(staff.user.phone, '')

    def test_failed_staff_insert_leaves_no_login(self):
        with mock.patch.object(Staff.objects, 'create', side_effect=DatabaseError('insert failed')):
            with self.assertRaises(DatabaseError):
                AccountService.create_driver(
                    name='Ravi Kumar', email='ravi@uex.test', phone='', password='testpass123'
                )
        self.assertFalse(User.objects.filter(email='ravi@uex.test').exists())

    def test_deactivate_staff_disables_login(self):
        staff = AccountService.create_driver(
            name='Ravi Kumar', email='ravi@uex.test', phone='', password='testpass123'
        )
        AccountService.deactivate_staff(staff)
        staff.refresh_from_db()
        self.assertEqual(staff.status, StaffStatus.INACTIVE)
        self.assertFalse(staff.user.is_active)

    def test_reset_password_unknown_user(self):
        with self.assertRaises(ValueError):
            AccountService.reset_password('00000000-0000-0000-0000-000000000000', 'newpass123')


# ==========================================
# Accounts API Tests
# ==========================================

class TestAccountsAPI(TestCase):
    """Signup, current user, and admin account endpoints."""

    def setUp(self):
        self.client = APIClient()
        self.admin = User.objects.create_user(
            email='admin@uex.test', password='testpass123', role=UserRole.ADMIN
        )

    def test_signup(self):
        response = self.client.post('/api/auth/signup/', {
            'email': 'asha@uex.test', 'password': 'Str0ng-Passw0rd', 'full_name': 'Asha Rao',
        })
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data['role'], UserRole.USER)
        self.assertEqual(response.data['home_area'], '/dashboard')

    def test_signup_duplicate_email(self):
        AccountService.signup_customer(email='asha@uex.test', password='testpass123')
        response = self.client.post('/api/auth/signup/', {
            'email': 'asha@uex.test', 'password': 'Str0ng-Passw0rd',
        })
        self.assertEqual(response.status_code, 400)
        self.assertIn('error', response.data)

    def test_partner_signup(self):
        response = self.client.post('/api/auth/partner-signup/', {
            'email': 'acme@uex.test', 'password': 'testpass123', 'business_name': 'Acme Traders',
        })
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data['role'], UserRole.SELLER)
        self.assertEqual(response.data['profile']['business_name'], 'Acme Traders')

    def test_token_login(self):
        AccountService.signup_customer(email='asha@uex.test', password='testpass123')
        response = self.client.post('/api/auth/token/', {
            'email': 'asha@uex.test', 'password': 'testpass123',
        })
        self.assertEqual(response.status_code, 200)
        self.assertIn('access', response.data)

    def test_me(self):
        staff = AccountService.create_driver(
            name='Ravi Kumar', email='ravi@uex.test', phone='', password='testpass123'
        )
        self.client.force_authenticate(staff.user)
        response = self.client.get('/api/users/me/')
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.data['is_driver'])
        self.assertEqual(response.data['staff_id'], str(staff.id))

    def test_create_driver_admin_only(self):
        payload = {'name': 'Ravi Kumar', 'email': 'ravi@uex.test', 'password': 'testpass123'}
        customer = AccountService.signup_customer(email='asha@uex.test', password='testpass123')

        self.client.force_authenticate(customer)
        self.assertEqual(self.client.post('/api/auth/create-driver/', payload).status_code, 403)

        self.client.force_authenticate(self.admin)
        response = self.client.post('/api/auth/create-driver/', payload)
        self.assertEqual(response.status_code, 201)
        self.assertTrue(response.data['success'])
        self.assertEqual(response.data['staff']['email'], 'ravi@uex.test')

    def test_create_partner(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post('/api/admin/create-partner/', {
            'email': 'acme@uex.test', 'password': 'testpass123', 'business_name': 'Acme Traders',
        })
        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data['user']['role'], UserRole.SELLER)

    def test_reset_password(self):
        customer = AccountService.signup_customer(email='asha@uex.test', password='testpass123')
        self.client.force_authenticate(self.admin)

        response = self.client.post('/api/auth/reset-password/', {
            'userId': str(customer.id), 'newPassword': 'brandnew123',
        })
        self.assertEqual(response.status_code, 200)
        customer.refresh_from_db()
        self.assertTrue(customer.check_password('brandnew123'))

        response = self.client.post('/api/auth/reset-password/', {
            'userId': '00000000-0000-0000-0000-000000000000', 'newPassword': 'brandnew123',
        })
        self.assertEqual(response.status_code, 404)


# ==========================================
# Profile & Directory Tests
# ==========================================

class TestProfileAndDirectories(TestCase):

    def setUp(self):
        self.client = APIClient()
        self.admin = User.objects.create_user(
            email='admin@uex.test', password='testpass123', role=UserRole.ADMIN
        )
        self.seller = AccountService.create_partner(
            email='acme@uex.test', password='testpass123', business_name='Acme Traders'
        )
        self.customer = AccountService.signup_customer(
            email='asha@uex.test', password='testpass123', full_name='Asha Rao'
        )

    def test_profile_created_on_first_access(self):
        self.client.force_authenticate(self.admin)
        response = self.client.get('/api/profile/')
        self.assertEqual(response.status_code, 200)
        self.assertTrue(Profile.objects.filter(user=self.admin).exists())

    def test_customer_cannot_set_business_identity(self):
        self.client.force_authenticate(self.customer)
        response = self.client.patch('/api/profile/', {
            'city': 'Pune', 'business_name': 'Shadow Co',
        })
        self.assertEqual(response.status_code, 200)
        profile = Profile.objects.get(user=self.customer)
        self.assertEqual(profile.city, 'Pune')
        self.assertIsNone(profile.business_name)

    def test_seller_updates_gst(self):
        self.client.force_authenticate(self.seller)
        response = self.client.patch('/api/profile/', {'gst_number': '27ABCDE1234F1Z5'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['gst_number'], '27ABCDE1234F1Z5')

    def test_invalid_pincode(self):
        self.client.force_authenticate(self.customer)
        response = self.client.patch('/api/profile/', {'pincode': '12AB'})
        self.assertEqual(response.status_code, 400)

    def test_directories_split_on_business_name(self):
        self.client.force_authenticate(self.admin)

        customers = self.client.get('/api/admin/customers/').data['results']
        sellers = self.client.get('/api/admin/sellers/').data['results']

        self.assertEqual([row['email'] for row in customers], ['asha@uex.test'])
        self.assertEqual([row['business_name'] for row in sellers], ['Acme Traders'])
        self.assertEqual(sellers[0]['shipment_count'], 0)

    def test_directories_admin_only(self):
        self.client.force_authenticate(self.seller)
        self.assertEqual(self.client.get('/api/admin/customers/').status_code, 403)

    def test_staff_delete_deactivates(self):
        staff = AccountService.create_driver(
            name='Ravi Kumar', email='ravi@uex.test', phone='', password='testpass123'
        )
        self.client.force_authenticate(self.admin)

        response = self.client.delete(f'/api/admin/staff/{staff.id}/')

        self.assertEqual(response.status_code, 204)
        staff.refresh_from_db()
        self.assertEqual(staff.status, StaffStatus.INACTIVE)
        self.assertEqual(
            self.client.get('/api/admin/staff/', {'status': 'inactive'}).data['results'][0]['id'],
            str(staff.id),
        )

    def test_staff_status_filter_ignores_case(self):
        active = AccountService.create_driver(
            name='Ravi Kumar', email='ravi@uex.test', password='testpass123'
        )
        retired = AccountService.create_driver(
            name='Sunil Das', email='sunil@uex.test', password='testpass123'
        )
        AccountService.deactivate_staff(retired)
        self.client.force_authenticate(self.admin)

        for value in ('Active', 'active', 'ACTIVE'):
            rows = self.client.get('/api/admin/staff/', {'status': value}).data['results']
            self.assertEqual([row['id'] for row in rows], [str(active.id)])
        rows = self.client.get('/api/admin/staff/', {'status': 'inactive'}).data['results']
        self.assertEqual([row['id'] for row in rows], [str(retired.id)])


# ==========================================
# Security Middleware Tests
# ==========================================

class TestSecurityMiddleware(TestCase):
    """Tests for rate limiting and security headers."""

    def test_security_headers(self):
        response = self.client.get('/health/')
        self.assertEqual(response['X-Content-Type-Options'], 'nosniff')
        self.assertEqual(response['X-Frame-Options'], 'DENY')
        self.assertEqual(response['Referrer-Policy'], 'strict-origin-when-cross-origin')
        self.assertIn('camera=(self)', response['Permissions-Policy'])

    @override_settings(RATE_LIMIT_ENABLED=True)
    def test_signup_rate_limited(self):
        cache.clear()
        self.addCleanup(cache.clear)

        for i in range(5):
            response = self.client.post('/api/auth/signup/', {
                'email': f'user{i}@uex.test', 'password': 'Str0ng-Passw0rd',
            })
            self.assertEqual(response.status_code, 201)
        self.assertEqual(response['X-RateLimit-Remaining'], '0')

        response = self.client.post('/api/auth/signup/', {
            'email': 'user5@uex.test', 'password': 'Str0ng-Passw0rd',
        })
        self.assertEqual(response.status_code, 429)
        self.assertEqual(response['X-RateLimit-Limit'], '5')

    @override_settings(RATE_LIMIT_ENABLED=True)
    def test_limits_are_per_client_ip(self):
        cache.clear()
        self.addCleanup(cache.clear)

        for _ in range(5):
            self.client.post('/api/auth/signup/', {}, REMOTE_ADDR='10.0.0.1')
        blocked = self.client.post('/api/auth/signup/', {}, REMOTE_ADDR='10.0.0.1')
        other = self.client.post('/api/auth/signup/', {}, REMOTE_ADDR='10.0.0.2')

        self.assertEqual(blocked.status_code, 429)
        self.assertEqual(other.status_code, 400)

    def test_partner_api_counted_per_key(self):
        middleware = RateLimitMiddleware(lambda request: None)
        factory = RequestFactory()

        keyed = factory.post('/api/v1/shipment/create', HTTP_X_API_KEY='AbCd1234.secretpart')
        scheme = factory.post('/api/v1/shipment/create', HTTP_AUTHORIZATION='Api-Key AbCd1234.other')
        anonymous = factory.post('/api/v1/shipment/create', REMOTE_ADDR='10.0.0.9')
        login = factory.post('/api/auth/token/', HTTP_X_API_KEY='AbCd1234.secretpart', REMOTE_ADDR='10.0.0.9')

        self.assertEqual(middleware._client_identity(keyed, '/api/v1/'), 'key:AbCd1234')
        self.assertEqual(middleware._client_identity(scheme, '/api/v1/'), 'key:AbCd1234')
        self.assertEqual(middleware._client_identity(anonymous, '/api/v1/'), '10.0.0.9')
        self.assertEqual(middleware._client_identity(login, '/api/auth/token/'), '10.0.0.9')


# ==========================================
# Health Endpoint Tests
# ==========================================

class TestHealth(TestCase):

    def test_liveness(self):
        response = self.client.get('/health/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['status'], 'ok')

    def test_readiness(self):
        response = self.client.get('/health/ready/')
        self.assertEqual(response.status_code, 200)
        checks = response.json()['checks']
        self.assertEqual(checks['database']['status'], 'healthy')
        self.assertEqual(checks['cache']['status'], 'healthy')
