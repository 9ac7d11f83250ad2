"""
UEX Partner API Tests
=====================

Tests for:
1. Seller API key issuance (one live key, masked display)
2. API key authentication on /api/v1/
3. Partner booking (single, list, all-or-nothing)
4. Partner tracking (single, bulk, seller scoping)
5. Request logging and usage counting
"""

from decimal import Decimal

from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import TestCase, override_settings
from rest_framework.test import APIClient

from core.models import User, UserRole
from core.services import AccountService
from logistics.models import Shipment, ShipmentStatus
from logistics.services import lifecycle
from logistics.services.lifecycle import ShipmentDraft
from partners.models import SellerAPIKey, ApiRequestLog
from partners.services import PartnerAPIService


class PartnerTestMixin:

    def setUp(self):
        self.admin = User.objects.create_user(
            email='admin@uex.test', password='testpass123', role=UserRole.ADMIN
        )
        self.seller = AccountService.create_partner(
            email='seller@uex.test', password='testpass123',
            business_name='Acme Traders', gst_number='27ABCDE1234F1Z5',
        )
        self.other_seller = AccountService.create_partner(
            email='other@uex.test', password='testpass123', business_name='Other Co',
        )
        self.api_key, self.raw_key = PartnerAPIService.issue_key(self.seller)
        self.client = APIClient()

    def shipment_payload(self, **overrides):
        payload = {
            'sender_name': 'Acme Traders',
            'sender_city': 'Pune',
            'receiver_name': 'Meera Iyer',
            'receiver_address': '12 MG Road',
            'receiver_city': 'Bengaluru',
            'package_type': 'Express',
            'payment_mode': 'COD',
            'cod_amount': '450',
        }
        payload.update(overrides)
        return payload

    def with_key(self, raw_key=None):
        self.client.credentials(HTTP_X_API_KEY=raw_key or self.raw_key)


# ==========================================
# Key Management Tests
# ==========================================

class TestApiKeys(PartnerTestMixin, TestCase):
    """Issuing and displaying keys."""

    def test_regeneration_replaces_previous_key(self):
        """A seller never has more than one key; the old one stops working."""
        old_raw = self.raw_key
        _, new_raw = PartnerAPIService.issue_key(self.seller)

        self.assertEqual(SellerAPIKey.objects.filter(seller=self.seller).count(), 1)
        self.assertFalse(SellerAPIKey.objects.is_valid(old_raw))
        self.assertTrue(SellerAPIKey.objects.is_valid(new_raw))

    def test_only_sellers_get_keys(self):
        with self.assertRaises(ValueError):
            PartnerAPIService.issue_key(self.admin)

    def test_seller_sees_masked_key(self):
        self.client.force_authenticate(self.seller)
        response = self.client.get('/api/seller/api-key/')
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.data['has_key'])
        self.assertNotIn('api_key', response.data)
        self.assertTrue(response.data['masked_key'].startswith(self.api_key.prefix))

    def test_seller_regenerates_key(self):
        self.client.force_authenticate(self.seller)
        response = self.client.post('/api/seller/api-key/')
        self.assertEqual(response.status_code, 201)
        self.assertTrue(SellerAPIKey.objects.is_valid(response.data['api_key']))

    def test_customer_cannot_manage_keys(self):
        customer = AccountService.signup_customer(email='c@uex.test', password='testpass123')
        self.client.force_authenticate(customer)
        self.assertEqual(self.client.post('/api/seller/api-key/').status_code, 403)

    def test_admin_issues_key_for_seller(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post(f'/api/admin/sellers/{self.other_seller.id}/api-key/')
        self.assertEqual(response.status_code, 201)
        self.assertEqual(SellerAPIKey.objects.get_from_key(response.data['api_key']).seller, self.other_seller)

    def test_admin_key_for_non_seller_404(self):
        self.client.force_authenticate(self.admin)
        response = self.client.post(f'/api/admin/sellers/{self.admin.id}/api-key/')
        self.assertEqual(response.status_code, 404)


# ==========================================
# Authentication Tests
# ==========================================

class TestApiKeyAuthentication(PartnerTestMixin, TestCase):
    """API key checks on the partner endpoints."""

    def test_missing_key_is_401(self):
        response = self.client.get('/api/v1/shipment/track', {'awb': 'UEX12345678'})
        self.assertEqual(response.status_code, 401)

    def test_invalid_key_is_401(self):
        self.with_key('abcd1234.not-a-real-key')
        response = self.client.get('/api/v1/shipment/track', {'awb': 'UEX12345678'})
        self.assertEqual(response.status_code, 401)

    def test_revoked_key_is_401(self):
        SellerAPIKey.objects.filter(pk=self.api_key.pk).update(revoked=True)
        self.with_key()
        response = self.client.get('/api/v1/shipment/track', {'awb': 'UEX12345678'})
        self.assertEqual(response.status_code, 401)

    def test_authorization_header_scheme(self):
        """`Authorization: Api-Key <key>` is accepted too."""
        self.client.credentials(HTTP_AUTHORIZATION=f'Api-Key {self.raw_key}')
        response = self.client.get('/api/v1/shipment/track', {'awb': 'UEX12345678'})
        self.assertEqual(response.status_code, 404)

    def test_jwt_user_is_not_enough(self):
        self.client.force_authenticate(self.seller)
        response = self.client.get('/api/v1/shipment/track', {'awb': 'UEX12345678'})
        self.assertIn(response.status_code, (401, 403))


# ==========================================
# Booking Tests
# ==========================================

class TestPartnerBooking(PartnerTestMixin, TestCase):
    """POST /api/v1/shipment/create"""

    def test_single_booking(self):
        self.with_key()
        response = self.client.post('/api/v1/shipment/create', self.shipment_payload(), format='json')

        self.assertEqual(response.status_code, 201)
        self.assertTrue(response.data['success'])
        self.assertEqual(len(response.data['data']), 1)
        row = response.data['data'][0]
        self.assertEqual(row['status'], ShipmentStatus.CREATED)
        self.assertEqual(row['payment_mode'], 'COD')
        self.assertEqual(row['cod_amount'], Decimal('450'))
        self.assertEqual(row['label_url'], f"http://testserver/print/{row['awb_code']}/")

        shipment = Shipment.objects.get(awb_code=row['awb_code'])
        self.assertEqual(shipment.user, self.seller)
        self.assertEqual(shipment.tracking_events.count(), 1)

    def test_list_booking(self):
        self.with_key()
        payload = [self.shipment_payload(), self.shipment_payload(receiver_name='Karan', payment_mode='Prepaid')]
        response = self.client.post('/api/v1/shipment/create', payload, format='json')

        self.assertEqual(response.status_code, 201)
        self.assertEqual(len(response.data['data']), 2)
        prepaid = response.data['data'][1]
        self.assertEqual(prepaid['cod_amount'], Decimal('0'))
        self.assertEqual(response.data['message'], '2 Shipment(s) booked successfully')

    def test_all_or_nothing(self):
        """One invalid item books nothing."""
        self.with_key()
        payload = [self.shipment_payload(), self.shipment_payload(package_type='')]
        response = self.client.post('/api/v1/shipment/create', payload, format='json')

        self.assertEqual(response.status_code, 400)
        self.assertFalse(response.data['success'])
        self.assertFalse(Shipment.objects.exists())

    def test_non_finite_weight_returns_400(self):
        self.with_key()
        for weight in ('NaN', 'Infinity'):
            response = self.client.post(
                '/api/v1/shipment/create', self.shipment_payload(weight=weight), format='json'
            )
            self.assertEqual(response.status_code, 400)
        self.assertFalse(Shipment.objects.exists())

    def test_empty_body(self):
        self.with_key()
        response = self.client.post('/api/v1/shipment/create', [], format='json')
        self.assertEqual(response.status_code, 400)

    def test_bulk_spreadsheet(self):
        self.with_key()
        upload = SimpleUploadedFile(
            'orders.csv',
            b"Receiver Name,Receiver Address,Payment Mode,Product Value\n"
            b"Meera,12 MG Road,COD,900\n"
            b"Karan,4 Park St,Prepaid,300\n",
            content_type='text/csv',
        )
        response = self.client.post('/api/v1/shipment/bulk', {'file': upload}, format='multipart')

        self.assertEqual(response.status_code, 201)
        self.assertEqual(response.data['count'], 2)
        self.assertEqual(Shipment.objects.filter(user=self.seller).count(), 2)


# ==========================================
# Tracking Tests
# ==========================================

class TestPartnerTracking(PartnerTestMixin, TestCase):
    """GET /api/v1/shipment/track and POST /api/v1/shipment/track/bulk"""

    def book(self, user=None, **overrides):
        return lifecycle.book_shipment(
            ShipmentDraft.from_dict(self.shipment_payload(**overrides)), user or self.seller
        )

    def test_created_shows_pending(self):
        shipment = self.book()
        self.with_key()
        response = self.client.get('/api/v1/shipment/track', {'awb': shipment.awb_code.lower()})

        self.assertEqual(response.status_code, 200)
        data = response.data['data']
        self.assertEqual(data['status']['current'], 'Pending')
        self.assertEqual(data['financials']['cod_to_collect'], Decimal('450'))
        self.assertEqual(data['parties']['receiver'], 'Meera Iyer')
        self.assertEqual(len(data['history']), 1)

    def test_history_newest_first(self):
        shipment = self.book()
        lifecycle.pickup(shipment, 'Pune Hub')
        self.with_key()
        response = self.client.get('/api/v1/shipment/track', {'awb': shipment.awb_code})

        data = response.data['data']
        self.assertEqual(data['status']['current'], ShipmentStatus.MANIFESTED)
        self.assertEqual(data['history'][0]['status'], ShipmentStatus.MANIFESTED)

    def test_other_sellers_shipment_is_hidden(self):
        shipment = self.book(user=self.other_seller)
        self.with_key()
        response = self.client.get('/api/v1/shipment/track', {'awb': shipment.awb_code})
        self.assertEqual(response.status_code, 404)

    def test_missing_awb_param(self):
        self.with_key()
        self.assertEqual(self.client.get('/api/v1/shipment/track').status_code, 400)

    def test_bulk_track(self):
        mine = [self.book(), self.book()]
        foreign = self.book(user=self.other_seller)
        self.with_key()
        awbs = [s.awb_code for s in mine] + [foreign.awb_code, 'UEX00000000']
        response = self.client.post('/api/v1/shipment/track/bulk', {'awbs': awbs}, format='json')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['total_requested'], 4)
        self.assertEqual(response.data['total_found'], 2)

    @override_settings(BULK_TRACK_LIMIT=3)
    def test_bulk_track_limit(self):
        self.with_key()
        response = self.client.post(
            '/api/v1/shipment/track/bulk', {'awbs': ['UEX1', 'UEX2', 'UEX3', 'UEX4']}, format='json'
        )
        self.assertEqual(response.status_code, 400)

    def test_bulk_track_requires_list(self):
        self.with_key()
        response = self.client.post('/api/v1/shipment/track/bulk', {'awbs': 'UEX1'}, format='json')
        self.assertEqual(response.status_code, 400)


# ==========================================
# Logging Tests
# ==========================================

class TestRequestLogging(PartnerTestMixin, TestCase):
    """Every authenticated call is logged and counted."""

    def test_success_and_failure_are_logged(self):
        self.with_key()
        self.client.post('/api/v1/shipment/create', self.shipment_payload(), format='json')
        self.client.get('/api/v1/shipment/track', {'awb': 'UEX00000000'})

        logs = list(ApiRequestLog.objects.filter(seller=self.seller).order_by('created_at', 'id'))
        self.assertEqual([log.status_code for log in logs], [201, 404])
        self.assertEqual(logs[0].endpoint, '/api/v1/shipment/create')
        self.assertEqual(logs[0].request_body['count'], 1)
        self.assertFalse(logs[1].response_body['success'])

        self.api_key.refresh_from_db()
        self.assertEqual(self.api_key.usage_count, 2)
        self.assertIsNotNone(self.api_key.last_used_at)

    def test_unauthenticated_calls_not_logged(self):
        self.client.get('/api/v1/shipment/track', {'awb': 'UEX00000000'})
        self.assertFalse(ApiRequestLog.objects.exists())
