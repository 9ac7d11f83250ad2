"""
UEX Documents Tests
===================

Tests for:
1. Invoice content (COD vs prepaid banner and final row, seller block)
2. Invoice download permissions
3. Printable label with barcode
4. Seller invoice listing
"""

from decimal import Decimal
from io import BytesIO
from unittest.mock import patch

from django.test import TestCase
from rest_framework.test import APIClient

from core.models import User, UserRole
from core.services import AccountService
from logistics.services import lifecycle
from logistics.services.lifecycle import ShipmentDraft
from reports.services import (
    InvoiceGenerator, LabelGenerator, format_rupees, format_weight, sender_profile_for,
)


class DocumentTestMixin:

    def setUp(self):
        self.admin = User.objects.create_user(
            email='admin@uex.test', password='testpass123', role=UserRole.ADMIN
        )
        self.seller = AccountService.create_partner(
            email='seller@uex.test', password='testpass123',
            business_name='Acme Traders', gst_number='27ABCDE1234F1Z5',
        )
        self.customer = AccountService.signup_customer(
            email='customer@uex.test', password='testpass123', full_name='Asha Rao',
        )

    def book(self, user=None, **overrides):
        data = {
            'sender_name': 'Acme Traders',
            'sender_city': 'Pune',
            'sender_state': 'MH',
            'receiver_name': 'Meera Iyer',
            'receiver_address': '12 MG Road',
            'receiver_city': 'Bengaluru',
            'receiver_state': 'KA',
            'package_type': 'Electronics',
            'weight': '1.250',
        }
        data.update(overrides)
        return lifecycle.book_shipment(ShipmentDraft.from_dict(data), user or self.seller)


# ==========================================
# Invoice Content Tests
# ==========================================

class TestInvoiceContent(DocumentTestMixin, TestCase):
    """What the invoice says."""

    def test_cod_invoice_collects_cod_amount(self):
        """COD: red banner with the amount, last row is the amount to collect."""
        shipment = self.book(payment_mode='COD', cod_amount='1499', declared_value='2000')

        self.assertEqual(InvoiceGenerator.banner_text(shipment), 'COD SHIPMENT - COLLECT Rs. 1499')
        rows = InvoiceGenerator.package_rows(shipment)
        self.assertEqual(rows[-1], ('AMOUNT TO BE COLLECTED', 'Rs. 1499'))
        self.assertNotIn('Product Cost', [label for label, _ in rows])

    def test_prepaid_invoice_shows_product_cost(self):
        """Prepaid: never tells the driver to collect; last row is the declared value."""
        shipment = self.book(payment_mode='Prepaid', declared_value='850.50')

        self.assertEqual(InvoiceGenerator.banner_text(shipment), 'PREPAID SHIPMENT - DO NOT COLLECT CASH')
        rows = InvoiceGenerator.package_rows(shipment)
        self.assertEqual(rows[-1], ('Product Cost', 'Rs. 850.50'))
        self.assertNotIn('AMOUNT TO BE COLLECTED', [label for label, _ in rows])

    def test_rendered_html(self):
        shipment = self.book(payment_mode='COD', cod_amount='500')
        html = InvoiceGenerator.render_html(shipment, profile=sender_profile_for(shipment))

        self.assertIn('TAX INVOICE', html)
        self.assertIn(shipment.awb_code, html)
        self.assertIn('Acme Traders', html)
        self.assertIn('27ABCDE1234F1Z5', html)
        self.assertIn('1.25 KG', html)
        self.assertIn('No signature required', html)

    def test_customer_has_no_seller_block(self):
        shipment = self.book(user=self.customer)
        self.assertIsNone(sender_profile_for(shipment))
        html = InvoiceGenerator.render_html(shipment)
        self.assertNotIn('GSTIN', html)

    def test_formatting_helpers(self):
        self.assertEqual(format_rupees('100.00'), 'Rs. 100')
        self.assertEqual(format_rupees(None), 'Rs. 0')
        self.assertEqual(format_weight('10.000'), '10 KG')
        self.assertEqual(format_weight('0.500'), '0.5 KG')


# ==========================================
# Invoice Download Tests
# ==========================================

@patch.object(InvoiceGenerator, '_html_to_pdf', return_value=BytesIO(b'%PDF-1.7 test'))
class TestInvoiceDownload(DocumentTestMixin, TestCase):
    """GET /api/shipments/<awb>/invoice/"""

    def setUp(self):
        super().setUp()
        self.client = APIClient()

    def test_owner_downloads_pdf(self, mock_pdf):
        shipment = self.book()
        self.client.force_authenticate(self.seller)
        response = self.client.get(f'/api/shipments/{shipment.awb_code}/invoice/')

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response['Content-Type'], 'application/pdf')
        self.assertIn(f'Invoice_{shipment.awb_code}.pdf', response['Content-Disposition'])
        mock_pdf.assert_called_once()
        self.assertIn('TAX INVOICE', mock_pdf.call_args[0][0])

    def test_admin_downloads_any(self, mock_pdf):
        shipment = self.book()
        self.client.force_authenticate(self.admin)
        response = self.client.get(f'/api/shipments/{shipment.awb_code.lower()}/invoice/')
        self.assertEqual(response.status_code, 200)

    def test_other_account_gets_404(self, mock_pdf):
        shipment = self.book()
        self.client.force_authenticate(self.customer)
        response = self.client.get(f'/api/shipments/{shipment.awb_code}/invoice/')
        self.assertEqual(response.status_code, 404)
        mock_pdf.assert_not_called()

    def test_anonymous_rejected(self, mock_pdf):
        shipment = self.book()
        response = self.client.get(f'/api/shipments/{shipment.awb_code}/invoice/')
        self.assertEqual(response.status_code, 401)


# ==========================================
# Label Tests
# ==========================================

class TestLabel(DocumentTestMixin, TestCase):
    """Printable 4x6 label."""

    def test_barcode_is_inline_svg(self):
        svg = LabelGenerator.barcode_svg('UEX12345678')
        self.assertTrue(svg.startswith('<svg'))
        self.assertNotIn('<?xml', svg)

    def test_label_page_shows_cod_block(self):
        shipment = self.book(payment_mode='COD', cod_amount='750')
        response = self.client.get(f'/print/{shipment.awb_code}/')

        self.assertEqual(response.status_code, 200)
        self.assertContains(response, shipment.awb_code)
        self.assertContains(response, '<svg')
        self.assertContains(response, 'Rs. 750')
        self.assertEqual(response['X-Frame-Options'], 'SAMEORIGIN')

    def test_prepaid_label_has_no_collect_block(self):
        shipment = self.book(payment_mode='Prepaid')
        response = self.client.get(f'/print/{shipment.awb_code}/')
        self.assertContains(response, 'PREPAID')
        self.assertNotContains(response, 'COLLECT')

    def test_unknown_awb(self):
        self.assertEqual(self.client.get('/print/UEX00000000/').status_code, 404)


# ==========================================
# Seller Invoice Listing Tests
# ==========================================

class TestSellerInvoices(DocumentTestMixin, TestCase):
    """GET /api/seller/invoices/"""

    def test_lists_own_shipments_only(self):
        mine = self.book(payment_mode='COD', cod_amount='300', declared_value='900')
        self.book(user=self.customer)
        client = APIClient()
        client.force_authenticate(self.seller)

        response = client.get('/api/seller/invoices/')

        self.assertEqual(response.status_code, 200)
        rows = response.data['results']
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]['awb_code'], mine.awb_code)
        self.assertEqual(rows[0]['amount'], Decimal('300'))
        self.assertTrue(rows[0]['invoice_url'].endswith(f'/api/shipments/{mine.awb_code}/invoice/'))

    def test_customers_forbidden(self):
        client = APIClient()
        client.force_authenticate(self.customer)
        self.assertEqual(client.get('/api/seller/invoices/').status_code, 403)
