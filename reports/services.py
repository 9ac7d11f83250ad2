"""
REPORTS App - Shipping Documents

Tax invoice PDFs (WeasyPrint, from HTML templates) and printable
4x6 labels with a Code128 barcode of the AWB (python-barcode, SVG).
Both are pure functions of the shipment and the sender's profile.
"""

import logging
from decimal import Decimal
from io import BytesIO
from typing import Optional, Dict, Any, List, Tuple

import barcode
from barcode.writer import SVGWriter
from django.conf import settings
from django.template.loader import render_to_string
from django.utils import timezone

logger = logging.getLogger(__name__)

INVOICE_CSS = '''
    @page {
        size: A4;
        margin: 0 0 1.5cm 0;
    }
    body {
        font-family: "Helvetica Neue", Helvetica, Arial, sans-serif;
        font-size: 10pt;
        color: #0f172a;
        margin: 0;
    }
    table { width: 100%; border-collapse: collapse; }
    th, td { padding: 8px 12px; text-align: left; vertical-align: top; }
'''


def format_rupees(amount) -> str:
    amount = Decimal(amount or 0)
    if amount == amount.to_integral_value():
        return f"Rs. {amount.quantize(Decimal('1'))}"
    return f"Rs. {amount.quantize(Decimal('0.01'))}"


def format_weight(weight) -> str:
    return f"{format(Decimal(weight).normalize(), 'f')} KG"


def sender_profile_for(shipment):
    """The booking account's business profile, if it has one."""
    profile = getattr(shipment.user, 'profile', None)
    if profile and profile.business_name:
        return profile
    return None


# ===========================================
# INVOICE
# ===========================================

class InvoiceGenerator:
    """
    Tax invoice for one shipment.

    COD invoices end with the amount the driver must collect; prepaid
    invoices end with the declared product cost and tell the driver not
    to collect cash.
    """

    @staticmethod
    def _render_html(template_name: str, context: Dict[str, Any]) -> str:
        """Render HTML from Django template."""
        return render_to_string(template_name, context)

    @staticmethod
    def _html_to_pdf(html_content: str) -> BytesIO:
        """Convert HTML to PDF using WeasyPrint."""
        from weasyprint import HTML, CSS
        from weasyprint.text.fonts import FontConfiguration

        font_config = FontConfiguration()
        base_css = CSS(string=INVOICE_CSS, font_config=font_config)

        pdf_buffer = BytesIO()
        HTML(string=html_content).write_pdf(pdf_buffer, stylesheets=[base_css], font_config=font_config)
        pdf_buffer.seek(0)
        return pdf_buffer

    @staticmethod
    def banner_text(shipment) -> str:
        if shipment.is_cod:
            return f"COD SHIPMENT - COLLECT {format_rupees(shipment.cod_amount)}"
        return "PREPAID SHIPMENT - DO NOT COLLECT CASH"

    @staticmethod
    def package_rows(shipment) -> List[Tuple[str, str]]:
        """Description/details rows; the last row is the financial one."""
        rows = [
            ("Package Content / Type", shipment.package_type or "Standard Package"),
            ("Actual Weight", format_weight(shipment.weight)),
            ("Payment Mode", "Cash on Delivery (COD)" if shipment.is_cod else "Prepaid"),
        ]
        if shipment.is_cod:
            rows.append(("AMOUNT TO BE COLLECTED", format_rupees(shipment.cod_amount)))
        else:
            rows.append(("Product Cost", format_rupees(shipment.declared_value)))
        return rows

    @classmethod
    def build_context(cls, shipment, profile=None) -> Dict[str, Any]:
        return {
            'shipment': shipment,
            'profile': profile,
            'company_name': settings.COMPANY_NAME,
            'company_tagline': settings.COMPANY_TAGLINE,
            'invoice_date': timezone.localdate(),
            'is_cod': shipment.is_cod,
            'banner_text': cls.banner_text(shipment),
            'package_rows': cls.package_rows(shipment),
        }

    @classmethod
    def render_html(cls, shipment, profile=None) -> str:
        return cls._render_html('reports/invoice.html', cls.build_context(shipment, profile))

    @classmethod
    def generate(cls, shipment, profile=None) -> BytesIO:
        """PDF buffer for the invoice."""
        html = cls.render_html(shipment, profile)
        pdf_buffer = cls._html_to_pdf(html)
        logger.info(f"[REPORTS] Invoice generated for {shipment.awb_code}")
        return pdf_buffer


# ===========================================
# LABEL
# ===========================================

class LabelGenerator:
    """4x6 inch printable shipping label."""

    BARCODE_OPTIONS = {
        'module_width': 0.3,
        'module_height': 14.0,
        'font_size': 9,
        'text_distance': 4.0,
        'quiet_zone': 2.0,
    }

    @classmethod
    def barcode_svg(cls, awb_code: str) -> str:
        """Inline Code128 SVG markup for the AWB."""
        code = barcode.get('code128', awb_code, writer=SVGWriter())
        buffer = BytesIO()
        code.write(buffer, options=cls.BARCODE_OPTIONS)
        svg = buffer.getvalue().decode('utf-8')
        # Drop the XML prolog so the markup can sit inside HTML
        return svg[svg.find('<svg'):]

    @classmethod
    def build_context(cls, shipment, profile: Optional[Any] = None) -> Dict[str, Any]:
        return {
            'shipment': shipment,
            'profile': profile,
            'company_name': settings.COMPANY_NAME,
            'is_cod': shipment.is_cod,
            'cod_display': format_rupees(shipment.cod_amount),
            'weight_display': format_weight(shipment.weight),
            'barcode_svg': cls.barcode_svg(shipment.awb_code),
        }
