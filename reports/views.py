"""
REPORTS App - Views for Shipping Documents

Provides the invoice PDF download, the printable label page and the
seller invoice listing.
"""

import logging

from django.http import HttpResponse
from django.shortcuts import render
from rest_framework import generics, status
from rest_framework.filters import SearchFilter
from rest_framework.response import Response
from rest_framework.views import APIView

from core.permissions import IsSeller
from logistics.models import Shipment
from logistics.services.awb import normalize_awb
from logistics.views import visible_shipments
from .serializers import InvoiceRowSerializer
from .services import InvoiceGenerator, LabelGenerator, sender_profile_for

logger = logging.getLogger(__name__)


class InvoiceView(APIView):
    """
    GET /api/shipments/<awb>/invoice/

    PDF tax invoice for any shipment the caller can see.
    """

    def get(self, request, awb):
        shipment = (
            visible_shipments(request.user)
            .select_related('user__profile')
            .filter(awb_code=normalize_awb(awb))
            .first()
        )
        if shipment is None:
            return Response({'error': 'Shipment not found'}, status=status.HTTP_404_NOT_FOUND)

        pdf_buffer = InvoiceGenerator.generate(shipment, profile=sender_profile_for(shipment))

        response = HttpResponse(pdf_buffer.read(), content_type='application/pdf')
        response['Content-Disposition'] = f'attachment; filename="Invoice_{shipment.awb_code}.pdf"'
        return response


def label_view(request, awb):
    """
    Printable 4x6 label. Linked from booking responses (label_url), so
    it opens without a session, like the public tracking page.
    """
    shipment = (
        Shipment.objects.select_related('user__profile')
        .filter(awb_code=normalize_awb(awb))
        .first()
    )
    if shipment is None:
        return HttpResponse("Shipment not found", status=404, content_type='text/plain')

    context = LabelGenerator.build_context(shipment, profile=sender_profile_for(shipment))
    return render(request, 'reports/label.html', context)


class SellerInvoiceListView(generics.ListAPIView):
    """Seller's own shipments with invoice and label links. ?search= by AWB, order or receiver."""

    serializer_class = InvoiceRowSerializer
    permission_classes = [IsSeller]
    filter_backends = [SearchFilter]
    search_fields = ['awb_code', 'client_order_id', 'receiver_name']

    def get_queryset(self):
        return Shipment.objects.filter(user=self.request.user).order_by('-created_at')
