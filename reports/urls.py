"""
REPORTS App - URL Configuration (mounted under /api/)

The printable label page lives at /print/<awb>/ in the root URLconf.
"""

from django.urls import path
from . import views

urlpatterns = [
    path('shipments/<str:awb>/invoice/',
         views.InvoiceView.as_view(),
         name='shipment-invoice'),
    path('seller/invoices/',
         views.SellerInvoiceListView.as_view(),
         name='seller-invoices'),
]
