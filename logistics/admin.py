"""
Django Admin configuration for LOGISTICS app.
"""

from django.contrib import admin

from .models import Shipment, TrackingEvent, PODImage, PackageType


class TrackingEventInline(admin.TabularInline):
    """Read-only timeline; events are append-only."""

    model = TrackingEvent
    extra = 0
    can_delete = False
    fields = ('timestamp', 'status', 'location', 'description')
    readonly_fields = fields
    ordering = ('-timestamp',)

    def has_add_permission(self, request, obj=None):
        return False


class PODImageInline(admin.TabularInline):
    model = PODImage
    extra = 0
    readonly_fields = ('uploaded_at',)


@admin.register(Shipment)
class ShipmentAdmin(admin.ModelAdmin):
    """
    Shipments are read-mostly here: status changes belong to the API so
    every change is paired with a tracking event.
    """

    list_display = (
        'awb_code', 'sender_name', 'receiver_name', 'receiver_city',
        'payment_mode', 'cod_amount', 'current_status', 'delivery_boy', 'created_at'
    )
    list_filter = ('current_status', 'payment_mode', 'created_at')
    search_fields = ('awb_code', 'client_order_id', 'reference_id', 'receiver_name', 'receiver_phone')
    raw_id_fields = ('user', 'delivery_boy')
    readonly_fields = ('awb_code', 'current_status', 'failure_reason', 'created_at', 'updated_at')
    inlines = [TrackingEventInline, PODImageInline]
    date_hierarchy = 'created_at'

    fieldsets = (
        ('Shipment', {
            'fields': ('awb_code', 'user', 'client_order_id', 'reference_id',
                       'current_status', 'failure_reason', 'delivery_boy')
        }),
        ('Sender', {
            'fields': ('sender_name', 'sender_phone', 'sender_address',
                       'sender_city', 'sender_state', 'sender_pincode')
        }),
        ('Receiver', {
            'fields': ('receiver_name', 'receiver_phone', 'receiver_address',
                       'receiver_city', 'receiver_state', 'receiver_pincode')
        }),
        ('Package & Payment', {
            'fields': ('weight', 'package_type', 'payment_mode', 'declared_value',
                       'cod_amount', 'payment_status')
        }),
        ('Pricing', {
            'fields': ('cost', 'base_fee', 'tax_amount'),
            'classes': ('collapse',)
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    def has_add_permission(self, request):
        return False


@admin.register(PackageType)
class PackageTypeAdmin(admin.ModelAdmin):
    list_display = ('package_type', 'created_at')
    search_fields = ('package_type',)
