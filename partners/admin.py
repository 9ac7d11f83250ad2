"""
Django Admin configuration for PARTNERS app.
"""

from django.contrib import admin
from django.utils.html import format_html

from .models import SellerAPIKey, ApiRequestLog


@admin.register(SellerAPIKey)
class SellerAPIKeyAdmin(admin.ModelAdmin):
    """Keys are issued from the API; here they can only be inspected or revoked."""

    list_display = (
        'name',
        'seller',
        'prefix',
        'revoked_badge',
        'usage_count',
        'last_used_at',
        'created',
    )
    list_filter = ('revoked',)
    search_fields = ('name', 'prefix', 'seller__email', 'seller__full_name')
    ordering = ('-created',)

    readonly_fields = ('prefix', 'hashed_key', 'created', 'usage_count', 'last_used_at')

    fieldsets = (
        ('API key', {
            'fields': ('name', 'seller', 'prefix', 'revoked')
        }),
        ('Validity', {
            'fields': ('expiry_date',),
            'description': 'Leave empty for a key that never expires.'
        }),
        ('Usage', {
            'fields': ('usage_count', 'last_used_at', 'hashed_key', 'created'),
            'classes': ('collapse',)
        }),
    )

    actions = ['revoke_keys']

    def has_add_permission(self, request):
        return False

    def revoked_badge(self, obj):
        color, label = ('#ef4444', 'Revoked') if obj.revoked else ('#10b981', 'Active')
        return format_html(
            '<span style="padding:2px 6px;border-radius:8px;color:white;background:{};font-size:11px;">{}</span>',
            color, label
        )
    revoked_badge.short_description = "Status"

    @admin.action(description="Revoke selected keys")
    def revoke_keys(self, request, queryset):
        updated = queryset.update(revoked=True)
        self.message_user(request, f"{updated} key(s) revoked.")


@admin.register(ApiRequestLog)
class ApiRequestLogAdmin(admin.ModelAdmin):
    list_display = ('created_at', 'seller', 'method', 'endpoint', 'status_code')
    list_filter = ('method', 'status_code', 'created_at')
    search_fields = ('endpoint', 'seller__email')
    date_hierarchy = 'created_at'
    readonly_fields = (
        'seller', 'endpoint', 'method', 'status_code',
        'request_body', 'response_body', 'created_at',
    )

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False
