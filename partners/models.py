"""
Partners App Models - Seller API Keys & Request Log

Key security model: SellerAPIKey links each API key to exactly one
seller account, so partner API calls can only read and book that
seller's own shipments.
"""
from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.db import models
from rest_framework_api_key.models import AbstractAPIKey


class SellerAPIKey(AbstractAPIKey):
    """
    API key owned by a seller. One live key per seller.

    Usage in views:
        key = SellerAPIKey.objects.get_from_key(raw_key)
        seller = key.seller
    """

    seller = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='api_key',
        verbose_name="Seller"
    )
    usage_count = models.PositiveIntegerField(default=0, verbose_name="Calls")
    last_used_at = models.DateTimeField(null=True, blank=True)

    class Meta(AbstractAPIKey.Meta):
        verbose_name = "Seller API key"
        verbose_name_plural = "Seller API keys"

    def __str__(self):
        return f"API Key: {self.seller.email} - {self.name}"

    @property
    def masked(self) -> str:
        return f"{self.prefix}.{'*' * 24}"


class ApiRequestLog(models.Model):
    """One row per partner API call, successful or not."""

    seller = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='api_request_logs'
    )
    endpoint = models.CharField(max_length=200)
    method = models.CharField(max_length=10)
    status_code = models.PositiveSmallIntegerField()
    request_body = models.JSONField(default=dict, blank=True, encoder=DjangoJSONEncoder)
    response_body = models.JSONField(default=dict, blank=True, encoder=DjangoJSONEncoder)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = "API request log"
        verbose_name_plural = "API request logs"
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['seller', 'created_at'], name='partners_ap_seller__4f2b9d_idx'),
        ]

    def __str__(self):
        return f"{self.method} {self.endpoint} -> {self.status_code}"
