"""
Partner API authentication.

Seller integrations send their key as `X-Api-Key: <key>` or
`Authorization: Api-Key <key>`. A valid key authenticates the request
as the owning seller; `request.partner` carries that seller downstream.
"""
import logging

from rest_framework import authentication, exceptions, permissions

from .models import SellerAPIKey

logger = logging.getLogger('uex.security')


def extract_api_key(request):
    """Raw key from X-Api-Key or the Api-Key authorization scheme."""
    raw_key = request.META.get('HTTP_X_API_KEY', '').strip()
    if raw_key:
        return raw_key
    auth_header = request.META.get('HTTP_AUTHORIZATION', '')
    if auth_header.startswith('Api-Key '):
        return auth_header[8:].strip()
    return None


class SellerAPIKeyAuthentication(authentication.BaseAuthentication):
    """Authenticates as the seller who owns the key."""

    def authenticate(self, request):
        raw_key = extract_api_key(request)
        if not raw_key:
            return None

        try:
            api_key = SellerAPIKey.objects.get_from_key(raw_key)
        except SellerAPIKey.DoesNotExist:
            logger.warning(f"[PARTNER API] Invalid API key (prefix {raw_key.partition('.')[0]})")
            raise exceptions.AuthenticationFailed('Invalid or inactive API Key')

        if not api_key.seller.is_active:
            raise exceptions.AuthenticationFailed('Seller account is disabled')
        return (api_key.seller, api_key)

    def authenticate_header(self, request):
        return 'Api-Key'


class HasSellerAPIKey(permissions.BasePermission):
    """
    Request authenticated by a seller API key.

    Injects `request.partner` with the seller User instance.
    """

    def has_permission(self, request, view):
        if not isinstance(request.auth, SellerAPIKey):
            return False
        request.partner = request.auth.seller
        return True
