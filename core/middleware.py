"""
UEX Security Middleware
=======================

Provides:
1. Rate limiting per client IP, or per API key on the partner API
2. Security headers on every response
3. Audit logging for privileged and write endpoints
"""

import logging
import hashlib
from django.conf import settings
from django.core.cache import cache
from django.http import JsonResponse
from django.utils.deprecation import MiddlewareMixin

logger = logging.getLogger('uex.security')


def get_client_ip(request):
    """Real client IP, honouring the first X-Forwarded-For hop."""
    x_forwarded_for = request.META.get('HTTP_X_FORWARDED_FOR')
    if x_forwarded_for:
        return x_forwarded_for.split(',')[0].strip()
    return request.META.get('REMOTE_ADDR', '0.0.0.0')


class RateLimitMiddleware(MiddlewareMixin):
    """
    Fixed-window rate limiting backed by the Django cache.

    Rates are (max_requests, window_seconds) per path prefix; other /api/
    paths fall back to DEFAULT_API_LIMIT. Public tracking is generous since
    it is polled by the tracking page.
    """

    RATE_LIMITS = {
        '/api/auth/token/': (10, 60),
        '/api/auth/token/refresh/': (20, 60),
        '/api/auth/signup/': (5, 60),
        '/api/auth/partner-signup/': (5, 60),
        '/api/v1/': (120, 60),
        '/api/track/': (60, 60),
    }

    DEFAULT_API_LIMIT = (100, 60)
    PARTNER_API_PREFIX = '/api/v1/'

    def _get_rate_limit(self, path):
        for pattern, limits in self.RATE_LIMITS.items():
            if path.startswith(pattern):
                return pattern, limits

        if path.startswith('/api/'):
            return path, self.DEFAULT_API_LIMIT

        return None, None

    def _client_identity(self, request, bucket):
        """
        Partner API calls are counted per key prefix (sellers often share
        egress IPs); everything else per client IP.
        """
        if bucket == self.PARTNER_API_PREFIX:
            raw_key = request.META.get('HTTP_X_API_KEY', '')
            if not raw_key:
                auth_header = request.META.get('HTTP_AUTHORIZATION', '')
                if auth_header.startswith('Api-Key '):
                    raw_key = auth_header[8:]
            prefix = raw_key.strip().partition('.')[0]
            if prefix:
                return f"key:{prefix}"
        return get_client_ip(request)

    def process_request(self, request):
        if not getattr(settings, 'RATE_LIMIT_ENABLED', True):
            return None
        if settings.DEBUG and not getattr(settings, 'RATE_LIMIT_IN_DEBUG', False):
            return None

        bucket, rate_limit = self._get_rate_limit(request.path)
        if rate_limit is None:
            return None

        max_requests, window = rate_limit
        client_id = self._client_identity(request, bucket)

        bucket_hash = hashlib.md5(bucket.encode()).hexdigest()[:8]
        cache_key = f"rl:{client_id}:{bucket_hash}"

        request_count = cache.get(cache_key, 0)
        if request_count >= max_requests:
            logger.warning(
                f"Rate limit exceeded: client={client_id} path={request.path} "
                f"count={request_count}/{max_requests} window={window}s"
            )
            ttl = cache.ttl(cache_key) if hasattr(cache, 'ttl') else window
            return JsonResponse({
                'error': 'Too many requests. Please try again later.',
                'retry_after': ttl,
            }, status=429, headers={
                'Retry-After': str(ttl),
                'X-RateLimit-Limit': str(max_requests),
                'X-RateLimit-Remaining': '0',
            })

        try:
            new_count = cache.incr(cache_key)
        except ValueError:
            cache.set(cache_key, 1, window)
            new_count = 1

        request._rate_limit_remaining = max(0, max_requests - new_count)
        request._rate_limit_limit = max_requests
        return None

    def process_response(self, request, response):
        if hasattr(request, '_rate_limit_limit'):
            response['X-RateLimit-Limit'] = str(request._rate_limit_limit)
            response['X-RateLimit-Remaining'] = str(request._rate_limit_remaining)
        return response


class SecurityHeadersMiddleware(MiddlewareMixin):
    """
    Security headers for every response.

    The printable label page is opened in a popup for printing, so it keeps
    SAMEORIGIN framing instead of DENY.
    """

    def process_response(self, request, response):
        response['X-Content-Type-Options'] = 'nosniff'

        if request.path.startswith('/print/'):
            response['X-Frame-Options'] = 'SAMEORIGIN'
        elif not request.path.startswith('/admin/'):
            response['X-Frame-Options'] = 'DENY'

        response['Referrer-Policy'] = 'strict-origin-when-cross-origin'
        # Drivers capture POD photos from the camera
        response['Permissions-Policy'] = 'camera=(self), microphone=(), payment=()'

        if 'Server' in response:
            del response['Server']

        if not settings.DEBUG:
            response['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'

        return response


class RequestAuditMiddleware(MiddlewareMixin):
    """
    Audit log for privileged operations.

    Logs account management, admin shipment operations, bulk uploads,
    partner API writes, and any 4xx/5xx on the API.
    """

    SENSITIVE_PATHS = (
        '/api/auth/',
        '/api/admin/',
        '/api/shipments/',
        '/api/seller/api-key/',
        '/api/v1/',
        '/admin/',
    )

    def _should_log(self, request, response):
        path = request.path

        if '/auth/' in path:
            return True

        if request.method in ('POST', 'PUT', 'PATCH', 'DELETE'):
            return path.startswith(self.SENSITIVE_PATHS)

        if response.status_code >= 500:
            return True

        return response.status_code >= 400 and path.startswith('/api/')

    def process_response(self, request, response):
        if not self._should_log(request, response):
            return response

        user = getattr(request, 'user', None)
        if user and user.is_authenticated:
            user_info = f"{user} [{getattr(user, 'role', '')}]"
        else:
            user_info = 'anonymous'

        log_data = {
            'method': request.method,
            'path': request.path,
            'status': response.status_code,
            'user': user_info,
            'ip': get_client_ip(request),
        }

        if response.status_code >= 500:
            logger.error(f"AUDIT [ERROR] {log_data}")
        elif response.status_code >= 400:
            logger.warning(f"AUDIT [WARN] {log_data}")
        else:
            logger.info(f"AUDIT [OK] {log_data}")

        return response
