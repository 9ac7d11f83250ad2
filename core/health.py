"""
UEX Monitoring & Health Check Endpoints
=======================================

Provides:
1. /health/ - Liveness check (load balancers / Docker)
2. /health/ready/ - Readiness check (database, cache, channel layer)
"""

import time
import logging
from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.http import JsonResponse
from django.db import connection
from django.core.cache import cache
from django.views.decorators.http import require_GET
from django.views.decorators.csrf import csrf_exempt
from django.utils import timezone

logger = logging.getLogger('uex.monitoring')

SERVICE_NAME = 'uex-logistics'


@csrf_exempt
@require_GET
def health_check(request):
    """Liveness probe: 200 while the Django process is up."""
    return JsonResponse({
        'status': 'ok',
        'service': SERVICE_NAME,
        'timestamp': timezone.now().isoformat(),
    })


def _timed(check):
    start = time.time()
    check()
    return round((time.time() - start) * 1000, 2)


def _check_database():
    with connection.cursor() as cursor:
        cursor.execute("SELECT 1")
        cursor.fetchone()


def _check_cache():
    cache.set('_healthcheck_ping', 'pong', 10)
    if cache.get('_healthcheck_ping') != 'pong':
        raise RuntimeError("Cache read/write mismatch")


def _check_channel_layer():
    layer = get_channel_layer()
    if layer is None:
        raise RuntimeError("No channel layer configured")
    async_to_sync(layer.group_send)('healthcheck', {'type': 'healthcheck.ping'})


@csrf_exempt
@require_GET
def readiness_check(request):
    """
    Readiness probe.

    Database and cache are critical (503 when down). The channel layer only
    drives realtime pushes, so an outage there reports as degraded.
    """
    checks = {}
    all_healthy = True

    for name, check, critical in (
        ('database', _check_database, True),
        ('cache', _check_cache, True),
        ('channel_layer', _check_channel_layer, False),
    ):
        try:
            checks[name] = {'status': 'healthy', 'response_time_ms': _timed(check)}
        except Exception as e:
            checks[name] = {
                'status': 'unhealthy' if critical else 'degraded',
                'error': str(e),
            }
            if critical:
                all_healthy = False
                logger.error(f"Health check - {name} unhealthy: {e}")
            else:
                logger.warning(f"Health check - {name} degraded: {e}")

    return JsonResponse({
        'status': 'healthy' if all_healthy else 'unhealthy',
        'service': SERVICE_NAME,
        'timestamp': timezone.now().isoformat(),
        'checks': checks,
    }, status=200 if all_healthy else 503)
