"""
WSGI entry point for UEX Logistics (HTTP only, no WebSockets).
"""

import os

from django.core.wsgi import get_wsgi_application

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'uex_core.settings')

application = get_wsgi_application()
