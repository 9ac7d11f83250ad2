"""
Celery app for UEX Logistics.

Workers run the periodic maintenance jobs declared in
settings.CELERY_BEAT_SCHEDULE (timeline reconciliation).
"""

import os
from celery import Celery

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'uex_core.settings')

app = Celery('uex')

# All CELERY_* Django settings
app.config_from_object('django.conf:settings', namespace='CELERY')

app.autodiscover_tasks(['logistics'])
