"""
Test settings for UEX Logistics.

Runs the suite without PostgreSQL, Redis or a Celery worker.
"""

import tempfile

from .settings import *  # noqa: F401,F403

DEBUG = False

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
    }
}

CHANNEL_LAYERS = {
    'default': {
        'BACKEND': 'channels.layers.InMemoryChannelLayer',
    },
}

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_BROKER_URL = 'memory://'
CELERY_RESULT_BACKEND = 'cache+memory://'

MEDIA_ROOT = tempfile.mkdtemp(prefix='uex-media-')

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

SITE_URL = 'http://testserver'

# Counters live in the shared locmem cache; middleware tests switch this back on
RATE_LIMIT_ENABLED = False
