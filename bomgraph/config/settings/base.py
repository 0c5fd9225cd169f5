"""
Base settings for the bomgraph engine.

Only what the engine needs: REST framework for boundary serializers,
logging, and the BOM_ENGINE knobs. There is no database.
"""

from decimal import Decimal
from pathlib import Path

from decouple import config

BASE_DIR = Path(__file__).resolve().parent.parent.parent

# =============================================================================
# CORE
# =============================================================================
SECRET_KEY = config('SECRET_KEY', default='bomgraph-insecure-local-key')
DEBUG = config('DEBUG', default=False, cast=bool)

INSTALLED_APPS = [
    'rest_framework',
]

DATABASES = {}

LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True

# =============================================================================
# REST FRAMEWORK
# =============================================================================
REST_FRAMEWORK = {
    'COERCE_DECIMAL_TO_STRING': True,
    'UNAUTHENTICATED_USER': None,
}

# =============================================================================
# BOM ENGINE
# =============================================================================
BOM_ENGINE = {
    'ROOT_LEVEL': config('BOM_ROOT_LEVEL', default=0, cast=int),
    'MAX_TRAVERSAL_DEPTH': config('BOM_MAX_TRAVERSAL_DEPTH', default=50, cast=int),
    'MAX_TRAVERSAL_NODES': config('BOM_MAX_TRAVERSAL_NODES', default=10000, cast=int),
    'QUANTITY_DECIMAL_PLACES': config('BOM_QUANTITY_DECIMAL_PLACES', default=4, cast=int),
    'MONEY_DECIMAL_PLACES': config('BOM_MONEY_DECIMAL_PLACES', default=2, cast=int),
    'CRITICAL_COST_THRESHOLD': config('BOM_CRITICAL_COST_THRESHOLD', default='10000', cast=Decimal),
    'SIGNIFICANCE_HIGH_THRESHOLD': config('BOM_SIGNIFICANCE_HIGH', default='100000', cast=Decimal),
    'SIGNIFICANCE_MEDIUM_THRESHOLD': config('BOM_SIGNIFICANCE_MEDIUM', default='10000', cast=Decimal),
    'SIGNIFICANCE_REMOVAL_HIGH_THRESHOLD': config('BOM_SIGNIFICANCE_REMOVAL_HIGH', default='50000', cast=Decimal),
}

# =============================================================================
# LOGGING
# =============================================================================
LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{asctime} | {levelname} | {name} | {message}',
            'style': '{',
        },
        'simple': {
            'format': '{levelname} {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': 'WARNING',
    },
    'loggers': {
        'bomgraph': {
            'handlers': [],
            'level': config('BOM_LOG_LEVEL', default='INFO'),
            'propagate': True,
        },
    },
}
