"""
Django settings for the xrmsim security core.
"""
import os
from pathlib import Path
import environ
import sentry_sdk
from sentry_sdk.integrations.django import DjangoIntegration

# Build paths inside the project
BASE_DIR = Path(__file__).resolve().parent.parent

# Initialize environment variables
env = environ.Env(
    DEBUG=(bool, False),
    ALLOWED_HOSTS=(list, []),
    JSON_LOGS=(bool, False),
    LOG_LEVEL=(str, 'INFO'),
    SECURITY_ENABLED=(bool, False),
    SECURITY_ENFORCE_RECORD_LEVEL=(bool, False),
    SECURITY_ENFORCE_FIELD_LEVEL=(bool, False),
    SECURITY_ENFORCE_PRIVILEGE_DEPTH=(bool, False),
    SECURITY_CROSS_BUSINESS_UNIT_ASSIGNMENT=(bool, False),
    SECURITY_AUTO_GRANT_ADMINISTRATOR=(bool, True),
    SECURITY_INHERIT_TEAM_ROLES=(bool, False),
    SECURITY_STRICT_FIELD_SECURITY=(bool, False),
)

# Read .env file if it exists
environ.Env.read_env(os.path.join(BASE_DIR, '.env'))

# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = env('SECRET_KEY', default='dev-only-xrmsim-secret-key-change-in-production-0123456789')

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = env('DEBUG')

ALLOWED_HOSTS = env('ALLOWED_HOSTS')

# Application definition
INSTALLED_APPS = [
    'django.contrib.auth',
    'django.contrib.contenttypes',

    # Third-party apps
    'rest_framework',

    # xrmsim apps
    'apps.core',
    'apps.organizations',
    'apps.security',
    'apps.records',
]

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.middleware.common.CommonMiddleware',
]

ROOT_URLCONF = 'config.urls'

# Database
DATABASES = {
    'default': env.db('DATABASE_URL', default=f"sqlite:///{BASE_DIR / 'db.sqlite3'}"),
}

# Internationalization
LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'UTC'
USE_I18N = True
USE_TZ = True

# Default primary key field type
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# REST Framework
REST_FRAMEWORK = {
    'DEFAULT_RENDERER_CLASSES': [
        'rest_framework.renderers.JSONRenderer',
    ],
    'DEFAULT_PARSER_CLASSES': [
        'rest_framework.parsers.JSONParser',
    ],
    # Callers identify themselves with X-CALLER-ID, checked by RecordAccessPermission
    'DEFAULT_AUTHENTICATION_CLASSES': [],
    'DEFAULT_PERMISSION_CLASSES': [],
    'UNAUTHENTICATED_USER': None,
    'EXCEPTION_HANDLER': 'apps.core.exceptions.custom_exception_handler',
}

# ============================================================================
# SECURITY CORE
# ============================================================================

# Read once per process by apps.security.configuration.get_security_configuration()
SECURITY = {
    'SECURITY_ENABLED': env('SECURITY_ENABLED'),
    'ENFORCE_RECORD_LEVEL_SECURITY': env('SECURITY_ENFORCE_RECORD_LEVEL'),
    'ENFORCE_FIELD_LEVEL_SECURITY': env('SECURITY_ENFORCE_FIELD_LEVEL'),
    'ENFORCE_PRIVILEGE_DEPTH': env('SECURITY_ENFORCE_PRIVILEGE_DEPTH'),
    'USE_CROSS_BUSINESS_UNIT_ASSIGNMENT': env('SECURITY_CROSS_BUSINESS_UNIT_ASSIGNMENT'),
    'ADMINISTRATOR_ROLE_ID': env('SECURITY_ADMINISTRATOR_ROLE_ID', default='c52d9ca4-3d13-43e7-9c23-d6c6f5fdd425'),
    'AUTO_GRANT_ADMINISTRATOR_PRIVILEGES': env('SECURITY_AUTO_GRANT_ADMINISTRATOR'),
    'INHERIT_TEAM_ROLES': env('SECURITY_INHERIT_TEAM_ROLES'),
    'STRICT_FIELD_SECURITY': env('SECURITY_STRICT_FIELD_SECURITY'),
}

# Logging Configuration
LOG_LEVEL = env('LOG_LEVEL')
JSON_LOGS = env('JSON_LOGS')

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'json': {
            '()': 'apps.core.logging.JSONFormatter',
        },
        'verbose': {
            'format': '{levelname} {asctime} {module} {process:d} {thread:d} {message}',
            'style': '{',
        },
    },
    'filters': {
        'mask_pii': {
            '()': 'apps.core.logging.PIIMaskingFilter',
        },
    },
    'handlers': {
        'console': {
            'level': LOG_LEVEL,
            'class': 'logging.StreamHandler',
            'formatter': 'json' if JSON_LOGS else 'verbose',
            'filters': ['mask_pii'],
        },
    },
    'root': {
        'handlers': ['console'],
        'level': LOG_LEVEL,
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
        'apps': {
            'handlers': ['console'],
            'level': LOG_LEVEL,
            'propagate': False,
        },
        'security': {
            'handlers': ['console'],
            'level': 'INFO',
            'propagate': False,
        },
    },
}

# Sentry Configuration
SENTRY_DSN = env('SENTRY_DSN', default=None)
SENTRY_ENVIRONMENT = env('SENTRY_ENVIRONMENT', default='development')

if SENTRY_DSN:
    sentry_sdk.init(
        dsn=SENTRY_DSN,
        integrations=[
            DjangoIntegration(),
        ],
        environment=SENTRY_ENVIRONMENT,
        traces_sample_rate=0.1 if not DEBUG else 1.0,
        send_default_pii=False,
        attach_stacktrace=True,
    )
