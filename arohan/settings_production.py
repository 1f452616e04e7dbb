"""
Production settings for arohan project.

Overrides the development settings in arohan/settings.py. Select with:
DJANGO_SETTINGS_MODULE=arohan.settings_production
"""

from decouple import config

from arohan.settings import *  # noqa: F401,F403
from arohan.settings import BASE_DIR, LOGGING

SECRET_KEY = config('SECRET_KEY')
if not SECRET_KEY:
    raise ValueError("SECRET_KEY must be set in .env file or environment variable")

JWT_SECRET = config('JWT_SECRET', default=SECRET_KEY)

DEBUG = config('DEBUG', default=False, cast=bool)

# Allowed hosts - set via .env file (comma-separated)
ALLOWED_HOSTS_STR = config('ALLOWED_HOSTS', default='')
ALLOWED_HOSTS = [host.strip() for host in ALLOWED_HOSTS_STR.split(',') if host.strip()]
if not ALLOWED_HOSTS:
    raise ValueError("ALLOWED_HOSTS must be set in .env file (comma-separated list)")

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.mysql',
        'NAME': config('DB_NAME', default='arohan'),
        'USER': config('DB_USER', default='root'),
        'PASSWORD': config('DB_PASSWORD'),
        'HOST': config('DB_HOST', default='localhost'),
        'PORT': config('DB_PORT', default='3306'),
        'OPTIONS': {
            'init_command': "SET sql_mode='STRICT_TRANS_TABLES'",
            'charset': 'utf8mb4',
        },
        'CONN_MAX_AGE': 600,
    }
}

STATIC_ROOT = config('STATIC_ROOT', default=str(BASE_DIR / 'staticfiles'))
MEDIA_ROOT = config('MEDIA_ROOT', default=str(BASE_DIR / 'media'))

SECURE_SSL_REDIRECT = config('SECURE_SSL_REDIRECT', default=True, cast=bool)
SESSION_COOKIE_SECURE = True
CSRF_COOKIE_SECURE = True
SECURE_CONTENT_TYPE_NOSNIFF = True
X_FRAME_OPTIONS = 'SAMEORIGIN'  # receipts open inline

SECURE_HSTS_SECONDS = 31536000
SECURE_HSTS_INCLUDE_SUBDOMAINS = True
SECURE_HSTS_PRELOAD = True

# Fernet key for bank details; no SECRET_KEY fallback in production
ENCRYPTION_KEY = config('ENCRYPTION_KEY')
if not ENCRYPTION_KEY:
    raise ValueError("ENCRYPTION_KEY must be set in production")

CELERY_BROKER_URL = config('CELERY_BROKER_URL', default=config('REDIS_URL', default='redis://127.0.0.1:6379/0'))
CELERY_RESULT_BACKEND = CELERY_BROKER_URL
CELERY_WORKER_HIJACK_ROOT_LOGGER = False

CACHES = {
    'default': {
        'BACKEND': 'django_redis.cache.RedisCache',
        'LOCATION': config('REDIS_URL', default='redis://127.0.0.1:6379/1'),
        'OPTIONS': {
            'CLIENT_CLASS': 'django_redis.client.DefaultClient',
        },
        'KEY_PREFIX': 'arohan',
        'TIMEOUT': 300,
    }
}

# Development logging plus a rotating file shared by every logger
LOGGING['handlers']['file'] = {
    'level': 'INFO',
    'class': 'logging.handlers.RotatingFileHandler',
    'filename': config('LOG_FILE', default=str(BASE_DIR / 'logs' / 'arohan.log')),
    'maxBytes': 1024 * 1024 * 15,
    'backupCount': 10,
    'formatter': 'verbose',
}
LOGGING['handlers']['console']['level'] = 'INFO'
LOGGING['root']['handlers'] = ['file', 'console']
LOGGING['loggers']['django.security'] = {'level': 'WARNING', 'propagate': False}
LOGGING['loggers']['celery'] = {'level': 'INFO', 'propagate': False}
for logger in LOGGING['loggers'].values():
    logger['handlers'] = ['file', 'console']
