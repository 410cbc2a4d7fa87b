"""
Django settings for the storefront project.

Values come from environment variables (optionally loaded from a .env file
at the repository root).
"""
import os
from datetime import timedelta
from decimal import Decimal
from pathlib import Path

from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent.parent

load_dotenv(BASE_DIR / '.env')


def env_bool(name, default=False):
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def env_list(name, default=''):
    return [item.strip() for item in os.getenv(name, default).split(',') if item.strip()]


SECRET_KEY = os.getenv('DJANGO_SECRET_KEY', 'dev-insecure-secret-key-change-me')
DEBUG = env_bool('DJANGO_DEBUG', True)
ALLOWED_HOSTS = env_list('DJANGO_ALLOWED_HOSTS', 'localhost,127.0.0.1,testserver')

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'rest_framework',
    'rest_framework_simplejwt',
    'django_filters',
    'corsheaders',
    'storefront.stores',
    'storefront.core',
    'storefront.catalog',
    'storefront.inventory',
    'storefront.discounts',
    'storefront.cart',
    'storefront.orders',
    'storefront.reports',
]

MIDDLEWARE = [
    'corsheaders.middleware.CorsMiddleware',
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'storefront.config.urls'
WSGI_APPLICATION = 'storefront.config.wsgi.application'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

# Database
DB_ENGINE = os.getenv('DB_ENGINE', 'django.db.backends.sqlite3')
if DB_ENGINE.endswith('sqlite3'):
    DATABASES = {
        'default': {
            'ENGINE': DB_ENGINE,
            'NAME': os.getenv('DB_NAME', str(BASE_DIR / 'db.sqlite3')),
        }
    }
else:
    DATABASES = {
        'default': {
            'ENGINE': DB_ENGINE,
            'NAME': os.getenv('DB_NAME', 'storefront'),
            'USER': os.getenv('DB_USER', ''),
            'PASSWORD': os.getenv('DB_PASSWORD', ''),
            'HOST': os.getenv('DB_HOST', 'localhost'),
            'PORT': os.getenv('DB_PORT', '5432'),
            'CONN_MAX_AGE': int(os.getenv('DB_CONN_MAX_AGE', '60')),
        }
    }

# Cache: Redis when REDIS_URL is configured, process memory otherwise
REDIS_URL = os.getenv('REDIS_URL')
if REDIS_URL:
    CACHES = {
        'default': {
            'BACKEND': 'django_redis.cache.RedisCache',
            'LOCATION': REDIS_URL,
            'OPTIONS': {
                'CLIENT_CLASS': 'django_redis.client.DefaultClient',
                'IGNORE_EXCEPTIONS': True,
            },
            'KEY_PREFIX': 'storefront',
        }
    }
else:
    CACHES = {
        'default': {
            'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
            'LOCATION': 'storefront',
        }
    }

AUTH_USER_MODEL = 'core.User'

AUTH_PASSWORD_VALIDATORS = [
    {'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator', 'OPTIONS': {'min_length': 8}},
    {'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator'},
    {'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator'},
]

LANGUAGE_CODE = 'en-us'
TIME_ZONE = os.getenv('TIME_ZONE', 'Asia/Jakarta')
USE_I18N = True
USE_TZ = True

STATIC_URL = '/static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'
MEDIA_URL = '/media/'
MEDIA_ROOT = Path(os.getenv('MEDIA_ROOT', str(BASE_DIR / 'media')))

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# REST framework
REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': (
        'rest_framework_simplejwt.authentication.JWTAuthentication',
    ),
    'DEFAULT_PERMISSION_CLASSES': (
        'rest_framework.permissions.IsAuthenticated',
    ),
    'DEFAULT_FILTER_BACKENDS': ('django_filters.rest_framework.DjangoFilterBackend',),
    'EXCEPTION_HANDLER': 'storefront.core.exceptions.storefront_exception_handler',
    'TEST_REQUEST_DEFAULT_FORMAT': 'json',
    'COERCE_DECIMAL_TO_STRING': False,
}

SIMPLE_JWT = {
    'ACCESS_TOKEN_LIFETIME': timedelta(minutes=int(os.getenv('JWT_ACCESS_MINUTES', '60'))),
    'REFRESH_TOKEN_LIFETIME': timedelta(days=int(os.getenv('JWT_REFRESH_DAYS', '7'))),
    'ROTATE_REFRESH_TOKENS': True,
    'AUTH_HEADER_TYPES': ('Bearer',),
}

# CORS for the browser storefront
CORS_ALLOWED_ORIGINS = env_list('CORS_ALLOWED_ORIGINS', 'http://localhost:3000')
CORS_ALLOW_CREDENTIALS = True

# Email
EMAIL_BACKEND = os.getenv('EMAIL_BACKEND', 'django.core.mail.backends.console.EmailBackend')
EMAIL_HOST = os.getenv('EMAIL_HOST', 'localhost')
EMAIL_PORT = int(os.getenv('EMAIL_PORT', '587'))
EMAIL_HOST_USER = os.getenv('EMAIL_HOST_USER', '')
EMAIL_HOST_PASSWORD = os.getenv('EMAIL_HOST_PASSWORD', '')
EMAIL_USE_TLS = env_bool('EMAIL_USE_TLS', True)
DEFAULT_FROM_EMAIL = os.getenv('DEFAULT_FROM_EMAIL', 'noreply@storefront.local')

FRONTEND_URL = os.getenv('FRONTEND_URL', 'http://localhost:3000')

# Business rules
STOREFRONT = {
    'CURRENCY': os.getenv('STOREFRONT_CURRENCY', 'IDR'),
    'DEFAULT_PAGE_SIZE': 10,
    'MAX_PAGE_SIZE': 100,
    'MAX_DELIVERY_DISTANCE_KM': float(os.getenv('MAX_DELIVERY_DISTANCE_KM', '100')),
    'SHIPPING_RATE_PER_KM': Decimal(os.getenv('SHIPPING_RATE_PER_KM', '1000')),
    'SHIPPING_RATE_PER_KG': Decimal(os.getenv('SHIPPING_RATE_PER_KG', '500')),
    'SHIPPING_SERVICES': [
        {
            'code': 'REG',
            'name': 'Regular',
            'description': 'Standard delivery',
            'base_cost': Decimal('15000'),
            'etd': '2-3 days',
            'max_distance_km': 100,
        },
        {
            'code': 'EXP',
            'name': 'Express',
            'description': 'Fast delivery',
            'base_cost': Decimal('30000'),
            'etd': '1-2 days',
            'max_distance_km': 50,
        },
        {
            'code': 'SDS',
            'name': 'Same Day',
            'description': 'Same day delivery',
            'base_cost': Decimal('50000'),
            'etd': 'Same day',
            'max_distance_km': 25,
        },
    ],
    'PAYMENT_DEADLINE_HOURS': int(os.getenv('PAYMENT_DEADLINE_HOURS', '1')),
    'AUTO_CONFIRM_DAYS': int(os.getenv('AUTO_CONFIRM_DAYS', '2')),
    'PAYMENT_PROOF_MAX_BYTES': 1024 * 1024,
    'PAYMENT_PROOF_EXTENSIONS': ['jpg', 'jpeg', 'png'],
    'VERIFICATION_TOKEN_HOURS': 1,
    'PASSWORD_RESET_TOKEN_HOURS': 1,
    'REFERRAL_NEW_MEMBER_VOUCHER': {
        'description': 'Welcome voucher for joining with a referral code',
        'type': 'PERCENTAGE',
        'target': 'TRANSACTION',
        'value': Decimal('10'),
        'min_purchase': Decimal('0'),
        'max_discount': Decimal('50000'),
        'valid_days': 30,
    },
    'REFERRAL_REWARD_VOUCHER': {
        'description': 'Reward for referring a new member',
        'type': 'NOMINAL',
        'target': 'TRANSACTION',
        'value': Decimal('25000'),
        'min_purchase': Decimal('100000'),
        'max_discount': Decimal('25000'),
        'valid_days': 30,
    },
    'HOMEPAGE_CACHE_TTL': 120,
    'CATEGORY_LIST_CACHE_TTL': 300,
    'HOMEPAGE_FEATURED_LINKS': [
        {'name': 'Promotions', 'url': '/promotions', 'icon': 'tag'},
        {'name': 'All Products', 'url': '/products', 'icon': 'grid'},
        {'name': 'My Orders', 'url': '/orders', 'icon': 'package'},
    ],
    'HOMEPAGE_FOOTER': {
        'companyInfo': {
            'name': os.getenv('STOREFRONT_NAME', 'Storefront'),
            'description': 'Groceries from the store nearest to you',
            'contactEmail': os.getenv('STOREFRONT_CONTACT_EMAIL', 'support@storefront.local'),
        },
        'quickLinks': [
            {'name': 'About Us', 'url': '/about'},
            {'name': 'Contact', 'url': '/contact'},
            {'name': 'FAQ', 'url': '/faq'},
            {'name': 'Terms', 'url': '/terms'},
            {'name': 'Privacy', 'url': '/privacy'},
        ],
        'socialMedia': [],
    },
}

# Logging
LOG_LEVEL = os.getenv('DJANGO_LOG_LEVEL', 'INFO')

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{asctime} {levelname} {name} {message}',
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
        'django': {
            'handlers': ['console'],
            'level': os.getenv('DJANGO_FRAMEWORK_LOG_LEVEL', 'WARNING'),
            'propagate': False,
        },
        'storefront': {
            'handlers': ['console'],
            'level': LOG_LEVEL,
            'propagate': False,
        },
    },
}
