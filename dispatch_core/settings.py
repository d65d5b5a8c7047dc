import os
import sys
import logging
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

# Try to load environment variables from file
try:
    from dispatch_core.utils.env_loader import load_env_from_file
    env_paths = [
        os.path.join(BASE_DIR, 'env_var.env'),  # Project root
        os.path.join(os.path.dirname(__file__), 'env_var.env'),  # Project package
    ]

    for path in env_paths:
        if os.path.exists(path) and load_env_from_file(path):
            break
except ImportError:
    # Module might not be available during initial imports
    pass

# Determine if we're in test mode
TESTING = 'test' in sys.argv or 'pytest' in sys.modules

DEBUG = os.getenv('DEBUG', 'False').lower() == 'true'

SECRET_KEY = os.getenv('DJANGO_SECRET_KEY')
if not SECRET_KEY:
    if not (DEBUG or TESTING):
        raise ValueError("DJANGO_SECRET_KEY environment variable is required.")
    SECRET_KEY = 'insecure-dev-key-do-not-use-in-production'
    logging.warning("Using insecure development SECRET_KEY.")

ALLOWED_HOSTS = [h.strip() for h in os.getenv('ALLOWED_HOSTS', 'localhost,127.0.0.1').split(',') if h.strip()]

INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'corsheaders',
    'rest_framework',
    'django_filters',
    'drf_yasg',
    'accounts',
    'drivers',
    'tasks.apps.TasksConfig',
    'inbox.apps.InboxConfig',
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

ROOT_URLCONF = 'dispatch_core.urls'
WSGI_APPLICATION = 'dispatch_core.wsgi.application'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

DATABASES = {
    'default': {
        'ENGINE': os.getenv('DB_ENGINE', 'django.db.backends.sqlite3'),
        'NAME': os.getenv('DB_NAME', str(BASE_DIR / 'db.sqlite3')),
        'USER': os.getenv('DB_USER', ''),
        'PASSWORD': os.getenv('DB_PASSWORD', ''),
        'HOST': os.getenv('DB_HOST', ''),
        'PORT': os.getenv('DB_PORT', ''),
    }
}

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

LANGUAGE_CODE = 'en-us'
TIME_ZONE = os.getenv('TIME_ZONE', 'UTC')
USE_I18N = True
USE_TZ = True

STATIC_URL = 'static/'

# CORS
FRONTEND_ORIGIN = os.getenv('FRONTEND_ORIGIN')
CORS_ALLOWED_ORIGINS = [o.strip() for o in (FRONTEND_ORIGIN or '').split(',') if o.strip()]
CORS_ALLOW_CREDENTIALS = True
CORS_ALLOW_METHODS = ['GET', 'POST', 'PUT', 'DELETE', 'OPTIONS']

REST_FRAMEWORK = {
    'DEFAULT_AUTHENTICATION_CLASSES': [
        'accounts.authentication.JWTAuthentication',
    ],
    'DEFAULT_PERMISSION_CLASSES': [
        'rest_framework.permissions.AllowAny',
    ],
    'DEFAULT_FILTER_BACKENDS': [
        'django_filters.rest_framework.DjangoFilterBackend',
    ],
}

SWAGGER_SETTINGS = {
    'SECURITY_DEFINITIONS': {
        'Bearer': {'type': 'apiKey', 'name': 'Authorization', 'in': 'header'},
    },
    'USE_SESSION_AUTH': False,
}

# Auth tokens
JWT_SECRET = os.getenv('JWT_SECRET')
if not JWT_SECRET:
    if not (DEBUG or TESTING):
        raise ValueError("JWT_SECRET environment variable is required.")
    JWT_SECRET = 'insecure-dev-jwt-secret'
JWT_ALGORITHM = 'HS256'
JWT_EXPIRY_HOURS = 10

# Upload limits
MAX_SPREADSHEET_BYTES = int(os.getenv('MAX_SPREADSHEET_BYTES', 10 * 1024 * 1024))
MAX_POD_IMAGE_BYTES = int(os.getenv('MAX_POD_IMAGE_BYTES', 15 * 1024 * 1024))
DATA_UPLOAD_MAX_MEMORY_SIZE = MAX_POD_IMAGE_BYTES * 2 + 1024 * 1024

# Task pipeline
COMPLETED_TASK_WINDOW_DAYS = 2
ASSIGNED_TASK_LIST_LIMIT = 200

# OneDrive (POD archive)
ONEDRIVE_CLIENT_ID = os.getenv('ONEDRIVE_CLIENT_ID')
ONEDRIVE_CLIENT_SECRET = os.getenv('ONEDRIVE_CLIENT_SECRET')
ONEDRIVE_TENANT_ID = os.getenv('ONEDRIVE_TENANT_ID')
ONEDRIVE_REFRESH_TOKEN = os.getenv('ONEDRIVE_REFRESH_TOKEN')
ONEDRIVE_REDIRECT_URI = os.getenv('ONEDRIVE_REDIRECT_URI')
ONEDRIVE_USER_ID = os.getenv('ONEDRIVE_USER_ID')
ONEDRIVE_FOLDER = os.getenv('ONEDRIVE_FOLDER', 'FleetPODs')
ONEDRIVE_UPLOAD_TIMEOUT_SECONDS = 60
ONEDRIVE_TOKEN_TIMEOUT_SECONDS = 10
ONEDRIVE_MAX_RETRIES = 3

# Mailbox automation
GMAIL_USER = os.getenv('GMAIL_USER')
GMAIL_APP_PASSWORD = os.getenv('GMAIL_APP_PASSWORD')
IMAP_HOST = os.getenv('IMAP_HOST', 'imap.gmail.com')
IMAP_PORT = int(os.getenv('IMAP_PORT', 993))
MAILBOX_FOLDER = os.getenv('MAILBOX_FOLDER', 'INBOX')
MAILBOX_POLL_INTERVAL_SECONDS = int(os.getenv('MAILBOX_POLL_INTERVAL_SECONDS', 60))
MAILBOX_IN_FLIGHT_LIMIT = 256
TASK_SHEET_KEYWORD = os.getenv('TASK_SHEET_KEYWORD', 'tasksheet')
INVOICE_SHEET_KEYWORD = os.getenv('INVOICE_SHEET_KEYWORD', 'invoicesheet')

# Outgoing mail (missing invoice alerts)
EMAIL_BACKEND = os.getenv('EMAIL_BACKEND', 'django.core.mail.backends.smtp.EmailBackend')
EMAIL_HOST = os.getenv('EMAIL_HOST', 'smtp.gmail.com')
EMAIL_PORT = int(os.getenv('EMAIL_PORT', 587))
EMAIL_HOST_USER = os.getenv('EMAIL_HOST_USER', GMAIL_USER or '')
EMAIL_HOST_PASSWORD = os.getenv('EMAIL_HOST_PASSWORD', GMAIL_APP_PASSWORD or '')
EMAIL_USE_TLS = os.getenv('EMAIL_USE_TLS', 'True').lower() == 'true'
EMAIL_TIMEOUT = 30

ALERT_EMAIL_FROM = os.getenv('ALERT_EMAIL_FROM', EMAIL_HOST_USER)
ALERT_EMAIL_TO = os.getenv('ALERT_EMAIL_TO')
ALERT_EMAIL_SUBJECT = os.getenv('ALERT_EMAIL_SUBJECT', 'Assigned tasks missing invoice numbers')
ALERT_FALLBACK_EMAIL_BACKEND = os.getenv(
    'ALERT_FALLBACK_EMAIL_BACKEND', 'django.core.mail.backends.filebased.EmailBackend'
)
EMAIL_FILE_PATH = os.getenv('EMAIL_FILE_PATH', str(BASE_DIR / 'sent_alerts'))
ALERT_SCAN_LIMIT = 100

# Retry settings for outbound calls
ALERT_MAX_RETRIES = 3
ALERT_BACKOFF_FACTOR = 2  # Exponential backoff
ALERT_RETRY_DELAY_SECONDS = 1

LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{asctime} {levelname} {name}: {message}',
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
        'level': 'INFO',
    },
    'loggers': {
        app: {
            'handlers': ['console'],
            'level': LOG_LEVEL,
            'propagate': False,
        }
        for app in ('dispatch_core', 'tasks', 'drivers', 'accounts', 'inbox')
    },
}
