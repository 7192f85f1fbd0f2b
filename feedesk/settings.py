"""
Django settings for feedesk project.

Scope:
- Students, payments and fee configuration
- Class, bus stop, month and section rollups
- Teacher, section head and clerk collection ledgers
- Payment notifications and data management
"""
import os
from pathlib import Path


BASE_DIR = Path(__file__).resolve().parent.parent


DEBUG = os.getenv('DJANGO_DEBUG', 'False').lower() in {'1', 'true', 'yes'}
SECRET_KEY = os.getenv(
    'DJANGO_SECRET_KEY',
    'change-this-secret-key-in-production-7c1d2f4e9a8b4c3d9e0f1a2b3c4d5e6f',
)
ALLOWED_HOSTS = [
    host.strip()
    for host in os.getenv('DJANGO_ALLOWED_HOSTS', 'localhost,127.0.0.1,testserver').split(',')
    if host.strip()
]


INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'apps.core.users.apps.UsersConfig',
    'apps.core.students.apps.StudentsConfig',
    'apps.core.fees.apps.FeesConfig',
    'apps.core.datastore.apps.DatastoreConfig',
    'apps.operations.reports.apps.ReportsConfig',
    'apps.operations.collections.apps.CollectionsConfig',
    'apps.operations.communication.apps.CommunicationConfig',
]


MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]


ROOT_URLCONF = 'feedesk.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [BASE_DIR / 'templates'],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
                'apps.core.users.context_processors.role_context',
            ],
        },
    },
]

WSGI_APPLICATION = 'feedesk.wsgi.application'


DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': BASE_DIR / 'db.sqlite3',
    }
}


AUTH_PASSWORD_VALIDATORS = [
    {
        'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator',
    },
]


LANGUAGE_CODE = 'en-us'
TIME_ZONE = os.getenv('DJANGO_TIME_ZONE', 'Asia/Kolkata')
USE_I18N = True
USE_TZ = True


STATIC_URL = 'static/'
AUTH_USER_MODEL = 'users.User'
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'


CSRF_COOKIE_SECURE = not DEBUG
SESSION_COOKIE_SECURE = not DEBUG
SECURE_SSL_REDIRECT = os.getenv('DJANGO_SECURE_SSL_REDIRECT', 'False').lower() in {'1', 'true', 'yes'}
SECURE_PROXY_SSL_HEADER = ('HTTP_X_FORWARDED_PROTO', 'https')


LOGIN_REDIRECT_URL = '/dashboard/'
LOGOUT_REDIRECT_URL = '/login/'
LOGIN_URL = '/login/'

TEST_RUNNER = 'apps.core.test_runner.InstalledAppsOnlyDiscoverRunner'


LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '{asctime} {levelname} {name} {message}',
            'style': '{',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'loggers': {
        'apps': {
            'handlers': ['console'],
            'level': os.getenv('FEEDESK_LOG_LEVEL', 'INFO'),
            'propagate': False,
        },
    },
}


EMAIL_BACKEND = os.getenv('DJANGO_EMAIL_BACKEND', 'django.core.mail.backends.console.EmailBackend')
DEFAULT_FROM_EMAIL = os.getenv('DJANGO_DEFAULT_FROM_EMAIL', 'feedesk@localhost')


FEEDESK_SCHOOL_NAME = os.getenv('FEEDESK_SCHOOL_NAME', 'Sarvodaya School')
FEEDESK_STORE_BACKEND = os.getenv('FEEDESK_STORE_BACKEND', 'database')
FEEDESK_LOCAL_STORE_PATH = Path(os.getenv('FEEDESK_LOCAL_STORE_PATH', BASE_DIR / 'feedesk_data.json'))
FEEDESK_SMS_BACKEND = os.getenv(
    'FEEDESK_SMS_BACKEND',
    'apps.operations.communication.backends.LoggingBackend',
)
FEEDESK_WHATSAPP_BACKEND = os.getenv(
    'FEEDESK_WHATSAPP_BACKEND',
    'apps.operations.communication.backends.LoggingBackend',
)
FEEDESK_REPORT_RECIPIENTS = [
    address.strip()
    for address in os.getenv('FEEDESK_REPORT_RECIPIENTS', '').split(',')
    if address.strip()
]

FEEDESK_DEFAULT_DEVELOPMENT_FEES = {
    '1': 5000, '2': 5500, '3': 6000, '4': 6500, '5': 7000,
    '6': 7500, '7': 8000, '8': 8500, '9': 9000, '10': 9500,
    '11-A': 12000, '11-B': 12000, '11-C': 12000, '11-D': 12000, '11-E': 12000,
    '12-A': 13000, '12-B': 13000, '12-C': 13000, '12-D': 13000, '12-E': 13000,
}
FEEDESK_DEFAULT_BUS_STOPS = {
    'Main Gate': 800,
    'Market Square': 900,
    'Railway Station': 1000,
    'City Center': 850,
    'Hospital Junction': 750,
    'College Road': 950,
    'Bus Stand': 700,
    'Temple Road': 800,
}
