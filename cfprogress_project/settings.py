from pathlib import Path

from decouple import config, Csv
from kombu import Queue
import dj_database_url

from tracker.cron import parse_cron

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent

# Quick-start development settings - unsuitable for production
SECRET_KEY = config('SECRET_KEY', default='django-insecure-cfprogress-dev-only')

DEBUG = config('DEBUG', default=False, cast=bool)

ALLOWED_HOSTS = config('ALLOWED_HOSTS', default='localhost,127.0.0.1,testserver', cast=Csv())

# Application definition
INSTALLED_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',

    # Local
    'tracker',
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

ROOT_URLCONF = 'cfprogress_project.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [BASE_DIR / 'templates'],
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

WSGI_APPLICATION = 'cfprogress_project.wsgi.application'

# Database
# Uses DATABASE_URL from .env
DATABASES = {
    'default': dj_database_url.config(
        default=config('DATABASE_URL', default='sqlite:///db.sqlite3')
    )
}

# Internationalization
LANGUAGE_CODE = 'en-us'
TIME_ZONE = config('TIME_ZONE', default='Asia/Kolkata')
USE_I18N = True
USE_TZ = True

# Static files (CSS, JavaScript, Images)
STATIC_URL = 'static/'

# Session/CSRF security
SESSION_COOKIE_HTTPONLY = True
if not DEBUG:
    SESSION_COOKIE_SECURE = True
    CSRF_COOKIE_SECURE = True

LOGIN_URL = '/admin/login/'

# Default primary key field type
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# Email
EMAIL_HOST = config('EMAIL_HOST', default='')
if EMAIL_HOST:
    EMAIL_BACKEND = 'django.core.mail.backends.smtp.EmailBackend'
    EMAIL_PORT = config('EMAIL_PORT', default=587, cast=int)
    EMAIL_HOST_USER = config('EMAIL_HOST_USER', default='')
    EMAIL_HOST_PASSWORD = config('EMAIL_HOST_PASSWORD', default='')
    EMAIL_USE_SSL = EMAIL_PORT == 465
    EMAIL_USE_TLS = config('EMAIL_USE_TLS', default=not EMAIL_USE_SSL, cast=bool)
else:
    EMAIL_BACKEND = 'django.core.mail.backends.console.EmailBackend'
DEFAULT_FROM_EMAIL = config(
    'DEFAULT_FROM_EMAIL',
    default='Student Progress System <no-reply@example.com>',
)

# Logging
LOG_LEVEL = config('LOG_LEVEL', default='INFO')
LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'simple': {
            'format': '%(asctime)s %(levelname)s %(name)s: %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'simple',
        },
    },
    'loggers': {
        'tracker': {
            'handlers': ['console'],
            'level': LOG_LEVEL,
            'propagate': False,
        },
    },
}

# Sync engine
CODEFORCES_API_URL = config('CODEFORCES_API_URL', default='https://codeforces.com/api')
CODEFORCES_TIMEOUT_SECONDS = config('CODEFORCES_TIMEOUT_SECONDS', default=10, cast=int)
CODEFORCES_SUBMISSIONS_PAGE_SIZE = config('CODEFORCES_SUBMISSIONS_PAGE_SIZE', default=1000, cast=int)
SYNC_PACING_SECONDS = config('SYNC_PACING_SECONDS', default=1.5, cast=float)
SYNC_SCHEDULE_CRON = config('SYNC_SCHEDULE_CRON', default='0 2 * * *')
SYNC_SCHEDULE_TIMEZONE = config('SYNC_SCHEDULE_TIMEZONE', default='Asia/Kolkata')
SYNC_LOCK_TIMEOUT_SECONDS = config('SYNC_LOCK_TIMEOUT_SECONDS', default=300, cast=int)
SYNC_SWEEP_LOCK_SECONDS = config('SYNC_SWEEP_LOCK_SECONDS', default=6 * 60 * 60, cast=int)
INACTIVITY_WINDOW_DAYS = config('INACTIVITY_WINDOW_DAYS', default=7, cast=int)
REDIS_URL = config('REDIS_URL', default='redis://localhost:6379/0')

# Celery Configuration
CELERY_BROKER_URL = config('CELERY_BROKER_URL', default=REDIS_URL)
CELERY_RESULT_BACKEND = config('CELERY_RESULT_BACKEND', default=REDIS_URL)
CELERY_ACCEPT_CONTENT = ['json']
CELERY_TASK_SERIALIZER = 'json'
CELERY_RESULT_SERIALIZER = 'json'
CELERY_TIMEZONE = SYNC_SCHEDULE_TIMEZONE
CELERY_TASK_DEFAULT_QUEUE = 'celery'
CELERY_TASK_QUEUES = (
    Queue('celery'),
    Queue('sync_roster'),
)
CELERY_TASK_ROUTES = {
    'tracker.tasks.sync_all_students': {'queue': 'sync_roster'},
}
CELERY_BEAT_SCHEDULE = {
    'sync-roster-daily': {
        'task': 'tracker.tasks.sync_all_students',
        'schedule': parse_cron(SYNC_SCHEDULE_CRON),
    },
}
