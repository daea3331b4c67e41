from pathlib import Path
from decouple import config, Csv

BASE_DIR = Path(__file__).resolve().parent.parent.parent

SECRET_KEY = config("SECRET_KEY", default="dev-only-not-secure")
DEBUG = config("DEBUG", cast=bool, default=False)
ALLOWED_HOSTS = config("DJANGO_ALLOWED_HOSTS", cast=Csv(), default="localhost,127.0.0.1")

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "rest_framework",
    "rest_framework_simplejwt",
    "drf_spectacular",
    "corsheaders",
    "apps.authentication",
    "apps.merchants",
    "apps.billing",
]

MIDDLEWARE = [
    "corsheaders.middleware.CorsMiddleware",
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
]

ROOT_URLCONF = "core.urls"
WSGI_APPLICATION = "core.wsgi.application"
ASGI_APPLICATION = "core.asgi.application"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

# SQLite fallback; environment modules override with MySQL
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": BASE_DIR / "db.sqlite3",
    }
}

AUTH_USER_MODEL = "authentication.User"

LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": (
        "rest_framework_simplejwt.authentication.JWTAuthentication",
    ),
    "DEFAULT_PERMISSION_CLASSES": (
        "rest_framework.permissions.IsAuthenticated",
    ),
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
}

SPECTACULAR_SETTINGS = {
    "TITLE": "Recurring Billing API",
    "VERSION": "1.0.0",
}

# Celery
CELERY_BROKER_URL = config("CELERY_BROKER_URL", default="redis://localhost:6379/0")
CELERY_RESULT_BACKEND = config("CELERY_RESULT_BACKEND", default="redis://localhost:6379/1")
CELERY_RESULT_SERIALIZER = "json"
CELERY_TASK_SERIALIZER = "json"
CELERY_ACCEPT_CONTENT = ["json"]
CELERY_TIMEZONE = "UTC"
CELERY_TASK_TIME_LIMIT = config("CELERY_TASK_TIME_LIMIT", cast=int, default=900)
CELERY_TASK_SOFT_TIME_LIMIT = config("CELERY_TASK_SOFT_TIME_LIMIT", cast=int, default=840)

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
    }
}

# Billing engine
APP_ORIGIN = config("APP_ORIGIN", default="http://localhost:3000")
INTERNAL_API_KEY = config("INTERNAL_API_KEY", default="")
PAYMENT_REQUEST_API_URL = config(
    "PAYMENT_REQUEST_API_URL",
    default=f"{APP_ORIGIN}/api/internal/payments/create",
)
PAYMENT_REQUEST_TIMEOUT = config("PAYMENT_REQUEST_TIMEOUT", cast=float, default=10.0)

GCP_PROJECT_ID = config("GCP_PROJECT_ID", default="billing-project")
NOTIFICATIONS_TOPIC = config("NOTIFICATIONS_TOPIC", default="subscription-notifications")

BILLING_TICK_MINUTES = config("BILLING_TICK_MINUTES", cast=int, default=15)
BILLING_EXPIRY_GRACE_DAYS = config("BILLING_EXPIRY_GRACE_DAYS", cast=int, default=14)
BILLING_DEFAULT_TIMEZONE = config("BILLING_DEFAULT_TIMEZONE", default="UTC")

BILLING_PAYMENT_REQUEST_SERVICE = config(
    "BILLING_PAYMENT_REQUEST_SERVICE",
    default="apps.billing.payments.HttpPaymentRequestService",
)
BILLING_NUMBERING_SERVICE = config(
    "BILLING_NUMBERING_SERVICE",
    default="apps.billing.numbering.DatabaseInvoiceNumbering",
)
BILLING_NOTIFICATION_DISPATCHER = config(
    "BILLING_NOTIFICATION_DISPATCHER",
    default="apps.billing.notifications.PubSubNotificationDispatcher",
)

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "[%(asctime)s: %(levelname)s/%(name)s] %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "loggers": {
        "apps.billing": {
            "handlers": ["console"],
            "level": config("BILLING_LOG_LEVEL", default="INFO"),
            "propagate": False,
        },
        "tasks": {
            "handlers": ["console"],
            "level": "INFO",
            "propagate": False,
        },
    },
}
