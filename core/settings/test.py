from .base import *  # noqa

DEBUG = False
SECRET_KEY = "test-only-not-secure"
ALLOWED_HOSTS = ["testserver", "localhost"]

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
    }
}

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_BROKER_URL = "memory://"
CELERY_RESULT_BACKEND = "cache+memory://"

INTERNAL_API_KEY = "test-internal-key"
PAYMENT_REQUEST_API_URL = "http://payments.test/api/internal/payments/create"
BILLING_NOTIFICATION_DISPATCHER = "apps.billing.notifications.LoggingNotificationDispatcher"
