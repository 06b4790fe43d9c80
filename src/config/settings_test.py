"""Settings for the test suite: SQLite, in-memory cache and mail, eager Celery."""

import os

os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")

from config.settings import *  # noqa: E402,F401,F403

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "print-fulfillment-tests",
    }
}

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

EMAIL_BACKEND = "django.core.mail.backends.locmem.EmailBackend"
PRINT_ORDER_NOTIFY_EMAILS = ["print-ops@storybook.local"]

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True

MIXAM_API_BASE_URL = "https://vendor.test"
MIXAM_USERNAME = "vendor-user"
MIXAM_PASSWORD = "vendor-pass"
MIXAM_WEBHOOK_SECRET = "test-webhook-secret"
MIXAM_STATUS_CALLBACK_URL = "https://storybook.test/api/v1/webhooks/mixam/"
PRINT_BILLING_ADDRESS = {
    "name": "Storybook Ltd",
    "line1": "1 Print Street",
    "city": "London",
    "postal_code": "EC1A 1BB",
    "country": "GB",
    "email": "billing@storybook.local",
}

REST_FRAMEWORK = {
    **REST_FRAMEWORK,  # noqa: F405
    "DEFAULT_THROTTLE_CLASSES": [],
}
