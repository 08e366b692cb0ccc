# config/settings/test.py
from .base import *  # noqa

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

# In-process idempotency cache keeps tests independent of the idempotency table.
COMMON_IDEMPOTENCY_USE_DB = False

LOGGING["loggers"]["lims_core"]["level"] = "WARNING"
