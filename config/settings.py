"""
Custody Ledger – Django Settings (Infrastructure Only)
=======================================================
Django serves as the framework container: ORM-backed ledger storage,
settings, and logging configuration. The custody architecture is the
authority — Django does not dictate structure.
"""

import os
from pathlib import Path

# ── Paths ─────────────────────────────────────────────────────
BASE_DIR = Path(__file__).resolve().parent.parent

# ── Security ──────────────────────────────────────────────────
SECRET_KEY = os.environ.get("CUSTODY_SECRET_KEY", "custody-dev-key-replace-before-deployment")

DEBUG = os.environ.get("CUSTODY_DEBUG", "1") == "1"

ALLOWED_HOSTS = []

# ── Installed Apps ────────────────────────────────────────────
INSTALLED_APPS = [
    "django.contrib.contenttypes",
    "adapters.django_ledger",
]

# ── Database ──────────────────────────────────────────────────
# SQLite for development. Production DB configured separately.
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": os.environ.get("CUSTODY_DB_PATH", BASE_DIR / "db.sqlite3"),
    }
}

# ── Internationalization ──────────────────────────────────────
LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# ── Custody Roles ─────────────────────────────────────────────
# Role → organization id. An empty carrier gives the two-role chain.
CUSTODY_ROLES = {
    "originator": os.environ.get("CUSTODY_ORIGINATOR_ORG", "Org1MSP"),
    "carrier": os.environ.get("CUSTODY_CARRIER_ORG", "Org2MSP") or None,
    "recipient": os.environ.get("CUSTODY_RECIPIENT_ORG", "Org3MSP"),
}

# ── Bootstrap Seed ────────────────────────────────────────────
# Used by the initialize operation when the caller supplies no seed.
CUSTODY_SEED = [
    {
        "delivery_id": "D001",
        "recipient_org": CUSTODY_ROLES["recipient"],
        "units": [
            {"unit_id": "F001", "product_type": "UREA", "quantity": 50},
        ],
    },
]

# ── Logging ───────────────────────────────────────────────────
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "plain": {
            "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "plain",
        },
    },
    "loggers": {
        "custody": {
            "handlers": ["console"],
            "level": os.environ.get("CUSTODY_LOG_LEVEL", "INFO"),
        },
    },
}
