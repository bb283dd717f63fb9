from decimal import Decimal
from pathlib import Path
import os

import dj_database_url
from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(BASE_DIR / ".env")  # explicit .env location

SECRET_KEY = os.getenv("DJANGO_SECRET_KEY") or os.getenv("SECRET_KEY") or "dev-key"


def _get_bool_env(name: str, default: bool) -> bool:
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.lower() in {"1", "true", "yes", "on"}


def _get_list_env(name: str) -> list[str]:
    raw_value = os.getenv(name, "")
    if not raw_value:
        return []
    parts = raw_value.replace(";", ",").split(",")
    return [p.strip() for p in parts if p.strip()]


DEBUG = _get_bool_env("DJANGO_DEBUG", _get_bool_env("DEBUG", True))

base_allowed_hosts = ["localhost", "127.0.0.1"]
env_allowed_hosts = _get_list_env("DJANGO_ALLOWED_HOSTS")
ALLOWED_HOSTS = list(dict.fromkeys(base_allowed_hosts + env_allowed_hosts))

INSTALLED_APPS = [
    "django.contrib.auth",
    "django.contrib.contenttypes",

    # Project apps
    "ledger_core.apps.LedgerCoreConfig",
]

default_db = f"sqlite:///{BASE_DIR / 'db.sqlite3'}"
database_url = os.getenv("DATABASE_URL", default_db)
DATABASES = {"default": dj_database_url.parse(database_url)}

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

LANGUAGE_CODE = "en-us"
TIME_ZONE = os.getenv("TIME_ZONE", "Africa/Lagos")
USE_I18N = True
USE_TZ = True

# ---------- Ledger ----------
# Pre-provisioned accounts the billing and payment engines post to
LEDGER_SYSTEM_ACCOUNTS = {
    "accounts_receivable": os.getenv("LEDGER_AR_ACCOUNT", "1100"),
    "deferred_revenue": os.getenv("LEDGER_DEFERRED_REVENUE_ACCOUNT", "2200"),
    "member_dues_revenue": os.getenv("LEDGER_REVENUE_ACCOUNT", "4000"),
    "wht_payable": os.getenv("LEDGER_WHT_ACCOUNT", "2300"),
}
# Days between bill generation and due date
LEDGER_BILL_DUE_DAYS = int(os.getenv("LEDGER_BILL_DUE_DAYS", "7"))
LEDGER_BILLING_TYPE = os.getenv("LEDGER_BILLING_TYPE", "Estate Maintenance")
# Percent withheld from the service portion of vendor payments
LEDGER_DEFAULT_WHT_RATE = Decimal(os.getenv("LEDGER_DEFAULT_WHT_RATE", "5.00"))

# ---------- Celery ----------
CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", CELERY_BROKER_URL)
CELERY_TASK_ALWAYS_EAGER = _get_bool_env("CELERY_TASK_ALWAYS_EAGER", False)
CELERY_TIMEZONE = TIME_ZONE

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "loggers": {
        "ledger_core": {
            "handlers": ["console"],
            "level": os.getenv("LEDGER_LOG_LEVEL", "INFO"),
        },
    },
}
