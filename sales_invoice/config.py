"""Runtime configuration loaded from environment variables."""

from __future__ import annotations

import os

_PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))


def env_int(name: str, default: int, minimum: int = 1) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value >= minimum else default


def env_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip()


DATA_DIR = env_str("INVOICE_DATA_DIR", _PROJECT_ROOT)
DATABASE_FILE = env_str("INVOICE_DATABASE_FILE", os.path.join(DATA_DIR, "sales_database.json"))
CONFIG_FILE = env_str("INVOICE_CONFIG_FILE", os.path.join(DATA_DIR, "config.json"))
ASSETS_DIR = env_str("INVOICE_ASSETS_DIR", os.path.join(_PROJECT_ROOT, "assets"))
LOGO_PATH = env_str("INVOICE_LOGO_PATH", os.path.join(ASSETS_DIR, "logo.png"))
WATERMARK_PATH = env_str("INVOICE_WATERMARK_PATH", os.path.join(ASSETS_DIR, "watermark.png"))

TEMP_DIR = env_str("INVOICE_TEMP_DIR", os.path.join(DATA_DIR, "temp_invoices"))
TEMP_FILE_MAX_AGE_S = env_int("INVOICE_TEMP_MAX_AGE_S", 60 * 60, minimum=1)
TEMP_CLEANUP_INTERVAL_S = env_int("INVOICE_TEMP_CLEANUP_INTERVAL_S", 60 * 60, minimum=1)
TEMP_DOWNLOAD_DELETE_DELAY_S = env_int("INVOICE_TEMP_DOWNLOAD_DELETE_DELAY_S", 5, minimum=0)

MAX_BODY_BYTES = env_int("INVOICE_MAX_BODY_BYTES", 16 * 1024 * 1024, minimum=1024)
LISTEN_BACKLOG = env_int("INVOICE_LISTEN_BACKLOG", 512, minimum=1)
PUBLIC_BASE_URL = env_str("INVOICE_PUBLIC_BASE_URL", "")

TWILIO_ACCOUNT_SID = env_str("TWILIO_ACCOUNT_SID", "")
TWILIO_AUTH_TOKEN = env_str("TWILIO_AUTH_TOKEN", "")
TWILIO_WHATSAPP_NUMBER = env_str("TWILIO_WHATSAPP_NUMBER", "")
TWILIO_CONTENT_SID = env_str("TWILIO_CONTENT_SID", "")
RELAY_TIMEOUT_S = env_int("INVOICE_RELAY_TIMEOUT_S", 30, minimum=1)

DEFAULT_ADMIN_PASSWORD = "123"
APP_NAME = env_str("INVOICE_APP_NAME", "THEGROVE Sales Invoice System")
APP_VERSION = "1.0.0"
