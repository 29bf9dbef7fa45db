import os
from typing import List, Optional

# Firestore credentials come from GOOGLE_APPLICATION_CREDENTIALS, or the
# emulator when FIRESTORE_EMULATOR_HOST is set; the client library reads both.


def app_id() -> Optional[str]:
    """Optional artifacts/{app_id} root above the per-user collections."""
    return os.getenv("LABBOOK_APP_ID") or None


def default_timezone() -> Optional[str]:
    """IANA zone for calendar-date views; None means the server's local zone."""
    return os.getenv("LABBOOK_TIMEZONE") or None


def log_level() -> str:
    return os.getenv("LABBOOK_LOG_LEVEL", "INFO").upper()


def cors_origins() -> List[str]:
    raw = os.getenv("LABBOOK_CORS_ORIGINS", "*")
    return [o.strip() for o in raw.split(",") if o.strip()]
