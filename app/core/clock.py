# app/core/clock.py
from datetime import datetime, timezone


def utcnow() -> datetime:
    """
    Timezone-aware "now" used for every persisted timestamp.
    """
    return datetime.now(tz=timezone.utc)
