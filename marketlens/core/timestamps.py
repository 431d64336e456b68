from datetime import datetime, timezone
from typing import Any, Optional

# Epoch values above this are treated as milliseconds
_EPOCH_MS_THRESHOLD = 1e11

def _aware(dt: datetime) -> datetime:
    # Naive instants are taken as UTC so feed and REST timestamps stay comparable
    return dt if dt.tzinfo is not None else dt.replace(tzinfo=timezone.utc)

def parse_timestamp(value: Any) -> Optional[datetime]:
    """
    Parse an ISO-8601 string, epoch number (seconds or milliseconds) or datetime.
    Returns None when the value does not describe a valid instant.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return _aware(value)

    if isinstance(value, (int, float)):
        seconds = value / 1000.0 if abs(value) > _EPOCH_MS_THRESHOLD else float(value)
        try:
            return datetime.fromtimestamp(seconds, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None

    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return _aware(datetime.fromisoformat(text))
        except ValueError:
            pass
        # Numeric strings are epochs
        try:
            return parse_timestamp(float(text))
        except ValueError:
            return None

    return None

def utc_now() -> datetime:
    return datetime.now(timezone.utc)
