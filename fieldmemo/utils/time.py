from datetime import date, datetime

import pytz

UTC = pytz.UTC


def today():
    """
    Returns the current date in YYYY-MM-DD format using UTC timezone.
    Used as the task context date when the caller does not send one.
    """
    return datetime.now(UTC).strftime("%Y-%m-%d")


def now_iso() -> str:
    """UTC timestamp for updated_at / closeout_generated_at columns."""
    return datetime.now(UTC).isoformat()


def timestamp_ms() -> int:
    """Milliseconds since the epoch, used as the storage key prefix."""
    return int(datetime.now(UTC).timestamp() * 1000)


def is_iso_date(value) -> bool:
    """True for a strict YYYY-MM-DD string."""
    if not isinstance(value, str) or len(value) != 10:
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True
