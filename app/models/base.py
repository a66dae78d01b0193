from datetime import datetime, timezone

from sqlalchemy import DateTime


def utcnow() -> datetime:
    """Timezone-aware UTC now; every timestamp is written as aware UTC."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Aware UTC view of a stored timestamp. SQLite hands back naive values, which are UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def utc_datetime() -> DateTime:
    return DateTime(timezone=True)
