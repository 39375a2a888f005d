from datetime import datetime, timezone


def utcnow() -> datetime:
    """Current time as an aware UTC datetime. Tests swap this out to move time."""
    return datetime.now(timezone.utc)
