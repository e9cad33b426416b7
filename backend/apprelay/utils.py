from datetime import datetime, timezone


def utcnow() -> datetime:
    """Naive UTC timestamp, the representation stored by both backends."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def format_size(num_bytes: int) -> str:
    """Human-readable size as shown on build cards, e.g. ``"12.3 MB"``."""
    return f"{num_bytes / (1024 * 1024):.1f} MB"


def to_naive_utc(value: datetime) -> datetime:
    """Convert an aware timestamp to naive UTC; naive values are taken as UTC."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)
