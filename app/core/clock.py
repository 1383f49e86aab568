from collections.abc import Callable
from datetime import UTC, datetime

# Zero-argument callable returning naive UTC "now". Services take one so tests can pin time.
Clock = Callable[[], datetime]


def utc_naive_now() -> datetime:
    """Naive UTC for comparison with TIMESTAMP WITHOUT TIME ZONE columns."""
    return datetime.now(UTC).replace(tzinfo=None)


def to_naive_utc(dt: datetime) -> datetime:
    """Convert to naive UTC for TIMESTAMP WITHOUT TIME ZONE columns."""
    if dt.tzinfo is not None:
        return dt.astimezone(UTC).replace(tzinfo=None)
    return dt


def fixed_clock(now: datetime) -> Clock:
    frozen = to_naive_utc(now)
    return lambda: frozen
