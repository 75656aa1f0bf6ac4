from datetime import datetime, timezone
from typing import Annotated, Callable, Optional

from pydantic import AfterValidator

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes as UTC (SQLite drops tzinfo) and convert the rest."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def add_years(value: datetime, years: int) -> datetime:
    """Same calendar date `years` later; Feb 29 falls back to Feb 28."""
    try:
        return value.replace(year=value.year + years)
    except ValueError:
        return value.replace(year=value.year + years, day=28)


UtcDateTime = Annotated[datetime, AfterValidator(ensure_utc)]
