"""
Shared field types for API models.

MongoDB stores datetimes as naive UTC, so every datetime that enters the API
is normalised to naive UTC before it reaches a service or the database.
"""

from datetime import date, datetime, timezone
from typing import Annotated, Optional

from pydantic import AfterValidator, BeforeValidator


def to_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _date_to_datetime(value):
    # a bare date is midnight UTC of that day
    if isinstance(value, date) and not isinstance(value, datetime):
        return datetime(value.year, value.month, value.day)
    return value


UTCDateTime = Annotated[datetime, BeforeValidator(_date_to_datetime), AfterValidator(to_naive_utc)]


def start_of_day(value: datetime) -> datetime:
    return value.replace(hour=0, minute=0, second=0, microsecond=0)


def utcnow() -> datetime:
    """Naive UTC now, truncated to milliseconds like BSON dates"""
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)
