import calendar
from datetime import date, datetime, time, timedelta, timezone

SECONDS_PER_DAY = 86400.0


def to_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def parse_date(value: str | date | datetime | None) -> datetime | None:
    """
    Parse an ISO-8601 value into a naive UTC datetime.

    Returns None when the value is missing or unparseable so that callers can
    keep the record and leave it out of date-bucketed aggregates.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return to_naive_utc(value)
    if isinstance(value, date):
        return datetime.combine(value, time.min)
    if isinstance(value, str):
        raw = value.strip()
        if not raw:
            return None
        try:
            return to_naive_utc(datetime.fromisoformat(raw.replace("Z", "+00:00")))
        except ValueError:
            return None
    return None


def add_months(value: datetime, months: int) -> datetime:
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def month_key(value: date | datetime) -> str:
    return f"{value.year:04d}-{value.month:02d}"


def previous_month_key(value: date | datetime) -> str:
    return month_key(add_months(datetime(value.year, value.month, 1), -1))


def day_span(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / SECONDS_PER_DAY


def last_days(reference: date | datetime, days: int) -> list[date]:
    ref_day = reference.date() if isinstance(reference, datetime) else reference
    return [ref_day - timedelta(days=offset) for offset in range(days - 1, -1, -1)]


def is_weekend(value: date | datetime) -> bool:
    return value.weekday() >= 5


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def range_start(value: date | datetime | None) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return to_naive_utc(value)
    return datetime.combine(value, time.min)


def range_end(value: date | datetime | None) -> datetime | None:
    """Upper bound of an inclusive range; a bare date covers the whole day."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return to_naive_utc(value)
    return datetime.combine(value, time.max)
