from __future__ import annotations

from datetime import date, datetime, time, timedelta, tzinfo


def parse_hhmm(value: str) -> time:
    value = value.strip()
    if ":" not in value:
        raise ValueError(f"Unsupported time format: {value}")
    hour_text, minute_text = value.split(":", 1)
    if not (hour_text.isdigit() and minute_text.isdigit()):
        raise ValueError(f"Unsupported time format: {value}")
    hour = int(hour_text)
    minute = int(minute_text)
    if not (0 <= hour < 24 and 0 <= minute < 60):
        raise ValueError(f"Invalid time value: {value}")
    return time(hour=hour, minute=minute)


def sanitize_time(value: str) -> str:
    """Strip a trailing timezone annotation such as ``"05:12 (EET)"``."""
    value = value.strip()
    if " " in value:
        value = value.split(" ", 1)[0]
    return value


def local_now(tz: tzinfo | None = None) -> datetime:
    if tz is not None:
        return datetime.now(tz)
    return datetime.now().astimezone()


def combine_local(day: date, moment: time, tz: tzinfo | None = None) -> datetime:
    # astimezone() on a naive value applies the host zone's rules for that date.
    if tz is not None:
        return datetime.combine(day, moment, tzinfo=tz)
    return datetime.combine(day, moment).astimezone()


def day_of(value: date | datetime, tz: tzinfo | None = None) -> date:
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(tz)
        return value.date()
    return value


def iter_days(start: date, end: date):
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)


def format_prayer_time(value: datetime) -> str:
    return value.strftime("%I:%M %p").lstrip("0")


def _split(interval: timedelta) -> tuple[int, int]:
    seconds = int(interval.total_seconds())
    return seconds // 3600, (seconds % 3600) // 60


def format_time_until(target: datetime, now: datetime) -> str:
    interval = target - now
    if interval <= timedelta(0):
        return "now"
    hours, minutes = _split(interval)
    hour_text = f"{hours} hour{'s' if hours > 1 else ''}"
    minute_text = f"{minutes} minute{'s' if minutes > 1 else ''}"
    if hours and minutes:
        return f"in {hour_text} {minute_text}"
    if hours:
        return f"in {hour_text}"
    if minutes:
        return f"in {minute_text}"
    return "in less than a minute"


def format_compact_time_until(target: datetime, now: datetime) -> str:
    interval = target - now
    if interval <= timedelta(0):
        return "now"
    hours, minutes = _split(interval)
    if hours and minutes:
        return f"{hours}h {minutes}m"
    if hours:
        return f"{hours}h"
    if minutes:
        return f"{minutes}m"
    return "<1m"
