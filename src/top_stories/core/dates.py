from datetime import datetime, timezone


def _parse(value: str | datetime | None) -> datetime | None:
    if isinstance(value, datetime):
        parsed = value
    elif not value:
        return None
    else:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'s' if count > 1 else ''} ago"


def format_time_ago(value: str | datetime | None, now: datetime | None = None) -> str:
    """Render a publication date relative to ``now``, e.g. "2 hours ago"."""

    published = _parse(value)
    if published is None:
        return ""
    now = _parse(now) or datetime.now(timezone.utc)

    seconds = int((now - published).total_seconds())
    if seconds < 60:
        return "Just now"
    minutes = seconds // 60
    if minutes < 60:
        return _plural(minutes, "minute")
    hours = minutes // 60
    if hours < 24:
        return _plural(hours, "hour")
    days = hours // 24
    if days < 7:
        return _plural(days, "day")
    weeks = days // 7
    if weeks < 4:
        return _plural(weeks, "week")
    return _plural(days // 30, "month")


def format_date(value: str | datetime | None) -> str:
    parsed = _parse(value)
    if parsed is None:
        return ""
    return f"{parsed:%B} {parsed.day}, {parsed.year}"


def format_date_time(value: str | datetime | None) -> str:
    parsed = _parse(value)
    if parsed is None:
        return ""
    hour = parsed.hour % 12 or 12
    return f"{format_date(parsed)} at {hour}:{parsed:%M %p}"
