from datetime import datetime, time, timedelta, timezone, tzinfo


def parse_timestamp(value) -> datetime | None:
    """Parse a timestamp from the database (could be string or datetime)."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, str):
        try:
            # Handle ISO format with timezone
            dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        return dt if dt.tzinfo else dt.replace(tzinfo=timezone.utc)
    return None


def day_bounds(now: datetime, tz: tzinfo) -> tuple[str, str]:
    """[start, end) of the calendar day containing now in tz, as UTC ISO strings."""
    local = now.astimezone(tz)
    start = datetime.combine(local.date(), time.min, tzinfo=tz)
    end = start + timedelta(days=1)
    return (
        start.astimezone(timezone.utc).isoformat(),
        end.astimezone(timezone.utc).isoformat(),
    )
