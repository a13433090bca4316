from datetime import date, datetime, time, timezone

from services.errors import ValidationError


def parse_iso_datetime(value, field: str) -> datetime:
    # Expect ISO format like "2026-01-20T18:00:00"; offsets become naive UTC
    if isinstance(value, datetime):
        return value
    if not value or not isinstance(value, str):
        raise ValidationError(f"{field} is required")
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(f"Invalid {field}. Use ISO e.g. 2026-01-20T18:00:00")
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def parse_date(value, field: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value or not isinstance(value, str):
        raise ValidationError(f"{field} is required")
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        raise ValidationError(f"Invalid {field}. Use YYYY-MM-DD")


def parse_time_of_day(value, field: str) -> time:
    if isinstance(value, time):
        return value
    if not value or not isinstance(value, str):
        raise ValidationError(f"{field} is required")
    try:
        hour, minute = value.split(":")[:2]
        return time(int(hour), int(minute))
    except ValueError:
        raise ValidationError(f"Invalid {field}. Use HH:MM")
