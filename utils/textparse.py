from services.errors import ValidationError


def check_text(value, field: str):
    if value is not None and not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    return value


def optional_text(value, field: str):
    # blank counts as absent
    value = check_text(value, field)
    return (value or "").strip() or None
