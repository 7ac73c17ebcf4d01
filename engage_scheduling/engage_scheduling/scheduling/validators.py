"""
Scheduling Input Validators

Boundary validation for engine requests. Failures raise InvalidArgument
before any repository call is made.
"""

import re
from typing import Any, Optional

from .exceptions import InvalidArgument, InvalidTimeFormat
from .time_utils import parse_date, to_clock


def require(value: Any, field_name: str) -> Any:
    """Raise InvalidArgument if a required value is missing or blank."""
    if value is None or (isinstance(value, str) and not value.strip()):
        raise InvalidArgument(f"{field_name} is required", field=field_name)
    return value


def validate_date_string(date_str: str, field_name: str = "date") -> str:
    """
    Validate date string format (YYYY-MM-DD) and that it is a real date.

    Args:
        date_str: Date string to validate
        field_name: Name of field for error messages

    Returns:
        str: Validated date string

    Raises:
        InvalidArgument: If date format is invalid
    """
    require(date_str, field_name)
    try:
        return parse_date(str(date_str).strip()).isoformat()
    except InvalidArgument:
        raise InvalidArgument(f"Invalid {field_name} format. Use YYYY-MM-DD", field=field_name)


def validate_time_string(time_str: str, field_name: str = "time") -> str:
    """
    Validate a wall-clock time (HH:MM, seconds tolerated).

    Returns:
        str: Normalized "HH:MM"

    Raises:
        InvalidTimeFormat: If time format is invalid
    """
    require(time_str, field_name)
    try:
        return to_clock(str(time_str).strip())
    except InvalidTimeFormat:
        raise InvalidTimeFormat(f"Invalid {field_name} format. Use HH:MM", field=field_name)


def validate_docname(name: str, field_name: str = "name") -> str:
    """
    Validate a document name (ID).

    Ensures the name is not too long and doesn't contain injection patterns.

    Raises:
        InvalidArgument: If name is invalid
    """
    require(name, field_name)

    name = str(name).strip()

    if len(name) > 140:
        raise InvalidArgument(f"{field_name} is too long", field=field_name)

    dangerous_patterns = [
        r"<script",
        r"javascript:",
        r"onclick",
        r"onerror",
        r"SELECT\s+",
        r"INSERT\s+",
        r"UPDATE\s+",
        r"DELETE\s+",
        r"DROP\s+",
        r"UNION\s+",
        r"--",
        r";",
    ]

    for pattern in dangerous_patterns:
        if re.search(pattern, name, re.IGNORECASE):
            raise InvalidArgument(f"Invalid {field_name}", field=field_name)

    return name


def sanitize_string(value: Optional[str], max_length: int = 500) -> Optional[str]:
    """
    General string sanitization: trims, truncates and strips control characters.
    """
    if not value:
        return None

    value = str(value).strip()

    if len(value) > max_length:
        value = value[:max_length]

    return re.sub(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]", "", value)
