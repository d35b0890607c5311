"""
Input validation and normalization.

Everything that crosses the HTTP boundary is checked here before any store
access: ids, care types, ISO calendar dates, and frequencies. Dates are
parsed as plain calendar dates (YYYY-MM-DD) and never go through a
timezone conversion.
"""

from __future__ import annotations
import re
from datetime import date, datetime
from typing import Any

from plantcare.constants import CARE_TYPE_NAMES
from plantcare.utils.errors import CareValidationError, InvalidFrequency

# UUID validation pattern (RFC 4122 compliant)
_UUID_PATTERN = re.compile(
    r'^[0-9a-f]{8}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{4}-[0-9a-f]{12}$',
    re.IGNORECASE
)

_ISO_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

MIN_CALENDAR_YEAR = 1900
MAX_CALENDAR_YEAR = 2999


def is_valid_uuid(value: str | None) -> bool:
    """
    Check if a string is a valid UUID (RFC 4122 format).

    Example:
        >>> is_valid_uuid("550e8400-e29b-41d4-a716-446655440000")
        True
        >>> is_valid_uuid("invalid")
        False
    """
    if not value or not isinstance(value, str):
        return False
    return bool(_UUID_PATTERN.match(value))


def require_uuid(value: str | None, field: str) -> str:
    """Return value unchanged if it is a UUID, otherwise raise CareValidationError."""
    if not is_valid_uuid(value):
        raise CareValidationError(f"Invalid {field}.", {field: value})
    return value


def normalize_care_type(value: str | None) -> str:
    """Lowercase and check against the known care types."""
    v = (value or "").strip().lower()
    if v not in CARE_TYPE_NAMES:
        raise CareValidationError(
            "Unknown care type.",
            {"care_type": value, "allowed": sorted(CARE_TYPE_NAMES)},
        )
    return v


def parse_iso_date(value: Any, field: str = "date") -> date:
    """
    Parse a YYYY-MM-DD string into a date.

    Only the exact calendar-date form is accepted; timestamps are rejected so
    a client can never smuggle a time-of-day (and a timezone shift) in.
    """
    if isinstance(value, date) and not isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not _ISO_DATE_PATTERN.match(value.strip()):
        raise CareValidationError(f"Invalid {field}. Expected YYYY-MM-DD.", {field: value})
    try:
        return date.fromisoformat(value.strip())
    except ValueError:
        raise CareValidationError(f"Invalid {field}. Expected YYYY-MM-DD.", {field: value})


def parse_frequency_days(value: Any) -> int:
    """
    Coerce a request value into a positive number of days.

    Accepts ints and digit-only strings (form posts). Booleans, floats and
    anything non-positive raise InvalidFrequency.
    """
    if isinstance(value, bool):
        raise InvalidFrequency(value)
    if isinstance(value, int):
        days = value
    elif isinstance(value, str) and value.strip().isascii() and value.strip().isdigit():
        # isdigit() alone also accepts superscripts like "²", which int() rejects
        days = int(value.strip())
    else:
        raise InvalidFrequency(value)
    if days <= 0:
        raise InvalidFrequency(value)
    return days


def parse_year_month(year: Any, month: Any) -> tuple[int, int]:
    """Validate a calendar month selector."""
    try:
        y, m = int(year), int(month)
    except (TypeError, ValueError):
        raise CareValidationError("Invalid month.", {"year": year, "month": month})
    if not (1 <= m <= 12) or not (MIN_CALENDAR_YEAR <= y <= MAX_CALENDAR_YEAR):
        raise CareValidationError("Invalid month.", {"year": year, "month": month})
    return y, m
