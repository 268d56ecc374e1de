"""Shared parsing utilities for source clients.

Centralises the value coercion every reporting API needs: numbers that
arrive as strings, money amounts, ISO 8601 timestamps, and rounding to
two decimal places.
"""

from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation


def parse_iso_datetime(value) -> datetime | None:
    """Parse an ISO 8601 string (or date/datetime object) to a UTC-aware datetime.

    Handles the formats produced by each source:
    - Z suffix (SP-API finances: "2024-01-15T10:30:00Z")
    - Millisecond precision ("2024-01-15T10:30:00.123Z")
    - Standard ISO with colon offset ("2024-06-28T18:42:46+00:00")
    - Date-only strings ("2024-06-28")
    - datetime/date objects passed through with UTC normalisation

    Returns:
        A timezone-aware UTC datetime, or None if the value cannot be parsed.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)

    value_str = str(value)
    if value_str.endswith("Z"):
        value_str = value_str[:-1] + "+00:00"

    try:
        return ensure_utc(datetime.fromisoformat(value_str)).astimezone(timezone.utc)
    except (ValueError, TypeError):
        pass

    try:
        d = date.fromisoformat(str(value))
        return datetime(d.year, d.month, d.day, tzinfo=timezone.utc)
    except (ValueError, TypeError):
        return None


def parse_date(value) -> date | None:
    """Parse a ``YYYY-MM-DD`` string (or date) to a date."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def ensure_utc(dt: datetime) -> datetime:
    """Ensure a datetime is timezone-aware (UTC).

    If the datetime is naive, attach UTC; otherwise return as-is.
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def to_int(value, default: int = 0) -> int:
    """Coerce a number or numeric string to int, or ``default``."""
    if value is None or value == "":
        return default
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default


def to_float(value, default: float = 0.0) -> float:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def to_decimal(value, places: int = 2) -> Decimal | None:
    """Coerce a money amount to a Decimal quantized to ``places``.

    Returns None when the value is missing or not numeric.
    """
    if value is None or value == "":
        return None
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None
    return amount.quantize(Decimal(1).scaleb(-places))


def round2(value: float) -> float:
    return round(value, 2)
