"""Shared utility functions for blueprints and services.

parse_date:          returns None on bad input
parse_date_input:    raises ValueError on bad input
parse_month_year:    validated (year, month) from query args
month_bounds:        first and last day of a calendar month
"""
from datetime import date, datetime

MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)


def parse_date(value):
    """Parse a date string (ISO or DD.MM.YYYY) to a date object.

    Returns None for empty/invalid input. Supports:
    - YYYY-MM-DD (ISO format)
    - YYYY-MM-DDTHH:MM:SS (datetime ISO → .date())
    - DD.MM.YYYY (European format)
    """
    if not value:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except (ValueError, TypeError):
        pass
    try:
        return datetime.fromisoformat(str(value)).date()
    except (ValueError, TypeError):
        pass
    try:
        return datetime.strptime(str(value), "%d.%m.%Y").date()
    except (ValueError, TypeError):
        return None


def parse_date_input(value):
    """Parse a date string, raising ValueError on bad input.

    Same as parse_date() but raises ValueError instead of returning None.
    Used by query-string filters where callers turn ValueError into a 400.
    """
    if not value:
        return None
    parsed = parse_date(value)
    if parsed is None:
        raise ValueError("Invalid date format. Use YYYY-MM-DD or DD.MM.YYYY.")
    return parsed


def parse_month_year(args, today: date | None = None) -> tuple[int, int]:
    """Read ``month`` (1-12) and ``year`` from request args.

    Missing values default to the current month. Raises ValueError for
    out-of-range or non-numeric input.
    """
    today = today or date.today()
    try:
        month = int(args.get("month", today.month))
        year = int(args.get("year", today.year))
    except (TypeError, ValueError) as exc:
        raise ValueError("month and year must be integers") from exc
    if not 1 <= month <= 12:
        raise ValueError("month must be between 1 and 12")
    if not 2000 <= year <= 9999:
        raise ValueError("year is out of range")
    return year, month


def month_bounds(year: int, month: int) -> tuple[date, date]:
    """First and last calendar day of a month."""
    first = date(year, month, 1)
    if month == 12:
        nxt = date(year + 1, 1, 1)
    else:
        nxt = date(year, month + 1, 1)
    return first, date.fromordinal(nxt.toordinal() - 1)

