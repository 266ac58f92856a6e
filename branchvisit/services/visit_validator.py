"""
Visit record schema & validator.

Pure functions: no database access, no Flask context required.

    normalized, failures = validate_visit(payload)
    if failures:
        raise ValidationError.from_failures(failures)

``normalized`` only contains keys that were present in the payload,
with values coerced to their storage types:
    visit_date          → datetime.date
    percentages         → float
    counts              → int
    qualitative fields  → "yes" | "no" | None
    hr_connect_session  → bool | None

Every failing field contributes exactly one FieldValidationError subclass
(RequiredError, RangeError, LengthError, InvalidEnumError,
InvalidValueError or FutureDateError); checks never stop at the first
failure so the client can show all of them at once.
"""

import math
from datetime import date

from branchvisit.core.exceptions import (
    FieldValidationError,
    FutureDateError,
    InvalidEnumError,
    InvalidValueError,
    LengthError,
    RangeError,
    RequiredError,
)
from branchvisit.models.visit import (
    COUNT_FIELDS,
    PERCENTAGE_FIELDS,
    PERFORMANCE_LEVELS,
    QUALITATIVE_FIELDS,
    coverage_percentage,
)
from branchvisit.utils.helpers import parse_date
from branchvisit.utils.toggles import from_wire, to_wire

DEFAULT_MAX_WORDS = 200
DEFAULT_MAX_CHARS = 2000

REQUIRED_FIELDS = ("branch_id", "visit_date")

__all__ = [
    "validate_visit",
    "failure_codes",
    "coverage_percentage",
    "REQUIRED_FIELDS",
]


def _is_blank(value) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _coerce_number(field: str, value, *, integer: bool):
    """Turn a JSON number or numeric string into int/float.

    Returns None for blank input.  Raises InvalidValueError otherwise.
    """
    if _is_blank(value):
        return None
    if isinstance(value, bool):
        raise InvalidValueError(field, "must be a number")
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError as exc:
            raise InvalidValueError(field, "must be a number") from exc
    if not isinstance(value, (int, float)):
        raise InvalidValueError(field, "must be a number")
    try:
        if math.isnan(value) or math.isinf(value):
            raise InvalidValueError(field, "must be a number")
        if integer:
            if float(value) != int(value):
                raise InvalidValueError(field, "must be a whole number")
            return int(value)
        return float(value)
    except OverflowError as exc:
        # ints beyond float range
        raise RangeError(field, "is too large") from exc


def _check_percentage(field: str, value):
    number = _coerce_number(field, value, integer=False)
    if number is not None and not 0 <= number <= 100:
        raise RangeError(field, "must be between 0 and 100")
    return number


def _check_count(field: str, value):
    number = _coerce_number(field, value, integer=True)
    if number is not None and number < 0:
        raise RangeError(field, "must not be negative")
    return number


def _check_feedback(value, max_words: int, max_chars: int):
    if _is_blank(value):
        return None
    if not isinstance(value, str):
        raise InvalidValueError("feedback", "must be text")
    text = value.strip()
    words = len(text.split())
    if words > max_words:
        raise LengthError("feedback", f"must be at most {max_words} words (got {words})")
    if len(text) > max_chars:
        raise LengthError("feedback", f"must be at most {max_chars} characters")
    return text


def _check_visit_date(value, today: date):
    if _is_blank(value):
        return None
    parsed = parse_date(value)
    if parsed is None:
        raise InvalidValueError("visit_date", "must be a date (YYYY-MM-DD)")
    if parsed > today:
        raise FutureDateError("visit_date", "cannot be in the future")
    return parsed


def _check_branch_id(value):
    if _is_blank(value):
        return None
    if not isinstance(value, str):
        raise InvalidValueError("branch_id", "must be an identifier string")
    return value.strip()


def _check_performance_level(value):
    if _is_blank(value):
        return None
    level = str(value).strip().lower()
    if level not in PERFORMANCE_LEVELS:
        raise InvalidEnumError(
            "performance_level", f"must be one of {', '.join(PERFORMANCE_LEVELS)}",
        )
    return level


def validate_visit(
    data: dict,
    *,
    partial: bool = False,
    today: date | None = None,
    max_words: int = DEFAULT_MAX_WORDS,
    max_chars: int = DEFAULT_MAX_CHARS,
) -> tuple[dict, list[FieldValidationError]]:
    """Validate and normalize a candidate visit payload.

    Args:
        data: Raw field values (JSON body or merged record).
        partial: When True (draft save) missing required fields are not
            reported; provided fields are still checked.
        today: Reference date for the "not in the future" rule.
        max_words / max_chars: Feedback bounds.

    Returns:
        (normalized, failures); failures is empty when the payload is valid.
    """
    today = today or date.today()
    data = data or {}
    normalized: dict = {}
    failures: list[FieldValidationError] = []

    def run(field, check, *args):
        if field not in data:
            return
        try:
            normalized[field] = check(*args)
        except FieldValidationError as exc:
            failures.append(exc)

    run("branch_id", _check_branch_id, data.get("branch_id"))
    run("visit_date", _check_visit_date, data.get("visit_date"), today)

    if not partial:
        for field in REQUIRED_FIELDS:
            already_failed = any(f.field == field for f in failures)
            if not already_failed and normalized.get(field) is None:
                failures.append(RequiredError(field, "is required"))

    for field in PERCENTAGE_FIELDS:
        run(field, _check_percentage, field, data.get(field))
    for field in COUNT_FIELDS:
        run(field, _check_count, field, data.get(field))
    for field in QUALITATIVE_FIELDS:
        run(field, to_wire, data.get(field), field)

    run("hr_connect_session", from_wire, data.get("hr_connect_session"), "hr_connect_session")
    run("performance_level", _check_performance_level, data.get("performance_level"))
    run("feedback", _check_feedback, data.get("feedback"), max_words, max_chars)

    return normalized, failures


def failure_codes(failures: list[FieldValidationError]) -> dict[str, str]:
    """{field: code} view of a failure list (first failure per field)."""
    out: dict[str, str] = {}
    for failure in failures:
        out.setdefault(failure.field, failure.code)
    return out
