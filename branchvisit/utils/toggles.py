"""
Yes/no answer primitives.

Qualitative visit answers are stored as the lowercase strings "yes" / "no"
(or NULL when unanswered).  Forms and API clients may send the tri-state
boolean instead; everything is funnelled through ``YesNo`` at the boundary
so no other module compares raw strings.

Usage:
    from branchvisit.utils.toggles import YesNo, to_wire, from_wire

    to_wire(True)       # "yes"
    to_wire(None)       # None
    from_wire("no")     # False
"""

from enum import Enum

from branchvisit.core.exceptions import InvalidEnumError


class YesNo(str, Enum):
    YES = "yes"
    NO = "no"

    @classmethod
    def parse(cls, value, field: str = "value") -> "YesNo | None":
        """Coerce a boolean, ``YesNo`` or string into the enum.

        ``None`` and ``""`` mean "unanswered".  Strings are matched
        case-insensitively; anything outside {yes, no} raises
        ``InvalidEnumError``.
        """
        if value is None or value == "":
            return None
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            return cls.YES if value else cls.NO
        if isinstance(value, str):
            try:
                return cls(value.strip().lower())
            except ValueError:
                pass
        raise InvalidEnumError(field, f"must be one of 'yes', 'no' (got {value!r})")

    def as_bool(self) -> bool:
        return self is YesNo.YES


def to_wire(value, field: str = "value") -> str | None:
    """Tri-state toggle → persisted string: True→"yes", False→"no", None→None."""
    parsed = YesNo.parse(value, field)
    return parsed.value if parsed is not None else None


def from_wire(value, field: str = "value") -> bool | None:
    """Persisted string → tri-state toggle: "yes"→True, "no"→False, None→None."""
    parsed = YesNo.parse(value, field)
    return parsed.as_bool() if parsed is not None else None


def is_positive(value, inverted: bool = False) -> bool | None:
    """Whether an answer is favourable.

    For inverted questions (e.g. abusive language) "no" is the good answer.
    Returns None for unanswered values.
    """
    answer = from_wire(value)
    if answer is None:
        return None
    return (not answer) if inverted else answer
