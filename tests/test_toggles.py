"""
Tests for the yes/no answer primitives.

pytest markers: unit
"""

import pytest

from branchvisit.core.exceptions import InvalidEnumError
from branchvisit.utils.toggles import YesNo, from_wire, is_positive, to_wire

pytestmark = pytest.mark.unit


class TestYesNoParse:
    def test_booleans(self):
        assert YesNo.parse(True) is YesNo.YES
        assert YesNo.parse(False) is YesNo.NO

    def test_strings_are_case_insensitive(self):
        assert YesNo.parse("YES") is YesNo.YES
        assert YesNo.parse(" No ") is YesNo.NO

    def test_unanswered(self):
        assert YesNo.parse(None) is None
        assert YesNo.parse("") is None

    def test_enum_passthrough(self):
        assert YesNo.parse(YesNo.NO) is YesNo.NO

    @pytest.mark.parametrize("bad", ["maybe", "y", 1, 0, 2.5, [], {}])
    def test_rejects_other_values(self, bad):
        with pytest.raises(InvalidEnumError) as exc_info:
            YesNo.parse(bad, "employees_feel_safe")
        assert exc_info.value.field == "employees_feel_safe"
        assert exc_info.value.code == "InvalidEnumError"

    def test_enum_compares_equal_to_stored_string(self):
        assert YesNo.YES == "yes"
        assert YesNo.NO.value == "no"


class TestWireConversion:
    def test_to_wire(self):
        assert to_wire(True) == "yes"
        assert to_wire(False) == "no"
        assert to_wire(None) is None
        assert to_wire("Yes") == "yes"

    def test_from_wire(self):
        assert from_wire("yes") is True
        assert from_wire("no") is False
        assert from_wire(None) is None

    def test_toggle_survives_a_round_trip(self):
        for value in (True, False, None):
            assert from_wire(to_wire(value)) is value

    def test_from_wire_rejects_garbage(self):
        with pytest.raises(InvalidEnumError):
            from_wire("sometimes")


class TestIsPositive:
    def test_regular_question(self):
        assert is_positive("yes") is True
        assert is_positive("no") is False

    def test_inverted_question(self):
        assert is_positive("no", inverted=True) is True
        assert is_positive("yes", inverted=True) is False

    def test_unanswered(self):
        assert is_positive(None) is None
        assert is_positive(None, inverted=True) is None
