"""
Tests for the visit record validator.

Covers:
  - required fields on full validation, skipped on partial
  - percentage range and number coercion
  - non-negative integer counts
  - future visit dates
  - qualitative / hr_connect_session yes-no normalisation
  - performance level enum
  - feedback word and character limits
  - all failures reported at once

pytest markers: unit
"""

from datetime import date, timedelta

import pytest

from branchvisit.services.visit_validator import failure_codes, validate_visit

pytestmark = pytest.mark.unit

TODAY = date(2024, 6, 15)


def _codes(data, **kwargs):
    kwargs.setdefault("today", TODAY)
    _, failures = validate_visit(data, **kwargs)
    return failure_codes(failures)


class TestRequiredFields:
    def test_empty_payload_reports_both_required_fields(self):
        assert _codes({}) == {"branch_id": "RequiredError", "visit_date": "RequiredError"}

    def test_blank_values_count_as_missing(self):
        codes = _codes({"branch_id": "  ", "visit_date": ""})
        assert codes == {"branch_id": "RequiredError", "visit_date": "RequiredError"}

    def test_partial_skips_required(self):
        assert _codes({"manning_percentage": 50}, partial=True) == {}

    def test_minimal_valid_payload(self):
        normalized, failures = validate_visit(
            {"branch_id": "b-1", "visit_date": "2024-06-01"}, today=TODAY,
        )
        assert failures == []
        assert normalized == {"branch_id": "b-1", "visit_date": date(2024, 6, 1)}


class TestVisitDate:
    def test_today_is_allowed(self):
        assert _codes({"branch_id": "b", "visit_date": TODAY.isoformat()}) == {}

    def test_future_date_rejected(self):
        tomorrow = (TODAY + timedelta(days=1)).isoformat()
        assert _codes({"branch_id": "b", "visit_date": tomorrow}) == {"visit_date": "FutureDateError"}

    def test_unparseable_date(self):
        assert _codes({"branch_id": "b", "visit_date": "next tuesday"}) == {
            "visit_date": "InvalidValueError",
        }

    def test_european_format_accepted(self):
        normalized, failures = validate_visit(
            {"branch_id": "b", "visit_date": "01.06.2024"}, today=TODAY,
        )
        assert failures == []
        assert normalized["visit_date"] == date(2024, 6, 1)


class TestNumbers:
    @pytest.mark.parametrize("value", [0, 100, 55.5, "42"])
    def test_percentage_in_range(self, value):
        assert _codes({"manning_percentage": value}, partial=True) == {}

    @pytest.mark.parametrize("value", [-1, 100.1, 150])
    def test_percentage_out_of_range(self, value):
        assert _codes({"er_percentage": value}, partial=True) == {"er_percentage": "RangeError"}

    @pytest.mark.parametrize("value", ["abc", True, float("nan")])
    def test_percentage_not_a_number(self, value):
        assert _codes({"attrition_percentage": value}, partial=True) == {
            "attrition_percentage": "InvalidValueError",
        }

    def test_percentages_normalised_to_float(self):
        normalized, _ = validate_visit({"manning_percentage": "80"}, partial=True, today=TODAY)
        assert normalized["manning_percentage"] == 80.0
        assert isinstance(normalized["manning_percentage"], float)

    def test_negative_count(self):
        assert _codes({"cwt_cases": -2}, partial=True) == {"cwt_cases": "RangeError"}

    def test_fractional_count(self):
        assert _codes({"total_participants": 2.5}, partial=True) == {
            "total_participants": "InvalidValueError",
        }

    def test_count_normalised_to_int(self):
        normalized, _ = validate_visit({"total_employees_invited": "12"}, partial=True, today=TODAY)
        assert normalized["total_employees_invited"] == 12

    def test_blank_number_clears_field(self):
        normalized, failures = validate_visit({"cwt_cases": ""}, partial=True, today=TODAY)
        assert failures == []
        assert normalized == {"cwt_cases": None}

    def test_count_beyond_float_range(self):
        assert _codes({"cwt_cases": 10**400}, partial=True) == {"cwt_cases": "RangeError"}

    def test_percentage_beyond_float_range(self):
        assert _codes({"er_percentage": -(10**400)}, partial=True) == {
            "er_percentage": "RangeError",
        }


class TestAnswers:
    def test_qualitative_booleans_become_strings(self):
        normalized, failures = validate_visit(
            {"employees_feel_safe": True, "inclusive_culture": False, "employees_feel_motivated": "YES"},
            partial=True, today=TODAY,
        )
        assert failures == []
        assert normalized == {
            "employees_feel_safe": "yes",
            "inclusive_culture": "no",
            "employees_feel_motivated": "yes",
        }

    def test_qualitative_invalid(self):
        assert _codes({"leaders_abusive_language": "sometimes"}, partial=True) == {
            "leaders_abusive_language": "InvalidEnumError",
        }

    def test_hr_connect_session_becomes_bool(self):
        normalized, _ = validate_visit({"hr_connect_session": "yes"}, partial=True, today=TODAY)
        assert normalized["hr_connect_session"] is True

    def test_performance_level(self):
        normalized, failures = validate_visit({"performance_level": "High"}, partial=True, today=TODAY)
        assert failures == []
        assert normalized["performance_level"] == "high"
        assert _codes({"performance_level": "stellar"}, partial=True) == {
            "performance_level": "InvalidEnumError",
        }


class TestFeedback:
    def test_word_limit(self):
        text = " ".join(["word"] * 201)
        assert _codes({"feedback": text}, partial=True) == {"feedback": "LengthError"}

    def test_exactly_at_word_limit(self):
        text = " ".join(["word"] * 200)
        assert _codes({"feedback": text}, partial=True) == {}

    def test_char_limit(self):
        assert _codes({"feedback": "x" * 31}, partial=True, max_chars=30) == {"feedback": "LengthError"}

    def test_configurable_word_limit(self):
        assert _codes({"feedback": "one two three"}, partial=True, max_words=2) == {
            "feedback": "LengthError",
        }

    def test_feedback_is_trimmed(self):
        normalized, _ = validate_visit({"feedback": "  fine  "}, partial=True, today=TODAY)
        assert normalized["feedback"] == "fine"


class TestAggregateFailures:
    def test_every_bad_field_is_reported(self):
        codes = _codes({
            "visit_date": (TODAY + timedelta(days=3)).isoformat(),
            "manning_percentage": 120,
            "cwt_cases": -1,
            "employees_feel_safe": "perhaps",
            "performance_level": "great",
        })
        assert codes == {
            "branch_id": "RequiredError",
            "visit_date": "FutureDateError",
            "manning_percentage": "RangeError",
            "cwt_cases": "RangeError",
            "employees_feel_safe": "InvalidEnumError",
            "performance_level": "InvalidEnumError",
        }

    def test_absent_keys_are_not_normalised(self):
        normalized, _ = validate_visit({"branch_id": "b", "visit_date": "2024-06-01"}, today=TODAY)
        assert "manning_percentage" not in normalized
