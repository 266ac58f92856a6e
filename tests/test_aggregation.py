"""
Tests for the aggregation engine (pure functions, dict records).

Covers:
  - category breakdown over live categories
  - month stats grouped by the stored category snapshot
  - period windows and contiguous month buckets
  - qualitative heatmap counts, filters and inverted questions
  - top performer ranking and tie-breaks
  - dashboard coverage and summary numbers

pytest markers: unit
"""

from datetime import date

import pytest

from branchvisit.core.exceptions import ValidationError
from branchvisit.services import aggregation

pytestmark = pytest.mark.unit

TODAY = date(2024, 6, 15)


def _visit(user="u1", branch="b1", status="approved", visit_date="2024-06-10",
           category="gold", live_category=None, **fields):
    return {
        "user_id": user,
        "branch_id": branch,
        "status": status,
        "visit_date": visit_date,
        "branch_category": category,
        "branch": {"id": branch, "category": live_category or category},
        **fields,
    }


class TestMean:
    def test_ignores_none(self):
        assert aggregation.mean([10, None, 20]) == 15

    def test_empty_is_zero(self):
        assert aggregation.mean([]) == 0
        assert aggregation.mean([None, None]) == 0

    def test_rounds_to_one_decimal(self):
        assert aggregation.mean([1, 2, 2]) == 1.7


class TestCategoryBreakdown:
    def test_every_category_present(self):
        branches = [{"category": "gold"}, {"category": "gold"}, {"category": None},
                    {"category": "platinum"}]
        assert aggregation.category_breakdown(branches) == {
            "platinum": 1, "diamond": 0, "gold": 2, "silver": 0, "bronze": 0, "unknown": 1,
        }

    def test_empty(self):
        assert set(aggregation.category_breakdown([]).values()) == {0}

    def test_repeat_call_is_stable_and_leaves_input_alone(self):
        branches = [{"category": "silver"}, {"category": "diamond"}, {"category": "bogus"}]
        before = [dict(b) for b in branches]
        first = aggregation.category_breakdown(branches)
        second = aggregation.category_breakdown(branches)
        assert first == second
        assert list(first) == list(second)
        assert branches == before


class TestCategoryMonthStats:
    def test_groups_by_snapshot_not_live_category(self):
        visits = [
            _visit(category="gold", live_category="platinum", manning_percentage=80),
            _visit(category="gold", live_category="platinum", manning_percentage=90,
                   attrition_percentage=10),
        ]
        branches = [{"category": "platinum"}]
        rows = {r["name"]: r for r in aggregation.category_month_stats(visits, branches, 2024, 6)}
        assert rows["gold"]["visits"] == 2
        assert rows["gold"]["avgManning"] == 85
        assert rows["gold"]["avgAttrition"] == 10
        assert rows["gold"]["branchCount"] == 0
        assert rows["platinum"]["visits"] == 0
        assert rows["platinum"]["branchCount"] == 1

    def test_only_reported_visits_in_month(self):
        visits = [
            _visit(status="draft"),
            _visit(status="rejected"),
            _visit(status="submitted"),
            _visit(visit_date="2024-05-31"),
        ]
        rows = {r["name"]: r for r in aggregation.category_month_stats(visits, [], 2024, 6)}
        assert rows["gold"]["visits"] == 1

    def test_empty_month_has_zero_rows(self):
        rows = aggregation.category_month_stats([], [], 2024, 6)
        assert len(rows) == 6
        assert all(r["visits"] == 0 and r["avgManning"] == 0 for r in rows)

    def test_input_is_not_mutated(self):
        visits = [_visit(manning_percentage=50)]
        before = [dict(v) for v in visits]
        aggregation.category_month_stats(visits, [], 2024, 6)
        assert visits == before


class TestPeriodWindow:
    def test_last_week(self):
        assert aggregation.period_window("lastWeek", TODAY) == (date(2024, 6, 8), TODAY)

    def test_last_quarter(self):
        assert aggregation.period_window("lastQuarter", TODAY) == (date(2024, 3, 15), TODAY)

    def test_last_year_crosses_year(self):
        assert aggregation.period_window("lastYear", TODAY)[0] == date(2023, 6, 15)

    def test_day_is_clamped(self):
        start, _ = aggregation.period_window("lastMonth", date(2024, 3, 31))
        assert start == date(2024, 2, 29)

    def test_unknown_period(self):
        with pytest.raises(ValidationError):
            aggregation.period_window("lastDecade", TODAY)


class TestPeriodTrend:
    def test_contiguous_buckets_including_empty(self):
        visits = [
            _visit(visit_date="2024-04-02", manning_percentage=80, er_percentage=70, cwt_cases=2),
            _visit(visit_date="2024-04-20", manning_percentage=90, cwt_cases=1),
            _visit(visit_date="2024-06-01", attrition_percentage=12),
        ]
        series = aggregation.period_trend(visits, "lastQuarter", TODAY)
        assert [row["month"] for row in series] == ["2024-03", "2024-04", "2024-05", "2024-06"]
        march, april, may, june = series
        assert march["visits"] == 0 and march["manning"] == 0
        assert april["visits"] == 2
        assert april["manning"] == 85
        assert april["er"] == 70
        assert april["cwt"] == 3
        assert april["label"] == "Apr 2024"
        assert may == {"month": "2024-05", "label": "May 2024", "visits": 0, "manning": 0,
                       "attrition": 0, "er": 0, "nonVendor": 0, "cwt": 0}
        assert june["attrition"] == 12

    def test_excludes_drafts_and_rejected(self):
        visits = [_visit(status="draft", manning_percentage=10),
                  _visit(status="rejected", manning_percentage=10),
                  _visit(status="submitted", manning_percentage=70)]
        june = aggregation.period_trend(visits, "lastMonth", TODAY)[-1]
        assert june["visits"] == 1
        assert june["manning"] == 70

    def test_visits_before_window_ignored(self):
        visits = [_visit(visit_date="2024-05-14", manning_percentage=10)]
        series = aggregation.period_trend(visits, "lastMonth", TODAY)
        assert sum(row["visits"] for row in series) == 0

    def test_last_six_months_bucket_count(self):
        assert len(aggregation.period_trend([], "lastSixMonths", TODAY)) == 7


class TestQualitativeHeatmap:
    def test_counts_and_percentages(self):
        visits = [
            _visit(employees_feel_safe="yes", leaders_abusive_language="no"),
            _visit(employees_feel_safe="yes", leaders_abusive_language="yes"),
            _visit(employees_feel_safe="no"),
            _visit(status="submitted", employees_feel_safe="no"),
        ]
        rows = {r["metric"]: r for r in aggregation.qualitative_heatmap(visits)}
        assert len(rows) == 6
        safe = rows["employees_feel_safe"]
        assert (safe["yes"], safe["no"], safe["total"]) == (2, 1, 3)
        assert safe["yes_pct"] == 66.7
        assert safe["positive_pct"] == 66.7
        abusive = rows["leaders_abusive_language"]
        assert abusive["inverted"] is True
        assert abusive["total"] == 2
        assert abusive["positive_pct"] == 50

    def test_unanswered_question_is_zero(self):
        rows = {r["metric"]: r for r in aggregation.qualitative_heatmap([_visit()])}
        culture = rows["inclusive_culture"]
        assert culture["total"] == 0
        assert culture["yes_pct"] == 0 and culture["no_pct"] == 0

    def test_yes_plus_no_equals_total(self):
        visits = [_visit(employees_feel_motivated=v) for v in ("yes", "no", None, "no")]
        for row in aggregation.qualitative_heatmap(visits):
            assert row["yes"] + row["no"] == row["total"]

    def test_date_and_category_filters(self):
        visits = [
            _visit(visit_date="2024-06-01", live_category="gold", employees_feel_safe="yes"),
            _visit(visit_date="2024-05-01", live_category="gold", employees_feel_safe="yes"),
            _visit(visit_date="2024-06-02", category="gold", live_category="silver",
                   employees_feel_safe="no"),
        ]
        rows = aggregation.qualitative_heatmap(
            visits, date_from=date(2024, 6, 1), date_to=date(2024, 6, 30), branch_category="gold",
        )
        safe = next(r for r in rows if r["metric"] == "employees_feel_safe")
        assert (safe["yes"], safe["no"]) == (1, 0)

    def test_summary_overall(self):
        visits = [_visit(employees_feel_safe="yes", leaders_abusive_language="yes")]
        summary = aggregation.qualitative_summary(visits)
        assert summary["employees_feel_safe"] == 100
        assert summary["leaders_abusive_language"] == 0
        assert summary["overall"] == 50


class TestTopPerformers:
    USERS = [
        {"id": "u1", "full_name": "Zeynep", "employee_code": "E1"},
        {"id": "u2", "full_name": "ali", "employee_code": "E2"},
        {"id": "u3", "full_name": "Burak", "employee_code": "E3"},
    ]

    def test_ranked_by_visits_then_name(self):
        visits = [
            _visit(user="u1"), _visit(user="u1", branch="b2"),
            _visit(user="u2"),
            _visit(user="u3"),
        ]
        rows = aggregation.top_performers(visits, self.USERS)
        assert [r["user_id"] for r in rows] == ["u1", "u2", "u3"]
        assert [r["rank"] for r in rows] == [1, 2, 3]
        assert rows[0]["branches"] == 2

    def test_limit(self):
        visits = [_visit(user=u) for u in ("u1", "u2", "u3")]
        assert len(aggregation.top_performers(visits, self.USERS, limit=2)) == 2

    def test_only_reported_visits_count(self):
        visits = [_visit(user="u1", status="draft"), _visit(user="u2", status="rejected"),
                  _visit(user="u3", status="submitted")]
        rows = aggregation.top_performers(visits, self.USERS)
        assert [r["user_id"] for r in rows] == ["u3"]

    def test_missing_user_sorts_last_on_tie(self):
        visits = [_visit(user="ghost"), _visit(user="u3")]
        rows = aggregation.top_performers(visits, self.USERS)
        assert [r["user_id"] for r in rows] == ["u3", "ghost"]
        assert rows[1]["name"] is None

    def test_average_coverage(self):
        visits = [
            _visit(user="u1", total_employees_invited=10, total_participants=5),
            _visit(user="u1", total_employees_invited=20, total_participants=20),
        ]
        assert aggregation.top_performers(visits, self.USERS)[0]["avg_coverage"] == 75


class TestDashboard:
    def test_coverage(self):
        visits = [_visit(branch="b1"), _visit(branch="b1"), _visit(branch="b2")]
        assert aggregation.dashboard_coverage(visits, 3) == 67

    def test_coverage_without_branches(self):
        assert aggregation.dashboard_coverage([_visit()], 0) == 0

    def test_summary(self):
        visits = [
            _visit(user="u1", branch="b1", manning_percentage=80, cwt_cases=2),
            _visit(user="u2", branch="b1", manning_percentage=None, cwt_cases=None),
        ]
        branches = [{"id": "b1"}, {"id": "b2"}]
        summary = aggregation.dashboard_summary(visits, branches)
        assert summary["total_branches"] == 2
        assert summary["visited_branches"] == 1
        assert summary["coverage"] == 50
        assert summary["total_visits"] == 2
        assert summary["unique_bhrs"] == 2
        assert summary["avg_manning"] == 80
        assert summary["total_cwt_cases"] == 2

    def test_report_stats(self):
        visits = [_visit(status=s) for s in ("draft", "approved", "approved", "rejected")]
        assert aggregation.report_stats(visits) == {
            "total": 4, "draft": 1, "submitted": 0, "approved": 2, "rejected": 1,
        }
