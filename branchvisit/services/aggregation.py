"""
Aggregation engine for dashboards, analytics and reports.

Pure functions over in-memory collections: the caller fetches visits and
branches (see analytics_service) and passes them in.  Records may be ORM
objects or plain dicts; fields are read through ``_get``.  No function
mutates its input, and an empty collection always yields zero-valued
results instead of raising.

Two category sources are used on purpose:
    - category_breakdown reads the LIVE branch category (current state);
    - category_month_stats groups by the category SNAPSHOT stored on each
      visit (historical accuracy after a branch is re-tiered).
"""

from collections import Counter, defaultdict
from datetime import date, timedelta

from branchvisit.core.exceptions import ValidationError
from branchvisit.models.branch import BRANCH_CATEGORIES, normalize_category
from branchvisit.models.visit import (
    QUALITATIVE_FIELDS,
    REPORTED_STATUSES,
    STATUS_APPROVED,
    VISIT_STATUSES,
    coverage_percentage,
)
from branchvisit.utils.helpers import parse_date
from branchvisit.utils.toggles import YesNo

# period keyword → how far back the window starts
PERIODS = {
    "lastWeek": {"days": 7},
    "lastMonth": {"months": 1},
    "lastQuarter": {"months": 3},
    "lastSixMonths": {"months": 6},
    "lastYear": {"months": 12},
}

# trend series name → visit column
TREND_METRICS = {
    "manning": "manning_percentage",
    "attrition": "attrition_percentage",
    "er": "er_percentage",
    "nonVendor": "non_vendor_percentage",
}


# ── Record access ────────────────────────────────────────────────────────────


def _get(record, field, default=None):
    if isinstance(record, dict):
        return record.get(field, default)
    return getattr(record, field, default)


def _visit_date(visit) -> date | None:
    return parse_date(_get(visit, "visit_date"))


def _live_category(visit) -> str:
    """Live category of the visit's branch (joined row or embedded dict)."""
    branch = _get(visit, "branch")
    if branch is None:
        return normalize_category(None)
    return normalize_category(_get(branch, "category"))


def mean(values, ndigits: int = 1):
    """Mean of the non-null values rounded to *ndigits*; 0 when there are none."""
    present = [float(v) for v in values if v is not None]
    if not present:
        return 0
    return round(sum(present) / len(present), ndigits)


def _pct(part: int, whole: int, ndigits: int = 1):
    if not whole:
        return 0
    return round(part / whole * 100, ndigits)


def _add_months(year: int, month: int, delta: int) -> tuple[int, int]:
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1


def _in_range(d: date | None, date_from: date | None, date_to: date | None) -> bool:
    if d is None:
        return False
    if date_from is not None and d < date_from:
        return False
    if date_to is not None and d > date_to:
        return False
    return True


# ── Category views ───────────────────────────────────────────────────────────


def category_breakdown(branches) -> dict[str, int]:
    """Branch count per live category; every category is present."""
    counts = Counter(normalize_category(_get(b, "category")) for b in branches)
    return {category: counts.get(category, 0) for category in BRANCH_CATEGORIES}


def category_month_stats(visits, branches, year: int, month: int) -> list[dict]:
    """
    Per-category statistics for one calendar month.

    Only submitted / approved visits dated inside the month count.  Visits
    are grouped by their stored ``branch_category`` snapshot; ``branchCount``
    comes from the live branch table.

    Returns one row per category (all categories, in tier order):
        {"name", "visits", "avgManning", "avgAttrition", "branchCount"}
    """
    live_counts = category_breakdown(branches)
    grouped = defaultdict(list)
    for visit in visits:
        if _get(visit, "status") not in REPORTED_STATUSES:
            continue
        d = _visit_date(visit)
        if d is None or d.year != year or d.month != month:
            continue
        grouped[normalize_category(_get(visit, "branch_category"))].append(visit)

    rows = []
    for category in BRANCH_CATEGORIES:
        members = grouped.get(category, [])
        rows.append({
            "name": category,
            "visits": len(members),
            "avgManning": mean(_get(v, "manning_percentage") for v in members),
            "avgAttrition": mean(_get(v, "attrition_percentage") for v in members),
            "branchCount": live_counts[category],
        })
    return rows


# ── Period trend ─────────────────────────────────────────────────────────────


def period_window(period: str, today: date | None = None) -> tuple[date, date]:
    """(start, end) dates covered by a period keyword.  end is *today*."""
    today = today or date.today()
    window = PERIODS.get(period)
    if window is None:
        raise ValidationError(
            f"Unknown period: {period}",
            details={"period": f"must be one of {', '.join(PERIODS)}"},
        )
    if "days" in window:
        return today - timedelta(days=window["days"]), today
    year, month = _add_months(today.year, today.month, -window["months"])
    # Clamp the day for shorter months (e.g. 31 Mar → 28/29 Feb).
    day = today.day
    while True:
        try:
            return date(year, month, day), today
        except ValueError:
            day -= 1


def period_trend(visits, period: str, today: date | None = None) -> list[dict]:
    """
    Monthly buckets of metric means for the selected period.

    Buckets run contiguously from the window's first month to the current
    month.  Only submitted / approved visits inside the window count.
    Empty buckets report 0 for every metric and are still included.

    Returns:
        [{"month": "2024-05", "label": "May 2024", "visits": int,
          "manning", "attrition", "er", "nonVendor", "cwt"}, ...]

    Metric series are means; ``cwt`` is the month's total CWT cases.
    """
    start, end = period_window(period, today)

    keys = []
    year, month = start.year, start.month
    while (year, month) <= (end.year, end.month):
        keys.append((year, month))
        year, month = _add_months(year, month, 1)

    grouped = defaultdict(list)
    for visit in visits:
        if _get(visit, "status") not in REPORTED_STATUSES:
            continue
        d = _visit_date(visit)
        if not _in_range(d, start, end):
            continue
        grouped[(d.year, d.month)].append(visit)

    series = []
    for key in keys:
        members = grouped.get(key, [])
        bucket = date(key[0], key[1], 1)
        row = {
            "month": bucket.strftime("%Y-%m"),
            "label": bucket.strftime("%b %Y"),
            "visits": len(members),
        }
        for name, column in TREND_METRICS.items():
            row[name] = mean(_get(v, column) for v in members)
        row["cwt"] = sum(int(_get(v, "cwt_cases") or 0) for v in members)
        series.append(row)
    return series


# ── Qualitative assessment ───────────────────────────────────────────────────


def qualitative_heatmap(
    visits,
    *,
    date_from: date | None = None,
    date_to: date | None = None,
    branch_category: str | None = None,
) -> list[dict]:
    """
    Yes / no counts per qualitative question across approved visits.

    Optional filters: visit date range (inclusive) and live branch category.
    Every question is always present; ``yes + no == total`` and a question
    with no answers reports 0 %.  ``positive_pct`` accounts for inverted
    questions, where "no" is the favourable answer.
    """
    selected = []
    for visit in visits:
        if _get(visit, "status") != STATUS_APPROVED:
            continue
        if (date_from or date_to) and not _in_range(_visit_date(visit), date_from, date_to):
            continue
        if branch_category and _live_category(visit) != normalize_category(branch_category):
            continue
        selected.append(visit)

    rows = []
    for field, meta in QUALITATIVE_FIELDS.items():
        yes = no = 0
        for visit in selected:
            value = _get(visit, field)
            if value == YesNo.YES.value:
                yes += 1
            elif value == YesNo.NO.value:
                no += 1
        total = yes + no
        favourable = no if meta["inverted"] else yes
        rows.append({
            "metric": field,
            "label": meta["label"],
            "question": meta["question"],
            "inverted": meta["inverted"],
            "yes": yes,
            "no": no,
            "total": total,
            "yes_pct": _pct(yes, total),
            "no_pct": _pct(no, total),
            "positive_pct": _pct(favourable, total),
        })
    return rows


def qualitative_summary(visits) -> dict:
    """Favourable-answer percentage per question plus their overall mean."""
    rows = qualitative_heatmap(visits)
    scores = {row["metric"]: row["positive_pct"] for row in rows}
    answered = [row["positive_pct"] for row in rows if row["total"]]
    scores["overall"] = mean(answered)
    return scores


# ── Representatives ──────────────────────────────────────────────────────────


def top_performers(visits, users, limit: int = 5) -> list[dict]:
    """
    Representatives ranked by number of submitted / approved visits.

    Ties are broken by full name (case-insensitive, ascending), then by
    user id, so the ranking is deterministic.  Representatives whose
    user row is missing sort after named ones on a tie.
    """
    by_id = {_get(u, "id"): u for u in users}
    grouped = defaultdict(list)
    for visit in visits:
        if _get(visit, "status") in REPORTED_STATUSES:
            grouped[_get(visit, "user_id")].append(visit)

    rows = []
    for user_id, members in grouped.items():
        user = by_id.get(user_id)
        name = _get(user, "full_name") if user is not None else None
        rows.append({
            "user_id": user_id,
            "name": name,
            "employee_code": _get(user, "employee_code") if user is not None else None,
            "visits": len(members),
            "branches": len({_get(v, "branch_id") for v in members}),
            "avg_coverage": mean(
                coverage_percentage(
                    _get(v, "total_employees_invited"), _get(v, "total_participants"),
                )
                for v in members
            ),
        })

    rows.sort(key=lambda r: (-r["visits"], r["name"] is None, (r["name"] or "").casefold(),
                             str(r["user_id"])))
    for rank, row in enumerate(rows, 1):
        row["rank"] = rank
    if limit is not None:
        rows = rows[:limit]
    return rows


def report_stats(visits) -> dict[str, int]:
    """Visit counts per status plus a total."""
    counts = Counter(_get(v, "status") for v in visits)
    stats = {"total": sum(counts.get(s, 0) for s in VISIT_STATUSES)}
    for status in VISIT_STATUSES:
        stats[status] = counts.get(status, 0)
    return stats


# ── Dashboard ────────────────────────────────────────────────────────────────


def dashboard_coverage(visits, total_branches: int) -> int:
    """round(distinct branches visited / total branches * 100); 0 with no branches."""
    if not total_branches:
        return 0
    visited = {_get(v, "branch_id") for v in visits}
    return round(len(visited) / total_branches * 100)


def dashboard_summary(visits, branches) -> dict:
    """Headline numbers for a set of visits (usually this month's reported visits)."""
    branches = list(branches)
    visits = list(visits)
    return {
        "total_branches": len(branches),
        "visited_branches": len({_get(v, "branch_id") for v in visits}),
        "coverage": dashboard_coverage(visits, len(branches)),
        "total_visits": len(visits),
        "unique_bhrs": len({_get(v, "user_id") for v in visits}),
        "avg_manning": mean(_get(v, "manning_percentage") for v in visits),
        "avg_attrition": mean(_get(v, "attrition_percentage") for v in visits),
        "avg_er": mean(_get(v, "er_percentage") for v in visits),
        "avg_non_vendor": mean(_get(v, "non_vendor_percentage") for v in visits),
        "total_cwt_cases": sum(int(_get(v, "cwt_cases") or 0) for v in visits),
    }
