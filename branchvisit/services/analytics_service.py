"""
Analytics Service

Fetches visits / branches / users through the store and hands them to the
aggregation engine.  Nothing is cached: every call re-reads the database.
Store failures surface as StoreUnavailableError (HTTP 503).

  - get_dashboard:            this month's headline numbers + qualitative summary
  - get_category_breakdown:   branches per live category
  - get_category_month_stats: per-category stats for a month (snapshot category)
  - get_period_trend:         monthly metric means for a period keyword
  - get_heatmap:              yes/no counts per question (approved visits)
  - get_top_performers:       representatives ranked by reported visits
  - get_monthly_summary:      headline numbers for one calendar month
"""

import logging
from datetime import date

from flask import current_app, has_app_context

from branchvisit.models.branch import CATEGORY_COLORS
from branchvisit.models.user import VISIT_OWNER_ROLES
from branchvisit.models.visit import REPORTED_STATUSES, STATUS_APPROVED
from branchvisit.services import aggregation, store
from branchvisit.services.view_preferences import ChartPreferences, apply_to_series
from branchvisit.utils.helpers import month_bounds

logger = logging.getLogger(__name__)


def _top_limit() -> int:
    if has_app_context():
        return current_app.config.get("TOP_PERFORMERS_LIMIT", 5)
    return 5


def get_dashboard(today: date | None = None) -> dict:
    """Current-month dashboard: coverage, averages, qualitative scores, top BHRs."""
    today = today or date.today()
    month_start, month_end = month_bounds(today.year, today.month)

    branches = store.unwrap(store.query_branches())
    visits = store.unwrap(store.query_visits(
        statuses=REPORTED_STATUSES, date_from=month_start, date_to=month_end,
    ))
    approved = [v for v in visits if v.status == STATUS_APPROVED]
    users = store.unwrap(store.query_users(roles=VISIT_OWNER_ROLES))

    summary = aggregation.dashboard_summary(visits, branches)
    summary.update({
        "year": today.year,
        "month": today.month,
        "qualitative": aggregation.qualitative_summary(approved),
        "top_performers": aggregation.top_performers(visits, users, limit=_top_limit()),
        "report_stats": aggregation.report_stats(visits),
    })
    logger.debug("Dashboard computed: %d visits, %d branches", len(visits), len(branches))
    return summary


def get_category_breakdown() -> list[dict]:
    branches = store.unwrap(store.query_branches())
    counts = aggregation.category_breakdown(branches)
    return [
        {"name": name, "value": count, "color": CATEGORY_COLORS[name]}
        for name, count in counts.items()
    ]


def get_category_month_stats(year: int, month: int) -> list[dict]:
    month_start, month_end = month_bounds(year, month)
    branches = store.unwrap(store.query_branches())
    visits = store.unwrap(store.query_visits(
        statuses=REPORTED_STATUSES, date_from=month_start, date_to=month_end,
    ))
    return aggregation.category_month_stats(visits, branches, year, month)


def get_period_trend(
    period: str,
    prefs: ChartPreferences | None = None,
    today: date | None = None,
) -> dict:
    """Monthly trend series; hidden series are dropped when *prefs* is given."""
    start, end = aggregation.period_window(period, today)
    visits = store.unwrap(store.query_visits(
        statuses=REPORTED_STATUSES, date_from=start, date_to=end,
    ))
    series = aggregation.period_trend(visits, period, today=end)
    prefs = prefs or ChartPreferences.default()
    return {
        "period": period,
        "from": start.isoformat(),
        "to": end.isoformat(),
        "series": apply_to_series(series, prefs),
        "visible": prefs.visible_metrics,
    }


def get_heatmap(
    date_from: date | None = None,
    date_to: date | None = None,
    branch_category: str | None = None,
) -> list[dict]:
    visits = store.unwrap(store.query_visits(
        statuses=[STATUS_APPROVED],
        date_from=date_from,
        date_to=date_to,
        branch_category=branch_category,
    ))
    return aggregation.qualitative_heatmap(
        visits, date_from=date_from, date_to=date_to, branch_category=branch_category,
    )


def get_top_performers(
    limit: int | None = None,
    date_from: date | None = None,
    date_to: date | None = None,
) -> list[dict]:
    visits = store.unwrap(store.query_visits(
        statuses=REPORTED_STATUSES, date_from=date_from, date_to=date_to,
    ))
    users = store.unwrap(store.query_users(roles=VISIT_OWNER_ROLES))
    return aggregation.top_performers(visits, users, limit=limit or _top_limit())


def get_monthly_summary(year: int, month: int) -> dict:
    """Headline numbers for one calendar month (the reports screen summary)."""
    month_start, month_end = month_bounds(year, month)
    branches = store.unwrap(store.query_branches())
    visits = store.unwrap(store.query_visits(date_from=month_start, date_to=month_end))
    reported = [v for v in visits if v.status in REPORTED_STATUSES]

    summary = aggregation.dashboard_summary(reported, branches)
    summary.update({
        "year": year,
        "month": month,
        "report_stats": aggregation.report_stats(visits),
    })
    return summary
