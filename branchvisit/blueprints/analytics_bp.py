"""
Analytics Blueprint — dashboards for channel / zonal heads.

Endpoints (all GET, prefix /api/v1/analytics):
    /dashboard            — current month headline numbers
    /category-breakdown   — branches per live category
    /category-month       — per-category stats, ?month=&year=
    /trends               — ?period=lastSixMonths&series=manning,er
    /heatmap              — ?date_from=&date_to=&category=
    /top-performers       — ?limit=&date_from=&date_to=
    /monthly-summary      — ?month=&year=
"""

import logging

from flask import Blueprint, jsonify, request

from branchvisit.auth import require_role
from branchvisit.models.branch import BRANCH_CATEGORIES
from branchvisit.models.user import ANALYST_ROLES
from branchvisit.services import analytics_service
from branchvisit.services.aggregation import PERIODS
from branchvisit.services.view_preferences import from_query
from branchvisit.utils.errors import E, api_error, register_error_handlers
from branchvisit.utils.helpers import parse_date_input, parse_month_year

logger = logging.getLogger(__name__)

analytics_bp = Blueprint("analytics", __name__, url_prefix="/api/v1/analytics")
register_error_handlers(analytics_bp, logger)

DEFAULT_PERIOD = "lastSixMonths"
MAX_TOP_LIMIT = 50


def _date_range(args):
    """(date_from, date_to, err_response) from optional query args."""
    try:
        date_from = parse_date_input(args.get("date_from")) if args.get("date_from") else None
        date_to = parse_date_input(args.get("date_to")) if args.get("date_to") else None
    except ValueError as exc:
        return None, None, api_error(E.VALIDATION_INVALID, str(exc))
    if date_from and date_to and date_from > date_to:
        return None, None, api_error(E.VALIDATION_INVALID, "date_from must not be after date_to")
    return date_from, date_to, None


def _month(args):
    try:
        return parse_month_year(args), None
    except ValueError as exc:
        return None, api_error(E.VALIDATION_INVALID, str(exc))


@analytics_bp.route("/dashboard", methods=["GET"])
@require_role(*ANALYST_ROLES)
def dashboard():
    return jsonify(analytics_service.get_dashboard()), 200


@analytics_bp.route("/category-breakdown", methods=["GET"])
@require_role(*ANALYST_ROLES)
def category_breakdown():
    return jsonify(analytics_service.get_category_breakdown()), 200


@analytics_bp.route("/category-month", methods=["GET"])
@require_role(*ANALYST_ROLES)
def category_month():
    period, err = _month(request.args)
    if err:
        return err
    year, month = period
    return jsonify({
        "year": year,
        "month": month,
        "categories": analytics_service.get_category_month_stats(year, month),
    }), 200


@analytics_bp.route("/trends", methods=["GET"])
@require_role(*ANALYST_ROLES)
def trends():
    period = request.args.get("period", DEFAULT_PERIOD)
    if period not in PERIODS:
        return api_error(E.VALIDATION_INVALID, f"period must be one of {', '.join(PERIODS)}")
    prefs = from_query(request.args.get("series"))
    return jsonify(analytics_service.get_period_trend(period, prefs)), 200


@analytics_bp.route("/heatmap", methods=["GET"])
@require_role(*ANALYST_ROLES)
def heatmap():
    date_from, date_to, err = _date_range(request.args)
    if err:
        return err
    category = request.args.get("category") or None
    if category and category not in BRANCH_CATEGORIES:
        return api_error(
            E.VALIDATION_INVALID, f"category must be one of {', '.join(BRANCH_CATEGORIES)}",
        )
    rows = analytics_service.get_heatmap(date_from, date_to, category)
    return jsonify({"items": rows, "total_responses": max((r["total"] for r in rows), default=0)}), 200


@analytics_bp.route("/top-performers", methods=["GET"])
@require_role(*ANALYST_ROLES)
def top_performers():
    limit = request.args.get("limit", type=int)
    if limit is not None and not 1 <= limit <= MAX_TOP_LIMIT:
        return api_error(E.VALIDATION_INVALID, f"limit must be between 1 and {MAX_TOP_LIMIT}")
    date_from, date_to, err = _date_range(request.args)
    if err:
        return err
    items = analytics_service.get_top_performers(limit, date_from, date_to)
    return jsonify({"items": items, "total": len(items)}), 200


@analytics_bp.route("/monthly-summary", methods=["GET"])
@require_role(*ANALYST_ROLES)
def monthly_summary():
    period, err = _month(request.args)
    if err:
        return err
    return jsonify(analytics_service.get_monthly_summary(*period)), 200
