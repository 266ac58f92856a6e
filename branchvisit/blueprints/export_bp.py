"""
Report download endpoints.

    GET /api/v1/exports/branch-visits        ?month=&year=&location=&category=&user_id=
    GET /api/v1/exports/bh-performance       ?month=&year=&location=
    GET /api/v1/exports/branch-assignments

    format: csv | xlsx (default: csv)

An empty report never produces a file: the response is 200 JSON
``{"exported": false, "notice": "No data to export"}`` so the UI can show
a notice instead of downloading an empty sheet.  Content is built
in-memory; no temp files.
"""

import logging

from flask import Blueprint, Response, jsonify, request

from branchvisit.auth import require_role
from branchvisit.core.exceptions import EmptyExportError
from branchvisit.models.user import ANALYST_ROLES
from branchvisit.services import export_service
from branchvisit.utils.errors import E, api_error, register_error_handlers
from branchvisit.utils.helpers import parse_month_year

logger = logging.getLogger(__name__)

export_bp = Blueprint("export", __name__, url_prefix="/api/v1/exports")
register_error_handlers(export_bp, logger)

SUPPORTED_FORMATS = ("csv", "xlsx")

# URL slug → (report name, accepted filter args)
_REPORT_ROUTES = {
    "branch-visits": ("branch_visits", ("location", "category", "user_id")),
    "bh-performance": ("bh_performance", ("location",)),
    "branch-assignments": ("branch_assignments", ()),
}


@export_bp.errorhandler(EmptyExportError)
def _handle_empty(error: EmptyExportError):
    logger.info("Export skipped, no rows", extra={"report": error.report})
    return jsonify({
        "exported": False,
        "notice": str(error),
        "code": E.EMPTY_EXPORT,
        "report": error.report,
    }), 200


@export_bp.route("/<slug>", methods=["GET"])
@require_role(*ANALYST_ROLES)
def export_report(slug: str):
    """Download one report as CSV or XLSX.

    Returns:
        Binary file download with Content-Disposition, or the empty notice.
    """
    route = _REPORT_ROUTES.get(slug)
    if route is None:
        return api_error(E.NOT_FOUND, f"Unknown report: {slug}")
    report, filter_args = route

    fmt = request.args.get("format", "csv").lower()
    if fmt not in SUPPORTED_FORMATS:
        return api_error(
            E.VALIDATION_INVALID,
            f"Unsupported format. Supported values: {', '.join(SUPPORTED_FORMATS)}.",
        )

    _, periodic, _ = export_service.REPORTS[report]
    year = month = None
    if periodic:
        try:
            year, month = parse_month_year(request.args)
        except ValueError as exc:
            return api_error(E.VALIDATION_INVALID, str(exc))

    filters = {name: request.args[name] for name in filter_args if request.args.get(name)}
    content, mimetype, filename = export_service.render_report(
        report, fmt, year=year, month=month, **filters,
    )
    return Response(
        content,
        mimetype=mimetype,
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )
