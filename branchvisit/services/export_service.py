"""
Report export: row builders and file formatters.

Row builders return flat dicts with identical keys (column order = key
insertion order).  Formatters turn them into a file body:

    format_delimited(rows)   → str   (CSV, values JSON-quoted)
    format_xlsx(rows, title) → bytes (styled workbook)

Delimited format: the header line is the first record's keys joined with
",", every value is ``json.dumps``-ed before joining, lines are joined with
"\\n".  Strings therefore appear in double quotes with JSON escaping, numbers
bare, and missing values as ``null``.  This is not RFC-4180 quoting; it is
kept so existing spreadsheets built on these downloads keep parsing.

Both formatters raise EmptyExportError for an empty list; the export
blueprint turns that into a notice and never produces an empty file.
"""

import io
import json
import logging
from collections import Counter, defaultdict

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from branchvisit.core.exceptions import EmptyExportError
from branchvisit.models.user import ROLE_BH
from branchvisit.models.visit import QUALITATIVE_FIELDS, STATUS_DRAFT, VISIT_STATUSES
from branchvisit.services import aggregation, store
from branchvisit.utils.helpers import MONTH_NAMES, month_bounds

logger = logging.getLogger(__name__)

HEADER_FILL = PatternFill(start_color="354A5F", end_color="354A5F", fill_type="solid")
HEADER_FONT = Font(color="FFFFFF", bold=True, size=11)
THIN_BORDER = Border(
    left=Side(style="thin"),
    right=Side(style="thin"),
    top=Side(style="thin"),
    bottom=Side(style="thin"),
)

XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
CSV_MIMETYPE = "text/csv; charset=utf-8"

# Every status except draft leaves the representative's hands and is exported.
EXPORTED_STATUSES = tuple(s for s in VISIT_STATUSES if s != STATUS_DRAFT)


# ── Formatters ───────────────────────────────────────────────────────────────


def _json_value(value) -> str:
    return json.dumps(value, ensure_ascii=False, default=str)


def format_delimited(records: list[dict], report: str | None = None) -> str:
    """Serialize homogeneous flat records into the delimited download format."""
    if not records:
        raise EmptyExportError(report)
    headers = list(records[0].keys())
    lines = [",".join(headers)]
    for record in records:
        lines.append(",".join(
            _json_value(record[h]) if h in record else "" for h in headers
        ))
    return "\n".join(lines)


def _apply_header_style(ws, row: int, col_count: int) -> None:
    """Apply dark-header styling to an Excel row (1-indexed)."""
    for col in range(1, col_count + 1):
        cell = ws.cell(row=row, column=col)
        cell.fill = HEADER_FILL
        cell.font = HEADER_FONT
        cell.border = THIN_BORDER
        cell.alignment = Alignment(horizontal="center", vertical="center", wrap_text=True)


def _auto_width(ws) -> None:
    """Auto-size column widths based on content (capped at 60 chars)."""
    for col in ws.columns:
        max_len = 0
        col_letter = get_column_letter(col[0].column)
        for cell in col:
            if cell.value:
                max_len = max(max_len, min(len(str(cell.value)), 60))
        ws.column_dimensions[col_letter].width = max(max_len + 4, 12)


def format_xlsx(records: list[dict], sheet_title: str = "Report", report: str | None = None) -> bytes:
    """Same rows as format_delimited, as a styled single-sheet workbook."""
    if not records:
        raise EmptyExportError(report)
    headers = list(records[0].keys())

    wb = Workbook()
    ws = wb.active
    ws.title = sheet_title[:31]  # Excel sheet name limit
    ws.append(headers)
    _apply_header_style(ws, 1, len(headers))
    for record in records:
        ws.append([record.get(h) for h in headers])
        for cell in ws[ws.max_row]:
            cell.border = THIN_BORDER
    ws.freeze_panes = "A2"
    _auto_width(ws)

    buf = io.BytesIO()
    wb.save(buf)
    buf.seek(0)
    return buf.getvalue()


def build_filename(report: str, year: int | None = None, month: int | None = None,
                   fmt: str = "csv") -> str:
    """``{report}_{Month}_{Year}.{ext}`` for period reports, ``{report}.{ext}`` otherwise."""
    ext = "xlsx" if fmt == "xlsx" else "csv"
    if year is not None and month is not None:
        return f"{report}_{MONTH_NAMES[month - 1]}_{year}.{ext}"
    return f"{report}.{ext}"


# ── Row builders ─────────────────────────────────────────────────────────────


def branch_visit_rows(
    year: int,
    month: int,
    *,
    location: str | None = None,
    category: str | None = None,
    user_id: str | None = None,
) -> list[dict]:
    """One row per non-draft visit dated in the month, oldest first.

    Filters: branch location, live branch category, representative.
    """
    month_start, month_end = month_bounds(year, month)
    visits = store.unwrap(store.query_visits(
        statuses=EXPORTED_STATUSES,
        date_from=month_start,
        date_to=month_end,
        branch_category=category,
        user_id=user_id,
        newest_first=False,
    ))
    if location:
        visits = [v for v in visits if v.branch is not None and v.branch.location == location]
    visits.sort(key=lambda v: (v.visit_date, v.created_at, v.id))

    rows = []
    for v in visits:
        branch = v.branch
        user = v.user
        row = {
            "Visit Date": v.visit_date.isoformat(),
            "Branch": branch.name if branch else None,
            "Branch Code": branch.branch_code if branch else None,
            "Location": branch.location if branch else None,
            "Category": v.category_label,
            "BH Name": user.full_name if user else None,
            "BH Code": user.employee_code if user else None,
            "Status": v.status,
            "HR Connect Session": v.hr_connect_session,
            "Employees Invited": v.total_employees_invited,
            "Participants": v.total_participants,
            "Coverage %": v.coverage_percentage,
            "Manning %": v.manning_percentage,
            "Attrition %": v.attrition_percentage,
            "ER %": v.er_percentage,
            "Non-Vendor %": v.non_vendor_percentage,
            "CWT Cases": v.cwt_cases,
            "Performance Level": v.performance_level,
            "New Employees": v.new_employees_total,
            "New Employees Covered": v.new_employees_covered,
            "Star Employees": v.star_employees_total,
            "Star Employees Covered": v.star_employees_covered,
        }
        for field, meta in QUALITATIVE_FIELDS.items():
            row[meta["label"]] = getattr(v, field)
        row["Feedback"] = v.feedback
        rows.append(row)
    return rows


def bh_performance_rows(year: int, month: int, *, location: str | None = None) -> list[dict]:
    """One row per branch representative with their visit counts for the month."""
    month_start, month_end = month_bounds(year, month)
    users = store.unwrap(store.query_users(role=ROLE_BH, location=location))
    visits = store.unwrap(store.query_visits(date_from=month_start, date_to=month_end))
    assignments = store.unwrap(store.query_assignments())

    assigned = Counter(a.user_id for a in assignments)
    by_user = defaultdict(list)
    for v in visits:
        by_user[v.user_id].append(v)

    rows = []
    for user in users:
        mine = by_user.get(user.id, [])
        stats = aggregation.report_stats(mine)
        reported = [v for v in mine if v.status != STATUS_DRAFT]
        rows.append({
            "BH Name": user.full_name,
            "E-Code": user.employee_code,
            "Location": user.location,
            "Branches Assigned": assigned.get(user.id, 0),
            "Branches Visited": len({v.branch_id for v in reported}),
            "Total Visits": stats["total"],
            "Draft": stats["draft"],
            "Submitted": stats["submitted"],
            "Approved": stats["approved"],
            "Rejected": stats["rejected"],
            "Avg Coverage %": aggregation.mean(v.coverage_percentage for v in reported),
        })
    return rows


def branch_assignment_rows() -> list[dict]:
    """One row per branch ↔ representative assignment, ordered by branch name."""
    assignments = store.unwrap(store.query_assignments())
    rows = []
    for a in assignments:
        branch, user = a.branch, a.user
        rows.append({
            "Branch": branch.name if branch else None,
            "Branch Code": branch.branch_code if branch else None,
            "Location": branch.location if branch else None,
            "Category": branch.category_label if branch else None,
            "BH Name": user.full_name if user else None,
            "BH Code": user.employee_code if user else None,
            "Assigned Date": a.assigned_date.isoformat() if a.assigned_date else None,
        })
    rows.sort(key=lambda r: ((r["Branch"] or "").casefold(), (r["BH Name"] or "").casefold()))
    return rows


# name → (builder, needs month, sheet title)
REPORTS = {
    "branch_visits": (branch_visit_rows, True, "Branch Visits"),
    "bh_performance": (bh_performance_rows, True, "BH Performance"),
    "branch_assignments": (branch_assignment_rows, False, "Branch Assignments"),
}


def render_report(report: str, fmt: str, *, year: int | None = None, month: int | None = None,
                  **filters) -> tuple[str | bytes, str, str]:
    """
    Build and format one report.

    Returns:
        (content, mimetype, filename)

    Raises:
        EmptyExportError when the report has no rows; StoreUnavailableError.
    """
    builder, periodic, title = REPORTS[report]
    rows = builder(year, month, **filters) if periodic else builder()
    logger.info("Export %s format=%s rows=%d", report, fmt, len(rows))

    filename = build_filename(report, year if periodic else None,
                              month if periodic else None, fmt)
    if fmt == "xlsx":
        return format_xlsx(rows, title, report=report), XLSX_MIMETYPE, filename
    return format_delimited(rows, report=report), CSV_MIMETYPE, filename
