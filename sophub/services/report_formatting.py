# sophub/services/report_formatting.py
from __future__ import annotations

import csv
import io
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from sophub.schemas.report import PaginationParams, ReportFilters, ReportPage

DATE_RANGE_DAYS = {
    "last-7-days": 7,
    "last-30-days": 30,
    "last-90-days": 90,
    "last-year": 365,
}
DEFAULT_DATE_RANGE_DAYS = 30

# filter name -> row key it applies to
DEFAULT_FILTER_FIELDS = {
    "status": "status",
    "department": "department",
    "priority": "priority",
    "document_type": "document_type",
    "user": "user_id",
}

EXPORT_MEDIA_TYPES = {"csv": "text/csv"}


class ExportNotImplemented(NotImplementedError):
    """Raised for export formats that are declared but not produced."""

    def __init__(self, fmt: str):
        super().__init__(f"Export format {fmt} not implemented yet")
        self.format = fmt


# -----------------------------
# Date windows
# -----------------------------
def date_range_days(preset: Optional[str]) -> int:
    return DATE_RANGE_DAYS.get(preset or "", DEFAULT_DATE_RANGE_DAYS)


def date_range_window(preset: Optional[str], now: datetime) -> Tuple[datetime, datetime]:
    """Fixed lookback window ending at ``now``; unknown presets fall back to 30 days."""
    return now - timedelta(days=date_range_days(preset)), now


# -----------------------------
# Filtering / search / pagination
# -----------------------------
def is_all(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip().lower() in ("", "all"))


def _matches(row_value: Any, wanted: str) -> bool:
    if row_value is None:
        return False
    return str(row_value).strip().lower() == wanted.strip().lower()


def apply_filters(
    rows: Iterable[Dict[str, Any]],
    filters: ReportFilters,
    fields: Mapping[str, str] = DEFAULT_FILTER_FIELDS,
) -> List[Dict[str, Any]]:
    """
    Keep rows matching every active filter. Filters without a mapped row key
    are ignored for that report.
    """
    active = [
        (row_key, getattr(filters, name))
        for name, row_key in fields.items()
        if not is_all(getattr(filters, name, None))
    ]
    return [r for r in rows if all(_matches(r.get(key), wanted) for key, wanted in active)]


def apply_search(
    rows: Iterable[Dict[str, Any]],
    term: Optional[str],
    fields: Sequence[str],
) -> List[Dict[str, Any]]:
    needle = (term or "").strip().lower()
    rows = list(rows)
    if not needle:
        return rows
    return [
        r
        for r in rows
        if any(needle in str(r.get(f) or "").lower() for f in fields)
    ]


def paginate(rows: Sequence[Dict[str, Any]], page: int, items_per_page: int) -> List[Dict[str, Any]]:
    start = (max(page, 1) - 1) * items_per_page
    return list(rows[start:start + items_per_page])


def build_page(
    rows: Iterable[Dict[str, Any]],
    filters: ReportFilters,
    pagination: PaginationParams,
    *,
    search_fields: Sequence[str],
    stats_fn: Callable[[List[Dict[str, Any]]], Dict[str, Any]],
    filter_fields: Mapping[str, str] = DEFAULT_FILTER_FIELDS,
) -> ReportPage:
    """
    Filters first, then search, then pagination. ``total`` and ``stats``
    describe the filtered + searched set before it is cut into a page.
    """
    filtered = apply_filters(rows, filters, filter_fields)
    searched = apply_search(filtered, pagination.search, search_fields)
    return ReportPage(
        data=paginate(searched, pagination.page, pagination.items_per_page),
        total=len(searched),
        stats=stats_fn(searched),
        page=pagination.page,
        items_per_page=pagination.items_per_page,
    )


# -----------------------------
# Export
# -----------------------------
def _cell(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, bool):
        return "true" if value else "false"
    return value


def to_csv(rows: Sequence[Mapping[str, Any]]) -> str:
    """
    Header from the first row's keys; fields containing the delimiter are
    quoted. Empty input yields an empty string.
    """
    if not rows:
        return ""
    headers = list(rows[0].keys())
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=headers, extrasaction="ignore", lineterminator="\n")
    writer.writeheader()
    for row in rows:
        writer.writerow({h: _cell(row.get(h)) for h in headers})
    return buf.getvalue().rstrip("\n")


def export_rows(rows: Sequence[Mapping[str, Any]], fmt: str) -> Tuple[str, str]:
    """Serialize rows to (content, media_type). Only CSV is produced."""
    fmt = (fmt or "").lower()
    if fmt == "csv":
        return to_csv(rows), EXPORT_MEDIA_TYPES["csv"]
    if fmt in ("excel", "pdf"):
        raise ExportNotImplemented(fmt)
    raise ValueError(f"Unknown export format: {fmt}")


# -----------------------------
# Audit details
# -----------------------------
def format_audit_details(
    action: Optional[str],
    old_values: Any,
    new_values: Any,
    metadata: Any,
) -> str:
    if isinstance(metadata, dict) and metadata.get("description"):
        return str(metadata["description"])

    if action and isinstance(new_values, dict):
        old = old_values if isinstance(old_values, dict) else {}
        changes = [k for k, v in new_values.items() if not old_values or old.get(k) != v]
        if changes:
            return f"Changed: {', '.join(changes)}"

    return action or "System action performed"
