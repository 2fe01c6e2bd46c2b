# sophub/services/reporting.py
"""
Company reports: acknowledgment, sop-review, user-activity,
compliance-summary and audit-trail.

Each builder reads everything it needs for the selected date window, shapes
rows, then hands them to the formatter (filters → search → page). Stats
always describe the filtered set, not the page.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from sophub.core.timeutils import utcnow
from sophub.models.audit_log import AuditLog
from sophub.models.sop import Sop
from sophub.models.sop_review import SopReview
from sophub.models.user import User
from sophub.schemas.report import EXPORT_PAGE_SIZE, PaginationParams, ReportFilters, ReportPage
from sophub.services.aggregation import (
    UNKNOWN_DEPARTMENT,
    acknowledgment_report_stats,
    audit_trail_stats,
    compliance_summary_stats,
    review_stats,
    rollup_by_department,
    user_activity_rows,
    user_activity_stats,
)
from sophub.services.assignments import load_assignment_rows
from sophub.services.report_formatting import (
    apply_filters,
    build_page,
    date_range_window,
    export_rows,
    format_audit_details,
)
from sophub.services.status import derive_review_status, derive_tracking_status

log = logging.getLogger("sophub.services.reporting")


# -----------------------------
# Acknowledgment report
# -----------------------------
def acknowledgment_report(
    db: Session,
    company_id: int,
    filters: ReportFilters,
    pagination: PaginationParams,
    now: Optional[datetime] = None,
) -> ReportPage:
    now = now or utcnow()
    start, end = date_range_window(filters.date_range, now)
    rows = load_assignment_rows(db, company_id=company_id, created_from=start, created_to=end)

    data = [
        {
            "id": r["assignment_id"],
            "document": r["title"] or "Unknown Document",
            "assigned_to": r["user_name"] or "Unknown User",
            "user_id": r["user_id"],
            "status": derive_tracking_status(r["due_date"], r["acknowledged_at"] is not None, r["notes"], now),
            "due_date": r["due_date"],
            "acknowledged_on": r["acknowledged_at"],
            "version": r["version"],
            "department": r["department"] or r["user_department"] or UNKNOWN_DEPARTMENT,
            "priority": r["priority"] or "medium",
            "document_type": r["document_type"],
            "assigned_by": r["assigned_by_name"] or "Unknown",
            "notes": r["notes"],
        }
        for r in rows
    ]
    return build_page(
        data,
        filters,
        pagination,
        search_fields=("document", "assigned_to"),
        stats_fn=acknowledgment_report_stats,
    )


# -----------------------------
# SOP review report
# -----------------------------
def sop_review_report(
    db: Session,
    company_id: int,
    filters: ReportFilters,
    pagination: PaginationParams,
    now: Optional[datetime] = None,
) -> ReportPage:
    now = now or utcnow()
    start, end = date_range_window(filters.date_range, now)
    records = (
        db.query(SopReview, Sop, User)
        .join(Sop, Sop.id == SopReview.sop_id)
        .outerjoin(User, User.id == SopReview.reviewer_id)
        .filter(
            Sop.company_id == company_id,
            Sop.deleted_at.is_(None),
            SopReview.created_at >= start,
            SopReview.created_at <= end,
        )
        .order_by(SopReview.created_at.desc(), SopReview.id.desc())
        .all()
    )

    data = [
        {
            "id": review.id,
            "title": sop.title or "Unknown",
            "current_version": sop.version,
            "status": review.status,
            "review_status": derive_review_status(review.status, review.due_date, now),
            "last_reviewed": review.completed_at,
            "next_review": sop.next_review_date,
            "due_date": review.due_date,
            "assigned_reviewer": (reviewer.full_name or reviewer.email) if reviewer else "No reviewer",
            "department": sop.department or UNKNOWN_DEPARTMENT,
            "priority": sop.priority or "medium",
            "document_type": sop.document_type,
            "review_type": review.review_type or "approval",
        }
        for review, sop, reviewer in records
    ]
    return build_page(
        data,
        filters,
        pagination,
        search_fields=("title", "assigned_reviewer"),
        stats_fn=review_stats,
        filter_fields={
            "status": "status",
            "department": "department",
            "priority": "priority",
            "document_type": "document_type",
        },
    )


# -----------------------------
# User activity report
# -----------------------------
def user_activity_report(
    db: Session,
    company_id: int,
    filters: ReportFilters,
    pagination: PaginationParams,
    now: Optional[datetime] = None,
) -> ReportPage:
    now = now or utcnow()
    start, end = date_range_window(filters.date_range, now)
    users = (
        db.query(User)
        .filter(User.company_id == company_id, User.deleted_at.is_(None))
        .order_by(User.last_login_at.is_(None), User.last_login_at.desc(), User.id.asc())
        .all()
    )
    assignments = load_assignment_rows(db, company_id=company_id, created_from=start, created_to=end)

    data = user_activity_rows(
        [
            {
                "id": u.id,
                "name": u.full_name,
                "email": u.email,
                "department": u.department,
                "role": u.role,
                "status": u.status,
                "last_login_at": u.last_login_at,
                "created_at": u.created_at,
            }
            for u in users
        ],
        assignments,
        start,
        end,
    )
    return build_page(
        data,
        filters,
        pagination,
        search_fields=("user", "email"),
        stats_fn=user_activity_stats,
        filter_fields={"department": "department", "status": "status", "user": "id"},
    )


# -----------------------------
# Compliance summary (by department)
# -----------------------------
def compliance_summary_report(
    db: Session,
    company_id: int,
    filters: ReportFilters,
    pagination: PaginationParams,
    now: Optional[datetime] = None,
) -> ReportPage:
    now = now or utcnow()
    start, end = date_range_window(filters.date_range, now)
    rows = load_assignment_rows(db, company_id=company_id, created_from=start, created_to=end)

    # row-level filters narrow what is rolled up; department applies to the group key
    rows = apply_filters(
        rows,
        filters,
        {"priority": "priority", "document_type": "document_type", "user": "user_id"},
    )
    departments = rollup_by_department(rows, now)
    return build_page(
        departments,
        filters,
        pagination,
        search_fields=("department",),
        stats_fn=compliance_summary_stats,
        filter_fields={"department": "department"},
    )


# -----------------------------
# Audit trail
# -----------------------------
def audit_trail_report(
    db: Session,
    company_id: int,
    filters: ReportFilters,
    pagination: PaginationParams,
    now: Optional[datetime] = None,
) -> ReportPage:
    now = now or utcnow()
    start, end = date_range_window(filters.date_range, now)
    records = (
        db.query(AuditLog, User)
        .outerjoin(User, User.id == AuditLog.user_id)
        .filter(
            AuditLog.company_id == company_id,
            AuditLog.created_at >= start,
            AuditLog.created_at <= end,
        )
        .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .all()
    )

    data = [
        {
            "id": log_row.id,
            "event": log_row.action or "Unknown Action",
            "user": (user.full_name or user.email) if user else "System",
            "user_id": log_row.user_id,
            "timestamp": log_row.created_at,
            "entity": log_row.resource_type or "Unknown",
            "details": format_audit_details(
                log_row.action, log_row.old_values, log_row.new_values, log_row.meta
            ),
            "ip_address": log_row.ip_address or "Unknown",
            "user_agent": log_row.user_agent,
            "resource_type": log_row.resource_type or "Unknown",
            "resource_id": log_row.resource_id,
        }
        for log_row, user in records
    ]
    return build_page(
        data,
        filters,
        pagination,
        search_fields=("event", "entity", "user"),
        stats_fn=lambda selected: audit_trail_stats(selected, now),
        filter_fields={"user": "user_id"},
    )


# -----------------------------
# Dispatch / export
# -----------------------------
ReportBuilder = Callable[..., ReportPage]

REPORT_BUILDERS: Dict[str, ReportBuilder] = {
    "acknowledgment": acknowledgment_report,
    "sop-review": sop_review_report,
    "user-activity": user_activity_report,
    "compliance-summary": compliance_summary_report,
    "audit-trail": audit_trail_report,
}


def run_report(
    db: Session,
    report_type: str,
    company_id: int,
    filters: ReportFilters,
    pagination: PaginationParams,
    now: Optional[datetime] = None,
) -> ReportPage:
    builder = REPORT_BUILDERS.get(report_type)
    if builder is None:
        raise ValueError("Invalid report type")
    page = builder(db, company_id, filters, pagination, now=now)
    log.debug(
        "report %s company=%s page=%s total=%s", report_type, company_id, pagination.page, page.total
    )
    return page


def export_report(
    db: Session,
    report_type: str,
    company_id: int,
    filters: ReportFilters,
    fmt: str,
    now: Optional[datetime] = None,
) -> Tuple[str, str, int]:
    """
    Export every row of a report (search-free, single page of up to
    EXPORT_PAGE_SIZE rows). Returns (content, media_type, row_count).
    """
    # reject unsupported formats before touching the database
    export_rows([], fmt)
    page = run_report(
        db,
        report_type,
        company_id,
        filters,
        PaginationParams(page=1, items_per_page=EXPORT_PAGE_SIZE),
        now=now,
    )
    rows: List[Dict[str, Any]] = page.data
    content, media_type = export_rows(rows, fmt)
    return content, media_type, len(rows)
