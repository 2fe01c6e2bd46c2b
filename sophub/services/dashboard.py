# sophub/services/dashboard.py
from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from sophub.core.timeutils import utcnow
from sophub.crud import notification as crud_notification
from sophub.crud.sop import sop_stats
from sophub.models.audit_log import AuditLog
from sophub.models.user import User
from sophub.services.aggregation import (
    acknowledgment_trend,
    compliance_rate,
    employee_dashboard_stats,
    rollup_by_department,
    tracking_stats,
    upcoming_deadlines,
)
from sophub.services.assignments import assignment_view, load_assignment_rows
from sophub.services.notifications import recent_for_user
from sophub.services.report_formatting import format_audit_details

RECENT_ACTIVITY_LIMIT = 10
TREND_MONTHS = 6


def _recent_audit(db: Session, company_id: int, limit: int = RECENT_ACTIVITY_LIMIT) -> List[Dict[str, Any]]:
    records = (
        db.query(AuditLog, User)
        .outerjoin(User, User.id == AuditLog.user_id)
        .filter(AuditLog.company_id == company_id)
        .order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
        .limit(limit)
        .all()
    )
    return [
        {
            "id": row.id,
            "event": row.action,
            "user": (user.full_name or user.email) if user else "System",
            "timestamp": row.created_at,
            "details": format_audit_details(row.action, row.old_values, row.new_values, row.meta),
        }
        for row, user in records
    ]


def admin_dashboard(db: Session, company_id: int, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Company-wide numbers for administrators and auditors."""
    now = now or utcnow()
    rows = load_assignment_rows(db, company_id=company_id)
    ack_stats = tracking_stats(rows, now)

    users = (
        db.query(User.status)
        .filter(User.company_id == company_id, User.deleted_at.is_(None))
        .all()
    )

    deadlines = [
        {
            "assignment_id": r["assignment_id"],
            "title": r["title"],
            "assigned_to": r["user_name"],
            "due_date": r["due_date"],
            "priority": r["priority"],
        }
        for r in upcoming_deadlines(rows, now)
    ]

    return {
        "company_id": company_id,
        "documents": sop_stats(db, company_id, now),
        "acknowledgments": ack_stats,
        "overall_compliance_rate": compliance_rate(ack_stats["acknowledged"], ack_stats["total"]),
        "users": {
            "total": len(users),
            "active": sum(1 for (status,) in users if status == "active"),
        },
        "compliance_by_department": rollup_by_department(rows, now),
        "recent_activity": _recent_audit(db, company_id),
        "upcoming_deadlines": deadlines,
        "acknowledgment_trend": acknowledgment_trend(
            [r["acknowledged_at"] for r in rows], now, months=TREND_MONTHS
        ),
    }


def employee_dashboard(db: Session, user: User, now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or utcnow()
    rows = load_assignment_rows(db, user_id=user.id)
    unread = crud_notification.unread_count(db, user.id, now)

    views = [assignment_view(r, now) for r in rows]
    open_items = sorted(
        (v for v in views if v["status"] != "acknowledged"),
        key=lambda v: (v["due_date"] is None, v["due_date"] or datetime.max, v["id"]),
    )

    activity: List[Dict[str, Any]] = []
    for r in rows:
        activity.append(
            {"type": "assigned", "title": r["title"], "date": r["created_at"], "sop_id": r["sop_id"]}
        )
        if r["acknowledged_at"] is not None:
            activity.append(
                {"type": "acknowledged", "title": r["title"], "date": r["acknowledged_at"], "sop_id": r["sop_id"]}
            )
    for n in recent_for_user(db, user.id, limit=RECENT_ACTIVITY_LIMIT):
        activity.append({"type": "notification", "title": n.title, "date": n.created_at, "sop_id": None})
    activity.sort(key=lambda a: a["date"], reverse=True)

    return {
        "user_id": user.id,
        "stats": employee_dashboard_stats(rows, now, unread_notifications=unread),
        "open_assignments": open_items[:5],
        "recent_activity": activity[:RECENT_ACTIVITY_LIMIT],
    }
