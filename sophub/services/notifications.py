# sophub/services/notifications.py
from __future__ import annotations

import logging
import os
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from sophub.core.timeutils import utcnow
from sophub.crud import notification as crud_notification
from sophub.models.acknowledgment import Acknowledgment
from sophub.models.notification import Notification
from sophub.models.sop import Sop
from sophub.models.sop_assignment import SopAssignment
from sophub.models.user import User
from sophub.services.aggregation import notification_stats

log = logging.getLogger("sophub.services.notifications")

# Days before the due date when the daily job sends a "due soon" reminder
REMINDER_DUE_SOON_DAYS = int(os.getenv("REMINDER_DUE_SOON_DAYS", "3"))

TYPE_ASSIGNED = "assigned"
TYPE_REMINDER = "reminder"
TYPE_OVERDUE = "overdue"
TYPE_ACK_COMPLETED = "acknowledgment_completed"
TYPE_DECLINED = "acknowledgment_declined"


def _date_str(value: Optional[datetime]) -> str:
    return value.strftime("%Y-%m-%d") if value else "no due date"


# -----------------------------
# Per-event notifications
# -----------------------------
def notify_assigned(db: Session, assignment: SopAssignment, sop: Sop) -> Notification:
    return crud_notification.create_notification(
        db,
        user_id=assignment.user_id,
        company_id=assignment.company_id,
        type=TYPE_ASSIGNED,
        title=f"New document assigned: {sop.title}",
        message=f"Please read and acknowledge \"{sop.title}\" (due {_date_str(assignment.due_date)}).",
        data={"assignment_id": assignment.id, "sop_id": sop.id},
        priority="high" if assignment.priority in ("high", "critical") else "medium",
    )


def notify_acknowledged(
    db: Session,
    assignment: SopAssignment,
    sop: Sop,
    employee: User,
    ack: Acknowledgment,
) -> Optional[Notification]:
    if not assignment.assigned_by:
        return None
    return crud_notification.create_notification(
        db,
        user_id=assignment.assigned_by,
        company_id=assignment.company_id,
        type=TYPE_ACK_COMPLETED,
        title=f"Document acknowledged: {sop.title}",
        message=f"{employee.full_name or employee.email} acknowledged \"{sop.title}\" v{ack.sop_version}.",
        data={"assignment_id": assignment.id, "sop_id": sop.id, "acknowledgment_id": ack.id},
        priority="low",
    )


def notify_declined(
    db: Session,
    assignment: SopAssignment,
    sop: Sop,
    employee: User,
    reason: str,
) -> Optional[Notification]:
    if not assignment.assigned_by:
        return None
    return crud_notification.create_notification(
        db,
        user_id=assignment.assigned_by,
        company_id=assignment.company_id,
        type=TYPE_DECLINED,
        title=f"Acknowledgment declined: {sop.title}",
        message=f"{employee.full_name or employee.email} declined \"{sop.title}\": {reason}",
        data={"assignment_id": assignment.id, "sop_id": sop.id, "reason": reason},
        priority="high",
    )


# -----------------------------
# Reminders
# -----------------------------
def send_reminder(
    db: Session,
    assignment: SopAssignment,
    sop: Sop,
    message: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Notification:
    now = now or utcnow()
    overdue = assignment.due_date is not None and assignment.due_date < now
    return crud_notification.create_notification(
        db,
        user_id=assignment.user_id,
        company_id=assignment.company_id,
        type=TYPE_OVERDUE if overdue else TYPE_REMINDER,
        title=f"{'Overdue' if overdue else 'Reminder'}: {sop.title}",
        message=message
        or f"Please acknowledge \"{sop.title}\" (due {_date_str(assignment.due_date)}).",
        data={"assignment_id": assignment.id, "sop_id": sop.id},
        priority="urgent" if overdue else "high",
    )


def _open_assignments(db: Session, company_id: Optional[int] = None):
    acked = select(Acknowledgment.assignment_id).where(Acknowledgment.assignment_id.isnot(None))
    q = (
        db.query(SopAssignment, Sop)
        .join(Sop, Sop.id == SopAssignment.sop_id)
        .join(User, User.id == SopAssignment.user_id)
        .filter(
            Sop.deleted_at.is_(None),
            User.deleted_at.is_(None),
            ~SopAssignment.id.in_(acked),
            SopAssignment.due_date.isnot(None),
        )
    )
    if company_id is not None:
        q = q.filter(SopAssignment.company_id == company_id)
    return q


def _remind_once_per_day(
    db: Session,
    pairs: Iterable[Any],
    type_: str,
    now: datetime,
) -> int:
    since = datetime(now.year, now.month, now.day)
    created = 0
    for assignment, sop in pairs:
        if crud_notification.notification_exists_since(db, assignment.user_id, type_, assignment.id, since):
            continue
        send_reminder(db, assignment, sop, now=now)
        created += 1
    return created


def generate_overdue_reminders(db: Session, now: Optional[datetime] = None, for_company_id: Optional[int] = None) -> int:
    now = now or utcnow()
    pairs = _open_assignments(db, for_company_id).filter(SopAssignment.due_date < now).all()
    created = _remind_once_per_day(db, pairs, TYPE_OVERDUE, now)
    log.info("overdue reminders created=%s", created)
    return created


def generate_due_soon_reminders(
    db: Session,
    now: Optional[datetime] = None,
    within_days: int = REMINDER_DUE_SOON_DAYS,
    for_company_id: Optional[int] = None,
) -> int:
    now = now or utcnow()
    horizon = now + timedelta(days=within_days)
    pairs = (
        _open_assignments(db, for_company_id)
        .filter(SopAssignment.due_date >= now, SopAssignment.due_date <= horizon)
        .all()
    )
    created = _remind_once_per_day(db, pairs, TYPE_REMINDER, now)
    log.info("due-soon reminders created=%s within_days=%s", created, within_days)
    return created


# -----------------------------
# Read side
# -----------------------------
def stats_for_user(db: Session, user_id: int, now: Optional[datetime] = None) -> Dict[str, int]:
    now = now or utcnow()
    return notification_stats(crud_notification.all_live_notifications(db, user_id, now), now)


def recent_for_user(db: Session, user_id: int, limit: int = 5) -> List[Notification]:
    return crud_notification.list_notifications(db, user_id, limit=limit)
