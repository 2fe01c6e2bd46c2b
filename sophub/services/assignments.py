# sophub/services/assignments.py
"""
Assignment Reader plus the write flows around an assignment (assign,
acknowledge, decline, remind).

Reads join assignments with their document, assignee, assigner and
acknowledgment in one pass; a failure anywhere surfaces as a single
SQLAlchemyError for the whole request.
"""
from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence

from fastapi import Request
from sqlalchemy.orm import Session, aliased

from sophub.core.timeutils import utcnow
from sophub.crud import assignment as crud_assignment
from sophub.models.acknowledgment import Acknowledgment
from sophub.models.sop import Sop
from sophub.models.sop_assignment import SopAssignment
from sophub.models.user import User
from sophub.schemas.report import PaginationParams, ReportFilters, ReportPage
from sophub.services import notifications as notify
from sophub.services.aggregation import count_assignment_statuses, tracking_stats
from sophub.services.audit import audit_from_request, ip_from_request, user_agent_from_request
from sophub.services.events import change_feed, row_dict
from sophub.services.report_formatting import build_page
from sophub.services.status import (
    declined_reason,
    derive_assignment_status,
    derive_tracking_status,
    display_document_type,
    normalize_document_type,
)

log = logging.getLogger("sophub.services.assignments")


# -----------------------------
# Reader
# -----------------------------
def _first_acks(db: Session, assignment_ids: Sequence[int]) -> Dict[int, Acknowledgment]:
    if not assignment_ids:
        return {}
    acks = (
        db.query(Acknowledgment)
        .filter(Acknowledgment.assignment_id.in_(list(assignment_ids)))
        .order_by(Acknowledgment.acknowledged_at.asc(), Acknowledgment.id.asc())
        .all()
    )
    out: Dict[int, Acknowledgment] = {}
    for ack in acks:
        out.setdefault(ack.assignment_id, ack)
    return out


def load_assignment_rows(
    db: Session,
    *,
    company_id: Optional[int] = None,
    user_id: Optional[int] = None,
    sop_id: Optional[int] = None,
    created_from: Optional[datetime] = None,
    created_to: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    """
    Flat rows (one per assignment) for the status deriver and aggregator.
    Assignments of deleted documents are left out.
    """
    assignee = aliased(User)
    assigner = aliased(User)
    q = (
        db.query(SopAssignment, Sop, assignee, assigner)
        .join(Sop, Sop.id == SopAssignment.sop_id)
        .join(assignee, assignee.id == SopAssignment.user_id)
        .outerjoin(assigner, assigner.id == SopAssignment.assigned_by)
        .filter(Sop.deleted_at.is_(None))
    )
    if company_id is not None:
        q = q.filter(SopAssignment.company_id == company_id)
    if user_id is not None:
        q = q.filter(SopAssignment.user_id == user_id)
    if sop_id is not None:
        q = q.filter(SopAssignment.sop_id == sop_id)
    if created_from is not None:
        q = q.filter(SopAssignment.created_at >= created_from)
    if created_to is not None:
        q = q.filter(SopAssignment.created_at <= created_to)

    records = q.order_by(SopAssignment.created_at.desc(), SopAssignment.id.desc()).all()
    acks = _first_acks(db, [a.id for a, _, _, _ in records])

    rows: List[Dict[str, Any]] = []
    for a, sop, user, by in records:
        ack = acks.get(a.id)
        rows.append(
            {
                "assignment_id": a.id,
                "sop_id": sop.id,
                "user_id": user.id,
                "title": sop.title,
                "document_type": normalize_document_type(sop.document_type),
                "department": sop.department,
                "user_department": user.department,
                "user_name": user.full_name or user.email,
                "user_email": user.email,
                "user_status": "inactive" if user.deleted_at is not None else user.status,
                "priority": a.priority or "medium",
                "due_date": a.due_date,
                "created_at": a.created_at,
                "notes": a.notes,
                "assigned_by_name": (by.full_name or by.email) if by is not None else None,
                "acknowledgment_id": ack.id if ack else None,
                "acknowledged_at": ack.acknowledged_at if ack else None,
                "version": (ack.sop_version if ack and ack.sop_version else sop.version),
                "current_version": sop.version,
                "sop_updated_at": sop.updated_at,
            }
        )
    return rows


def assignment_view(row: Dict[str, Any], now: datetime) -> Dict[str, Any]:
    return {
        "id": row["assignment_id"],
        "sop_id": row["sop_id"],
        "title": row["title"],
        "document_type": display_document_type(row["document_type"]),
        "department": row["department"],
        "version": row["version"],
        "priority": row["priority"],
        "status": derive_assignment_status(row["due_date"], row["acknowledged_at"] is not None, now),
        "due_date": row["due_date"],
        "assigned_at": row["created_at"],
        "assigned_by": row["assigned_by_name"],
        "acknowledged_at": row["acknowledged_at"],
        "notes": row["notes"],
    }


def _due_sort_key(view: Dict[str, Any]):
    due = view["due_date"]
    return (due is None, due or datetime.max, view["id"])


def user_assignments(
    db: Session,
    user_id: int,
    now: Optional[datetime] = None,
    status: Optional[str] = None,
) -> List[Dict[str, Any]]:
    """The user's assignments, earliest due first; undated ones last."""
    now = now or utcnow()
    views = [assignment_view(r, now) for r in load_assignment_rows(db, user_id=user_id)]
    if status and status != "all":
        views = [v for v in views if v["status"] == status]
    return sorted(views, key=_due_sort_key)


def user_assignment_stats(db: Session, user_id: int, now: Optional[datetime] = None) -> Dict[str, int]:
    now = now or utcnow()
    return count_assignment_statuses(load_assignment_rows(db, user_id=user_id), now)


# -----------------------------
# Admin tracking list
# -----------------------------
TRACKING_SEARCH_FIELDS = ("title", "assigned_to", "email")


def tracking_row(row: Dict[str, Any], now: datetime) -> Dict[str, Any]:
    return {
        "id": row["assignment_id"],
        "sop_id": row["sop_id"],
        "user_id": row["user_id"],
        "title": row["title"],
        "assigned_to": row["user_name"],
        "email": row["user_email"],
        "department": row["department"] or row["user_department"],
        "document_type": row["document_type"],
        "priority": row["priority"],
        "status": derive_tracking_status(
            row["due_date"], row["acknowledged_at"] is not None, row["notes"], now
        ),
        "due_date": row["due_date"],
        "assigned_at": row["created_at"],
        "acknowledged_at": row["acknowledged_at"],
        "version": row["version"],
        "declined_reason": declined_reason(row["notes"]),
    }


def tracking_page(
    db: Session,
    company_id: int,
    filters: ReportFilters,
    pagination: PaginationParams,
    now: Optional[datetime] = None,
) -> ReportPage:
    now = now or utcnow()
    rows = load_assignment_rows(db, company_id=company_id)
    by_id = {r["assignment_id"]: r for r in rows}
    views = [tracking_row(r, now) for r in rows]

    def _stats(selected: List[Dict[str, Any]]) -> Dict[str, int]:
        return tracking_stats([by_id[v["id"]] for v in selected], now)

    return build_page(
        views,
        filters,
        pagination,
        search_fields=TRACKING_SEARCH_FIELDS,
        stats_fn=_stats,
    )


# -----------------------------
# Write flows
# -----------------------------
def _publish_assignment(obj: SopAssignment, type_: str) -> None:
    change_feed.publish("sop_assignments", type_, row_dict(obj), user_id=obj.user_id)


def assign(
    db: Session,
    request: Optional[Request],
    sop: Sop,
    user_ids: Sequence[int],
    actor: User,
    due_date: Optional[datetime] = None,
    priority: str = "medium",
    notes: Optional[str] = None,
):
    created, skipped = crud_assignment.assign_sop_to_users(
        db, sop, user_ids, assigned_by=actor.id, due_date=due_date, priority=priority, notes=notes
    )
    for obj in created:
        _publish_assignment(obj, "INSERT")
        notify.notify_assigned(db, obj, sop)

    audit_from_request(
        db,
        request,
        company_id=sop.company_id,
        user_id=actor.id,
        action="assign_sop",
        resource_type="sop",
        resource_id=sop.id,
        new_values={"user_ids": [o.user_id for o in created], "due_date": due_date.isoformat() if due_date else None},
        meta={
            "description": f"Assigned \"{sop.title}\" to {len(created)} user(s)",
            "skipped_user_ids": skipped,
        },
    )
    log.info("assigned sop=%s created=%s skipped=%s", sop.id, len(created), len(skipped))
    return created, skipped


def acknowledge(
    db: Session,
    request: Optional[Request],
    assignment: SopAssignment,
    user: User,
    notes: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Acknowledgment:
    ack = crud_assignment.acknowledge_assignment(
        db,
        assignment,
        user,
        notes=notes,
        ip=ip_from_request(request),
        user_agent=user_agent_from_request(request),
        now=now,
    )
    sop = db.query(Sop).filter(Sop.id == assignment.sop_id).first()

    _publish_assignment(assignment, "UPDATE")
    change_feed.publish("acknowledgments", "INSERT", row_dict(ack), user_id=user.id)
    notify.notify_acknowledged(db, assignment, sop, user, ack)

    audit_from_request(
        db,
        request,
        company_id=assignment.company_id,
        user_id=user.id,
        action="acknowledge_sop",
        resource_type="sop",
        resource_id=sop.id,
        new_values={"assignment_id": assignment.id, "sop_version": ack.sop_version},
        meta={"description": f"Acknowledged \"{sop.title}\" v{ack.sop_version}"},
    )
    return ack


def bulk_acknowledge(
    db: Session,
    request: Optional[Request],
    assignment_ids: Sequence[int],
    user: User,
    notes: Optional[str] = None,
) -> List[Acknowledgment]:
    """
    Validates the whole batch before writing anything: any id that would
    fail on its own rejects the request.
    """
    ids = list(dict.fromkeys(assignment_ids))
    found = (
        db.query(SopAssignment)
        .filter(SopAssignment.id.in_(ids), SopAssignment.user_id == user.id)
        .all()
    )
    by_id = {a.id: a for a in found}
    missing = [i for i in ids if i not in by_id]
    if missing:
        raise ValueError(f"Assignments not found: {', '.join(str(i) for i in missing)}")
    done = sorted(acknowledged_ids(db, ids))
    if done:
        raise ValueError(f"Assignments already acknowledged: {', '.join(str(i) for i in done)}")
    available = {
        sop_id
        for (sop_id,) in db.query(Sop.id)
        .filter(Sop.id.in_(sorted({a.sop_id for a in found})), Sop.deleted_at.is_(None))
        .all()
    }
    withdrawn = [i for i in ids if by_id[i].sop_id not in available]
    if withdrawn:
        raise ValueError(
            f"Document no longer available for assignments: {', '.join(str(i) for i in withdrawn)}"
        )

    now = utcnow()
    return [acknowledge(db, request, by_id[i], user, notes=notes, now=now) for i in ids]


def acknowledged_ids(db: Session, assignment_ids: Sequence[int]) -> List[int]:
    return list(_first_acks(db, assignment_ids).keys())


def decline(
    db: Session,
    request: Optional[Request],
    assignment: SopAssignment,
    user: User,
    reason: str,
) -> SopAssignment:
    if assignment.user_id != user.id:
        raise ValueError("Only the assignee can decline this assignment")
    obj = crud_assignment.decline_assignment(db, assignment, reason)
    sop = db.query(Sop).filter(Sop.id == obj.sop_id).first()

    _publish_assignment(obj, "UPDATE")
    notify.notify_declined(db, obj, sop, user, reason)
    audit_from_request(
        db,
        request,
        company_id=obj.company_id,
        user_id=user.id,
        action="decline_sop",
        resource_type="sop",
        resource_id=obj.sop_id,
        new_values={"assignment_id": obj.id},
        meta={"description": f"Declined \"{sop.title}\": {reason}"},
    )
    return obj


def remind(
    db: Session,
    request: Optional[Request],
    assignments: Sequence[SopAssignment],
    actor: User,
    message: Optional[str] = None,
) -> int:
    """Send reminders for open assignments; acknowledged ones are skipped."""
    acked = set(acknowledged_ids(db, [a.id for a in assignments]))
    sent = 0
    for a in assignments:
        if a.id in acked:
            continue
        sop = db.query(Sop).filter(Sop.id == a.sop_id).first()
        if sop is None or sop.deleted_at is not None:
            continue
        notify.send_reminder(db, a, sop, message=message)
        sent += 1

    if sent:
        audit_from_request(
            db,
            request,
            company_id=actor.company_id,
            user_id=actor.id,
            action="send_reminder",
            resource_type="sop_assignment",
            meta={
                "description": f"Sent {sent} acknowledgment reminder(s)",
                "assignment_ids": [a.id for a in assignments if a.id not in acked],
            },
        )
    return sent
