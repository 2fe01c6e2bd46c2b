# sophub/crud/assignment.py
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from sophub.core.timeutils import utcnow
from sophub.models.acknowledgment import Acknowledgment
from sophub.models.sop import Sop
from sophub.models.sop_assignment import SopAssignment
from sophub.models.user import User
from sophub.services.status import DECLINED_PREFIX, is_declined


def get_assignment(db: Session, assignment_id: int, company_id: Optional[int] = None) -> Optional[SopAssignment]:
    q = db.query(SopAssignment).filter(SopAssignment.id == assignment_id)
    if company_id is not None:
        q = q.filter(SopAssignment.company_id == company_id)
    return q.first()


def get_acknowledgment_for(db: Session, assignment_id: int) -> Optional[Acknowledgment]:
    return (
        db.query(Acknowledgment)
        .filter(Acknowledgment.assignment_id == assignment_id)
        .order_by(Acknowledgment.acknowledged_at.asc(), Acknowledgment.id.asc())
        .first()
    )


def assign_sop_to_users(
    db: Session,
    sop: Sop,
    user_ids: Iterable[int],
    assigned_by: Optional[int],
    due_date: Optional[datetime] = None,
    priority: str = "medium",
    notes: Optional[str] = None,
) -> Tuple[List[SopAssignment], List[int]]:
    """
    Create one pending assignment per user. Users who already hold an
    assignment for this document are skipped, so re-sending a list is safe.
    """
    wanted = list(dict.fromkeys(int(u) for u in user_ids))
    if not wanted:
        raise ValueError("No users selected")

    users = (
        db.query(User)
        .filter(User.id.in_(wanted), User.deleted_at.is_(None))
        .all()
    )
    found = {u.id: u for u in users}
    foreign = [uid for uid in wanted if uid not in found or found[uid].company_id != sop.company_id]
    if foreign:
        raise ValueError(f"Users not found in this company: {', '.join(str(u) for u in foreign)}")

    existing = {
        uid
        for (uid,) in db.query(SopAssignment.user_id)
        .filter(SopAssignment.sop_id == sop.id, SopAssignment.user_id.in_(wanted))
        .all()
    }

    created: List[SopAssignment] = []
    for uid in wanted:
        if uid in existing:
            continue
        created.append(
            SopAssignment(
                company_id=sop.company_id,
                sop_id=sop.id,
                user_id=uid,
                assigned_by=assigned_by,
                due_date=due_date,
                priority=priority or "medium",
                status="pending",
                notes=notes,
            )
        )
    if created:
        db.add_all(created)
        db.commit()
        for obj in created:
            db.refresh(obj)
    return created, sorted(existing)


def acknowledge_assignment(
    db: Session,
    assignment: SopAssignment,
    user: User,
    notes: Optional[str] = None,
    ip: Optional[str] = None,
    user_agent: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Acknowledgment:
    """
    Record the single acknowledgment an assignment may have, stamped with the
    document's current version, and flip the stored status.
    """
    if assignment.user_id != user.id:
        raise ValueError("Only the assignee can acknowledge this assignment")
    if get_acknowledgment_for(db, assignment.id) is not None:
        raise ValueError("Assignment already acknowledged")

    sop = db.query(Sop).filter(Sop.id == assignment.sop_id).first()
    if sop is None or sop.deleted_at is not None:
        raise ValueError("Document no longer available")

    now = now or utcnow()
    ack = Acknowledgment(
        assignment_id=assignment.id,
        user_id=user.id,
        sop_id=sop.id,
        sop_version=sop.version,
        notes=notes,
        ip_address=ip,
        user_agent=user_agent,
        acknowledged_at=now,
        created_at=now,
    )
    assignment.status = "acknowledged"
    db.add(ack)
    db.add(assignment)
    db.commit()
    db.refresh(ack)
    return ack


def decline_assignment(db: Session, assignment: SopAssignment, reason: str) -> SopAssignment:
    if get_acknowledgment_for(db, assignment.id) is not None:
        raise ValueError("Acknowledged assignments cannot be declined")
    if is_declined(assignment.notes):
        raise ValueError("Assignment already declined")
    assignment.notes = f"{DECLINED_PREFIX} {reason.strip()}"
    db.add(assignment)
    db.commit()
    db.refresh(assignment)
    return assignment
