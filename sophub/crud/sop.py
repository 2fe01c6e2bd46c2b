# sophub/crud/sop.py
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from sophub.core.timeutils import utcnow
from sophub.models.sop import Sop
from sophub.schemas.sop import SopCreate, SopUpdate

EXPIRING_SOON_DAYS = 30
# status moves never supersede acknowledgments
STATUS_ONLY_FIELDS = {"status"}


def get_sop(db: Session, sop_id: int, company_id: Optional[int] = None) -> Optional[Sop]:
    q = db.query(Sop).filter(Sop.id == sop_id, Sop.deleted_at.is_(None))
    if company_id is not None:
        q = q.filter(Sop.company_id == company_id)
    return q.first()


def list_sops(
    db: Session,
    company_id: int,
    status: Optional[str] = None,
    department: Optional[str] = None,
    document_type: Optional[str] = None,
    priority: Optional[str] = None,
    q: Optional[str] = None,
    skip: int = 0,
    limit: int = 50,
    sort_by: str = "updated_at",
    order: str = "desc",
) -> Tuple[List[Sop], int]:
    query = db.query(Sop).filter(Sop.company_id == company_id, Sop.deleted_at.is_(None))

    if status:
        query = query.filter(Sop.status == status)
    if department:
        query = query.filter(Sop.department == department)
    if document_type:
        query = query.filter(Sop.document_type == document_type)
    if priority:
        query = query.filter(Sop.priority == priority)
    if q:
        like_value = f"%{q.lower()}%"
        query = query.filter(
            or_(
                func.lower(Sop.title).like(like_value),
                func.lower(Sop.description).like(like_value),
                func.lower(Sop.department).like(like_value),
            )
        )

    allowed_sort_cols = {
        "id": Sop.id,
        "title": Sop.title,
        "status": Sop.status,
        "priority": Sop.priority,
        "department": Sop.department,
        "document_type": Sop.document_type,
        "next_review_date": Sop.next_review_date,
        "created_at": Sop.created_at,
        "updated_at": Sop.updated_at,
    }
    sort_col = allowed_sort_cols.get(sort_by, Sop.updated_at)
    if (order or "desc").lower() == "desc":
        sort_col = sort_col.desc()

    total = query.count()
    # tie-breaker by id for stable pages
    items = query.order_by(sort_col, Sop.id.asc()).offset(skip).limit(limit).all()
    return items, total


def create_sop(db: Session, company_id: int, payload: SopCreate, author_id: Optional[int]) -> Sop:
    data = payload.model_dump()
    obj = Sop(company_id=company_id, author_id=author_id, **data)
    if obj.next_review_date is None and obj.review_frequency:
        obj.next_review_date = utcnow() + timedelta(days=obj.review_frequency)
    if obj.status == "published":
        obj.published_at = utcnow()
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj


def _jsonable(value: Any) -> Any:
    return value.isoformat() if isinstance(value, datetime) else value


def update_sop(db: Session, obj: Sop, payload: SopUpdate) -> Tuple[Sop, Dict[str, Any], Dict[str, Any]]:
    """
    Apply a PATCH. An effective change to anything but the status stamps
    updated_at, which marks older acknowledgments of this document as
    superseded; status moves behave like publish_sop. Returns the object plus
    the old / new values of the changed fields (for the audit trail).
    """
    data = payload.model_dump(exclude_unset=True)
    old_values: Dict[str, Any] = {}
    new_values: Dict[str, Any] = {}
    for k, v in data.items():
        current = getattr(obj, k)
        if current != v:
            old_values[k] = _jsonable(current)
            new_values[k] = _jsonable(v)
            setattr(obj, k, v)

    if new_values:
        now = utcnow()
        if set(new_values) - STATUS_ONLY_FIELDS:
            obj.updated_at = now
        if new_values.get("status") == "published" and obj.published_at is None:
            obj.published_at = now
        db.add(obj)
        db.commit()
        db.refresh(obj)
    return obj, old_values, new_values


def publish_sop(db: Session, obj: Sop, approver_id: Optional[int]) -> Sop:
    if obj.status == "archived":
        raise ValueError("Archived documents cannot be published")
    now = utcnow()
    obj.status = "published"
    obj.published_at = now
    obj.approved_by = approver_id
    obj.approved_at = now
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj


def soft_delete_sop(db: Session, obj: Sop) -> None:
    obj.deleted_at = utcnow()
    db.add(obj)
    db.commit()


def increment_view_count(db: Session, obj: Sop) -> Sop:
    # counters are not edits: updated_at stays untouched
    obj.view_count = int(obj.view_count or 0) + 1
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj


def sop_stats(db: Session, company_id: int, now: Optional[datetime] = None) -> Dict[str, Any]:
    now = now or utcnow()
    base = db.query(Sop).filter(Sop.company_id == company_id, Sop.deleted_at.is_(None))

    by_status = dict(
        base.with_entities(Sop.status, func.count(Sop.id)).group_by(Sop.status).all()
    )
    by_department = {
        (dept or "Unknown"): cnt
        for dept, cnt in base.with_entities(Sop.department, func.count(Sop.id)).group_by(Sop.department).all()
    }
    by_type = dict(
        base.with_entities(Sop.document_type, func.count(Sop.id)).group_by(Sop.document_type).all()
    )
    expiring = (
        base.filter(
            Sop.next_review_date.isnot(None),
            Sop.next_review_date >= now,
            Sop.next_review_date <= now + timedelta(days=EXPIRING_SOON_DAYS),
        )
        .order_by(Sop.next_review_date.asc(), Sop.id.asc())
        .all()
    )
    recent = base.order_by(Sop.updated_at.desc(), Sop.id.desc()).limit(5).all()

    return {
        "total": sum(by_status.values()),
        "published": by_status.get("published", 0),
        "draft": by_status.get("draft", 0),
        "pending_review": by_status.get("review", 0),
        "by_status": by_status,
        "by_department": by_department,
        "by_type": by_type,
        "expiring_soon": [
            {"id": s.id, "title": s.title, "next_review_date": s.next_review_date} for s in expiring
        ],
        "recent": [
            {"id": s.id, "title": s.title, "status": s.status, "updated_at": s.updated_at} for s in recent
        ],
    }
