# sophub/services/history.py
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from sophub.core.timeutils import utcnow
from sophub.models.acknowledgment import Acknowledgment
from sophub.models.sop import Sop
from sophub.models.user import User
from sophub.schemas.history import HistoryFilters
from sophub.services.aggregation import UNKNOWN_DEPARTMENT, history_stats
from sophub.services.report_formatting import apply_search, is_all
from sophub.services.status import (
    SUPERSEDED,
    derive_acknowledgment_status,
    display_document_type,
    expiry_date,
    normalize_document_type,
    receipt_id,
)

HISTORY_RANGE_DAYS = {"30days": 30, "6months": 180, "1year": 365}
HISTORY_SEARCH_FIELDS = ("document_title", "department")


def _acknowledgments(db: Session, user_id: int):
    return (
        db.query(Acknowledgment, Sop, User)
        .join(Sop, Sop.id == Acknowledgment.sop_id)
        .join(User, User.id == Acknowledgment.user_id)
        .filter(Acknowledgment.user_id == user_id)
        .order_by(Acknowledgment.acknowledged_at.desc(), Acknowledgment.id.desc())
    )


def history_record(ack: Acknowledgment, sop: Sop, user: User, now: datetime) -> Dict[str, Any]:
    doc_type = normalize_document_type(sop.document_type)
    status = derive_acknowledgment_status(ack.acknowledged_at, sop.updated_at, doc_type, now)
    superseded = status == SUPERSEDED
    return {
        "id": ack.id,
        "document_id": sop.id,
        "document_title": sop.title,
        "department": sop.department or UNKNOWN_DEPARTMENT,
        "document_type": display_document_type(doc_type),
        "acknowledged_date": ack.acknowledged_at,
        "version": ack.sop_version or sop.version,
        "status": status,
        "current_version": sop.version if superseded else None,
        "superseded_date": sop.updated_at if superseded else None,
        "expiry_date": expiry_date(ack.acknowledged_at, doc_type),
        "acknowledged_by": user.full_name or user.email,
        "receipt_id": receipt_id(ack.id),
        "content": sop.content,
    }


def _matches_filters(rec: Dict[str, Any], filters: HistoryFilters, now: datetime) -> bool:
    days = HISTORY_RANGE_DAYS.get(filters.date_range)
    if days is not None and rec["acknowledged_date"] < now - timedelta(days=days):
        return False
    if not is_all(filters.document_type) and (
        normalize_document_type(rec["document_type"]) != normalize_document_type(filters.document_type)
    ):
        return False
    if not is_all(filters.department) and rec["department"] != filters.department:
        return False
    if not is_all(filters.status) and rec["status"] != filters.status:
        return False
    return True


def list_history(
    db: Session,
    user_id: int,
    filters: Optional[HistoryFilters] = None,
    now: Optional[datetime] = None,
) -> List[Dict[str, Any]]:
    """A user's acknowledgment history, newest first, with derived status."""
    now = now or utcnow()
    filters = filters or HistoryFilters()
    records = [history_record(a, s, u, now) for a, s, u in _acknowledgments(db, user_id).all()]
    records = [r for r in records if _matches_filters(r, filters, now)]
    return apply_search(records, filters.search, HISTORY_SEARCH_FIELDS)


def get_history_stats(db: Session, user_id: int, now: Optional[datetime] = None) -> Dict[str, int]:
    return history_stats(list_history(db, user_id, now=now))


def get_history_departments(db: Session, user_id: int) -> List[str]:
    rows = (
        db.query(Sop.department)
        .join(Acknowledgment, Acknowledgment.sop_id == Sop.id)
        .filter(Acknowledgment.user_id == user_id, Sop.department.isnot(None))
        .distinct()
        .all()
    )
    return sorted({d for (d,) in rows if d and d.strip()})


def generate_receipt(
    db: Session,
    user_id: int,
    acknowledgment_id: int,
    now: Optional[datetime] = None,
) -> Optional[Dict[str, Any]]:
    """Receipt payload for one of the user's acknowledgments; None when not theirs."""
    now = now or utcnow()
    found = _acknowledgments(db, user_id).filter(Acknowledgment.id == acknowledgment_id).first()
    if found is None:
        return None
    ack, sop, user = found
    rec = history_record(ack, sop, user, now)
    return {
        "receipt_id": rec["receipt_id"],
        "document_title": rec["document_title"],
        "document_version": rec["version"],
        "department": rec["department"],
        "document_type": rec["document_type"],
        "acknowledged_by": rec["acknowledged_by"],
        "acknowledged_date": rec["acknowledged_date"],
        "status": rec["status"],
        "user_email": user.email,
        "generated_at": now,
    }
