# sophub/api/v1/audit_logs.py
from __future__ import annotations

from datetime import timedelta
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy import String, cast, func, or_
from sqlalchemy.orm import Session

from sophub.core.auth import get_db
from sophub.core.scoping import is_super, require_admin
from sophub.core.timeutils import as_naive_utc
from sophub.models.audit_log import AuditLog
from sophub.models.user import User
from sophub.services.report_formatting import format_audit_details

router = APIRouter(prefix="/audit", tags=["audit"])


def _parse_day(value: Optional[str], field: str):
    if not value:
        return None
    try:
        return as_naive_utc(value)
    except (TypeError, ValueError):
        raise HTTPException(status_code=400, detail=f"Invalid {field}: expected YYYY-MM-DD")


@router.get("/logs")
def list_audit_logs(
    response: Response,
    company_id: Optional[int] = Query(None, description="Super admins only: filter by company"),
    user_id: Optional[int] = Query(None, description="Actor user id"),
    action: Optional[str] = Query(None, description="Exact action, e.g. acknowledge_sop"),
    resource_type: Optional[str] = Query(None),
    resource_id: Optional[int] = Query(None),
    date_from: Optional[str] = Query(None, description="YYYY-MM-DD (inclusive)"),
    date_to: Optional[str] = Query(None, description="YYYY-MM-DD (inclusive)"),
    q: Optional[str] = Query(None, description="Substring over action, resource type and metadata"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=1000),
    order_by: str = Query("created_at", pattern="^(id|created_at)$"),
    order_dir: str = Query("desc", pattern="^(asc|desc)$"),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
) -> Dict[str, Any]:
    """
    Audit log browser. Admins see their own company; super admins see every
    company or the one named by ``company_id``.
    Returns items + pagination meta; X-Total-Count carries the total.
    """
    query = db.query(AuditLog)
    if is_super(current_user):
        if company_id is not None:
            query = query.filter(AuditLog.company_id == company_id)
    else:
        query = query.filter(AuditLog.company_id == current_user.company_id)

    if user_id is not None:
        query = query.filter(AuditLog.user_id == user_id)
    if action:
        query = query.filter(AuditLog.action == action)
    if resource_type:
        query = query.filter(AuditLog.resource_type == resource_type)
    if resource_id is not None:
        query = query.filter(AuditLog.resource_id == resource_id)

    start = _parse_day(date_from, "date_from")
    end = _parse_day(date_to, "date_to")
    if start is not None:
        query = query.filter(AuditLog.created_at >= start)
    if end is not None:
        query = query.filter(AuditLog.created_at < end + timedelta(days=1))

    if q:
        like = f"%{q.lower()}%"
        query = query.filter(
            or_(
                func.lower(AuditLog.action).like(like),
                func.lower(AuditLog.resource_type).like(like),
                func.lower(cast(AuditLog.meta, String)).like(like),
            )
        )

    total = query.count()
    col = AuditLog.id if order_by == "id" else AuditLog.created_at
    col = col.asc() if order_dir == "asc" else col.desc()
    rows = query.order_by(col, AuditLog.id.desc()).offset(skip).limit(limit).all()

    items = [
        {
            "id": r.id,
            "company_id": r.company_id,
            "user_id": r.user_id,
            "action": r.action,
            "resource_type": r.resource_type,
            "resource_id": r.resource_id,
            "old_values": r.old_values,
            "new_values": r.new_values,
            "meta": r.meta,
            "details": format_audit_details(r.action, r.old_values, r.new_values, r.meta),
            "ip_address": r.ip_address,
            "created_at": r.created_at,
        }
        for r in rows
    ]

    response.headers["X-Total-Count"] = str(total)
    return {
        "items": items,
        "pagination": {"skip": skip, "limit": limit, "total": total},
        "order": {"order_by": order_by, "order_dir": order_dir},
    }
