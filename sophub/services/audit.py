# sophub/services/audit.py
from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Dict, Optional

from fastapi import Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from sophub.core.timeutils import utcnow
from sophub.models.audit_log import AuditLog

log = logging.getLogger("sophub.services.audit")

# Audit rows are kept seven years
AUDIT_RETENTION_DAYS = 7 * 365


# -----------------------------
# Helpers
# -----------------------------
def ip_from_request(request: Optional[Request]) -> Optional[str]:
    """
    Best-effort client IP extraction compatible with proxies.
    Order: Forwarded (for=), X-Forwarded-For (first hop), X-Real-IP, socket peer.
    """
    if request is None:
        return None

    fwd = request.headers.get("forwarded")
    if fwd:
        for part in (p.strip() for p in fwd.split(";")):
            if part.lower().startswith("for="):
                val = part.split("=", 1)[1].strip().strip('"')
                if val:
                    return val

    xff = request.headers.get("x-forwarded-for")
    if xff:
        first = xff.split(",")[0].strip()
        if first:
            return first

    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()

    client = getattr(request, "client", None)
    return getattr(client, "host", None)


def user_agent_from_request(request: Optional[Request]) -> Optional[str]:
    if request is None:
        return None
    ua = request.headers.get("user-agent")
    return ua[:512] if ua else None


# -----------------------------
# Core API
# -----------------------------
def audit_log(
    db: Session,
    *,
    company_id: Optional[int],
    user_id: Optional[int],
    action: str,
    resource_type: Optional[str] = None,
    resource_id: Optional[int] = None,
    old_values: Optional[Dict[str, Any]] = None,
    new_values: Optional[Dict[str, Any]] = None,
    meta: Optional[Dict[str, Any]] = None,
    ip: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> Optional[AuditLog]:
    """
    Inserts and commits an audit record. Call after the main change is
    committed: a failing audit write is rolled back and logged, never raised.
    """
    now = utcnow()
    row = AuditLog(
        company_id=company_id,
        user_id=user_id,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        old_values=old_values,
        new_values=new_values,
        meta=meta or {},
        ip_address=ip,
        user_agent=user_agent,
        retention_expires_at=now + timedelta(days=AUDIT_RETENTION_DAYS),
        created_at=now,
    )
    try:
        db.add(row)
        db.commit()
        return row
    except SQLAlchemyError:
        db.rollback()
        log.exception("audit write failed action=%s resource=%s:%s", action, resource_type, resource_id)
        return None


def audit_from_request(
    db: Session,
    request: Optional[Request],
    *,
    company_id: Optional[int],
    user_id: Optional[int],
    action: str,
    **kwargs: Any,
) -> Optional[AuditLog]:
    """audit_log with ip / user agent taken from the incoming request."""
    return audit_log(
        db,
        company_id=company_id,
        user_id=user_id,
        action=action,
        ip=ip_from_request(request),
        user_agent=user_agent_from_request(request),
        **kwargs,
    )


def audit_export(
    db: Session,
    *,
    company_id: Optional[int],
    user_id: Optional[int],
    report_type: str,
    export_format: str,
    row_count: int,
    ip: Optional[str],
) -> None:
    """Persists an 'EXPORT' action with a structured meta payload."""
    audit_log(
        db,
        company_id=company_id,
        user_id=user_id,
        action="EXPORT",
        resource_type="report",
        meta={
            "report_type": report_type,
            "format": export_format,
            "row_count": row_count,
            "description": f"Exported {report_type} report ({row_count} rows, {export_format})",
        },
        ip=ip,
    )
