# sophub/api/v1/assignments.py
from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from sqlalchemy.orm import Session

from sophub.api.v1.reports import pagination_params, report_filters
from sophub.core.auth import get_current_user, get_db
from sophub.core.scoping import company_id_for, require_admin
from sophub.crud import assignment as crud_assignment
from sophub.models.sop_assignment import SopAssignment
from sophub.models.user import User
from sophub.schemas.assignment import (
    AcknowledgeRequest,
    AcknowledgmentOut,
    AssignmentView,
    BulkAcknowledgeRequest,
    BulkReminderRequest,
    DeclineRequest,
    ReminderRequest,
)
from sophub.schemas.report import PaginationParams, ReportFilters
from sophub.services import assignments as assignment_service

router = APIRouter(tags=["assignments"])


def _get_assignment_or_404(db: Session, assignment_id: int, current_user: User) -> SopAssignment:
    a = crud_assignment.get_assignment(db, assignment_id, company_id=company_id_for(current_user))
    if not a:
        raise HTTPException(status_code=404, detail="Assignment not found")
    return a


# -----------------------------
# Employee
# -----------------------------
@router.get("/me/assignments", response_model=List[AssignmentView])
def my_assignments(
    status: Optional[str] = Query(None, pattern="^(all|pending|acknowledged|overdue)$"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return assignment_service.user_assignments(db, current_user.id, status=status)


@router.get("/me/assignments/stats")
def my_assignment_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Dict[str, int]:
    return assignment_service.user_assignment_stats(db, current_user.id)


@router.post("/assignments/{assignment_id}/acknowledge", response_model=AcknowledgmentOut)
def acknowledge(
    assignment_id: int,
    request: Request,
    payload: Optional[AcknowledgeRequest] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    a = _get_assignment_or_404(db, assignment_id, current_user)
    try:
        return assignment_service.acknowledge(
            db, request, a, current_user, notes=payload.notes if payload else None
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/assignments/acknowledge-bulk", response_model=List[AcknowledgmentOut])
def acknowledge_bulk(
    payload: BulkAcknowledgeRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        return assignment_service.bulk_acknowledge(
            db, request, payload.assignment_ids, current_user, notes=payload.notes
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/assignments/{assignment_id}/decline")
def decline(
    assignment_id: int,
    payload: DeclineRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Dict[str, Any]:
    a = _get_assignment_or_404(db, assignment_id, current_user)
    try:
        a = assignment_service.decline(db, request, a, current_user, payload.reason)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {"id": a.id, "status": "declined", "reason": payload.reason}


# -----------------------------
# Admin
# -----------------------------
@router.post("/assignments/{assignment_id}/remind")
def remind(
    assignment_id: int,
    request: Request,
    payload: Optional[ReminderRequest] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
) -> Dict[str, int]:
    a = _get_assignment_or_404(db, assignment_id, current_user)
    sent = assignment_service.remind(
        db, request, [a], current_user, message=payload.message if payload else None
    )
    if not sent:
        raise HTTPException(status_code=400, detail="Assignment already acknowledged")
    return {"sent": sent}


@router.post("/assignments/remind-bulk")
def remind_bulk(
    payload: BulkReminderRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
) -> Dict[str, int]:
    cid = company_id_for(current_user)
    found = (
        db.query(SopAssignment)
        .filter(SopAssignment.id.in_(payload.assignment_ids), SopAssignment.company_id == cid)
        .all()
    )
    missing = sorted(set(payload.assignment_ids) - {a.id for a in found})
    if missing:
        raise HTTPException(
            status_code=404,
            detail=f"Assignments not found: {', '.join(str(i) for i in missing)}",
        )
    sent = assignment_service.remind(db, request, found, current_user, message=payload.message)
    return {"sent": sent, "skipped": len(found) - sent}


@router.get("/acknowledgments")
def tracking(
    response: Response,
    filters: ReportFilters = Depends(report_filters),
    pagination: PaginationParams = Depends(pagination_params),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
) -> Dict[str, Any]:
    """Every assignment of the company with its derived status, for follow-up."""
    page = assignment_service.tracking_page(db, company_id_for(current_user), filters, pagination)
    response.headers["X-Total-Count"] = str(page.total)
    return page.model_dump()
