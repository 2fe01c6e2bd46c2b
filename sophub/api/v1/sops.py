# sophub/api/v1/sops.py
from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from sqlalchemy.orm import Session

from sophub.core.auth import get_current_user, get_db
from sophub.core.scoping import company_id_for, is_admin, require_admin
from sophub.core.timeutils import utcnow
from sophub.crud import sop as crud_sop
from sophub.models.sop import Sop
from sophub.models.user import User
from sophub.schemas.assignment import AssignRequest, AssignResult
from sophub.schemas.sop import SopCreate, SopOut, SopUpdate
from sophub.services import assignments as assignment_service
from sophub.services.audit import audit_from_request
from sophub.services.events import change_feed, row_dict

router = APIRouter(tags=["documents"])

SORT_PATTERN = "^(id|title|status|priority|department|document_type|next_review_date|created_at|updated_at)$"


def _to_out(s: Sop) -> Dict[str, Any]:
    return SopOut.model_validate(s).model_dump()


def _get_sop_or_404(db: Session, sop_id: int, current_user: User) -> Sop:
    s = crud_sop.get_sop(db, sop_id, company_id=company_id_for(current_user))
    if not s:
        raise HTTPException(status_code=404, detail="Document not found")
    if s.status != "published" and not is_admin(current_user):
        raise HTTPException(status_code=404, detail="Document not found")
    return s


def _paged(response: Response, items: List[Sop], total: int, skip: int, limit: int) -> Dict[str, Any]:
    response.headers["X-Total-Count"] = str(total)
    return {
        "items": [_to_out(s) for s in items],
        "pagination": {"skip": skip, "limit": limit, "total": total},
    }


# -----------------------------
# LIST / READ
# -----------------------------
@router.get("/sops")
def list_sops(
    response: Response,
    status_: Optional[str] = Query(None, alias="status", pattern="^(draft|review|approved|published|archived)$"),
    department: Optional[str] = Query(None),
    document_type: Optional[str] = Query(None, pattern="^(sop|policy|training|procedure)$"),
    priority: Optional[str] = Query(None, pattern="^(low|medium|high|critical)$"),
    q: Optional[str] = Query(None, description="Search title, description or department"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    sort_by: str = Query("updated_at", pattern=SORT_PATTERN),
    order: str = Query("desc", pattern="^(asc|desc)$"),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Dict[str, Any]:
    # employees only ever see published documents
    if not is_admin(current_user):
        status_ = "published"
    items, total = crud_sop.list_sops(
        db,
        company_id_for(current_user),
        status=status_,
        department=department,
        document_type=document_type,
        priority=priority,
        q=q,
        skip=skip,
        limit=limit,
        sort_by=sort_by,
        order=order,
    )
    return _paged(response, items, total, skip, limit)


@router.get("/documents")
def list_documents(
    response: Response,
    department: Optional[str] = Query(None),
    document_type: Optional[str] = Query(None, pattern="^(sop|policy|training|procedure)$"),
    q: Optional[str] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Dict[str, Any]:
    """Published documents of the company, each with the caller's own assignment status (if any)."""
    items, total = crud_sop.list_sops(
        db,
        company_id_for(current_user),
        status="published",
        department=department,
        document_type=document_type,
        q=q,
        skip=skip,
        limit=limit,
        sort_by="title",
        order="asc",
    )
    mine = {v["sop_id"]: v for v in assignment_service.user_assignments(db, current_user.id)}
    out = _paged(response, items, total, skip, limit)
    for item in out["items"]:
        view = mine.get(item["id"])
        item["assignment_id"] = view["id"] if view else None
        item["assignment_status"] = view["status"] if view else None
    return out


@router.get("/documents/stats")
def documents_stats(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Dict[str, Any]:
    return crud_sop.sop_stats(db, company_id_for(current_user))


@router.get("/sops/{sop_id}", response_model=SopOut)
def get_sop(
    sop_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    s = _get_sop_or_404(db, sop_id, current_user)
    return crud_sop.increment_view_count(db, s)


# -----------------------------
# WRITE
# -----------------------------
@router.post("/sops", response_model=SopOut, status_code=status.HTTP_201_CREATED)
def create_sop(
    payload: SopCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    cid = company_id_for(current_user)
    s = crud_sop.create_sop(db, cid, payload, author_id=current_user.id)
    change_feed.publish("sops", "INSERT", row_dict(s))
    audit_from_request(
        db,
        request,
        company_id=cid,
        user_id=current_user.id,
        action="sop_created",
        resource_type="sop",
        resource_id=s.id,
        new_values={"title": s.title, "version": s.version, "status": s.status},
        meta={"description": f"Created \"{s.title}\" v{s.version}"},
    )
    return s


@router.patch("/sops/{sop_id}", response_model=SopOut)
def update_sop(
    sop_id: int,
    payload: SopUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    s = _get_sop_or_404(db, sop_id, current_user)
    s, old_values, new_values = crud_sop.update_sop(db, s, payload)
    if new_values:
        change_feed.publish("sops", "UPDATE", row_dict(s), old=old_values)
        audit_from_request(
            db,
            request,
            company_id=s.company_id,
            user_id=current_user.id,
            action="sop_updated",
            resource_type="sop",
            resource_id=s.id,
            old_values=old_values,
            new_values=new_values,
        )
    return s


@router.post("/sops/{sop_id}/publish", response_model=SopOut)
def publish_sop(
    sop_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    s = _get_sop_or_404(db, sop_id, current_user)
    old_status = s.status
    try:
        s = crud_sop.publish_sop(db, s, approver_id=current_user.id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    change_feed.publish("sops", "UPDATE", row_dict(s), old={"status": old_status})
    audit_from_request(
        db,
        request,
        company_id=s.company_id,
        user_id=current_user.id,
        action="sop_published",
        resource_type="sop",
        resource_id=s.id,
        old_values={"status": old_status},
        new_values={"status": s.status},
        meta={"description": f"Published \"{s.title}\" v{s.version}"},
    )
    return s


@router.delete("/sops/{sop_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_sop(
    sop_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    s = _get_sop_or_404(db, sop_id, current_user)
    crud_sop.soft_delete_sop(db, s)
    change_feed.publish("sops", "DELETE", row_dict(s))
    audit_from_request(
        db,
        request,
        company_id=s.company_id,
        user_id=current_user.id,
        action="sop_deleted",
        resource_type="sop",
        resource_id=s.id,
        meta={"description": f"Deleted \"{s.title}\""},
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# -----------------------------
# ASSIGNMENTS of one document
# -----------------------------
@router.get("/sops/{sop_id}/assignments")
def list_sop_assignments(
    sop_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
) -> Dict[str, Any]:
    s = _get_sop_or_404(db, sop_id, current_user)
    now = utcnow()
    rows = assignment_service.load_assignment_rows(db, sop_id=s.id)
    items = [assignment_service.tracking_row(r, now) for r in rows]
    return {"items": items, "count": len(items)}


@router.post("/sops/{sop_id}/assign", response_model=AssignResult, status_code=status.HTTP_201_CREATED)
def assign_sop(
    sop_id: int,
    payload: AssignRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    s = _get_sop_or_404(db, sop_id, current_user)
    try:
        created, skipped = assignment_service.assign(
            db,
            request,
            s,
            payload.user_ids,
            current_user,
            due_date=payload.due_date,
            priority=payload.priority,
            notes=payload.notes,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return AssignResult(created=[a.id for a in created], skipped_user_ids=skipped)
