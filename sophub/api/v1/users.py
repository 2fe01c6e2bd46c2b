# sophub/api/v1/users.py
from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from sqlalchemy.orm import Session

from sophub.core.auth import get_current_user, get_db
from sophub.core.scoping import company_id_for, is_super, require_admin
from sophub.crud import user as crud_user
from sophub.models.user import User
from sophub.schemas.user import UserCreate, UserOut, UserUpdate
from sophub.services.audit import audit_from_request

router = APIRouter(tags=["users"])


def _to_out(u: User) -> Dict[str, Any]:
    return UserOut.model_validate(u).model_dump()


def _get_user_or_404(db: Session, user_id: int, current_user: User) -> User:
    company_id = None if is_super(current_user) else current_user.company_id
    u = crud_user.get_user(db, user_id, company_id=company_id)
    if not u:
        raise HTTPException(status_code=404, detail="User not found")
    return u


@router.get("/me", response_model=UserOut)
def get_me(current_user: User = Depends(get_current_user)):
    return current_user


@router.get("/users")
def list_users(
    response: Response,
    company_id: Optional[int] = Query(None, description="Super admins only: target company."),
    department: Optional[str] = Query(None),
    role: Optional[str] = Query(None, pattern="^(admin|employee|auditor)$"),
    status_: Optional[str] = Query(None, alias="status", pattern="^(active|inactive|pending)$"),
    q: Optional[str] = Query(None, description="Search first name, last name or email"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
) -> Dict[str, Any]:
    cid = company_id_for(current_user, company_id)
    items, total = crud_user.list_users(
        db, cid, department=department, role=role, status=status_, q=q, skip=skip, limit=limit
    )
    response.headers["X-Total-Count"] = str(total)
    return {
        "items": [_to_out(u) for u in items],
        "pagination": {"skip": skip, "limit": limit, "total": total},
        "departments": crud_user.list_company_departments(db, cid),
    }


@router.post("/users", response_model=UserOut, status_code=status.HTTP_201_CREATED)
def create_user(
    payload: UserCreate,
    request: Request,
    company_id: Optional[int] = Query(None, description="Super admins only: target company."),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    cid = company_id_for(current_user, company_id)
    try:
        u = crud_user.create_user(db, cid, payload)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    audit_from_request(
        db,
        request,
        company_id=cid,
        user_id=current_user.id,
        action="create_user",
        resource_type="user",
        resource_id=u.id,
        new_values={"email": u.email, "role": u.role, "department": u.department},
        meta={"description": f"Created user {u.email}"},
    )
    return u


@router.patch("/users/{user_id}", response_model=UserOut)
def update_user(
    user_id: int,
    payload: UserUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    u = _get_user_or_404(db, user_id, current_user)
    if u.is_super_admin and not is_super(current_user):
        raise HTTPException(status_code=403, detail="Only a super admin can modify a super admin")

    changes = payload.model_dump(exclude_unset=True)
    old_values = {k: getattr(u, k) for k in changes}
    u = crud_user.update_user(db, u, payload)

    audit_from_request(
        db,
        request,
        company_id=u.company_id,
        user_id=current_user.id,
        action="update_user",
        resource_type="user",
        resource_id=u.id,
        old_values=old_values,
        new_values=changes,
    )
    return u


@router.delete("/users/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(
    user_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    u = _get_user_or_404(db, user_id, current_user)
    if u.id == current_user.id:
        raise HTTPException(status_code=400, detail="You cannot deactivate your own account")
    crud_user.deactivate_user(db, u)

    audit_from_request(
        db,
        request,
        company_id=u.company_id,
        user_id=current_user.id,
        action="deactivate_user",
        resource_type="user",
        resource_id=u.id,
        meta={"description": f"Deactivated user {u.email}"},
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
