# sophub/api/v1/companies.py
from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from sophub.core.auth import get_current_user, get_db
from sophub.core.scoping import ensure_same_company, require_admin
from sophub.crud.company import get_company as crud_get_company
from sophub.crud.company import update_company as crud_update_company
from sophub.models.company import Company
from sophub.models.user import User
from sophub.schemas.company import CompanyOut, CompanyUpdate
from sophub.services.audit import audit_from_request

router = APIRouter(tags=["companies"])


def _get_company_or_404(db: Session, company_id: int, current_user: User) -> Company:
    ensure_same_company(company_id, current_user)
    c = crud_get_company(db, company_id)
    if not c:
        raise HTTPException(status_code=404, detail="Company not found")
    return c


@router.get("/companies/{company_id}", response_model=CompanyOut)
def get_company(
    company_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return _get_company_or_404(db, company_id, current_user)


@router.patch("/companies/{company_id}", response_model=CompanyOut)
def update_company(
    company_id: int,
    payload: CompanyUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_admin),
):
    c = _get_company_or_404(db, company_id, current_user)
    changes = payload.model_dump(exclude_unset=True)
    old_values = {k: getattr(c, k) for k in changes}
    try:
        c = crud_update_company(db, c, payload)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    audit_from_request(
        db,
        request,
        company_id=c.id,
        user_id=current_user.id,
        action="update_company",
        resource_type="company",
        resource_id=c.id,
        old_values=old_values,
        new_values=changes,
    )
    return c
