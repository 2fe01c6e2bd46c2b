# sophub/api/v1/dashboard.py
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from sophub.core.auth import get_current_user, get_db
from sophub.core.scoping import company_id_for, require_report_viewer
from sophub.models.user import User
from sophub.services.dashboard import admin_dashboard, employee_dashboard

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/admin")
def admin(
    company_id: Optional[int] = Query(None, description="Super admins only: target company."),
    db: Session = Depends(get_db),
    current_user: User = Depends(require_report_viewer),
) -> Dict[str, Any]:
    return admin_dashboard(db, company_id_for(current_user, company_id))


@router.get("/employee")
def employee(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
) -> Dict[str, Any]:
    return employee_dashboard(db, current_user)
