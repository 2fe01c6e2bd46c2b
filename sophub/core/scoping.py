# sophub/core/scoping.py
from typing import Optional

from fastapi import Depends, HTTPException, status

from sophub.core.auth import get_current_user
from sophub.models.user import User

# ---- Role helpers ------------------------------------------------------------

ADMIN_ROLES = {"admin"}
AUDITOR_ROLES = {"auditor"}


def _role(user: Optional[User]) -> str:
    return (user.role or "").strip().lower() if user else ""


def is_super(user: User) -> bool:
    return bool(getattr(user, "is_super_admin", False))


def is_admin(user: User) -> bool:
    return is_super(user) or _role(user) in ADMIN_ROLES


def is_auditor(user: User) -> bool:
    return _role(user) in AUDITOR_ROLES


def can_view_reports(user: User) -> bool:
    """Admins and auditors see company-wide reports; employees only their own data."""
    return is_admin(user) or is_auditor(user)


# ---- Hard guards (raise 403) -------------------------------------------------

def require_admin(current_user: User = Depends(get_current_user)) -> User:
    if not is_admin(current_user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required.",
        )
    return current_user


def require_report_viewer(current_user: User = Depends(get_current_user)) -> User:
    if not can_view_reports(current_user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin or auditor privileges required.",
        )
    return current_user


def ensure_same_company(resource_company_id: Optional[int], current_user: User) -> None:
    if not is_super(current_user) and resource_company_id != current_user.company_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Resource belongs to another company.",
        )


def company_id_for(current_user: User, requested: Optional[int] = None) -> int:
    """
    Resolve the tenant a request operates on. Super admins may target any
    company explicitly; everybody else is pinned to their own company.
    """
    if requested is not None and is_super(current_user):
        return requested
    if requested is not None and requested != current_user.company_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not allowed for another company.",
        )
    if current_user.company_id is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Company not found",
        )
    return current_user.company_id

