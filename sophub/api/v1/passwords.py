# sophub/api/v1/passwords.py
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from sophub.core.auth import get_current_user, get_db
from sophub.crud.passwords import change_password
from sophub.models.user import User
from sophub.schemas.passwords import ChangePasswordRequest
from sophub.services.audit import audit_from_request

router = APIRouter(tags=["auth"])


@router.post("/auth/change-password")
def api_change_password(
    payload: ChangePasswordRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        change_password(
            db,
            user=current_user,
            current_password=payload.current_password,
            new_password=payload.new_password,
            confirm_password=payload.confirm_password,
        )
    except ValueError as ve:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(ve))

    audit_from_request(
        db,
        request,
        company_id=current_user.company_id,
        user_id=current_user.id,
        action="PASSWORD_CHANGED",
        resource_type="user",
        resource_id=current_user.id,
    )
    return {"msg": "Password changed"}
