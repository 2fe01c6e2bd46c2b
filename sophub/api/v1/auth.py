# sophub/api/v1/auth.py
from datetime import timedelta

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.orm import Session

from sophub.core.auth import authenticate_user, find_user_by_email, get_db
from sophub.core.security import ACCESS_TOKEN_EXPIRE_MINUTES, create_access_token
from sophub.services.audit import audit_from_request

router = APIRouter(tags=["auth"])


@router.post("/login")
def login(
    request: Request,
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: Session = Depends(get_db),
):
    """
    Password sign-in (form fields ``username`` = email, ``password``).
    Three wrong passwords lock the account for 15 minutes.
    """
    email = (form_data.username or "").strip()
    user = authenticate_user(db, email, form_data.password)

    if user is None:
        known = find_user_by_email(db, email)
        if known is not None:
            audit_from_request(
                db,
                request,
                company_id=known.company_id,
                user_id=known.id,
                action="LOGIN_FAILED",
                resource_type="auth",
                resource_id=known.id,
                meta={
                    "email": email,
                    "locked_until": known.locked_until.isoformat() if known.locked_until else None,
                },
            )
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    audit_from_request(
        db,
        request,
        company_id=user.company_id,
        user_id=user.id,
        action="LOGIN_SUCCESS",
        resource_type="auth",
        resource_id=user.id,
        meta={"email": user.email, "method": "password"},
    )

    access_token = create_access_token(
        data={"sub": user.email},
        expires_delta=timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES),
    )
    return {"access_token": access_token, "token_type": "bearer"}
