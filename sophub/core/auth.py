# sophub/core/auth.py
from datetime import datetime, timedelta
from typing import Optional

from fastapi import Depends, HTTPException, status, Request
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy import func
from sqlalchemy.orm import Session

from sophub.db.session import SessionLocal
from sophub.models.user import User
from sophub.core.security import verify_password, SECRET_KEY, ALGORITHM
from sophub.core.timeutils import utcnow

# OAuth2 bearer scheme for Swagger "Authorize" button and DI
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/v1/login")

# Lockout policy
MAX_FAILED_ATTEMPTS = 3
LOCKOUT_MINUTES = 15


def get_db():
    """Yield a DB session and make sure it's closed afterwards."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def is_locked(user: User, now: Optional[datetime] = None) -> bool:
    now = now or utcnow()
    return bool(user.locked_until and user.locked_until > now)


def find_user_by_email(db: Session, email: str) -> Optional[User]:
    return (
        db.query(User)
        .filter(func.lower(User.email) == (email or "").strip().lower())
        .first()
    )


def authenticate_user(db: Session, email: str, password: str) -> Optional[User]:
    """
    Attempt authentication:
      - unknown user → None (do not reveal existence)
      - deactivated / deleted user → 403
      - locked account → 429
      - correct password → reset counters and return user
      - wrong password → increment counter, lock after MAX_FAILED_ATTEMPTS, return None
    """
    user = find_user_by_email(db, email)
    if not user:
        return None

    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User is disabled")

    if is_locked(user):
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail=(
                "Your account is temporarily locked due to too many failed sign-in "
                f"attempts. Please try again in {LOCKOUT_MINUTES} minutes."
            ),
        )

    if verify_password(password, user.hashed_password):
        user.failed_login_attempts = 0
        user.locked_until = None
        user.last_login_at = utcnow()
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    user.failed_login_attempts = int(user.failed_login_attempts or 0) + 1
    if user.failed_login_attempts >= MAX_FAILED_ATTEMPTS:
        user.locked_until = utcnow() + timedelta(minutes=LOCKOUT_MINUTES)
        user.failed_login_attempts = 0
    db.add(user)
    db.commit()
    return None


def get_current_user(
    request: Request,
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    """
    Decode JWT and load the user from DB or return 401.
    Rejects deactivated and locked users (403) and exposes the user context on
    request.state for the request logger.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
        email: Optional[str] = payload.get("sub")
        if email is None:
            raise credentials_exception
    except JWTError:
        raise credentials_exception

    user = find_user_by_email(db, email)
    if user is None:
        raise credentials_exception

    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User is disabled")

    if is_locked(user):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Account locked until {user.locked_until.isoformat()}",
        )

    request.state.user_id = user.id
    request.state.company_id = user.company_id
    request.state.is_super_admin = bool(user.is_super_admin)
    return user
