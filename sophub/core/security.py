# sophub/core/security.py
from __future__ import annotations

import os
from datetime import timedelta
from typing import Any, Dict, Optional

import bcrypt
from jose import jwt

from sophub.core.timeutils import utcnow

SECRET_KEY = os.getenv("SECRET_KEY", "change-me-in-production")
ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60"))

PASSWORD_MIN_LENGTH = 8


# -----------------------------
# Password hashing
# -----------------------------
def get_password_hash(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(password: str, hashed: Optional[str]) -> bool:
    if not hashed:
        return False
    try:
        return bcrypt.checkpw(password.encode(), hashed.encode())
    except ValueError:
        # malformed hash in DB
        return False


def validate_new_password(new_password: str, confirm_password: Optional[str] = None) -> None:
    """
    Local password policy, checked before anything touches the database.
    Raises ValueError with a user-facing message.
    """
    if confirm_password is not None and new_password != confirm_password:
        raise ValueError("New passwords do not match")
    if len(new_password or "") < PASSWORD_MIN_LENGTH:
        raise ValueError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters long")


# -----------------------------
# Tokens
# -----------------------------
def create_access_token(data: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    to_encode = dict(data)
    expire = utcnow() + (expires_delta or timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode["exp"] = expire
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)
