# sophub/crud/user.py
from typing import List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from sophub.core.security import get_password_hash, validate_new_password
from sophub.core.timeutils import utcnow
from sophub.models.user import User
from sophub.schemas.user import UserCreate, UserUpdate


def get_user(db: Session, user_id: int, company_id: Optional[int] = None) -> Optional[User]:
    q = db.query(User).filter(User.id == user_id, User.deleted_at.is_(None))
    if company_id is not None:
        q = q.filter(User.company_id == company_id)
    return q.first()


def list_users(
    db: Session,
    company_id: int,
    department: Optional[str] = None,
    role: Optional[str] = None,
    status: Optional[str] = None,
    q: Optional[str] = None,
    skip: int = 0,
    limit: int = 50,
) -> Tuple[List[User], int]:
    query = db.query(User).filter(User.company_id == company_id, User.deleted_at.is_(None))
    if department:
        query = query.filter(User.department == department)
    if role:
        query = query.filter(User.role == role)
    if status:
        query = query.filter(User.status == status)
    if q:
        like_value = f"%{q.lower()}%"
        query = query.filter(
            or_(
                func.lower(User.first_name).like(like_value),
                func.lower(User.last_name).like(like_value),
                func.lower(User.email).like(like_value),
            )
        )
    total = query.count()
    items = (
        query.order_by(User.last_name.asc(), User.first_name.asc(), User.id.asc())
        .offset(skip)
        .limit(limit)
        .all()
    )
    return items, total


def list_company_departments(db: Session, company_id: int) -> List[str]:
    rows = (
        db.query(User.department)
        .filter(User.company_id == company_id, User.deleted_at.is_(None), User.department.isnot(None))
        .distinct()
        .all()
    )
    return sorted(d for (d,) in rows if d)


def create_user(db: Session, company_id: int, payload: UserCreate) -> User:
    validate_new_password(payload.password)
    email = payload.email.strip().lower()
    if db.query(User.id).filter(func.lower(User.email) == email).first():
        raise ValueError("A user with this email already exists")

    obj = User(
        company_id=company_id,
        email=email,
        hashed_password=get_password_hash(payload.password),
        first_name=payload.first_name,
        last_name=payload.last_name,
        role=payload.role,
        department=payload.department,
        position=payload.position,
        status="active",
    )
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj


def update_user(db: Session, obj: User, payload: UserUpdate) -> User:
    data = payload.model_dump(exclude_unset=True)
    for k, v in data.items():
        setattr(obj, k, v)
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj


def deactivate_user(db: Session, obj: User) -> User:
    """Soft delete: users keep their assignments and acknowledgments."""
    obj.status = "inactive"
    obj.deleted_at = utcnow()
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj
