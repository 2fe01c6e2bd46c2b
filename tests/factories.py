"""
Shared fixtures for the test-suite: an isolated in-memory database per test
case and small builders for the core rows.
"""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from sophub.core.security import get_password_hash
from sophub.db.session import enable_sqlite_foreign_keys
from sophub.models import Base
from sophub.models.acknowledgment import Acknowledgment
from sophub.models.company import Company
from sophub.models.sop import Sop
from sophub.models.sop_assignment import SopAssignment
from sophub.models.user import User

PASSWORD = "Secret123!"
# hashing is slow on purpose; every test user shares one hash
PASSWORD_HASH = get_password_hash(PASSWORD)


def make_session_factory() -> sessionmaker:
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    event.listen(engine, "connect", enable_sqlite_foreign_keys)
    Base.metadata.create_all(bind=engine)
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


def make_company(db: Session, name: str = "Acme", domain: Optional[str] = None) -> Company:
    c = Company(name=name, domain=domain or f"{name.lower()}.test", settings={})
    db.add(c)
    db.commit()
    db.refresh(c)
    return c


def make_user(
    db: Session,
    company: Company,
    email: str,
    role: str = "employee",
    department: Optional[str] = None,
    first_name: Optional[str] = None,
    last_name: Optional[str] = None,
    status: str = "active",
) -> User:
    u = User(
        email=email,
        hashed_password=PASSWORD_HASH,
        company_id=company.id,
        role=role,
        department=department,
        first_name=first_name,
        last_name=last_name,
        status=status,
    )
    db.add(u)
    db.commit()
    db.refresh(u)
    return u


def make_sop(
    db: Session,
    company: Company,
    title: str = "Forklift Safety",
    department: Optional[str] = "Safety",
    document_type: str = "sop",
    version: str = "1.0",
    status: str = "published",
    priority: str = "medium",
    created_at: Optional[datetime] = None,
    updated_at: Optional[datetime] = None,
) -> Sop:
    s = Sop(
        company_id=company.id,
        title=title,
        department=department,
        document_type=document_type,
        version=version,
        status=status,
        priority=priority,
        content=f"{title} body",
    )
    if created_at is not None:
        s.created_at = created_at
    if updated_at is not None:
        s.updated_at = updated_at
    db.add(s)
    db.commit()
    db.refresh(s)
    return s


def make_assignment(
    db: Session,
    sop: Sop,
    user: User,
    assigned_by: Optional[User] = None,
    due_date: Optional[datetime] = None,
    created_at: Optional[datetime] = None,
    priority: str = "medium",
    notes: Optional[str] = None,
) -> SopAssignment:
    a = SopAssignment(
        company_id=sop.company_id,
        sop_id=sop.id,
        user_id=user.id,
        assigned_by=assigned_by.id if assigned_by else None,
        due_date=due_date,
        priority=priority,
        notes=notes,
        status="pending",
    )
    if created_at is not None:
        a.created_at = created_at
    db.add(a)
    db.commit()
    db.refresh(a)
    return a


def make_ack(
    db: Session,
    assignment: SopAssignment,
    acknowledged_at: datetime,
    version: Optional[str] = None,
) -> Acknowledgment:
    sop = db.get(Sop, assignment.sop_id)
    ack = Acknowledgment(
        assignment_id=assignment.id,
        user_id=assignment.user_id,
        sop_id=assignment.sop_id,
        sop_version=version or sop.version,
        acknowledged_at=acknowledged_at,
        created_at=acknowledged_at,
    )
    assignment.status = "acknowledged"
    db.add(ack)
    db.add(assignment)
    db.commit()
    db.refresh(ack)
    return ack
