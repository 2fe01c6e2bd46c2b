#!/usr/bin/env python3
"""
Minimal seed:
- Ensures a company and its first administrator exist.
- Safe to run multiple times (idempotent).

Env: SEED_COMPANY_NAME, SEED_COMPANY_DOMAIN, SEED_ADMIN_EMAIL,
SEED_ADMIN_PASSWORD, SEED_SUPER_ADMIN (1 = platform-wide super admin).
"""
import os

from dotenv import load_dotenv
from sqlalchemy.orm import Session

from sophub.core.security import get_password_hash, validate_new_password
from sophub.db.session import SessionLocal, engine
from sophub.models import Base
from sophub.models.company import Company
from sophub.models.user import User


def ensure_company(db: Session, name: str, domain: str) -> Company:
    company = db.query(Company).filter(Company.domain == domain).first()
    if company:
        return company
    company = Company(name=name, domain=domain, size="small", settings={})
    db.add(company)
    db.commit()
    db.refresh(company)
    return company


def ensure_admin(db: Session, company: Company, email: str, password: str, super_admin: bool) -> User:
    email = email.strip().lower()
    user = db.query(User).filter(User.email == email).first()
    if user:
        changed = False
        if user.role != "admin":
            user.role = "admin"
            changed = True
        if super_admin and not user.is_super_admin:
            user.is_super_admin = True
            changed = True
        if user.status != "active" or user.deleted_at is not None:
            user.status = "active"
            user.deleted_at = None
            changed = True
        if changed:
            db.add(user)
            db.commit()
            db.refresh(user)
        return user

    validate_new_password(password)
    user = User(
        email=email,
        company_id=company.id,
        first_name="Admin",
        role="admin",
        is_super_admin=super_admin,
        status="active",
        hashed_password=get_password_hash(password),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def main():
    load_dotenv()
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        company = ensure_company(
            db,
            os.environ.get("SEED_COMPANY_NAME", "Example Co"),
            os.environ.get("SEED_COMPANY_DOMAIN", "example.com"),
        )
        admin = ensure_admin(
            db,
            company,
            os.environ.get("SEED_ADMIN_EMAIL", "admin@example.com"),
            os.environ.get("SEED_ADMIN_PASSWORD", "ChangeMe123!"),
            os.environ.get("SEED_SUPER_ADMIN", "1") == "1",
        )
        print(f"OK: company {company.name} (id={company.id}), admin {admin.email} (id={admin.id})")
    finally:
        db.close()


if __name__ == "__main__":
    main()
