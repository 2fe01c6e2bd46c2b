# sophub/crud/company.py
from typing import Optional

from sqlalchemy.orm import Session

from sophub.models.company import Company
from sophub.schemas.company import CompanyUpdate


def get_company(db: Session, company_id: int) -> Optional[Company]:
    return (
        db.query(Company)
        .filter(Company.id == company_id, Company.deleted_at.is_(None))
        .first()
    )


def update_company(db: Session, obj: Company, payload: CompanyUpdate) -> Company:
    data = payload.model_dump(exclude_unset=True)
    if "domain" in data and data["domain"]:
        clash = (
            db.query(Company.id)
            .filter(Company.domain == data["domain"], Company.id != obj.id)
            .first()
        )
        if clash:
            raise ValueError("Domain already used by another company")
    for k, v in data.items():
        setattr(obj, k, v)
    db.add(obj)
    db.commit()
    db.refresh(obj)
    return obj
