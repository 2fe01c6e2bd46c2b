# sophub/models/company.py
from sqlalchemy import Column, Integer, String, DateTime, JSON, CheckConstraint

from sophub.core.timeutils import utcnow
from sophub.db.base import Base

COMPANY_SIZES = ("small", "medium", "large", "enterprise")


class Company(Base):
    __tablename__ = "companies"

    id = Column(Integer, primary_key=True, index=True)

    name = Column(String(255), nullable=False, index=True)
    domain = Column(String(255), nullable=True, unique=True)
    industry = Column(String(120), nullable=True)
    size = Column(String(20), nullable=True)
    settings = Column(JSON, nullable=True)

    # billing flags (read-only for the API)
    subscription_plan = Column(String(50), nullable=True, default="basic")
    subscription_status = Column(String(50), nullable=True, default="active")

    # timestamps
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
    deleted_at = Column(DateTime, nullable=True)

    __table_args__ = (
        CheckConstraint(f"size IS NULL OR size IN {COMPANY_SIZES}", name="ck_companies_size_allowed"),
    )

    def __repr__(self) -> str:
        return f"<Company id={self.id} name={self.name!r}>"
