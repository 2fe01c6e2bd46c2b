# sophub/models/sop.py
from sqlalchemy import (
    Column, Integer, String, Text, DateTime, ForeignKey, JSON,
    CheckConstraint, Index, text,
)
from sqlalchemy.orm import relationship

from sophub.core.timeutils import utcnow
from sophub.db.base import Base

# NOTE: keep simple string "enums" for SQLite portability
SOP_STATUS = ("draft", "review", "approved", "published", "archived")
PRIORITY_LEVELS = ("low", "medium", "high", "critical")
DOCUMENT_TYPES = ("sop", "policy", "training", "procedure")


class Sop(Base):
    __tablename__ = "sops"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)

    title = Column(String(255), nullable=False, index=True)
    description = Column(Text, nullable=True)
    content = Column(Text, nullable=True)
    version = Column(String(20), nullable=False, default="1.0")

    # sop | policy | training | procedure
    document_type = Column(String(20), nullable=False, default="sop")
    department = Column(String(120), nullable=True, index=True)
    status = Column(String(20), nullable=False, default="draft", index=True)
    priority = Column(String(20), nullable=False, default="medium")
    tags = Column(JSON, nullable=True)

    author_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    approved_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    approved_at = Column(DateTime, nullable=True)
    published_at = Column(DateTime, nullable=True)
    expires_at = Column(DateTime, nullable=True)

    # Periodic review (days) and the next scheduled review
    review_frequency = Column(Integer, nullable=True, default=365)
    next_review_date = Column(DateTime, nullable=True, index=True)

    view_count = Column(Integer, nullable=False, default=0, server_default=text("0"))
    download_count = Column(Integer, nullable=False, default=0, server_default=text("0"))

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)
    deleted_at = Column(DateTime, nullable=True)

    # Relations
    author = relationship("User", foreign_keys=[author_id], viewonly=True)
    approver = relationship("User", foreign_keys=[approved_by], viewonly=True)

    __table_args__ = (
        CheckConstraint(f"status IN {SOP_STATUS}", name="ck_sops_status_allowed"),
        CheckConstraint(f"priority IN {PRIORITY_LEVELS}", name="ck_sops_priority_allowed"),
        CheckConstraint(f"document_type IN {DOCUMENT_TYPES}", name="ck_sops_document_type_allowed"),
        Index("ix_sops_company_status", "company_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<Sop id={self.id} title={self.title!r} v={self.version} status={self.status}>"
