# sophub/models/sop_assignment.py
from sqlalchemy import (
    Column, Integer, String, Text, DateTime, ForeignKey, CheckConstraint, Index,
)
from sqlalchemy.orm import relationship

from sophub.core.timeutils import utcnow
from sophub.db.base import Base

ASSIGNMENT_STATUS = ("pending", "acknowledged", "overdue")


class SopAssignment(Base):
    __tablename__ = "sop_assignments"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id", ondelete="CASCADE"), nullable=False, index=True)
    sop_id = Column(Integer, ForeignKey("sops.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    assigned_by = Column(Integer, ForeignKey("users.id"), nullable=True)

    due_date = Column(DateTime, nullable=True, index=True)
    priority = Column(String(20), nullable=False, default="medium")
    # stored value is informational; display status is derived at read time
    status = Column(String(20), nullable=False, default="pending", index=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    # Relations
    sop = relationship("Sop")
    user = relationship("User", foreign_keys=[user_id])
    assigner = relationship("User", foreign_keys=[assigned_by], viewonly=True)
    acknowledgment = relationship(
        "Acknowledgment", uselist=False, viewonly=True
    )

    __table_args__ = (
        CheckConstraint(f"status IN {ASSIGNMENT_STATUS}", name="ck_sop_assignments_status_allowed"),
        Index("ix_assignments_sop_user", "sop_id", "user_id"),
        Index("ix_assignments_company_status", "company_id", "status"),
    )

    def __repr__(self) -> str:
        return f"<SopAssignment id={self.id} sop={self.sop_id} user={self.user_id} due={self.due_date}>"
