# sophub/models/sop_review.py
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship

from sophub.core.timeutils import utcnow
from sophub.db.base import Base

REVIEW_STATUS = ("pending", "approved", "rejected", "changes_requested")
REVIEW_TYPES = ("approval", "periodic", "audit")


class SopReview(Base):
    __tablename__ = "sop_reviews"

    id = Column(Integer, primary_key=True, index=True)
    sop_id = Column(Integer, ForeignKey("sops.id", ondelete="CASCADE"), nullable=False, index=True)
    reviewer_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)

    status = Column(String(30), nullable=False, default="pending")
    comments = Column(Text, nullable=True)
    review_type = Column(String(20), nullable=False, default="approval")
    due_date = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    sop = relationship("Sop")
    reviewer = relationship("User")

    __table_args__ = (
        CheckConstraint(f"status IN {REVIEW_STATUS}", name="ck_sop_reviews_status_allowed"),
        CheckConstraint(f"review_type IN {REVIEW_TYPES}", name="ck_sop_reviews_type_allowed"),
    )
