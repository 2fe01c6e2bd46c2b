# sophub/models/acknowledgment.py
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from sophub.core.timeutils import utcnow
from sophub.db.base import Base


class Acknowledgment(Base):
    """Immutable receipt; at most one per assignment (checked by the writer)."""

    __tablename__ = "acknowledgments"

    id = Column(Integer, primary_key=True, index=True)
    assignment_id = Column(Integer, ForeignKey("sop_assignments.id", ondelete="CASCADE"), nullable=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    sop_id = Column(Integer, ForeignKey("sops.id", ondelete="CASCADE"), nullable=False, index=True)

    sop_version = Column(String(20), nullable=True)
    notes = Column(Text, nullable=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(512), nullable=True)

    acknowledged_at = Column(DateTime, nullable=False, default=utcnow, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    assignment = relationship("SopAssignment")
    sop = relationship("Sop")
    user = relationship("User")
