# sophub/models/notification.py
from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, ForeignKey, JSON, Index, text, CheckConstraint

from sophub.core.timeutils import utcnow
from sophub.db.base import Base

NOTIFICATION_PRIORITY = ("low", "medium", "high", "urgent")


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, index=True)
    company_id = Column(Integer, ForeignKey("companies.id", ondelete="CASCADE"), nullable=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    # e.g. assigned | reminder | overdue | acknowledgment_completed | declined
    type = Column(String(50), nullable=False, index=True)
    title = Column(String(255), nullable=False)
    message = Column(Text, nullable=True)
    data = Column(JSON, nullable=True)

    read = Column(Boolean, nullable=False, default=False, server_default=text("0"))
    priority = Column(String(20), nullable=False, default="medium")
    expires_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, nullable=False, default=utcnow, index=True)

    __table_args__ = (
        Index("ix_notifications_user_read", "user_id", "read"),
        CheckConstraint(f"priority IN {NOTIFICATION_PRIORITY}", name="ck_notifications_priority_allowed"),
    )
