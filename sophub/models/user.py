# sophub/models/user.py
from sqlalchemy import (
    Column,
    Integer,
    String,
    ForeignKey,
    DateTime,
    Boolean,
    CheckConstraint,
    text,
)
from sqlalchemy.orm import relationship

from sophub.core.timeutils import utcnow
from sophub.db.base import Base

USER_ROLES = ("admin", "employee", "auditor")
USER_STATUS = ("active", "inactive", "pending")


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)

    # Basics
    email = Column(String(255), unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)

    # Tenancy / RBAC
    company_id = Column(Integer, ForeignKey("companies.id", ondelete="CASCADE"), nullable=True, index=True)
    role = Column(String(20), nullable=False, default="employee", index=True)
    is_super_admin = Column(Boolean, nullable=False, default=False, server_default=text("0"))

    # Profile / status
    first_name = Column(String(120), nullable=True)
    last_name = Column(String(120), nullable=True)
    department = Column(String(120), nullable=True, index=True)
    position = Column(String(120), nullable=True)
    status = Column(String(20), nullable=False, default="active", index=True)

    # Security / login metrics
    failed_login_attempts = Column(Integer, nullable=False, default=0, server_default=text("0"))
    locked_until = Column(DateTime, nullable=True, index=True)
    last_login_at = Column(DateTime, nullable=True)

    # Timestamps
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    deleted_at = Column(DateTime, nullable=True)

    # Relations
    company = relationship("Company", backref="users", passive_deletes=True)

    __table_args__ = (
        CheckConstraint(f"role IN {USER_ROLES}", name="ck_users_role_allowed"),
        CheckConstraint(f"status IN {USER_STATUS}", name="ck_users_status_allowed"),
    )

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p).strip()

    @property
    def is_active(self) -> bool:
        return self.status == "active" and self.deleted_at is None

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r} role={self.role}>"
