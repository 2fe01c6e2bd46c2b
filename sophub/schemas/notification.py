# sophub/schemas/notification.py
from datetime import datetime
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, conint, constr, field_validator

from sophub.core.timeutils import as_naive_utc

NotificationPriority = Literal["low", "medium", "high", "urgent"]


class NotificationCreate(BaseModel):
    user_id: conint(ge=1)
    type: constr(strip_whitespace=True, min_length=1, max_length=50) = "announcement"
    title: constr(strip_whitespace=True, min_length=1, max_length=255)
    message: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
    priority: NotificationPriority = "medium"
    expires_at: Optional[datetime] = None

    @field_validator("expires_at")
    @classmethod
    def _expires_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_naive_utc(v)


class NotificationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    type: str
    title: str
    message: Optional[str] = None
    data: Optional[Dict[str, Any]] = None
    read: bool
    priority: str
    expires_at: Optional[datetime] = None
    created_at: datetime


class NotificationStats(BaseModel):
    total: int = 0
    unread: int = 0
    urgent: int = 0
    today: int = 0
