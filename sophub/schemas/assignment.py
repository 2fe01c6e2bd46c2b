# sophub/schemas/assignment.py
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, conint, constr, field_validator

from sophub.core.timeutils import as_naive_utc
from sophub.schemas.sop import Priority

AssignmentStatus = Literal["pending", "acknowledged", "overdue"]


class AssignRequest(BaseModel):
    user_ids: List[conint(ge=1)] = Field(..., min_length=1, description="Users to assign the document to.")
    due_date: Optional[datetime] = Field(None, description="Acknowledge-by date (ISO 8601).")
    priority: Priority = "medium"
    notes: Optional[str] = None

    @field_validator("due_date")
    @classmethod
    def _due_date_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_naive_utc(v)


class AssignResult(BaseModel):
    created: List[int] = Field(default_factory=list, description="New assignment ids.")
    skipped_user_ids: List[int] = Field(
        default_factory=list, description="Users that already hold this document."
    )


class AcknowledgeRequest(BaseModel):
    notes: Optional[constr(max_length=2000)] = None


class BulkAcknowledgeRequest(BaseModel):
    assignment_ids: List[conint(ge=1)] = Field(..., min_length=1)
    notes: Optional[constr(max_length=2000)] = None


class DeclineRequest(BaseModel):
    reason: constr(strip_whitespace=True, min_length=1, max_length=2000)


class BulkReminderRequest(BaseModel):
    assignment_ids: List[conint(ge=1)] = Field(..., min_length=1)
    message: Optional[constr(max_length=2000)] = None


class ReminderRequest(BaseModel):
    message: Optional[constr(max_length=2000)] = None


class AcknowledgmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    assignment_id: Optional[int] = None
    user_id: int
    sop_id: int
    sop_version: Optional[str] = None
    notes: Optional[str] = None
    acknowledged_at: datetime


class AssignmentView(BaseModel):
    """A user's assignment as rendered in the "assigned to me" list."""

    id: int
    sop_id: int
    title: str
    document_type: str
    department: Optional[str] = None
    version: Optional[str] = None
    priority: str
    status: AssignmentStatus
    due_date: Optional[datetime] = None
    assigned_at: datetime
    assigned_by: Optional[str] = None
    acknowledged_at: Optional[datetime] = None
    notes: Optional[str] = None
