# sophub/schemas/sop.py
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, conint, constr, field_validator

from sophub.core.timeutils import as_naive_utc

SopStatus = Literal["draft", "review", "approved", "published", "archived"]
Priority = Literal["low", "medium", "high", "critical"]
DocumentType = Literal["sop", "policy", "training", "procedure"]


class SopBase(BaseModel):
    title: constr(strip_whitespace=True, min_length=3, max_length=255) = Field(
        ..., description="Document title."
    )
    description: Optional[str] = Field(None, description="Short summary.")
    content: Optional[str] = Field(None, description="Document body.")
    version: constr(strip_whitespace=True, min_length=1, max_length=20) = Field(
        "1.0", description="Human version label."
    )
    document_type: DocumentType = Field("sop", description="sop | policy | training | procedure")
    department: Optional[constr(strip_whitespace=True, max_length=120)] = None
    priority: Priority = "medium"
    tags: List[str] = Field(default_factory=list)
    review_frequency: Optional[conint(ge=1, le=3650)] = Field(
        365, description="Days between periodic reviews."
    )
    next_review_date: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    # columns hold naive UTC
    @field_validator("next_review_date", "expires_at")
    @classmethod
    def _dates_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_naive_utc(v)


class SopCreate(SopBase):
    status: SopStatus = "draft"


class SopUpdate(BaseModel):
    # All optional for PATCH
    title: Optional[constr(strip_whitespace=True, min_length=3, max_length=255)] = None
    description: Optional[str] = None
    content: Optional[str] = None
    version: Optional[constr(strip_whitespace=True, min_length=1, max_length=20)] = None
    document_type: Optional[DocumentType] = None
    department: Optional[constr(strip_whitespace=True, max_length=120)] = None
    status: Optional[SopStatus] = None
    priority: Optional[Priority] = None
    tags: Optional[List[str]] = None
    review_frequency: Optional[conint(ge=1, le=3650)] = None
    next_review_date: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    @field_validator("next_review_date", "expires_at")
    @classmethod
    def _dates_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_naive_utc(v)


class SopOut(SopBase):
    model_config = ConfigDict(from_attributes=True)

    id: int
    company_id: int
    status: str
    tags: Optional[List[str]] = None
    author_id: Optional[int] = None
    approved_by: Optional[int] = None
    approved_at: Optional[datetime] = None
    published_at: Optional[datetime] = None
    view_count: int = 0
    download_count: int = 0
    created_at: datetime
    updated_at: datetime
