# sophub/schemas/history.py
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

HistoryStatus = Literal["acknowledged", "expired", "superseded"]
HistoryDateRange = Literal["all", "30days", "6months", "1year"]


class HistoryFilters(BaseModel):
    model_config = ConfigDict(frozen=True)

    date_range: HistoryDateRange = "all"
    document_type: str = "all"
    department: str = "all"
    status: str = "all"
    search: str = ""


class HistoryRecord(BaseModel):
    id: int
    document_id: int
    document_title: str
    department: str
    document_type: str
    acknowledged_date: datetime
    version: Optional[str] = None
    status: HistoryStatus
    current_version: Optional[str] = Field(None, description="Only set when superseded.")
    superseded_date: Optional[datetime] = Field(None, description="Only set when superseded.")
    expiry_date: datetime
    acknowledged_by: str
    receipt_id: str
    content: Optional[str] = None


class Receipt(BaseModel):
    receipt_id: str
    document_title: str
    document_version: Optional[str] = None
    department: str
    document_type: str
    acknowledged_by: str
    acknowledged_date: datetime
    status: HistoryStatus
    user_email: Optional[str] = None
    generated_at: datetime
