# sophub/schemas/report.py
from typing import Any, Dict, List, Literal

from pydantic import BaseModel, ConfigDict, Field, conint

ReportType = Literal[
    "acknowledgment",
    "sop-review",
    "user-activity",
    "compliance-summary",
    "audit-trail",
]

ExportFormat = Literal["csv", "excel", "pdf"]

EXPORT_PAGE_SIZE = 10000


class ReportFilters(BaseModel):
    """Report filters; the literal "all" (or an empty value) disables a filter."""

    model_config = ConfigDict(frozen=True)

    date_range: str = Field("last-30-days", description="last-7-days | last-30-days | last-90-days | last-year")
    status: str = Field("all", description="Row status filter.")
    department: str = Field("all", description="Department filter.")
    priority: str = Field("all", description="Priority filter.")
    document_type: str = Field("all", description="sop | policy | training | procedure")
    user: str = Field("all", description="Assignee user id filter.")


class PaginationParams(BaseModel):
    model_config = ConfigDict(frozen=True)

    page: conint(ge=1) = Field(1, description="1-based page number.")
    items_per_page: conint(ge=1, le=EXPORT_PAGE_SIZE) = Field(10, description="Page size.")
    search: str = Field("", description="Case-insensitive free-text search.")


class ReportPage(BaseModel):
    data: List[Dict[str, Any]] = Field(default_factory=list)
    total: int = 0
    stats: Dict[str, Any] = Field(default_factory=dict)
    page: int = 1
    items_per_page: int = 10
