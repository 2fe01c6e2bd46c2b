# sophub/schemas/company.py
from datetime import datetime
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, constr

CompanySize = Literal["small", "medium", "large", "enterprise"]


class CompanyUpdate(BaseModel):
    # All optional for PATCH
    name: Optional[constr(strip_whitespace=True, min_length=2, max_length=255)] = None
    domain: Optional[constr(strip_whitespace=True, max_length=255)] = None
    industry: Optional[str] = None
    size: Optional[CompanySize] = None
    settings: Optional[Dict[str, Any]] = Field(None, description="Free-form company settings.")


class CompanyOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    domain: Optional[str] = None
    industry: Optional[str] = None
    size: Optional[str] = None
    settings: Optional[Dict[str, Any]] = None
    subscription_plan: Optional[str] = None
    subscription_status: Optional[str] = None
    created_at: datetime
    updated_at: datetime
