# sophub/schemas/user.py
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, constr

UserRole = Literal["admin", "employee", "auditor"]
UserStatus = Literal["active", "inactive", "pending"]


class UserCreate(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=8, description="Initial password (min 8 characters).")
    first_name: Optional[constr(strip_whitespace=True, max_length=120)] = None
    last_name: Optional[constr(strip_whitespace=True, max_length=120)] = None
    role: UserRole = "employee"
    department: Optional[constr(strip_whitespace=True, max_length=120)] = None
    position: Optional[constr(strip_whitespace=True, max_length=120)] = None


class UserUpdate(BaseModel):
    first_name: Optional[constr(strip_whitespace=True, max_length=120)] = None
    last_name: Optional[constr(strip_whitespace=True, max_length=120)] = None
    role: Optional[UserRole] = None
    department: Optional[constr(strip_whitespace=True, max_length=120)] = None
    position: Optional[constr(strip_whitespace=True, max_length=120)] = None
    status: Optional[UserStatus] = None


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    email: str
    company_id: Optional[int] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    full_name: str = ""
    role: str
    is_super_admin: bool = False
    department: Optional[str] = None
    position: Optional[str] = None
    status: str
    last_login_at: Optional[datetime] = None
    created_at: datetime
