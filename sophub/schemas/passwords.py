# sophub/schemas/passwords.py
from pydantic import BaseModel, Field


class ChangePasswordRequest(BaseModel):
    # length and confirmation are checked by the password policy so the
    # client gets the policy's own message
    current_password: str = Field(..., min_length=1)
    new_password: str
    confirm_password: str
