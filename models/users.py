from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field

Role = Literal["user", "admin"]


class LoginRequestModel(BaseModel):
    email: EmailStr
    password: str


class RegisterRequestModel(BaseModel):
    name: str = Field(..., min_length=2, max_length=50)
    email: EmailStr
    password: str = Field(..., min_length=6)
    avatar: Optional[str] = None


class CurrentUser(BaseModel):
    """Identity carried by an access token."""
    id: str
    role: Role = "user"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


class UserSummary(BaseModel):
    id: str
    name: str
    email: EmailStr
    avatar: Optional[str] = None
    role: Role = "user"
