from datetime import datetime
from typing import Optional

from pydantic import Field, field_validator

from app.models.user import UserRole
from app.schemas.base import CamelModel


class UserResponse(CamelModel):
    id: str
    phone_number: str
    role: UserRole
    name: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def display_name(self) -> str:
        return self.name or self.phone_number


class LoginRequest(CamelModel):
    phone_number: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class LoginResponse(CamelModel):
    user: UserResponse
    token: str
    message: Optional[str] = None


class CreateUserRequest(CamelModel):
    phone_number: str = Field(..., min_length=1)
    role: UserRole
    password: Optional[str] = None
    name: Optional[str] = None

    @field_validator("phone_number")
    def strip_phone_number(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Phone number is required")
        return v

    @field_validator("password", "name")
    def blank_to_none(cls, v):
        if v is not None and not v.strip():
            return None
        return v


class CreateUserResponse(CamelModel):
    user: UserResponse
    generated_password: Optional[str] = None
    message: Optional[str] = None


# phoneNumber is immutable once created
class UpdateUserRequest(CamelModel):
    name: Optional[str] = None
    role: Optional[UserRole] = None


class ResetPasswordResponse(CamelModel):
    new_password: str
    message: Optional[str] = None
