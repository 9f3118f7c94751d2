"""User and authentication Pydantic schemas."""

from datetime import datetime
from typing import Annotated, Literal, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, StringConstraints, field_validator

from ..core.security import as_utc

RoleName = Literal["admin", "lead-guide", "guide", "user"]

Password = Annotated[str, Field(min_length=8, max_length=128)]
PersonName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]


class UserSummary(BaseModel):
    """Public subset of a user embedded in tours, reviews and bookings."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    email: str
    photo: str
    role: str


class UserOut(UserSummary):
    """User response schema; credentials and the active flag are never serialized."""

    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def _utc(cls, value: datetime) -> datetime:
        return as_utc(value)


class SignupRequest(BaseModel):
    """Request schema for creating an account."""

    name: PersonName = Field(..., description="Display name")
    email: EmailStr = Field(..., description="Login email")
    password: Password = Field(..., description="Plaintext password, at least 8 characters")
    password_confirm: str = Field(..., description="Must repeat the password")


class LoginRequest(BaseModel):
    email: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class ForgotPasswordRequest(BaseModel):
    email: EmailStr


class ResetPasswordRequest(BaseModel):
    password: Password
    password_confirm: str


class UpdateMyPasswordRequest(BaseModel):
    password_current: str = Field(..., min_length=1, description="Current password")
    password: Password = Field(..., description="New password")
    password_confirm: str


class DeleteMeRequest(BaseModel):
    password: str = Field(..., min_length=1, description="Current password")


class UserUpdate(BaseModel):
    """Fields an administrator may change on any account; passwords excluded."""

    name: Optional[PersonName] = None
    email: Optional[EmailStr] = None
    photo: Optional[str] = Field(None, max_length=255)
    role: Optional[RoleName] = None
    active: Optional[bool] = None


class AuthResponse(BaseModel):
    status: str = "success"
    token: str
    data: UserOut
