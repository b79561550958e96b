"""Request/response schemas for auth endpoints."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from app.models.user import NAME_MAX_LEN, NAME_MIN_LEN

EMAIL_MAX_LEN = 255
PASSWORD_MIN_LEN = 6
PASSWORD_MAX_LEN = 128


class SignUpRequest(BaseModel):
    """Fields for creating an account."""

    name: str = Field(..., min_length=NAME_MIN_LEN, max_length=NAME_MAX_LEN, description="Display name")
    email: EmailStr = Field(..., description="Email address (login key)")
    password: str = Field(
        ..., min_length=PASSWORD_MIN_LEN, max_length=PASSWORD_MAX_LEN, description="Password"
    )
    role: Literal["admin", "user"] = Field(default="user", description="Account role")

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v: object) -> object:
        return v.strip() if isinstance(v, str) else v

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v: object) -> object:
        if not isinstance(v, str):
            return v
        v = v.strip().lower()
        if len(v) > EMAIL_MAX_LEN:
            raise ValueError(f"email must be at most {EMAIL_MAX_LEN} characters")
        return v


class SignInRequest(BaseModel):
    """Credentials for sign-in."""

    email: EmailStr = Field(..., description="Email address")
    password: str = Field(..., min_length=1, max_length=PASSWORD_MAX_LEN, description="Password")

    @field_validator("email", mode="before")
    @classmethod
    def normalize_email(cls, v: object) -> object:
        return v.strip().lower() if isinstance(v, str) else v


class UserResponse(BaseModel):
    """Public view of a user (no password)."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    email: str
    role: str
    created_at: datetime


class AuthResponse(BaseModel):
    """Response for sign-up and sign-in; the token itself travels in the cookie."""

    message: str
    user: UserResponse


class MessageResponse(BaseModel):
    message: str
