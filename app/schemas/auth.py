"""Authentication schemas."""

from datetime import date

from pydantic import BaseModel, EmailStr, Field

from app.core.permissions import Role
from app.schemas.users import UserResponse


class RegisterRequest(BaseModel):
    """Self-service account registration."""

    email: EmailStr
    password: str = Field(..., min_length=6, max_length=128)
    confirm_password: str
    name: str = Field(..., min_length=1, max_length=100)
    role: Role = Role.PATIENT
    date_of_birth: date | None = None
    contact_number: str | None = Field(None, max_length=15)
    gender: str | None = Field(None, max_length=10)
    blood_group: str | None = Field(None, max_length=10)
    address: str | None = Field(None, max_length=255)


class LoginRequest(BaseModel):
    """Email and password login."""

    email: EmailStr
    password: str


class Token(BaseModel):
    """JWT token response schema."""

    access_token: str
    refresh_token: str
    token_type: str = "bearer"


class TokenRefresh(BaseModel):
    """Token refresh request schema."""

    refresh_token: str


class LoginResponse(Token):
    """Login response with tokens and user info."""

    user: UserResponse
