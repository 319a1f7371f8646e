"""User schemas for request/response validation."""

from datetime import date, datetime

from pydantic import BaseModel, EmailStr

from app.core.permissions import Role


class UserResponse(BaseModel):
    """User schema for API responses; never carries the password hash."""

    id: int
    email: EmailStr
    role: Role
    name: str
    date_of_birth: date | None = None
    contact_number: str | None = None
    gender: str | None = None
    blood_group: str | None = None
    address: str | None = None
    is_active: bool
    created_at: datetime
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class CurrentUserResponse(UserResponse):
    """Authenticated user plus the id of the linked profile."""

    profile_id: int | None = None
