"""Patient schemas for request/response validation."""

from datetime import date, datetime

from pydantic import BaseModel, EmailStr, Field


class PatientUpdate(BaseModel):
    """Schema for updating a patient profile."""

    name: str | None = Field(None, min_length=1, max_length=100)
    phone: str | None = Field(None, max_length=15)
    birthdate: date | None = None
    address: str | None = Field(None, max_length=255)
    blood_type: str | None = Field(None, max_length=10)
    medical_history: str | None = Field(None, max_length=500)
    allergies: str | None = Field(None, max_length=500)
    emergency_contact: str | None = Field(None, max_length=50)
    emergency_contact_phone: str | None = Field(None, max_length=100)


class PatientCreate(PatientUpdate):
    """Profile for an existing Patient-role user; unset fields fall back to the account."""

    user_id: int = Field(..., ge=1)


class PatientResponse(BaseModel):
    """Patient response schema."""

    id: int
    user_id: int
    name: str
    email: EmailStr
    phone: str
    birthdate: date | None = None
    address: str | None = None
    blood_type: str | None = None
    medical_history: str | None = None
    allergies: str | None = None
    emergency_contact: str | None = None
    emergency_contact_phone: str | None = None
    is_active: bool
    created_at: datetime
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}
