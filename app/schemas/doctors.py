"""Doctor schemas for request/response validation."""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_serializer

from app.schemas.feedback import FeedbackResponse


class DoctorBase(BaseModel):
    """Base schema for doctor."""

    name: str = Field(..., min_length=1, max_length=100)
    specialty: str = Field(..., min_length=1, max_length=100)
    qualifications: str | None = Field(None, max_length=500)
    license_number: str | None = Field(None, max_length=10)
    consultation_fee: Decimal = Field(default=Decimal("0"), ge=0, decimal_places=2)
    availability: str | None = Field(None, max_length=500)
    bio: str | None = Field(None, max_length=1000)
    profile_image: str | None = Field(None, max_length=255)
    experience_years: int = Field(default=0, ge=0)
    location: str | None = Field(None, max_length=100)


class DoctorCreate(DoctorBase):
    """Schema for creating a doctor profile for an existing user."""

    user_id: int = Field(..., ge=1)


class DoctorUpdate(BaseModel):
    """Schema for updating a doctor."""

    name: str | None = Field(None, min_length=1, max_length=100)
    specialty: str | None = Field(None, min_length=1, max_length=100)
    qualifications: str | None = Field(None, max_length=500)
    license_number: str | None = Field(None, max_length=10)
    consultation_fee: Decimal | None = Field(None, ge=0, decimal_places=2)
    availability: str | None = Field(None, max_length=500)
    bio: str | None = Field(None, max_length=1000)
    profile_image: str | None = Field(None, max_length=255)
    experience_years: int | None = Field(None, ge=0)
    location: str | None = Field(None, max_length=100)


class DoctorResponse(DoctorBase):
    """Doctor response schema."""

    id: int
    user_id: int
    is_active: bool
    created_at: datetime
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}

    @field_serializer("consultation_fee", when_used="json")
    def serialize_decimal(self, value: Decimal) -> float:
        """Serialize Decimal to float for JSON."""
        return float(value)


class DoctorProfileResponse(DoctorResponse):
    """Public profile with approved feedback."""

    average_rating: float = 0.0
    rating_count: int = 0
    feedback: list[FeedbackResponse] = Field(default_factory=list)
