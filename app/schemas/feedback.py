"""Feedback schemas for request/response validation."""

from datetime import datetime

from pydantic import BaseModel, Field


class FeedbackCreate(BaseModel):
    """Schema for submitting feedback about a doctor."""

    doctor_id: int = Field(..., ge=1)
    appointment_id: int | None = Field(None, ge=1)
    title: str | None = Field(None, max_length=100)
    message: str = Field(..., min_length=1, max_length=1000)
    # Range is enforced by the service so the error uses the domain taxonomy
    rating: int


class FeedbackResponse(BaseModel):
    """Feedback response schema."""

    id: int
    patient_id: int
    doctor_id: int
    appointment_id: int | None = None
    title: str | None = None
    message: str
    rating: int
    is_approved: bool
    created_at: datetime

    model_config = {"from_attributes": True}


class DoctorRatingResponse(BaseModel):
    """Approved feedback and average rating of a doctor."""

    doctor_id: int
    average_rating: float
    rating_count: int
    items: list[FeedbackResponse]
