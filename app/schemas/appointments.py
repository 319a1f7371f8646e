"""Appointment schemas for request/response validation."""

from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field, field_serializer, field_validator

from app.core.slots import format_slot, is_canonical_slot


class AppointmentStatus(str, Enum):
    """Appointment status enumeration."""

    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"
    RESCHEDULED = "Rescheduled"


class PaymentStatus(str, Enum):
    """Payment state of an appointment, independent of its status."""

    PENDING = "Pending"
    PAID = "Paid"
    CANCELLED = "Cancelled"


class AppointmentSlotBase(BaseModel):
    """Doctor, day and slot of an appointment request."""

    doctor_id: int = Field(..., ge=1)
    appointment_date: date
    appointment_time: time
    notes: str | None = Field(None, max_length=1000)

    @field_validator("appointment_time")
    @classmethod
    def validate_slot(cls, v: time) -> time:
        """Only canonical slot start times can be booked."""
        if not is_canonical_slot(v):
            raise ValueError("Appointment time must be one of the bookable slots")
        return v.replace(tzinfo=None)


class AppointmentBook(AppointmentSlotBase):
    """Self-service booking by a patient; the patient comes from the token."""


class AppointmentCreate(AppointmentSlotBase):
    """Manual creation by a doctor or admin."""

    doctor_id: int | None = Field(None, ge=1)  # type: ignore[assignment]
    patient_id: int = Field(..., ge=1)


class AppointmentReschedule(AppointmentSlotBase):
    """Move an appointment to another slot; only admins may change the doctor."""

    doctor_id: int | None = Field(None, ge=1)  # type: ignore[assignment]


class AppointmentStatusUpdate(BaseModel):
    """Schema for updating appointment status."""

    status: AppointmentStatus
    notes: str | None = Field(None, max_length=1000)


class AppointmentCancel(BaseModel):
    """Schema for cancelling an appointment."""

    reason: str | None = Field(None, max_length=900)


class AppointmentClinicalUpdate(BaseModel):
    """Clinical fields written by the treating doctor or an admin."""

    notes: str | None = Field(None, max_length=1000)
    prescription: str | None = Field(None, max_length=1000)
    diagnosis: str | None = Field(None, max_length=500)


class AppointmentResponse(BaseModel):
    """Schema for appointment response."""

    id: int
    doctor_id: int
    patient_id: int
    appointment_date: date
    appointment_time: time
    status: AppointmentStatus
    notes: str | None = None
    prescription: str | None = None
    diagnosis: str | None = None
    fee: Decimal | None = None
    payment_status: PaymentStatus
    created_at: datetime
    updated_at: datetime | None = None
    cancelled_at: datetime | None = None

    model_config = {"from_attributes": True}

    @field_serializer("fee", when_used="json")
    def serialize_fee(self, value: Decimal | None) -> float | None:
        """Serialize Decimal to float for JSON."""
        return float(value) if value is not None else None

    @field_serializer("appointment_time", when_used="json")
    def serialize_time(self, value: time) -> str:
        """Serialize slot time as HH:MM."""
        return format_slot(value)


class AppointmentListResponse(BaseModel):
    """Schema for paginated appointment list response."""

    total: int
    page: int
    page_size: int
    items: list[AppointmentResponse]


class AppointmentFilters(BaseModel):
    """Schema for appointment filtering."""

    status: AppointmentStatus | None = None
    payment_status: PaymentStatus | None = None
    doctor_id: int | None = None
    patient_id: int | None = None
    from_date: date | None = None
    to_date: date | None = None
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=100)


class AvailableSlotsResponse(BaseModel):
    """Free slots of a doctor on one day."""

    doctor_id: int
    appointment_date: date
    slots: list[str]
