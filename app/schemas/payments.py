"""Payment schemas for request/response validation."""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field, field_serializer


class PaymentMethod(str, Enum):
    """Accepted payment methods."""

    CASH = "Cash"
    CARD = "Card"
    ONLINE = "Online"
    BANK_TRANSFER = "Bank Transfer"


class PaymentRecordStatus(str, Enum):
    """Status of a payment record."""

    PENDING = "Pending"
    COMPLETED = "Completed"
    FAILED = "Failed"
    REFUNDED = "Refunded"


class PaymentCreate(BaseModel):
    """Schema for paying an appointment.

    ``amount`` defaults to the fee snapshot stored on the appointment.
    """

    appointment_id: int = Field(..., ge=1)
    amount: Decimal | None = Field(None, decimal_places=2)
    payment_method: PaymentMethod = PaymentMethod.CARD
    payment_gateway: str | None = Field(None, max_length=100)
    description: str | None = Field(None, max_length=500)


class PaymentResponse(BaseModel):
    """Payment receipt."""

    id: int
    appointment_id: int
    patient_id: int
    amount: Decimal
    payment_method: PaymentMethod
    status: PaymentRecordStatus
    transaction_id: str | None = None
    payment_gateway: str | None = None
    description: str | None = None
    created_at: datetime
    completed_at: datetime | None = None

    model_config = {"from_attributes": True}

    @field_serializer("amount", when_used="json")
    def serialize_amount(self, value: Decimal) -> float:
        """Serialize Decimal to float for JSON."""
        return float(value)
