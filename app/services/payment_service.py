"""Payment recording service."""

from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    ConflictException,
    ForbiddenException,
    NotFoundException,
    ValidationException,
)
from app.core.permissions import AppointmentAction, Caller, Role
from app.models.appointments import appointments
from app.models.payments import payments
from app.schemas.appointments import AppointmentStatus, PaymentStatus
from app.schemas.payments import PaymentCreate, PaymentRecordStatus, PaymentResponse
from app.services.appointment_service import AppointmentService

logger = structlog.get_logger()


def make_transaction_id(appointment_id: int, at: datetime) -> str:
    """Transaction reference: ``TXN`` + timestamp + appointment id."""
    return f"TXN{at.strftime('%Y%m%d%H%M%S')}{appointment_id}"


class PaymentService:
    """Service recording payments against appointments."""

    def __init__(self, db: AsyncSession):
        """Initialize service with database session."""
        self.db = db
        self.appointment_service = AppointmentService(db)

    async def create_payment(self, caller: Caller, data: PaymentCreate) -> PaymentResponse:
        """
        Pay an appointment and mark it Paid in the same transaction.

        Args:
            caller: Paying patient
            data: Payment details

        Returns:
            The completed payment

        Raises:
            ForbiddenException: If the caller is not the appointment's patient
            NotFoundException: If the appointment does not exist
            ValidationException: If the amount is not positive
            ConflictException: If the appointment is already paid or cancelled
        """
        if caller.role is not Role.PATIENT:
            raise ForbiddenException("Only patients can make payments")

        appointment = await self.appointment_service.get_authorized_row(
            data.appointment_id, caller, AppointmentAction.PAY
        )

        if appointment["payment_status"] == PaymentStatus.PAID.value:
            raise ConflictException("Appointment is already paid")
        if appointment["status"] == AppointmentStatus.CANCELLED.value:
            raise ConflictException("Cancelled appointments cannot be paid")

        amount = data.amount if data.amount is not None else appointment["fee"]
        if amount is None or Decimal(amount) <= 0:
            raise ValidationException("Payment amount must be greater than zero.")

        now = datetime.now(UTC)
        result = await self.db.execute(
            payments.insert()
            .values(
                appointment_id=appointment["id"],
                patient_id=appointment["patient_id"],
                amount=amount,
                payment_method=data.payment_method.value,
                payment_gateway=data.payment_gateway,
                description=data.description,
                status=PaymentRecordStatus.COMPLETED.value,
                transaction_id=make_transaction_id(appointment["id"], now),
                created_at=now,
                completed_at=now,
            )
            .returning(payments)
        )
        payment = dict(result.mappings().one())

        await self.appointment_service.mark_paid(appointment["id"])
        await self.db.commit()

        logger.info(
            "payment_completed",
            payment_id=payment["id"],
            appointment_id=appointment["id"],
            method=data.payment_method.value,
        )
        return PaymentResponse.model_validate(payment)

    def _scope(self, caller: Caller) -> list[Any]:
        if caller.role is Role.PATIENT:
            return [payments.c.patient_id == caller.profile_id]
        if caller.role is Role.DOCTOR:
            doctor_appointments = select(appointments.c.id).where(
                appointments.c.doctor_id == caller.profile_id
            )
            return [payments.c.appointment_id.in_(doctor_appointments)]
        return []

    async def list_payments(self, caller: Caller) -> list[PaymentResponse]:
        """Payments visible to the caller, newest first."""
        stmt = (
            select(payments)
            .where(*self._scope(caller))
            .order_by(payments.c.created_at.desc(), payments.c.id.desc())
        )
        result = await self.db.execute(stmt)
        return [PaymentResponse.model_validate(dict(r)) for r in result.mappings().all()]

    async def get_payment(self, caller: Caller, payment_id: int) -> PaymentResponse:
        """
        Get a payment receipt.

        Raises:
            NotFoundException: If the payment does not exist
            ForbiddenException: If the receipt belongs to someone else
        """
        result = await self.db.execute(select(payments).where(payments.c.id == payment_id))
        payment = result.mappings().first()
        if not payment:
            raise NotFoundException("Payment not found")

        visible = await self.db.execute(
            select(payments.c.id).where(payments.c.id == payment_id, *self._scope(caller))
        )
        if visible.first() is None:
            raise ForbiddenException("Unauthorized access to payment receipt.")

        return PaymentResponse.model_validate(dict(payment))
