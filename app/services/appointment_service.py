"""Appointment lifecycle: slots, booking, status transitions and cancellation."""

from datetime import UTC, date, datetime, time
from typing import Any

import structlog
from sqlalchemy import delete, false, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import (
    BadRequestException,
    ConflictException,
    ForbiddenException,
    NotFoundException,
)
from app.core.permissions import AppointmentAction, Caller, Role, authorize
from app.core.slots import format_slot, generate_day_slots
from app.models.appointments import appointments
from app.schemas.appointments import (
    AppointmentBook,
    AppointmentClinicalUpdate,
    AppointmentCreate,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentReschedule,
    AppointmentResponse,
    AppointmentStatus,
    PaymentStatus,
)
from app.services.doctor_service import DoctorService
from app.services.patient_service import PatientService

logger = structlog.get_logger()

SLOT_TAKEN_MESSAGE = "This time slot is already booked. Please choose another time."

# Completed and Cancelled are terminal
ALLOWED_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.PENDING: frozenset(
        {
            AppointmentStatus.CONFIRMED,
            AppointmentStatus.COMPLETED,
            AppointmentStatus.CANCELLED,
            AppointmentStatus.RESCHEDULED,
        }
    ),
    AppointmentStatus.CONFIRMED: frozenset(
        {
            AppointmentStatus.COMPLETED,
            AppointmentStatus.CANCELLED,
            AppointmentStatus.RESCHEDULED,
        }
    ),
    AppointmentStatus.RESCHEDULED: frozenset(
        {
            AppointmentStatus.CONFIRMED,
            AppointmentStatus.COMPLETED,
            AppointmentStatus.CANCELLED,
        }
    ),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.CANCELLED: frozenset(),
}


def can_transition(current: AppointmentStatus, target: AppointmentStatus) -> bool:
    """Whether ``current`` may move to ``target``; re-setting the same status is allowed."""
    return current == target or target in ALLOWED_TRANSITIONS[current]


def cancellation_note(reason: str | None) -> str:
    """Notes text written on cancellation; the reason is stripped and dropped when blank."""
    reason = (reason or "").strip()
    return f"Cancelled: {reason}" if reason else "Cancelled"


class AppointmentService:
    """Service owning the state of appointment records."""

    def __init__(self, db: AsyncSession, doctor_service: DoctorService | None = None):
        """Initialize service with database session."""
        self.db = db
        self.doctor_service = doctor_service or DoctorService()
        self.patient_service = PatientService()

    async def _get_row(self, appointment_id: int) -> dict[str, Any]:
        result = await self.db.execute(
            select(appointments).where(appointments.c.id == appointment_id)
        )
        row = result.mappings().first()
        if not row:
            raise NotFoundException("Appointment not found")
        return dict(row)

    async def _update_row(self, appointment_id: int, values: dict[str, Any]) -> dict[str, Any]:
        result = await self.db.execute(
            update(appointments)
            .where(appointments.c.id == appointment_id)
            .values(**values)
            .returning(appointments)
        )
        row = dict(result.mappings().one())
        await self.db.commit()
        return row

    async def is_slot_taken(
        self,
        doctor_id: int,
        appointment_date: date,
        appointment_time: time,
        exclude_id: int | None = None,
    ) -> bool:
        """Whether a non-cancelled appointment other than ``exclude_id`` holds the slot."""
        conditions = [
            appointments.c.doctor_id == doctor_id,
            appointments.c.appointment_date == appointment_date,
            appointments.c.appointment_time == appointment_time,
            appointments.c.status != AppointmentStatus.CANCELLED.value,
        ]
        if exclude_id is not None:
            conditions.append(appointments.c.id != exclude_id)

        stmt = select(appointments.c.id).where(*conditions).limit(1)
        result = await self.db.execute(stmt)
        return result.first() is not None

    async def list_available_slots(self, doctor_id: int, day: date) -> list[str]:
        """
        List free slots of a doctor on one day.

        Args:
            doctor_id: Doctor ID
            day: Calendar day

        Returns:
            Ascending ``HH:MM`` slot start times not held by a
            non-cancelled appointment

        Raises:
            NotFoundException: If the doctor does not exist
        """
        doctor = await self.doctor_service.get_doctor_by_id(self.db, doctor_id)
        if not doctor:
            raise NotFoundException("Doctor not found")

        stmt = select(appointments.c.appointment_time).where(
            appointments.c.doctor_id == doctor_id,
            appointments.c.appointment_date == day,
            appointments.c.status != AppointmentStatus.CANCELLED.value,
        )
        result = await self.db.execute(stmt)
        booked = {format_slot(t) for t in result.scalars().all()}

        return [label for label in map(format_slot, generate_day_slots()) if label not in booked]

    async def book_appointment(
        self,
        doctor_id: int,
        patient_id: int,
        appointment_date: date,
        appointment_time: time,
        notes: str | None = None,
    ) -> AppointmentResponse:
        """
        Book a slot for a patient.

        The fee is copied from the doctor's current consultation fee so later
        fee changes do not touch existing appointments.

        Raises:
            NotFoundException: If the doctor or patient does not exist
            ConflictException: If the slot is already held
        """
        doctor = await self.doctor_service.get_doctor_by_id(self.db, doctor_id)
        if not doctor or not doctor["is_active"]:
            raise NotFoundException("Doctor not found")

        patient = await self.patient_service.get_patient_by_id(self.db, patient_id)
        if not patient:
            raise NotFoundException("Patient not found")

        if await self.is_slot_taken(doctor_id, appointment_date, appointment_time):
            raise ConflictException(SLOT_TAKEN_MESSAGE)

        fee = await self.doctor_service.get_consultation_fee(self.db, doctor_id)

        stmt = (
            appointments.insert()
            .values(
                doctor_id=doctor_id,
                patient_id=patient_id,
                appointment_date=appointment_date,
                appointment_time=appointment_time,
                notes=notes,
                status=AppointmentStatus.PENDING.value,
                payment_status=PaymentStatus.PENDING.value,
                fee=fee,
                created_at=datetime.now(UTC),
            )
            .returning(appointments)
        )

        # The partial unique index catches a booking that raced past the check
        try:
            result = await self.db.execute(stmt)
            row = result.mappings().one()
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            logger.info(
                "appointment_slot_race_lost",
                doctor_id=doctor_id,
                appointment_date=str(appointment_date),
                appointment_time=format_slot(appointment_time),
            )
            raise ConflictException(SLOT_TAKEN_MESSAGE) from e

        logger.info(
            "appointment_booked",
            appointment_id=row["id"],
            doctor_id=doctor_id,
            patient_id=patient_id,
        )
        return AppointmentResponse.model_validate(dict(row))

    async def book_for_patient(self, caller: Caller, data: AppointmentBook) -> AppointmentResponse:
        """Self-service booking; the patient is always the caller's own profile."""
        if caller.role is not Role.PATIENT:
            raise ForbiddenException("Only patients can book appointments")
        if caller.profile_id is None:
            raise NotFoundException("Patient not found")

        return await self.book_appointment(
            doctor_id=data.doctor_id,
            patient_id=caller.profile_id,
            appointment_date=data.appointment_date,
            appointment_time=data.appointment_time,
            notes=data.notes,
        )

    async def create_appointment(self, caller: Caller, data: AppointmentCreate) -> AppointmentResponse:
        """Manual creation by an admin (any doctor) or a doctor (own schedule)."""
        if caller.role is Role.PATIENT:
            raise ForbiddenException("Patients must use self-service booking")

        doctor_id = data.doctor_id
        if caller.role is Role.DOCTOR:
            if caller.profile_id is None:
                raise NotFoundException("Doctor not found")
            if doctor_id is None:
                doctor_id = caller.profile_id
            elif doctor_id != caller.profile_id:
                raise ForbiddenException("Doctors can only create appointments on their own schedule")
        elif doctor_id is None:
            raise NotFoundException("Doctor not found")

        return await self.book_appointment(
            doctor_id=doctor_id,
            patient_id=data.patient_id,
            appointment_date=data.appointment_date,
            appointment_time=data.appointment_time,
            notes=data.notes,
        )

    async def get_appointment(self, appointment_id: int, caller: Caller) -> AppointmentResponse:
        """
        Get appointment by ID.

        Raises:
            NotFoundException: If appointment not found
            ForbiddenException: If caller doesn't have access
        """
        row = await self._get_row(appointment_id)
        authorize(caller, row, AppointmentAction.VIEW)
        return AppointmentResponse.model_validate(row)

    async def list_appointments(
        self,
        caller: Caller,
        filters: AppointmentFilters,
    ) -> AppointmentListResponse:
        """
        List appointments visible to the caller with filtering and pagination.

        Patients see their own appointments, doctors those on their schedule
        and admins everything.
        """
        if filters.from_date and filters.to_date and filters.from_date > filters.to_date:
            raise BadRequestException("from_date must not be after to_date")

        conditions: list[Any] = []

        if caller.role is Role.PATIENT:
            conditions.append(
                appointments.c.patient_id == caller.profile_id
                if caller.profile_id is not None
                else false()
            )
        elif caller.role is Role.DOCTOR:
            conditions.append(
                appointments.c.doctor_id == caller.profile_id
                if caller.profile_id is not None
                else false()
            )

        if filters.status:
            conditions.append(appointments.c.status == filters.status.value)

        if filters.payment_status:
            conditions.append(appointments.c.payment_status == filters.payment_status.value)

        if filters.doctor_id:
            conditions.append(appointments.c.doctor_id == filters.doctor_id)

        if filters.patient_id:
            conditions.append(appointments.c.patient_id == filters.patient_id)

        if filters.from_date:
            conditions.append(appointments.c.appointment_date >= filters.from_date)

        if filters.to_date:
            conditions.append(appointments.c.appointment_date <= filters.to_date)

        count_stmt = select(func.count()).select_from(appointments).where(*conditions)
        total = (await self.db.execute(count_stmt)).scalar() or 0

        offset = (filters.page - 1) * filters.page_size
        stmt = (
            select(appointments)
            .where(*conditions)
            .order_by(
                appointments.c.appointment_date.desc(),
                appointments.c.appointment_time.desc(),
            )
            .limit(filters.page_size)
            .offset(offset)
        )
        result = await self.db.execute(stmt)

        return AppointmentListResponse(
            total=total,
            page=filters.page,
            page_size=filters.page_size,
            items=[AppointmentResponse.model_validate(dict(r)) for r in result.mappings().all()],
        )

    async def update_status(
        self,
        appointment_id: int,
        caller: Caller,
        new_status: AppointmentStatus,
        notes: str | None = None,
    ) -> AppointmentResponse:
        """
        Move an appointment to a new status.

        Ownership is checked before the transition rules, so a doctor who
        does not own the appointment is refused whatever the target status.

        Raises:
            NotFoundException: If appointment not found
            ForbiddenException: If caller may not update it
            ConflictException: If the transition is not allowed
        """
        row = await self._get_row(appointment_id)
        authorize(caller, row, AppointmentAction.UPDATE_STATUS)

        current = AppointmentStatus(row["status"])
        if not can_transition(current, new_status):
            raise ConflictException(
                f"Cannot change status from {current.value} to {new_status.value}"
            )

        now = datetime.now(UTC)
        values: dict[str, Any] = {"status": new_status.value, "updated_at": now}
        if notes:
            values["notes"] = notes
        if new_status is AppointmentStatus.CANCELLED and current is not AppointmentStatus.CANCELLED:
            values["cancelled_at"] = now

        updated = await self._update_row(appointment_id, values)

        logger.info(
            "appointment_status_updated",
            appointment_id=appointment_id,
            old_status=current.value,
            new_status=new_status.value,
            role=caller.role.value,
        )
        return AppointmentResponse.model_validate(updated)

    async def cancel(
        self,
        appointment_id: int,
        caller: Caller,
        reason: str | None = None,
    ) -> AppointmentResponse:
        """
        Cancel an appointment, releasing its slot.

        Notes are replaced with ``"Cancelled: <reason>"`` or ``"Cancelled"``.
        Cancelling an already cancelled appointment succeeds again.

        Raises:
            NotFoundException: If appointment not found
            ForbiddenException: If caller does not own the appointment
            ConflictException: If the appointment is already completed
        """
        row = await self._get_row(appointment_id)
        authorize(caller, row, AppointmentAction.CANCEL)

        if row["status"] == AppointmentStatus.COMPLETED.value:
            raise ConflictException("Completed appointments cannot be cancelled")

        previous_notes = row["notes"]
        if previous_notes and not previous_notes.startswith("Cancelled"):
            logger.warning(
                "appointment_notes_overwritten",
                appointment_id=appointment_id,
                previous_length=len(previous_notes),
            )

        now = datetime.now(UTC)
        values: dict[str, Any] = {
            "status": AppointmentStatus.CANCELLED.value,
            "notes": cancellation_note(reason),
            "updated_at": now,
        }
        if row["cancelled_at"] is None:
            values["cancelled_at"] = now

        updated = await self._update_row(appointment_id, values)

        logger.info(
            "appointment_cancelled",
            appointment_id=appointment_id,
            role=caller.role.value,
        )
        return AppointmentResponse.model_validate(updated)

    async def reschedule_appointment(
        self,
        appointment_id: int,
        caller: Caller,
        data: AppointmentReschedule,
    ) -> AppointmentResponse:
        """
        Move an appointment to another slot.

        The treating doctor or an admin may move it within the doctor's
        schedule; only an admin may hand it to another doctor. The status
        becomes Rescheduled and an unpaid appointment takes the new doctor's
        current fee.

        Raises:
            NotFoundException: If the appointment or target doctor is not found
            ForbiddenException: If caller may not update it
            ConflictException: If it is completed or cancelled, or the slot is held
        """
        row = await self._get_row(appointment_id)
        authorize(caller, row, AppointmentAction.UPDATE_STATUS)

        current = AppointmentStatus(row["status"])
        if not can_transition(current, AppointmentStatus.RESCHEDULED):
            raise ConflictException(f"{current.value} appointments cannot be rescheduled")

        doctor_id = data.doctor_id or row["doctor_id"]
        if doctor_id != row["doctor_id"]:
            if not caller.is_admin:
                raise ForbiddenException("Only admins can move an appointment to another doctor")
            doctor = await self.doctor_service.get_doctor_by_id(self.db, doctor_id)
            if not doctor or not doctor["is_active"]:
                raise NotFoundException("Doctor not found")

        if await self.is_slot_taken(
            doctor_id, data.appointment_date, data.appointment_time, exclude_id=appointment_id
        ):
            raise ConflictException(SLOT_TAKEN_MESSAGE)

        values: dict[str, Any] = {
            "doctor_id": doctor_id,
            "appointment_date": data.appointment_date,
            "appointment_time": data.appointment_time,
            "status": AppointmentStatus.RESCHEDULED.value,
            "updated_at": datetime.now(UTC),
        }
        if data.notes:
            values["notes"] = data.notes
        if doctor_id != row["doctor_id"] and row["payment_status"] != PaymentStatus.PAID.value:
            values["fee"] = await self.doctor_service.get_consultation_fee(self.db, doctor_id)

        try:
            updated = await self._update_row(appointment_id, values)
        except IntegrityError as e:
            await self.db.rollback()
            logger.info(
                "appointment_slot_race_lost",
                doctor_id=doctor_id,
                appointment_date=str(data.appointment_date),
                appointment_time=format_slot(data.appointment_time),
            )
            raise ConflictException(SLOT_TAKEN_MESSAGE) from e

        logger.info(
            "appointment_rescheduled",
            appointment_id=appointment_id,
            doctor_id=doctor_id,
            old_status=current.value,
            role=caller.role.value,
        )
        return AppointmentResponse.model_validate(updated)

    async def record_clinical_notes(
        self,
        appointment_id: int,
        caller: Caller,
        data: AppointmentClinicalUpdate,
    ) -> AppointmentResponse:
        """Write notes, prescription or diagnosis (treating doctor or admin)."""
        row = await self._get_row(appointment_id)
        authorize(caller, row, AppointmentAction.RECORD_CLINICAL)

        values = data.model_dump(exclude_unset=True, exclude_none=True)
        if not values:
            return AppointmentResponse.model_validate(row)

        values["updated_at"] = datetime.now(UTC)
        updated = await self._update_row(appointment_id, values)
        return AppointmentResponse.model_validate(updated)

    async def delete_appointment(self, appointment_id: int, caller: Caller) -> None:
        """
        Permanently delete an appointment (admin only).

        Raises:
            NotFoundException: If appointment not found
            ForbiddenException: If caller is not an admin
            ConflictException: If payments still reference it
        """
        row = await self._get_row(appointment_id)
        authorize(caller, row, AppointmentAction.DELETE)

        try:
            await self.db.execute(delete(appointments).where(appointments.c.id == appointment_id))
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise ConflictException("Appointment has payments and cannot be deleted") from e

        logger.info("appointment_deleted", appointment_id=appointment_id)

    async def mark_paid(self, appointment_id: int) -> None:
        """
        Set ``payment_status`` to Paid.

        Runs inside the caller's transaction; the payment service commits.
        """
        result = await self.db.execute(
            update(appointments)
            .where(appointments.c.id == appointment_id)
            .values(payment_status=PaymentStatus.PAID.value, updated_at=datetime.now(UTC))
        )
        if result.rowcount == 0:
            raise NotFoundException("Appointment not found")

    async def get_authorized_row(
        self, appointment_id: int, caller: Caller, action: AppointmentAction
    ) -> dict[str, Any]:
        """Load a raw appointment row after checking ``action`` for ``caller``."""
        row = await self._get_row(appointment_id)
        authorize(caller, row, action)
        return row

    async def list_completed_for_patient(self, patient_id: int) -> list[AppointmentResponse]:
        """Completed appointments of a patient, newest first."""
        stmt = (
            select(appointments)
            .where(
                appointments.c.patient_id == patient_id,
                appointments.c.status == AppointmentStatus.COMPLETED.value,
            )
            .order_by(appointments.c.appointment_date.desc())
        )
        result = await self.db.execute(stmt)
        return [AppointmentResponse.model_validate(dict(r)) for r in result.mappings().all()]
