"""Feedback service: submission, moderation and public ratings."""

from typing import Any

import structlog
from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ForbiddenException, NotFoundException, ValidationException
from app.core.permissions import AppointmentAction, Caller, Role
from app.models.feedbacks import feedbacks
from app.schemas.appointments import AppointmentResponse, AppointmentStatus
from app.schemas.feedback import DoctorRatingResponse, FeedbackCreate, FeedbackResponse
from app.services.appointment_service import AppointmentService
from app.services.doctor_service import DoctorService

logger = structlog.get_logger()

MIN_RATING = 1
MAX_RATING = 5


class FeedbackService:
    """Service for patient feedback about doctors."""

    def __init__(self, db: AsyncSession, doctor_service: DoctorService | None = None):
        """Initialize service with database session."""
        self.db = db
        self.doctor_service = doctor_service or DoctorService()
        self.appointment_service = AppointmentService(db, self.doctor_service)

    async def create_feedback(self, caller: Caller, data: FeedbackCreate) -> FeedbackResponse:
        """
        Submit feedback; it stays hidden until approved.

        Raises:
            ForbiddenException: If the caller is not a patient
            ValidationException: If the rating is outside 1-5 or the
                appointment does not match
            NotFoundException: If the doctor or appointment does not exist
        """
        if caller.role is not Role.PATIENT or caller.profile_id is None:
            raise ForbiddenException("Only patients can submit feedback")

        if not MIN_RATING <= data.rating <= MAX_RATING:
            raise ValidationException("Rating must be between 1 and 5.")

        doctor = await self.doctor_service.get_doctor_by_id(self.db, data.doctor_id)
        if not doctor:
            raise NotFoundException("Doctor not found")

        if data.appointment_id is not None:
            appointment = await self.appointment_service.get_authorized_row(
                data.appointment_id, caller, AppointmentAction.VIEW
            )
            if appointment["status"] != AppointmentStatus.COMPLETED.value:
                raise ValidationException("Feedback can only be left for completed appointments.")
            if appointment["doctor_id"] != data.doctor_id:
                raise ValidationException("Appointment was with a different doctor.")

        result = await self.db.execute(
            feedbacks.insert()
            .values(
                patient_id=caller.profile_id,
                doctor_id=data.doctor_id,
                appointment_id=data.appointment_id,
                title=data.title,
                message=data.message,
                rating=data.rating,
                is_approved=False,
            )
            .returning(feedbacks)
        )
        row = dict(result.mappings().one())
        await self.db.commit()

        logger.info("feedback_submitted", feedback_id=row["id"], doctor_id=data.doctor_id)
        return FeedbackResponse.model_validate(row)

    @staticmethod
    def _scope(caller: Caller) -> list[Any]:
        if caller.role is Role.PATIENT:
            return [feedbacks.c.patient_id == caller.profile_id]
        if caller.role is Role.DOCTOR:
            return [feedbacks.c.doctor_id == caller.profile_id]
        return []

    async def _select(self, *conditions: Any) -> list[FeedbackResponse]:
        stmt = (
            select(feedbacks)
            .where(*conditions)
            .order_by(feedbacks.c.created_at.desc(), feedbacks.c.id.desc())
        )
        result = await self.db.execute(stmt)
        return [FeedbackResponse.model_validate(dict(r)) for r in result.mappings().all()]

    async def list_feedback(self, caller: Caller) -> list[FeedbackResponse]:
        """Feedback visible to the caller."""
        return await self._select(*self._scope(caller))

    async def list_pending(self, caller: Caller) -> list[FeedbackResponse]:
        """Unapproved feedback awaiting moderation."""
        if caller.role is Role.PATIENT:
            raise ForbiddenException("Only doctors and admins can moderate feedback")
        return await self._select(feedbacks.c.is_approved.is_(False), *self._scope(caller))

    async def _get_moderatable(self, caller: Caller, feedback_id: int) -> dict:
        result = await self.db.execute(select(feedbacks).where(feedbacks.c.id == feedback_id))
        row = result.mappings().first()
        if not row:
            raise NotFoundException("Feedback not found")

        if caller.is_admin:
            return dict(row)
        if caller.role is Role.DOCTOR and row["doctor_id"] == caller.profile_id:
            return dict(row)
        raise ForbiddenException("Not allowed to moderate this feedback")

    async def approve(self, caller: Caller, feedback_id: int) -> FeedbackResponse:
        """Make feedback publicly visible."""
        await self._get_moderatable(caller, feedback_id)

        result = await self.db.execute(
            update(feedbacks)
            .where(feedbacks.c.id == feedback_id)
            .values(is_approved=True)
            .returning(feedbacks)
        )
        row = dict(result.mappings().one())
        await self.db.commit()

        logger.info("feedback_approved", feedback_id=feedback_id)
        return FeedbackResponse.model_validate(row)

    async def delete(self, caller: Caller, feedback_id: int) -> None:
        """Remove feedback."""
        await self._get_moderatable(caller, feedback_id)
        await self.db.execute(delete(feedbacks).where(feedbacks.c.id == feedback_id))
        await self.db.commit()
        logger.info("feedback_deleted", feedback_id=feedback_id)

    async def average_rating(self, doctor_id: int) -> tuple[float, int]:
        """Average approved rating and number of approved ratings."""
        result = await self.db.execute(
            select(func.avg(feedbacks.c.rating), func.count(feedbacks.c.id)).where(
                feedbacks.c.doctor_id == doctor_id,
                feedbacks.c.is_approved.is_(True),
            )
        )
        average, count = result.one()
        return (round(float(average), 2) if average is not None else 0.0, count)

    async def list_public_for_doctor(self, doctor_id: int) -> DoctorRatingResponse:
        """Approved feedback of an active doctor with the average rating."""
        await self.doctor_service.get_active_doctor(self.db, doctor_id)

        items = await self._select(
            feedbacks.c.doctor_id == doctor_id,
            feedbacks.c.is_approved.is_(True),
        )
        average, count = await self.average_rating(doctor_id)
        return DoctorRatingResponse(
            doctor_id=doctor_id,
            average_rating=average,
            rating_count=count,
            items=items,
        )

    async def eligible_appointments(self, caller: Caller) -> list[AppointmentResponse]:
        """Completed appointments the calling patient can review."""
        if caller.role is not Role.PATIENT or caller.profile_id is None:
            raise ForbiddenException("Only patients can submit feedback")
        return await self.appointment_service.list_completed_for_patient(caller.profile_id)
