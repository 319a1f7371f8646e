"""Patient directory service."""

from datetime import UTC, datetime

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictException, ForbiddenException, NotFoundException
from app.core.permissions import Caller, Role
from app.models.patients import patients
from app.schemas.patients import PatientCreate, PatientUpdate
from app.services.user_service import UserService

logger = structlog.get_logger()


class PatientService:
    """Service for patient profile operations."""

    async def create_default_profile(self, db: AsyncSession, user: dict) -> dict:
        """Insert the profile of a newly registered patient without committing."""
        result = await db.execute(
            patients.insert()
            .values(
                user_id=user["id"],
                name=user["name"],
                email=user["email"],
                phone=user.get("contact_number") or "",
                birthdate=user.get("date_of_birth"),
                address=user.get("address"),
                blood_type=user.get("blood_group"),
            )
            .returning(patients)
        )
        return dict(result.mappings().one())

    async def create_patient(self, db: AsyncSession, patient_data: PatientCreate) -> dict:
        """Create a patient profile for an existing user with the Patient role."""
        user = await UserService().get_user_by_id(db, patient_data.user_id)
        if not user:
            raise NotFoundException("User not found")
        if user["role"] != Role.PATIENT.value:
            raise ConflictException("User does not have the Patient role")

        values = patient_data.model_dump(exclude_none=True)
        values.setdefault("name", user["name"])
        values.setdefault("phone", user.get("contact_number") or "")
        values.setdefault("birthdate", user.get("date_of_birth"))
        values.setdefault("address", user.get("address"))
        values.setdefault("blood_type", user.get("blood_group"))
        values["email"] = user["email"]

        try:
            result = await db.execute(patients.insert().values(**values).returning(patients))
        except IntegrityError as e:
            await db.rollback()
            raise ConflictException("User already has a patient profile") from e

        patient = dict(result.mappings().one())
        await db.commit()
        logger.info("patient_created", patient_id=patient["id"], user_id=patient["user_id"])
        return patient

    async def get_patient_by_id(self, db: AsyncSession, patient_id: int) -> dict | None:
        """Get patient by ID."""
        result = await db.execute(select(patients).where(patients.c.id == patient_id))
        patient = result.mappings().first()
        return dict(patient) if patient else None

    async def get_patient_by_user_id(self, db: AsyncSession, user_id: int) -> dict | None:
        """Get patient by user ID."""
        result = await db.execute(select(patients).where(patients.c.user_id == user_id))
        patient = result.mappings().first()
        return dict(patient) if patient else None

    async def list_patients(self, db: AsyncSession, search: str | None = None) -> list[dict]:
        """List active patients ordered by name."""
        query = select(patients).where(patients.c.is_active.is_(True))
        if search:
            query = query.where(patients.c.name.ilike(f"%{search}%"))
        result = await db.execute(query.order_by(patients.c.name))
        return [dict(p) for p in result.mappings().all()]

    @staticmethod
    def _check_access(caller: Caller, patient_id: int, *, write: bool) -> None:
        if caller.is_admin:
            return
        if caller.role is Role.PATIENT and caller.profile_id == patient_id:
            return
        # Doctors may read patient records but not edit them
        if caller.role is Role.DOCTOR and not write:
            return
        raise ForbiddenException("Access denied to this patient")

    async def get_patient(self, db: AsyncSession, caller: Caller, patient_id: int) -> dict:
        """Get a patient profile visible to ``caller``."""
        patient = await self.get_patient_by_id(db, patient_id)
        if not patient:
            raise NotFoundException("Patient not found")
        self._check_access(caller, patient_id, write=False)
        return patient

    async def update_patient(
        self,
        db: AsyncSession,
        caller: Caller,
        patient_id: int,
        data: PatientUpdate,
    ) -> dict:
        """Update a patient profile (admin or the patient themself)."""
        patient = await self.get_patient_by_id(db, patient_id)
        if not patient:
            raise NotFoundException("Patient not found")
        self._check_access(caller, patient_id, write=True)

        update_values = data.model_dump(exclude_unset=True, exclude_none=True)
        if not update_values:
            return patient

        update_values["updated_at"] = datetime.now(UTC)
        result = await db.execute(
            update(patients)
            .where(patients.c.id == patient_id)
            .values(**update_values)
            .returning(patients)
        )
        updated = dict(result.mappings().one())
        await db.commit()
        return updated

    async def deactivate_patient(self, db: AsyncSession, patient_id: int) -> None:
        """Soft delete a patient and the linked user account."""
        patient = await self.get_patient_by_id(db, patient_id)
        if not patient:
            raise NotFoundException("Patient not found")

        await db.execute(
            update(patients)
            .where(patients.c.id == patient_id)
            .values(is_active=False, updated_at=datetime.now(UTC))
        )
        await UserService().set_active(db, patient["user_id"], False)
        await db.commit()
        logger.info("patient_deactivated", patient_id=patient_id)
