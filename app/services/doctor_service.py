"""Doctor directory service."""

from datetime import UTC, datetime
from decimal import Decimal

import structlog
from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictException, ForbiddenException, NotFoundException
from app.core.permissions import Caller, Role
from app.core.redis_client import CacheManager
from app.models.doctors import doctors
from app.models.feedbacks import feedbacks
from app.schemas.doctors import DoctorCreate, DoctorUpdate
from app.services.user_service import UserService

logger = structlog.get_logger()

DEFAULT_SPECIALTY = "General Medicine"


class DoctorService:
    """Service for doctor operations."""

    # Cache TTL in seconds
    DOCTOR_CACHE_TTL = 900  # 15 minutes for individual doctors
    DOCTOR_LIST_CACHE_TTL = 300  # 5 minutes for lists

    def __init__(self, cache_manager: CacheManager | None = None):
        """Initialize service with optional cache manager."""
        self.cache = cache_manager

    @staticmethod
    def _get_doctor_cache_key(doctor_id: int) -> str:
        """Generate cache key for doctor."""
        return f"doctor:{doctor_id}"

    @staticmethod
    def _get_list_cache_key(specialty: str | None, search: str | None) -> str:
        """Generate cache key for a filtered doctor list."""
        return f"doctor:list:{(specialty or '').lower()}:{(search or '').lower()}"

    def invalidate_cache(self, doctor_id: int | None = None) -> None:
        """Drop a cached doctor (when given) and every cached list."""
        if not self.cache:
            return
        if doctor_id is not None:
            self.cache.delete(self._get_doctor_cache_key(doctor_id))
        self.cache.delete_pattern("doctor:list:*")

    async def create_doctor(self, db: AsyncSession, doctor_data: DoctorCreate) -> dict:
        """Create a doctor profile for an existing user with the Doctor role."""
        user = await UserService().get_user_by_id(db, doctor_data.user_id)
        if not user:
            raise NotFoundException("User not found")
        if user["role"] != Role.DOCTOR.value:
            raise ConflictException("User does not have the Doctor role")

        query = doctors.insert().values(**doctor_data.model_dump()).returning(doctors)

        try:
            result = await db.execute(query)
        except IntegrityError as e:
            await db.rollback()
            raise ConflictException("User already has a doctor profile") from e

        doctor = result.mappings().first()
        if not doctor:
            raise ValueError("Failed to create doctor")

        await db.commit()
        self.invalidate_cache()
        logger.info("doctor_created", doctor_id=doctor["id"], user_id=doctor["user_id"])
        return dict(doctor)

    async def create_default_profile(self, db: AsyncSession, user: dict) -> dict:
        """Insert the starter profile of a newly registered doctor without committing."""
        result = await db.execute(
            doctors.insert()
            .values(
                user_id=user["id"],
                name=user["name"],
                specialty=DEFAULT_SPECIALTY,
                consultation_fee=Decimal("0"),
                experience_years=0,
            )
            .returning(doctors)
        )
        return dict(result.mappings().one())

    async def get_doctor_by_id(self, db: AsyncSession, doctor_id: int) -> dict | None:
        """Get doctor by ID with caching."""
        # Try cache first
        if self.cache:
            cached = self.cache.get_json(self._get_doctor_cache_key(doctor_id))
            if cached:
                return cached

        query = select(doctors).where(doctors.c.id == doctor_id)
        result = await db.execute(query)
        doctor = result.mappings().first()

        if not doctor:
            return None

        doctor_dict = dict(doctor)

        if self.cache:
            self.cache.set_json(
                self._get_doctor_cache_key(doctor_id), doctor_dict, ttl=self.DOCTOR_CACHE_TTL
            )

        return doctor_dict

    async def get_doctor_by_user_id(self, db: AsyncSession, user_id: int) -> dict | None:
        """Get doctor by user ID."""
        query = select(doctors).where(doctors.c.user_id == user_id)
        result = await db.execute(query)
        doctor = result.mappings().first()

        return dict(doctor) if doctor else None

    async def get_consultation_fee(self, db: AsyncSession, doctor_id: int) -> Decimal | None:
        """Current fee of a doctor, read from the database rather than the cache."""
        result = await db.execute(
            select(doctors.c.consultation_fee).where(doctors.c.id == doctor_id)
        )
        return result.scalar_one_or_none()

    async def list_doctors(
        self,
        db: AsyncSession,
        specialty: str | None = None,
        search: str | None = None,
    ) -> list[dict]:
        """List active doctors ordered by name, cached per filter combination."""
        if self.cache:
            cached = self.cache.get_json(self._get_list_cache_key(specialty, search))
            if cached is not None:
                return cached

        conditions = [doctors.c.is_active.is_(True)]

        if specialty:
            conditions.append(doctors.c.specialty.ilike(f"%{specialty}%"))

        if search:
            pattern = f"%{search}%"
            conditions.append(
                or_(
                    doctors.c.name.ilike(pattern),
                    doctors.c.specialty.ilike(pattern),
                    doctors.c.qualifications.ilike(pattern),
                )
            )

        query = select(doctors).where(*conditions).order_by(doctors.c.name)
        result = await db.execute(query)
        doctors_list = [dict(d) for d in result.mappings().all()]

        if self.cache:
            self.cache.set_json(
                self._get_list_cache_key(specialty, search),
                doctors_list,
                ttl=self.DOCTOR_LIST_CACHE_TTL,
            )

        return doctors_list

    async def list_specialties(self, db: AsyncSession) -> list[str]:
        """Distinct specialties among active doctors."""
        query = (
            select(doctors.c.specialty)
            .where(doctors.c.is_active.is_(True))
            .distinct()
            .order_by(doctors.c.specialty)
        )
        result = await db.execute(query)
        return list(result.scalars().all())

    async def get_active_doctor(self, db: AsyncSession, doctor_id: int) -> dict:
        """Get an active doctor or raise NotFoundException."""
        doctor = await self.get_doctor_by_id(db, doctor_id)
        if not doctor or not doctor["is_active"]:
            raise NotFoundException("Doctor not found")
        return doctor

    async def update_doctor(
        self,
        db: AsyncSession,
        caller: Caller,
        doctor_id: int,
        doctor_data: DoctorUpdate,
    ) -> dict:
        """Update a doctor; admins may edit any profile, doctors only their own."""
        doctor = await self.get_doctor_by_id(db, doctor_id)
        if not doctor:
            raise NotFoundException("Doctor not found")

        if not caller.is_admin and not (
            caller.role is Role.DOCTOR and caller.profile_id == doctor_id
        ):
            raise ForbiddenException("Doctors can only edit their own profile")

        update_values = doctor_data.model_dump(exclude_unset=True, exclude_none=True)
        if not update_values:
            return doctor

        update_values["updated_at"] = datetime.now(UTC)
        result = await db.execute(
            update(doctors)
            .where(doctors.c.id == doctor_id)
            .values(**update_values)
            .returning(doctors)
        )
        updated = dict(result.mappings().one())
        await db.commit()

        self.invalidate_cache(doctor_id)
        logger.info("doctor_updated", doctor_id=doctor_id, fields=sorted(update_values))
        return updated

    async def deactivate_doctor(self, db: AsyncSession, doctor_id: int) -> None:
        """Soft delete a doctor and the linked user account."""
        doctor = await self.get_doctor_by_id(db, doctor_id)
        if not doctor:
            raise NotFoundException("Doctor not found")

        now = datetime.now(UTC)
        await db.execute(
            update(doctors)
            .where(doctors.c.id == doctor_id)
            .values(is_active=False, updated_at=now)
        )
        await UserService().set_active(db, doctor["user_id"], False)
        await db.commit()

        self.invalidate_cache(doctor_id)
        logger.info("doctor_deactivated", doctor_id=doctor_id)

    async def get_doctor_profile(self, db: AsyncSession, doctor_id: int) -> dict:
        """
        Public profile of an active doctor.

        Args:
            db: Database session
            doctor_id: Doctor ID

        Returns:
            Doctor row plus ``average_rating``, ``rating_count`` and the
            approved ``feedback`` entries, newest first

        Raises:
            NotFoundException: If the doctor is unknown or inactive
        """
        doctor = await self.get_active_doctor(db, doctor_id)

        approved = (feedbacks.c.doctor_id == doctor_id, feedbacks.c.is_approved.is_(True))
        stats = await db.execute(
            select(func.avg(feedbacks.c.rating), func.count(feedbacks.c.id)).where(*approved)
        )
        average, count = stats.one()

        result = await db.execute(
            select(feedbacks)
            .where(*approved)
            .order_by(feedbacks.c.created_at.desc(), feedbacks.c.id.desc())
        )

        return {
            **doctor,
            "average_rating": round(float(average), 2) if average is not None else 0.0,
            "rating_count": count,
            "feedback": [dict(f) for f in result.mappings().all()],
        }
