"""Account and token builders shared by the fixtures and tests."""

from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.permissions import Caller, Role
from app.core.security import create_access_token, get_password_hash
from app.models import doctors
from app.services.doctor_service import DoctorService
from app.services.patient_service import PatientService
from app.services.user_service import UserService

PASSWORD = "secret123"
BOOKING_DAY = date(2030, 1, 10)


def auth_headers_for(user: dict) -> dict:
    """Bearer header for a user row."""
    token = create_access_token(
        data={"sub": str(user["id"]), "role": user["role"], "email": user["email"]},
        expires_delta=timedelta(minutes=30),
    )
    return {"Authorization": f"Bearer {token}"}


async def create_account(db: AsyncSession, role: Role, email: str, name: str) -> dict:
    """Insert a user with the matching profile; returns user, profile, caller and headers."""
    user = await UserService().create_user(
        db,
        email=email,
        password_hash=get_password_hash(PASSWORD),
        role=role,
        name=name,
    )
    profile = None
    if role is Role.DOCTOR:
        profile = await DoctorService().create_default_profile(db, user)
    elif role is Role.PATIENT:
        profile = await PatientService().create_default_profile(db, user)
    await db.commit()

    return {
        "user": user,
        "profile": profile,
        "caller": Caller(
            user_id=user["id"],
            role=role,
            email=user["email"],
            profile_id=profile["id"] if profile else None,
        ),
        "headers": auth_headers_for(user),
    }


async def set_doctor_fee(db: AsyncSession, doctor_id: int, fee: str, specialty: str) -> None:
    await db.execute(
        update(doctors)
        .where(doctors.c.id == doctor_id)
        .values(consultation_fee=Decimal(fee), specialty=specialty)
    )
    await db.commit()
