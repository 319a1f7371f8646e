"""Doctor directory endpoints."""

from datetime import date

from fastapi import APIRouter, Depends, Query, status

from app.core.redis_client import CacheManager
from app.dependencies import (
    AdminCaller,
    CurrentCaller,
    DatabaseSession,
    get_cache_manager,
)
from app.schemas.appointments import AvailableSlotsResponse
from app.schemas.doctors import DoctorCreate, DoctorProfileResponse, DoctorResponse, DoctorUpdate
from app.schemas.feedback import DoctorRatingResponse
from app.services.appointment_service import AppointmentService
from app.services.doctor_service import DoctorService
from app.services.feedback_service import FeedbackService

router = APIRouter()


def get_doctor_service(
    cache_manager: CacheManager | None = Depends(get_cache_manager),
) -> DoctorService:
    """Get doctor service instance."""
    return DoctorService(cache_manager=cache_manager)


@router.get("/", response_model=list[DoctorResponse])
async def list_doctors(
    db: DatabaseSession,
    specialty: str | None = Query(None, description="Filter by specialty"),
    search: str | None = Query(None, description="Match name, specialty or qualifications"),
    doctor_service: DoctorService = Depends(get_doctor_service),
):
    """
    List active doctors ordered by name.

    - **specialty**: Partial, case-insensitive specialty match
    - **search**: Free text over name, specialty and qualifications
    """
    doctors_list = await doctor_service.list_doctors(db, specialty=specialty, search=search)
    return [DoctorResponse.model_validate(d) for d in doctors_list]


@router.get("/specialties", response_model=list[str])
async def list_specialties(
    db: DatabaseSession,
    doctor_service: DoctorService = Depends(get_doctor_service),
):
    """Distinct specialties offered by active doctors."""
    return await doctor_service.list_specialties(db)


@router.post("/", response_model=DoctorResponse, status_code=status.HTTP_201_CREATED)
async def create_doctor(
    doctor_data: DoctorCreate,
    db: DatabaseSession,
    caller: AdminCaller,
    doctor_service: DoctorService = Depends(get_doctor_service),
):
    """
    Create a doctor profile for an existing Doctor account (admin only).

    - **user_id**: ID of the user account for this doctor
    - **specialty**: Medical specialty
    - **consultation_fee**: Fee copied onto each new appointment
    """
    doctor = await doctor_service.create_doctor(db, doctor_data)
    return DoctorResponse.model_validate(doctor)


@router.get("/{doctor_id}", response_model=DoctorProfileResponse)
async def get_doctor(
    doctor_id: int,
    db: DatabaseSession,
    doctor_service: DoctorService = Depends(get_doctor_service),
):
    """Public profile of an active doctor with approved feedback and average rating."""
    profile = await doctor_service.get_doctor_profile(db, doctor_id)
    return DoctorProfileResponse.model_validate(profile)


@router.patch("/{doctor_id}", response_model=DoctorResponse)
async def update_doctor(
    doctor_id: int,
    doctor_data: DoctorUpdate,
    db: DatabaseSession,
    caller: CurrentCaller,
    doctor_service: DoctorService = Depends(get_doctor_service),
):
    """
    Update doctor information.

    Admins may edit any profile; doctors only their own. Only provided
    fields are updated. A new fee applies to appointments booked afterwards.
    """
    doctor = await doctor_service.update_doctor(db, caller, doctor_id, doctor_data)
    return DoctorResponse.model_validate(doctor)


@router.delete("/{doctor_id}", status_code=status.HTTP_204_NO_CONTENT)
async def deactivate_doctor(
    doctor_id: int,
    db: DatabaseSession,
    caller: AdminCaller,
    doctor_service: DoctorService = Depends(get_doctor_service),
) -> None:
    """Deactivate a doctor and their account (admin only)."""
    await doctor_service.deactivate_doctor(db, doctor_id)


@router.get("/{doctor_id}/slots", response_model=AvailableSlotsResponse)
async def list_available_slots(
    doctor_id: int,
    db: DatabaseSession,
    day: date = Query(..., alias="date", description="Day to check (YYYY-MM-DD)"),
    doctor_service: DoctorService = Depends(get_doctor_service),
):
    """Free 30-minute slots of a doctor on one day, ascending."""
    service = AppointmentService(db, doctor_service)
    slots = await service.list_available_slots(doctor_id, day)
    return AvailableSlotsResponse(doctor_id=doctor_id, appointment_date=day, slots=slots)


@router.get("/{doctor_id}/feedback", response_model=DoctorRatingResponse)
async def list_doctor_feedback(
    doctor_id: int,
    db: DatabaseSession,
    doctor_service: DoctorService = Depends(get_doctor_service),
):
    """Approved feedback of a doctor with the average rating."""
    return await FeedbackService(db, doctor_service).list_public_for_doctor(doctor_id)
