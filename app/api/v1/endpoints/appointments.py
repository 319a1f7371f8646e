"""Appointment endpoints."""

from datetime import date

from fastapi import APIRouter, Depends, Query, status

from app.core.redis_client import CacheManager
from app.dependencies import AdminCaller, CurrentCaller, DatabaseSession, get_cache_manager
from app.schemas.appointments import (
    AppointmentBook,
    AppointmentCancel,
    AppointmentClinicalUpdate,
    AppointmentCreate,
    AppointmentFilters,
    AppointmentListResponse,
    AppointmentReschedule,
    AppointmentResponse,
    AppointmentStatus,
    AppointmentStatusUpdate,
    PaymentStatus,
)
from app.services.appointment_service import AppointmentService
from app.services.doctor_service import DoctorService

router = APIRouter()


def get_appointment_service(
    db: DatabaseSession,
    cache_manager: CacheManager | None = Depends(get_cache_manager),
) -> AppointmentService:
    """Get appointment service bound to the request's session."""
    return AppointmentService(db, DoctorService(cache_manager=cache_manager))


AppointmentServiceDep = Depends(get_appointment_service)


@router.post(
    "/book",
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Book a slot as the current patient",
)
async def book_appointment(
    data: AppointmentBook,
    caller: CurrentCaller,
    service: AppointmentService = AppointmentServiceDep,
) -> AppointmentResponse:
    """
    Book one of a doctor's free slots for the authenticated patient.

    The fee is copied from the doctor's consultation fee at booking time.

    Raises:
        NotFoundException: Unknown or inactive doctor
        ConflictException: The slot is already taken
    """
    return await service.book_for_patient(caller, data)


@router.post(
    "/",
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create appointment for a patient",
)
async def create_appointment(
    data: AppointmentCreate,
    caller: CurrentCaller,
    service: AppointmentService = AppointmentServiceDep,
) -> AppointmentResponse:
    """
    Manual creation by staff.

    Admins may book with any doctor; doctors only on their own schedule
    (``doctor_id`` defaults to the calling doctor).
    """
    return await service.create_appointment(caller, data)


@router.get(
    "/",
    response_model=AppointmentListResponse,
    status_code=status.HTTP_200_OK,
    summary="List appointments",
)
async def list_appointments(
    caller: CurrentCaller,
    status_filter: AppointmentStatus | None = Query(None, alias="status"),
    payment_status: PaymentStatus | None = Query(None),
    doctor_id: int | None = Query(None),
    patient_id: int | None = Query(None),
    from_date: date | None = Query(None),
    to_date: date | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    service: AppointmentService = AppointmentServiceDep,
) -> AppointmentListResponse:
    """
    List appointments visible to the caller with filtering.

    Patients see their own appointments, doctors their schedule and admins
    everything. Newest first.
    """
    filters = AppointmentFilters(
        status=status_filter,
        payment_status=payment_status,
        doctor_id=doctor_id,
        patient_id=patient_id,
        from_date=from_date,
        to_date=to_date,
        page=page,
        page_size=page_size,
    )
    return await service.list_appointments(caller, filters)


@router.get(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Get appointment by ID",
)
async def get_appointment(
    appointment_id: int,
    caller: CurrentCaller,
    service: AppointmentService = AppointmentServiceDep,
) -> AppointmentResponse:
    """Get a specific appointment the caller is involved in."""
    return await service.get_appointment(appointment_id, caller)


@router.patch(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Reschedule appointment",
)
async def reschedule_appointment(
    appointment_id: int,
    data: AppointmentReschedule,
    caller: CurrentCaller,
    service: AppointmentService = AppointmentServiceDep,
) -> AppointmentResponse:
    """
    Move an appointment to another slot (treating doctor or admin).

    Only admins may pass a different ``doctor_id``. Completed and cancelled
    appointments, or a slot already held by another appointment, give 409.
    """
    return await service.reschedule_appointment(appointment_id, caller, data)


@router.patch(
    "/{appointment_id}/status",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Update appointment status",
)
async def update_appointment_status(
    appointment_id: int,
    data: AppointmentStatusUpdate,
    caller: CurrentCaller,
    service: AppointmentService = AppointmentServiceDep,
) -> AppointmentResponse:
    """
    Move an appointment to a new status (treating doctor or admin).

    Raises:
        NotFoundException: Unknown appointment
        ForbiddenException: Caller may not change this appointment
        ConflictException: Transition not allowed from the current status
    """
    return await service.update_status(appointment_id, caller, data.status, data.notes)


@router.post(
    "/{appointment_id}/cancel",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Cancel appointment",
)
async def cancel_appointment(
    appointment_id: int,
    caller: CurrentCaller,
    data: AppointmentCancel | None = None,
    service: AppointmentService = AppointmentServiceDep,
) -> AppointmentResponse:
    """
    Cancel an appointment and free its slot; the body's reason is optional.

    Cancelling a completed appointment gives 409; cancelling an already
    cancelled one succeeds again.
    """
    reason = data.reason if data else None
    return await service.cancel(appointment_id, caller, reason)


@router.patch(
    "/{appointment_id}/clinical",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Record notes, prescription or diagnosis",
)
async def record_clinical_notes(
    appointment_id: int,
    data: AppointmentClinicalUpdate,
    caller: CurrentCaller,
    service: AppointmentService = AppointmentServiceDep,
) -> AppointmentResponse:
    """Treating doctor or admin writes the clinical fields."""
    return await service.record_clinical_notes(appointment_id, caller, data)


@router.delete(
    "/{appointment_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete appointment",
)
async def delete_appointment(
    appointment_id: int,
    caller: AdminCaller,
    service: AppointmentService = AppointmentServiceDep,
) -> None:
    """Permanently delete an appointment (admin only)."""
    await service.delete_appointment(appointment_id, caller)
