"""Patient directory endpoints."""

from fastapi import APIRouter, Query, status

from app.core.exceptions import NotFoundException
from app.core.permissions import Role
from app.dependencies import AdminCaller, CurrentCaller, DatabaseSession, StaffCaller
from app.schemas.patients import PatientCreate, PatientResponse, PatientUpdate
from app.services.patient_service import PatientService

router = APIRouter()


@router.get("/", response_model=list[PatientResponse])
async def list_patients(
    db: DatabaseSession,
    caller: StaffCaller,
    search: str | None = Query(None, description="Filter by name"),
):
    """List active patients (doctors and admins)."""
    patients_list = await PatientService().list_patients(db, search=search)
    return [PatientResponse.model_validate(p) for p in patients_list]


@router.post("/", response_model=PatientResponse, status_code=status.HTTP_201_CREATED)
async def create_patient(data: PatientCreate, db: DatabaseSession, caller: AdminCaller):
    """
    Create a patient profile for an existing Patient account (admin only).

    - **user_id**: ID of the user account for this patient
    - Unset contact fields are copied from the account
    """
    patient = await PatientService().create_patient(db, data)
    return PatientResponse.model_validate(patient)


@router.get("/me", response_model=PatientResponse)
async def get_my_profile(db: DatabaseSession, caller: CurrentCaller):
    """Profile of the calling patient."""
    if caller.role is not Role.PATIENT or caller.profile_id is None:
        raise NotFoundException("Patient not found")
    patient = await PatientService().get_patient(db, caller, caller.profile_id)
    return PatientResponse.model_validate(patient)


@router.get("/{patient_id}", response_model=PatientResponse)
async def get_patient(patient_id: int, db: DatabaseSession, caller: CurrentCaller):
    """Get a patient; patients may only read their own record."""
    patient = await PatientService().get_patient(db, caller, patient_id)
    return PatientResponse.model_validate(patient)


@router.patch("/{patient_id}", response_model=PatientResponse)
async def update_patient(
    patient_id: int,
    data: PatientUpdate,
    db: DatabaseSession,
    caller: CurrentCaller,
):
    """Update a patient profile (admin or the patient themself)."""
    patient = await PatientService().update_patient(db, caller, patient_id, data)
    return PatientResponse.model_validate(patient)


@router.delete("/{patient_id}", status_code=status.HTTP_204_NO_CONTENT)
async def deactivate_patient(patient_id: int, db: DatabaseSession, caller: AdminCaller) -> None:
    """Deactivate a patient and their account (admin only)."""
    await PatientService().deactivate_patient(db, patient_id)
