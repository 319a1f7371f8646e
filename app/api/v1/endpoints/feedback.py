"""Feedback endpoints."""

from fastapi import APIRouter, status

from app.dependencies import CurrentCaller, DatabaseSession
from app.schemas.appointments import AppointmentResponse
from app.schemas.feedback import FeedbackCreate, FeedbackResponse
from app.services.feedback_service import FeedbackService

router = APIRouter()


@router.post(
    "/",
    response_model=FeedbackResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Submit feedback",
)
async def create_feedback(
    data: FeedbackCreate,
    caller: CurrentCaller,
    db: DatabaseSession,
) -> FeedbackResponse:
    """
    Submit feedback about a doctor.

    Ratings run from 1 to 5. Feedback stays hidden until a doctor or
    admin approves it.
    """
    return await FeedbackService(db).create_feedback(caller, data)


@router.get("/", response_model=list[FeedbackResponse], summary="List feedback")
async def list_feedback(caller: CurrentCaller, db: DatabaseSession) -> list[FeedbackResponse]:
    """Feedback written by the patient, about the doctor, or all for admins."""
    return await FeedbackService(db).list_feedback(caller)


@router.get("/pending", response_model=list[FeedbackResponse], summary="Feedback awaiting approval")
async def list_pending_feedback(
    caller: CurrentCaller,
    db: DatabaseSession,
) -> list[FeedbackResponse]:
    return await FeedbackService(db).list_pending(caller)


@router.get(
    "/eligible-appointments",
    response_model=list[AppointmentResponse],
    summary="Completed appointments open for feedback",
)
async def list_eligible_appointments(
    caller: CurrentCaller,
    db: DatabaseSession,
) -> list[AppointmentResponse]:
    """Completed appointments of the calling patient."""
    return await FeedbackService(db).eligible_appointments(caller)


@router.post("/{feedback_id}/approve", response_model=FeedbackResponse, summary="Approve feedback")
async def approve_feedback(
    feedback_id: int,
    caller: CurrentCaller,
    db: DatabaseSession,
) -> FeedbackResponse:
    """Publish feedback on the doctor's profile."""
    return await FeedbackService(db).approve(caller, feedback_id)


@router.delete(
    "/{feedback_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete feedback",
)
async def delete_feedback(feedback_id: int, caller: CurrentCaller, db: DatabaseSession) -> None:
    await FeedbackService(db).delete(caller, feedback_id)
