"""Payment endpoints."""

from fastapi import APIRouter, status

from app.dependencies import CurrentCaller, DatabaseSession
from app.schemas.payments import PaymentCreate, PaymentResponse
from app.services.payment_service import PaymentService

router = APIRouter()


@router.post(
    "/",
    response_model=PaymentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Pay an appointment",
)
async def create_payment(
    data: PaymentCreate,
    caller: CurrentCaller,
    db: DatabaseSession,
) -> PaymentResponse:
    """
    Record a completed payment for one of the caller's appointments.

    ``amount`` defaults to the fee stored on the appointment.
    """
    return await PaymentService(db).create_payment(caller, data)


@router.get("/", response_model=list[PaymentResponse], summary="List payments")
async def list_payments(caller: CurrentCaller, db: DatabaseSession) -> list[PaymentResponse]:
    """Payments visible to the caller, newest first."""
    return await PaymentService(db).list_payments(caller)


@router.get("/{payment_id}", response_model=PaymentResponse, summary="Get payment receipt")
async def get_payment(payment_id: int, caller: CurrentCaller, db: DatabaseSession) -> PaymentResponse:
    """Receipt for a single payment."""
    return await PaymentService(db).get_payment(caller, payment_id)
