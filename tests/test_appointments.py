"""Tests for the appointment lifecycle."""

from datetime import time
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ConflictException, ForbiddenException, NotFoundException
from app.schemas.appointments import AppointmentReschedule, AppointmentStatus
from app.services.appointment_service import SLOT_TAKEN_MESSAGE, AppointmentService
from tests.factories import BOOKING_DAY, set_doctor_fee


@pytest.mark.asyncio
async def test_book_copies_doctor_fee(booked: dict, doctor: dict, patient: dict) -> None:
    assert booked["doctor_id"] == doctor["profile"]["id"]
    assert booked["patient_id"] == patient["profile"]["id"]
    assert booked["appointment_date"] == BOOKING_DAY.isoformat()
    assert booked["appointment_time"] == "10:00"
    assert booked["fee"] == 1500.0
    assert booked["status"] == "Pending"
    assert booked["payment_status"] == "Pending"
    assert booked["cancelled_at"] is None


@pytest.mark.asyncio
async def test_available_slots_exclude_booked_time(
    client: AsyncClient, booked: dict, doctor: dict
) -> None:
    response = await client.get(
        f"/api/v1/doctors/{doctor['profile']['id']}/slots",
        params={"date": BOOKING_DAY.isoformat()},
    )

    assert response.status_code == 200
    slots = response.json()["slots"]
    assert "10:00" not in slots
    assert "09:30" in slots
    assert "10:30" in slots
    assert len(slots) == 15
    assert slots == sorted(slots)


@pytest.mark.asyncio
async def test_slots_for_unknown_doctor(client: AsyncClient) -> None:
    response = await client.get("/api/v1/doctors/999/slots", params={"date": "2030-01-10"})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_double_booking_conflicts(
    client: AsyncClient, booked: dict, booking_payload: dict, other_patient: dict
) -> None:
    response = await client.post(
        "/api/v1/appointments/book", json=booking_payload, headers=other_patient["headers"]
    )

    assert response.status_code == 409
    assert response.json()["error"] == "ConflictException"
    assert response.json()["message"] == SLOT_TAKEN_MESSAGE


@pytest.mark.asyncio
async def test_same_slot_with_other_doctor_is_free(
    client: AsyncClient, booked: dict, booking_payload: dict, other_doctor: dict, patient: dict
) -> None:
    payload = {**booking_payload, "doctor_id": other_doctor["profile"]["id"]}
    response = await client.post("/api/v1/appointments/book", json=payload, headers=patient["headers"])

    assert response.status_code == 201
    assert response.json()["fee"] == 800.0


@pytest.mark.asyncio
async def test_cancel_releases_slot(
    client: AsyncClient, booked: dict, booking_payload: dict, patient: dict, other_patient: dict
) -> None:
    cancel = await client.post(
        f"/api/v1/appointments/{booked['id']}/cancel", headers=patient["headers"]
    )
    assert cancel.status_code == 200

    rebook = await client.post(
        "/api/v1/appointments/book", json=booking_payload, headers=other_patient["headers"]
    )
    assert rebook.status_code == 201
    assert rebook.json()["id"] != booked["id"]


@pytest.mark.asyncio
async def test_off_grid_time_is_rejected(
    client: AsyncClient, booking_payload: dict, patient: dict
) -> None:
    payload = {**booking_payload, "appointment_time": "10:15"}
    response = await client.post("/api/v1/appointments/book", json=payload, headers=patient["headers"])

    assert response.status_code == 422
    assert response.json()["error"] == "ValidationError"


@pytest.mark.asyncio
async def test_book_unknown_doctor(client: AsyncClient, booking_payload: dict, patient: dict) -> None:
    payload = {**booking_payload, "doctor_id": 999}
    response = await client.post("/api/v1/appointments/book", json=payload, headers=patient["headers"])
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_doctor_cannot_self_service_book(
    client: AsyncClient, booking_payload: dict, doctor: dict
) -> None:
    response = await client.post(
        "/api/v1/appointments/book", json=booking_payload, headers=doctor["headers"]
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_fee_change_does_not_touch_existing_appointment(
    client: AsyncClient, db_session: AsyncSession, booked: dict, doctor: dict, patient: dict
) -> None:
    await set_doctor_fee(db_session, doctor["profile"]["id"], "2000.00", "Cardiology")

    response = await client.get(f"/api/v1/appointments/{booked['id']}", headers=patient["headers"])

    assert response.status_code == 200
    assert response.json()["fee"] == 1500.0


@pytest.mark.asyncio
async def test_manual_creation_by_doctor_defaults_to_own_schedule(
    client: AsyncClient, doctor: dict, patient: dict
) -> None:
    response = await client.post(
        "/api/v1/appointments/",
        json={
            "patient_id": patient["profile"]["id"],
            "appointment_date": BOOKING_DAY.isoformat(),
            "appointment_time": "14:30",
        },
        headers=doctor["headers"],
    )

    assert response.status_code == 201
    assert response.json()["doctor_id"] == doctor["profile"]["id"]


@pytest.mark.asyncio
async def test_manual_creation_for_another_doctor_is_forbidden(
    client: AsyncClient, doctor: dict, other_doctor: dict, patient: dict
) -> None:
    response = await client.post(
        "/api/v1/appointments/",
        json={
            "doctor_id": other_doctor["profile"]["id"],
            "patient_id": patient["profile"]["id"],
            "appointment_date": BOOKING_DAY.isoformat(),
            "appointment_time": "14:30",
        },
        headers=doctor["headers"],
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_admin_creates_for_any_doctor(
    client: AsyncClient, admin: dict, other_doctor: dict, patient: dict
) -> None:
    response = await client.post(
        "/api/v1/appointments/",
        json={
            "doctor_id": other_doctor["profile"]["id"],
            "patient_id": patient["profile"]["id"],
            "appointment_date": BOOKING_DAY.isoformat(),
            "appointment_time": "09:00",
        },
        headers=admin["headers"],
    )
    assert response.status_code == 201


@pytest.mark.asyncio
async def test_list_is_scoped_by_role(
    client: AsyncClient,
    booked: dict,
    admin: dict,
    doctor: dict,
    other_doctor: dict,
    patient: dict,
    other_patient: dict,
) -> None:
    async def total(headers: dict) -> int:
        response = await client.get("/api/v1/appointments/", headers=headers)
        assert response.status_code == 200
        return response.json()["total"]

    assert await total(patient["headers"]) == 1
    assert await total(doctor["headers"]) == 1
    assert await total(admin["headers"]) == 1
    assert await total(other_patient["headers"]) == 0
    assert await total(other_doctor["headers"]) == 0


@pytest.mark.asyncio
async def test_list_filters_by_status(client: AsyncClient, booked: dict, admin: dict) -> None:
    pending = await client.get(
        "/api/v1/appointments/", params={"status": "Pending"}, headers=admin["headers"]
    )
    confirmed = await client.get(
        "/api/v1/appointments/", params={"status": "Confirmed"}, headers=admin["headers"]
    )

    assert pending.json()["total"] == 1
    assert confirmed.json()["total"] == 0


@pytest.mark.asyncio
async def test_other_patient_cannot_view(
    client: AsyncClient, booked: dict, other_patient: dict
) -> None:
    response = await client.get(
        f"/api/v1/appointments/{booked['id']}", headers=other_patient["headers"]
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_unknown_appointment(client: AsyncClient, admin: dict) -> None:
    response = await client.get("/api/v1/appointments/424242", headers=admin["headers"])
    assert response.status_code == 404
    assert response.json()["error"] == "NotFoundException"


@pytest.mark.asyncio
async def test_treating_doctor_confirms_with_notes(
    client: AsyncClient, booked: dict, doctor: dict
) -> None:
    response = await client.patch(
        f"/api/v1/appointments/{booked['id']}/status",
        json={"status": "Confirmed", "notes": "Bring previous ECG"},
        headers=doctor["headers"],
    )

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "Confirmed"
    assert data["notes"] == "Bring previous ECG"
    assert data["updated_at"] is not None


@pytest.mark.asyncio
async def test_empty_notes_keep_existing_notes(
    client: AsyncClient, booked: dict, doctor: dict
) -> None:
    response = await client.patch(
        f"/api/v1/appointments/{booked['id']}/status",
        json={"status": "Confirmed", "notes": ""},
        headers=doctor["headers"],
    )
    assert response.json()["notes"] == "Chest pain on exertion"


@pytest.mark.asyncio
async def test_patient_cannot_update_status(
    client: AsyncClient, booked: dict, patient: dict
) -> None:
    response = await client.patch(
        f"/api/v1/appointments/{booked['id']}/status",
        json={"status": "Confirmed"},
        headers=patient["headers"],
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_status_update_to_cancelled_sets_timestamp(
    client: AsyncClient, booked: dict, admin: dict
) -> None:
    response = await client.patch(
        f"/api/v1/appointments/{booked['id']}/status",
        json={"status": "Cancelled"},
        headers=admin["headers"],
    )
    assert response.status_code == 200
    assert response.json()["cancelled_at"] is not None


@pytest.mark.asyncio
async def test_cancel_without_reason(client: AsyncClient, booked: dict, patient: dict) -> None:
    response = await client.post(
        f"/api/v1/appointments/{booked['id']}/cancel", headers=patient["headers"]
    )

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "Cancelled"
    assert data["notes"] == "Cancelled"
    assert data["cancelled_at"] is not None


@pytest.mark.asyncio
async def test_cancel_with_reason_and_again(
    client: AsyncClient, booked: dict, doctor: dict
) -> None:
    first = await client.post(
        f"/api/v1/appointments/{booked['id']}/cancel",
        json={"reason": "patient request"},
        headers=doctor["headers"],
    )
    assert first.status_code == 200
    assert first.json()["notes"] == "Cancelled: patient request"

    again = await client.post(
        f"/api/v1/appointments/{booked['id']}/cancel", headers=doctor["headers"]
    )
    assert again.status_code == 200
    assert again.json()["notes"] == "Cancelled"
    assert again.json()["cancelled_at"] == first.json()["cancelled_at"]


@pytest.mark.asyncio
async def test_other_patient_cannot_cancel(
    client: AsyncClient, booked: dict, other_patient: dict
) -> None:
    response = await client.post(
        f"/api/v1/appointments/{booked['id']}/cancel", headers=other_patient["headers"]
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_record_clinical_notes(
    client: AsyncClient, booked: dict, doctor: dict, patient: dict
) -> None:
    payload = {"prescription": "Aspirin 75mg", "diagnosis": "Stable angina"}

    refused = await client.patch(
        f"/api/v1/appointments/{booked['id']}/clinical", json=payload, headers=patient["headers"]
    )
    assert refused.status_code == 403

    response = await client.patch(
        f"/api/v1/appointments/{booked['id']}/clinical", json=payload, headers=doctor["headers"]
    )
    assert response.status_code == 200
    assert response.json()["prescription"] == "Aspirin 75mg"
    assert response.json()["notes"] == "Chest pain on exertion"


@pytest.mark.asyncio
async def test_only_admin_deletes(
    client: AsyncClient, booked: dict, admin: dict, doctor: dict
) -> None:
    refused = await client.delete(f"/api/v1/appointments/{booked['id']}", headers=doctor["headers"])
    assert refused.status_code == 403

    deleted = await client.delete(f"/api/v1/appointments/{booked['id']}", headers=admin["headers"])
    assert deleted.status_code == 204

    missing = await client.get(f"/api/v1/appointments/{booked['id']}", headers=admin["headers"])
    assert missing.status_code == 404


@pytest.mark.asyncio
async def test_requires_authentication(client: AsyncClient) -> None:
    response = await client.get("/api/v1/appointments/")
    assert response.status_code in (401, 403)


@pytest.mark.asyncio
async def test_treating_doctor_reschedules_to_free_slot(
    client: AsyncClient, booked: dict, doctor: dict, patient: dict
) -> None:
    response = await client.patch(
        f"/api/v1/appointments/{booked['id']}",
        json={"appointment_date": BOOKING_DAY.isoformat(), "appointment_time": "14:30"},
        headers=doctor["headers"],
    )

    assert response.status_code == 200
    body = response.json()
    assert body["appointment_time"] == "14:30"
    assert body["status"] == "Rescheduled"
    assert body["notes"] == "Chest pain on exertion"

    slots = (
        await client.get(
            f"/api/v1/doctors/{doctor['profile']['id']}/slots",
            params={"date": BOOKING_DAY.isoformat()},
        )
    ).json()["slots"]
    assert "10:00" in slots
    assert "14:30" not in slots


@pytest.mark.asyncio
async def test_reschedule_onto_taken_slot_conflicts(
    client: AsyncClient, booked: dict, booking_payload: dict, doctor: dict, other_patient: dict
) -> None:
    second = await client.post(
        "/api/v1/appointments/book",
        json={**booking_payload, "appointment_time": "11:00"},
        headers=other_patient["headers"],
    )
    assert second.status_code == 201

    response = await client.patch(
        f"/api/v1/appointments/{second.json()['id']}",
        json={"appointment_date": BOOKING_DAY.isoformat(), "appointment_time": "10:00"},
        headers=doctor["headers"],
    )

    assert response.status_code == 409
    assert response.json()["message"] == SLOT_TAKEN_MESSAGE


@pytest.mark.asyncio
async def test_reschedule_to_own_slot_is_allowed(
    client: AsyncClient, booked: dict, admin: dict
) -> None:
    response = await client.patch(
        f"/api/v1/appointments/{booked['id']}",
        json={"appointment_date": BOOKING_DAY.isoformat(), "appointment_time": "10:00"},
        headers=admin["headers"],
    )

    assert response.status_code == 200
    assert response.json()["status"] == "Rescheduled"


@pytest.mark.asyncio
async def test_patient_cannot_reschedule(client: AsyncClient, booked: dict, patient: dict) -> None:
    response = await client.patch(
        f"/api/v1/appointments/{booked['id']}",
        json={"appointment_date": BOOKING_DAY.isoformat(), "appointment_time": "14:30"},
        headers=patient["headers"],
    )
    assert response.status_code == 403


@pytest.mark.asyncio
async def test_reschedule_rejects_off_grid_time(
    client: AsyncClient, booked: dict, doctor: dict
) -> None:
    response = await client.patch(
        f"/api/v1/appointments/{booked['id']}",
        json={"appointment_date": BOOKING_DAY.isoformat(), "appointment_time": "14:10"},
        headers=doctor["headers"],
    )
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_only_admin_moves_to_another_doctor(
    client: AsyncClient, booked: dict, doctor: dict, other_doctor: dict, admin: dict
) -> None:
    payload = {
        "doctor_id": other_doctor["profile"]["id"],
        "appointment_date": BOOKING_DAY.isoformat(),
        "appointment_time": "10:00",
    }

    response = await client.patch(
        f"/api/v1/appointments/{booked['id']}", json=payload, headers=doctor["headers"]
    )
    assert response.status_code == 403

    response = await client.patch(
        f"/api/v1/appointments/{booked['id']}", json=payload, headers=admin["headers"]
    )
    assert response.status_code == 200
    assert response.json()["doctor_id"] == other_doctor["profile"]["id"]
    assert response.json()["fee"] == 800.0


class TestAppointmentService:
    """Service-level lifecycle rules."""

    @pytest.mark.asyncio
    async def test_terminal_statuses(
        self, db_session: AsyncSession, doctor: dict, patient: dict
    ) -> None:
        service = AppointmentService(db_session)
        appointment = await service.book_appointment(
            doctor["profile"]["id"], patient["profile"]["id"], BOOKING_DAY, time(11, 0)
        )

        completed = await service.update_status(
            appointment.id, doctor["caller"], AppointmentStatus.COMPLETED
        )
        assert completed.status is AppointmentStatus.COMPLETED

        # Re-setting the current status is a no-op success
        again = await service.update_status(
            appointment.id, doctor["caller"], AppointmentStatus.COMPLETED
        )
        assert again.status is AppointmentStatus.COMPLETED

        with pytest.raises(ConflictException):
            await service.update_status(
                appointment.id, doctor["caller"], AppointmentStatus.CONFIRMED
            )

        with pytest.raises(ConflictException):
            await service.cancel(appointment.id, patient["caller"])

    @pytest.mark.asyncio
    async def test_cancelled_cannot_be_reopened(
        self, db_session: AsyncSession, doctor: dict, patient: dict
    ) -> None:
        service = AppointmentService(db_session)
        appointment = await service.book_appointment(
            doctor["profile"]["id"], patient["profile"]["id"], BOOKING_DAY, time(11, 0)
        )
        await service.cancel(appointment.id, patient["caller"], "travel")

        with pytest.raises(ConflictException):
            await service.update_status(appointment.id, doctor["caller"], AppointmentStatus.PENDING)

    @pytest.mark.asyncio
    async def test_ownership_is_checked_before_transition(
        self, db_session: AsyncSession, doctor: dict, other_doctor: dict, patient: dict
    ) -> None:
        service = AppointmentService(db_session)
        appointment = await service.book_appointment(
            doctor["profile"]["id"], patient["profile"]["id"], BOOKING_DAY, time(11, 0)
        )
        await service.update_status(appointment.id, doctor["caller"], AppointmentStatus.COMPLETED)

        # Invalid transition, but the caller is refused first
        with pytest.raises(ForbiddenException):
            await service.update_status(
                appointment.id, other_doctor["caller"], AppointmentStatus.CONFIRMED
            )

    @pytest.mark.asyncio
    async def test_unknown_appointment_raises_not_found(
        self, db_session: AsyncSession, admin: dict
    ) -> None:
        service = AppointmentService(db_session)

        with pytest.raises(NotFoundException):
            await service.update_status(1234, admin["caller"], AppointmentStatus.CONFIRMED)
        with pytest.raises(NotFoundException):
            await service.cancel(1234, admin["caller"])

    @pytest.mark.asyncio
    async def test_list_available_slots_example(
        self, db_session: AsyncSession, doctor: dict, patient: dict
    ) -> None:
        service = AppointmentService(db_session)
        appointment = await service.book_appointment(
            doctor["profile"]["id"], patient["profile"]["id"], BOOKING_DAY, time(10, 0)
        )
        assert appointment.fee == Decimal("1500.00")

        slots = await service.list_available_slots(doctor["profile"]["id"], BOOKING_DAY)
        assert "10:00" not in slots
        assert {"09:30", "10:30"} <= set(slots)

    @pytest.mark.asyncio
    async def test_slot_race_maps_to_conflict_and_session_recovers(
        self,
        db_session: AsyncSession,
        doctor: dict,
        patient: dict,
        other_patient: dict,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        service = AppointmentService(db_session)
        await service.book_appointment(
            doctor["profile"]["id"], patient["profile"]["id"], BOOKING_DAY, time(10, 0)
        )

        # Let the second booking slip past the pre-check, as a concurrent request would
        monkeypatch.setattr(service, "is_slot_taken", AsyncMock(return_value=False))

        with pytest.raises(ConflictException) as exc_info:
            await service.book_appointment(
                doctor["profile"]["id"], other_patient["profile"]["id"], BOOKING_DAY, time(10, 0)
            )
        assert exc_info.value.message == SLOT_TAKEN_MESSAGE

        slots = await service.list_available_slots(doctor["profile"]["id"], BOOKING_DAY)
        assert len(slots) == 15
        assert "10:00" not in slots

    @pytest.mark.asyncio
    async def test_reschedule_race_maps_to_conflict(
        self,
        db_session: AsyncSession,
        doctor: dict,
        patient: dict,
        other_patient: dict,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        service = AppointmentService(db_session)
        await service.book_appointment(
            doctor["profile"]["id"], patient["profile"]["id"], BOOKING_DAY, time(10, 0)
        )
        moving = await service.book_appointment(
            doctor["profile"]["id"], other_patient["profile"]["id"], BOOKING_DAY, time(11, 0)
        )
        monkeypatch.setattr(service, "is_slot_taken", AsyncMock(return_value=False))

        with pytest.raises(ConflictException):
            await service.reschedule_appointment(
                moving.id,
                doctor["caller"],
                AppointmentReschedule(appointment_date=BOOKING_DAY, appointment_time=time(10, 0)),
            )

        unchanged = await service.get_appointment(moving.id, doctor["caller"])
        assert unchanged.appointment_time == time(11, 0)
        assert unchanged.status is AppointmentStatus.PENDING

    @pytest.mark.asyncio
    async def test_terminal_appointments_cannot_be_rescheduled(
        self, db_session: AsyncSession, doctor: dict, patient: dict
    ) -> None:
        service = AppointmentService(db_session)
        appointment = await service.book_appointment(
            doctor["profile"]["id"], patient["profile"]["id"], BOOKING_DAY, time(11, 0)
        )
        await service.update_status(appointment.id, doctor["caller"], AppointmentStatus.COMPLETED)

        with pytest.raises(ConflictException):
            await service.reschedule_appointment(
                appointment.id,
                doctor["caller"],
                AppointmentReschedule(appointment_date=BOOKING_DAY, appointment_time=time(12, 0)),
            )

    @pytest.mark.asyncio
    async def test_mark_paid_unknown_appointment(self, db_session: AsyncSession) -> None:
        with pytest.raises(NotFoundException):
            await AppointmentService(db_session).mark_paid(999)


@pytest.mark.asyncio
async def test_inverted_date_range(client: AsyncClient, admin: dict) -> None:
    response = await client.get(
        "/api/v1/appointments/",
        params={"from_date": "2030-02-01", "to_date": "2030-01-01"},
        headers=admin["headers"],
    )
    assert response.status_code == 400
