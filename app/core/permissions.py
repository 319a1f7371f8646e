"""Roles and the appointment authorization predicate.

Every appointment-scoped operation asks ``is_allowed`` once at its entry
point instead of resolving and comparing profiles inline.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

from app.core.exceptions import ForbiddenException


class Role(str, Enum):
    """User role enumeration."""

    ADMIN = "Admin"
    DOCTOR = "Doctor"
    PATIENT = "Patient"


class AppointmentAction(str, Enum):
    """Capabilities that can be exercised on a single appointment."""

    VIEW = "view"
    UPDATE_STATUS = "update_status"
    CANCEL = "cancel"
    RECORD_CLINICAL = "record_clinical"
    PAY = "pay"
    DELETE = "delete"


DOCTOR_ACTIONS = frozenset(
    {
        AppointmentAction.VIEW,
        AppointmentAction.UPDATE_STATUS,
        AppointmentAction.CANCEL,
        AppointmentAction.RECORD_CLINICAL,
    }
)
PATIENT_ACTIONS = frozenset(
    {
        AppointmentAction.VIEW,
        AppointmentAction.CANCEL,
        AppointmentAction.PAY,
    }
)


@dataclass(frozen=True)
class Caller:
    """The authenticated identity behind a request.

    ``profile_id`` is the id of the linked Doctor or Patient record and is
    ``None`` for admins or for accounts whose profile is missing.
    """

    user_id: int
    role: Role
    email: str
    profile_id: int | None = None

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN


def is_allowed(
    role: Role,
    profile_id: int | None,
    appointment: Mapping[str, Any],
    action: AppointmentAction,
) -> bool:
    """
    Decide whether a caller may perform ``action`` on ``appointment``.

    Args:
        role: Caller role
        profile_id: Caller's Doctor or Patient profile id
        appointment: Appointment row with ``doctor_id`` and ``patient_id``
        action: Requested capability

    Returns:
        True if the action is permitted
    """
    if role is Role.ADMIN:
        return True

    if role is Role.DOCTOR:
        return (
            action in DOCTOR_ACTIONS
            and profile_id is not None
            and appointment["doctor_id"] == profile_id
        )

    if role is Role.PATIENT:
        return (
            action in PATIENT_ACTIONS
            and profile_id is not None
            and appointment["patient_id"] == profile_id
        )

    raise ValueError(f"Unhandled role: {role!r}")


def authorize(
    caller: Caller,
    appointment: Mapping[str, Any],
    action: AppointmentAction,
) -> None:
    """Raise ForbiddenException unless ``caller`` may perform ``action``."""
    if not is_allowed(caller.role, caller.profile_id, appointment, action):
        raise ForbiddenException(f"Not allowed to {action.value.replace('_', ' ')} this appointment")
