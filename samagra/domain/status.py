from enum import Enum
from typing import Dict, FrozenSet

from ..exceptions import InvalidTransitionError


class AppointmentStatus(str, Enum):
    REQUESTED = "requested"
    APPROVED = "approved"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    RESCHEDULED = "rescheduled"
    BLOCKED = "blocked"


class RecurrenceType(str, Enum):
    NONE = "none"
    WEEKLY = "weekly"


class CreatedBy(str, Enum):
    PATIENT = "patient"
    DOCTOR = "doctor"


# Rows in these states hold their interval on the doctor's calendar.
RESERVING_STATUSES: FrozenSet[str] = frozenset({
    AppointmentStatus.REQUESTED.value,
    AppointmentStatus.APPROVED.value,
    AppointmentStatus.BLOCKED.value,
})

UPCOMING_STATUSES: FrozenSet[str] = frozenset({
    AppointmentStatus.REQUESTED.value,
    AppointmentStatus.APPROVED.value,
})

HISTORY_STATUSES: FrozenSet[str] = frozenset({
    AppointmentStatus.COMPLETED.value,
    AppointmentStatus.CANCELLED.value,
})

# Values a doctor may put in an update-status request.
DOCTOR_SETTABLE_STATUSES: FrozenSet[str] = frozenset({
    AppointmentStatus.APPROVED.value,
    AppointmentStatus.COMPLETED.value,
    AppointmentStatus.CANCELLED.value,
})


class Transition(str, Enum):
    APPROVE = "approve"
    COMPLETE = "complete"
    CANCEL = "cancel"
    RESCHEDULE = "reschedule"
    ATTACH_REPORT = "attach_report"


_REQUESTED = AppointmentStatus.REQUESTED.value
_APPROVED = AppointmentStatus.APPROVED.value
_COMPLETED = AppointmentStatus.COMPLETED.value

LEGAL_SOURCES: Dict[Transition, FrozenSet[str]] = {
    Transition.APPROVE: frozenset({_REQUESTED}),
    Transition.COMPLETE: frozenset({_APPROVED}),
    Transition.CANCEL: frozenset({_REQUESTED, _APPROVED}),
    Transition.RESCHEDULE: frozenset({_REQUESTED, _APPROVED}),
    Transition.ATTACH_REPORT: frozenset({_REQUESTED, _APPROVED, _COMPLETED}),
}

TARGET_STATUS: Dict[Transition, str] = {
    Transition.APPROVE: _APPROVED,
    Transition.COMPLETE: _COMPLETED,
    Transition.CANCEL: AppointmentStatus.CANCELLED.value,
    Transition.RESCHEDULE: AppointmentStatus.RESCHEDULED.value,
    Transition.ATTACH_REPORT: _COMPLETED,
}

_BY_TARGET: Dict[str, Transition] = {
    _APPROVED: Transition.APPROVE,
    _COMPLETED: Transition.COMPLETE,
    AppointmentStatus.CANCELLED.value: Transition.CANCEL,
}


def transition_for_status(status: str) -> Transition:
    """Map a doctor-settable status value to its transition."""
    return _BY_TARGET[status]


def apply_transition(current: str, transition: Transition) -> str:
    """Return the status reached by ``transition`` from ``current``.

    Raises InvalidTransitionError when ``current`` is not a declared source.
    """
    if current not in LEGAL_SOURCES[transition]:
        raise InvalidTransitionError(
            f"Cannot {transition.value.replace('_', ' ')} an appointment that is {current}"
        )
    return TARGET_STATUS[transition]
