from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional, Tuple

from ...domain.status import AppointmentStatus, HISTORY_STATUSES, UPCOMING_STATUSES
from ...domain.time_range import validate_date
from ...exceptions import AuthorizationError, NotFoundError, ValidationError
from ..ports.appointments_repo import AppointmentsRepository, AppointmentDto
from ..ports.identity_provider import Identity

COMPLETED_STATUSES = frozenset({AppointmentStatus.COMPLETED.value})

PATIENT_VIEWS: Dict[str, Optional[FrozenSet[str]]] = {
    "all": None,
    "upcoming": UPCOMING_STATUSES,
    "history": HISTORY_STATUSES,
    "rescheduled": frozenset({AppointmentStatus.RESCHEDULED.value}),
}


@dataclass
class AppointmentQueries:
    repo: AppointmentsRepository

    def doctor_schedule(self, doctor_id: str, date: str) -> List[AppointmentDto]:
        """All of a doctor's rows on ``date``, earliest start first."""
        return self.repo.list_for_doctor_on(doctor_id, validate_date(date))

    def doctor_dashboard(self, doctor_id: str, today: str) -> Dict[str, int]:
        """Appointment counts shown on the doctor landing page."""
        return {
            "today": self.repo.count_for_doctor(doctor_id, date=validate_date(today)),
            "upcoming": self.repo.count_for_doctor(doctor_id, statuses=UPCOMING_STATUSES),
            "completed": self.repo.count_for_doctor(doctor_id, statuses=COMPLETED_STATUSES),
        }

    def patient_appointments(self, patient_id: str, kind: str = "all") -> List[AppointmentDto]:
        """A patient's rows, latest date first, narrowed by ``kind``."""
        if kind not in PATIENT_VIEWS:
            raise ValidationError(f"Invalid type. Must be one of: {list(PATIENT_VIEWS)}")
        return self.repo.list_for_patient(patient_id, PATIENT_VIEWS[kind])

    def patient_history(self, patient_id: str) -> List[AppointmentDto]:
        return self.patient_appointments(patient_id, "history")

    def get_appointment(self, caller: Identity, appointment_id: str) -> AppointmentDto:
        appt = self.repo.get(appointment_id)
        if not appt:
            raise NotFoundError("Appointment not found")
        if caller.id not in (appt.patient_id, appt.doctor_id):
            raise AuthorizationError("Not your appointment")
        return appt

    def reschedule_details(self, caller: Identity, appointment_id: str) -> Tuple[AppointmentDto, Optional[AppointmentDto]]:
        original = self.get_appointment(caller, appointment_id)
        successor = self.repo.get(original.rescheduled_to) if original.rescheduled_to else None
        return original, successor
