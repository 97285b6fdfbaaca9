from dataclasses import dataclass
from typing import List

from ...domain.time_range import TimeRange
from ..ports.appointments_repo import AppointmentsRepository, AppointmentDto


@dataclass
class AvailabilityService:
    """Decides whether a doctor's interval on a date is free.

    The repository narrows the candidates to one doctor-day in a reserving
    status (requested, approved, blocked); the overlap test is a linear scan
    over that small set and does not depend on ordering.
    """
    repo: AppointmentsRepository

    def find_conflicts(self, doctor_id: str, date: str, start: str, end: str) -> List[AppointmentDto]:
        candidate = TimeRange(date=date, start=start, end=end)
        return [
            a for a in self.repo.list_reserving(doctor_id, date)
            if candidate.overlaps(a.start_time, a.end_time)
        ]

    def is_available(self, doctor_id: str, date: str, start: str, end: str) -> bool:
        return not self.find_conflicts(doctor_id, date, start, end)
