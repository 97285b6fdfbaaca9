from dataclasses import dataclass, field
from typing import ContextManager, Iterable, List, Optional, Protocol
from datetime import datetime


@dataclass
class DoctorDto:
    id: str
    name: str
    email: Optional[str] = None
    specialization: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class AppointmentDto:
    id: str
    patient_id: Optional[str]
    doctor_id: str
    date: str
    start_time: str
    end_time: str
    status: str
    reason: str = ""
    report: Optional[str] = None
    is_recurring: bool = False
    recurrence_type: str = "none"
    parent_appointment_id: Optional[str] = None
    rescheduled_to: Optional[str] = None
    rescheduled_from: Optional[str] = None
    created_by: str = "patient"
    created_at: Optional[datetime] = field(default=None)
    updated_at: Optional[datetime] = field(default=None)


class AppointmentsRepository(Protocol):
    def get(self, appointment_id: str) -> Optional[AppointmentDto]:
        ...

    def add(self, appointment: AppointmentDto) -> AppointmentDto:
        ...

    def transition(self, appointment_id: str, expected_statuses: Iterable[str], **fields) -> AppointmentDto:
        """Write ``fields`` only while the row's status is in ``expected_statuses``.

        Raises InvalidTransitionError when the row has moved on.
        """
        ...

    def count_for_doctor(self, doctor_id: str, date: Optional[str] = None, statuses: Optional[Iterable[str]] = None) -> int:
        ...

    def list_reserving(self, doctor_id: str, date: str) -> List[AppointmentDto]:
        ...

    def list_for_doctor_on(self, doctor_id: str, date: str) -> List[AppointmentDto]:
        ...

    def list_for_patient(self, patient_id: str, statuses: Optional[Iterable[str]] = None) -> List[AppointmentDto]:
        ...

    def get_doctor(self, doctor_id: str) -> Optional[DoctorDto]:
        ...

    def upsert_doctor(self, doctor: DoctorDto) -> DoctorDto:
        ...

    def slot_transaction(self, doctor_id: str, date: str) -> ContextManager[None]:
        """Serialize slot-claiming writes for one doctor-day.

        Reads and writes issued inside the block commit together on clean
        exit and roll back on error. Raises ConflictError when another
        writer claimed the same doctor-day concurrently.
        """
        ...
