# samagra/schemas/appointments.py
from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from typing import List, Optional
from datetime import datetime

from ..application.ports.appointments_repo import AppointmentDto


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# Date/time fields stay loosely typed here; the domain layer owns their validation.
class AppointmentCreate(CamelModel):
    doctor_id: Optional[str] = None
    date: Optional[str] = Field(default=None, validation_alias=AliasChoices("date", "appointmentDate"))
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    reason: Optional[str] = None
    is_recurring: bool = False
    recurrence_type: str = "none"


class StatusUpdate(CamelModel):
    status: Optional[str] = None


class ReportAttach(CamelModel):
    report: Optional[str] = None


class RescheduleRequest(CamelModel):
    new_date: Optional[str] = None
    new_start_time: Optional[str] = None
    new_end_time: Optional[str] = None


class BlockCalendarRequest(CamelModel):
    date: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    reason: Optional[str] = None


class AppointmentResponse(CamelModel):
    appointment_id: str
    patient_id: Optional[str] = None
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
    created_by: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_dto(cls, a: AppointmentDto) -> "AppointmentResponse":
        return cls(
            appointment_id=a.id,
            patient_id=a.patient_id,
            doctor_id=a.doctor_id,
            date=a.date,
            start_time=a.start_time,
            end_time=a.end_time,
            status=a.status,
            reason=a.reason,
            report=a.report,
            is_recurring=a.is_recurring,
            recurrence_type=a.recurrence_type,
            parent_appointment_id=a.parent_appointment_id,
            rescheduled_to=a.rescheduled_to,
            rescheduled_from=a.rescheduled_from,
            created_by=a.created_by,
            created_at=a.created_at,
            updated_at=a.updated_at,
        )


def serialize(a: Optional[AppointmentDto]) -> Optional[dict]:
    if a is None:
        return None
    return AppointmentResponse.from_dto(a).model_dump(by_alias=True, mode="json")


def serialize_many(rows: List[AppointmentDto]) -> List[dict]:
    return [serialize(a) for a in rows]
