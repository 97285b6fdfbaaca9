from .appointments import (
    AppointmentCreate,
    AppointmentResponse,
    BlockCalendarRequest,
    ReportAttach,
    RescheduleRequest,
    StatusUpdate,
    serialize,
    serialize_many,
)
from .doctors import DoctorProfileUpdate, DoctorResponse

__all__ = [
    "AppointmentCreate",
    "AppointmentResponse",
    "BlockCalendarRequest",
    "DoctorProfileUpdate",
    "DoctorResponse",
    "ReportAttach",
    "RescheduleRequest",
    "StatusUpdate",
    "serialize",
    "serialize_many",
]
