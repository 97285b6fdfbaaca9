# samagra/db/models/appointment.py
from typing import Optional
from sqlmodel import SQLModel, Field
from sqlalchemy import Index
from datetime import datetime, timezone
import uuid


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Appointment(SQLModel, table=True):
    __tablename__ = "appointments"
    __table_args__ = (
        Index("ix_appointments_doctor_date_status", "doctor_id", "appointment_date", "status"),
        Index("ix_appointments_patient_date", "patient_id", "appointment_date"),
    )

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    patient_id: Optional[str] = Field(default=None, max_length=128)
    doctor_id: str = Field(max_length=128)
    appointment_date: str = Field(max_length=10)  # YYYY-MM-DD
    start_time: str = Field(max_length=5)  # HH:MM
    end_time: str = Field(max_length=5)
    status: str = Field(default="requested", max_length=16)
    reason: str = Field(default="")
    report: Optional[str] = Field(default=None)
    is_recurring: bool = Field(default=False)
    recurrence_type: str = Field(default="none", max_length=16)
    parent_appointment_id: Optional[str] = Field(default=None, foreign_key="appointments.id")
    rescheduled_to: Optional[str] = Field(default=None, foreign_key="appointments.id")
    rescheduled_from: Optional[str] = Field(default=None, foreign_key="appointments.id")
    created_by: str = Field(default="patient", max_length=16)
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
