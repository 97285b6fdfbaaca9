# samagra/db/models/slot_lock.py
from sqlmodel import SQLModel, Field


class DoctorDayLock(SQLModel, table=True):
    """Version counter bumped by every slot-claiming write on a doctor-day."""
    __tablename__ = "doctor_day_locks"
    doctor_id: str = Field(primary_key=True, max_length=128)
    appointment_date: str = Field(primary_key=True, max_length=10)
    version: int = Field(default=0)
