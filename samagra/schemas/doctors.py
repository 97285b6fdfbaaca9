# samagra/schemas/doctors.py
from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

from ..application.ports.appointments_repo import DoctorDto


class DoctorProfileUpdate(BaseModel):
    name: Optional[str] = Field(default=None, max_length=100)
    email: Optional[str] = Field(default=None, max_length=100)
    specialization: Optional[str] = Field(default=None, max_length=100)


class DoctorResponse(BaseModel):
    id: str
    name: str
    email: Optional[str] = None
    specialization: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_dto(cls, d: DoctorDto) -> "DoctorResponse":
        return cls(
            id=d.id,
            name=d.name,
            email=d.email,
            specialization=d.specialization,
            created_at=d.created_at,
            updated_at=d.updated_at,
        )
