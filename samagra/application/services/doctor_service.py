from dataclasses import dataclass
from typing import Optional

from ...exceptions import NotFoundError, ValidationError
from ..ports.appointments_repo import AppointmentsRepository, DoctorDto


@dataclass
class DoctorService:
    repo: AppointmentsRepository

    def update_profile(self, doctor_id: str, name: Optional[str], email: Optional[str], specialization: Optional[str]) -> DoctorDto:
        existing = self.repo.get_doctor(doctor_id)
        if existing is None and not name:
            raise ValidationError("Name required")
        if email is not None and "@" not in email:
            raise ValidationError("Invalid email")
        doctor = DoctorDto(
            id=doctor_id,
            name=name or existing.name,
            email=email if email is not None else (existing.email if existing else None),
            specialization=specialization if specialization is not None else (existing.specialization if existing else None),
        )
        return self.repo.upsert_doctor(doctor)

    def get_profile(self, doctor_id: str) -> DoctorDto:
        doctor = self.repo.get_doctor(doctor_id)
        if not doctor:
            raise NotFoundError("Doctor not found")
        return doctor
