# Models package (re-export feature modules for stable imports)
from .appointment import Appointment
from .doctor import Doctor
from .slot_lock import DoctorDayLock

__all__ = [
    "Appointment",
    "Doctor",
    "DoctorDayLock",
]
