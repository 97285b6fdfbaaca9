import logging
from contextlib import contextmanager
from typing import Iterable, Iterator, List, Optional

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from .....db.models import Appointment, Doctor, DoctorDayLock
from .....db.models.appointment import utcnow
from .....domain.status import RESERVING_STATUSES
from .....exceptions import ConflictError, InvalidTransitionError, NotFoundError
from .....application.ports.appointments_repo import (
    AppointmentsRepository,
    AppointmentDto,
    DoctorDto,
)

logger = logging.getLogger(__name__)

# DTO field -> column where the names differ
_COLUMN_NAMES = {"date": "appointment_date"}


class SqlAppointmentsRepository(AppointmentsRepository):
    def __init__(self, session: Session):
        self.session = session
        self._in_transaction = False

    def _appt_to_dto(self, a: Appointment) -> AppointmentDto:
        return AppointmentDto(
            id=a.id,
            patient_id=a.patient_id,
            doctor_id=a.doctor_id,
            date=a.appointment_date,
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

    def _doctor_to_dto(self, d: Doctor) -> DoctorDto:
        return DoctorDto(
            id=d.id,
            name=d.name,
            email=d.email,
            specialization=d.specialization,
            created_at=d.created_at,
            updated_at=d.updated_at,
        )

    def _save(self, row) -> None:
        self.session.add(row)
        if self._in_transaction:
            # slot_transaction commits once at the end of the block
            self.session.flush()
        else:
            self.session.commit()
            self.session.refresh(row)

    def get(self, appointment_id: str) -> Optional[AppointmentDto]:
        a = self.session.exec(select(Appointment).where(Appointment.id == appointment_id)).first()
        return self._appt_to_dto(a) if a else None

    def add(self, appointment: AppointmentDto) -> AppointmentDto:
        now = utcnow()
        row = Appointment(
            id=appointment.id,
            patient_id=appointment.patient_id,
            doctor_id=appointment.doctor_id,
            appointment_date=appointment.date,
            start_time=appointment.start_time,
            end_time=appointment.end_time,
            status=appointment.status,
            reason=appointment.reason,
            report=appointment.report,
            is_recurring=appointment.is_recurring,
            recurrence_type=appointment.recurrence_type,
            parent_appointment_id=appointment.parent_appointment_id,
            rescheduled_to=appointment.rescheduled_to,
            rescheduled_from=appointment.rescheduled_from,
            created_by=appointment.created_by,
            created_at=appointment.created_at or now,
            updated_at=appointment.updated_at or now,
        )
        self._save(row)
        return self._appt_to_dto(row)

    def transition(self, appointment_id: str, expected_statuses: Iterable[str], **fields) -> AppointmentDto:
        values = {_COLUMN_NAMES.get(name, name): value for name, value in fields.items()}
        values["updated_at"] = utcnow()
        result = self.session.connection().execute(
            update(Appointment)
            .where(Appointment.id == appointment_id)
            .where(Appointment.status.in_(sorted(expected_statuses)))
            .values(**values)
        )
        if result.rowcount != 1:
            if not self._in_transaction:
                self.session.rollback()
            logger.info(f"Appointment {appointment_id} left {sorted(expected_statuses)} before the write")
            if self.get(appointment_id) is None:
                raise NotFoundError("Appointment not found")
            raise InvalidTransitionError("Appointment was modified concurrently; please retry")
        if not self._in_transaction:
            self.session.commit()
        row = self.session.get(Appointment, appointment_id, populate_existing=True)
        return self._appt_to_dto(row)

    def count_for_doctor(self, doctor_id: str, date: Optional[str] = None, statuses: Optional[Iterable[str]] = None) -> int:
        query = select(func.count()).select_from(Appointment).where(Appointment.doctor_id == doctor_id)
        if date is not None:
            query = query.where(Appointment.appointment_date == date)
        if statuses is not None:
            query = query.where(Appointment.status.in_(sorted(statuses)))
        return self.session.exec(query).one()

    def list_reserving(self, doctor_id: str, date: str) -> List[AppointmentDto]:
        rows = self.session.exec(
            select(Appointment)
            .where(Appointment.doctor_id == doctor_id)
            .where(Appointment.appointment_date == date)
            .where(Appointment.status.in_(sorted(RESERVING_STATUSES)))
        ).all()
        return [self._appt_to_dto(r) for r in rows]

    def list_for_doctor_on(self, doctor_id: str, date: str) -> List[AppointmentDto]:
        rows = self.session.exec(
            select(Appointment)
            .where(Appointment.doctor_id == doctor_id)
            .where(Appointment.appointment_date == date)
            .order_by(Appointment.start_time.asc())
        ).all()
        return [self._appt_to_dto(r) for r in rows]

    def list_for_patient(self, patient_id: str, statuses: Optional[Iterable[str]] = None) -> List[AppointmentDto]:
        query = select(Appointment).where(Appointment.patient_id == patient_id)
        if statuses is not None:
            query = query.where(Appointment.status.in_(sorted(statuses)))
        rows = self.session.exec(
            query.order_by(Appointment.appointment_date.desc(), Appointment.start_time.desc())
        ).all()
        return [self._appt_to_dto(r) for r in rows]

    def get_doctor(self, doctor_id: str) -> Optional[DoctorDto]:
        d = self.session.exec(select(Doctor).where(Doctor.id == doctor_id)).first()
        return self._doctor_to_dto(d) if d else None

    def upsert_doctor(self, doctor: DoctorDto) -> DoctorDto:
        row = self.session.exec(select(Doctor).where(Doctor.id == doctor.id)).first()
        if row is None:
            row = Doctor(id=doctor.id, name=doctor.name)
        row.name = doctor.name
        row.email = doctor.email
        row.specialization = doctor.specialization
        row.updated_at = utcnow()
        self._save(row)
        return self._doctor_to_dto(row)

    @contextmanager
    def slot_transaction(self, doctor_id: str, date: str) -> Iterator[None]:
        if self._in_transaction:
            raise RuntimeError("slot transactions cannot be nested")
        self._in_transaction = True
        try:
            self._claim_doctor_day(doctor_id, date)
            yield
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise
        finally:
            self._in_transaction = False

    def _claim_doctor_day(self, doctor_id: str, date: str) -> None:
        lock = self.session.get(DoctorDayLock, (doctor_id, date), populate_existing=True)
        if lock is None:
            try:
                with self.session.begin_nested():
                    self.session.add(DoctorDayLock(doctor_id=doctor_id, appointment_date=date, version=0))
            except IntegrityError:
                logger.info(f"Day lock for doctor {doctor_id} on {date} was created concurrently")
            lock = self.session.get(DoctorDayLock, (doctor_id, date), populate_existing=True)
        if not self._compare_and_swap(doctor_id, date, lock.version):
            logger.info(f"Day lock for doctor {doctor_id} on {date} moved past version {lock.version}")
            raise ConflictError("Slot was modified concurrently; please retry")

    def _compare_and_swap(self, doctor_id: str, date: str, expected_version: int) -> bool:
        result = self.session.connection().execute(
            update(DoctorDayLock)
            .where(DoctorDayLock.doctor_id == doctor_id)
            .where(DoctorDayLock.appointment_date == date)
            .where(DoctorDayLock.version == expected_version)
            .values(version=expected_version + 1)
        )
        return result.rowcount == 1
