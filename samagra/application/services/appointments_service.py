import logging
import uuid
from dataclasses import dataclass, replace
from typing import Optional, Tuple

from ...domain.status import (
    AppointmentStatus,
    CreatedBy,
    DOCTOR_SETTABLE_STATUSES,
    LEGAL_SOURCES,
    RecurrenceType,
    Transition,
    apply_transition,
    transition_for_status,
)
from ...domain.time_range import TimeRange, next_weekly_date
from ...exceptions import AuthorizationError, ConflictError, NotFoundError, ValidationError
from ..ports.appointments_repo import AppointmentsRepository, AppointmentDto
from ..ports.audit_logger import AuditLogger
from ..ports.notifier import Notifier
from .availability_service import AvailabilityService

logger = logging.getLogger(__name__)

DEFAULT_BLOCK_REASON = "Doctor unavailable"


def new_appointment_id() -> str:
    return str(uuid.uuid4())


@dataclass
class AppointmentsService:
    repo: AppointmentsRepository
    notifier: Notifier
    audit: AuditLogger
    check_recurrence_availability: bool = False

    @property
    def availability(self) -> AvailabilityService:
        return AvailabilityService(self.repo)

    def create(
        self,
        patient_id: str,
        doctor_id: Optional[str],
        date: str,
        start_time: str,
        end_time: str,
        reason: Optional[str] = None,
        is_recurring: bool = False,
        recurrence_type: str = RecurrenceType.NONE.value,
    ) -> AppointmentDto:
        if not doctor_id:
            raise ValidationError("Doctor ID required")
        slot = TimeRange.parse(date, start_time, end_time)
        if recurrence_type not in {r.value for r in RecurrenceType}:
            raise ValidationError("Invalid recurrence type. Must be one of: none, weekly")

        doctor = self.repo.get_doctor(doctor_id)
        if not doctor:
            raise NotFoundError("Doctor not found")

        with self.repo.slot_transaction(doctor_id, slot.date):
            self._ensure_available(doctor_id, slot)
            appt = self.repo.add(AppointmentDto(
                id=new_appointment_id(),
                patient_id=patient_id,
                doctor_id=doctor_id,
                date=slot.date,
                start_time=slot.start,
                end_time=slot.end,
                status=AppointmentStatus.REQUESTED.value,
                reason=reason or "",
                is_recurring=bool(is_recurring),
                recurrence_type=recurrence_type,
                created_by=CreatedBy.PATIENT.value,
            ))

        self.audit.log("appointment.created", appt.id, actor_id=patient_id, to_status=appt.status)
        self._notify_doctor(doctor.email, appt)
        return appt

    def update_status(self, doctor_id: str, appointment_id: str, status: str) -> AppointmentDto:
        appt = self._get_owned(doctor_id, appointment_id)
        if status not in DOCTOR_SETTABLE_STATUSES:
            raise ValidationError(f"Invalid status. Must be one of: {sorted(DOCTOR_SETTABLE_STATUSES)}")
        transition = transition_for_status(status)
        new_status = apply_transition(appt.status, transition)
        updated = self.repo.transition(appt.id, LEGAL_SOURCES[transition], status=new_status)
        self.audit.log("appointment.status_updated", appt.id, actor_id=doctor_id, from_status=appt.status, to_status=new_status)
        return updated

    def attach_report(self, doctor_id: str, appointment_id: str, report: Optional[str]) -> AppointmentDto:
        if not report or not str(report).strip():
            raise ValidationError("Report required")
        appt = self._get_owned(doctor_id, appointment_id)
        new_status = apply_transition(appt.status, Transition.ATTACH_REPORT)
        updated = self.repo.transition(
            appt.id, LEGAL_SOURCES[Transition.ATTACH_REPORT], report=report, status=new_status
        )
        self.audit.log("appointment.report_attached", appt.id, actor_id=doctor_id, from_status=appt.status, to_status=new_status)
        return updated

    def reschedule(self, doctor_id: str, appointment_id: str, new_date: str, new_start_time: str, new_end_time: str) -> Tuple[AppointmentDto, AppointmentDto]:
        """Move an appointment by creating its successor.

        Returns ``(original, successor)``. The successor is written before
        the original is marked rescheduled, and both writes share one
        transaction on the target doctor-day. The original is only marked
        while it is still requested or approved, so of two racing
        reschedules at most one keeps its successor.
        """
        slot = TimeRange.parse(new_date, new_start_time, new_end_time)
        original = self._get_owned(doctor_id, appointment_id)
        new_status = apply_transition(original.status, Transition.RESCHEDULE)

        with self.repo.slot_transaction(original.doctor_id, slot.date):
            self._ensure_available(original.doctor_id, slot)

            successor = self.repo.add(replace(
                original,
                id=new_appointment_id(),
                date=slot.date,
                start_time=slot.start,
                end_time=slot.end,
                status=AppointmentStatus.REQUESTED.value,
                parent_appointment_id=original.id,
                rescheduled_from=original.id,
                rescheduled_to=None,
                created_at=None,
                updated_at=None,
            ))
            updated = self.repo.transition(
                original.id, LEGAL_SOURCES[Transition.RESCHEDULE],
                status=new_status, rescheduled_to=successor.id,
            )

        self.audit.log(
            "appointment.rescheduled", original.id, actor_id=doctor_id,
            from_status=original.status, to_status=new_status,
            details={"rescheduled_to": successor.id, "date": slot.date, "start_time": slot.start, "end_time": slot.end},
        )
        return updated, successor

    def generate_recurrence(self, doctor_id: str, appointment_id: str) -> AppointmentDto:
        source = self._get_owned(doctor_id, appointment_id)
        if not source.is_recurring or source.recurrence_type != RecurrenceType.WEEKLY.value:
            raise ValidationError("Not weekly recurring")

        next_date = next_weekly_date(source.date)
        with self.repo.slot_transaction(source.doctor_id, next_date):
            if self.check_recurrence_availability:
                self._ensure_available(source.doctor_id, TimeRange(next_date, source.start_time, source.end_time))
            appt = self.repo.add(replace(
                source,
                id=new_appointment_id(),
                date=next_date,
                status=AppointmentStatus.REQUESTED.value,
                report=None,
                parent_appointment_id=source.id,
                rescheduled_to=None,
                rescheduled_from=None,
                created_at=None,
                updated_at=None,
            ))

        self.audit.log("appointment.recurrence_generated", appt.id, actor_id=doctor_id, to_status=appt.status, details={"parent_appointment_id": source.id})
        return appt

    def block_calendar(self, doctor_id: str, date: str, start_time: str, end_time: str, reason: Optional[str] = None) -> AppointmentDto:
        slot = TimeRange.parse(date, start_time, end_time)
        with self.repo.slot_transaction(doctor_id, slot.date):
            appt = self.repo.add(AppointmentDto(
                id=new_appointment_id(),
                patient_id=None,
                doctor_id=doctor_id,
                date=slot.date,
                start_time=slot.start,
                end_time=slot.end,
                status=AppointmentStatus.BLOCKED.value,
                reason=reason or DEFAULT_BLOCK_REASON,
                created_by=CreatedBy.DOCTOR.value,
            ))
        self.audit.log("calendar.blocked", appt.id, actor_id=doctor_id, to_status=appt.status)
        return appt

    def _get_owned(self, doctor_id: str, appointment_id: str) -> AppointmentDto:
        appt = self.repo.get(appointment_id)
        if not appt:
            raise NotFoundError("Appointment not found")
        if appt.doctor_id != doctor_id:
            raise AuthorizationError("Not your appointment")
        return appt

    def _ensure_available(self, doctor_id: str, slot: TimeRange) -> None:
        conflicts = self.availability.find_conflicts(doctor_id, slot.date, slot.start, slot.end)
        if conflicts:
            logger.info(
                f"Slot {slot.date} {slot.start}-{slot.end} for doctor {doctor_id} "
                f"conflicts with {[a.id for a in conflicts]}"
            )
            raise ConflictError("Time slot not available")

    def _notify_doctor(self, email: Optional[str], appt: AppointmentDto) -> None:
        if not email:
            logger.info(f"Doctor {appt.doctor_id} has no email on file; skipping notification")
            return
        body = (
            "<p>You have a new appointment request.</p>"
            f"<p><b>Date:</b> {appt.date}</p>"
            f"<p><b>Time:</b> {appt.start_time} - {appt.end_time}</p>"
        )
        try:
            self.notifier.notify(email, "New Appointment Request", body)
        except Exception as e:
            logger.warning(f"Appointment notification failed: {e}")
