from datetime import datetime, timezone
from fastapi import APIRouter, Depends, HTTPException, Query
import logging

from ..application.ports.identity_provider import Identity
from ..application.services.appointment_queries import AppointmentQueries
from ..application.services.appointments_service import AppointmentsService
from ..exceptions import AppError, create_success_response
from ..schemas.appointments import (
    AppointmentCreate,
    BlockCalendarRequest,
    ReportAttach,
    RescheduleRequest,
    StatusUpdate,
    serialize,
    serialize_many,
)
from .deps import (
    get_appointment_queries,
    get_appointments_service,
    get_doctor,
    get_participant,
    get_patient,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/appointments", tags=["Appointments"])


@router.post("")
def create_appointment(
    body: AppointmentCreate,
    patient: Identity = Depends(get_patient),
    appt_service: AppointmentsService = Depends(get_appointments_service),
):
    try:
        appt = appt_service.create(
            patient_id=patient.id,
            doctor_id=body.doctor_id,
            date=body.date,
            start_time=body.start_time,
            end_time=body.end_time,
            reason=body.reason,
            is_recurring=body.is_recurring,
            recurrence_type=body.recurrence_type,
        )
        return create_success_response(
            message="Appointment requested",
            appointmentId=appt.id,
            appointment=serialize(appt),
        )
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error booking appointment: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to book appointment")


@router.get("/doctor/dashboard")
def get_doctor_dashboard(
    doctor: Identity = Depends(get_doctor),
    queries: AppointmentQueries = Depends(get_appointment_queries),
):
    try:
        today = datetime.now(timezone.utc).date().isoformat()
        return create_success_response(stats=queries.doctor_dashboard(doctor.id, today))
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error building dashboard for doctor {doctor.id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to retrieve dashboard")


@router.get("/doctor")
def get_doctor_appointments_by_date(
    date: str = Query(...),
    doctor: Identity = Depends(get_doctor),
    queries: AppointmentQueries = Depends(get_appointment_queries),
):
    try:
        appts = queries.doctor_schedule(doctor.id, date)
        return create_success_response(count=len(appts), appointments=serialize_many(appts))
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error retrieving schedule for doctor {doctor.id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to retrieve appointments")


@router.get("/me")
def get_my_appointments(
    kind: str = Query("all", alias="type"),
    patient: Identity = Depends(get_patient),
    queries: AppointmentQueries = Depends(get_appointment_queries),
):
    try:
        appts = queries.patient_appointments(patient.id, kind)
        return create_success_response(count=len(appts), appointments=serialize_many(appts))
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error retrieving appointments: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to retrieve appointments")


@router.get("/history")
def get_appointment_history(
    patient: Identity = Depends(get_patient),
    queries: AppointmentQueries = Depends(get_appointment_queries),
):
    try:
        appts = queries.patient_history(patient.id)
        return create_success_response(count=len(appts), appointments=serialize_many(appts))
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error retrieving appointment history: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to retrieve appointment history")


@router.post("/block")
def block_doctor_calendar(
    body: BlockCalendarRequest,
    doctor: Identity = Depends(get_doctor),
    appt_service: AppointmentsService = Depends(get_appointments_service),
):
    try:
        appt = appt_service.block_calendar(doctor.id, body.date, body.start_time, body.end_time, body.reason)
        return create_success_response(message="Calendar blocked", appointmentId=appt.id)
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error blocking calendar: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to block calendar")


@router.get("/{appointment_id}")
def get_appointment(
    appointment_id: str,
    caller: Identity = Depends(get_participant),
    queries: AppointmentQueries = Depends(get_appointment_queries),
):
    try:
        appt = queries.get_appointment(caller, appointment_id)
        return create_success_response(appointment=serialize(appt))
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error retrieving appointment {appointment_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to retrieve appointment")


@router.put("/{appointment_id}/status")
def update_appointment_status(
    appointment_id: str,
    body: StatusUpdate,
    doctor: Identity = Depends(get_doctor),
    appt_service: AppointmentsService = Depends(get_appointments_service),
):
    try:
        appt = appt_service.update_status(doctor.id, appointment_id, body.status)
        return create_success_response(message="Status updated", appointment=serialize(appt))
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error updating appointment {appointment_id} status: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to update appointment status")


@router.put("/{appointment_id}/report")
def add_appointment_report(
    appointment_id: str,
    body: ReportAttach,
    doctor: Identity = Depends(get_doctor),
    appt_service: AppointmentsService = Depends(get_appointments_service),
):
    try:
        appt = appt_service.attach_report(doctor.id, appointment_id, body.report)
        return create_success_response(message="Report added", appointment=serialize(appt))
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error adding report to appointment {appointment_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to add report")


@router.post("/{appointment_id}/reschedule")
def reschedule_appointment(
    appointment_id: str,
    body: RescheduleRequest,
    doctor: Identity = Depends(get_doctor),
    appt_service: AppointmentsService = Depends(get_appointments_service),
):
    try:
        original, successor = appt_service.reschedule(
            doctor.id, appointment_id, body.new_date, body.new_start_time, body.new_end_time
        )
        return create_success_response(
            message="Appointment rescheduled",
            newAppointmentId=successor.id,
            originalAppointment=serialize(original),
            rescheduledAppointment=serialize(successor),
        )
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error rescheduling appointment {appointment_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to reschedule appointment")


@router.get("/{appointment_id}/reschedule")
def get_rescheduled_appointment(
    appointment_id: str,
    caller: Identity = Depends(get_participant),
    queries: AppointmentQueries = Depends(get_appointment_queries),
):
    try:
        original, successor = queries.reschedule_details(caller, appointment_id)
        return create_success_response(
            originalAppointment=serialize(original),
            rescheduledAppointment=serialize(successor),
        )
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error retrieving reschedule details for {appointment_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to retrieve reschedule details")


@router.post("/{appointment_id}/recurrence")
def generate_weekly_appointment(
    appointment_id: str,
    doctor: Identity = Depends(get_doctor),
    appt_service: AppointmentsService = Depends(get_appointments_service),
):
    try:
        appt = appt_service.generate_recurrence(doctor.id, appointment_id)
        return create_success_response(appointmentId=appt.id, appointment=serialize(appt))
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Error generating recurrence for {appointment_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to generate recurring appointment")
