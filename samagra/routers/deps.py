from fastapi import BackgroundTasks, Depends, Request
from sqlmodel import Session

from ..application.ports.identity_provider import Identity
from ..application.services.appointment_queries import AppointmentQueries
from ..application.services.appointments_service import AppointmentsService
from ..application.services.doctor_service import DoctorService
from ..database import get_session
from ..infrastructure.identity import require_role
from ..infrastructure.notifications import BackgroundNotifier
from ..infrastructure.persistence.sqlalchemy.repositories.appointments_repository_sql import SqlAppointmentsRepository

PATIENT = "patient"
DOCTOR = "doctor"


def get_identity(request: Request) -> Identity:
    return request.app.state.identity_resolver.resolve(request.headers)


def get_patient(identity: Identity = Depends(get_identity)) -> Identity:
    return require_role(identity, PATIENT)


def get_doctor(identity: Identity = Depends(get_identity)) -> Identity:
    return require_role(identity, DOCTOR)


def get_participant(identity: Identity = Depends(get_identity)) -> Identity:
    return require_role(identity, PATIENT, DOCTOR)


def get_repository(session: Session = Depends(get_session)) -> SqlAppointmentsRepository:
    return SqlAppointmentsRepository(session)


def get_appointments_service(
    request: Request,
    background_tasks: BackgroundTasks,
    repo: SqlAppointmentsRepository = Depends(get_repository),
) -> AppointmentsService:
    state = request.app.state
    return AppointmentsService(
        repo=repo,
        notifier=BackgroundNotifier(background_tasks, state.notifier),
        audit=state.audit_logger,
        check_recurrence_availability=state.settings.RECURRENCE_CHECK_AVAILABILITY,
    )


def get_appointment_queries(repo: SqlAppointmentsRepository = Depends(get_repository)) -> AppointmentQueries:
    return AppointmentQueries(repo)


def get_doctor_service(repo: SqlAppointmentsRepository = Depends(get_repository)) -> DoctorService:
    return DoctorService(repo)
