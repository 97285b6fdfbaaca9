import copy
import random
from contextlib import contextmanager

import pytest

from samagra.application.ports.appointments_repo import AppointmentDto, DoctorDto
from samagra.application.services.appointment_queries import AppointmentQueries
from samagra.application.services.appointments_service import AppointmentsService
from samagra.application.services.doctor_service import DoctorService
from samagra.application.ports.identity_provider import Identity
from samagra.domain.status import RESERVING_STATUSES
from samagra.exceptions import (
    AuthorizationError,
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)


class FakeApptRepo:
    def __init__(self):
        self.appts = {}
        self.doctors = {"doc-1": DoctorDto(id="doc-1", name="Dr. Rao", email="rao@example.com")}
        self.transactions = []
        # one undo log per open slot transaction; writers may interleave
        self._undo_logs = []

    def _record(self, appointment_id):
        if self._undo_logs:
            previous = self.appts.get(appointment_id)
            self._undo_logs[-1].append((appointment_id, copy.copy(previous) if previous else None))

    def get(self, appointment_id):
        a = self.appts.get(appointment_id)
        return copy.copy(a) if a else None

    def add(self, appointment):
        self._record(appointment.id)
        self.appts[appointment.id] = copy.copy(appointment)
        return copy.copy(appointment)

    def transition(self, appointment_id, expected_statuses, **fields):
        a = self.appts.get(appointment_id)
        if not a:
            raise NotFoundError("Appointment not found")
        if a.status not in expected_statuses:
            raise InvalidTransitionError("Appointment was modified concurrently; please retry")
        self._record(appointment_id)
        for name, value in fields.items():
            setattr(a, name, value)
        return copy.copy(a)

    def count_for_doctor(self, doctor_id, date=None, statuses=None):
        return sum(
            1 for a in self.appts.values()
            if a.doctor_id == doctor_id
            and (date is None or a.date == date)
            and (statuses is None or a.status in statuses)
        )

    def list_reserving(self, doctor_id, date):
        return [
            copy.copy(a) for a in self.appts.values()
            if a.doctor_id == doctor_id and a.date == date and a.status in RESERVING_STATUSES
        ]

    def list_for_doctor_on(self, doctor_id, date):
        rows = [a for a in self.appts.values() if a.doctor_id == doctor_id and a.date == date]
        return sorted(rows, key=lambda a: a.start_time)

    def list_for_patient(self, patient_id, statuses=None):
        rows = [
            a for a in self.appts.values()
            if a.patient_id == patient_id and (statuses is None or a.status in statuses)
        ]
        return sorted(rows, key=lambda a: (a.date, a.start_time), reverse=True)

    def get_doctor(self, doctor_id):
        return self.doctors.get(doctor_id)

    def upsert_doctor(self, doctor):
        self.doctors[doctor.id] = doctor
        return doctor

    @contextmanager
    def slot_transaction(self, doctor_id, date):
        self.transactions.append((doctor_id, date))
        undo = []
        self._undo_logs.append(undo)
        try:
            yield
        except Exception:
            for appointment_id, previous in reversed(undo):
                if previous is None:
                    self.appts.pop(appointment_id, None)
                else:
                    self.appts[appointment_id] = previous
            raise
        finally:
            self._undo_logs = [log for log in self._undo_logs if log is not undo]


class FakeNotifier:
    def __init__(self, fail=False):
        self.sent = []
        self.fail = fail

    def notify(self, recipient, subject, body):
        if self.fail:
            raise RuntimeError("smtp down")
        self.sent.append((recipient, subject))


class FakeAudit:
    def __init__(self):
        self.entries = []

    def log(self, action, appointment_id, actor_id=None, from_status=None, to_status=None, details=None):
        self.entries.append((action, appointment_id, from_status, to_status))


def _service(repo=None, notifier=None, **kwargs):
    return AppointmentsService(
        repo=repo or FakeApptRepo(),
        notifier=notifier or FakeNotifier(),
        audit=FakeAudit(),
        **kwargs,
    )


def _book(svc, date="2025-03-10", start="09:00", end="09:30", **kwargs):
    return svc.create("pat-1", "doc-1", date, start, end, reason="checkup", **kwargs)


def test_create_requests_slot_and_notifies_doctor():
    svc = _service()
    appt = _book(svc)
    assert appt.status == "requested"
    assert appt.created_by == "patient"
    assert appt.reason == "checkup"
    assert svc.repo.transactions == [("doc-1", "2025-03-10")]
    assert svc.notifier.sent == [("rao@example.com", "New Appointment Request")]
    assert svc.audit.entries[0][0] == "appointment.created"


def test_duplicate_booking_conflicts():
    svc = _service()
    _book(svc)
    with pytest.raises(ConflictError):
        _book(svc)
    with pytest.raises(ConflictError):
        _book(svc, start="09:15", end="09:45")
    assert len(svc.repo.appts) == 1


def test_adjacent_booking_succeeds():
    svc = _service()
    _book(svc)
    second = _book(svc, start="09:30", end="10:00")
    assert second.status == "requested"


@pytest.mark.parametrize("args", [
    ("pat-1", None, "2025-03-10", "09:00", "09:30"),
    ("pat-1", "doc-1", "10-03-2025", "09:00", "09:30"),
    ("pat-1", "doc-1", "2025-03-10", "9:00", "09:30"),
    ("pat-1", "doc-1", "2025-03-10", "10:00", "09:30"),
])
def test_create_rejects_bad_input(args):
    svc = _service()
    with pytest.raises(ValidationError):
        svc.create(*args)
    assert svc.repo.appts == {}


def test_create_rejects_unknown_recurrence_type():
    with pytest.raises(ValidationError):
        _book(_service(), is_recurring=True, recurrence_type="monthly")


def test_create_requires_existing_doctor():
    svc = _service()
    with pytest.raises(NotFoundError):
        svc.create("pat-1", "doc-missing", "2025-03-10", "09:00", "09:30")


def test_notification_failure_does_not_fail_booking():
    svc = _service(notifier=FakeNotifier(fail=True))
    appt = _book(svc)
    assert svc.repo.get(appt.id).status == "requested"


def test_doctor_without_email_is_not_notified():
    repo = FakeApptRepo()
    repo.doctors["doc-1"] = DoctorDto(id="doc-1", name="Dr. Rao")
    svc = _service(repo=repo)
    _book(svc)
    assert svc.notifier.sent == []


def test_update_status_walks_lifecycle():
    svc = _service()
    appt = _book(svc)
    assert svc.update_status("doc-1", appt.id, "approved").status == "approved"
    assert svc.update_status("doc-1", appt.id, "completed").status == "completed"
    with pytest.raises(InvalidTransitionError):
        svc.update_status("doc-1", appt.id, "cancelled")


def test_update_status_checks_ownership_before_status_value():
    svc = _service()
    appt = _book(svc)
    with pytest.raises(AuthorizationError):
        svc.update_status("doc-2", appt.id, "approved")
    with pytest.raises(AuthorizationError):
        svc.update_status("doc-2", appt.id, "bogus")
    with pytest.raises(NotFoundError):
        svc.update_status("doc-1", "missing", "approved")


def test_update_status_rejects_unknown_and_non_settable_values():
    svc = _service()
    appt = _book(svc)
    for status in ("bogus", "requested", "blocked", "rescheduled"):
        with pytest.raises(ValidationError):
            svc.update_status("doc-1", appt.id, status)


def test_cancelling_releases_the_slot():
    svc = _service()
    appt = _book(svc)
    svc.update_status("doc-1", appt.id, "cancelled")
    assert _book(svc).status == "requested"


def test_attach_report_forces_completed():
    svc = _service()
    appt = _book(svc)
    updated = svc.attach_report("doc-1", appt.id, "All clear")
    assert updated.report == "All clear"
    assert updated.status == "completed"


def test_attach_report_validation_and_sources():
    svc = _service()
    appt = _book(svc)
    with pytest.raises(ValidationError):
        svc.attach_report("doc-1", appt.id, "   ")
    with pytest.raises(AuthorizationError):
        svc.attach_report("doc-2", appt.id, "notes")
    svc.update_status("doc-1", appt.id, "cancelled")
    with pytest.raises(InvalidTransitionError):
        svc.attach_report("doc-1", appt.id, "notes")


def test_reschedule_links_original_and_successor():
    svc = _service()
    appt = _book(svc, is_recurring=True, recurrence_type="weekly")
    original, successor = svc.reschedule("doc-1", appt.id, "2025-03-12", "11:00", "11:30")

    assert original.status == "rescheduled"
    assert original.rescheduled_to == successor.id
    assert successor.status == "requested"
    assert successor.rescheduled_from == appt.id
    assert successor.parent_appointment_id == appt.id
    assert (successor.date, successor.start_time, successor.end_time) == ("2025-03-12", "11:00", "11:30")
    assert successor.patient_id == "pat-1"
    assert successor.reason == "checkup"
    assert successor.recurrence_type == "weekly"
    assert svc.repo.transactions[-1] == ("doc-1", "2025-03-12")


def test_reschedule_into_occupied_slot_leaves_original_untouched():
    svc = _service()
    appt = _book(svc)
    _book(svc, date="2025-03-12", start="11:00", end="11:30")
    with pytest.raises(ConflictError):
        svc.reschedule("doc-1", appt.id, "2025-03-12", "11:15", "11:45")
    assert svc.repo.get(appt.id).status == "requested"
    assert svc.repo.get(appt.id).rescheduled_to is None
    assert len(svc.repo.appts) == 2


def test_reschedule_to_own_slot_conflicts_with_itself():
    svc = _service()
    appt = _book(svc)
    with pytest.raises(ConflictError):
        svc.reschedule("doc-1", appt.id, "2025-03-10", "09:00", "09:30")


def test_reschedule_requires_open_appointment():
    svc = _service()
    appt = _book(svc)
    svc.reschedule("doc-1", appt.id, "2025-03-11", "09:00", "09:30")
    with pytest.raises(InvalidTransitionError):
        svc.reschedule("doc-1", appt.id, "2025-03-12", "09:00", "09:30")
    with pytest.raises(ValidationError):
        svc.reschedule("doc-1", appt.id, "2025-03-12", "10:00", "09:00")


def test_generate_recurrence_creates_next_week_child():
    svc = _service()
    appt = _book(svc, date="2025-01-29", is_recurring=True, recurrence_type="weekly")
    svc.attach_report("doc-1", appt.id, "notes")

    child = svc.generate_recurrence("doc-1", appt.id)
    assert child.date == "2025-02-05"
    assert (child.start_time, child.end_time) == ("09:00", "09:30")
    assert child.status == "requested"
    assert child.parent_appointment_id == appt.id
    assert child.report is None
    assert child.rescheduled_from is None
    assert child.is_recurring is True


def test_generate_recurrence_requires_weekly_source():
    svc = _service()
    appt = _book(svc)
    with pytest.raises(ValidationError):
        svc.generate_recurrence("doc-1", appt.id)
    with pytest.raises(AuthorizationError):
        svc.generate_recurrence("doc-2", appt.id)


def test_generate_recurrence_availability_check_is_configurable():
    repo = FakeApptRepo()
    unchecked = _service(repo=repo)
    appt = _book(unchecked, is_recurring=True, recurrence_type="weekly")
    _book(unchecked, date="2025-03-17")

    assert unchecked.generate_recurrence("doc-1", appt.id).date == "2025-03-17"

    checked = _service(repo=repo, check_recurrence_availability=True)
    with pytest.raises(ConflictError):
        checked.generate_recurrence("doc-1", appt.id)


def test_block_calendar_reserves_time():
    svc = _service()
    block = svc.block_calendar("doc-1", "2025-03-10", "12:00", "13:00")
    assert block.status == "blocked"
    assert block.patient_id is None
    assert block.created_by == "doctor"
    assert block.reason == "Doctor unavailable"
    with pytest.raises(ConflictError):
        _book(svc, start="12:30", end="12:45")


def test_block_calendar_keeps_given_reason_and_validates_range():
    svc = _service()
    assert svc.block_calendar("doc-1", "2025-03-10", "12:00", "13:00", "Surgery").reason == "Surgery"
    with pytest.raises(ValidationError):
        svc.block_calendar("doc-1", "2025-03-10", "13:00", "12:00")


def test_patient_views_filter_by_status():
    svc = _service()
    queries = AppointmentQueries(svc.repo)
    a = _book(svc, date="2025-03-10")
    b = _book(svc, date="2025-03-11")
    c = _book(svc, date="2025-03-12")
    svc.update_status("doc-1", b.id, "approved")
    svc.update_status("doc-1", c.id, "cancelled")
    _, moved = svc.reschedule("doc-1", a.id, "2025-03-20", "09:00", "09:30")

    assert [x.id for x in queries.patient_appointments("pat-1")] == [moved.id, c.id, b.id, a.id]
    assert {x.id for x in queries.patient_appointments("pat-1", "upcoming")} == {moved.id, b.id}
    assert [x.id for x in queries.patient_history("pat-1")] == [c.id]
    assert [x.id for x in queries.patient_appointments("pat-1", "rescheduled")] == [a.id]
    with pytest.raises(ValidationError):
        queries.patient_appointments("pat-1", "future")
    assert queries.patient_appointments("pat-unknown") == []


def test_doctor_schedule_orders_by_start_time():
    svc = _service()
    queries = AppointmentQueries(svc.repo)
    late = _book(svc, start="15:00", end="15:30")
    block = svc.block_calendar("doc-1", "2025-03-10", "08:00", "09:00")
    early = _book(svc, start="09:00", end="09:30")
    assert [x.id for x in queries.doctor_schedule("doc-1", "2025-03-10")] == [block.id, early.id, late.id]
    with pytest.raises(ValidationError):
        queries.doctor_schedule("doc-1", "tomorrow")


def test_get_appointment_is_limited_to_participants():
    svc = _service()
    queries = AppointmentQueries(svc.repo)
    appt = _book(svc)
    assert queries.get_appointment(Identity("pat-1", "patient"), appt.id).id == appt.id
    assert queries.get_appointment(Identity("doc-1", "doctor"), appt.id).id == appt.id
    with pytest.raises(AuthorizationError):
        queries.get_appointment(Identity("pat-2", "patient"), appt.id)
    with pytest.raises(NotFoundError):
        queries.get_appointment(Identity("pat-1", "patient"), "missing")


def test_reschedule_details_follow_link():
    svc = _service()
    queries = AppointmentQueries(svc.repo)
    appt = _book(svc)
    original, successor = queries.reschedule_details(Identity("pat-1", "patient"), appt.id)
    assert successor is None
    _, moved = svc.reschedule("doc-1", appt.id, "2025-03-11", "09:00", "09:30")
    original, successor = queries.reschedule_details(Identity("pat-1", "patient"), appt.id)
    assert original.status == "rescheduled"
    assert successor.id == moved.id


def test_doctor_profile_upsert_and_lookup():
    repo = FakeApptRepo()
    svc = DoctorService(repo)
    with pytest.raises(ValidationError):
        svc.update_profile("doc-9", None, None, None)
    created = svc.update_profile("doc-9", "Dr. Iyer", "iyer@example.com", "Cardiology")
    assert created.email == "iyer@example.com"
    updated = svc.update_profile("doc-9", None, None, "Neurology")
    assert (updated.name, updated.email, updated.specialization) == ("Dr. Iyer", "iyer@example.com", "Neurology")
    with pytest.raises(ValidationError):
        svc.update_profile("doc-9", None, "not-an-email", None)
    with pytest.raises(NotFoundError):
        svc.get_profile("doc-missing")


class InterleavingRepo(FakeApptRepo):
    """Runs a competing writer at a chosen point of the next call."""

    def __init__(self):
        super().__init__()
        self.before_add = None
        self.after_get = None

    def add(self, appointment):
        hook, self.before_add = self.before_add, None
        if hook:
            hook()
        return super().add(appointment)

    def get(self, appointment_id):
        a = super().get(appointment_id)
        hook, self.after_get = self.after_get, None
        if hook:
            hook()
        return a


def test_racing_reschedules_keep_a_single_successor():
    repo = InterleavingRepo()
    svc = _service(repo=repo)
    appt = _book(svc)
    svc.update_status("doc-1", appt.id, "approved")

    # the second reschedule commits while the first is between its read and its write
    repo.before_add = lambda: svc.reschedule("doc-1", appt.id, "2025-03-12", "11:00", "11:30")
    with pytest.raises(InvalidTransitionError):
        svc.reschedule("doc-1", appt.id, "2025-03-11", "11:00", "11:30")

    children = [a for a in repo.appts.values() if a.parent_appointment_id == appt.id]
    assert len(children) == 1
    assert children[0].date == "2025-03-12"
    assert repo.get(appt.id).rescheduled_to == children[0].id
    assert repo.list_reserving("doc-1", "2025-03-11") == []


def test_stale_cancel_does_not_overwrite_reschedule():
    repo = InterleavingRepo()
    svc = _service(repo=repo)
    appt = _book(svc)
    svc.update_status("doc-1", appt.id, "approved")

    repo.after_get = lambda: svc.reschedule("doc-1", appt.id, "2025-03-12", "11:00", "11:30")
    with pytest.raises(InvalidTransitionError):
        svc.update_status("doc-1", appt.id, "cancelled")

    original = repo.get(appt.id)
    assert original.status == "rescheduled"
    assert original.rescheduled_to is not None


def test_stale_report_does_not_revive_cancelled_visit():
    repo = InterleavingRepo()
    svc = _service(repo=repo)
    appt = _book(svc)

    repo.after_get = lambda: svc.update_status("doc-1", appt.id, "cancelled")
    with pytest.raises(InvalidTransitionError):
        svc.attach_report("doc-1", appt.id, "notes")
    assert repo.get(appt.id).status == "cancelled"
    assert repo.get(appt.id).report is None


def test_failed_original_update_discards_successor():
    repo = FakeApptRepo()
    svc = _service(repo=repo)
    appt = _book(svc)

    def broken_transition(appointment_id, expected_statuses, **fields):
        raise RuntimeError("write failed")

    repo.transition = broken_transition
    with pytest.raises(RuntimeError):
        svc.reschedule("doc-1", appt.id, "2025-03-12", "11:00", "11:30")
    assert list(repo.appts) == [appt.id]
    assert repo.get(appt.id).status == "requested"


def _assert_no_overlap(repo):
    by_day = {}
    for a in repo.appts.values():
        if a.status in RESERVING_STATUSES:
            by_day.setdefault((a.doctor_id, a.date), []).append(a)
    for rows in by_day.values():
        rows.sort(key=lambda a: a.start_time)
        for earlier, later in zip(rows, rows[1:]):
            assert earlier.end_time <= later.start_time, (earlier, later)


def test_reserving_intervals_never_overlap_after_mixed_operations():
    rng = random.Random(20250310)
    repo = FakeApptRepo()
    repo.doctors["doc-2"] = DoctorDto(id="doc-2", name="Dr. Iyer")
    svc = _service(repo=repo)
    dates = ["2025-03-10", "2025-03-11", "2025-03-12"]
    starts = ["08:00", "08:30", "09:00", "09:15", "09:30", "10:00", "10:45", "11:00"]

    # blocks skip the availability check, so they go in before any booking
    for doctor_id in ("doc-1", "doc-2"):
        svc.block_calendar(doctor_id, dates[0], "12:00", "13:00")

    for _ in range(300):
        op = rng.choice(["create", "create", "reschedule", "cancel"])
        doctor_id = rng.choice(["doc-1", "doc-2"])
        date = rng.choice(dates)
        start = rng.choice(starts)
        end = f"{int(start[:2]) + rng.choice([0, 1]):02d}:{'59' if start[3:] == '00' else '45'}"
        try:
            if op == "create":
                svc.create("pat-1", doctor_id, date, start, end)
            else:
                candidates = [
                    a for a in repo.appts.values()
                    if a.status in ("requested", "approved") and a.patient_id
                ]
                if not candidates:
                    continue
                target = rng.choice(candidates)
                if op == "reschedule":
                    svc.reschedule(target.doctor_id, target.id, date, start, end)
                else:
                    svc.update_status(target.doctor_id, target.id, "cancelled")
        except (ConflictError, ValidationError):
            pass
        _assert_no_overlap(repo)

    assert any(a.status == "rescheduled" for a in repo.appts.values())


def test_doctor_dashboard_counts():
    svc = _service()
    queries = AppointmentQueries(svc.repo)
    _book(svc, date="2025-03-10")
    b = _book(svc, date="2025-03-10", start="10:00", end="10:30")
    c = _book(svc, date="2025-03-11")
    svc.update_status("doc-1", b.id, "approved")
    svc.attach_report("doc-1", c.id, "notes")
    svc.block_calendar("doc-1", "2025-03-10", "12:00", "13:00")

    stats = queries.doctor_dashboard("doc-1", "2025-03-10")
    assert stats == {"today": 3, "upcoming": 2, "completed": 1}
    assert queries.doctor_dashboard("doc-9", "2025-03-10") == {"today": 0, "upcoming": 0, "completed": 0}
    with pytest.raises(ValidationError):
        queries.doctor_dashboard("doc-1", "today")
