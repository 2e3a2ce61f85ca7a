from datetime import datetime

from src.attendance_engine.attendance_engine.attendance.model import StatusReport
from src.attendance_engine.attendance_engine.attendance.normalization import normalize_record
from src.attendance_engine.attendance_engine.core.enums import ReconcileAction
from src.attendance_engine.attendance_engine.session.model import SessionState
from src.attendance_engine.attendance_engine.session.status import StatusSynchronizer

BUDGET = 9 * 3600


def _open(record_id="7", day="2024-01-03", clock_in="2024-01-03T08:00:00"):
    return normalize_record({"id": record_id, "date": day, "clockIn": clock_in})


def _active(record_id="7", **changes):
    base = SessionState(
        employee_id="E1",
        is_active=True,
        active_record_id=record_id,
        login_timestamp=datetime(2024, 1, 3, 8, 0),
        remaining_seconds=12000,
    )
    return base.with_changes(**changes)


def test_adopts_todays_open_record_with_server_time_left(backend, fixed_now):
    sync = StatusSynchronizer(backend, budget_seconds=BUDGET)
    report = StatusReport(is_active=True, active_record=_open("9"), time_left_seconds=5000)

    outcome = sync.reconcile(_active("7"), report, now=fixed_now)

    assert outcome.action is ReconcileAction.ADOPT
    assert outcome.state.active_record_id == "9"
    assert outcome.state.remaining_seconds == 5000
    assert outcome.state.login_timestamp == datetime(2024, 1, 3, 8, 0)


def test_adopting_the_same_record_keeps_local_countdown(backend, fixed_now):
    sync = StatusSynchronizer(backend, budget_seconds=BUDGET)

    outcome = sync.reconcile(_active("7"), StatusReport(is_active=True, active_record=_open("7")), now=fixed_now)

    assert outcome.state.remaining_seconds == 12000


def test_adopting_a_new_record_derives_time_left_from_clock_in(backend, fixed_now):
    sync = StatusSynchronizer(backend, budget_seconds=BUDGET)
    state = SessionState.logged_out("E1", BUDGET)

    outcome = sync.reconcile(state, StatusReport(is_active=True, active_record=_open("7")), now=fixed_now)

    # Clocked in at 08:00, now is 09:00.
    assert outcome.state.remaining_seconds == BUDGET - 3600


def test_adopt_preserves_capture_in_flight(backend, fixed_now):
    sync = StatusSynchronizer(backend, budget_seconds=BUDGET)
    state = SessionState.logged_out("E1", BUDGET).with_changes(capture_in_flight=True)

    outcome = sync.reconcile(state, StatusReport(is_active=True, active_record=_open("7")), now=fixed_now)

    assert outcome.state.capture_in_flight


def test_foreign_day_record_clears(backend, fixed_now):
    sync = StatusSynchronizer(backend, budget_seconds=BUDGET)
    stale = _open("5", day="2024-01-02", clock_in="2024-01-02T08:00:00")

    outcome = sync.reconcile(_active("5"), StatusReport(is_active=True, active_record=stale), now=fixed_now)

    assert outcome.action is ReconcileAction.CLEAR


def test_no_active_record_with_capture_in_flight_keeps(backend, fixed_now):
    sync = StatusSynchronizer(backend, budget_seconds=BUDGET)
    state = SessionState.logged_out("E1", BUDGET).with_changes(capture_in_flight=True)

    outcome = sync.reconcile(state, StatusReport(is_active=False, active_record=None), now=fixed_now)

    assert outcome.action is ReconcileAction.KEEP


def test_no_active_record_while_locally_active_recovers(backend, fixed_now):
    sync = StatusSynchronizer(backend, budget_seconds=BUDGET)

    outcome = sync.reconcile(_active(), StatusReport(is_active=False, active_record=None), now=fixed_now)

    assert outcome.action is ReconcileAction.RECOVER


def test_no_active_record_while_logged_out_clears(backend, fixed_now):
    sync = StatusSynchronizer(backend, budget_seconds=BUDGET)

    outcome = sync.reconcile(SessionState.logged_out("E1"), StatusReport(is_active=False, active_record=None), now=fixed_now)

    assert outcome.action is ReconcileAction.CLEAR


def test_failure_keeps_self_consistent_cache(backend, today):
    sync = StatusSynchronizer(backend, budget_seconds=BUDGET)

    assert sync.reconcile_failure(_active(), today=today).action is ReconcileAction.KEEP


def test_failure_with_inconsistent_cache_recovers(backend, today):
    sync = StatusSynchronizer(backend, budget_seconds=BUDGET)
    stale = _active(login_timestamp=datetime(2024, 1, 2, 8, 0))
    missing_id = _active(active_record_id=None)

    assert sync.reconcile_failure(stale, today=today).action is ReconcileAction.RECOVER
    assert sync.reconcile_failure(missing_id, today=today).action is ReconcileAction.RECOVER


def test_poll_parses_backend_payload(backend):
    backend.add_row(id=7, employeeId="E1", date="2024-01-03", clockIn="2024-01-03T08:00:00")

    report = StatusSynchronizer(backend).poll("E1")

    assert report.is_active
    assert report.active_record.record_id == "7"
