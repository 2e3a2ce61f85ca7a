from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional

from ..attendance.history import AttendanceHistory, HistoryLoader
from ..attendance.model import AttendanceRecord
from ..attendance.normalization import MalformedRecord, normalize_record
from ..attendance.repository import AttendanceGateway
from ..common.datetime_utils import format_hours_worked, now_local
from ..common.validators import require_non_empty
from ..core.constants import DEFAULT_LOCATION, DEFAULT_WORK_BUDGET_SECONDS
from ..core.enums import (
    AttendanceStatus,
    CaptureFailure,
    CaptureKind,
    NoticeLevel,
    ReconcileAction,
    SessionPhase,
    UserActionKind,
)
from ..core.exceptions import CaptureError, NoActiveRecord, RemoteError
from .capture import CaptureController, CapturedImage
from .countdown import CountdownTimer
from .events import CacheLoaded, HistoryCompleted, PollCompleted, SessionEvent, UserAction
from .model import Notice, SessionState, SessionSummary, SessionView, UiState
from .recovery import RecoveryResolver
from .status import Reconciliation, StatusSynchronizer
from .store import SessionStore

logger = logging.getLogger(__name__)

NO_ACTIVE_RECORD = NoActiveRecord.__name__


def _error_kind(exc: Exception) -> str:
    if isinstance(exc, CaptureError):
        return exc.failure.value
    return exc.__class__.__name__


class SessionStateMachine:
    """Check-in / check-out protocol for one employee.

    The machine is the only writer of ``SessionState``. Everything that can
    change the session arrives through ``dispatch`` as one of four events:
    the cache being loaded, a status poll result, a history result, or a user
    action. While a capture is pending, poll and history results are
    discarded so they cannot clobber the in-progress transition.

    Failures never escape: the machine settles in ``LoggedOut`` or
    ``LoggedIn`` and leaves a dismissible ``Notice`` for the UI.
    """

    def __init__(
        self,
        employee_id: str,
        *,
        gateway: AttendanceGateway,
        store: SessionStore,
        history: HistoryLoader,
        synchronizer: StatusSynchronizer,
        resolver: RecoveryResolver,
        capture: CaptureController,
        clock: Callable[[], datetime] = now_local,
        budget_seconds: int = DEFAULT_WORK_BUDGET_SECONDS,
        default_location: str = DEFAULT_LOCATION,
    ):
        self._employee_id = require_non_empty(employee_id, "employee_id")
        self._gateway = gateway
        self._store = store
        self._history_loader = history
        self._synchronizer = synchronizer
        self._resolver = resolver
        self._capture = capture
        self._clock = clock
        self._budget_seconds = int(budget_seconds)
        self._default_location = default_location

        self._phase = SessionPhase.LOGGED_OUT
        self._state = SessionState.logged_out(self._employee_id, self._budget_seconds)
        self._ui = UiState()
        self._history = AttendanceHistory()
        self._pending_location: Optional[str] = None
        self._timer = CountdownTimer(self._on_tick, clock=clock)

    # ------------------------------------------------------------------ read

    @property
    def employee_id(self) -> str:
        return self._employee_id

    @property
    def phase(self) -> SessionPhase:
        return self._phase

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def history(self) -> AttendanceHistory:
        return self._history

    @property
    def countdown_running(self) -> bool:
        return self._timer.running

    def view(self) -> SessionView:
        return SessionView(
            phase=self._phase,
            is_active=self._state.is_active,
            remaining_seconds=self._state.remaining_seconds,
            login_time=self._state.login_timestamp,
            camera_open=self._ui.camera_open,
            pending_capture=self._ui.pending_capture,
            notice=self._ui.notice,
            record_id=self._state.active_record_id,
        )

    def take_summary(self) -> Optional[SessionSummary]:
        """Return the last check-out summary once; later calls get None."""
        summary, self._ui.summary = self._ui.summary, None
        return summary

    # ---------------------------------------------------------------- drive

    def start(self) -> None:
        self.dispatch(CacheLoaded(self._store.load()))
        self.refresh()

    def refresh(self) -> None:
        try:
            poll = PollCompleted(report=self._synchronizer.poll(self._employee_id))
        except RemoteError as exc:
            poll = PollCompleted(error=exc)
        self.dispatch(poll)

        try:
            loaded = HistoryCompleted(history=self._history_loader.fetch(self._employee_id))
        except RemoteError as exc:
            loaded = HistoryCompleted(error=exc)
        self.dispatch(loaded)

    def pump(self) -> int:
        """Apply countdown ticks that elapsed since the last call."""
        self._timer.catch_up()
        return self._state.remaining_seconds

    def request_check_in(self, location: Optional[str] = None) -> None:
        self.dispatch(UserAction(UserActionKind.REQUEST_CHECK_IN, location=location))

    def request_check_out(self) -> None:
        self.dispatch(UserAction(UserActionKind.REQUEST_CHECK_OUT))

    def capture(self) -> None:
        self.dispatch(UserAction(UserActionKind.CAPTURE))

    def cancel(self) -> None:
        self.dispatch(UserAction(UserActionKind.CANCEL))

    def dismiss_notice(self) -> None:
        self.dispatch(UserAction(UserActionKind.DISMISS_NOTICE))

    def dispatch(self, event: SessionEvent) -> None:
        if isinstance(event, CacheLoaded):
            self._on_cache_loaded(event.state)
        elif isinstance(event, PollCompleted):
            self._on_poll(event)
        elif isinstance(event, HistoryCompleted):
            self._on_history(event)
        elif isinstance(event, UserAction):
            self._on_user_action(event)
        else:
            raise TypeError(f"Unknown session event: {event!r}")

    # --------------------------------------------------------------- events

    @property
    def _capture_pending(self) -> bool:
        return self._ui.pending_capture is not None

    def _on_cache_loaded(self, state: SessionState) -> None:
        if state.employee_id != self._employee_id:
            state = SessionState.logged_out(self._employee_id, self._budget_seconds)
        if state.capture_in_flight:
            # A capture never survives a restart.
            state = state.with_changes(capture_in_flight=False)

        if state.is_active:
            self._enter_logged_in(state)
        else:
            self._state = state
            self._phase = SessionPhase.LOGGED_OUT
            self._timer.stop()

    def _on_poll(self, event: PollCompleted) -> None:
        if self._capture_pending:
            logger.info("Discarding status poll for %s: capture in progress", self._employee_id)
            return

        now = self._clock()
        if event.error is not None:
            logger.warning("Status poll failed for %s: %s", self._employee_id, event.error)
            outcome = self._synchronizer.reconcile_failure(self._state, today=now.date())
        else:
            outcome = self._synchronizer.reconcile(self._state, event.report, now=now)
        self._apply(outcome, now)

    def _apply(self, outcome: Reconciliation, now: datetime) -> None:
        logger.info("Reconcile %s for %s: %s", outcome.action.value, self._employee_id, outcome.reason)
        if outcome.action is ReconcileAction.ADOPT:
            self._enter_logged_in(outcome.state)
        elif outcome.action is ReconcileAction.CLEAR:
            if self._state.is_active:
                self._reset(Notice(NoticeLevel.WARNING, "Your session is no longer active on the server.", NO_ACTIVE_RECORD))
        elif outcome.action is ReconcileAction.RECOVER:
            self._recover(now)

    def _on_history(self, event: HistoryCompleted) -> None:
        if event.error is not None:
            logger.warning("History fetch failed for %s: %s", self._employee_id, event.error)
            self._notify(NoticeLevel.WARNING, "Attendance history is unavailable right now.", _error_kind(event.error), replace=False)
            return

        history = event.history
        self._history = history
        if history.degraded:
            self._notify(NoticeLevel.INFO, "Showing saved attendance history while offline.", "NetworkFailure", replace=False)
            return
        if self._capture_pending:
            return

        now = self._clock()
        if self._phase is SessionPhase.LOGGED_IN and self._state.active_record_id is not None:
            linked = history.get(self._state.active_record_id)
            if linked is not None and linked.clock_out is not None:
                self._reset(Notice(NoticeLevel.INFO, "This session was already checked out.", NO_ACTIVE_RECORD))
        elif self._phase is SessionPhase.LOGGED_OUT:
            record = history.open_record_on(now.date())
            if record is not None:
                logger.info("Relinking %s to open record %s from history", self._employee_id, record.record_id)
                self._enter_logged_in(self._synchronizer.adopt(self._state, record, now=now))

    def _on_user_action(self, action: UserAction) -> None:
        if action.kind is UserActionKind.REQUEST_CHECK_IN:
            self._request_check_in(action.location)
        elif action.kind is UserActionKind.REQUEST_CHECK_OUT:
            self._request_check_out()
        elif action.kind is UserActionKind.CAPTURE:
            self._take_capture()
        elif action.kind is UserActionKind.CANCEL:
            if self._capture_pending:
                self._abort_capture()
        elif action.kind is UserActionKind.DISMISS_NOTICE:
            self._ui.notice = None

    # -------------------------------------------------------- user actions

    def _request_check_in(self, location: Optional[str]) -> None:
        if self._capture_pending:
            self._notify(NoticeLevel.WARNING, "A capture is already in progress.", "CaptureBusy")
            return
        if self._phase is SessionPhase.LOGGED_IN:
            self._notify(NoticeLevel.INFO, "You are already checked in.")
            return
        if not self._open_camera():
            return
        self._pending_location = location or self._default_location
        self._begin_capture(CaptureKind.CHECK_IN, SessionPhase.AWAITING_CHECK_IN_CAPTURE)

    def _request_check_out(self) -> None:
        if self._capture_pending:
            self._notify(NoticeLevel.WARNING, "A capture is already in progress.", "CaptureBusy")
            return

        now = self._clock()
        logged_out = self._phase is SessionPhase.LOGGED_OUT
        if logged_out or not self._state.is_self_consistent(now.date()):
            failure = Notice(NoticeLevel.WARNING, "Please check in first.", NO_ACTIVE_RECORD)
            # Already logged out: keep the last logout on record.
            if not self._recover(now, failure=failure, reset=not logged_out):
                return
        if not self._open_camera():
            return
        self._begin_capture(CaptureKind.CHECK_OUT, SessionPhase.AWAITING_CHECK_OUT_CAPTURE)

    def _take_capture(self) -> None:
        kind = self._ui.pending_capture
        if kind is None:
            self._notify(NoticeLevel.INFO, "No capture has been requested.")
            return

        try:
            image = self._capture.capture()
        except CaptureError as exc:
            if exc.failure is CaptureFailure.EMPTY_FRAME:
                # Dialog stays open so the user can try again or cancel.
                self._notify(NoticeLevel.WARNING, "No image was captured, please try again.", exc.failure.value)
            else:
                self._abort_capture(Notice(NoticeLevel.ERROR, str(exc), exc.failure.value))
            return

        self._capture.close()
        self._ui.camera_open = False
        if kind is CaptureKind.CHECK_IN:
            self._submit_check_in(image)
        else:
            self._submit_check_out(image)

    def _submit_check_in(self, image: CapturedImage) -> None:
        location = self._pending_location or self._default_location
        try:
            payload = self._gateway.check_in(employee_id=self._employee_id, location=location, image=image.as_data_url())
            record = normalize_record(payload)
        except RemoteError as exc:
            self._abort_capture(Notice(NoticeLevel.ERROR, f"Check-in failed: {exc}", _error_kind(exc)))
            return
        except MalformedRecord as exc:
            logger.error("Check-in response for %s is unusable: %s", self._employee_id, exc)
            self._abort_capture(Notice(NoticeLevel.ERROR, "Check-in response could not be read, please refresh.", "NetworkFailure"))
            return

        now = self._clock()
        self._enter_logged_in(
            SessionState(
                employee_id=self._employee_id,
                is_active=True,
                active_record_id=record.record_id,
                login_timestamp=now,
                remaining_seconds=self._budget_seconds,
                login_image_ref=record.check_in_image,
            )
        )
        self._ui.budget_notified = False
        self._history = self._history.merged(record)
        self._notify(NoticeLevel.SUCCESS, f"Checked in at {now:%H:%M}.")

    def _submit_check_out(self, image: CapturedImage) -> None:
        record_id = self._state.active_record_id
        try:
            payload = self._gateway.check_out(record_id=record_id, image=image.as_data_url())
        except RemoteError as exc:
            self._abort_capture(Notice(NoticeLevel.ERROR, f"Check-out failed: {exc}", _error_kind(exc)))
            return

        now = self._clock()
        login = self._state.login_timestamp or now
        duration = max(0, int((now - login).total_seconds()))
        closed = self._closed_record(payload, record_id, login, now)

        self._store.save_closed_record(closed)
        self._history = self._history.merged(closed)
        self._timer.stop()
        self._phase = SessionPhase.LOGGED_OUT
        self._ui.pending_capture = None
        self._state = SessionState.logged_out(self._employee_id, self._budget_seconds).with_changes(
            logout_timestamp=now,
            logout_image_ref=closed.check_out_image,
        )
        self._store.save(self._state)
        self._ui.summary = SessionSummary(record_id=record_id, check_in=login, check_out=now, duration_seconds=duration)
        self._notify(NoticeLevel.SUCCESS, f"Checked out. You worked {format_hours_worked(duration)}.")

    def _closed_record(self, payload, record_id: str, login: datetime, now: datetime) -> AttendanceRecord:
        try:
            record = normalize_record(payload)
        except MalformedRecord as exc:
            # The server accepted the check-out; keep a local copy anyway.
            logger.warning("Check-out response for %s is unusable: %s", record_id, exc)
            record = AttendanceRecord(
                record_id=record_id,
                employee_id=self._employee_id,
                calendar_date=login.date(),
                clock_in=login,
                clock_out=None,
                status=AttendanceStatus.UNKNOWN,
            )
        if record.clock_out is None:
            record = AttendanceRecord(
                record_id=record.record_id,
                employee_id=record.employee_id,
                calendar_date=record.calendar_date,
                clock_in=record.clock_in or login,
                clock_out=now,
                status=record.status,
                location=record.location,
                check_in_image=record.check_in_image,
                check_out_image=record.check_out_image,
            )
        return record

    # -------------------------------------------------------------- helpers

    def _open_camera(self) -> bool:
        try:
            self._capture.open()
        except CaptureError as exc:
            self._notify(NoticeLevel.ERROR, str(exc), exc.failure.value)
            return False
        return True

    def _begin_capture(self, kind: CaptureKind, phase: SessionPhase) -> None:
        self._timer.catch_up()
        self._timer.stop()
        self._phase = phase
        self._ui.camera_open = True
        self._ui.pending_capture = kind
        self._state = self._state.with_changes(capture_in_flight=True)
        self._store.save(self._state)

    def _abort_capture(self, notice: Optional[Notice] = None) -> None:
        """Release the camera and return to the state before the capture."""
        kind = self._ui.pending_capture
        self._capture.close()
        self._ui.camera_open = False
        self._ui.pending_capture = None
        self._pending_location = None
        self._state = self._state.with_changes(capture_in_flight=False)

        if kind is CaptureKind.CHECK_OUT:
            self._enter_logged_in(self._state)
        else:
            self._phase = SessionPhase.LOGGED_OUT
            self._store.save(self._state)
        if notice is not None:
            self._ui.notice = notice

    def _recover(self, now: datetime, *, failure: Optional[Notice] = None, reset: bool = True) -> bool:
        resolution = self._resolver.resolve(self._employee_id, today=now.date())
        if self._capture_pending:
            return False
        if resolution.found:
            self._enter_logged_in(self._synchronizer.adopt(self._state, resolution.record, now=now, report=resolution.report))
            return True
        notice = failure or Notice(NoticeLevel.WARNING, "Your session could not be confirmed and was closed locally.", NO_ACTIVE_RECORD)
        if reset:
            self._reset(notice)
        else:
            self._ui.notice = notice
        return False

    def _enter_logged_in(self, state: SessionState) -> None:
        self._state = state.with_changes(capture_in_flight=False)
        self._phase = SessionPhase.LOGGED_IN
        self._ui.pending_capture = None
        self._pending_location = None
        self._store.save(self._state)
        self._timer.start(self._state.remaining_seconds)

    def _reset(self, notice: Optional[Notice] = None) -> None:
        self._timer.stop()
        self._phase = SessionPhase.LOGGED_OUT
        self._state = SessionState.logged_out(self._employee_id, self._budget_seconds)
        self._store.clear()
        if notice is not None:
            self._ui.notice = notice

    def _notify(self, level: NoticeLevel, message: str, kind: Optional[str] = None, *, replace: bool = True) -> None:
        if not replace and self._ui.notice is not None:
            return
        self._ui.notice = Notice(level=level, message=message, kind=kind)

    def _on_tick(self, remaining: int) -> None:
        self._state = self._state.with_changes(remaining_seconds=remaining)
        self._store.save(self._state)
        if remaining == 0 and not self._ui.budget_notified:
            self._ui.budget_notified = True
            self._notify(NoticeLevel.INFO, "You have completed today's work budget.")
