from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from ..attendance.model import AttendanceRecord, StatusReport
from ..attendance.normalization import MalformedRecord, normalize_status
from ..attendance.repository import AttendanceGateway
from ..core.constants import DEFAULT_WORK_BUDGET_SECONDS
from ..core.enums import ReconcileAction
from ..core.exceptions import NetworkFailure
from .model import SessionState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Reconciliation:
    action: ReconcileAction
    state: Optional[SessionState] = None
    reason: str = ""


class StatusSynchronizer:
    """Reads the authoritative current-status endpoint and decides how the
    local session should follow it. Never writes the session itself."""

    def __init__(self, gateway: AttendanceGateway, *, budget_seconds: int = DEFAULT_WORK_BUDGET_SECONDS):
        self._gateway = gateway
        self._budget_seconds = int(budget_seconds)

    def poll(self, employee_id: str) -> StatusReport:
        payload = self._gateway.get_current_status(employee_id)
        try:
            return normalize_status(payload)
        except MalformedRecord as exc:
            raise NetworkFailure(f"Unreadable status payload: {exc}") from exc

    def adopt(
        self,
        state: SessionState,
        record: AttendanceRecord,
        *,
        now: datetime,
        report: Optional[StatusReport] = None,
    ) -> SessionState:
        """Link ``state`` to ``record``.

        Every field is taken from the server side except ``capture_in_flight``.
        """

        same_record = state.is_active and state.active_record_id == record.record_id
        time_left = report.time_left_seconds if report else None

        if time_left is not None:
            remaining = max(0, time_left)
        elif same_record:
            remaining = state.remaining_seconds
        elif record.clock_in is not None:
            elapsed = int((now - record.clock_in).total_seconds())
            remaining = max(0, self._budget_seconds - max(0, elapsed))
        else:
            remaining = self._budget_seconds

        login_timestamp = record.clock_in or (report.login_time if report else None)
        if login_timestamp is None:
            login_timestamp = state.login_timestamp if same_record and state.login_timestamp else now

        login_image = record.check_in_image or (report.login_image if report else None)
        if login_image is None and same_record:
            login_image = state.login_image_ref

        return SessionState(
            employee_id=state.employee_id,
            is_active=True,
            active_record_id=record.record_id,
            login_timestamp=login_timestamp,
            logout_timestamp=None,
            remaining_seconds=remaining,
            capture_in_flight=state.capture_in_flight,
            login_image_ref=login_image,
            logout_image_ref=None,
        )

    def reconcile(self, state: SessionState, report: StatusReport, *, now: datetime) -> Reconciliation:
        today = now.date()
        record = report.active_record

        if record is not None and record.is_open_on(today):
            return Reconciliation(ReconcileAction.ADOPT, self.adopt(state, record, now=now, report=report), "open record today")

        if state.capture_in_flight:
            return Reconciliation(ReconcileAction.KEEP, reason="capture in progress")

        if record is not None:
            return Reconciliation(ReconcileAction.CLEAR, reason=f"stale record {record.record_id} from {record.calendar_date}")

        if report.is_active or state.is_active:
            return Reconciliation(ReconcileAction.RECOVER, reason="no trustworthy active record")

        return Reconciliation(ReconcileAction.CLEAR, reason="no active session")

    def reconcile_failure(self, state: SessionState, *, today: date) -> Reconciliation:
        if state.capture_in_flight:
            return Reconciliation(ReconcileAction.KEEP, reason="capture in progress")
        if state.is_self_consistent(today):
            return Reconciliation(ReconcileAction.KEEP, reason="local session is self-consistent")
        if state.is_active:
            return Reconciliation(ReconcileAction.RECOVER, reason="local session cannot be trusted")
        return Reconciliation(ReconcileAction.KEEP, reason="nothing to reconcile")
