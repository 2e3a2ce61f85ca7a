from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional

from ..attendance.history import HistoryLoader
from ..attendance.model import AttendanceRecord, StatusReport
from ..core.exceptions import RemoteError
from .status import StatusSynchronizer

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Resolution:
    record: Optional[AttendanceRecord] = None
    source: Optional[str] = None
    report: Optional[StatusReport] = None

    @property
    def found(self) -> bool:
        return self.record is not None


class RecoveryResolver:
    """Re-links a believed-active session to a real open record.

    Tries the status endpoint, then the history list; gives up otherwise.
    Read-only: it never creates records and never touches the session.
    """

    def __init__(self, synchronizer: StatusSynchronizer, history: HistoryLoader):
        self._synchronizer = synchronizer
        self._history = history

    def resolve(self, employee_id: str, *, today: date) -> Resolution:
        try:
            report = self._synchronizer.poll(employee_id)
        except RemoteError as exc:
            logger.info("Recovery: status poll failed for %s: %s", employee_id, exc)
        else:
            record = report.active_record
            if record is not None and record.is_open_on(today):
                logger.info("Recovery: relinked %s to record %s via status", employee_id, record.record_id)
                return Resolution(record=record, source="status", report=report)

        try:
            history = self._history.fetch(employee_id, allow_snapshot=False)
        except RemoteError as exc:
            logger.info("Recovery: history fetch failed for %s: %s", employee_id, exc)
        else:
            record = history.open_record_on(today)
            if record is not None:
                logger.info("Recovery: relinked %s to record %s via history", employee_id, record.record_id)
                return Resolution(record=record, source="history")

        logger.info("Recovery: no open record for %s on %s", employee_id, today)
        return Resolution()
