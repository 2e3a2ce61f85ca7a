from __future__ import annotations

import logging
from datetime import date
from functools import cached_property
from typing import Any, Iterable, Iterator, List, Mapping, Optional, Protocol, Sequence

from ..core.enums import AttendanceStatus
from ..core.exceptions import RemoteError
from .model import AttendanceRecord, DaySummary
from .normalization import normalize_records
from .repository import AttendanceGateway

logger = logging.getLogger(__name__)


class HistorySnapshots(Protocol):
    def load_history_snapshot(self) -> Optional[List[Mapping[str, Any]]]:
        raise NotImplementedError

    def save_history_snapshot(self, rows: Sequence[Mapping[str, Any]]) -> None:
        raise NotImplementedError


def order_history(records: Iterable[AttendanceRecord]) -> List[AttendanceRecord]:
    """Personal history order.

    Records with a clock-in come before records without one; inside each
    group the newest effective timestamp comes first.
    """
    by_time = sorted(records, key=lambda r: r.effective_timestamp, reverse=True)
    return sorted(by_time, key=lambda r: r.clock_in is None)


def order_roster(records: Iterable[AttendanceRecord]) -> List[AttendanceRecord]:
    """Organization-wide order: currently logged-in people first, then newest."""
    by_time = sorted(records, key=lambda r: r.effective_timestamp, reverse=True)
    return sorted(by_time, key=lambda r: not r.is_open)


def find_open_record(records: Iterable[AttendanceRecord], day: date) -> Optional[AttendanceRecord]:
    for record in records:
        if record.is_open_on(day):
            return record
    return None


def previous_records(records: Iterable[AttendanceRecord], today: date) -> List[AttendanceRecord]:
    """Closed records from earlier days, newest date first."""
    closed = [r for r in records if r.calendar_date != today and r.clock_out is not None]
    return sorted(closed, key=lambda r: r.calendar_date, reverse=True)


def summarize_day(records: Iterable[AttendanceRecord], day: date) -> DaySummary:
    todays = [r for r in records if r.calendar_date == day]
    return DaySummary(
        day=day,
        present=sum(1 for r in todays if r.status == AttendanceStatus.PRESENT),
        late=sum(1 for r in todays if r.status == AttendanceStatus.LATE),
        absent=sum(1 for r in todays if r.status == AttendanceStatus.ABSENT),
        total=len(todays),
    )


class AttendanceHistory:
    """Ordered, restartable view over one employee's records.

    Raw rows are normalized on first iteration and cached; iterating again
    starts over from the first record. ``degraded`` marks a view served
    from the local snapshot because the backend could not be reached.
    """

    def __init__(
        self,
        rows: Iterable[Mapping[str, Any]] = (),
        *,
        extra: Sequence[AttendanceRecord] = (),
        degraded: bool = False,
    ):
        self._rows = tuple(rows)
        self._extra = tuple(extra)
        self.degraded = degraded

    @cached_property
    def _records(self) -> tuple[AttendanceRecord, ...]:
        by_id = {r.record_id: r for r in normalize_records(self._rows)}
        for record in self._extra:
            by_id[record.record_id] = record
        return tuple(order_history(by_id.values()))

    def __iter__(self) -> Iterator[AttendanceRecord]:
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def get(self, record_id: str) -> Optional[AttendanceRecord]:
        for record in self._records:
            if record.record_id == record_id:
                return record
        return None

    def open_record_on(self, day: date) -> Optional[AttendanceRecord]:
        return find_open_record(self._records, day)

    def merged(self, record: AttendanceRecord) -> "AttendanceHistory":
        """Copy of this view with ``record`` inserted or replaced by id."""
        return AttendanceHistory(self._rows, extra=self._extra + (record,), degraded=self.degraded)


class HistoryLoader:
    def __init__(self, gateway: AttendanceGateway, snapshots: Optional[HistorySnapshots] = None):
        self._gateway = gateway
        self._snapshots = snapshots

    def fetch(self, employee_id: str, *, allow_snapshot: bool = True) -> AttendanceHistory:
        """Fetch and normalize the employee's records. Never writes remotely.

        On a remote failure the last-known-good snapshot is served (flagged
        ``degraded``) when allowed and available; otherwise the error
        propagates.
        """

        try:
            rows = list(self._gateway.list_employee_attendance(employee_id))
        except RemoteError:
            snapshot = self._snapshots.load_history_snapshot() if (allow_snapshot and self._snapshots) else None
            if snapshot is None:
                raise
            logger.warning("History fetch failed for %s, serving %d cached rows", employee_id, len(snapshot))
            return AttendanceHistory(snapshot, degraded=True)

        if self._snapshots is not None:
            self._snapshots.save_history_snapshot(rows)
        return AttendanceHistory(rows)
