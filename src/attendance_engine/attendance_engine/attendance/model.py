from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional

from ..common.datetime_utils import start_of_day
from ..core.enums import AttendanceStatus


@dataclass(frozen=True)
class AttendanceRecord:
    """Server-owned attendance record, in canonical shape."""

    record_id: str
    employee_id: Optional[str]
    calendar_date: date
    clock_in: Optional[datetime]
    clock_out: Optional[datetime]
    status: AttendanceStatus = AttendanceStatus.UNKNOWN
    location: Optional[str] = None
    check_in_image: Optional[str] = None
    check_out_image: Optional[str] = None
    reported_duration: Optional[int] = None

    @property
    def is_open(self) -> bool:
        return self.clock_in is not None and self.clock_out is None

    @property
    def duration_seconds(self) -> Optional[int]:
        if self.reported_duration is not None:
            return self.reported_duration
        if self.clock_in is None or self.clock_out is None:
            return None
        return int((self.clock_out - self.clock_in).total_seconds())

    @property
    def effective_timestamp(self) -> datetime:
        return self.clock_in if self.clock_in is not None else start_of_day(self.calendar_date)

    def is_open_on(self, day: date) -> bool:
        return self.is_open and self.calendar_date == day


@dataclass(frozen=True)
class StatusReport:
    """Parsed answer of the current-status endpoint."""

    is_active: bool
    active_record: Optional[AttendanceRecord]
    login_time: Optional[datetime] = None
    logout_time: Optional[datetime] = None
    login_image: Optional[str] = None
    logout_image: Optional[str] = None
    time_left_seconds: Optional[int] = None


@dataclass(frozen=True)
class DaySummary:
    """Head counts for one calendar day."""

    day: date
    present: int
    late: int
    absent: int
    total: int
