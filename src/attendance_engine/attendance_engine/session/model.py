from __future__ import annotations

from dataclasses import asdict, dataclass, replace
from datetime import date, datetime
from typing import Any, Mapping, Optional

from ..common.datetime_utils import format_clock, format_hours_worked
from ..core.constants import DEFAULT_WORK_BUDGET_SECONDS
from ..core.enums import CaptureKind, NoticeLevel, SessionPhase


@dataclass(frozen=True)
class SessionState:
    """Persisted, client-local belief about the employee's session."""

    employee_id: str
    is_active: bool = False
    active_record_id: Optional[str] = None
    login_timestamp: Optional[datetime] = None
    logout_timestamp: Optional[datetime] = None
    remaining_seconds: int = DEFAULT_WORK_BUDGET_SECONDS
    capture_in_flight: bool = False
    login_image_ref: Optional[str] = None
    logout_image_ref: Optional[str] = None

    @classmethod
    def logged_out(cls, employee_id: str, budget_seconds: int = DEFAULT_WORK_BUDGET_SECONDS) -> "SessionState":
        return cls(employee_id=employee_id, remaining_seconds=budget_seconds)

    def is_self_consistent(self, today: date) -> bool:
        """Active, linked to a record, and logged in today with no logout."""
        return (
            self.is_active
            and self.active_record_id is not None
            and self.login_timestamp is not None
            and self.login_timestamp.date() == today
            and self.logout_timestamp is None
        )

    def with_changes(self, **changes: Any) -> "SessionState":
        return replace(self, **changes)

    def to_dict(self) -> dict:
        data = asdict(self)
        for key in ("login_timestamp", "logout_timestamp"):
            if data[key] is not None:
                data[key] = data[key].isoformat()
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SessionState":
        """Inverse of ``to_dict``. Raises KeyError/TypeError/ValueError on bad input."""

        def _ts(value):
            return datetime.fromisoformat(value) if value else None

        remaining = int(data.get("remaining_seconds", DEFAULT_WORK_BUDGET_SECONDS))
        record_id = data.get("active_record_id")
        return cls(
            employee_id=str(data["employee_id"]),
            is_active=bool(data.get("is_active", False)),
            active_record_id=str(record_id) if record_id is not None else None,
            login_timestamp=_ts(data.get("login_timestamp")),
            logout_timestamp=_ts(data.get("logout_timestamp")),
            remaining_seconds=max(0, remaining),
            capture_in_flight=bool(data.get("capture_in_flight", False)),
            login_image_ref=data.get("login_image_ref"),
            logout_image_ref=data.get("logout_image_ref"),
        )


@dataclass(frozen=True)
class SessionSummary:
    """One-shot work summary emitted after a successful check-out."""

    record_id: str
    check_in: datetime
    check_out: datetime
    duration_seconds: int

    @property
    def hours_worked(self) -> str:
        return format_hours_worked(self.duration_seconds)


@dataclass(frozen=True)
class Notice:
    level: NoticeLevel
    message: str
    kind: Optional[str] = None


@dataclass
class UiState:
    """Transient, never persisted."""

    camera_open: bool = False
    pending_capture: Optional[CaptureKind] = None
    notice: Optional[Notice] = None
    summary: Optional[SessionSummary] = None
    budget_notified: bool = False


@dataclass(frozen=True)
class SessionView:
    phase: SessionPhase
    is_active: bool
    remaining_seconds: int
    login_time: Optional[datetime]
    camera_open: bool
    pending_capture: Optional[CaptureKind]
    notice: Optional[Notice] = None
    record_id: Optional[str] = None

    @property
    def remaining_clock(self) -> str:
        return format_clock(self.remaining_seconds)
