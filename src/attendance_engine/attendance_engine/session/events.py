"""The four inputs the session state machine reacts to."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..attendance.history import AttendanceHistory
from ..attendance.model import StatusReport
from ..core.enums import UserActionKind
from ..core.exceptions import RemoteError
from .model import SessionState


@dataclass(frozen=True)
class CacheLoaded:
    state: SessionState


@dataclass(frozen=True)
class PollCompleted:
    report: Optional[StatusReport] = None
    error: Optional[RemoteError] = None


@dataclass(frozen=True)
class HistoryCompleted:
    history: Optional[AttendanceHistory] = None
    error: Optional[RemoteError] = None


@dataclass(frozen=True)
class UserAction:
    kind: UserActionKind
    location: Optional[str] = None


SessionEvent = CacheLoaded | PollCompleted | HistoryCompleted | UserAction
