from __future__ import annotations

from enum import Enum


class AttendanceStatus(str, Enum):
    """Server-side attendance status, normalized."""

    PRESENT = "Present"
    LATE = "Late"
    ABSENT = "Absent"
    UNKNOWN = "Unknown"

    @classmethod
    def parse(cls, value) -> "AttendanceStatus":
        if value is None:
            return cls.UNKNOWN
        normalized = str(value).strip().lower()
        for member in cls:
            if member.value.lower() == normalized:
                return member
        return cls.UNKNOWN


class SessionPhase(str, Enum):
    LOGGED_OUT = "LoggedOut"
    AWAITING_CHECK_IN_CAPTURE = "AwaitingCheckInCapture"
    LOGGED_IN = "LoggedIn"
    AWAITING_CHECK_OUT_CAPTURE = "AwaitingCheckOutCapture"


class CaptureKind(str, Enum):
    CHECK_IN = "check_in"
    CHECK_OUT = "check_out"


class CaptureFailure(str, Enum):
    DEVICE_UNAVAILABLE = "DeviceUnavailable"
    EMPTY_FRAME = "EmptyFrame"


class NoticeLevel(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class UserActionKind(str, Enum):
    REQUEST_CHECK_IN = "request_check_in"
    REQUEST_CHECK_OUT = "request_check_out"
    CAPTURE = "capture"
    CANCEL = "cancel"
    DISMISS_NOTICE = "dismiss_notice"


class ReconcileAction(str, Enum):
    """What the engine should do with a status poll outcome."""

    ADOPT = "adopt"
    CLEAR = "clear"
    KEEP = "keep"
    RECOVER = "recover"
