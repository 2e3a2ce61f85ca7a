"""Canonical shape for attendance rows coming from the backend.

Different endpoints spell the same field differently. ``FIELD_ALIASES`` is
the one place that lists the accepted spellings; for every canonical field
the aliases are tried in order and the first non-null value wins.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Iterator, Mapping, Optional, Tuple

from ..common.datetime_utils import parse_date, parse_timestamp
from ..core.enums import AttendanceStatus
from .model import AttendanceRecord, StatusReport

logger = logging.getLogger(__name__)


FIELD_ALIASES: dict[str, Tuple[str, ...]] = {
    "record_id": ("id", "_id", "attendanceId", "recordId"),
    "employee_id": ("employeeId", "empId", "employee_id"),
    "calendar_date": ("date", "attDate"),
    "clock_in": ("clockIn", "checkIn", "loginTime"),
    "clock_out": ("clockOut", "checkOut", "logoutTime"),
    "status": ("status", "attStatus"),
    "location": ("location", "checkInLocation"),
    "check_in_image": ("checkInImage", "loginImage", "clockInImage"),
    "check_out_image": ("checkOutImage", "logoutImage", "clockOutImage"),
    "duration": ("duration", "durationSeconds"),
}

# Envelope keys some endpoints wrap a single record in.
_ENVELOPE_KEYS = ("record", "data", "attendance")


class MalformedRecord(ValueError):
    pass


def pick(raw: Mapping[str, Any], field: str) -> Any:
    """Return the first non-null alias value for a canonical field."""
    for alias in FIELD_ALIASES[field]:
        value = raw.get(alias)
        if value is not None:
            return value
    return None


def unwrap(payload: Any) -> Any:
    if isinstance(payload, Mapping):
        for key in _ENVELOPE_KEYS:
            inner = payload.get(key)
            if isinstance(inner, (Mapping, list)):
                return inner
    return payload


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _optional_int(value: Any) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return None


def normalize_record(raw: Mapping[str, Any]) -> AttendanceRecord:
    """Map one raw backend row to an ``AttendanceRecord``.

    Raises ``MalformedRecord`` when the row has no id, no usable date, or a
    clock-out earlier than its clock-in.
    """

    if not isinstance(raw, Mapping):
        raise MalformedRecord(f"expected an object, got {type(raw).__name__}")

    record_id = _optional_str(pick(raw, "record_id"))
    if record_id is None:
        raise MalformedRecord("record has no id")

    calendar_date = parse_date(pick(raw, "calendar_date"))
    clock_in = parse_timestamp(pick(raw, "clock_in"), on_date=calendar_date)
    if calendar_date is None and clock_in is not None:
        calendar_date = clock_in.date()
    if calendar_date is None:
        raise MalformedRecord(f"record {record_id} has no date")

    clock_out = parse_timestamp(pick(raw, "clock_out"), on_date=calendar_date)
    if clock_in is not None and clock_out is not None and clock_out < clock_in:
        raise MalformedRecord(f"record {record_id} clocks out before it clocks in")

    duration = _optional_int(pick(raw, "duration"))
    if duration is not None and (clock_in is None or clock_out is None):
        # A duration without both ends is a placeholder (often 0).
        duration = None

    return AttendanceRecord(
        record_id=record_id,
        employee_id=_optional_str(pick(raw, "employee_id")),
        calendar_date=calendar_date,
        clock_in=clock_in,
        clock_out=clock_out,
        status=AttendanceStatus.parse(pick(raw, "status")),
        location=_optional_str(pick(raw, "location")),
        check_in_image=_optional_str(pick(raw, "check_in_image")),
        check_out_image=_optional_str(pick(raw, "check_out_image")),
        reported_duration=duration,
    )


def normalize_records(rows: Iterable[Any]) -> Iterator[AttendanceRecord]:
    """Normalize rows lazily, skipping (and logging) malformed ones."""
    for raw in rows:
        try:
            yield normalize_record(raw)
        except MalformedRecord as exc:
            logger.warning("Skipping malformed attendance row: %s", exc)


def normalize_status(payload: Any) -> StatusReport:
    if not isinstance(payload, Mapping):
        raise MalformedRecord("status payload is not an object")

    active_record = None
    raw_record = payload.get("record")
    if isinstance(raw_record, Mapping):
        try:
            active_record = normalize_record(raw_record)
        except MalformedRecord as exc:
            logger.warning("Status endpoint returned an unusable record: %s", exc)

    day = active_record.calendar_date if active_record else None
    return StatusReport(
        is_active=bool(payload.get("isActive")),
        active_record=active_record,
        login_time=parse_timestamp(payload.get("loginTime"), on_date=day),
        logout_time=parse_timestamp(payload.get("logoutTime"), on_date=day),
        login_image=_optional_str(payload.get("loginImage")),
        logout_image=_optional_str(payload.get("logoutImage")),
        time_left_seconds=_optional_int(payload.get("timeLeftSeconds")),
    )
