from datetime import date

import pytest

from src.attendance_engine.attendance_engine.attendance.history import (
    AttendanceHistory,
    HistoryLoader,
    order_roster,
    previous_records,
    summarize_day,
)
from src.attendance_engine.attendance_engine.attendance.normalization import normalize_record
from src.attendance_engine.attendance_engine.core.exceptions import NetworkFailure


def _ids(records):
    return [r.record_id for r in records]


def test_history_orders_open_record_first(backend, store):
    backend.add_row(id=2, employeeId="E1", date="2024-01-02", clockIn="2024-01-02T08:00:00", clockOut="2024-01-02T17:00:00")
    backend.add_row(id=3, employeeId="E1", date="2024-01-03", clockIn="2024-01-03T08:00:00")

    history = HistoryLoader(backend, snapshots=store).fetch("E1")

    assert _ids(history) == ["3", "2"]


def test_records_without_clock_in_come_last():
    history = AttendanceHistory(
        [
            {"id": "absent", "date": "2024-01-05", "status": "Absent"},
            {"id": "old", "date": "2024-01-01", "clockIn": "2024-01-01T08:00:00", "clockOut": "2024-01-01T16:00:00"},
            {"id": "new", "date": "2024-01-04", "clockIn": "2024-01-04T08:00:00", "clockOut": "2024-01-04T16:00:00"},
            {"id": "absent-old", "date": "2024-01-02", "status": "Absent"},
        ]
    )

    assert _ids(history) == ["new", "old", "absent", "absent-old"]


def test_history_is_restartable():
    history = AttendanceHistory([{"id": 1, "date": "2024-01-01"}, {"id": 2, "date": "2024-01-02"}])

    first = list(history)
    second = list(history)

    assert first == second
    assert len(history) == 2


def test_fetch_saves_snapshot(backend, store):
    backend.add_row(id=1, employeeId="E1", date="2024-01-02")

    HistoryLoader(backend, snapshots=store).fetch("E1")

    assert store.snapshot == [{"id": 1, "employeeId": "E1", "date": "2024-01-02"}]


def test_fetch_failure_serves_degraded_snapshot(backend, store, offline):
    store.snapshot = [{"id": 1, "date": "2024-01-02"}]
    backend.history_error = offline

    history = HistoryLoader(backend, snapshots=store).fetch("E1")

    assert history.degraded
    assert _ids(history) == ["1"]


def test_fetch_failure_without_snapshot_raises(backend, store, offline):
    backend.history_error = offline

    with pytest.raises(NetworkFailure):
        HistoryLoader(backend, snapshots=store).fetch("E1")


def test_fetch_can_refuse_snapshot(backend, store, offline):
    store.snapshot = [{"id": 1, "date": "2024-01-02"}]
    backend.history_error = offline

    with pytest.raises(NetworkFailure):
        HistoryLoader(backend, snapshots=store).fetch("E1", allow_snapshot=False)


def test_merged_replaces_record_by_id():
    history = AttendanceHistory([{"id": 1, "date": "2024-01-03", "clockIn": "2024-01-03T08:00:00"}])
    closed = normalize_record(
        {"id": 1, "date": "2024-01-03", "clockIn": "2024-01-03T08:00:00", "clockOut": "2024-01-03T12:00:00"}
    )

    merged = history.merged(closed)

    assert len(merged) == 1
    assert merged.get("1").clock_out is not None
    assert history.get("1").clock_out is None


def test_open_record_on_day():
    history = AttendanceHistory(
        [
            {"id": 1, "date": "2024-01-02", "clockIn": "2024-01-02T08:00:00"},
            {"id": 2, "date": "2024-01-03", "clockIn": "2024-01-03T08:00:00"},
        ]
    )

    assert history.open_record_on(date(2024, 1, 3)).record_id == "2"
    assert history.open_record_on(date(2024, 1, 4)) is None


def test_previous_records_excludes_today_and_open_ones():
    history = AttendanceHistory(
        [
            {"id": "today", "date": "2024-01-03", "clockIn": "2024-01-03T08:00:00", "clockOut": "2024-01-03T09:00:00"},
            {"id": "open", "date": "2024-01-02", "clockIn": "2024-01-02T08:00:00"},
            {"id": "d1", "date": "2024-01-01", "clockIn": "2024-01-01T08:00:00", "clockOut": "2024-01-01T17:00:00"},
            {"id": "d2", "date": "2023-12-29", "clockIn": "2023-12-29T08:00:00", "clockOut": "2023-12-29T17:00:00"},
        ]
    )

    assert _ids(previous_records(history, date(2024, 1, 3))) == ["d1", "d2"]


def test_roster_puts_logged_in_people_first():
    records = [
        normalize_record({"id": "a", "date": "2024-06-03", "checkIn": "09:00 AM", "checkOut": "06:00 PM"}),
        normalize_record({"id": "b", "date": "2024-06-03", "checkIn": "08:45 AM"}),
        normalize_record({"id": "c", "date": "2024-06-03", "checkIn": "09:15 AM", "checkOut": "06:15 PM"}),
        normalize_record({"id": "d", "date": "2024-06-03", "checkIn": "08:30 AM"}),
    ]

    assert _ids(order_roster(records)) == ["b", "d", "c", "a"]


def test_roster_and_personal_orders_differ():
    history = AttendanceHistory(
        [
            {"id": "open-early", "date": "2024-06-03", "clockIn": "2024-06-03T08:00:00"},
            {"id": "closed-late", "date": "2024-06-03", "clockIn": "2024-06-03T10:00:00", "clockOut": "2024-06-03T12:00:00"},
        ]
    )

    assert _ids(history) == ["closed-late", "open-early"]
    assert _ids(order_roster(history)) == ["open-early", "closed-late"]


def test_summarize_day_counts_statuses():
    records = AttendanceHistory(
        [
            {"id": 1, "date": "2024-06-03", "status": "Present"},
            {"id": 2, "date": "2024-06-03", "status": "Present"},
            {"id": 3, "date": "2024-06-03", "status": "Late"},
            {"id": 4, "date": "2024-06-03", "status": "Absent"},
            {"id": 5, "date": "2024-06-02", "status": "Present"},
        ]
    )

    summary = summarize_day(records, date(2024, 6, 3))

    assert (summary.present, summary.late, summary.absent, summary.total) == (2, 1, 1, 4)
