from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Optional

import numpy as np
import pytest

from src.attendance_engine.attendance_engine.attendance.history import HistoryLoader
from src.attendance_engine.attendance_engine.core.exceptions import NetworkFailure, ServerRejection
from src.attendance_engine.attendance_engine.session.capture import CaptureController
from src.attendance_engine.attendance_engine.session.machine import SessionStateMachine
from src.attendance_engine.attendance_engine.session.model import SessionState
from src.attendance_engine.attendance_engine.session.recovery import RecoveryResolver
from src.attendance_engine.attendance_engine.session.status import StatusSynchronizer

BUDGET = 9 * 60 * 60


class ManualClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now = self.now + timedelta(seconds=seconds)


class FakeBackend:
    """In-memory attendance service speaking the raw JSON shapes."""

    def __init__(self, clock: ManualClock):
        self._clock = clock
        self.rows: list[dict] = []
        self.calls: list[str] = []
        self.status_payload: Optional[dict] = None
        self.status_error: Optional[Exception] = None
        self.history_error: Optional[Exception] = None
        self.check_in_error: Optional[Exception] = None
        self.check_out_error: Optional[Exception] = None
        self._next_id = 100

    def add_row(self, **row) -> dict:
        self.rows.append(row)
        return row

    def open_rows(self, employee_id: str) -> list[dict]:
        return [r for r in self.rows if r.get("employeeId") == employee_id and r.get("clockIn") and not r.get("clockOut")]

    def get_current_status(self, employee_id: str) -> dict:
        self.calls.append("status")
        if self.status_error is not None:
            raise self.status_error
        if self.status_payload is not None:
            return self.status_payload
        today = self._clock().date().isoformat()
        for row in self.open_rows(employee_id):
            if row.get("date") == today:
                return {"isActive": True, "loginTime": row["clockIn"], "timeLeftSeconds": None, "record": row}
        return {"isActive": False, "record": None}

    def list_employee_attendance(self, employee_id: str) -> list:
        self.calls.append("history")
        if self.history_error is not None:
            raise self.history_error
        return [dict(r) for r in self.rows if r.get("employeeId") == employee_id]

    def check_in(self, *, employee_id: str, location: str, image: str) -> dict:
        self.calls.append("check_in")
        if self.check_in_error is not None:
            raise self.check_in_error
        assert image.startswith("data:image/jpeg;base64,")
        self._next_id += 1
        now = self._clock()
        row = self.add_row(
            id=self._next_id,
            employeeId=employee_id,
            date=now.date().isoformat(),
            clockIn=now.isoformat(),
            clockOut=None,
            status="Present",
            location=location,
            checkInImage=f"img/in-{self._next_id}.jpg",
        )
        return dict(row)

    def check_out(self, *, record_id: str, image: str) -> dict:
        self.calls.append("check_out")
        if self.check_out_error is not None:
            raise self.check_out_error
        for row in self.rows:
            if str(row["id"]) == str(record_id):
                row["clockOut"] = self._clock().isoformat()
                row["checkOutImage"] = f"img/out-{record_id}.jpg"
                return dict(row)
        raise ServerRejection(404, "record not found")

    @property
    def submissions(self) -> list[str]:
        return [c for c in self.calls if c in ("check_in", "check_out")]


class InMemorySessionStore:
    def __init__(self, employee_id: str = "E1"):
        self.employee_id = employee_id
        self.state: Optional[SessionState] = None
        self.snapshot: Optional[list] = None
        self.closed = None
        self.saves = 0

    def load(self) -> SessionState:
        return self.state or SessionState.logged_out(self.employee_id, BUDGET)

    def save(self, state: SessionState) -> None:
        self.saves += 1
        self.state = state

    def clear(self) -> None:
        self.state = None

    def load_history_snapshot(self):
        return self.snapshot

    def save_history_snapshot(self, rows) -> None:
        self.snapshot = list(rows)

    def save_closed_record(self, record) -> None:
        self.closed = record

    def load_closed_record(self):
        return self.closed


class FakeCameraDevice:
    def __init__(self, *, available: bool = True, frames=None):
        self.available = available
        self.frames = list(frames) if frames is not None else [np.zeros((8, 8, 3), dtype=np.uint8)]
        self.released = False

    def isOpened(self) -> bool:
        return self.available

    def read(self):
        if not self.frames:
            return False, None
        return True, self.frames.pop(0)

    def release(self) -> None:
        self.released = True


class FakeCameraFactory:
    def __init__(self):
        self.devices: list[FakeCameraDevice] = []
        self.available = True
        self.frames = None

    def __call__(self, source):
        device = FakeCameraDevice(available=self.available, frames=self.frames)
        self.devices.append(device)
        return device

    @property
    def last(self) -> Optional[FakeCameraDevice]:
        return self.devices[-1] if self.devices else None

    @property
    def open_devices(self) -> list[FakeCameraDevice]:
        return [d for d in self.devices if d.available and not d.released]


@pytest.fixture()
def fixed_now() -> datetime:
    return datetime(2024, 1, 3, 9, 0, 0)


@pytest.fixture()
def clock(fixed_now) -> ManualClock:
    return ManualClock(fixed_now)


@pytest.fixture()
def today(fixed_now) -> date:
    return fixed_now.date()


@pytest.fixture()
def backend(clock) -> FakeBackend:
    return FakeBackend(clock)


@pytest.fixture()
def store() -> InMemorySessionStore:
    return InMemorySessionStore("E1")


@pytest.fixture()
def camera() -> FakeCameraFactory:
    return FakeCameraFactory()


@pytest.fixture()
def offline() -> NetworkFailure:
    return NetworkFailure("Could not reach the attendance service (ConnectTimeout)")


@pytest.fixture()
def make_engine(backend, store, camera, clock):
    def _make(*, start: bool = True) -> SessionStateMachine:
        history = HistoryLoader(backend, snapshots=store)
        synchronizer = StatusSynchronizer(backend, budget_seconds=BUDGET)
        engine = SessionStateMachine(
            "E1",
            gateway=backend,
            store=store,
            history=history,
            synchronizer=synchronizer,
            resolver=RecoveryResolver(synchronizer, history),
            capture=CaptureController(0, device_factory=camera, clock=clock),
            clock=clock,
            budget_seconds=BUDGET,
        )
        if start:
            engine.start()
        return engine

    return _make
