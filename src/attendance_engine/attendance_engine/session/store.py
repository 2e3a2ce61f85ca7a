from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, List, Mapping, Optional, Protocol, Sequence

from ..attendance.model import AttendanceRecord
from ..core.constants import (
    CLOSED_RECORD_FILE_TEMPLATE,
    DEFAULT_WORK_BUDGET_SECONDS,
    HISTORY_FILE_TEMPLATE,
    SESSION_FILE_TEMPLATE,
)
from .model import SessionState

logger = logging.getLogger(__name__)


class SessionStore(Protocol):
    """Synchronous local persistence for one employee on this device."""

    def load(self) -> SessionState:
        raise NotImplementedError

    def save(self, state: SessionState) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError

    def load_history_snapshot(self) -> Optional[List[Mapping[str, Any]]]:
        raise NotImplementedError

    def save_history_snapshot(self, rows: Sequence[Mapping[str, Any]]) -> None:
        raise NotImplementedError

    def save_closed_record(self, record: AttendanceRecord) -> None:
        raise NotImplementedError

    def load_closed_record(self) -> Optional[Mapping[str, Any]]:
        raise NotImplementedError


def record_to_row(record: AttendanceRecord) -> dict:
    """Serialize a record back to the backend's row shape."""
    return {
        "id": record.record_id,
        "employeeId": record.employee_id,
        "date": record.calendar_date.isoformat(),
        "clockIn": record.clock_in.isoformat() if record.clock_in else None,
        "clockOut": record.clock_out.isoformat() if record.clock_out else None,
        "status": record.status.value,
        "location": record.location,
        "checkInImage": record.check_in_image,
        "checkOutImage": record.check_out_image,
        "duration": record.duration_seconds,
    }


class FileSessionStore(SessionStore):
    """JSON files in one directory; each write replaces the file atomically.

    Unreadable or corrupt files are treated as absent.
    """

    def __init__(self, directory: str | os.PathLike, employee_id: str, *, budget_seconds: int = DEFAULT_WORK_BUDGET_SECONDS):
        self._dir = Path(directory)
        self._employee_id = str(employee_id)
        self._budget_seconds = int(budget_seconds)

    @property
    def employee_id(self) -> str:
        return self._employee_id

    def _path(self, template: str) -> Path:
        return self._dir / template.format(employee_id=self._employee_id)

    def load(self) -> SessionState:
        default = SessionState.logged_out(self._employee_id, self._budget_seconds)
        data = self._read(self._path(SESSION_FILE_TEMPLATE))
        if data is None:
            return default
        try:
            state = SessionState.from_dict(data)
        except (KeyError, TypeError, ValueError, AttributeError) as exc:
            logger.warning("Ignoring unparseable session cache for %s: %s", self._employee_id, exc)
            return default
        if state.employee_id != self._employee_id:
            logger.warning("Ignoring session cache that belongs to %s", state.employee_id)
            return default
        return state

    def save(self, state: SessionState) -> None:
        self._write(self._path(SESSION_FILE_TEMPLATE), state.to_dict())

    def clear(self) -> None:
        try:
            self._path(SESSION_FILE_TEMPLATE).unlink()
        except FileNotFoundError:
            pass

    def load_history_snapshot(self) -> Optional[List[Mapping[str, Any]]]:
        data = self._read(self._path(HISTORY_FILE_TEMPLATE))
        return data if isinstance(data, list) else None

    def save_history_snapshot(self, rows: Sequence[Mapping[str, Any]]) -> None:
        self._write(self._path(HISTORY_FILE_TEMPLATE), list(rows))

    def save_closed_record(self, record: AttendanceRecord) -> None:
        self._write(self._path(CLOSED_RECORD_FILE_TEMPLATE), record_to_row(record))

    def load_closed_record(self) -> Optional[Mapping[str, Any]]:
        data = self._read(self._path(CLOSED_RECORD_FILE_TEMPLATE))
        return data if isinstance(data, dict) else None

    def _read(self, path: Path) -> Any:
        try:
            with path.open("r", encoding="utf-8") as fh:
                return json.load(fh)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as exc:
            logger.warning("Treating unreadable cache file %s as absent: %s", path.name, exc)
            return None

    def _write(self, path: Path, data: Any) -> None:
        self._dir.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + ".tmp")
        with tmp.open("w", encoding="utf-8") as fh:
            json.dump(data, fh, default=str)
        os.replace(tmp, path)
