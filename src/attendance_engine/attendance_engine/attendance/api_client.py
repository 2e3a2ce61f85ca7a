from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence

import requests

from ..core.constants import DEFAULT_HTTP_TIMEOUT
from ..core.exceptions import NetworkFailure, ServerRejection
from .normalization import unwrap
from .repository import AttendanceGateway

logger = logging.getLogger(__name__)


@dataclass
class ApiConfig:
    base_url: str
    timeout: float = DEFAULT_HTTP_TIMEOUT
    token: Optional[str] = None


class AttendanceApiClient(AttendanceGateway):
    """``requests`` implementation of the attendance endpoints.

    No retries: a failed call raises and the caller decides what to do.
    """

    def __init__(self, config: ApiConfig, *, session: Optional[requests.Session] = None):
        self._config = config
        self._base_url = config.base_url.rstrip("/")
        self._session = session or requests.Session()
        self._session.headers.update({"Accept": "application/json"})
        if config.token:
            self._session.headers.update({"Authorization": f"Bearer {config.token}"})

    def get_current_status(self, employee_id: str) -> Mapping[str, Any]:
        return self._request("GET", f"current-status/{employee_id}")

    def list_employee_attendance(self, employee_id: str) -> Sequence[Mapping[str, Any]]:
        payload = unwrap(self._request("GET", f"attendance/employee/{employee_id}"))
        if not isinstance(payload, list):
            raise NetworkFailure("attendance history is not a list")
        return payload

    def check_in(self, *, employee_id: str, location: str, image: str) -> Mapping[str, Any]:
        body = {"employeeId": employee_id, "location": location, "image": image}
        return unwrap(self._request("POST", "attendance/checkin", json=body))

    def check_out(self, *, record_id: str, image: str) -> Mapping[str, Any]:
        return unwrap(self._request("POST", f"attendance/checkout/{record_id}", json={"image": image}))

    def _request(self, method: str, path: str, **kwargs) -> Any:
        url = f"{self._base_url}/{path}"
        try:
            resp = self._session.request(method, url, timeout=self._config.timeout, **kwargs)
        except requests.RequestException as exc:
            logger.warning("%s %s failed: %s", method, url, exc)
            raise NetworkFailure(f"Could not reach the attendance service ({exc.__class__.__name__})") from exc

        if not resp.ok:
            message = _error_message(resp)
            logger.warning("%s %s rejected: %s %s", method, url, resp.status_code, message)
            raise ServerRejection(resp.status_code, message)

        try:
            return resp.json()
        except ValueError as exc:
            raise NetworkFailure(f"Unreadable response from {path}") from exc


def _error_message(resp: requests.Response) -> Optional[str]:
    try:
        body = resp.json()
    except ValueError:
        return resp.text.strip() or None
    if isinstance(body, Mapping):
        for key in ("message", "error", "detail"):
            if body.get(key):
                return str(body[key])
    return None
