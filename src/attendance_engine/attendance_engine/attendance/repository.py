from __future__ import annotations

from typing import Any, Mapping, Protocol, Sequence


class AttendanceGateway(Protocol):
    """Remote attendance endpoints, returning raw JSON payloads.

    Implementations raise ``NetworkFailure`` / ``ServerRejection``.
    """

    def get_current_status(self, employee_id: str) -> Mapping[str, Any]:
        raise NotImplementedError

    def list_employee_attendance(self, employee_id: str) -> Sequence[Mapping[str, Any]]:
        raise NotImplementedError

    def check_in(self, *, employee_id: str, location: str, image: str) -> Mapping[str, Any]:
        raise NotImplementedError

    def check_out(self, *, record_id: str, image: str) -> Mapping[str, Any]:
        raise NotImplementedError
