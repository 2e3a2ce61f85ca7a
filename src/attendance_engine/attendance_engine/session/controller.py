from __future__ import annotations

from datetime import datetime
from functools import wraps
from typing import Optional

from flask import Flask, jsonify, request

from ..attendance.history import previous_records, summarize_day
from ..attendance.model import AttendanceRecord, DaySummary
from ..common.datetime_utils import format_date_time, format_duration, format_hours_worked
from ..core.exceptions import ValidationError
from ..container import Container
from .machine import SessionStateMachine
from .model import Notice, SessionSummary


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _notice_json(notice: Optional[Notice]) -> Optional[dict]:
    if notice is None:
        return None
    return {"level": notice.level.value, "message": notice.message, "kind": notice.kind}


def _record_json(r: AttendanceRecord) -> dict:
    duration = r.duration_seconds
    return {
        "id": r.record_id,
        "date": r.calendar_date.isoformat(),
        "clock_in": _iso(r.clock_in),
        "clock_out": _iso(r.clock_out),
        "status": r.status.value,
        "location": r.location,
        "check_in_image": r.check_in_image,
        "check_out_image": r.check_out_image,
        "duration": duration,
        "hours_worked": format_hours_worked(duration) if duration is not None else "-",
        "is_open": r.is_open,
    }


def _day_json(day: DaySummary) -> dict:
    return {
        "day": day.day.isoformat(),
        "present": day.present,
        "late": day.late,
        "absent": day.absent,
        "total": day.total,
    }


def _summary_json(summary: SessionSummary) -> dict:
    return {
        "record_id": summary.record_id,
        "check_in": _iso(summary.check_in),
        "check_out": _iso(summary.check_out),
        "check_in_label": format_date_time(summary.check_in),
        "check_out_label": format_date_time(summary.check_out),
        "duration": summary.duration_seconds,
        "duration_label": format_duration(summary.duration_seconds),
        "hours_worked": summary.hours_worked,
    }


def _session_json(engine: SessionStateMachine) -> dict:
    view = engine.view()
    return {
        "employee_id": engine.employee_id,
        "phase": view.phase.value,
        "is_active": view.is_active,
        "record_id": view.record_id,
        "remaining_seconds": view.remaining_seconds,
        "remaining_clock": view.remaining_clock,
        "login_time": _iso(view.login_time),
        "camera_open": view.camera_open,
        "pending_capture": view.pending_capture.value if view.pending_capture else None,
        "notice": _notice_json(view.notice),
    }


def register(app: Flask, container: Container) -> None:
    def with_engine(view):
        @wraps(view)
        def wrapper(employee_id: str, *args, **kwargs):
            with container.lock:
                try:
                    engine = container.engine_for(employee_id)
                except ValidationError as e:
                    return jsonify({"success": False, "message": str(e)}), 400
                engine.pump()
                return view(engine, *args, **kwargs)

        return wrapper

    @app.route("/api/attendance/<employee_id>/session", methods=["GET"], endpoint="session_state")
    @with_engine
    def session_state(engine: SessionStateMachine):
        return jsonify(_session_json(engine))

    @app.route("/api/attendance/<employee_id>/check-in", methods=["POST"], endpoint="session_check_in")
    @with_engine
    def check_in(engine: SessionStateMachine):
        data = request.get_json(silent=True) or {}
        location = str(data.get("location", "")).strip() or None
        engine.request_check_in(location)
        return jsonify(_session_json(engine))

    @app.route("/api/attendance/<employee_id>/check-out", methods=["POST"], endpoint="session_check_out")
    @with_engine
    def check_out(engine: SessionStateMachine):
        engine.request_check_out()
        return jsonify(_session_json(engine))

    @app.route("/api/attendance/<employee_id>/capture", methods=["POST"], endpoint="session_capture")
    @with_engine
    def capture(engine: SessionStateMachine):
        engine.capture()
        return jsonify(_session_json(engine))

    @app.route("/api/attendance/<employee_id>/cancel", methods=["POST"], endpoint="session_cancel")
    @with_engine
    def cancel(engine: SessionStateMachine):
        engine.cancel()
        return jsonify(_session_json(engine))

    @app.route("/api/attendance/<employee_id>/refresh", methods=["POST"], endpoint="session_refresh")
    @with_engine
    def refresh(engine: SessionStateMachine):
        engine.refresh()
        return jsonify(_session_json(engine))

    @app.route("/api/attendance/<employee_id>/notice/dismiss", methods=["POST"], endpoint="session_dismiss_notice")
    @with_engine
    def dismiss_notice(engine: SessionStateMachine):
        engine.dismiss_notice()
        return jsonify(_session_json(engine))

    @app.route("/api/attendance/<employee_id>/history", methods=["GET"], endpoint="session_history")
    @with_engine
    def history(engine: SessionStateMachine):
        records = list(engine.history)
        today = container.clock().date()
        return jsonify(
            {
                "degraded": engine.history.degraded,
                "records": [_record_json(r) for r in records],
                "previous": [_record_json(r) for r in previous_records(records, today)],
                "today": _day_json(summarize_day(records, today)),
            }
        )

    @app.route("/api/attendance/<employee_id>/summary", methods=["GET"], endpoint="session_summary")
    @with_engine
    def summary(engine: SessionStateMachine):
        taken = engine.take_summary()
        if taken is None:
            return jsonify({"summary": None})
        return jsonify({"summary": _summary_json(taken)})
