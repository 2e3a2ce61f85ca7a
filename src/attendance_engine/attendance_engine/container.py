from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union

from .attendance.api_client import ApiConfig, AttendanceApiClient
from .attendance.history import HistoryLoader
from .attendance.repository import AttendanceGateway
from .common.datetime_utils import now_local
from .common.validators import require_non_empty, require_non_negative
from .core.constants import DEFAULT_HTTP_TIMEOUT, DEFAULT_LOCATION, DEFAULT_WORK_BUDGET_SECONDS
from .session.capture import CaptureController
from .session.machine import SessionStateMachine
from .session.recovery import RecoveryResolver
from .session.status import StatusSynchronizer
from .session.store import FileSessionStore


@dataclass(frozen=True)
class EngineConfig:
    session_dir: Path
    budget_seconds: int = DEFAULT_WORK_BUDGET_SECONDS
    camera_source: Union[int, str] = 0
    default_location: str = DEFAULT_LOCATION


@dataclass(frozen=True)
class Container:
    config: EngineConfig
    gateway: AttendanceGateway
    clock: Callable[[], datetime] = now_local
    device_factory: Optional[Callable[[Any], Any]] = None
    engines: Dict[str, SessionStateMachine] = field(default_factory=dict)
    # Engines are single-threaded; callers hold this while driving one.
    lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)

    def engine_for(self, employee_id: str) -> SessionStateMachine:
        """Engine for ``employee_id``, created and started on first use."""
        employee_id = require_non_empty(employee_id, "employee_id")
        with self.lock:
            engine = self.engines.get(employee_id)
            if engine is None:
                engine = build_engine(
                    employee_id,
                    gateway=self.gateway,
                    config=self.config,
                    clock=self.clock,
                    device_factory=self.device_factory,
                )
                engine.start()
                self.engines[employee_id] = engine
            return engine


def build_engine(
    employee_id: str,
    *,
    gateway: AttendanceGateway,
    config: EngineConfig,
    clock: Callable[[], datetime] = now_local,
    device_factory: Optional[Callable[[Any], Any]] = None,
) -> SessionStateMachine:
    store = FileSessionStore(config.session_dir, employee_id, budget_seconds=config.budget_seconds)
    history = HistoryLoader(gateway, snapshots=store)
    synchronizer = StatusSynchronizer(gateway, budget_seconds=config.budget_seconds)
    resolver = RecoveryResolver(synchronizer, history)

    capture_kwargs = {"clock": clock}
    if device_factory is not None:
        capture_kwargs["device_factory"] = device_factory
    capture = CaptureController(config.camera_source, **capture_kwargs)

    return SessionStateMachine(
        employee_id,
        gateway=gateway,
        store=store,
        history=history,
        synchronizer=synchronizer,
        resolver=resolver,
        capture=capture,
        clock=clock,
        budget_seconds=config.budget_seconds,
        default_location=config.default_location,
    )


def build_container(
    *,
    api_config: dict,
    engine_config: dict,
    gateway: Optional[AttendanceGateway] = None,
    device_factory: Optional[Callable[[Any], Any]] = None,
    clock: Callable[[], datetime] = now_local,
) -> Container:
    config = EngineConfig(
        session_dir=Path(engine_config["session_dir"]),
        budget_seconds=require_non_negative(
            engine_config.get("work_budget_seconds", DEFAULT_WORK_BUDGET_SECONDS), "work_budget_seconds"
        ),
        camera_source=engine_config.get("camera_source", 0),
        default_location=str(engine_config.get("default_location", DEFAULT_LOCATION)),
    )
    if gateway is None:
        gateway = AttendanceApiClient(
            ApiConfig(
                base_url=str(api_config["base_url"]),
                timeout=float(api_config.get("timeout", DEFAULT_HTTP_TIMEOUT)),
                token=api_config.get("token") or None,
            )
        )
    return Container(config=config, gateway=gateway, clock=clock, device_factory=device_factory)
