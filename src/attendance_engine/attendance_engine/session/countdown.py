from __future__ import annotations

from datetime import datetime, timedelta
from typing import Callable, Optional

from ..common.datetime_utils import now_local
from ..core.constants import DEFAULT_TICK_SECONDS


class CountdownTimer:
    """Counts the remaining work budget down once per second.

    Cooperative: the host calls ``tick()`` every second, or ``catch_up()``
    whenever it gets control, and the timer applies the whole seconds that
    elapsed since the last tick. ``on_tick`` receives the new value after
    every decrement so the caller can persist it. Zero is a floor, not an
    action.
    """

    def __init__(
        self,
        on_tick: Callable[[int], None],
        *,
        clock: Callable[[], datetime] = now_local,
        interval_seconds: int = DEFAULT_TICK_SECONDS,
    ):
        self._on_tick = on_tick
        self._clock = clock
        self._interval = timedelta(seconds=interval_seconds)
        self._remaining = 0
        self._last_tick: Optional[datetime] = None

    @property
    def running(self) -> bool:
        return self._last_tick is not None

    @property
    def remaining(self) -> int:
        return self._remaining

    def start(self, remaining_seconds: int) -> None:
        self._remaining = max(0, int(remaining_seconds))
        self._last_tick = self._clock()

    def stop(self) -> None:
        self._last_tick = None

    def tick(self) -> int:
        if not self.running:
            return self._remaining
        return self._advance(1)

    def catch_up(self) -> int:
        if not self.running:
            return self._remaining
        elapsed = self._clock() - self._last_tick
        ticks = int(elapsed / self._interval)
        if ticks <= 0:
            return self._remaining
        return self._advance(ticks)

    def _advance(self, ticks: int) -> int:
        self._remaining = max(0, self._remaining - ticks)
        self._last_tick = self._last_tick + self._interval * ticks
        self._on_tick(self._remaining)
        return self._remaining
