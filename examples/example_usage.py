"""Example: drive the session engine directly (no Flask).

Usage: APP_ENV=development python -m examples.example_usage E001
"""

import importlib
import sys

from config import get_settings_module

from src.attendance_engine.attendance_engine.common.datetime_utils import format_clock
from src.attendance_engine.attendance_engine.container import build_container


def main():
    employee_id = sys.argv[1] if len(sys.argv) > 1 else "E001"
    settings = importlib.import_module(get_settings_module())
    container = build_container(api_config=settings.API_CONFIG, engine_config=settings.ENGINE_CONFIG)

    engine = container.engine_for(employee_id)
    view = engine.view()
    print(f"{employee_id}: {view.phase.value}, {format_clock(view.remaining_seconds)} left")
    if view.notice is not None:
        print(f"[{view.notice.level.value}] {view.notice.message}")

    for record in list(engine.history)[:5]:
        print(record.calendar_date, record.clock_in, record.clock_out, record.status.value)


if __name__ == "__main__":
    main()
