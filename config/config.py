import os
from pathlib import Path


def env_camera_source(default: str = "0"):
    # Numeric values are device indexes, anything else is a stream URL.
    value = os.environ.get("CAMERA_SOURCE", default).strip()
    return int(value) if value.isdigit() else value


def env_api_config(default_base_url: str) -> dict:
    return {
        "base_url": os.environ.get("API_BASE_URL", default_base_url),
        "timeout": float(os.environ.get("API_TIMEOUT", "20")),
        "token": os.environ.get("API_TOKEN", ""),
    }


def env_engine_config(default_session_dir: Path) -> dict:
    return {
        "session_dir": Path(os.environ.get("SESSION_DIR", default_session_dir)),
        "work_budget_seconds": int(os.environ.get("WORK_BUDGET_SECONDS", str(9 * 60 * 60))),
        "camera_source": env_camera_source(),
        "default_location": os.environ.get("DEFAULT_LOCATION", "Office"),
    }
