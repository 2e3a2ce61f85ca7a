import os
import tempfile
from pathlib import Path

SECRET_KEY = "test-secret"

API_CONFIG = {
    "base_url": os.getenv("API_BASE_URL", "http://attendance.test/api"),
    "timeout": 2.0,
    "token": "",
}

ENGINE_CONFIG = {
    "session_dir": Path(os.getenv("SESSION_DIR", Path(tempfile.gettempdir()) / "attendance_engine_test")),
    "work_budget_seconds": 9 * 60 * 60,
    "camera_source": 0,
    "default_location": "Test Office",
}

DEBUG = False
TESTING = True
LOG_LEVEL = "WARNING"
