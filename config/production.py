import os
from pathlib import Path

from .config import env_api_config, env_engine_config

SECRET_KEY = os.getenv("SECRET_KEY", "please-set-SECRET_KEY")

API_CONFIG = env_api_config("https://hr.example.com/api")

ENGINE_CONFIG = env_engine_config(Path.home() / ".attendance_engine")

DEBUG = False
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
