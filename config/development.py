import os
from pathlib import Path

from .config import env_api_config, env_engine_config

SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")

API_CONFIG = env_api_config("http://localhost:8080/api")

# Session cache lives next to the working directory while developing
ENGINE_CONFIG = env_engine_config(Path(".attendance_cache"))

DEBUG = True
LOG_LEVEL = os.getenv("LOG_LEVEL", "DEBUG").upper()
