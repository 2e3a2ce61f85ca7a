from __future__ import annotations

import importlib
import logging
from typing import Optional

from dotenv import load_dotenv
from flask import Flask

from config import get_settings_module

from .container import Container, build_container
from .session.controller import register as register_session

logger = logging.getLogger(__name__)


def create_app(container: Optional[Container] = None) -> Flask:
    load_dotenv(override=False)
    app = Flask(__name__)

    settings_module = get_settings_module()
    settings = importlib.import_module(settings_module)
    app.secret_key = getattr(settings, "SECRET_KEY")
    app.config["DEBUG"] = bool(getattr(settings, "DEBUG", False))

    logging.basicConfig(
        level=getattr(settings, "LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    if container is None:
        api_config = getattr(settings, "API_CONFIG")
        engine_config = getattr(settings, "ENGINE_CONFIG")
        logger.info(
            "settings=%s api=%s session_dir=%s",
            settings_module,
            api_config.get("base_url"),
            engine_config.get("session_dir"),
        )
        container = build_container(api_config=api_config, engine_config=engine_config)

    app.extensions["attendance_container"] = container
    register_session(app, container)

    return app


if __name__ == "__main__":
    create_app().run()
