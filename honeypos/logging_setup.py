from __future__ import annotations

import logging
import os
from logging.handlers import TimedRotatingFileHandler

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

_configured = False


def configure_logging(level: str = "INFO", log_path: str = "") -> None:
    """Console logging always; daily rotated app.log and error.log when a path is given."""
    global _configured
    if _configured:
        return
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    if log_path:
        os.makedirs(log_path, exist_ok=True)
        formatter = logging.Formatter(LOG_FORMAT)
        root = logging.getLogger()

        app_handler = TimedRotatingFileHandler(
            os.path.join(log_path, "app.log"), when="midnight", backupCount=7, encoding="utf-8"
        )
        app_handler.setFormatter(formatter)
        root.addHandler(app_handler)

        error_handler = TimedRotatingFileHandler(
            os.path.join(log_path, "error.log"), when="midnight", backupCount=30, encoding="utf-8"
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(formatter)
        root.addHandler(error_handler)
    _configured = True
