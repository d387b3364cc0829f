import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Optional

import config

ROOT_LOGGER_NAME = "prodvent"

FILE_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(funcName)s:%(lineno)d %(message)s"
CONSOLE_FORMAT = "%(levelname)s [%(name)s] %(message)s"


def console_level() -> int:
    """LOG_LEVEL as a logging level; unknown names fall back to INFO"""
    level = logging.getLevelName(config.LOG_LEVEL)
    return level if isinstance(level, int) else logging.INFO


def setup_logging(logs_dir: Optional[Path] = None) -> Path:
    """Attach the server's handlers to the ``prodvent`` logger.

    Route handlers, auth and toggles log through ``prodvent.api``,
    ``prodvent.auth`` and ``prodvent.toggle``. Everything they emit lands in
    a log file for this server start; the console (next to uvicorn's own
    access log) only shows LOG_LEVEL and above. Calling it again, e.g. on a
    reload, keeps the handlers already attached and returns their file.
    """
    app_logger = logging.getLogger(ROOT_LOGGER_NAME)
    app_logger.setLevel(logging.DEBUG)

    for handler in app_logger.handlers:
        if isinstance(handler, logging.FileHandler):
            return Path(handler.baseFilename)

    logs_dir = Path(logs_dir or config.LOGS_DIR)
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_file = logs_dir / datetime.now().strftime("server_%Y%m%d_%H%M%S.log")

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(FILE_FORMAT))

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(console_level())
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))

    app_logger.addHandler(file_handler)
    app_logger.addHandler(console)
    app_logger.debug("Writing server log to %s", log_file)
    return log_file
