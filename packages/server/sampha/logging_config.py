"""
Centralized logging configuration for the sampha server package.

Format: LEVEL: timestamp : package.file.function.lineno : log-line
Example: INFO: 2024-02-17 13:01:23 : server.routers.tasks.create_task.42 : Creating task

Usage:
    from sampha.logging_config import get_logger
    logger = get_logger(__name__)
    logger.info("Something happened")
"""

import logging
import sys
from datetime import datetime, timezone
from typing import Optional

from sampha.config import settings


class SamphaFormatter(logging.Formatter):
    """
    Custom formatter producing:
    LEVEL: timestamp : package.file.function.lineno : message

    The package prefix is normalized to 'server.X' for sampha modules.
    """

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")

        # sampha.routers.tasks -> server.routers.tasks
        module = record.name
        if module.startswith("sampha."):
            module = "server." + module[len("sampha."):]
        elif module == "sampha":
            module = "server"

        filename = record.filename
        if filename.endswith(".py"):
            filename = filename[:-3]

        # If module already ends with filename, don't duplicate
        if module.endswith(f".{filename}"):
            location = f"{module}.{record.funcName}.{record.lineno}"
        else:
            location = f"{module}.{filename}.{record.funcName}.{record.lineno}"

        message = record.getMessage()
        if record.exc_info:
            message = f"{message}\n{self.formatException(record.exc_info)}"

        return f"{record.levelname}: {timestamp} : {location} : {message}"


NOISY_LOGGERS = (
    "uvicorn.access",
    "httpx",
    "httpcore",
    "aiosqlite",
    "sse_starlette",
    "multipart",
)


def setup_logging(level: Optional[int] = None, stream: Optional[object] = None) -> None:
    """
    Configure root logging for the server. Called once from the lifespan.

    Args:
        level: Logging level (default: settings.log_level, fallback INFO)
        stream: Output stream (default: sys.stdout)
    """
    if level is None:
        level = getattr(logging, settings.log_level.upper(), logging.INFO)

    handler = logging.StreamHandler(stream or sys.stdout)
    handler.setFormatter(SamphaFormatter())

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    # Replace whatever uvicorn or a previous call installed
    root_logger.handlers.clear()
    root_logger.addHandler(handler)

    logging.getLogger("sampha").setLevel(level)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    if not settings.database_echo:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Logger for a module; pass ``__name__``."""
    return logging.getLogger(name)
