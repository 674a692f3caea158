"""Logging setup for the ticket synchronizer.

Structured events go to stderr so that stdout carries nothing but the
listings and progress lines printed by the ``ticket`` command.
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import Any

import structlog

LOG_FILE_MAX_BYTES = 5 * 1024 * 1024
LOG_FILE_BACKUPS = 3

# Libraries whose INFO chatter would drown the synchronizer's own events.
NOISY_LOGGERS = ("urllib3", "requests")


def _processors(json_logs: bool) -> list[Any]:
    processors: list[Any] = [
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if json_logs:
        processors.append(structlog.processors.JSONRenderer())
    else:
        # Plain text: output usually lands in cron mail or a terminal pipe.
        processors.append(
            structlog.dev.ConsoleRenderer(colors=False, exception_formatter=structlog.dev.plain_traceback)
        )
    return processors


def configure_logging(
    log_level: str = "WARNING",
    json_logs: bool = False,
    log_file: str | None = None,
) -> None:
    """
    Route structlog events through the standard library root logger.

    Calling this again replaces the previous setup.

    Args:
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL; anything else means WARNING
        json_logs: Render events as JSON lines instead of key=value text
        log_file: Also append events to this file, rotated at 5 MB
    """
    level = getattr(logging, log_level.upper(), None)
    if not isinstance(level, int):
        level = logging.WARNING

    logging.basicConfig(format="%(message)s", level=level, stream=sys.stderr, force=True)
    if log_file:
        file_handler = RotatingFileHandler(
            log_file, maxBytes=LOG_FILE_MAX_BYTES, backupCount=LOG_FILE_BACKUPS, encoding="utf-8"
        )
        file_handler.setLevel(level)
        logging.root.addHandler(file_handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    structlog.configure(
        processors=_processors(json_logs),
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    return structlog.stdlib.get_logger(name)
