"""Logging setup: stdlib handlers emit JSON, structlog supplies the event dicts."""

from __future__ import annotations

import logging
import logging.config
import os
from pathlib import Path
from typing import Any

import structlog

APP_LOGGER = "order_relay"
ACTIVITY_LOG = "relay.log"
ERROR_LOG = "error.log"

_LOGGING_INITIALISED = False

_STRUCTLOG_PROCESSORS = [
    structlog.contextvars.merge_contextvars,
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.stdlib.add_log_level,
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
    structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
]


def default_log_dir() -> Path:
    env_root = os.environ.get("ORDER_RELAY_HOME")
    if env_root:
        return Path(env_root).expanduser().resolve() / "logs"
    return Path(__file__).resolve().parents[1] / "logs"


def _file_handler(path: Path, level: str) -> dict[str, Any]:
    return {
        "class": "logging.FileHandler",
        "level": level,
        "filename": str(path),
        "encoding": "utf-8",
        "formatter": "json",
    }


def _logging_dict(log_dir: Path, level: str) -> dict[str, Any]:
    handlers = {
        "stderr": {"class": "logging.StreamHandler", "level": level, "formatter": "json"},
        "activity": _file_handler(log_dir / ACTIVITY_LOG, "INFO"),
        "errors": _file_handler(log_dir / ERROR_LOG, "ERROR"),
    }
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "json": {
                "()": "pythonjsonlogger.jsonlogger.JsonFormatter",
                "fmt": "%(asctime)s %(levelname)s %(name)s %(message)s",
            }
        },
        "handlers": handlers,
        "loggers": {APP_LOGGER: {"handlers": list(handlers), "level": level, "propagate": False}},
    }


def configure_logging(verbose: bool = False, log_dir: Path | None = None) -> structlog.BoundLogger:
    """Install handlers once per process and return the application logger.

    Console output follows ``verbose``; ``relay.log`` keeps INFO and above and
    ``error.log`` only failures. Repeated calls are no-ops.
    """

    global _LOGGING_INITIALISED

    if not _LOGGING_INITIALISED:
        target = log_dir or default_log_dir()
        target.mkdir(parents=True, exist_ok=True)
        logging.config.dictConfig(_logging_dict(target, "DEBUG" if verbose else "INFO"))
        structlog.configure(
            processors=list(_STRUCTLOG_PROCESSORS),
            logger_factory=structlog.stdlib.LoggerFactory(),
            cache_logger_on_first_use=True,
        )
        _LOGGING_INITIALISED = True
    return structlog.get_logger(APP_LOGGER)


def component_logger(component: str) -> structlog.BoundLogger:
    return structlog.get_logger(APP_LOGGER).bind(component=component)


def tail_log(path: Path, line_count: int = 100) -> list[str]:
    """Return the last N lines from a log file."""

    if not path.exists():
        return []
    with path.open("r", encoding="utf-8", errors="ignore") as stream:
        lines = stream.readlines()
    return lines[-line_count:]


__all__ = ["ACTIVITY_LOG", "ERROR_LOG", "component_logger", "configure_logging", "default_log_dir", "tail_log"]
