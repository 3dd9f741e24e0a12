"""Structured logging setup using structlog.

Every module logs through ``structlog.get_logger``; records are rendered by a
stdlib handler so third-party loggers share the same output. The dedicated
``alert_log`` logger (fired / resolved alerts) can additionally be written to
its own JSON-lines file.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import structlog

from fleetwatch.core.config import get_settings

ALERT_LOGGER_NAME = "alert_log"

# Libraries that log every request at INFO.
_NOISY_LOGGERS = ("httpx", "httpcore", "aiohttp.access")

_SHARED_PROCESSORS: list[structlog.types.Processor] = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_logger_name,
    structlog.processors.add_log_level,
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
]


def _formatter(fmt: str) -> structlog.stdlib.ProcessorFormatter:
    renderer: structlog.types.Processor
    if fmt == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()
    return structlog.stdlib.ProcessorFormatter(
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            renderer,
        ],
    )


def _attach_alert_file(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(_formatter("json"))

    alert_logger = logging.getLogger(ALERT_LOGGER_NAME)
    for existing in list(alert_logger.handlers):
        if isinstance(existing, logging.FileHandler):
            alert_logger.removeHandler(existing)
            existing.close()
    alert_logger.addHandler(handler)
    alert_logger.setLevel(logging.INFO)


def setup_logging(
    level: str | None = None,
    fmt: str | None = None,
    alert_log_file: str | Path | None = None,
) -> None:
    """Configure structlog on top of stdlib logging.

    Args:
        level: Log level override (e.g. "DEBUG"). Uses config if None.
        fmt: Renderer format override ("json" or "console"). Uses config if None.
        alert_log_file: Also append alert records to this file. Uses config if None.
    """
    settings = get_settings()
    log_level = getattr(logging, (level or settings.logging.level).upper(), logging.INFO)
    log_format = fmt or settings.logging.format
    alert_path = alert_log_file or settings.logging.alert_log_file

    structlog.configure(
        processors=[
            *_SHARED_PROCESSORS,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(_formatter(log_format))

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    if alert_path:
        _attach_alert_file(Path(alert_path))
