"""Structured logging setup using structlog.

The library itself only calls ``structlog.get_logger()``; applications
embedding the client call :func:`setup_logging` once at start-up.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Iterable

import structlog

from .config import PeppolClientConfig

# Per-request chatter from the HTTP stack drowns the send pipeline events.
DEFAULT_QUIET_LOGGERS = ("httpx", "httpcore")


def _add_component(_logger, _method_name: str, event_dict: dict) -> dict:
    event_dict.setdefault("component", "peppol-as2-client")
    return event_dict


def setup_logging(
    *,
    json: bool = True,
    level: str = "INFO",
    quiet_loggers: Iterable[str] = DEFAULT_QUIET_LOGGERS,
) -> None:
    """Route structlog and stdlib logging through one handler on stdout.

    Parameters
    ----------
    json:
        JSON lines if *True*, the coloured console renderer otherwise.
    level:
        Root log level name, case insensitive.
    quiet_loggers:
        Stdlib loggers capped at WARNING regardless of *level*.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        _add_component,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    renderer: structlog.types.Processor = (
        structlog.processors.JSONRenderer() if json else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[*shared_processors, structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, renderer],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level.upper())

    for name in quiet_loggers:
        logging.getLogger(name).setLevel(logging.WARNING)


def setup_logging_from_config(config: PeppolClientConfig) -> None:
    setup_logging(json=config.log_json, level=config.log_level)
