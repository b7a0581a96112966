"""Structured logging for webhook delivery.

Every delivery runs in its own asyncio task with ``delivery_id``,
``partner_id`` and ``event_type`` bound, so each line about a delivery can
be traced back to the partner and survey event that caused it.
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING

import structlog

if TYPE_CHECKING:
    from structlog.typing import Processor

    from picksearch.config import Settings

_configured = False


def _build_processors(format: str) -> list[Processor]:
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]
    if format.lower() == "json":
        processors += [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(ensure_ascii=False),
        ]
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))
    return processors


def configure_logging(level: str = "INFO", format: str = "json") -> None:
    """Configure structlog on top of the standard library logger.

    Safe to call again: module-level loggers created (and cached) before a
    reconfiguration pick up the new processors.

    Args:
        level: Standard library level name.
        format: "json" for log shipping, "text" for a terminal.
    """
    global _configured

    log_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)
    logging.getLogger().setLevel(log_level)

    # Cached loggers keep a reference to this list, so edit it in place
    active = structlog.get_config()["processors"]
    active[:] = _build_processors(format)

    structlog.configure(
        processors=active,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    _configured = True


def configure_from_settings(settings: Settings) -> None:
    """Apply PICKSEARCH_LOG_LEVEL and PICKSEARCH_LOG_FORMAT."""
    configure_logging(level=settings.log_level, format=settings.log_format)


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Return a structured logger, configuring from settings on first use."""
    if not _configured:
        from picksearch.config import settings

        configure_from_settings(settings)

    return structlog.get_logger(name)  # type: ignore[no-any-return]


def bind_context(**kwargs: object) -> None:
    """Bind values to every log line emitted later in the current task.

    Do not bind ``event``: structlog uses that key for the message itself.
    """
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
