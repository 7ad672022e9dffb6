# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Structured logging for the authorization engine.

Engine modules log through the standard library (``logging.getLogger(__name__)``
with %-style arguments). setup_logging installs a structlog ProcessorFormatter
on the root handler so those records are rendered by structlog: JSON in
production, console output in development. Request-scoped values bound by the
HTTP middleware (request id, host, tenant, user) are merged into every record
emitted while the request is in flight.

Example:
    >>> setup_logging(get_settings())
    >>> bind_context(request_id="abc-123", tenant_id="1111...")
    >>> logging.getLogger("dsicola.domains.workflow").info("Transition applied: %s", "APPROVE")
"""

import logging
import sys
from typing import TYPE_CHECKING

import structlog
from structlog.types import Processor

if TYPE_CHECKING:
    from dsicola.core.config.settings import Settings

_QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine", "httpx", "asyncio")


def setup_logging(settings: "Settings") -> None:
    """Route standard library and structlog output through one renderer.

    Args:
        settings: Application settings (log_level, environment, debug).
    """
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    pre_chain: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.ExtraAdder(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]

    renderer: Processor
    if settings.is_development or settings.debug:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())
    else:
        renderer = structlog.processors.JSONRenderer()

    formatter = structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=pre_chain,
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            renderer,
        ],
    )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(log_level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def bind_context(**kwargs: object) -> None:
    """Attach request-scoped values to every record of the current request."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Drop request-scoped values once the response has been produced."""
    structlog.contextvars.clear_contextvars()
