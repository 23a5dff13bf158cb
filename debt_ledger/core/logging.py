"""
Structured logging setup.

Every service logs through structlog with an event name and keyword
context, e.g. ``logger.info("payment_recorded", debt_account_id=...)``.
"""

import logging
import sys

import structlog

from debt_ledger.core.config import settings


def configure_logging(level: str | None = None, json_logs: bool | None = None) -> None:
    """Configure stdlib logging and structlog once at startup."""
    level = (level or settings.LOG_LEVEL).upper()
    if json_logs is None:
        json_logs = settings.LOG_JSON

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level, logging.INFO),
    )

    renderer = (
        structlog.processors.JSONRenderer()
        if json_logs
        else structlog.dev.ConsoleRenderer()
    )

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str):
    return structlog.get_logger(name)
