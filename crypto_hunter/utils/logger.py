"""
Crypto Hunter — Structured Logging Utility
Uses structlog for structured logging.
"""
import structlog
import logging
import sys
from crypto_hunter.config.settings import get_settings

# Client libraries that log every request at INFO
NOISY_LOGGERS = ("aiohttp.access", "httpx", "httpcore", "telegram")


def setup_logging() -> None:
    """Configure structured logging for the monitor, API and notifiers."""
    settings = get_settings()
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    renderer = structlog.dev.ConsoleRenderer() if settings.debug else structlog.processors.JSONRenderer()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=log_level)
    library_level = log_level if settings.debug else max(log_level, logging.WARNING)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)

    structlog.contextvars.bind_contextvars(app=settings.app_name, version=settings.version)


def get_logger(name: str = None) -> structlog.BoundLogger:
    """Get a named structured logger."""
    return structlog.get_logger(name or "crypto_hunter")
