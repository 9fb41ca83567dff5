"""Structured logging configuration."""

import logging
import sys

import structlog

from camp_proxy.config import Settings


def configure_logging(settings: Settings) -> None:
    """Configure structlog on top of the stdlib root logger (stdout goes to CloudWatch)."""
    level = getattr(logging, settings.log_level.upper(), logging.INFO)

    root = logging.getLogger()
    if root.handlers:
        # The Lambda runtime installs its own handler before our code runs
        root.setLevel(level)
    else:
        logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]
    if settings.log_format == "json":
        processors.append(structlog.processors.JSONRenderer(ensure_ascii=False))
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=False))

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


def log_cache_operation(logger, operation: str, key: str, hit=None, **kwargs) -> None:
    """Log cache operations at debug level."""
    log_data = {"operation": operation, "cache_key": key, **kwargs}
    if hit is not None:
        log_data["cache_hit"] = hit
    logger.debug("Cache operation", **log_data)
