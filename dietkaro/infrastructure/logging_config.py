"""
Logging setup.

Routes structlog through the standard ``logging`` module so library
records and core events share one stream.
"""

import logging

import structlog


def configure_logging(level: str = "INFO") -> None:
    """
    Configure structlog processors and the root log level.

    Idempotent: safe to call once per container startup.

    Args:
        level: Standard level name (DEBUG, INFO, WARNING, ...)
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric_level,
        format="%(message)s",
    )
    logging.getLogger().setLevel(numeric_level)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )
