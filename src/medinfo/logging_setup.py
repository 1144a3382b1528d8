"""
Structured logging setup.

The renderer comes from configuration: LOG_FORMAT=json or console. When it is
unset, DEBUG runs get the console renderer and everything else gets JSON.
"""

import logging

import structlog


def select_renderer(log_level: str = "INFO", log_format: str = ""):
    """Pick the final structlog processor for the given level and format."""
    fmt = (log_format or "").strip().lower()
    if not fmt:
        fmt = "console" if log_level.upper() == "DEBUG" else "json"

    if fmt == "console":
        return structlog.dev.ConsoleRenderer()
    if fmt == "json":
        return structlog.processors.JSONRenderer()
    raise ValueError(f"Unknown log format: {log_format}")


def configure_logging(log_level: str = "INFO", log_format: str = "") -> None:
    """Configure structlog on top of the stdlib logging tree."""
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            select_renderer(log_level, log_format),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, log_level.upper(), logging.INFO),
    )

    # The OpenAI SDK logs every request at INFO via httpx.
    logging.getLogger("httpx").setLevel(logging.WARNING)
