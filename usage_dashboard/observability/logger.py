import logging
import sys

import structlog

LOG_FORMATS = ("json", "console")


def resolve_level(level: int | str) -> int:
    """Accept a logging level as an int or a name like "debug"."""
    if isinstance(level, int):
        return level
    levels = logging.getLevelNamesMapping()
    try:
        return levels[level.upper()]
    except KeyError:
        raise ValueError(f"Unknown log level: {level}") from None


def setup_logging(level: int | str = logging.INFO, fmt: str = "json"):
    """JSON lines for the service; "console" is the readable renderer the login CLI uses."""
    if fmt not in LOG_FORMATS:
        raise ValueError(f"Unknown log format: {fmt}")
    level = resolve_level(level)
    renderer = structlog.dev.ConsoleRenderer() if fmt == "console" else structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=level,
    )


def get_logger(name: str = "usage_dashboard"):
    return structlog.get_logger(name)
