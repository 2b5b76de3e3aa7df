"""
Logging helpers for FreeTunnel.

Built on loguru. Modules obtain their logger through get_logger(__name__),
which binds the module name as the record's component. configure_logging()
replaces every loguru sink with a single one at the requested level; calling
it again swaps that sink.
"""

import logging
import sys
import traceback

from loguru import logger

from freetunnel.models.enums import LogLevel

ROOT_LOGGER_NAME = "freetunnel"

# stdlib loggers of the libraries we drive, only bridged in FULL mode
_LIBRARY_LOGGERS = ("websockets", "httpx", "httpcore")

_LEVEL_MAP = {
    LogLevel.FULL: "DEBUG",
    LogLevel.DEBUG: "DEBUG",
    LogLevel.INFO: "INFO",
    LogLevel.WARNING: "WARNING",
}

LOG_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{extra[component]}</cyan> - "
    "<level>{message}</level>"
)


class InterceptHandler(logging.Handler):
    """Forward stdlib log records from third-party libraries into loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        logger.bind(component=record.name).opt(exception=record.exc_info).log(
            level, record.getMessage()
        )


def get_logger(name: str):
    """Get a loguru logger bound to a component under the freetunnel namespace."""
    if name != ROOT_LOGGER_NAME and not name.startswith(ROOT_LOGGER_NAME + "."):
        name = f"{ROOT_LOGGER_NAME}.{name}"
    return logger.bind(component=name)


def configure_logging(level: LogLevel | str = LogLevel.INFO, sink=None) -> int:
    """
    Configure the loguru sink.

    Args:
        level: LogLevel member or its string value.
        sink: Where records go; defaults to stderr.

    Returns:
        The loguru handler id of the installed sink.
    """
    level = LogLevel(level)

    logger.remove()
    logger.configure(extra={"component": ROOT_LOGGER_NAME})
    handler_id = logger.add(
        sink if sink is not None else sys.stderr,
        level=_LEVEL_MAP[level],
        format=LOG_FORMAT,
        backtrace=level == LogLevel.FULL,
        diagnose=False,
    )

    intercept = InterceptHandler()
    for name in _LIBRARY_LOGGERS:
        lib_logger = logging.getLogger(name)
        lib_logger.handlers = [
            h for h in lib_logger.handlers if not isinstance(h, InterceptHandler)
        ]
        if level == LogLevel.FULL:
            lib_logger.setLevel(logging.DEBUG)
            lib_logger.addHandler(intercept)
            lib_logger.propagate = False
        else:
            lib_logger.setLevel(logging.WARNING)
            lib_logger.propagate = True

    return handler_id


def format_traceback(exc: BaseException) -> str:
    """Render an exception with its traceback as a string."""
    return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
