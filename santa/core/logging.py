from __future__ import annotations

import logging
import sys

from loguru import logger

LOG_FORMAT = "{time} | {level} | {name}:{function}:{line} | {message}"

# libraries that log through the standard logging module
ROUTED_LOGGERS = ("aiogram", "sqlalchemy", "alembic")


class InterceptHandler(logging.Handler):
    """Forward standard ``logging`` records to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(level: str, log_path: str) -> None:
    logger.remove()
    logger.add(sys.stderr, level=level, format=LOG_FORMAT)
    logger.add(log_path, level="DEBUG", format=LOG_FORMAT, rotation="100 KB", compression="zip")

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in ROUTED_LOGGERS:
        routed = logging.getLogger(name)
        routed.handlers = []
        routed.propagate = True
