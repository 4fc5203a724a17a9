from __future__ import annotations

import inspect
import logging.config
import sys
import typing
from typing import Any, override

from loguru import logger

from storequery.config.general import CONFIG

if typing.TYPE_CHECKING:
    from loguru import Record


class InterceptHandler(logging.Handler):
    """Logger which forwards to loguru."""

    @override
    def emit(self, record: logging.LogRecord) -> None:
        """Intercept stdlib logging and send it to loguru handling."""
        # Get corresponding Loguru level if it exists.
        level: str | int
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller from where originated the logged message.
        frame, depth = inspect.currentframe(), 0
        while frame and (depth == 0 or frame.f_code.co_filename == logging.__file__):
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def configure_logging(level: str | None = None) -> dict[str, Any]:
    """Route the store client's standardlib logging to loguru and configure loguru.

    The level defaults to CONFIG.log_level.
    """
    level = level or CONFIG.log_level
    std_log_config = {
        "version": 1,
        "handlers": {
            "loguru": {
                "()": InterceptHandler,
            }
        },
        "loggers": {
            name: {"level": level, "handlers": ["loguru"], "propagate": False}
            for name in ("storequery", "elasticsearch", "elastic_transport")
        },
        "incremental": False,
        "disable_existing_loggers": False,
    }
    logging.config.dictConfig(std_log_config)

    def format_stdout(record: Record) -> str:
        header = "<cyan>{time:YYYY-MM-DDTHH:mm:ss.SSSZ}</cyan> <blue>{process.id:4}</blue> <level>{level:8}</level>"
        log = " {message:80} <cyan>{name}:{function}():{line}</cyan>\n{exception}"
        if "request" in record["extra"]:
            header += f" <green>{record['extra']['request']}</green>"

        return header + log

    # Configure loguru
    logger.remove()
    logger.add(
        sys.stdout,
        format=format_stdout,
        colorize=True,
        backtrace=True,
        diagnose=False,
        level=level,
    )

    return std_log_config
