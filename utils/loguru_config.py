"""
Module Name: loguru_config.py
Author: BoutArchive Development Team
Created: Oct 18 2026
Description:
    Sets up Loguru sinks and routes standard logging records into Loguru so
    service loggers obtained through utils.logger share one output format.

Location:
    /utils/loguru_config.py

"""

import logging
import os
import sys
from pathlib import Path
from typing import Optional, Union

from loguru import logger


def _standardize_name(raw_name: Union[str, int]) -> str:
    """Normalize logger names to dotted, title-cased segments (Service.Import.FileOperations)."""
    if not raw_name:
        return "BoutArchive"
    if isinstance(raw_name, int):
        return str(raw_name)

    normalized = str(raw_name).replace("\\", ".").replace("/", ".").replace("_", ".").replace(" ", ".")
    parts = [segment for segment in normalized.split(".") if segment]
    return ".".join(part[:1].upper() + part[1:] for part in parts)


class InterceptHandler(logging.Handler):
    """Route standard logging records into Loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame = logging.currentframe()
        depth = 2
        while frame and frame.f_code.co_name == "emit":
            frame = frame.f_back
            depth += 1

        logger_name = _standardize_name(record.name)

        logger.bind(logger_name=logger_name).opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def _coerce_level(level: Union[str, int]) -> Union[str, int]:
    if isinstance(level, str):
        return level.upper()
    if isinstance(level, int):
        return level
    try:
        return int(level)
    except (TypeError, ValueError):
        return "INFO"


CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> "
    "| <level>{level: <8}</level> "
    "| <cyan>{extra[logger_name]}</cyan> - "
    "<level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss.SSS} - {level} - {extra[logger_name]} - {message}"


def setup_loguru(
    log_level: Union[str, int] = "INFO",
    log_file: str = "boutarchive.log",
    logger_name: str = "BoutArchive",
    log_dir: Optional[str] = None,
):
    """Configure Loguru sinks and hook standard logging into Loguru."""

    level = _coerce_level(log_level)
    log_dir = log_dir or os.environ.get("BOUTARCHIVE_LOG_DIR")
    target_dir = Path(log_dir) if log_dir else Path(__file__).resolve().parent.parent / "logs"
    target_dir.mkdir(parents=True, exist_ok=True)
    log_path = target_dir / log_file

    logger.remove()

    logger.add(
        sys.stdout,
        level=level,
        format=CONSOLE_FORMAT,
        enqueue=True,
        backtrace=False,
        diagnose=False,
        colorize=True,
    )

    logger.add(
        log_path,
        level=level,
        format=FILE_FORMAT,
        rotation="10 MB",
        retention=5,
        encoding="utf-8",
        enqueue=True,
        backtrace=False,
        diagnose=False,
    )

    # Module loggers copy the parent's handlers, so both must point at Loguru
    intercept = InterceptHandler()
    logging.basicConfig(handlers=[intercept], level=logging.NOTSET, force=True)
    logging.getLogger().setLevel(logging.NOTSET)
    for existing in list(logging.root.manager.loggerDict.values()):
        if isinstance(existing, logging.Logger) and existing.handlers:
            existing.handlers = [intercept]

    for noisy in ("urllib3", "werkzeug"):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logger.configure(extra={"logger_name": _standardize_name(logger_name)})

    return logger
