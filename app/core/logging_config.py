# app/core/logging_config.py
import logging
import sys
from pathlib import Path
from typing import Optional


def setup_logging(log_level: str = "INFO", log_file: Optional[str] = None):
    """
    Configure application logging.

    Args:
        log_level: DEBUG, INFO, WARNING or ERROR
        log_file: optional path for a persistent log file
    """

    date_format = "%Y-%m-%d %H:%M:%S"
    log_format = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"

    handlers = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(logging.Formatter(fmt=log_format, datefmt=date_format))
    handlers.append(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file, encoding='utf-8')
        file_handler.setLevel(log_level)
        file_handler.setFormatter(logging.Formatter(fmt=log_format, datefmt=date_format))
        handlers.append(file_handler)

    logging.basicConfig(
        level=log_level,
        handlers=handlers,
        force=True
    )

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    logger = logging.getLogger(__name__)
    logger.info(f"Logging configured: level={log_level}")
    if log_file:
        logger.info(f"Logs written to: {log_file}")


def get_logger(name: str) -> logging.Logger:
    """Return the logger for a module"""
    return logging.getLogger(name)
