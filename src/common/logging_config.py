"""Centralized logging configuration for the worker and its client."""

import logging
import sys
from pathlib import Path
from typing import Optional

from common.config import settings
from common.utils import DateTimeUtils


def setup_logging(
    service_name: str, log_file: Optional[str] = None, log_level: Optional[str] = None
) -> logging.Logger:
    """
    Configure logging for a service with consistent formatting.

    Handlers are attached to the service logger and to the ``translator``
    package logger, so module loggers created with ``logging.getLogger(__name__)``
    inside the orchestrator share the same output.

    Args:
        service_name: Name of the service (e.g., 'translator', 'translator-client')
        log_file: Optional log file path. If None, logs only to console
        log_level: Optional log level override. If None, uses settings.log_level

    Returns:
        Configured logger instance
    """
    level = log_level or settings.log_level
    log_level_value = getattr(logging, level.upper(), logging.INFO)

    detailed_formatter = logging.Formatter(
        fmt="%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    simple_formatter = logging.Formatter(
        fmt="%(asctime)s - %(levelname)s - %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
    )

    handlers = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level_value)
    console_handler.setFormatter(simple_formatter)
    handlers.append(console_handler)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)

        file_handler = logging.FileHandler(log_file, mode="a")
        file_handler.setLevel(log_level_value)
        file_handler.setFormatter(detailed_formatter)
        handlers.append(file_handler)

    logger = logging.getLogger(service_name)
    for target in {logger, logging.getLogger("translator"), logging.getLogger("common")}:
        target.setLevel(log_level_value)
        # Remove existing handlers to avoid duplicates
        target.handlers.clear()
        for handler in handlers:
            target.addHandler(handler)
        # Prevent propagation to root logger
        target.propagate = False

    return logger


def get_log_file_path(service_name: str) -> str:
    """
    Generate a log file path for a service.

    Example:
        >>> get_log_file_path("translator")  # doctest: +SKIP
        './logs/translator_20240101.log'
    """
    date_string = DateTimeUtils.get_date_string_for_log_file()
    return f"./logs/{service_name}_{date_string}.log"


def configure_third_party_loggers(level: str = "WARNING") -> None:
    """
    Configure logging levels for third-party libraries to reduce noise.

    Args:
        level: Log level for third-party libraries
    """
    third_party_loggers = [
        "aio_pika",
        "aiormq",
        "httpx",
        "httpcore",
        "asyncio",
    ]

    log_level = getattr(logging, level.upper(), logging.WARNING)

    for logger_name in third_party_loggers:
        logging.getLogger(logger_name).setLevel(log_level)


def setup_service_logging(
    service_name: str, enable_file_logging: bool = True
) -> logging.Logger:
    """
    Set up logging for a service and quiet third-party loggers.

    Args:
        service_name: Name of the service
        enable_file_logging: Whether to enable file logging

    Returns:
        Configured service logger
    """
    configure_third_party_loggers()
    log_file = get_log_file_path(service_name) if enable_file_logging else None
    return setup_logging(service_name, log_file)
