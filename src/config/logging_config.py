"""
Logging Configuration for RIA Hunter
JSON logs on stdout for the API process and its services
"""

import logging
import os
import sys
from typing import Optional

from pythonjsonlogger import jsonlogger


def setup_logger(
    name: str = "ria_hunter",
    level: Optional[str] = None,
) -> logging.Logger:
    """
    Create and configure a logger instance with JSON output.

    Args:
        name: Logger name (usually __name__ of calling module)
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
               Defaults to LOG_LEVEL env var or INFO

    Returns:
        Configured logger instance
    """
    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO").upper()

    numeric_level = getattr(logging, level, logging.INFO)

    logger = logging.getLogger(name)

    # Only add handler if not already configured
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        formatter = jsonlogger.JsonFormatter(
            "%(asctime)s %(levelname)s %(name)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
            rename_fields={"asctime": "timestamp", "levelname": "level", "name": "logger"},
            static_fields={"service": "ria-hunter", "env": os.getenv("ENVIRONMENT", "development")},
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    logger.setLevel(numeric_level)

    return logger


NOISY_LOGGERS = ("httpx", "httpcore", "hpack", "stripe", "google_genai")


def quiet_noisy_loggers(level: int = logging.WARNING) -> None:
    """Raise third-party client loggers to ``level`` so request chatter stays out of the app log."""
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(level)


# Create default application logger
logger = setup_logger("ria_hunter")
