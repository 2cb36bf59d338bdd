#!/usr/bin/env python3
"""
RIA Hunter - Main Entry Point

Usage:
    python main.py                  # Serve the API on HOST:PORT
    python main.py --reload         # Development server with auto-reload
"""

import sys

import uvicorn

from src.config.logging_config import logger, quiet_noisy_loggers
from src.config.settings import config, validate_env_for_app


def main():
    """Validate the environment, then serve the API."""
    validate_env_for_app()
    quiet_noisy_loggers()
    reload = "--reload" in sys.argv[1:]
    logger.info("Starting RIA Hunter API on %s:%s (env=%s)", config.HOST, config.PORT, config.ENVIRONMENT)
    uvicorn.run("src.api.app:app", host=config.HOST, port=config.PORT, reload=reload)


if __name__ == "__main__":
    main()
