# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
Logging configuration for Story Localizer.
"""
import logging
import sys

PACKAGE_LOGGER = "story_localizer"
LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(level: str = "INFO", debug: bool = False) -> None:
    """Set up application logging."""

    # Create formatter
    formatter = logging.Formatter(LOG_FORMAT)

    # Create console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)

    # Configure root logger
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        handlers=[console_handler],
        format=LOG_FORMAT,
    )

    # Set specific logger levels
    loggers = {
        'aiohttp': logging.WARNING,
        'asyncio': logging.WARNING,
        PACKAGE_LOGGER: logging.DEBUG if debug or level.upper() == "DEBUG" else logging.INFO,
    }

    for logger_name, logger_level in loggers.items():
        logging.getLogger(logger_name).setLevel(logger_level)


def enable_debug_mode() -> None:
    """Switch the package logger to DEBUG (the session ``debug`` flag)."""
    logging.getLogger(PACKAGE_LOGGER).setLevel(logging.DEBUG)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance."""
    return logging.getLogger(name)
