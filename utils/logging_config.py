"""
Centralized logging configuration for the scratch game
Provides console and optional rotating file logging
"""

import logging
import sys
from logging.handlers import RotatingFileHandler
import os


def setup_logging(app_name='scratch_game', log_level=None, log_file=None):
    """
    Setup application logging with console and optional file handlers

    The handlers are attached to the given logger name and to the
    scratch_game / utils package loggers so module loggers share them.

    Args:
        app_name: Name of the application (used in log messages)
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional path to log file (enables file logging)

    Returns:
        logging.Logger: Configured logger instance
    """

    # Determine log level from environment or parameter
    if log_level is None:
        log_level = os.getenv('LOG_LEVEL', 'INFO')
    numeric_level = getattr(logging, str(log_level).upper(), logging.INFO)

    detailed_formatter = logging.Formatter(
        fmt='[%(asctime)s] %(levelname)-8s [%(name)s.%(funcName)s:%(lineno)d] %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    simple_formatter = logging.Formatter(
        fmt='[%(asctime)s] %(levelname)-8s %(message)s',
        datefmt='%H:%M:%S'
    )

    handlers = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(numeric_level)
    console_handler.setFormatter(simple_formatter)
    handlers.append(console_handler)

    file_error = None
    if log_file:
        try:
            log_dir = os.path.dirname(log_file)
            if log_dir and not os.path.exists(log_dir):
                os.makedirs(log_dir, exist_ok=True)

            # Rotating file handler (10MB max, keep 5 backups)
            file_handler = RotatingFileHandler(
                log_file,
                maxBytes=10 * 1024 * 1024,
                backupCount=5,
                encoding='utf-8'
            )
            file_handler.setLevel(numeric_level)
            file_handler.setFormatter(detailed_formatter)
            handlers.append(file_handler)
        except OSError as e:
            file_error = e

    logger = logging.getLogger(app_name)
    for name in {app_name, 'scratch_game', 'utils'}:
        target = logging.getLogger(name)
        target.setLevel(numeric_level)
        # Remove existing handlers to avoid duplicates
        target.handlers.clear()
        for handler in handlers:
            target.addHandler(handler)
        target.propagate = False

    if file_error:
        logger.error(f"Failed to setup file logging: {file_error}")
    elif log_file:
        logger.info(f"File logging enabled: {log_file}")

    return logger


def log_api_call(logger, api_name, endpoint, status_code=None, duration=None):
    """Log external API calls"""
    msg = f"API Call: {api_name} -> {endpoint}"
    if status_code:
        msg += f" [HTTP {status_code}]"
    if duration:
        msg += f" ({duration:.2f}s)"
    logger.info(msg)


def log_error(logger, error, context=None):
    """Log error with optional context"""
    if context:
        logger.error(f"{context}: {error}", exc_info=True)
    else:
        logger.error(str(error), exc_info=True)
