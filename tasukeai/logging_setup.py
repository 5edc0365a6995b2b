"""
Logging setup.

DEBUG level in development, INFO otherwise. Records go to the console and,
unless disabled, to a rotating file (10MB x 5 backups) under LOG_DIR.
"""

import logging
import os
from logging.handlers import RotatingFileHandler

from tasukeai.config import Config

LOGGER_NAME = "tasukeai"

_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def setup_logging(settings: type[Config]) -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)
    log_level = logging.DEBUG if settings.DEBUG else logging.INFO
    logger.setLevel(log_level)

    # create_app() may run more than once per process (tests)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    console.setLevel(log_level)
    logger.addHandler(console)

    if settings.LOG_TO_FILE:
        os.makedirs(settings.LOG_DIR, exist_ok=True)
        log_file = os.path.join(settings.LOG_DIR, "tasukeai.log")
        file_handler = RotatingFileHandler(
            log_file,
            maxBytes=10 * 1024 * 1024,
            backupCount=5,
            encoding="utf-8",
        )
        file_handler.setFormatter(formatter)
        file_handler.setLevel(log_level)
        logger.addHandler(file_handler)
        logger.info(f"Log file: {log_file}")

    logger.info(f"Log level: {logging.getLevelName(log_level)}")
    return logger


def log_api_call(endpoint: str, user_id: str | None, params: dict | None = None) -> None:
    """Audit line for a user-facing call, e.g. an application."""
    log_msg = f"API Call: {endpoint} | User: {user_id}"
    if params:
        log_msg += f" | Params: {params}"
    logging.getLogger(LOGGER_NAME).info(log_msg)


def log_admin_action(action: str, admin_id: str, details: dict | None = None) -> None:
    log_msg = f"Admin Action: {action} | Admin: {admin_id}"
    if details:
        log_msg += f" | Details: {details}"
    logging.getLogger(LOGGER_NAME).info(log_msg)
