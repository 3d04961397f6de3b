"""
Utility functions for ecs-rollout.
"""

import logging
import shutil
import tempfile
from pathlib import Path

from ecs_rollout.config import LoggingSettings
from ecs_rollout.exceptions import CommandNotFoundError


class ColoredFormatter(logging.Formatter):
    """Custom formatter with colored output."""

    COLORS = {
        "DEBUG": "\033[30m",  # Grey
        "INFO": "\033[34m",  # Blue
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[31m",  # Red
        "SUCCESS": "\033[32m",  # Green
        "RESET": "\033[0m",  # Reset
    }

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with colors."""
        color = self.COLORS.get(record.levelname, self.COLORS["RESET"])
        reset = self.COLORS["RESET"]

        level_str = f"{color}[{record.levelname}]{reset}"
        level_padding = " " * (9 - len(record.levelname))

        return f"{level_str}{level_padding}{record.getMessage()}"


def get_logger(name: str) -> logging.Logger:
    """
    Get a configured logger instance with common configuration.

    Args:
        name: Logger name

    Returns:
        Configured logger
    """

    logger = logging.getLogger(name)

    if logger.handlers:
        return logger

    try:
        settings = LoggingSettings()
        log_level = str(settings.log_level).upper()
        log_file = str(settings.log_file)
        log_format = settings.log_format
    except Exception:  # pylint: disable=broad-exception-caught
        log_level = "INFO"
        log_file = str(Path(tempfile.gettempdir()) / "ecs-rollout.log")
        log_format = "%(asctime)s - %(levelname)s - %(message)s"

    logger.setLevel(log_level)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(ColoredFormatter())
    logger.addHandler(console_handler)

    file_handler = logging.FileHandler(log_file)
    file_handler.setFormatter(logging.Formatter(log_format))
    logger.addHandler(file_handler)

    return logger


def log_success(logger: logging.Logger, message: str) -> None:
    """
    Log a success message.

    Args:
        logger: Logger instance
        message: Success message
    """

    record = logger.makeRecord(
        logger.name,
        logging.INFO,
        "(success)",
        0,
        message,
        (),
        None,
    )

    record.levelname = "SUCCESS"
    logger.handle(record)


def check_command_installed(command: str) -> None:
    """
    Check if a command is installed and available.

    Args:
        command: Command name to check

    Raises:
        CommandNotFoundError: If the command is not found
    """

    if not shutil.which(command):
        raise CommandNotFoundError(f"{command} command is not installed")
