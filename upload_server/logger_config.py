import logging
import os
import sys
from pathlib import Path
from typing import Optional

LOGGER_NAME = "upload_server"


class StructuredMessage:
    def __init__(self, message, **kwargs):
        self.message = message
        self.kwargs = kwargs

    def __str__(self):
        if not self.kwargs:
            return '%s' % (self.message)
        fields = " ".join(f"{key}={value}" for key, value in self.kwargs.items())
        return f"{self.message} {fields}"


def structured_log(message, **kwargs):
    """Attach key/value fields to a log message."""
    return StructuredMessage(message, **kwargs)


def _add_file_handler(logger: logging.Logger, log_dir: str) -> None:
    # File handler (for detailed logging)
    logs_path = Path(log_dir)
    logs_path.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(logs_path / "upload_server.log")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s'
    ))
    logger.addHandler(file_handler)


def setup_logger(level: Optional[str] = None, log_dir: Optional[str] = None) -> logging.Logger:
    """Return the server logger, configuring its handlers on first use.

    Console output is always enabled. A file handler is added when a log
    directory is given (or set through UPLOAD_SERVER_LOG_DIR), including on
    a later call once the console handler already exists.
    """
    logger = logging.getLogger(LOGGER_NAME)
    if level is not None:
        logger.setLevel(level.upper())
    if logger.handlers:
        has_file_handler = any(isinstance(h, logging.FileHandler) for h in logger.handlers)
        if log_dir and not has_file_handler:
            _add_file_handler(logger, log_dir)
        return logger

    if level is None:
        logger.setLevel(os.getenv("UPLOAD_SERVER_LOG_LEVEL", "INFO").upper())

    # Console handler
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(logging.Formatter(
        '%(asctime)s - %(levelname)s - %(message)s'
    ))
    logger.addHandler(console_handler)

    log_dir = log_dir or os.getenv("UPLOAD_SERVER_LOG_DIR")
    if log_dir:
        _add_file_handler(logger, log_dir)

    return logger
