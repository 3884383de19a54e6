"""
Centralized Logging Management for the Sync Module.

All sync components log through the `wpmirror` logger hierarchy so that a
single configuration produces structured, consistent output for every
endpoint run.

Key Features:
- Structured Logging: Outputs logs in JSON format for easy parsing.
- Centralized Configuration: Level and log file come from the sync config.
- Endpoint Context: Records carry the endpoint name when one is supplied
  through `extra={'endpoint': ...}`.
"""

import logging
import sys
import json
from typing import Optional

ROOT_LOGGER_NAME = "wpmirror"


class JsonFormatter(logging.Formatter):
    """
    Custom formatter to output logs in JSON format.
    """
    def format(self, record):
        log_record = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        if hasattr(record, 'endpoint'):
            log_record['endpoint'] = record.endpoint
        if record.exc_info:
            log_record['exc_info'] = self.formatException(record.exc_info)
        if hasattr(record, 'details'):
            log_record['details'] = record.details
        return json.dumps(log_record, ensure_ascii=False, default=str)


class LoggingManager:
    """
    Owns the handlers of the `wpmirror` logger.

    The first `get_logger` call installs a stdout handler at INFO, since
    modules ask for loggers at import time. A sync run then passes the level
    and log file of its endpoints file, which rebuilds the handlers.
    """
    _instance = None

    def __new__(cls, *args, **kwargs):
        if not cls._instance:
            cls._instance = super(LoggingManager, cls).__new__(cls)
        return cls._instance

    def __init__(self, log_level: Optional[str] = None, log_file: Optional[str] = None):
        if getattr(self, '_initialized', False):
            if log_level is not None or log_file is not None:
                self.configure(log_level or self.log_level, log_file)
            return

        self.logger = logging.getLogger(ROOT_LOGGER_NAME)
        self.logger.propagate = False  # Prevent duplicate lines from the root basicConfig handler
        self.configure(log_level or "INFO", log_file)
        self._initialized = True

    def configure(self, log_level: str, log_file: Optional[str] = None) -> None:
        """Set the level and replace the handlers: stdout, plus `log_file` when given."""
        self.log_level = log_level.upper()
        self.log_file = log_file
        self.logger.setLevel(self.log_level)

        for handler in list(self.logger.handlers):
            self.logger.removeHandler(handler)
            handler.close()

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(self.log_level)
        console_handler.setFormatter(JsonFormatter())
        self.logger.addHandler(console_handler)

        if self.log_file:
            file_handler = logging.FileHandler(self.log_file, encoding='utf-8')
            file_handler.setLevel(self.log_level)
            file_handler.setFormatter(JsonFormatter())
            self.logger.addHandler(file_handler)

    @staticmethod
    def get_logger(name: str) -> logging.Logger:
        """
        Provides a logger with the correct configuration.
        """
        if not LoggingManager._instance:
            LoggingManager()
        return logging.getLogger(name)


def get_logger(name: str) -> logging.Logger:
    """
    Convenience function to get a logger instance.
    """
    return LoggingManager.get_logger(name)
