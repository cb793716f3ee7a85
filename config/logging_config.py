"""
Centralized logging configuration for the FazAI daemon.

This module provides a function to set up application-wide logging,
including formatting, log levels, and handlers for console and file output.
Every record is rendered as a single JSON line so the log file can be tailed
and parsed back by the log endpoints.
"""

import logging
import logging.handlers # Required for RotatingFileHandler
import sys # To ensure we can always output to stdout for console
import json
from pathlib import Path


class StructuredLogFormatter(logging.Formatter):
    """
    Custom formatter that renders each record as one JSON object per line.

    Features:
    - Includes request_id if present in extra fields
    - Includes component if present in extra fields
    - Preserves standard log fields (timestamp, level, logger name)
    - Appends formatted exception text when exc_info is set
    """

    def format(self, record):
        log_data = {
            'timestamp': self.formatTime(record, self.datefmt),
            'level': record.levelname.lower(),
            'logger': record.name,
            'message': record.getMessage()
        }

        if hasattr(record, 'request_id'):
            log_data['request_id'] = record.request_id

        if hasattr(record, 'component'):
            log_data['component'] = record.component

        if hasattr(record, 'extra_fields'):
            log_data.update(record.extra_fields)

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, ensure_ascii=False, default=str)


DEFAULT_LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] - [%(component)s] - %(message)s'
DEFAULT_LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class ContextLoggerAdapter(logging.LoggerAdapter):
    """LoggerAdapter that merges a call's own `extra` with the adapter context instead of replacing it."""

    def process(self, msg, kwargs):
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs


def get_logger(name: str, **context) -> ContextLoggerAdapter:
    """
    Get a logger adapter that always carries the structured context fields.

    Args:
        name (str): Logger name (usually __name__)
        **context: request_id, component or other fields to attach to every record

    Returns:
        ContextLoggerAdapter: Adapter with default request_id and component values
    """
    logger = logging.getLogger(name)

    # Null values for our custom fields so formatters never hit a KeyError
    return ContextLoggerAdapter(logger, {
        'request_id': 'no_id',
        'component': 'no_component',
        **context
    })


def setup_app_logging(config: dict = None, default_level=logging.INFO) -> None:
    """
    Set up logging for the entire application.

    This function configures the root logger with handlers for console
    and file output. Log levels and file paths can be specified via
    the optional config dictionary.

    Args:
        config (dict, optional): A dictionary containing logging configurations.
                                Expected keys:
                                - 'level': String representation of log level (e.g., "DEBUG", "INFO").
                                - 'file_path': Path to the log file; empty disables the file sink.
                                - 'max_bytes': Max size of the log file before rotation.
                                - 'backup_count': Number of backup log files to keep.
                                - 'date_format': Custom log date format string.
        default_level (int, optional): The default logging level if not specified
                                     in the config. Defaults to logging.INFO.
    """
    if config is None:
        config = {}

    log_level_str = str(config.get('level', logging.getLevelName(default_level))).upper()
    numeric_log_level = getattr(logging, log_level_str, default_level)
    if not isinstance(numeric_log_level, int):
        print(f"Warning: Invalid log level string '{log_level_str}'. Using default level {logging.getLevelName(default_level)}.", file=sys.stderr)
        numeric_log_level = default_level

    log_date_format = config.get('date_format', DEFAULT_LOG_DATE_FORMAT)
    formatter = StructuredLogFormatter(DEFAULT_LOG_FORMAT, datefmt=log_date_format)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_log_level)

    # Remove any existing handlers so a settings reload does not duplicate sinks
    if root_logger.hasHandlers():
        for handler in root_logger.handlers[:]:
            root_logger.removeHandler(handler)
            handler.close()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    log_file_path = config.get('file_path', 'logs/fazai.log')
    if log_file_path:
        try:
            max_bytes = int(config.get('max_bytes', 5*1024*1024))  # 5 MB
            backup_count = int(config.get('backup_count', 3))

            Path(log_file_path).parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.handlers.RotatingFileHandler(
                log_file_path,
                maxBytes=max_bytes,
                backupCount=backup_count,
                encoding='utf-8'
            )
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)
            print(f"Logging to file: {log_file_path} with level {log_level_str}", file=sys.stdout)
        except Exception as e:
            print(f"Error setting up file logging to {log_file_path}: {e}. File logging will be disabled.", file=sys.stderr)
    else:
        print("File logging is disabled as no 'file_path' was provided in logging config.", file=sys.stdout)

    initial_logger = get_logger("LoggingConfig")
    initial_logger.info("Application logging setup complete. Level: %s", log_level_str)
