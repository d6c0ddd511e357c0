"""
Structured Logging for the load harness
Episode events carry a structured_data payload rendered as JSON lines or colored console output
"""

import json
import logging
import sys
import threading
import time
from typing import Callable, Optional, TextIO

from .config import LoggingConfig, get_config

ROOT_LOGGER_NAME = "loadharness"

# Diagnostic sink for elapsed-time lines
TimingReporter = Callable[[str], None]


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging"""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": record.created,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "thread": record.threadName,
        }

        if hasattr(record, 'structured_data'):
            log_data.update(record.structured_data)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class ColoredConsoleFormatter(logging.Formatter):
    """Colored console formatter for better readability"""

    COLORS = {
        'DEBUG': '\033[36m',    # Cyan
        'INFO': '\033[32m',     # Green
        'WARNING': '\033[33m',  # Yellow
        'ERROR': '\033[31m',    # Red
        'CRITICAL': '\033[35m', # Magenta
        'RESET': '\033[0m'
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, self.COLORS['RESET'])
        reset = self.COLORS['RESET']
        timestamp = time.strftime('%H:%M:%S', time.localtime(record.created))

        context_info = ""
        if hasattr(record, 'structured_data'):
            data = record.structured_data
            if 'event' in data:
                context_info += f" [{data['event']}]"
            if 'users' in data:
                context_info += f" users={data['users']}"
            if 'elapsed_ms' in data:
                context_info += f" ({data['elapsed_ms']}ms)"

        message = f"{color}{timestamp}{reset} [{record.threadName}] {record.getMessage()}{context_info}"
        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)
        return message


def configure_logging(config: Optional[LoggingConfig] = None,
                      stream: Optional[TextIO] = None) -> logging.Logger:
    """
    Attach a single handler to the package logger

    Applications call this once at startup. Without an explicit config the
    logging section of get_config() is applied, so LOADHARNESS_LOG_LEVEL and
    LOADHARNESS_LOG_FORMAT take effect.
    """
    config = config or get_config().logging
    package_logger = logging.getLogger(ROOT_LOGGER_NAME)
    package_logger.setLevel(getattr(logging, config.level.upper(), logging.WARNING))

    # Clear existing handlers to avoid duplicates
    package_logger.handlers.clear()

    handler = logging.StreamHandler(stream or sys.stderr)
    if config.format == "json":
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(ColoredConsoleFormatter())
    package_logger.addHandler(handler)
    return package_logger


class StreamReporter:
    """Writes timing lines to a stream, stdout by default"""

    def __init__(self, stream: Optional[TextIO] = None):
        self._stream = stream
        self._lock = threading.Lock()

    def __call__(self, line: str) -> None:
        stream = self._stream or sys.stdout
        with self._lock:
            stream.write(line + "\n")
            stream.flush()


default_reporter = StreamReporter()
