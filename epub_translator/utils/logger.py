"""
Unified logging for the CLI and the web server.

Both interfaces log through the standard ``logging`` module. The CLI adds a
colourised console handler; the web server additionally keeps each job's log
entries so they can be returned by the status endpoint.

Pipeline components report events through the ``log_callback(event_key,
message)`` convention; ``create_legacy_callback()`` routes those events to the
matching log level.
"""
import logging
import sys
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, Optional

LOGGER_NAME = 'epub_translator'


class LogType(Enum):
    GENERAL = "general"
    TRANSLATION_START = "translation_start"
    TRANSLATION_END = "translation_end"
    PROGRESS = "progress"
    ERROR_DETAIL = "error_detail"


class ColoredFormatter(logging.Formatter):
    """Console formatter colouring the message by level."""

    COLORS = {
        logging.DEBUG: '\033[90m',
        logging.INFO: '\033[0m',
        logging.WARNING: '\033[93m',
        logging.ERROR: '\033[91m',
        logging.CRITICAL: '\033[91m',
    }
    RESET = '\033[0m'

    def __init__(self, enable_colors: bool = True):
        super().__init__('%(asctime)s %(message)s', datefmt='%H:%M:%S')
        self.enable_colors = enable_colors

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        if not self.enable_colors:
            return message
        return f"{self.COLORS.get(record.levelno, '')}{message}{self.RESET}"


class UnifiedLogger:
    """
    Thin wrapper over a stdlib logger adding structured entries and progress display.

    Args:
        logger: Underlying stdlib logger
        entry_callback: Optional callable receiving every log entry as a dict
    """

    def __init__(self, logger: logging.Logger, entry_callback: Optional[Callable[[Dict], None]] = None):
        self.logger = logger
        self.entry_callback = entry_callback
        self._last_progress_bucket = -1

    def _log(self, level: int, message: str, log_type: LogType = LogType.GENERAL,
             data: Optional[Dict] = None) -> None:
        if data:
            details = ", ".join(f"{key}={value}" for key, value in data.items())
            self.logger.log(level, "%s (%s)", message, details)
        else:
            self.logger.log(level, "%s", message)

        if self.entry_callback:
            self.entry_callback({
                'timestamp': datetime.now().strftime('%H:%M:%S'),
                'level': logging.getLevelName(level),
                'type': log_type.value,
                'message': message,
                'data': data or {},
            })

    def debug(self, message: str, log_type: LogType = LogType.GENERAL, data: Optional[Dict] = None) -> None:
        self._log(logging.DEBUG, message, log_type, data)

    def info(self, message: str, log_type: LogType = LogType.GENERAL, data: Optional[Dict] = None) -> None:
        self._log(logging.INFO, message, log_type, data)

    def warning(self, message: str, log_type: LogType = LogType.GENERAL, data: Optional[Dict] = None) -> None:
        self._log(logging.WARNING, message, log_type, data)

    def error(self, message: str, log_type: LogType = LogType.ERROR_DETAIL, data: Optional[Dict] = None) -> None:
        self._log(logging.ERROR, message, log_type, data)

    def update_progress(self, percent: float) -> None:
        """Log progress each time it crosses a new whole 5%."""
        bucket = int(percent // 5)
        if bucket <= self._last_progress_bucket:
            return
        self._last_progress_bucket = bucket
        self.info(f"⏳ Progress: {percent:.1f}%", LogType.PROGRESS)

    def create_legacy_callback(self) -> Callable[[str, str], None]:
        """Build a ``log_callback(event_key, message)`` routing events by key."""
        def log_callback(event_key: str, message: str = "") -> None:
            key = event_key.lower()
            if "error" in key:
                self.error(message)
            elif "warning" in key or "cancel" in key:
                self.warning(message)
            elif "debug" in key:
                self.debug(message)
            else:
                self.info(message)
        return log_callback


def setup_cli_logger(enable_colors: bool = True, debug: bool = False) -> UnifiedLogger:
    """Configure console logging for the CLI."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(ColoredFormatter(enable_colors and sys.stdout.isatty()))

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(logging.DEBUG if debug else logging.INFO)
    logging.getLogger('httpx').setLevel(logging.WARNING)
    logging.getLogger('httpcore').setLevel(logging.WARNING)

    return UnifiedLogger(logging.getLogger(LOGGER_NAME))


def setup_web_logger(entry_callback: Optional[Callable[[Dict], None]] = None,
                     name: str = LOGGER_NAME) -> UnifiedLogger:
    """Logger for one web job; entries are also handed to ``entry_callback``."""
    return UnifiedLogger(logging.getLogger(name), entry_callback)
