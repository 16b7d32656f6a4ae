import logging
import os
import sys
from datetime import datetime
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(threadName)s | %(name)s:%(lineno)d - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that are too chatty below INFO
_NOISY_LOGGERS = ("kubernetes", "urllib3", "git")


class ColoredFormatter(logging.Formatter):
    """Colors console lines by level."""

    COLORS = {
        logging.DEBUG: "\x1b[36m",
        logging.INFO: "\x1b[32m",
        logging.WARNING: "\x1b[33m",
        logging.ERROR: "\x1b[31m",
        logging.CRITICAL: "\x1b[31;1m",
    }
    RESET = "\x1b[0m"

    def __init__(self):
        super().__init__(LOG_FORMAT, datefmt=DATE_FORMAT)

    def format(self, record):
        line = super().format(record)
        color = self.COLORS.get(record.levelno)
        return f"{color}{line}{self.RESET}" if color else line


def _console_formatter() -> logging.Formatter:
    # Pod logs end up in a collector; keep escape codes out of them
    if sys.stderr.isatty():
        return ColoredFormatter()
    return logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)


def setup_logging(level=logging.INFO, log_dir: Optional[str] = None):
    """Configure root logging for the controller process."""
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    root_logger.setLevel(level)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(_console_formatter())
    root_logger.addHandler(console_handler)

    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
        log_file = os.path.join(log_dir, f"controller_{datetime.now().strftime('%Y%m%d')}.log")
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
        root_logger.addHandler(file_handler)

    # uvicorn installs its own handlers unless log_config=None; route it through root
    for logger_name in ("activity_controller", "main", "uvicorn", "uvicorn.error", "uvicorn.access"):
        named = logging.getLogger(logger_name)
        named.setLevel(level)
        named.propagate = True

    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(max(level, logging.INFO))

    root_logger.info("Logging initialized (%s)", f"console + {log_dir}" if log_dir else "console")
