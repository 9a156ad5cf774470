import logging
import os
from typing import Optional

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
CONSOLE_FORMAT = "%(message)s"

_logger = logging.getLogger("tunewell")
_console_handler: Optional[logging.Handler] = None
_file_handler: Optional[logging.Handler] = None


def setup_logging(level: str = "INFO", log_file: Optional[str] = None) -> logging.Logger:
    """Configure the root logger: console output plus an optional log file.

    Safe to call again once the config is loaded; handlers are only added once.
    """
    global _console_handler, _file_handler

    root = logging.getLogger()
    root.setLevel(getattr(logging, str(level or "INFO").upper(), logging.INFO))

    if _console_handler is None:
        _console_handler = logging.StreamHandler()
        _console_handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
        root.addHandler(_console_handler)

    if log_file and _file_handler is None:
        directory = os.path.dirname(log_file)
        if directory:
            os.makedirs(directory, exist_ok=True)
        _file_handler = logging.FileHandler(log_file, encoding="utf-8")
        _file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(_file_handler)

    # httpx logs every request URL at INFO, query strings included.
    logging.getLogger("httpx").setLevel(logging.WARNING)

    return _logger


def log_debug(message: str) -> None:
    _logger.debug(message)


def log_info(message: str) -> None:
    _logger.info(f"ℹ️  {message}")


def log_success(message: str) -> None:
    _logger.info(f"✅ {message}")


def log_warning(message: str) -> None:
    _logger.warning(f"⚠️  {message}")


def log_error(message: str) -> None:
    _logger.error(f"❌ {message}")
