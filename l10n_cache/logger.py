"""
Logging for the localized string cache.

Every module logs through get_logger(__name__):
- console, INFO and above
- logs/l10n_cache.log, everything (kept for diagnosing bad translation files)
"""
import logging
import os
import sys

# L10N_CACHE_LOG_DIR overrides the default logs/ folder next to the package
LOG_DIR = os.environ.get(
    "L10N_CACHE_LOG_DIR",
    os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "logs"),
)
LOG_FILE = os.path.join(LOG_DIR, "l10n_cache.log")

LOG_FORMAT = "%(asctime)s | %(levelname)-7s | %(name)s | %(funcName)s() | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _build_handlers():
    formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)
    handlers = []

    try:
        os.makedirs(LOG_DIR, exist_ok=True)
        file_handler = logging.FileHandler(LOG_FILE, encoding="utf-8")
    except OSError:
        # read-only install location
        file_handler = None
    if file_handler is not None:
        file_handler.setLevel(logging.DEBUG)
        handlers.append(file_handler)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    handlers.append(console_handler)

    for handler in handlers:
        handler.setFormatter(formatter)
    return handlers


def get_logger(name: str) -> logging.Logger:
    """Logger for `name`; handlers are attached on first use only."""
    logger = logging.getLogger(name)
    if not logger.handlers:
        logger.setLevel(logging.DEBUG)
        for handler in _build_handlers():
            logger.addHandler(handler)
    return logger


def setup_exception_hook():
    """Log uncaught exceptions before the interpreter reports them. Call once from a CLI entry point."""
    crash_logger = get_logger("l10n_cache.crash")

    def exception_hook(exc_type, exc_value, exc_tb):
        if not issubclass(exc_type, KeyboardInterrupt):
            crash_logger.critical("Uncaught exception", exc_info=(exc_type, exc_value, exc_tb))
        sys.__excepthook__(exc_type, exc_value, exc_tb)

    sys.excepthook = exception_hook
