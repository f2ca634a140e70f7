import faulthandler
import logging
import os
import sys
import threading
from logging.handlers import RotatingFileHandler
from pathlib import Path

from .utils import get_user_data_path

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
LOG_LEVEL_ENV = "MULTISTREAM_LOG_LEVEL"

_FAULT_FILE = None


def _resolve_level(default: int) -> int:
    raw = str(os.getenv(LOG_LEVEL_ENV, "") or "").strip().upper()
    if not raw:
        return default
    level = logging.getLevelName(raw)
    return level if isinstance(level, int) else default


def setup_app_logging(level: int = logging.INFO) -> Path:
    log_path = Path(get_user_data_path("logs.txt"))
    log_path.parent.mkdir(parents=True, exist_ok=True)

    root = logging.getLogger()
    root.setLevel(_resolve_level(level))

    # Startup may run twice when the stage is rebuilt; keep a single file handler.
    for handler in list(root.handlers):
        if isinstance(handler, RotatingFileHandler):
            existing = getattr(handler, "baseFilename", "")
            if existing and Path(existing) == log_path:
                return log_path

    handler = RotatingFileHandler(
        log_path,
        maxBytes=1_000_000,
        backupCount=3,
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)

    logging.captureWarnings(True)
    _enable_fault_handler(log_path)
    _install_exception_hooks()
    logging.info(
        "Logging initialized. Python=%s level=%s log_path=%s",
        sys.version.split()[0],
        logging.getLevelName(root.level),
        str(log_path),
    )
    return log_path


def _enable_fault_handler(log_path: Path) -> None:
    global _FAULT_FILE
    try:
        _FAULT_FILE = open(log_path, "a", encoding="utf-8")
        faulthandler.enable(_FAULT_FILE)
    except OSError:
        _FAULT_FILE = None


def _install_exception_hooks() -> None:
    def _log_exception(exc_type, exc_value, exc_tb):
        logging.critical(
            "Unhandled exception",
            exc_info=(exc_type, exc_value, exc_tb),
        )

    def _log_unraisable(unraisable):
        logging.critical(
            "Unraisable exception: %s",
            getattr(unraisable, "err_msg", ""),
            exc_info=(
                type(unraisable.exc_value),
                unraisable.exc_value,
                unraisable.exc_traceback,
            ),
        )

    def _thread_hook(args):
        # mpv delivers its events on its own thread; make those failures visible.
        logging.critical(
            "Unhandled thread exception in %s",
            getattr(args.thread, "name", "unknown"),
            exc_info=(args.exc_type, args.exc_value, args.exc_traceback),
        )

    sys.excepthook = _log_exception
    sys.unraisablehook = _log_unraisable
    threading.excepthook = _thread_hook
