from __future__ import annotations

import logging
import os
import sys
import traceback
from datetime import datetime, timezone
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

_LOGGER = logging.getLogger("ambientseed.logging")
LOG_DIR_ENV = "AMBIENTSEED_LOG_DIR"
DEBUG_ENV = "AMBIENTSEED_DEBUG"
_LOG_FILE = "ambientseed.log"
_PACKAGE_LOGGER = "ambientseed"
_RECORD_FORMAT = "%(asctime)s %(levelname)-8s %(threadName)s %(name)s | %(message)s"
_configured = False


def debug_enabled() -> bool:
    return os.environ.get(DEBUG_ENV, "").strip().lower() not in ("", "0", "false", "no")


def get_log_dir() -> Path:
    configured = os.environ.get(LOG_DIR_ENV)
    if configured:
        return Path(configured).expanduser()
    return Path.home() / ".cache" / "ambientseed" / "logs"


def get_log_path() -> Path:
    return get_log_dir() / _LOG_FILE


def _console_handler() -> logging.Handler:
    stream = sys.__stderr__ or sys.stderr
    handler: logging.Handler
    if stream.isatty():
        handler = RichHandler(
            console=Console(file=stream),
            show_path=False,
            rich_tracebacks=debug_enabled(),
        )
    else:
        handler = logging.StreamHandler(stream)
        handler.setFormatter(logging.Formatter("ambientseed %(levelname)s %(name)s: %(message)s"))
    handler.setLevel(logging.DEBUG if debug_enabled() else logging.INFO)
    return handler


def _file_handler() -> logging.Handler | None:
    path = get_log_path()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(path, encoding="utf-8")
    except OSError as exc:
        _LOGGER.warning("File logging disabled (%s): %s", path, exc)
        return None
    handler.setLevel(logging.DEBUG)
    handler.setFormatter(logging.Formatter(_RECORD_FORMAT))
    return handler


def configure_logging(*, force: bool = False) -> None:
    """Attach console and file handlers to the ``ambientseed`` logger once.

    With ``force`` the existing handlers are closed and rebuilt, which picks
    up a changed ``AMBIENTSEED_LOG_DIR``. The console handler is skipped when
    the host application already configured the root logger.
    """
    global _configured
    if _configured and not force:
        return

    logger = logging.getLogger(_PACKAGE_LOGGER)
    logger.setLevel(logging.DEBUG)
    if force:
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()

    if force or not logging.getLogger().handlers:
        logger.addHandler(_console_handler())
    file_handler = _file_handler()
    if file_handler is not None:
        logger.addHandler(file_handler)

    logger.propagate = True
    _configured = True


def _crash_report(context: str, exc: BaseException) -> str:
    stamp = datetime.now(timezone.utc).isoformat(timespec="seconds")
    trace = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return f"--- {stamp} {context} failed: {type(exc).__name__}: {exc}\n{trace}\n"


def log_exception(context: str, exc: BaseException) -> Path | None:
    """Append a full traceback for ``exc`` to the log file; returns its path."""
    path = get_log_path()
    report = _crash_report(context, exc)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("a", encoding="utf-8") as handle:
            handle.write(report)
    except OSError as write_exc:
        _LOGGER.warning("Could not write crash report to %s: %s", path, write_exc)
        return None
    return path
