"""Logging bootstrap for convo-tui.

One rotating log file per run, named after the session it shows. While the
app runs, Textual owns the terminal, so a stderr handler is opt-in.

// [LAW:single-enforcer] Handler wiring happens here and nowhere else.
// [LAW:one-source-of-truth] The resolved level and file path live in LoggingRuntime.
"""

import logging
import logging.handlers
import os
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

ENV_LEVEL = "CONVO_TUI_LOG_LEVEL"
ENV_DIR = "CONVO_TUI_LOG_DIR"
ENV_FILE = "CONVO_TUI_LOG_FILE"
DEFAULT_LOG_DIR = "~/.local/share/convo-tui/logs"

# 20 MiB per file, five rotated files kept.
MAX_BYTES = 20 * 1024 * 1024
BACKUP_COUNT = 5

FILE_FORMAT = "%(asctime)s %(levelname)-7s %(name)s [%(threadName)s] %(message)s"
STREAM_FORMAT = "%(levelname)s %(name)s: %(message)s"


@dataclass(frozen=True)
class LoggingRuntime:
    level_name: str
    level: int
    file_path: str


_RUNTIME: LoggingRuntime | None = None


def resolve_level(raw: str | None) -> int:
    """Level number for a name like "debug". Unknown names mean INFO."""
    level = logging.getLevelName(str(raw or "INFO").strip().upper())
    return level if isinstance(level, int) else logging.INFO


def log_file_for(session_name: str) -> Path:
    """`<log dir>/<session>-<utc stamp>-<pid>.log`."""
    log_dir = Path(os.path.expanduser(os.environ.get(ENV_DIR, DEFAULT_LOG_DIR)))
    slug = re.sub(r"[^A-Za-z0-9_-]+", "-", session_name).strip("-_") or "session"
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    return log_dir / f"{slug}-{stamp}-{os.getpid()}.log"


def _handlers(level: int, file_path: Path, stream: bool) -> list[logging.Handler]:
    file_handler = logging.handlers.RotatingFileHandler(
        file_path, maxBytes=MAX_BYTES, backupCount=BACKUP_COUNT, encoding="utf-8"
    )
    file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S"))
    handlers: list[logging.Handler] = [file_handler]
    if stream:
        stderr_handler = logging.StreamHandler()
        stderr_handler.setFormatter(logging.Formatter(STREAM_FORMAT))
        handlers.append(stderr_handler)
    for handler in handlers:
        handler.setLevel(level)
    return handlers


def configure(session_name: str = "session", stream: bool = False) -> LoggingRuntime:
    """Attach handlers to the `convo_tui` logger. Later calls return the first runtime.

    Every module logs through `logging.getLogger(__name__)`, so the whole
    package lands in one file. Records do not propagate to the root logger.
    """
    global _RUNTIME
    if _RUNTIME is not None:
        return _RUNTIME

    level = resolve_level(os.environ.get(ENV_LEVEL))
    file_path = Path(os.environ.get(ENV_FILE) or log_file_for(session_name))
    file_path.parent.mkdir(parents=True, exist_ok=True)

    package_logger = logging.getLogger("convo_tui")
    package_logger.setLevel(level)
    package_logger.propagate = False
    package_logger.handlers.clear()
    for handler in _handlers(level, file_path, stream):
        package_logger.addHandler(handler)

    _RUNTIME = LoggingRuntime(level_name=logging.getLevelName(level), level=level, file_path=str(file_path))
    return _RUNTIME


def get_runtime() -> LoggingRuntime | None:
    """The configured runtime, or None before configure() has run."""
    return _RUNTIME
