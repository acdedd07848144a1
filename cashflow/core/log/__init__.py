"""Logging for the planner: rich console output, per-job daily log files and progress bars.

The API server and each CLI script call :func:`init_logging` once with their
own ``app_name``. Console output goes through rich; when ``log_dir`` is set
records are also appended to ``<log_dir>/<app_name>_<YYYY_MM_DD>.log``.
Handlers run behind a queue listener so slow disks never stall a request.
"""
from __future__ import annotations

import atexit
import logging
import os
from dataclasses import dataclass, field
from datetime import date, datetime
from logging.handlers import QueueHandler, QueueListener
from pathlib import Path
from queue import SimpleQueue
from threading import RLock

from rich.console import Console
from rich.logging import RichHandler
from rich.traceback import install as install_rich_traceback

from .context import ContextFilter, log_context
from .progress import progress_manager
from .timing import timeit

__all__ = [
    "LoggingConfig",
    "get_logger",
    "init_logging",
    "log_context",
    "progress_manager",
    "shutdown_logging",
    "timeit",
]

CONSOLE_FORMAT = "%(context)s%(message)s"
FILE_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(context)s%(message)s"
TIME_FORMAT = "%Y-%m-%d %H:%M:%S"

# Libraries that are chatty at INFO.
QUIET_LOGGERS = ("uvicorn.access", "multipart", "httpx", "httpcore")


@dataclass(frozen=True)
class LoggingConfig:
    app_name: str = "cashflow"
    level: str | int = "INFO"
    log_dir: Path | None = Path("logs")
    console: bool = True
    queue: bool = True

    @property
    def numeric_level(self) -> int:
        if isinstance(self.level, int):
            return self.level
        return getattr(logging, str(self.level).upper(), logging.INFO)


@dataclass
class _State:
    config: LoggingConfig | None = None
    listener: QueueListener | None = None
    installed: list[logging.Handler] = field(default_factory=list)


_lock = RLock()
_state = _State()
_context_filter = ContextFilter()


class JobFileHandler(logging.FileHandler):
    """Append to one file per job and calendar day, switching files at midnight."""

    def __init__(self, directory: Path, app_name: str) -> None:
        directory.mkdir(parents=True, exist_ok=True)
        self._directory = directory
        self._app_name = app_name
        self._day = date.today()
        super().__init__(self._file_for(self._day), mode="a", encoding="utf-8")

    def _file_for(self, day: date) -> str:
        return os.fspath(self._directory / f"{self._app_name}_{day:%Y_%m_%d}.log")

    def emit(self, record: logging.LogRecord) -> None:
        day = datetime.fromtimestamp(record.created).date()
        if day != self._day:
            self._day = day
            self.acquire()
            try:
                if self.stream:
                    self.stream.close()
                self.baseFilename = self._file_for(day)
                self.stream = self._open()
            finally:
                self.release()
        super().emit(record)


def _console_handler(level: int) -> logging.Handler:
    console = Console(stderr=True)
    progress_manager.use_console(console)
    handler = RichHandler(
        console=console,
        rich_tracebacks=True,
        show_path=False,
        markup=False,
        log_time_format=TIME_FORMAT,
    )
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    return handler


def _file_handler(cfg: LoggingConfig, level: int) -> logging.Handler:
    handler = JobFileHandler(Path(cfg.log_dir), cfg.app_name)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=TIME_FORMAT))
    return handler


def _teardown() -> None:
    if _state.listener is not None:
        _state.listener.stop()
    root = logging.getLogger()
    for handler in _state.installed:
        root.removeHandler(handler)
        handler.close()
    _state.config = None
    _state.listener = None
    _state.installed = []
    progress_manager.reset_console()


def init_logging(
    *,
    app_name: str = "cashflow",
    level: str | int = "INFO",
    log_dir: Path | str | None = Path("logs"),
    console: bool = True,
    queue: bool = True,
) -> LoggingConfig:
    """Install the planner's handlers on the root logger and return the active config.

    Calling again with identical arguments keeps the running setup; anything
    else replaces it.
    """

    cfg = LoggingConfig(
        app_name=app_name,
        level=level,
        log_dir=Path(log_dir) if log_dir else None,
        console=console,
        queue=queue,
    )
    with _lock:
        if _state.config == cfg:
            return cfg
        _teardown()

        level_no = cfg.numeric_level
        outputs: list[logging.Handler] = []
        if cfg.console:
            install_rich_traceback(show_locals=False)
            outputs.append(_console_handler(level_no))
        if cfg.log_dir is not None:
            outputs.append(_file_handler(cfg, level_no))
        for handler in outputs:
            handler.addFilter(_context_filter)

        root = logging.getLogger()
        root.setLevel(level_no)
        if cfg.queue and outputs:
            entry = QueueHandler(SimpleQueue())
            # Context vars are read on the calling thread, before the hand-off.
            entry.addFilter(_context_filter)
            _state.listener = QueueListener(entry.queue, *outputs, respect_handler_level=True)
            _state.listener.start()
            _state.installed = [entry]
        else:
            _state.installed = outputs
        for handler in _state.installed:
            root.addHandler(handler)

        for name in QUIET_LOGGERS:
            logging.getLogger(name).setLevel(max(level_no, logging.WARNING))
        _state.config = cfg
    return cfg


def shutdown_logging() -> None:
    """Flush the queue listener and remove the planner's handlers."""

    with _lock:
        _teardown()


atexit.register(shutdown_logging)


def get_logger(name: str | None = None) -> logging.Logger:
    with _lock:
        if _state.config is None:
            init_logging()
        app_name = _state.config.app_name if _state.config else "cashflow"
    return logging.getLogger(name or app_name)
