"""
PELens Structured Logger
=========================

:class:`PELensLogger` wraps a stdlib :class:`logging.Logger` named
``pelens.<component>``.  Records go to stderr through a Rich handler and,
when a log file is configured, to a size-rotated file as plain text or as
JSON lines.

Every record is stamped with the emitting *component* (``"cli"``,
``"engine"``...).  Keyword arguments passed to a log call that are not
stdlib logging options are collected under ``pelens_extra`` and appear as
the ``extra`` object of a JSON record::

    log.info("decoded %d sections", 6, path="a.dll")

References:
    - Python logging cookbook. https://docs.python.org/3/howto/logging-cookbook.html
    - Rich logging handler. https://rich.readthedocs.io/en/stable/logging.html
"""

from __future__ import annotations

import json
import logging
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Generator

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

_LOG_THEME = Theme(
    {
        "log.level.debug": "dim cyan",
        "log.level.info": "bold bright_blue",
        "log.level.warning": "bold yellow",
        "log.level.error": "bold red",
        "log.level.critical": "bold white on red",
    }
)

_PLAIN_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_STDLIB_KWARGS = frozenset({"exc_info", "stack_info", "stacklevel"})


class _JSONFormatter(logging.Formatter):
    """One JSON object per line.

    Keys: ``timestamp`` (UTC, ISO 8601), ``level``, ``logger``, ``message``,
    and when present ``component``, ``extra`` and ``exc_info``.
    """

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for attr, key in (("component", "component"), ("pelens_extra", "extra")):
            value = getattr(record, attr, None)
            if value is not None:
                entry[key] = value
        if record.exc_info and record.exc_info[1] is not None:
            entry["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


def _stderr_handler(level: int) -> RichHandler:
    # markup off: messages embed file paths and names decoded from the image
    return RichHandler(
        level=level,
        console=Console(theme=_LOG_THEME, stderr=True),
        show_path=False,
        rich_tracebacks=True,
        tracebacks_show_locals=False,
        markup=False,
    )


def _file_handler(
    path: Path, level: int, json_logs: bool, max_bytes: int, backup_count: int
) -> RotatingFileHandler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        filename=str(path), maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    handler.setLevel(level)
    handler.setFormatter(
        _JSONFormatter()
        if json_logs
        else logging.Formatter(fmt=_PLAIN_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S%z")
    )
    return handler


class Stopwatch:
    """Elapsed-time reading for a :meth:`PELensLogger.timed` block."""

    __slots__ = ("_start", "_stop")

    def __init__(self) -> None:
        self._start = time.perf_counter()
        self._stop: float | None = None

    def stop(self) -> None:
        self._stop = time.perf_counter()

    @property
    def elapsed(self) -> float:
        """Seconds between entering the block and leaving it (or now)."""
        end = self._stop if self._stop is not None else time.perf_counter()
        return end - self._start


class PELensLogger:
    """Component logger for PELens.

    Usage::

        log = PELensLogger("cli", log_file="pelens.log", json_logs=True)
        engine_log = log.child("engine")
        with engine_log.timed("section table decode"):
            ...

    Args:
        component: Name stamped on every record; the stdlib logger is
            ``pelens.<component>``.
        log_level: Minimum severity name, case-insensitive.  Unknown names
            fall back to INFO.
        log_file: Rotating log file, or ``None`` for no file output.
        json_logs: Write the file as JSON lines instead of plain text.
        max_bytes: Rotation threshold of the log file (10 MiB by default).
        backup_count: Rotated files kept alongside the active one.
        console_output: Attach the Rich stderr handler.

    Constructing a logger for a component that already has one replaces
    and closes the handlers of the earlier instance.
    """

    def __init__(
        self,
        component: str,
        *,
        log_level: str = "INFO",
        log_file: str | Path | None = None,
        json_logs: bool = False,
        max_bytes: int = 10_485_760,
        backup_count: int = 5,
        console_output: bool = True,
    ) -> None:
        level = getattr(logging, log_level.upper(), logging.INFO)
        self._component = component
        self._logger = logging.getLogger(f"pelens.{component}")
        self._logger.setLevel(level)
        self._logger.propagate = False
        for handler in list(self._logger.handlers):
            self._logger.removeHandler(handler)
            handler.close()

        if console_output:
            self._logger.addHandler(_stderr_handler(level))
        if log_file:
            self._logger.addHandler(
                _file_handler(Path(log_file), level, json_logs, max_bytes, backup_count)
            )

    def child(self, component: str) -> PELensLogger:
        """Logger for a sub-component, writing through this logger's handlers."""
        sub = PELensLogger.__new__(PELensLogger)
        sub._component = component
        sub._logger = self._logger.getChild(component)
        return sub

    @property
    def component(self) -> str:
        return self._component

    @property
    def underlying(self) -> logging.Logger:
        """The wrapped stdlib logger."""
        return self._logger

    # ------------------------------------------------------------------ #
    #  Emitting records
    # ------------------------------------------------------------------ #

    def _log(self, level: int, msg: str, args: tuple[Any, ...], kwargs: dict[str, Any]) -> None:
        if not self._logger.isEnabledFor(level):
            return
        options = {k: kwargs.pop(k) for k in list(kwargs) if k in _STDLIB_KWARGS}
        extra: dict[str, Any] = {"component": self._component}
        if kwargs:
            extra["pelens_extra"] = kwargs
        self._logger.log(level, msg, *args, extra=extra, **options)

    def debug(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log(logging.DEBUG, msg, args, kwargs)

    def info(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log(logging.INFO, msg, args, kwargs)

    def warning(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log(logging.WARNING, msg, args, kwargs)

    def error(self, msg: str, *args: Any, **kwargs: Any) -> None:
        self._log(logging.ERROR, msg, args, kwargs)

    def exception(self, msg: str, *args: Any, **kwargs: Any) -> None:
        """ERROR record carrying the traceback of the exception being handled."""
        kwargs.setdefault("exc_info", True)
        self._log(logging.ERROR, msg, args, kwargs)

    @contextmanager
    def timed(self, label: str) -> Generator[Stopwatch, None, None]:
        """Log the duration of a block at DEBUG level.

        Nothing is logged on exit when the block raises.
        """
        self.debug("Started: %s", label)
        watch = Stopwatch()
        yield watch
        watch.stop()
        self.debug("Completed: %s (%.3f sec)", label, watch.elapsed)
