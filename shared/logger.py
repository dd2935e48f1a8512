"""
PEInfo Logging
===============

:class:`PEInfoLogger` routes the decoder's diagnostics to two sinks:

* stderr, through :class:`rich.logging.RichHandler`, so log lines never
  mix with the listings written to stdout;
* an optional size-rotated file holding either ``|``-separated text or
  one JSON object per record.

Records carry the component that emitted them (``engine``, ``cli``) and,
inside :meth:`PEInfoLogger.operation`, the listing being decoded.
Keyword arguments that :mod:`logging` does not know (``rva=...``,
``kind=...``) are collected into a ``fields`` mapping and show up in
JSON output.

References:
    - Python logging HOWTO. https://docs.python.org/3/howto/logging.html
    - Rich library. https://github.com/Textualize/rich
"""

from __future__ import annotations

import json
import logging
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Iterator

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

_STDERR = Console(
    theme=Theme(
        {
            "log.level.debug": "dim cyan",
            "log.level.info": "bold bright_blue",
            "log.level.warning": "bold yellow",
            "log.level.error": "bold red",
        }
    ),
    stderr=True,
)

_TEXT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(operation)s | %(message)s"

# Keyword arguments passed straight through to logging.Logger.log
_LOGGING_KWARGS = frozenset({"exc_info", "stack_info", "stacklevel"})


class _JSONLineFormatter(logging.Formatter):
    """One JSON object per record.

    ``{"ts": ..., "level": ..., "component": ..., "operation": ...,
    "message": ..., "fields": {...}}``; ``operation`` and ``fields`` are
    omitted when empty.
    """

    def format(self, record: logging.LogRecord) -> str:
        line: dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "component": getattr(record, "component", record.name),
            "message": record.getMessage(),
        }
        operation = getattr(record, "operation", "-")
        if operation != "-":
            line["operation"] = operation
        fields = getattr(record, "fields", None)
        if fields:
            line["fields"] = fields
        if record.exc_info and record.exc_info[1] is not None:
            line["traceback"] = self.formatException(record.exc_info)
        return json.dumps(line, ensure_ascii=False, default=str)


def _file_handler(
    path: Path, level: int, *, json_lines: bool, max_bytes: int, backup_count: int
) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
    )
    handler.setLevel(level)
    if json_lines:
        handler.setFormatter(_JSONLineFormatter())
    else:
        handler.setFormatter(logging.Formatter(_TEXT_FORMAT, datefmt="%Y-%m-%dT%H:%M:%S%z"))
    return handler


class PEInfoLogger:
    """Logger for one PEInfo component (``peinfo.<component>``).

    Usage::

        log = PEInfoLogger("engine", log_file="peinfo.log", json_logs=True)
        with log.operation("imports"):
            log.debug("Import directory at RVA 0x%x", rva, rva=rva)

    Args:
        component:       Suffix of the stdlib logger name.
        log_level:       Minimum severity name; unknown names mean INFO.
        log_file:        Rotating log file; ``None`` or ``""`` disables it.
        json_logs:       Write JSON lines to the file instead of text.
        max_bytes:       File size that triggers rotation.
        backup_count:    Rotated files kept.
        console_output:  Attach the Rich stderr handler.
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
        self._component = component
        self._operation = "-"

        level = logging.getLevelName(log_level.upper())
        if not isinstance(level, int):
            level = logging.INFO

        self._logger = logging.getLogger(f"peinfo.{component}")
        self._logger.setLevel(level)
        self._logger.propagate = False
        # a second instance for the same component replaces the handlers
        for old in list(self._logger.handlers):
            self._logger.removeHandler(old)
            old.close()

        if console_output:
            self._logger.addHandler(RichHandler(
                level=level,
                console=_STDERR,
                show_path=False,
                markup=False,
                rich_tracebacks=True,
            ))
        if log_file:
            self._logger.addHandler(_file_handler(
                Path(log_file), level,
                json_lines=json_logs, max_bytes=max_bytes, backup_count=backup_count,
            ))

    @contextmanager
    def operation(self, name: str) -> Iterator[PEInfoLogger]:
        """Tag records emitted inside the block with *name*."""
        outer, self._operation = self._operation, name
        try:
            yield self
        finally:
            self._operation = outer

    @contextmanager
    def timed(self, label: str) -> Iterator[None]:
        """Log at DEBUG how long the block took."""
        start = time.perf_counter()
        try:
            yield
        finally:
            self.debug("%s took %.3f sec", label, time.perf_counter() - start)

    def _log(self, level: int, msg: str, args: tuple[Any, ...], kwargs: dict[str, Any]) -> None:
        if not self._logger.isEnabledFor(level):
            return
        passthrough = {k: kwargs.pop(k) for k in list(kwargs) if k in _LOGGING_KWARGS}
        self._logger.log(
            level, msg, *args,
            extra={"component": self._component, "operation": self._operation, "fields": kwargs},
            **passthrough,
        )

    def debug(self, msg: str, *args: Any, **fields: Any) -> None:
        self._log(logging.DEBUG, msg, args, fields)

    def info(self, msg: str, *args: Any, **fields: Any) -> None:
        self._log(logging.INFO, msg, args, fields)

    def warning(self, msg: str, *args: Any, **fields: Any) -> None:
        self._log(logging.WARNING, msg, args, fields)
