"""Streaming sink for sanitized tool output."""

from __future__ import annotations

import logging
import threading
from typing import Callable

from .output import OutputKind

LOG = logging.getLogger("onlinealter.tool")

LineListener = Callable[[str, "OutputKind | None"], None]

_LEVELS = {
    OutputKind.ERROR: logging.ERROR,
    OutputKind.WARNING: logging.WARNING,
}


class SchemaChangeLogger:
    """Emits each line as soon as it arrives.

    Lines are expected to be sanitized already. When ``verbose`` is off only
    errors, warnings and summary lines are emitted. Listeners are called on
    the thread that emitted the line (one of the runner's reader threads).
    """

    def __init__(self, *, verbose: bool = True, logger: logging.Logger | None = None) -> None:
        self._verbose = verbose
        self._logger = logger or LOG
        self._listeners: set[LineListener] = set()
        self._lock = threading.Lock()

    @property
    def verbose(self) -> bool:
        return self._verbose

    def emit(self, line: str, kind: OutputKind | None, verbose_only: bool = False) -> None:
        """Emit one line; ``kind`` of ``None`` marks a summary line."""

        if verbose_only and not self._verbose:
            return
        level = _LEVELS.get(kind, logging.INFO) if kind is not None else logging.INFO
        self._logger.log(level, line, extra={"kind": kind.value if kind is not None else "summary"})
        with self._lock:
            listeners = tuple(self._listeners)
        for listener in listeners:
            listener(line, kind)

    def say(self, message: str, subitem: bool = False) -> None:
        """Write a migration-style summary line."""

        prefix = "   ->" if subitem else "--"
        self.emit(f"{prefix} {message}", None)

    def subscribe(self, listener: LineListener) -> Callable[[], None]:
        with self._lock:
            self._listeners.add(listener)

        def _unsubscribe() -> None:
            with self._lock:
                self._listeners.discard(listener)

        return _unsubscribe


def build_logger(*, verbose: bool = True, logger: logging.Logger | None = None) -> SchemaChangeLogger:
    return SchemaChangeLogger(verbose=verbose, logger=logger)


__all__ = ["LOG", "LineListener", "SchemaChangeLogger", "build_logger"]
