"""Supervises the external tool and folds its output into a result."""

from __future__ import annotations

import logging
import os
import signal
import subprocess
import threading
import time
from collections import deque
from contextlib import ExitStack
from pathlib import Path
from typing import IO, TextIO

from .command import CliCommand
from .errors import CommandError
from .log import SchemaChangeLogger
from .models import ExecutionResult
from .output import OutputClassifier, OutputKind, OutputLine, OutputStream
from .sanitizer import LogSanitizer

LOG = logging.getLogger(__name__)

DEFAULT_TAIL_SIZE = 50
_ALWAYS_SHOWN = {OutputKind.ERROR, OutputKind.WARNING}


class CancellationToken:
    """Thread-safe flag a caller sets to stop a running schema change."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        return self._event.wait(timeout)


class _RunState:
    """Failure marker and diagnostic tail shared by both reader threads."""

    def __init__(self, tail_size: int) -> None:
        self._lock = threading.Lock()
        self._tail: deque[str] = deque(maxlen=tail_size)
        self.failed = False
        self.error_message: str | None = None
        self.reader_error: BaseException | None = None

    def record(self, line: OutputLine) -> None:
        with self._lock:
            self._tail.append(line.text)
            if line.is_error:
                self.failed = True
                # First error wins; it is usually the root cause.
                if self.error_message is None:
                    self.error_message = line.text

    def record_reader_error(self, exc: BaseException) -> None:
        with self._lock:
            if self.reader_error is None:
                self.reader_error = exc

    def tail(self) -> tuple[str, ...]:
        with self._lock:
            return tuple(self._tail)


class Runner:
    """Runs a :class:`CliCommand` to completion and reports one result.

    ``run`` blocks the calling thread. stdout and stderr are drained by two
    reader threads so neither pipe can stall the other; line order is kept
    within each stream but the interleaving between the two streams is
    whatever the threads observed. There is no timeout: pass a
    :class:`CancellationToken` to stop a run early.
    """

    def __init__(
        self,
        logger: SchemaChangeLogger | None = None,
        classifier: OutputClassifier | None = None,
        *,
        tail_size: int = DEFAULT_TAIL_SIZE,
        terminate_grace: float = 5.0,
        error_log: Path | None = None,
        poll_interval: float = 0.1,
    ) -> None:
        self._logger = logger or SchemaChangeLogger()
        self._classifier = classifier or OutputClassifier()
        self._tail_size = tail_size
        self._terminate_grace = terminate_grace
        self._error_log = error_log
        self._poll_interval = poll_interval

    def run(self, command: CliCommand, *, cancel: CancellationToken | None = None) -> ExecutionResult:
        sanitizer = command.sanitizer()
        state = _RunState(self._tail_size)
        self._logger.say(f"Running {command.display()}")
        started = time.perf_counter()

        with ExitStack() as stack:
            error_log: TextIO | None = None
            if self._error_log is not None:
                self._error_log.parent.mkdir(parents=True, exist_ok=True)
                error_log = stack.enter_context(self._error_log.open("a", encoding="utf-8"))
            process = self._spawn(command, sanitizer)
            readers = [
                self._start_reader(process.stdout, OutputStream.STDOUT, state, sanitizer, None),
                self._start_reader(process.stderr, OutputStream.STDERR, state, sanitizer, error_log),
            ]
            try:
                returncode, cancelled = self._wait(process, cancel)
            except BaseException:
                self._terminate(process)
                self._join(process, readers)
                raise
            self._join(process, readers)

        if state.reader_error is not None:
            raise state.reader_error

        elapsed_ms = int((time.perf_counter() - started) * 1000)
        success = not cancelled and returncode == 0 and not state.failed
        if cancelled:
            message: str | None = f"Cancelled by caller; {_program(command)} was terminated"
        elif state.failed:
            message = state.error_message
        elif returncode != 0:
            message = _exit_message(returncode)
        else:
            message = None

        if success:
            self._logger.say(f"Done in {elapsed_ms / 1000:.1f}s", subitem=True)
        else:
            self._logger.say(f"Failed: {message}", subitem=True)
        return ExecutionResult(
            success=success,
            exit_code=returncode,
            tail=state.tail(),
            error_message=message,
            cancelled=cancelled,
            elapsed_ms=elapsed_ms,
        )

    def _spawn(self, command: CliCommand, sanitizer: LogSanitizer) -> subprocess.Popen[str]:
        if not command.args:
            raise CommandError("Command has no program to run")
        env = {**os.environ, **command.env} if command.env else None
        try:
            return subprocess.Popen(
                list(command.args),
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                env=env,
                text=True,
                encoding="utf-8",
                errors="replace",
                start_new_session=True,
            )
        except (OSError, ValueError) as exc:
            message = sanitizer.sanitize(f"Unable to start {_program(command)}: {exc}")
            self._logger.emit(message, OutputKind.ERROR)
            raise CommandError(message) from exc

    def _start_reader(
        self,
        stream: IO[str] | None,
        source: OutputStream,
        state: _RunState,
        sanitizer: LogSanitizer,
        sink: TextIO | None,
    ) -> threading.Thread:
        thread = threading.Thread(
            target=self._consume,
            args=(stream, source, state, sanitizer, sink),
            name=f"onlinealter-{source.value}",
            daemon=True,
        )
        thread.start()
        return thread

    def _consume(
        self,
        stream: IO[str] | None,
        source: OutputStream,
        state: _RunState,
        sanitizer: LogSanitizer,
        sink: TextIO | None,
    ) -> None:
        if stream is None:
            return
        with stream:
            for raw in stream:
                line = raw.rstrip("\r\n")
                kind = self._classifier.classify(line)
                output = OutputLine(text=sanitizer.sanitize(line), kind=kind, stream=source, raw=line)
                state.record(output)
                # Keep draining even if a sink fails so the child never blocks on a full pipe.
                try:
                    if sink is not None:
                        sink.write(output.text + "\n")
                        sink.flush()
                    self._logger.emit(output.text, kind, verbose_only=kind not in _ALWAYS_SHOWN)
                except Exception as exc:
                    state.record_reader_error(exc)

    def _wait(
        self,
        process: subprocess.Popen[str],
        cancel: CancellationToken | None,
    ) -> tuple[int, bool]:
        while True:
            try:
                return process.wait(timeout=self._poll_interval), False
            except subprocess.TimeoutExpired:
                if cancel is not None and cancel.cancelled:
                    LOG.info("Cancelling schema change", extra={"pid": process.pid})
                    return self._terminate(process), True

    def _terminate(self, process: subprocess.Popen[str]) -> int:
        _signal_group(process, kill=False)
        try:
            return process.wait(timeout=self._terminate_grace)
        except subprocess.TimeoutExpired:
            _signal_group(process, kill=True)
            return process.wait()

    def _join(self, process: subprocess.Popen[str], readers: list[threading.Thread]) -> None:
        for reader in readers:
            reader.join(timeout=self._terminate_grace)
        if any(reader.is_alive() for reader in readers):
            # A leftover grandchild still holds the pipes open.
            LOG.warning("Output pipes still open after process exit", extra={"pid": process.pid})
            _signal_group(process, kill=True)
            for reader in readers:
                reader.join()


def _signal_group(process: subprocess.Popen[str], *, kill: bool) -> None:
    if hasattr(os, "killpg"):
        sig = signal.SIGKILL if kill else signal.SIGTERM
        try:
            os.killpg(process.pid, sig)
        except (ProcessLookupError, PermissionError):
            pass
        return
    if process.poll() is None:
        if kill:
            process.kill()
        else:
            process.terminate()


def _exit_message(returncode: int) -> str:
    if returncode < 0:
        try:
            name = signal.Signals(-returncode).name
        except ValueError:
            name = str(-returncode)
        return f"Process terminated by signal {name}"
    return f"Process exited with status {returncode}; non-zero exit, no explicit error line"


def _program(command: CliCommand) -> str:
    return Path(command.args[0]).name if command.args else "command"


__all__ = ["CancellationToken", "DEFAULT_TAIL_SIZE", "Runner"]
