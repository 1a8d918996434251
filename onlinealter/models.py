"""Shared value objects returned by the engine."""

from __future__ import annotations

from dataclasses import dataclass

from .errors import ExecutionCancelledError, ToolReportedError


@dataclass(frozen=True, slots=True)
class ExecutionResult:
    """Outcome of one external tool run.

    ``tail`` holds the most recent sanitized output lines across both
    streams. Lines from stdout and stderr are interleaved in the order the
    reader threads observed them, which is not guaranteed to match the order
    the tool wrote them.
    """

    success: bool
    exit_code: int | None
    tail: tuple[str, ...] = ()
    error_message: str | None = None
    cancelled: bool = False
    elapsed_ms: int = 0

    def raise_for_status(self) -> "ExecutionResult":
        """Raise the matching engine error unless the run succeeded."""

        if self.cancelled:
            raise ExecutionCancelledError(self)
        if not self.success:
            raise ToolReportedError(self)
        return self

    def diagnostics(self) -> str:
        """Render the error message and tail for operators."""

        lines: list[str] = []
        if self.error_message:
            lines.append(self.error_message)
        if self.tail:
            lines.append(f"Last {len(self.tail)} line(s) of output:")
            lines.extend(f"  {line}" for line in self.tail)
        return "\n".join(lines)


__all__ = ["ExecutionResult"]
