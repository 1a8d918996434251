"""Error taxonomy raised by the schema-change engine."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import ExecutionResult


class OnlineAlterError(RuntimeError):
    """Base class for every engine failure."""


class ConfigError(OnlineAlterError):
    """Raised when connection configuration lacks a required field."""


class CommandBuildError(OnlineAlterError):
    """Raised when a statement cannot be turned into a tool invocation."""


class CommandError(OnlineAlterError):
    """Raised when the external tool cannot be spawned."""


class ToolReportedError(OnlineAlterError):
    """The tool reported an error line or exited non-zero."""

    def __init__(self, result: "ExecutionResult") -> None:
        super().__init__(result.error_message or "Schema change failed")
        self.result = result


class ExecutionCancelledError(OnlineAlterError):
    """The caller cancelled the run before the tool finished."""

    def __init__(self, result: "ExecutionResult") -> None:
        super().__init__(result.error_message or "Schema change cancelled")
        self.result = result


__all__ = [
    "CommandBuildError",
    "CommandError",
    "ConfigError",
    "ExecutionCancelledError",
    "OnlineAlterError",
    "ToolReportedError",
]
