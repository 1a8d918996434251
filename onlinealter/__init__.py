"""Online schema changes for MySQL through pt-online-schema-change."""

from __future__ import annotations

__version__ = "0.1.0"

from .adapter import SchemaChangeAdapter, StatementExecutor
from .command import CliCommand, CliGenerator, ToolOption, generate
from .config import EngineConfig, ToolOptions, load_config
from .connection import ConnectionDetails
from .errors import (
    CommandBuildError,
    CommandError,
    ConfigError,
    ExecutionCancelledError,
    OnlineAlterError,
    ToolReportedError,
)
from .log import SchemaChangeLogger, build_logger
from .models import ExecutionResult
from .output import OutputClassifier, OutputKind, OutputLine, classify
from .runner import CancellationToken, Runner
from .sanitizer import LogSanitizer, sanitize
from .statements import AlterStatement, Route, route

__all__ = [
    "AlterStatement",
    "CancellationToken",
    "CliCommand",
    "CliGenerator",
    "CommandBuildError",
    "CommandError",
    "ConfigError",
    "ConnectionDetails",
    "EngineConfig",
    "ExecutionCancelledError",
    "ExecutionResult",
    "LogSanitizer",
    "OnlineAlterError",
    "OutputClassifier",
    "OutputKind",
    "OutputLine",
    "Route",
    "Runner",
    "SchemaChangeAdapter",
    "SchemaChangeLogger",
    "StatementExecutor",
    "ToolOptions",
    "ToolReportedError",
    "__version__",
    "build_logger",
    "classify",
    "generate",
    "load_config",
    "route",
    "sanitize",
]
