"""Builds the pt-online-schema-change argument vector."""

from __future__ import annotations

import shlex
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterable, Mapping

from .config import ToolOptions
from .connection import ConnectionDetails
from .errors import CommandBuildError
from .sanitizer import LogSanitizer
from .statements import AlterStatement, Route, route

_MODE_KEYS = {"execute", "dry-run"}
_DSN_FORBIDDEN = set(",=") | set(" \t\r\n\x00")


@dataclass(frozen=True, slots=True)
class ToolOption:
    """A long-form ``--name[=value]`` flag."""

    name: str
    value: str | None = None

    @property
    def key(self) -> str:
        """Name with any ``no-`` prefix removed, so negations replace each other."""

        return self.name[3:] if self.name.startswith("no-") else self.name

    def token(self) -> str:
        if self.value is None:
            return f"--{self.name}"
        return f"--{self.name}={self.value}"

    @classmethod
    def from_string(cls, raw: str) -> "ToolOption":
        text = raw.strip()
        if not text.startswith("--") or len(text) <= 2:
            raise CommandBuildError(f"Tool flags must use the --name[=value] form: {raw!r}")
        name, sep, value = text[2:].partition("=")
        return cls(name=name, value=value if sep else None)


def parse_args(args: Iterable[str]) -> list[ToolOption]:
    """Parse raw flags, pairing ``--name value`` into a single option."""

    options: list[ToolOption] = []
    for arg in args:
        if arg.startswith("--"):
            options.append(ToolOption.from_string(arg))
        elif options and options[-1].value is None:
            options[-1] = ToolOption(options[-1].name, arg)
        else:
            raise CommandBuildError(f"Unexpected tool argument: {arg!r}")
    return options


@dataclass(frozen=True, slots=True)
class CliCommand:
    """Argument vector plus environment overlay for one tool run.

    ``secrets`` are the credentials embedded in ``args``; they take no part in
    equality and never appear in ``repr()``.
    """

    args: tuple[str, ...]
    env: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))
    secrets: tuple[str, ...] = field(default=(), repr=False, compare=False)

    def __repr__(self) -> str:
        return f"CliCommand(args={self.display()!r})"

    def sanitizer(self) -> LogSanitizer:
        return LogSanitizer(self.secrets)

    def display(self) -> str:
        """Shell-quoted, credential-free rendering for logs.

        Tokens are masked before quoting; quoting can split a secret apart.
        """

        sanitizer = self.sanitizer()
        return shlex.join(sanitizer.sanitize(arg) for arg in self.args)


def generate(
    details: ConnectionDetails,
    table_name: str | None,
    statement: str,
    options: ToolOptions | None = None,
    *,
    environ: Mapping[str, str] | None = None,
) -> CliCommand:
    """Build the tool invocation for one ALTER TABLE statement.

    Connection flags come first in a fixed order, then the mode flag, the
    alter specification, the DSN, the default tuning flags and finally any
    extra flags in the order supplied. Every value sits in its own
    ``--name=value`` token.
    """

    options = options or ToolOptions()
    text = (statement or "").strip()
    if not text:
        raise CommandBuildError("Statement is empty")
    if route(text) is not Route.ENGINE:
        raise CommandBuildError("Only ALTER TABLE statements can run through pt-online-schema-change")
    alter = AlterStatement.parse(text)
    if not alter.fragment:
        raise CommandBuildError(f"ALTER TABLE {alter.table} has no alter specification")
    if "\x00" in alter.fragment:
        raise CommandBuildError("Statement contains a NUL byte")

    schema, table = alter.schema, alter.table
    if table_name:
        given_schema, _, given_table = table_name.rpartition(".")
        if given_table.lower() != table.lower():
            raise CommandBuildError(
                f"Table {table_name!r} does not match the statement's table {table!r}"
            )
        schema = schema or given_schema or None
    database = schema or details.database

    extras = parse_args(options.extra_args(environ))
    mode = ToolOption("execute") if options.execute else ToolOption("dry-run")
    for option in extras:
        if option.name in _MODE_KEYS:
            mode = option
    extras = [option for option in extras if option.name not in _MODE_KEYS]
    overridden = {option.key for option in extras}
    tuning = [option for option in _default_options(options) if option.key not in overridden]

    args = [
        options.binary,
        *_connection_args(details),
        mode.token(),
        f"--alter={alter.fragment}",
        _dsn(database, table, ssl=details.uses_ssl),
        *(option.token() for option in tuning),
        *(option.token() for option in extras),
    ]
    secrets = (details.password,) if details.password else ()
    return CliCommand(
        args=tuple(args),
        env=MappingProxyType(dict(sorted(options.env.items()))),
        secrets=secrets,
    )


class CliGenerator:
    """Binds connection details and tool options for repeated generation."""

    def __init__(
        self,
        details: ConnectionDetails,
        options: ToolOptions | None = None,
        *,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self._details = details
        self._options = options or ToolOptions()
        self._environ = environ

    @property
    def details(self) -> ConnectionDetails:
        return self._details

    def generate(self, table_name: str | None, statement: str) -> CliCommand:
        return generate(self._details, table_name, statement, self._options, environ=self._environ)

    def parse_statement(self, statement: str) -> CliCommand:
        """Generate from a full statement, taking the table from its text."""

        return self.generate(None, statement)


def _connection_args(details: ConnectionDetails) -> list[str]:
    args: list[str] = []
    if details.host:
        args.append(f"--host={details.host}")
        if details.port is not None:
            args.append(f"--port={details.port}")
    if details.socket:
        args.append(f"--socket={details.socket}")
    args.append(f"--user={details.username}")
    if details.password:
        args.append(f"--password={details.password}")
    args.append(f"--database={details.database}")
    return args


def _default_options(options: ToolOptions) -> list[ToolOption]:
    defaults: list[ToolOption] = []
    if options.statistics:
        defaults.append(ToolOption("statistics"))
    if options.alter_foreign_keys_method:
        defaults.append(ToolOption("alter-foreign-keys-method", options.alter_foreign_keys_method))
    if not options.check_alter:
        defaults.append(ToolOption("no-check-alter"))
    if options.chunk_size is not None:
        defaults.append(ToolOption("chunk-size", str(options.chunk_size)))
    if options.chunk_time is not None:
        defaults.append(ToolOption("chunk-time", str(options.chunk_time)))
    if options.max_load:
        defaults.append(ToolOption("max-load", options.max_load))
    if options.critical_load:
        defaults.append(ToolOption("critical-load", options.critical_load))
    return defaults


def _dsn(database: str, table: str, *, ssl: bool) -> str:
    for label, value in (("database", database), ("table", table)):
        if not value or _DSN_FORBIDDEN & set(value):
            raise CommandBuildError(f"Invalid {label} name for DSN: {value!r}")
    parts = [f"D={database}", f"t={table}"]
    if ssl:
        parts.append("s=1")
    return ",".join(parts)


__all__ = ["CliCommand", "CliGenerator", "ToolOption", "generate", "parse_args"]
