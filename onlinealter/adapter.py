"""Routes statements between the schema-change engine and a direct executor."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping, Protocol, runtime_checkable

from .command import CliGenerator
from .config import EngineConfig, ToolOptions
from .connection import ConnectionDetails
from .errors import ExecutionCancelledError
from .log import build_logger
from .models import ExecutionResult
from .runner import CancellationToken, Runner
from .statements import Route, route

LOG = logging.getLogger(__name__)


@runtime_checkable
class StatementExecutor(Protocol):
    """Anything that can run a SQL statement the normal way."""

    def execute(self, sql: str) -> Any: ...


class SchemaChangeAdapter:
    """Sends ALTER TABLE through pt-online-schema-change, the rest direct.

    Direct statements return whatever the wrapped executor returns. Engine
    statements return the :class:`ExecutionResult` of a successful run and
    raise :class:`ToolReportedError` or :class:`ExecutionCancelledError`
    otherwise.

    Concurrent schema changes against the same table are not serialized
    here; callers must keep at most one in flight per table.
    """

    def __init__(
        self,
        details: ConnectionDetails,
        direct: StatementExecutor,
        *,
        options: ToolOptions | None = None,
        runner: Runner | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self._options = options or ToolOptions()
        self._direct = direct
        self._generator = CliGenerator(details, self._options, environ=environ)
        self._runner = runner or Runner(
            build_logger(verbose=self._options.verbose),
            tail_size=self._options.tail_size,
            terminate_grace=self._options.terminate_grace,
            error_log=self._options.error_log,
        )
        self._enabled = self._options.enabled_by_default

    @classmethod
    def from_config(
        cls,
        config: EngineConfig,
        direct: StatementExecutor,
        *,
        environ: Mapping[str, str] | None = None,
    ) -> "SchemaChangeAdapter":
        """Resolve connection details and tool settings once, at startup."""

        details = ConnectionDetails.build(config.connection, environ=environ)
        return cls(details, direct, options=config.tool, environ=environ)

    @property
    def enabled(self) -> bool:
        return self._enabled

    def route_for(self, sql: str, *, online: bool | None = None) -> Route:
        use_online = self._enabled if online is None else online
        if not use_online:
            return Route.DIRECT
        return route(sql)

    def execute(
        self,
        sql: str,
        *,
        table_name: str | None = None,
        online: bool | None = None,
        cancel: CancellationToken | None = None,
    ) -> Any:
        """Execute ``sql``; ``online=False`` forces the direct path for this call."""

        if self.route_for(sql, online=online) is Route.DIRECT:
            return self._direct.execute(sql)
        command = self._generator.generate(table_name, sql)
        LOG.debug("Routing statement through online schema change", extra={"table": table_name})
        result: ExecutionResult = self._runner.run(command, cancel=cancel)
        return result.raise_for_status()

    async def execute_async(
        self,
        sql: str,
        *,
        table_name: str | None = None,
        online: bool | None = None,
    ) -> Any:
        """Run :meth:`execute` in a worker thread.

        Cancelling the awaiting task terminates the tool and waits for the
        worker to finish before re-raising the cancellation.
        """

        token = CancellationToken()
        task = asyncio.ensure_future(
            asyncio.to_thread(self.execute, sql, table_name=table_name, online=online, cancel=token)
        )
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            token.cancel()
            try:
                await task
            except ExecutionCancelledError:
                pass
            raise


__all__ = ["SchemaChangeAdapter", "StatementExecutor"]
