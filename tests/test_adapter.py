"""Tests for routing statements between the engine and a direct executor."""

from __future__ import annotations

import asyncio

import pytest

from onlinealter.adapter import SchemaChangeAdapter, StatementExecutor
from onlinealter.command import CliCommand
from onlinealter.config import EngineConfig, ToolOptions
from onlinealter.connection import ConnectionDetails
from onlinealter.errors import ConfigError, ToolReportedError
from onlinealter.models import ExecutionResult
from onlinealter.runner import CancellationToken


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


class _DirectExecutor:
    def __init__(self) -> None:
        self.statements: list[str] = []

    def execute(self, sql: str) -> str:
        self.statements.append(sql)
        return "OK"


class _StubRunner:
    def __init__(self, result: ExecutionResult | None = None) -> None:
        self.result = result or ExecutionResult(success=True, exit_code=0)
        self.commands: list[CliCommand] = []
        self.tokens: list[CancellationToken | None] = []

    def run(self, command: CliCommand, *, cancel: CancellationToken | None = None) -> ExecutionResult:
        self.commands.append(command)
        self.tokens.append(cancel)
        return self.result


class _BlockingRunner:
    def __init__(self) -> None:
        self.started = asyncio.Event()
        self.cancelled = False
        self._loop = asyncio.get_running_loop()

    def run(self, command: CliCommand, *, cancel: CancellationToken | None = None) -> ExecutionResult:
        assert cancel is not None
        self._loop.call_soon_threadsafe(self.started.set)
        self.cancelled = cancel.wait(5)
        return ExecutionResult(success=False, exit_code=-15, cancelled=True, error_message="Cancelled")


def _details() -> ConnectionDetails:
    return ConnectionDetails(database="shop", host="localhost", port=3306, password="pw")


def _adapter(runner: object, **options: object) -> tuple[SchemaChangeAdapter, _DirectExecutor]:
    direct = _DirectExecutor()
    adapter = SchemaChangeAdapter(
        _details(),
        direct,
        options=ToolOptions(**options),
        runner=runner,  # type: ignore[arg-type]
        environ={},
    )
    return adapter, direct


def test_direct_executor_satisfies_protocol() -> None:
    assert isinstance(_DirectExecutor(), StatementExecutor)


def test_alter_table_goes_through_runner() -> None:
    runner = _StubRunner()
    adapter, direct = _adapter(runner)

    result = adapter.execute("ALTER TABLE users ADD COLUMN age INT", table_name="users")

    assert result.success is True
    assert direct.statements == []
    assert runner.commands[0].args[0] == "pt-online-schema-change"
    assert "--alter=ADD COLUMN age INT" in runner.commands[0].args


def test_other_statements_go_direct() -> None:
    runner = _StubRunner()
    adapter, direct = _adapter(runner)

    assert adapter.execute("SELECT 1") == "OK"
    assert direct.statements == ["SELECT 1"]
    assert runner.commands == []


def test_online_false_forces_direct_execution() -> None:
    runner = _StubRunner()
    adapter, direct = _adapter(runner)

    adapter.execute("ALTER TABLE users ADD COLUMN age INT", online=False)

    assert direct.statements == ["ALTER TABLE users ADD COLUMN age INT"]
    assert runner.commands == []


def test_disabled_by_default_can_be_opted_into() -> None:
    runner = _StubRunner()
    adapter, direct = _adapter(runner, enabled_by_default=False)

    adapter.execute("ALTER TABLE users ADD COLUMN age INT")
    adapter.execute("ALTER TABLE users ADD COLUMN email TEXT", online=True)

    assert adapter.enabled is False
    assert direct.statements == ["ALTER TABLE users ADD COLUMN age INT"]
    assert len(runner.commands) == 1


def test_failed_run_raises_with_result() -> None:
    failure = ExecutionResult(success=False, exit_code=1, error_message="ERROR 1062 (23000): Duplicate entry", tail=("x",))
    adapter, _ = _adapter(_StubRunner(failure))

    with pytest.raises(ToolReportedError, match="Duplicate entry") as excinfo:
        adapter.execute("ALTER TABLE users ADD UNIQUE INDEX idx_email (email)")

    assert excinfo.value.result.tail == ("x",)


def test_cancel_token_is_passed_to_runner() -> None:
    runner = _StubRunner()
    adapter, _ = _adapter(runner)
    token = CancellationToken()

    adapter.execute("ALTER TABLE users ADD COLUMN age INT", cancel=token)

    assert runner.tokens == [token]


def test_from_config_resolves_connection() -> None:
    config = EngineConfig(connection={"host": "localhost", "database": "shop"}, tool=ToolOptions(enabled_by_default=False))

    adapter = SchemaChangeAdapter.from_config(config, _DirectExecutor(), environ={})

    assert adapter.enabled is False


def test_from_config_requires_database() -> None:
    with pytest.raises(ConfigError):
        SchemaChangeAdapter.from_config(EngineConfig(connection={"host": "localhost"}), _DirectExecutor(), environ={})


@pytest.mark.anyio
async def test_execute_async_returns_result() -> None:
    runner = _StubRunner()
    adapter, _ = _adapter(runner)

    result = await adapter.execute_async("ALTER TABLE users ADD COLUMN age INT")

    assert result.success is True
    assert isinstance(runner.tokens[0], CancellationToken)


@pytest.mark.anyio
async def test_cancelling_execute_async_cancels_the_run() -> None:
    runner = _BlockingRunner()
    adapter, _ = _adapter(runner)

    task = asyncio.ensure_future(adapter.execute_async("ALTER TABLE users ADD COLUMN age INT"))
    await asyncio.wait_for(runner.started.wait(), timeout=5)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    assert runner.cancelled is True
