"""Tests for pt-online-schema-change argument generation."""

from __future__ import annotations

import pytest

from onlinealter.command import CliGenerator, ToolOption, generate, parse_args
from onlinealter.config import ToolOptions
from onlinealter.connection import ConnectionDetails
from onlinealter.errors import CommandBuildError
from onlinealter.sanitizer import MASK


@pytest.fixture
def details() -> ConnectionDetails:
    return ConnectionDetails(
        database="shop",
        host="db.internal",
        port=3306,
        username="deploy",
        password="s3cret",
    )


def test_generate_matches_golden_vector(details: ConnectionDetails) -> None:
    command = generate(details, "users", "ALTER TABLE `users` ADD COLUMN age INT", ToolOptions(), environ={})

    assert command.args == (
        "pt-online-schema-change",
        "--host=db.internal",
        "--port=3306",
        "--user=deploy",
        "--password=s3cret",
        "--database=shop",
        "--execute",
        "--alter=ADD COLUMN age INT",
        "D=shop,t=users",
        "--statistics",
        "--alter-foreign-keys-method=auto",
        "--no-check-alter",
    )
    assert command.secrets == ("s3cret",)


def test_generate_is_deterministic(details: ConnectionDetails) -> None:
    options = ToolOptions(chunk_size=500, max_load="Threads_running=50", global_args=["--no-drop-old-table"])
    sql = "ALTER TABLE users ADD INDEX idx_email (email), DROP COLUMN legacy"

    first = generate(details, "users", sql, options, environ={})
    second = generate(details, "users", sql, options, environ={})

    assert first == second
    assert first.args == second.args


def test_statement_content_cannot_add_tokens(details: ConnectionDetails) -> None:
    baseline = generate(details, "users", "ALTER TABLE users ADD COLUMN x INT", environ={})
    hostile = generate(
        details,
        "users",
        "ALTER TABLE users ADD COLUMN x INT COMMENT 'a\" --execute --password=x; rm -rf /'",
        environ={},
    )

    assert len(hostile.args) == len(baseline.args)
    assert hostile.args[7] == "--alter=ADD COLUMN x INT COMMENT 'a\" --execute --password=x; rm -rf /'"


def test_table_is_taken_from_statement_when_omitted(details: ConnectionDetails) -> None:
    command = CliGenerator(details, environ={}).parse_statement("ALTER TABLE `shop_archive`.`orders` DROP COLUMN note")

    assert "D=shop_archive,t=orders" in command.args
    assert "--alter=DROP COLUMN note" in command.args


def test_socket_connection_flags() -> None:
    details = ConnectionDetails(database="shop", socket="/tmp/mysql.sock")

    command = generate(details, "users", "ALTER TABLE users ADD COLUMN age INT", environ={})

    assert command.args[1:4] == ("--socket=/tmp/mysql.sock", "--user=root", "--database=shop")
    assert not any(arg.startswith("--password") for arg in command.args)
    assert command.secrets == ()


def test_ssl_enables_mysql_ssl_in_dsn() -> None:
    details = ConnectionDetails.build(
        {"host": "localhost", "database": "shop", "ssl_ca": "/etc/ca.pem"},
        environ={},
    )

    command = generate(details, "users", "ALTER TABLE users ADD COLUMN age INT", environ={})

    assert "D=shop,t=users,s=1" in command.args


def test_dry_run_mode(details: ConnectionDetails) -> None:
    command = generate(details, "users", "ALTER TABLE users ADD COLUMN age INT", ToolOptions(execute=False), environ={})

    assert "--dry-run" in command.args
    assert "--execute" not in command.args


def test_extra_flags_override_defaults_and_keep_order(details: ConnectionDetails) -> None:
    options = ToolOptions(global_args=["--chunk-time=1", "--alter-foreign-keys-method", "drop_swap"])

    command = generate(
        details,
        "users",
        "ALTER TABLE users ADD COLUMN age INT",
        options,
        environ={"PERCONA_ARGS": "--no-drop-old-table --check-alter"},
    )

    assert command.args[9:] == (
        "--statistics",
        "--chunk-time=1",
        "--alter-foreign-keys-method=drop_swap",
        "--no-drop-old-table",
        "--check-alter",
    )


def test_percona_args_can_switch_mode(details: ConnectionDetails) -> None:
    command = generate(
        details,
        "users",
        "ALTER TABLE users ADD COLUMN age INT",
        environ={"PERCONA_ARGS": "--dry-run"},
    )

    assert command.args[6] == "--dry-run"
    assert command.args.count("--dry-run") == 1
    assert "--execute" not in command.args


def test_env_overlay_is_carried(details: ConnectionDetails) -> None:
    command = generate(
        details,
        "users",
        "ALTER TABLE users ADD COLUMN age INT",
        ToolOptions(env={"PTDEBUG": "0"}),
        environ={},
    )

    assert dict(command.env) == {"PTDEBUG": "0"}


@pytest.mark.parametrize(
    "statement",
    [
        "",
        "   ",
        "SELECT 1",
        "ALTER TABLE users",
        "DROP TABLE users",
        "ALTER TABLE users ADD COLUMN x INT; DROP TABLE users",
    ],
)
def test_generate_rejects_unroutable_statements(details: ConnectionDetails, statement: str) -> None:
    with pytest.raises(CommandBuildError):
        generate(details, "users", statement, environ={})


def test_generate_rejects_mismatched_table(details: ConnectionDetails) -> None:
    with pytest.raises(CommandBuildError, match="does not match"):
        generate(details, "orders", "ALTER TABLE users ADD COLUMN age INT", environ={})


def test_generate_accepts_case_insensitive_table(details: ConnectionDetails) -> None:
    command = generate(details, "shop.USERS", "ALTER TABLE users ADD COLUMN age INT", environ={})

    assert "D=shop,t=users" in command.args


def test_generate_rejects_names_that_break_the_dsn(details: ConnectionDetails) -> None:
    with pytest.raises(CommandBuildError, match="DSN"):
        generate(details, None, "ALTER TABLE `a,b` ADD COLUMN c INT", environ={})


def test_display_and_repr_hide_the_password(details: ConnectionDetails) -> None:
    command = generate(details, "users", "ALTER TABLE users ADD COLUMN age INT", environ={})

    assert "s3cret" not in command.display()
    assert f"--password={MASK}" in command.display()
    assert "s3cret" not in repr(command)


def test_display_and_repr_hide_a_password_that_needs_quoting(details: ConnectionDetails) -> None:
    quoted = ConnectionDetails(database="shop", host="db.internal", username="deploy", password="it's")
    command = generate(quoted, "users", "ALTER TABLE users ADD COLUMN age INT", environ={})

    for rendered in (command.display(), repr(command)):
        assert "it's" not in rendered
        assert "it'\"'\"'s" not in rendered
    assert f"'--password={MASK}'" in command.display()


def test_trailing_comment_stays_out_of_the_alter_flag(details: ConnectionDetails) -> None:
    command = generate(details, "users", "ALTER TABLE users ADD COLUMN age INT; -- add age", environ={})

    assert "--alter=ADD COLUMN age INT" in command.args
    assert not any("add age" in arg for arg in command.args)


def test_parse_args_pairs_values() -> None:
    assert parse_args(["--chunk-size", "100", "--no-drop-old-table", "--max-load=Threads_running=5"]) == [
        ToolOption("chunk-size", "100"),
        ToolOption("no-drop-old-table"),
        ToolOption("max-load", "Threads_running=5"),
    ]


def test_parse_args_rejects_short_flags() -> None:
    with pytest.raises(CommandBuildError):
        parse_args(["-p", "secret"])
