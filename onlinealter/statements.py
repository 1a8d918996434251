"""Statement routing and ALTER TABLE decomposition."""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from sqlglot.dialects.mysql import MySQL
from sqlglot.errors import TokenError
from sqlglot.tokens import Token, TokenType

from .errors import CommandBuildError

_DIALECT = MySQL()
_ALTER_TABLE_RE = re.compile(r"\A\s*alter\s+table\b", re.IGNORECASE)
_NAME_STOPS = {TokenType.DOT, TokenType.SEMICOLON, TokenType.COMMA, TokenType.L_PAREN, TokenType.R_PAREN}


class Route(str, Enum):
    """Where a statement should be executed."""

    ENGINE = "engine"
    DIRECT = "direct"


def route(statement: str) -> Route:
    """Send ALTER TABLE statements to the engine, everything else direct."""

    tokens = _tokenize(statement)
    if tokens is None:
        return Route.ENGINE if _ALTER_TABLE_RE.match(statement) else Route.DIRECT
    if _is_alter_table(tokens):
        return Route.ENGINE
    return Route.DIRECT


@dataclass(frozen=True, slots=True)
class AlterStatement:
    """An ALTER TABLE split into its target and its alter specification."""

    table: str
    fragment: str
    schema: str | None = None

    @classmethod
    def parse(cls, statement: str) -> "AlterStatement":
        tokens = _tokenize(statement)
        if tokens is None:
            raise CommandBuildError("Unable to tokenize statement")
        if not _is_alter_table(tokens):
            raise CommandBuildError("Statement is not an ALTER TABLE")
        parts: list[str] = []
        index = 2
        last: Token | None = None
        last_index = index
        while index < len(tokens) and tokens[index].token_type not in _NAME_STOPS:
            last = tokens[index]
            last_index = index
            parts.append(last.text)
            if index + 1 < len(tokens) and tokens[index + 1].token_type == TokenType.DOT:
                index += 2
                continue
            break
        if last is None or not parts:
            raise CommandBuildError("ALTER TABLE statement does not name a table")
        body = tokens[last_index + 1 :]
        for position, token in enumerate(body):
            if token.token_type == TokenType.SEMICOLON:
                if any(rest.token_type != TokenType.SEMICOLON for rest in body[position + 1 :]):
                    raise CommandBuildError("Only a single ALTER TABLE statement can be run per call")
                body = body[:position]
                break
        # Comments are attached to tokens, not tokens themselves, so slicing
        # up to the last token leaves trailing comments out.
        fragment = statement[last.end + 1 : body[-1].end + 1].strip() if body else ""
        schema = parts[-2] if len(parts) > 1 else None
        return cls(table=parts[-1], fragment=fragment, schema=schema)


def _tokenize(statement: str) -> list[Token] | None:
    try:
        return _DIALECT.tokenize(statement)
    except TokenError:
        return None


def _is_alter_table(tokens: list[Token]) -> bool:
    return (
        len(tokens) >= 2
        and tokens[0].token_type == TokenType.ALTER
        and tokens[1].token_type == TokenType.TABLE
    )


__all__ = ["AlterStatement", "Route", "route"]
