"""Connection parameters needed to reach MySQL and drive the tool."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping

from .errors import ConfigError

DEFAULT_USERNAME = "root"
DEFAULT_PORT = 3306

# Rails-style keys are accepted alongside the plain ones.
_SSL_KEYS = {
    "ssl_ca": "ssl_ca",
    "sslca": "ssl_ca",
    "ssl_cert": "ssl_cert",
    "sslcert": "ssl_cert",
    "ssl_key": "ssl_key",
    "sslkey": "ssl_key",
    "ssl_capath": "ssl_capath",
    "sslcapath": "ssl_capath",
    "ssl_mode": "ssl_mode",
}

_ENV_OVERRIDES = {
    "host": "PERCONA_DB_HOST",
    "username": "PERCONA_DB_USER",
    "password": "PERCONA_DB_PASSWORD",
    "database": "PERCONA_DB_NAME",
}


@dataclass(frozen=True, slots=True)
class ConnectionDetails:
    """Normalized, immutable connection parameters for one invocation."""

    database: str
    host: str | None = None
    port: int | None = None
    socket: str | None = None
    username: str = DEFAULT_USERNAME
    password: str = field(default="", repr=False)
    adapter: str = "mysql2"
    ssl: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def build(
        cls,
        config: Mapping[str, Any],
        *,
        environ: Mapping[str, str] | None = None,
    ) -> "ConnectionDetails":
        """Validate a generic configuration mapping.

        ``PERCONA_DB_*`` variables in ``environ`` (defaults to
        ``os.environ``) take precedence over the mapping. Raises
        :class:`ConfigError` naming the missing field when the server or the
        database cannot be determined.
        """

        env = os.environ if environ is None else environ
        values = {str(key): value for key, value in config.items()}
        if "username" not in values and "user" in values:
            values["username"] = values["user"]
        for key, variable in _ENV_OVERRIDES.items():
            override = env.get(variable)
            if override:
                values[key] = override

        host = _text(values.get("host"))
        socket = _text(values.get("socket"))
        if not host and not socket:
            raise ConfigError("Connection config is missing 'host' (or 'socket')")
        database = _text(values.get("database"))
        if not database:
            raise ConfigError("Connection config is missing 'database'")

        port: int | None = None
        raw_port = values.get("port")
        if raw_port not in (None, ""):
            try:
                port = int(raw_port)
            except (TypeError, ValueError) as exc:
                raise ConfigError(f"Connection config has an invalid 'port': {raw_port!r}") from exc
        elif host:
            port = DEFAULT_PORT

        ssl: dict[str, str] = {}
        nested = values.get("ssl")
        if isinstance(nested, Mapping):
            for key, value in nested.items():
                name = _SSL_KEYS.get(f"ssl_{key}", _SSL_KEYS.get(str(key)))
                if name and _text(value):
                    ssl[name] = str(value)
        for key, name in _SSL_KEYS.items():
            value = _text(values.get(key))
            if value:
                ssl[name] = value

        return cls(
            database=database,
            host=host,
            port=port,
            socket=socket,
            username=_text(values.get("username")) or DEFAULT_USERNAME,
            password="" if values.get("password") is None else str(values["password"]),
            adapter=_text(values.get("adapter")) or "mysql2",
            ssl=MappingProxyType(dict(sorted(ssl.items()))),
        )

    @property
    def uses_ssl(self) -> bool:
        return bool(self.ssl)


def _text(value: object) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


__all__ = ["ConnectionDetails", "DEFAULT_PORT", "DEFAULT_USERNAME"]
