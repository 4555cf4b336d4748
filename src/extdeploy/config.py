"""
Configuration models for extdeploy.

Connection credentials, build specs and per-invocation options. Credentials are
always copied before a database name is swapped in, so callers keep their
original target reference.
"""

import json
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError, model_validator

from extdeploy.domain.errors import ConfigurationError

DEFAULT_PORT = 5432
MAINTENANCE_DATABASE = "postgres"

# Keys accepted in the "databaseServer" section of a JSON config file
_SERVER_KEY_MAP = {
    "hostname": "hostname",
    "host": "hostname",
    "port": "port",
    "user": "username",
    "username": "username",
    "admin": "username",
    "password": "password",
    "database": "database",
}


class ConnectionCredentials(BaseModel):
    """Connection parameters for the target database server

    Attributes:
        username: Role used for every connection and client invocation
        hostname: Database server host
        port: Database server port
        database: Database the credentials currently point at
        password: Optional password, passed to clients via environment only
    """

    username: str
    hostname: str = "localhost"
    port: int = DEFAULT_PORT
    database: str = MAINTENANCE_DATABASE
    password: str | None = Field(default=None, repr=False)

    def with_database(self, database: str) -> "ConnectionCredentials":
        """Return a deep copy of these credentials pointing at another database."""
        return self.model_copy(update={"database": database}, deep=True)

    def connection_kwargs(self) -> dict[str, Any]:
        """Keyword arguments for a driver-level connect call."""
        kwargs: dict[str, Any] = {
            "host": self.hostname,
            "port": self.port,
            "user": self.username,
            "dbname": self.database,
        }
        if self.password:
            kwargs["password"] = self.password
        return kwargs


class BuildSpec(BaseModel):
    """Whole-database build request

    Attributes:
        database: Target database name
        source: Schema + seed SQL file (mutually exclusive with backup)
        backup: Binary dump to restore (mutually exclusive with source)
        extensions: Extension paths to build; overwritten when restoring a backup
    """

    database: str
    source: Path | None = None
    backup: Path | None = None
    extensions: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_origin(self) -> "BuildSpec":
        if self.source is not None and self.backup is not None:
            raise ValueError("source and backup are mutually exclusive")
        return self

    @property
    def initializes_database(self) -> bool:
        return self.source is not None or self.backup is not None


class ComposeOptions(BaseModel):
    """Flags controlling how one extension's bundle is assembled"""

    use_foundation_scripts: bool = False
    use_frozen_scripts: bool = False
    register_extension: bool = False
    run_js_init: bool = False
    wipe_views: bool = False
    extension_location: str | None = None


class ApplyOptions(BaseModel):
    """Flags controlling ad-hoc application of a SQL payload"""

    keep_sql: bool = False
    sql_dir: Path | None = None


def _read_server_section(config_path: Path) -> dict[str, Any]:
    """Read the databaseServer section of a JSON config file."""
    try:
        payload = json.loads(config_path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ConfigurationError(message=f"Config file not found: {config_path}") from exc
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigurationError(message=f"Cannot read config file {config_path}: {exc}") from exc

    if not isinstance(payload, dict):
        raise ConfigurationError(message=f"Config file {config_path} must contain an object")
    server = payload.get("databaseServer", payload)
    if not isinstance(server, dict):
        raise ConfigurationError(message=f"'databaseServer' in {config_path} must be an object")

    settings: dict[str, Any] = {}
    for key, value in server.items():
        target = _SERVER_KEY_MAP.get(key)
        if target is not None and value is not None:
            settings[target] = value
    return settings


def load_credentials(config_path: Path | None = None, **overrides: Any) -> ConnectionCredentials:
    """Build connection credentials from an optional config file plus explicit overrides.

    Explicit (non-None) overrides win over values from the file.

    Raises:
        ConfigurationError: If the file is unreadable or the merged settings are invalid
    """
    settings: dict[str, Any] = {}
    if config_path is not None:
        settings.update(_read_server_section(config_path))
    settings.update({key: value for key, value in overrides.items() if value is not None})

    try:
        return ConnectionCredentials(**settings)
    except ValidationError as exc:
        raise ConfigurationError(message=f"Invalid connection settings: {exc}") from exc
