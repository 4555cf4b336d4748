"""Unified error taxonomy for extension builds and database lifecycle workflows."""

from dataclasses import dataclass, field
from typing import Any


@dataclass(slots=True)
class ExtDeployError(Exception):
    """Base class for all extdeploy failures."""

    message: str
    code: str = "error"

    def __str__(self) -> str:
        return self.message


@dataclass(slots=True)
class ConfigurationError(ExtDeployError):
    """Raised for invalid connection settings or build specs."""

    code: str = "invalid_configuration"


@dataclass(slots=True)
class ManifestNotFoundError(ExtDeployError):
    """Raised when neither a manifest nor an extension descriptor exists."""

    code: str = "manifest_not_found"
    path: str = ""


@dataclass(slots=True)
class ManifestParseError(ExtDeployError):
    """Raised when a manifest or descriptor is not valid structured data."""

    code: str = "manifest_invalid"
    path: str = ""


@dataclass(slots=True)
class ScriptNotFoundError(ExtDeployError):
    """Raised when a script referenced by a manifest is missing."""

    code: str = "script_not_found"
    path: str = ""


@dataclass(slots=True)
class ScriptReadError(ExtDeployError):
    """Raised when a script exists but cannot be read."""

    code: str = "script_unreadable"
    path: str = ""


@dataclass(slots=True)
class ScriptFormatError(ExtDeployError):
    """Raised when compiled script text does not end in a statement terminator."""

    code: str = "script_unterminated"
    path: str = ""


@dataclass(slots=True)
class UnsupportedScriptFormatError(ExtDeployError):
    """Raised when no transform is registered for a script's file extension."""

    code: str = "script_format_unsupported"
    path: str = ""


@dataclass(slots=True)
class WipeScriptReadError(ExtDeployError):
    """Raised when the view-wipe script cannot be read."""

    code: str = "wipe_script_unreadable"
    path: str = ""


@dataclass(slots=True)
class ProcessExecutionError(ExtDeployError):
    """Raised when an external client process fails or cannot be started."""

    code: str = "process_failed"
    command: list[str] = field(default_factory=list)
    returncode: int | None = None
    stdout: str = ""
    stderr: str = ""


@dataclass(slots=True)
class QueryExecutionError(ExtDeployError):
    """Raised when a query against the target database fails."""

    code: str = "query_failed"
    database: str = ""
    sql: str = ""


@dataclass(slots=True)
class TempArtifactWriteError(ExtDeployError):
    """Raised when the temporary SQL artifact cannot be written."""

    code: str = "temp_write_failed"
    path: str = ""


@dataclass(slots=True)
class TempArtifactDeleteError(ExtDeployError):
    """Raised when the temporary SQL artifact cannot be removed."""

    code: str = "temp_delete_failed"
    path: str = ""


@dataclass(slots=True)
class AggregateExecutionError(ExtDeployError):
    """Raised after independent tasks ran and at least one of them failed."""

    code: str = "partial_failure"
    failures: list[tuple[Any, ExtDeployError]] = field(default_factory=list)
