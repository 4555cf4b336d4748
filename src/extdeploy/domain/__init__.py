"""Domain types for extdeploy workflows."""

from .errors import (
    AggregateExecutionError,
    ConfigurationError,
    ExtDeployError,
    ManifestNotFoundError,
    ManifestParseError,
    ProcessExecutionError,
    QueryExecutionError,
    ScriptFormatError,
    ScriptNotFoundError,
    ScriptReadError,
    TempArtifactDeleteError,
    TempArtifactWriteError,
    UnsupportedScriptFormatError,
    WipeScriptReadError,
)
from .results import CommandResult

__all__ = [
    "CommandResult",
    "ExtDeployError",
    "ConfigurationError",
    "ManifestNotFoundError",
    "ManifestParseError",
    "ScriptNotFoundError",
    "ScriptReadError",
    "ScriptFormatError",
    "UnsupportedScriptFormatError",
    "WipeScriptReadError",
    "ProcessExecutionError",
    "QueryExecutionError",
    "TempArtifactWriteError",
    "TempArtifactDeleteError",
    "AggregateExecutionError",
]
