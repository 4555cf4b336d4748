"""Database lifecycle: client adapters, provisioning, ad-hoc application, unregistration."""

from .adhoc import AdHocExecutor, ApplyResult, sql_artifact
from .client import (
    MAX_OUTPUT_BYTES,
    ExtensionInspector,
    PostgresCommands,
    ProcessResult,
    ProcessRunner,
    PsycopgQueryClient,
    QueryClient,
    SubprocessRunner,
)
from .introspection import QueryExtensionInspector, inspect_installed_extensions
from .provisioner import DatabaseProvisioner, ProvisionResult
from .unregister import ExtensionUnregisterer, UnregisterTarget, extension_name

__all__ = [
    "MAX_OUTPUT_BYTES",
    "AdHocExecutor",
    "ApplyResult",
    "DatabaseProvisioner",
    "ExtensionInspector",
    "ExtensionUnregisterer",
    "PostgresCommands",
    "ProcessResult",
    "ProcessRunner",
    "ProvisionResult",
    "PsycopgQueryClient",
    "QueryClient",
    "QueryExtensionInspector",
    "SubprocessRunner",
    "UnregisterTarget",
    "extension_name",
    "inspect_installed_extensions",
    "sql_artifact",
]
