"""
extdeploy

Build database extensions from ordered SQL script manifests, register them
with their dependencies, and manage whole-database builds and restores.
"""

__version__ = "0.1.0"

from .config import ApplyOptions, BuildSpec, ComposeOptions, ConnectionCredentials
from .core import (
    ExtensionComposer,
    ExtensionDescriptor,
    ManifestLayout,
    ManifestResolver,
    ScriptCompiler,
    TransformRegistry,
    build_registration_sql,
)
from .database import AdHocExecutor, DatabaseProvisioner, ExtensionUnregisterer
from .domain import CommandResult, ExtDeployError

__all__ = [
    "__version__",
    "AdHocExecutor",
    "ApplyOptions",
    "BuildSpec",
    "CommandResult",
    "ComposeOptions",
    "ConnectionCredentials",
    "DatabaseProvisioner",
    "ExtDeployError",
    "ExtensionComposer",
    "ExtensionDescriptor",
    "ExtensionUnregisterer",
    "ManifestLayout",
    "ManifestResolver",
    "ScriptCompiler",
    "TransformRegistry",
    "build_registration_sql",
]
