"""
Core build pipeline: manifest resolution, script compilation and bundle composition.

Nothing in this package talks to a database; it only reads files and produces SQL text.
"""

from .compiler import ScriptCompiler, ScriptFragment
from .composer import ComposedExtension, ExtensionComposer
from .manifest import (
    ExtensionDescriptor,
    Manifest,
    ManifestLayout,
    ManifestResolver,
    ResolvedManifest,
)
from .pipeline import map_series, run_each, run_series
from .registration import build_registration_sql
from .templating import format_sql
from .transforms import ScriptTransform, TransformRegistry, default_registry, passthrough

__all__ = [
    "ComposedExtension",
    "ExtensionComposer",
    "ExtensionDescriptor",
    "Manifest",
    "ManifestLayout",
    "ManifestResolver",
    "ResolvedManifest",
    "ScriptCompiler",
    "ScriptFragment",
    "ScriptTransform",
    "TransformRegistry",
    "build_registration_sql",
    "default_registry",
    "format_sql",
    "map_series",
    "passthrough",
    "run_each",
    "run_series",
]
