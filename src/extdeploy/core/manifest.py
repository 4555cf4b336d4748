"""
Manifest Resolution

Loads an extension's manifest and returns one flat, ordered list of script
paths (relative to the manifest's directory) plus the effective default schema.

Two optional parent manifests can be prepended ahead of the extension's own
scripts:

* foundation scripts - the shared base manifest in the foundation directory
* frozen scripts - one-time, non-idempotent setup meant for first registration

Inclusion is bounded to those two levels: flags are never followed inside the
parent manifests themselves.
"""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from extdeploy.domain.errors import ManifestNotFoundError, ManifestParseError

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "manifest.js"
FROZEN_MANIFEST_FILENAME = "frozen_manifest.js"
DESCRIPTOR_FILENAME = "package.json"
FOUNDATION_DIRNAME = "foundation-database"
DEFAULT_LOAD_ORDER = 9999


def flatten_scripts(entries: list[Any]) -> list[str]:
    """Deep-flatten nested script lists, preserving order."""
    flat: list[str] = []
    for entry in entries:
        if isinstance(entry, list):
            flat.extend(flatten_scripts(entry))
        elif isinstance(entry, str):
            flat.append(entry)
        else:
            raise ValueError(f"script entries must be strings or lists, got {entry!r}")
    return flat


class Manifest(BaseModel):
    """Manifest document

    Besides the script list, a manifest may carry the same fields as an
    extension descriptor; they are used when no descriptor file exists.
    """

    name: str | None = None
    description: str | None = None
    comment: str | None = None
    load_order: int | None = Field(None, alias="loadOrder")
    dependencies: list[str] = Field(default_factory=list)
    default_schema: str | None = Field(None, alias="defaultSchema")
    database_scripts: list[Any] = Field(default_factory=list, alias="databaseScripts")

    class Config:
        populate_by_name = True

    @field_validator("database_scripts", mode="before")
    @classmethod
    def _validate_scripts(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, list):
            flatten_scripts(value)
        return value

    @field_validator("dependencies", mode="before")
    @classmethod
    def _validate_dependencies(cls, value: Any) -> Any:
        # npm-style dependency maps are package deps, not extension deps
        if value is None or isinstance(value, dict):
            return []
        return value

    def flat_scripts(self) -> list[str]:
        return flatten_scripts(self.database_scripts)


class ExtensionDescriptor(BaseModel):
    """Extension identity and dependency metadata (identity key: name)"""

    name: str
    description: str | None = None
    comment: str | None = None
    location: str | None = None
    load_order: int = Field(DEFAULT_LOAD_ORDER, alias="loadOrder")
    dependencies: list[str] = Field(default_factory=list)

    class Config:
        populate_by_name = True

    @field_validator("load_order", mode="before")
    @classmethod
    def _default_load_order(cls, value: Any) -> Any:
        return DEFAULT_LOAD_ORDER if value is None else value

    @field_validator("dependencies", mode="before")
    @classmethod
    def _validate_dependencies(cls, value: Any) -> Any:
        if value is None or isinstance(value, dict):
            return []
        return value

    @property
    def description_text(self) -> str:
        return self.description or self.comment or ""

    @classmethod
    def from_manifest(cls, manifest: Manifest, default_name: str) -> "ExtensionDescriptor":
        return cls(
            name=manifest.name or default_name,
            description=manifest.description,
            comment=manifest.comment,
            load_order=manifest.load_order,
            dependencies=manifest.dependencies,
        )


@dataclass(slots=True)
class ManifestLayout:
    """Directory context for one extension's database-side source.

    Attributes:
        manifest_path: The extension's own manifest file
        descriptor_path: Optional extension descriptor (package.json)
        foundation_dir: Foundation directory; defaults to
            ``<manifest dir>/../../foundation-database``
        name: Fallback extension name when no descriptor names it
    """

    manifest_path: Path
    descriptor_path: Path | None = None
    foundation_dir: Path | None = None
    name: str | None = None

    @classmethod
    def for_extension(cls, extension_dir: Path) -> "ManifestLayout":
        """Layout for an extension checkout.

        Foundation-only extensions keep their manifest at the directory root,
        everything else under ``database/source``.
        """
        extension_dir = Path(extension_dir).resolve()
        if extension_dir.name == FOUNDATION_DIRNAME:
            source_root = extension_dir
            name = extension_dir.parent.name
        else:
            source_root = extension_dir / "database" / "source"
            name = extension_dir.name
        return cls(
            manifest_path=source_root / MANIFEST_FILENAME,
            descriptor_path=extension_dir / DESCRIPTOR_FILENAME,
            name=name,
        )

    @property
    def source_root(self) -> Path:
        return self.manifest_path.parent

    @property
    def foundation_root(self) -> Path:
        if self.foundation_dir is not None:
            return self.foundation_dir
        return self.source_root / ".." / ".." / FOUNDATION_DIRNAME

    def in_foundation_tree(self) -> bool:
        """True when the extension's source already lives under the foundation root."""
        if self.foundation_dir is not None:
            return self.source_root.resolve().is_relative_to(self.foundation_dir.resolve())
        return FOUNDATION_DIRNAME in self.source_root.parts

    @property
    def fallback_name(self) -> str:
        return self.name or self.source_root.name


@dataclass(slots=True)
class ResolvedManifest:
    """Ordered script paths (relative to source_root) and effective settings."""

    scripts: list[str]
    default_schema: str | None
    descriptor: ExtensionDescriptor
    source_root: Path
    has_manifest: bool = True


def _load_json(path: Path) -> Any:
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError as exc:
        raise ManifestNotFoundError(message=f"Cannot find manifest {path}", path=str(path)) from exc
    except OSError as exc:
        raise ManifestParseError(message=f"Cannot read manifest {path}: {exc}", path=str(path)) from exc
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise ManifestParseError(message=f"Manifest is not valid JSON: {path}", path=str(path)) from exc


def load_manifest(path: Path) -> Manifest:
    """Load and validate one manifest file.

    Raises:
        ManifestNotFoundError: If the file does not exist
        ManifestParseError: If the content is not a valid manifest document
    """
    payload = _load_json(path)
    if not isinstance(payload, dict):
        raise ManifestParseError(message=f"Manifest must be a JSON object: {path}", path=str(path))
    try:
        return Manifest.model_validate(payload)
    except ValidationError as exc:
        raise ManifestParseError(message=f"Invalid manifest {path}: {exc}", path=str(path)) from exc


def load_descriptor(path: Path, default_name: str) -> ExtensionDescriptor:
    """Load an extension descriptor file."""
    payload = _load_json(path)
    if not isinstance(payload, dict):
        raise ManifestParseError(message=f"Descriptor must be a JSON object: {path}", path=str(path))
    payload.setdefault("name", default_name)
    try:
        return ExtensionDescriptor.model_validate(payload)
    except ValidationError as exc:
        raise ManifestParseError(message=f"Invalid descriptor {path}: {exc}", path=str(path)) from exc


def rebase_scripts(scripts: list[str], from_root: Path, to_root: Path) -> list[str]:
    """Rewrite paths relative to from_root so they resolve from to_root."""
    prefix = Path(os.path.relpath(from_root, to_root))
    return [(prefix / script).as_posix() for script in scripts]


class ManifestResolver:
    """Resolve manifests (plus optional foundation/frozen parents) into script lists"""

    def resolve(
        self,
        layout: ManifestLayout,
        *,
        use_foundation_scripts: bool = False,
        use_frozen_scripts: bool = False,
    ) -> ResolvedManifest:
        """Resolve one extension's ordered script list

        Args:
            layout: Directory context of the extension
            use_foundation_scripts: Prepend the foundation manifest's scripts
            use_frozen_scripts: Prepend the frozen manifest's scripts (ahead of foundation)

        Returns:
            ResolvedManifest with scripts relative to layout.source_root

        Raises:
            ManifestNotFoundError: If neither the manifest nor a descriptor exists
            ManifestParseError: If a manifest or descriptor is malformed
        """
        descriptor = None
        if layout.descriptor_path is not None and layout.descriptor_path.exists():
            descriptor = load_descriptor(layout.descriptor_path, layout.fallback_name)

        if not layout.manifest_path.exists():
            if descriptor is None:
                raise ManifestNotFoundError(
                    message=f"Cannot find manifest {layout.manifest_path}",
                    path=str(layout.manifest_path),
                )
            logger.info(
                "No manifest file %s. There is probably no db-side code in the extension.",
                layout.manifest_path,
            )
            return ResolvedManifest(
                scripts=[],
                default_schema=None,
                descriptor=descriptor,
                source_root=layout.source_root,
                has_manifest=False,
            )

        manifest = load_manifest(layout.manifest_path)
        scripts = manifest.flat_scripts()
        default_schema = manifest.default_schema

        if use_foundation_scripts:
            foundation = load_manifest(layout.foundation_root / MANIFEST_FILENAME)
            default_schema = default_schema or foundation.default_schema
            scripts = (
                rebase_scripts(foundation.flat_scripts(), layout.foundation_root, layout.source_root)
                + scripts
            )

        if use_frozen_scripts:
            if layout.in_foundation_tree():
                frozen = load_manifest(layout.source_root / FROZEN_MANIFEST_FILENAME)
                frozen_scripts = frozen.flat_scripts()
            else:
                frozen = load_manifest(layout.foundation_root / FROZEN_MANIFEST_FILENAME)
                frozen_scripts = rebase_scripts(
                    frozen.flat_scripts(), layout.foundation_root, layout.source_root
                )
            default_schema = default_schema or frozen.default_schema
            scripts = frozen_scripts + scripts

        if descriptor is None:
            descriptor = ExtensionDescriptor.from_manifest(manifest, layout.fallback_name)

        logger.debug("Resolved %d scripts for %s", len(scripts), descriptor.name)
        return ResolvedManifest(
            scripts=scripts,
            default_schema=default_schema,
            descriptor=descriptor,
            source_root=layout.source_root,
        )
