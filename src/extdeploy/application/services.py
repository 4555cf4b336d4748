"""Application service layer.

Stable orchestration surface for CLI and SDK callers. Services wire the core
build pipeline to the database adapters and report through CommandResult.
Failures propagate as ExtDeployError subclasses.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from extdeploy.config import ApplyOptions, BuildSpec, ComposeOptions, ConnectionCredentials
from extdeploy.core.composer import ComposedExtension, ExtensionComposer
from extdeploy.core.manifest import ManifestLayout
from extdeploy.core.pipeline import map_series
from extdeploy.database.adhoc import AdHocExecutor
from extdeploy.database.client import PsycopgQueryClient, SubprocessRunner
from extdeploy.database.provisioner import DatabaseProvisioner
from extdeploy.database.unregister import ExtensionUnregisterer, UnregisterTarget
from extdeploy.domain.errors import ScriptReadError
from extdeploy.domain.results import CommandResult

logger = logging.getLogger(__name__)


def _default_executor() -> AdHocExecutor:
    return AdHocExecutor(SubprocessRunner())


def _default_provisioner() -> DatabaseProvisioner:
    return DatabaseProvisioner(PsycopgQueryClient(), SubprocessRunner())


def _default_unregisterer() -> ExtensionUnregisterer:
    return ExtensionUnregisterer(PsycopgQueryClient())


def resolve_extension_dir(extension: str | Path, root: Path) -> Path:
    """Resolve an extension path against the checkout root.

    Paths reported by introspection look like ``/core-extensions/name``; they
    are taken relative to root unless they exist as given.
    """
    candidate = Path(extension)
    if candidate.is_absolute() and candidate.exists():
        return candidate
    return root / str(extension).lstrip("/")


def _default_location(extension_dir: Path) -> str:
    return f"/{extension_dir.resolve().parent.name}"


@dataclass(slots=True)
class ComposeService:
    """Compose one extension's bundle SQL without touching a database."""

    composer: ExtensionComposer = field(default_factory=ExtensionComposer)

    def run(
        self,
        *,
        extension: Path,
        options: ComposeOptions,
        output: Path | None = None,
    ) -> CommandResult:
        composed = _compose(self.composer, extension, options)
        if output is not None:
            output.parent.mkdir(parents=True, exist_ok=True)
            output.write_text(composed.sql, encoding="utf-8")
        return CommandResult(
            success=True,
            code="composed",
            message=f"Composed extension {composed.name}",
            data={
                "name": composed.name,
                "scripts": [str(fragment.path) for fragment in composed.fragments],
                "sql": composed.sql,
            },
        )


@dataclass(slots=True)
class ApplyService:
    """Compose extensions and apply each bundle to one database."""

    composer: ExtensionComposer = field(default_factory=ExtensionComposer)
    executor: AdHocExecutor = field(default_factory=_default_executor)

    def run(
        self,
        *,
        extensions: list[Path],
        credentials: ConnectionCredentials,
        options: ComposeOptions,
        apply_options: ApplyOptions | None = None,
    ) -> CommandResult:
        applied = map_series(
            extensions,
            lambda extension: _compose_and_apply(
                self.composer, self.executor, extension, credentials, options, apply_options
            ),
        )
        return CommandResult(
            success=True,
            code="applied",
            message=f"Applied {len(applied)} extension(s) to {credentials.database}",
            data={"database": credentials.database, "extensions": applied},
        )


@dataclass(slots=True)
class ApplyFileService:
    """Apply a raw SQL file to one database."""

    executor: AdHocExecutor = field(default_factory=_default_executor)

    def run(
        self,
        *,
        sql_file: Path,
        credentials: ConnectionCredentials,
        apply_options: ApplyOptions | None = None,
    ) -> CommandResult:
        try:
            sql_text = sql_file.read_text(encoding="utf-8")
        except OSError as exc:
            raise ScriptReadError(
                message=f"Cannot read SQL file {sql_file}: {exc}", path=str(sql_file)
            ) from exc
        result = self.executor.apply(sql_text, credentials, apply_options)
        return CommandResult(
            success=True,
            code="applied",
            message=f"Applied {sql_file} to {credentials.database}",
            data={
                "database": credentials.database,
                "kept_sql": str(result.kept_sql) if result.kept_sql else None,
            },
        )


@dataclass(slots=True)
class BuildService:
    """Provision a database (optional) and build its extensions."""

    provisioner: DatabaseProvisioner = field(default_factory=_default_provisioner)
    composer: ExtensionComposer = field(default_factory=ExtensionComposer)
    executor: AdHocExecutor = field(default_factory=_default_executor)

    def run(
        self,
        *,
        spec: BuildSpec,
        credentials: ConnectionCredentials,
        options: ComposeOptions,
        apply_options: ApplyOptions | None = None,
        root: Path | None = None,
    ) -> CommandResult:
        root = root or Path.cwd()
        data: dict[str, object] = {"database": spec.database}

        if spec.initializes_database:
            provisioned = self.provisioner.provision(spec, credentials)
            data["provision"] = provisioned.model_dump(mode="json")

        target = credentials.with_database(spec.database)
        applied = map_series(
            spec.extensions,
            lambda extension: _compose_and_apply(
                self.composer,
                self.executor,
                resolve_extension_dir(extension, root),
                target,
                options,
                apply_options,
            ),
        )
        data["extensions"] = applied
        return CommandResult(
            success=True,
            code="built",
            message=f"Built database {spec.database} with {len(applied)} extension(s)",
            data=data,
        )


@dataclass(slots=True)
class UnregisterService:
    """Unregister one extension from one or more databases."""

    unregisterer: ExtensionUnregisterer = field(default_factory=_default_unregisterer)

    def run(
        self,
        *,
        extension: str,
        databases: list[str],
        credentials: ConnectionCredentials,
    ) -> CommandResult:
        targets = [UnregisterTarget(database=database, extensions=[extension]) for database in databases]
        name = self.unregisterer.unregister(targets, credentials)
        return CommandResult(
            success=True,
            code="unregistered",
            message=f"Unregistered extension {name} from {', '.join(databases)}",
            data={"extension": name, "databases": list(databases)},
        )


def _compose(composer: ExtensionComposer, extension: Path, options: ComposeOptions) -> ComposedExtension:
    if options.register_extension and options.extension_location is None:
        options = options.model_copy(update={"extension_location": _default_location(extension)})
    return composer.build(ManifestLayout.for_extension(extension), options)


def _compose_and_apply(
    composer: ExtensionComposer,
    executor: AdHocExecutor,
    extension: Path,
    credentials: ConnectionCredentials,
    options: ComposeOptions,
    apply_options: ApplyOptions | None,
) -> str:
    composed = _compose(composer, extension, options)
    logger.info("Applying extension %s to %s", composed.name, credentials.database)
    executor.apply(composed.sql, credentials, apply_options)
    return composed.name
