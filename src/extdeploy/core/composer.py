"""
Extension Composer

Drives manifest resolution and script compilation for one extension and
assembles the final bundle. With every option enabled the bundle reads:

    view-wipe script + initializer call + registration SQL + script bundle
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from pathlib import Path

from extdeploy.config import ComposeOptions
from extdeploy.core.compiler import ScriptCompiler, ScriptFragment
from extdeploy.core.manifest import ExtensionDescriptor, ManifestLayout, ManifestResolver
from extdeploy.core.registration import build_registration_sql
from extdeploy.domain.errors import WipeScriptReadError

logger = logging.getLogger(__name__)

JS_INIT_SQL = "select xt.js_init();\n"

# View wipe script location relative to the checkout root
DEFAULT_WIPE_SCRIPT = Path("enyo-client") / "database" / "source" / "delete_system_orms.sql"


@dataclass(slots=True)
class ComposedExtension:
    """Bundle SQL for one extension plus what went into it."""

    descriptor: ExtensionDescriptor
    sql: str
    fragments: list[ScriptFragment] = field(default_factory=list)
    default_schema: str | None = None

    @property
    def name(self) -> str:
        return self.descriptor.name


class ExtensionComposer:
    """Assemble one extension's SQL bundle

    Attributes:
        resolver: Manifest resolver
        compiler: Script compiler
        wipe_script: Script that deletes system views, read when wipe_views is set
    """

    def __init__(
        self,
        resolver: ManifestResolver | None = None,
        compiler: ScriptCompiler | None = None,
        *,
        wipe_script: Path | None = None,
    ) -> None:
        self.resolver = resolver or ManifestResolver()
        self.compiler = compiler or ScriptCompiler()
        self.wipe_script = wipe_script

    def build(self, layout: ManifestLayout, options: ComposeOptions | None = None) -> ComposedExtension:
        """Resolve, compile and compose one extension

        Raises:
            ExtDeployError: The first resolution, compilation or wipe-script
                failure; no partial bundle is returned
        """
        options = options or ComposeOptions()
        resolved = self.resolver.resolve(
            layout,
            use_foundation_scripts=options.use_foundation_scripts,
            use_frozen_scripts=options.use_frozen_scripts,
        )
        fragments = self.compiler.compile_all(
            resolved.scripts, resolved.source_root, resolved.default_schema
        )
        sql = self.compose(fragments, resolved.descriptor, options)
        logger.info("Composed extension %s from %d scripts", resolved.descriptor.name, len(fragments))
        return ComposedExtension(
            descriptor=resolved.descriptor,
            sql=sql,
            fragments=fragments,
            default_schema=resolved.default_schema,
        )

    def compose(
        self,
        fragments: Sequence[ScriptFragment | str],
        descriptor: ExtensionDescriptor,
        options: ComposeOptions | None = None,
    ) -> str:
        """Concatenate compiled fragments and prepend the optional preamble."""
        options = options or ComposeOptions()
        extension_sql = "".join(
            fragment if isinstance(fragment, str) else fragment.compiled_sql
            for fragment in fragments
        )

        if options.register_extension:
            extension_sql = (
                build_registration_sql(descriptor, options.extension_location) + extension_sql
            )
        if options.run_js_init:
            # The extension providing the initializer must not set this flag
            extension_sql = JS_INIT_SQL + extension_sql
        if options.wipe_views:
            extension_sql = self.read_wipe_script() + extension_sql
        return extension_sql

    def read_wipe_script(self) -> str:
        """Read the view-wipe script.

        Raises:
            WipeScriptReadError: If no script is configured or it cannot be read
        """
        if self.wipe_script is None:
            raise WipeScriptReadError(message="No view wipe script configured")
        try:
            return Path(self.wipe_script).read_text(encoding="utf-8")
        except OSError as exc:
            raise WipeScriptReadError(
                message=f"Cannot read view wipe script {self.wipe_script}: {exc}",
                path=str(self.wipe_script),
            ) from exc
