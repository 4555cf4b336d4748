"""
Script Compiler

Reads one script file, runs it through the transform registered for its file
extension and checks the result is a well-terminated statement block. Each
compiled fragment is preceded by a database-side notice naming the file, so a
failure deep inside a concatenated bundle can be traced back to its source.
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Literal

from extdeploy.core.pipeline import map_series
from extdeploy.core.templating import format_sql
from extdeploy.core.transforms import TransformRegistry, default_registry
from extdeploy.domain.errors import ScriptFormatError, ScriptNotFoundError, ScriptReadError

logger = logging.getLogger(__name__)

LOAD_NOTICE_SQL = "do $$ BEGIN RAISE NOTICE 'Loading file %@'; END $$ language plpgsql;\n"
STATEMENT_TERMINATOR = ";"

FormatErrorPolicy = Literal["raise", "warn"]


@dataclass(slots=True)
class ScriptFragment:
    """One compiled script"""

    path: Path
    raw_text: str
    compiled_sql: str
    format: str


class ScriptCompiler:
    """Compile manifest scripts into SQL fragments

    Attributes:
        transforms: Registry used to look up a transform per file extension
        on_format_error: "raise" aborts on an unterminated script; "warn" logs
            the ScriptFormatError and keeps the fragment (legacy behavior)
    """

    def __init__(
        self,
        transforms: TransformRegistry | None = None,
        *,
        on_format_error: FormatErrorPolicy = "raise",
    ) -> None:
        self.transforms = transforms if transforms is not None else default_registry()
        self.on_format_error = on_format_error

    def compile(self, full_path: Path, default_schema: str | None = None) -> ScriptFragment:
        """Compile a single script file

        Args:
            full_path: Path of the script on disk
            default_schema: Schema passed through to the transform

        Returns:
            ScriptFragment whose compiled_sql starts with the load notice

        Raises:
            ScriptNotFoundError: If the file does not exist
            ScriptReadError: If the file cannot be read
            UnsupportedScriptFormatError: If no transform handles the extension
            ScriptFormatError: If the compiled text does not end in ';'
        """
        full_path = Path(full_path)
        if not full_path.exists():
            raise ScriptNotFoundError(message=f"{full_path} does not exist", path=str(full_path))
        try:
            raw_text = full_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise ScriptReadError(
                message=f"Cannot read script {full_path}: {exc}", path=str(full_path)
            ) from exc

        transform = self.transforms.resolve(full_path)
        try:
            body = transform(raw_text, full_path, default_schema).strip()
        except ValueError as exc:
            raise ScriptFormatError(
                message=f"Error: cannot convert {full_path}: {exc}", path=str(full_path)
            ) from exc

        # Each fragment must close its own statement before the next is appended
        if not body.endswith(STATEMENT_TERMINATOR):
            error = ScriptFormatError(
                message=f"Error: {full_path} contents do not end in a semicolon.",
                path=str(full_path),
            )
            if self.on_format_error == "raise":
                raise error
            logger.warning("%s", error)

        compiled = "\n" + format_sql(LOAD_NOTICE_SQL, full_path.name) + body
        return ScriptFragment(
            path=full_path,
            raw_text=raw_text,
            compiled_sql=compiled,
            format=full_path.suffix.lstrip(".").lower(),
        )

    def compile_all(
        self, scripts: Sequence[str], source_root: Path, default_schema: str | None = None
    ) -> list[ScriptFragment]:
        """Compile scripts (relative to source_root) in order, stopping at the first error."""
        return map_series(
            scripts, lambda script: self.compile(Path(source_root) / script, default_schema)
        )
