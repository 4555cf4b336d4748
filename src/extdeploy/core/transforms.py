"""
Script Transform Registry

Maps script file extensions to the transform that turns their content into
executable SQL. Only the plain ``sql`` passthrough ships with extdeploy;
specialized formats (metasql, uiform, report, uijs) are plugged in by callers.
"""

from pathlib import Path
from typing import Protocol

from extdeploy.domain.errors import UnsupportedScriptFormatError


class ScriptTransform(Protocol):
    """Turn raw script text into SQL

    Transforms signal malformed input by raising ValueError.
    """

    def __call__(self, text: str, path: Path, default_schema: str | None) -> str: ...


def passthrough(text: str, path: Path, default_schema: str | None) -> str:
    """Return SQL text unchanged."""
    del path, default_schema
    return text


def _normalize(extension: str) -> str:
    return extension.lstrip(".").lower()


class TransformRegistry:
    """Registry of script transforms keyed by file extension"""

    def __init__(self) -> None:
        self.transforms: dict[str, ScriptTransform] = {}

    def register(self, extension: str, transform: ScriptTransform) -> None:
        """
        Register a transform

        Args:
            extension: File extension with or without the leading dot
            transform: Callable turning script text into SQL

        Raises:
            ValueError: If a transform is already registered for the extension
        """
        key = _normalize(extension)
        if key in self.transforms:
            raise ValueError(f"Transform for '.{key}' files is already registered")
        self.transforms[key] = transform

    def get(self, extension: str) -> ScriptTransform | None:
        return self.transforms.get(_normalize(extension))

    def has(self, extension: str) -> bool:
        return _normalize(extension) in self.transforms

    def get_all_extensions(self) -> list[str]:
        return list(self.transforms.keys())

    def resolve(self, path: Path) -> ScriptTransform:
        """
        Get the transform for a script path

        Raises:
            UnsupportedScriptFormatError: If no transform handles the path's extension
        """
        transform = self.get(path.suffix)
        if transform is None:
            available = ", ".join(sorted(self.transforms)) or "none"
            raise UnsupportedScriptFormatError(
                message=f"No transform registered for {path} (registered: {available})",
                path=str(path),
            )
        return transform

    def unregister(self, extension: str) -> None:
        self.transforms.pop(_normalize(extension), None)


def default_registry() -> TransformRegistry:
    """Build a registry holding the built-in transforms."""
    registry = TransformRegistry()
    registry.register("sql", passthrough)
    return registry
