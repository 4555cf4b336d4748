"""Application service layer entrypoints."""

from .services import (
    ApplyFileService,
    ApplyService,
    BuildService,
    ComposeService,
    UnregisterService,
)

__all__ = [
    "ComposeService",
    "ApplyService",
    "ApplyFileService",
    "BuildService",
    "UnregisterService",
]
