"""Shared test helpers."""

from .extension_tree import ExtensionTreeBuilder, write_json, write_scripts
from .fakes import FakeProcessRunner, FakeQueryClient, QueryCall

__all__ = [
    "ExtensionTreeBuilder",
    "FakeProcessRunner",
    "FakeQueryClient",
    "QueryCall",
    "write_json",
    "write_scripts",
]
