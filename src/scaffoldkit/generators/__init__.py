"""Built-in generators."""

from ..registry import Generator
from .capability_import import CapabilityImportGenerator
from .import_codebase import ImportCodebaseGenerator


def builtin_generators() -> list[Generator]:
    """Fresh instances of every built-in generator."""
    return [
        CapabilityImportGenerator(),
        ImportCodebaseGenerator(),
    ]


__all__ = [
    "CapabilityImportGenerator",
    "ImportCodebaseGenerator",
    "builtin_generators",
]
