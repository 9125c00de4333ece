"""Custom exceptions for ScaffoldKit."""

from typing import Any


class ScaffoldKitError(Exception):
    """Base exception for all ScaffoldKit errors."""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.details = details or {}


class PathTraversalError(ScaffoldKitError):
    """Raised when a path would resolve outside its root."""


class AnchorNotFoundError(ScaffoldKitError):
    """Raised when a transform anchor is missing from its target file."""

    def __init__(self, file_path: str, pattern: str) -> None:
        super().__init__(
            f"Anchor {pattern!r} not found in {file_path}",
            details={"file": file_path, "pattern": pattern},
        )
        self.file_path = file_path
        self.pattern = pattern


class MissingPropertyError(ScaffoldKitError):
    """Raised when a required property is absent."""

    def __init__(self, key: str, generator: str | None = None) -> None:
        where = f" for generator '{generator}'" if generator else ""
        super().__init__(
            f"Missing required property '{key}'{where}",
            details={"key": key, "generator": generator},
        )
        self.key = key


class InvalidPropertyShapeError(ScaffoldKitError):
    """Raised when a property has the wrong type or is not accepted."""

    def __init__(self, key: str, reason: str, generator: str | None = None) -> None:
        where = f" for generator '{generator}'" if generator else ""
        super().__init__(
            f"Invalid property '{key}'{where}: {reason}",
            details={"key": key, "reason": reason, "generator": generator},
        )
        self.key = key


class UnknownGeneratorError(ScaffoldKitError):
    """Raised when a generator name is not registered."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown generator '{name}'", details={"name": name})
        self.name = name


class MergeConflictError(ScaffoldKitError):
    """Raised when two trees disagree on a path and conflicts are not allowed."""


class UnsupportedResourceKindError(ScaffoldKitError):
    """Raised when a text transform targets a directory or binary file."""


class ResourceNotFoundError(ScaffoldKitError):
    """Raised when a resource lookup fails."""


class StorageError(ScaffoldKitError):
    """Raised when reading or writing archives or directories fails."""


class RegistryError(ScaffoldKitError):
    """Raised when generator registry operations fail."""


class DuplicateGeneratorError(RegistryError):
    """Raised when a generator name is registered twice."""


class CatalogError(ScaffoldKitError):
    """Raised when a generator catalog cannot be loaded."""


class DescriptorValidationError(CatalogError):
    """Raised when a catalog descriptor fails validation."""
