"""In-memory overlay filesystem for projects under construction."""

from __future__ import annotations

import logging
import os
import stat
from collections.abc import Iterator
from pathlib import Path

from .exceptions import (
    MergeConflictError,
    PathTraversalError,
    ResourceNotFoundError,
    StorageError,
)
from .models import (
    DEFAULT_DIRECTORY_MODE,
    DEFAULT_FILE_MODE,
    Resource,
    ResourceKind,
)
from .paths import glob_match, normalize, parents, resolve_within

logger = logging.getLogger(__name__)


class ResourceTree:
    """Mapping from normalized relative path to :class:`Resource`.

    Resources are immutable, so copies are shallow. Parent directories are
    created implicitly whenever an entry is added below them.
    """

    def __init__(self, resources: dict[str, Resource] | None = None) -> None:
        self._entries: dict[str, Resource] = {}
        for resource in (resources or {}).values():
            self._add(resource)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Resource]:
        for path in sorted(self._entries):
            yield self._entries[path]

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, str):
            return False
        try:
            return normalize(path) in self._entries
        except PathTraversalError:
            return False

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ResourceTree):
            return NotImplemented
        return self._entries == other._entries

    def __repr__(self) -> str:
        return f"ResourceTree({len(self._entries)} entries)"

    def _add(self, resource: Resource) -> Resource:
        path = self._checked_path(resource.path)
        if path != resource.path:
            resource = Resource(path, resource.kind, resource.content, resource.mode)

        ancestors = parents(path)
        for parent in ancestors:
            existing = self._entries.get(parent)
            if existing is not None and existing.is_file:
                msg = f"Cannot nest '{path}' below file '{parent}'"
                raise MergeConflictError(msg, details={"path": parent})
        existing = self._entries.get(path)
        if existing is not None and existing.is_directory and resource.is_file:
            prefix = path + "/"
            if any(p.startswith(prefix) for p in self._entries):
                msg = f"Cannot replace non-empty directory '{path}' with a file"
                raise MergeConflictError(msg, details={"path": path})

        for parent in ancestors:
            if parent not in self._entries:
                self._entries[parent] = Resource(
                    parent,
                    ResourceKind.DIRECTORY,
                    mode=DEFAULT_DIRECTORY_MODE,
                )
        self._entries[path] = resource
        return resource

    def _checked_path(self, path: str) -> str:
        normalized = normalize(path)
        if not normalized:
            msg = "The tree root cannot hold a resource"
            raise PathTraversalError(msg, details={"path": path})
        return normalized

    def put(
        self,
        path: str,
        content: str | bytes,
        mode: int = DEFAULT_FILE_MODE,
    ) -> Resource:
        """Add or replace a file.

        Raises:
            PathTraversalError: If the path escapes the tree root
            MergeConflictError: If the path is a non-empty directory or lies
                below a file
        """
        if isinstance(content, str):
            content = content.encode("utf-8")
        return self._add(Resource(path, ResourceKind.FILE, content, mode))

    def put_directory(self, path: str, mode: int = DEFAULT_DIRECTORY_MODE) -> Resource:
        """Add a directory, keeping an existing one as is."""
        normalized = self._checked_path(path)
        existing = self._entries.get(normalized)
        if existing is not None and existing.is_directory:
            return existing
        return self._add(Resource(normalized, ResourceKind.DIRECTORY, mode=mode))

    def get(self, path: str) -> Resource:
        """Look up a resource.

        Raises:
            ResourceNotFoundError: If nothing is stored at the path
        """
        resource = self.find(path)
        if resource is None:
            msg = f"Resource not found: {path}"
            raise ResourceNotFoundError(msg, details={"path": path})
        return resource

    def find(self, path: str) -> Resource | None:
        return self._entries.get(normalize(path))

    def delete(self, path: str) -> int:
        """Remove a resource and everything below it.

        Returns:
            Number of entries removed
        """
        normalized = normalize(path)
        if not normalized:
            removed = len(self._entries)
            self._entries.clear()
            return removed

        prefix = normalized + "/"
        doomed = [p for p in self._entries if p == normalized or p.startswith(prefix)]
        for p in doomed:
            del self._entries[p]
        return len(doomed)

    def merge(self, other: ResourceTree, detect_conflicts: bool = False) -> ResourceTree:
        """Combine two trees into a new one; ``other`` wins on shared paths.

        Args:
            other: Tree overlaid on this one
            detect_conflicts: Fail instead of overwriting differing entries

        Raises:
            MergeConflictError: If ``detect_conflicts`` and a path differs, or
                a file would replace a non-empty directory
            PathTraversalError: If an entry of ``other`` escapes the tree root
        """
        merged = self.copy()
        for resource in other:
            path = self._checked_path(resource.path)
            if path != resource.path:
                resource = Resource(path, resource.kind, resource.content, resource.mode)
            existing = merged._entries.get(path)
            if existing is not None and existing != resource:
                if existing.is_directory and resource.is_directory:
                    continue
                if detect_conflicts:
                    msg = f"Conflicting content for '{resource.path}'"
                    raise MergeConflictError(msg, details={"path": resource.path})
            merged._add(resource)
        return merged

    def copy(self) -> ResourceTree:
        clone = ResourceTree()
        clone._entries = dict(self._entries)
        return clone

    def files(self) -> list[Resource]:
        return [r for r in self if r.is_file]

    def directories(self) -> list[Resource]:
        return [r for r in self if r.is_directory]

    def glob(self, pattern: str) -> list[Resource]:
        """Return resources whose path matches ``pattern``, sorted by path."""
        return [r for r in self if glob_match(r.path, pattern)]

    def subtree(self, prefix: str) -> ResourceTree:
        """Re-root the entries below ``prefix``."""
        normalized = normalize(prefix)
        if not normalized:
            return self.copy()
        start = normalized + "/"
        tree = ResourceTree()
        for resource in self:
            if resource.path.startswith(start):
                tree._add(
                    Resource(
                        resource.path[len(start):],
                        resource.kind,
                        resource.content,
                        resource.mode,
                    ),
                )
        return tree

    def prefixed(self, prefix: str | None) -> ResourceTree:
        """Mount all entries below ``prefix``."""
        if not prefix:
            return self.copy()
        normalized = self._checked_path(prefix)
        tree = ResourceTree()
        tree.put_directory(normalized)
        for resource in self:
            tree._add(
                Resource(
                    f"{normalized}/{resource.path}",
                    resource.kind,
                    resource.content,
                    resource.mode,
                ),
            )
        return tree

    def write_to(self, directory: Path) -> None:
        """Materialize the tree onto disk under ``directory``.

        Raises:
            PathTraversalError: If an entry would land outside ``directory``
            StorageError: If writing fails
        """
        root = Path(directory)
        try:
            root.mkdir(parents=True, exist_ok=True)
            for resource in self:
                target = resolve_within(root, resource.path)
                if resource.is_directory:
                    target.mkdir(parents=True, exist_ok=True)
                    continue
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_bytes(resource.content or b"")
                if resource.mode:
                    os.chmod(target, stat.S_IMODE(resource.mode))
        except OSError as e:
            msg = f"Failed to write tree to {root}: {e}"
            raise StorageError(msg, details={"path": str(root)}) from e
        logger.debug("Wrote %d entries to %s", len(self), root)

    @classmethod
    def from_directory(cls, directory: Path) -> ResourceTree:
        """Read a directory from disk into a new tree.

        Raises:
            StorageError: If the directory cannot be read
        """
        root = Path(directory)
        tree = cls()
        stack = [root]
        try:
            while stack:
                current = stack.pop()
                for entry in sorted(os.scandir(current), key=lambda e: e.name):
                    relative = Path(entry.path).relative_to(root).as_posix()
                    mode = stat.S_IMODE(entry.stat(follow_symlinks=False).st_mode)
                    if entry.is_dir(follow_symlinks=False):
                        tree.put_directory(relative, mode=mode)
                        stack.append(Path(entry.path))
                    elif entry.is_file(follow_symlinks=False):
                        tree.put(relative, Path(entry.path).read_bytes(), mode=mode)
        except OSError as e:
            msg = f"Failed to read directory {root}: {e}"
            raise StorageError(msg, details={"path": str(root)}) from e
        return tree
