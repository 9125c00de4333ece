"""Path helpers: URL-style joining, containment checks and glob matching."""

from __future__ import annotations

import logging
import os
import posixpath
import re
from functools import lru_cache
from pathlib import Path, PureWindowsPath

from .exceptions import PathTraversalError, StorageError

logger = logging.getLogger(__name__)


def join(*parts: str | None) -> str:
    """Join parts into a URL-like path with single ``/`` separators.

    ``None`` parts are ignored. When the text so far ends with ``/`` and the
    next part starts with one, only one is kept; when neither side has one, a
    separator is inserted. Empty strings still take part in that decision.

    Examples:
        >>> join("https://host/", "/path")
        'https://host/path'
        >>> join("a", "", "b")
        'a/b'
    """
    buffer = ""
    for part in parts:
        if part is None:
            continue
        if buffer:
            if buffer.endswith("/"):
                if part.startswith("/"):
                    part = part[1:]
            elif not part.startswith("/"):
                buffer += "/"
        buffer += part
    return buffer


def normalize(path: str) -> str:
    """Normalize a relative resource path to POSIX form.

    Returns ``""`` for the root itself.

    Raises:
        PathTraversalError: If the path is absolute or escapes the root
    """
    candidate = str(path).replace("\\", "/")
    if candidate.startswith("/") or PureWindowsPath(candidate).drive:
        msg = f"Path is not relative: {path}"
        raise PathTraversalError(msg, details={"path": str(path)})

    normalized = posixpath.normpath(candidate) if candidate else "."
    if normalized == ".." or normalized.startswith("../"):
        msg = f"Path escapes the tree root: {path}"
        raise PathTraversalError(msg, details={"path": str(path)})

    return "" if normalized == "." else normalized


def parents(path: str) -> list[str]:
    """List the ancestor directories of a normalized path, outermost first."""
    segments = path.split("/")[:-1]
    return ["/".join(segments[: i + 1]) for i in range(len(segments))]


def resolve_within(root: Path, name: str) -> Path:
    """Resolve ``name`` under ``root`` and check it stays inside.

    Raises:
        PathTraversalError: If the resolved path is outside ``root``
    """
    base = os.path.normpath(str(Path(root).resolve()))
    target = os.path.normpath(os.path.join(base, name))
    if os.path.commonpath([base, target]) != base:
        msg = f"Entry is outside of the target dir: {name}"
        raise PathTraversalError(msg, details={"entry": name, "root": base})
    return Path(target)


@lru_cache(maxsize=256)
def _compile_glob(pattern: str) -> re.Pattern[str]:
    out = []
    i = 0
    while i < len(pattern):
        if pattern.startswith("**/", i):
            out.append("(?:.*/)?")
            i += 3
        elif pattern.startswith("**", i):
            out.append(".*")
            i += 2
        elif pattern[i] == "*":
            out.append("[^/]*")
            i += 1
        elif pattern[i] == "?":
            out.append("[^/]")
            i += 1
        else:
            out.append(re.escape(pattern[i]))
            i += 1
    return re.compile("".join(out))


def glob_match(path: str, pattern: str) -> bool:
    """Match a normalized path against a glob.

    ``**`` spans directories, ``*`` and ``?`` stay within one segment.
    """
    return _compile_glob(pattern).fullmatch(path) is not None


def delete_directory(directory: Path) -> None:
    """Delete a directory tree, tolerating entries that vanish meanwhile.

    Raises:
        StorageError: If an entry exists but cannot be removed
    """
    root = Path(directory)
    if not root.exists():
        return

    stack = [root]
    visited: list[Path] = []
    try:
        while stack:
            current = stack.pop()
            visited.append(current)
            try:
                entries = list(os.scandir(current))
            except FileNotFoundError:
                continue
            for entry in entries:
                if entry.is_dir(follow_symlinks=False):
                    stack.append(Path(entry.path))
                    continue
                try:
                    os.unlink(entry.path)
                except FileNotFoundError:
                    # Already removed by another process
                    logger.debug("File vanished during delete: %s", entry.path)

        for current in reversed(visited):
            try:
                os.rmdir(current)
            except FileNotFoundError:
                logger.debug("Directory vanished during delete: %s", current)
    except OSError as e:
        msg = f"Failed to delete directory {root}: {e}"
        raise StorageError(msg, details={"path": str(root)}) from e
