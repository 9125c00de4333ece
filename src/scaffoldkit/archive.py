"""Zip codec for resource trees with zip-slip protection.

Entries carry POSIX permission bits in the upper 16 bits of their external
attributes, the same layout ``unzip -Z`` and Info-ZIP use.
"""

from __future__ import annotations

import io
import logging
import os
import stat
import tempfile
import zipfile
from collections.abc import Iterator
from pathlib import Path
from typing import BinaryIO

from .exceptions import StorageError
from .models import DEFAULT_DIRECTORY_MODE, DEFAULT_FILE_MODE, Resource
from .paths import delete_directory, join, resolve_within
from .resources import ResourceTree

logger = logging.getLogger(__name__)

# Fixed entry timestamp so identical trees produce identical archives
ARCHIVE_TIMESTAMP = (1980, 1, 1, 0, 0, 0)
UNIX_SYSTEM = 3
MSDOS_DIRECTORY_FLAG = 0x10


def _walk(tree: ResourceTree) -> Iterator[Resource]:
    """Yield resources depth-first: each directory before its children."""
    children: dict[str, list[Resource]] = {}
    for resource in tree:
        parent = resource.path.rpartition("/")[0]
        children.setdefault(parent, []).append(resource)

    stack = list(reversed(children.get("", [])))
    while stack:
        resource = stack.pop()
        yield resource
        if resource.is_directory:
            stack.extend(reversed(children.get(resource.path, [])))


def _entry_info(name: str, mode: int, is_directory: bool) -> zipfile.ZipInfo:
    info = zipfile.ZipInfo(name, date_time=ARCHIVE_TIMESTAMP)
    info.create_system = UNIX_SYSTEM
    if is_directory:
        info.external_attr = ((stat.S_IFDIR | stat.S_IMODE(mode)) << 16) | MSDOS_DIRECTORY_FLAG
    else:
        info.external_attr = (stat.S_IFREG | stat.S_IMODE(mode)) << 16
        info.compress_type = zipfile.ZIP_DEFLATED
    return info


def zip_tree(root: str, tree: ResourceTree) -> bytes:
    """Serialize a tree as a zip archive with every entry below ``root/``.

    Args:
        root: Label of the top-level folder inside the archive
        tree: Resources to archive

    Returns:
        Zip archive bytes
    """
    label = root.strip("/")
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        if label:
            archive.writestr(_entry_info(f"{label}/", DEFAULT_DIRECTORY_MODE, True), b"")
        for resource in _walk(tree):
            name = join(label or None, resource.path)
            if resource.is_directory:
                archive.writestr(_entry_info(f"{name}/", resource.mode, True), b"")
            else:
                archive.writestr(
                    _entry_info(name, resource.mode, False),
                    resource.content or b"",
                )
    logger.debug("Zipped %d entries under %r", len(tree), label)
    return buffer.getvalue()


def zip_directory(root: str, directory: Path) -> bytes:
    """Zip a directory from disk, keeping its permission bits."""
    return zip_tree(root, ResourceTree.from_directory(directory))


def unzip(data: bytes, output_dir: Path) -> ResourceTree:
    """Extract zip bytes into ``output_dir``.

    See :func:`unzip_stream`.
    """
    return unzip_stream(io.BytesIO(data), output_dir)


def unzip_stream(stream: BinaryIO, output_dir: Path) -> ResourceTree:
    """Extract a zip archive into ``output_dir``.

    Extraction stops at the first entry resolving outside ``output_dir``.
    Entries written before that one are left in place; extract into a fresh
    directory when all-or-nothing behaviour is needed.

    Returns:
        The extracted entries, relative to ``output_dir``

    Raises:
        PathTraversalError: If an entry escapes ``output_dir``
        StorageError: If the archive is corrupt or writing fails
    """
    root = Path(output_dir)
    tree = ResourceTree()
    try:
        root.mkdir(parents=True, exist_ok=True)
        base = root.resolve()
        with zipfile.ZipFile(stream) as archive:
            for info in archive.infolist():
                target = resolve_within(base, info.filename)
                relative = target.relative_to(base).as_posix()
                mode = stat.S_IMODE(info.external_attr >> 16)

                if info.is_dir():
                    target.mkdir(parents=True, exist_ok=True)
                    if mode:
                        os.chmod(target, mode)
                    if relative != ".":
                        tree.put_directory(relative, mode=mode or DEFAULT_DIRECTORY_MODE)
                    continue

                target.parent.mkdir(parents=True, exist_ok=True)
                content = archive.read(info)
                target.write_bytes(content)
                if mode:
                    os.chmod(target, mode)
                else:
                    mode = stat.S_IMODE(target.stat().st_mode) or DEFAULT_FILE_MODE
                tree.put(relative, content, mode=mode)
    except zipfile.BadZipFile as e:
        msg = f"Invalid zip archive: {e}"
        raise StorageError(msg) from e
    except OSError as e:
        msg = f"Failed to extract archive into {root}: {e}"
        raise StorageError(msg, details={"path": str(root)}) from e

    logger.debug("Extracted %d entries into %s", len(tree), root)
    return tree


def extract_tree(data: bytes, temp_dir: Path | None = None) -> ResourceTree:
    """Extract an archive into a private scratch directory and read it back.

    The scratch directory is removed afterwards, so a failed extraction
    leaves nothing behind.
    """
    scratch = Path(tempfile.mkdtemp(prefix="scaffoldkit-", dir=temp_dir))
    try:
        return unzip(data, scratch)
    finally:
        delete_directory(scratch)
