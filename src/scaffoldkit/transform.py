"""Anchor-based text transforms and ``${...}`` placeholder expansion."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from typing import Any

from .exceptions import (
    AnchorNotFoundError,
    InvalidPropertyShapeError,
    MissingPropertyError,
    ResourceNotFoundError,
    UnsupportedResourceKindError,
)
from .models import Resource, TransformAction, TransformKind
from .resources import ResourceTree

logger = logging.getLogger(__name__)

PLACEHOLDER_PATTERN = re.compile(r"\$\{([A-Za-z_][\w-]*(?:\.[A-Za-z_][\w-]*)*)\}")

_MISSING = object()


def lookup(props: Mapping[str, Any], key: str) -> Any:
    """Resolve a dotted key such as ``dotnet.namespace``."""
    value: Any = props
    for part in key.split("."):
        if not isinstance(value, Mapping) or part not in value:
            return _MISSING
        value = value[part]
    return value


def _format(key: str, value: Any) -> str:
    if value is _MISSING or value is None:
        raise MissingPropertyError(key)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (Mapping, list, tuple)):
        raise InvalidPropertyShapeError(key, "expected a scalar value")
    return str(value)


def expand(template: str, props: Mapping[str, Any]) -> str:
    """Replace every ``${key}`` in ``template``.

    Raises:
        MissingPropertyError: If a placeholder has no value
    """
    return PLACEHOLDER_PATTERN.sub(
        lambda m: _format(m.group(1), lookup(props, m.group(1))),
        template,
    )


def expand_known(text: str, props: Mapping[str, Any]) -> str:
    """Like :func:`expand`, but leave unresolvable placeholders untouched."""

    def replace(match: re.Match[str]) -> str:
        value = lookup(props, match.group(1))
        if value is _MISSING or value is None or isinstance(value, (Mapping, list, tuple)):
            return match.group(0)
        return _format(match.group(1), value)

    return PLACEHOLDER_PATTERN.sub(replace, text)


def _decode(resource: Resource) -> str:
    if not resource.is_file:
        msg = f"Cannot transform directory '{resource.path}'"
        raise UnsupportedResourceKindError(msg, details={"path": resource.path})
    try:
        return resource.text()
    except UnicodeDecodeError as e:
        msg = f"Cannot transform binary file '{resource.path}'"
        raise UnsupportedResourceKindError(msg, details={"path": resource.path}) from e


def splice(text: str, kind: TransformKind, pattern: str, snippet: str, file_path: str) -> str:
    """Apply one edit at the first occurrence of ``pattern``.

    Raises:
        AnchorNotFoundError: If ``pattern`` does not occur in ``text``
    """
    start = text.find(pattern)
    if start < 0:
        raise AnchorNotFoundError(file_path, pattern)
    end = start + len(pattern)

    if kind == TransformKind.INSERT_BEFORE:
        return text[:start] + snippet + text[start:]
    if kind == TransformKind.INSERT_AFTER:
        return text[:end] + snippet + text[end:]
    return text[:start] + snippet + text[end:]


def render_placeholders(
    tree: ResourceTree,
    globs: Iterable[str],
    props: Mapping[str, Any],
) -> int:
    """Expand known placeholders inside text files matching ``globs``.

    Binary files are skipped.

    Returns:
        Number of files rewritten
    """
    rewritten = 0
    seen: set[str] = set()
    for pattern in globs:
        for resource in tree.glob(expand(pattern, props)):
            if not resource.is_file or resource.path in seen:
                continue
            seen.add(resource.path)
            try:
                text = resource.text()
            except UnicodeDecodeError:
                logger.debug("Skipping binary file %s", resource.path)
                continue
            rendered = expand_known(text, props)
            if rendered != text:
                tree.put(resource.path, rendered, mode=resource.mode)
                rewritten += 1
    return rewritten


class TransformEngine:
    """Applies :class:`TransformAction` lists to a resource tree."""

    def __init__(self, sources: ResourceTree | None = None) -> None:
        """Initialize engine.

        Args:
            sources: Tree searched first for ``fromFile`` snippets, usually
                the files shipped with a generator
        """
        self.sources = sources or ResourceTree()

    def _load_snippet(self, action: TransformAction, tree: ResourceTree, props: Mapping[str, Any]) -> str:
        if action.snippet.text is not None:
            return action.snippet.text

        path = expand(action.snippet.from_file or "", props)
        resource = self.sources.find(path) or tree.find(path)
        if resource is None:
            msg = f"Snippet file not found: {path}"
            raise ResourceNotFoundError(msg, details={"path": path})
        return _decode(resource)

    def apply_action(
        self,
        tree: ResourceTree,
        action: TransformAction,
        props: Mapping[str, Any],
    ) -> list[str]:
        """Apply a single action in place.

        Returns:
            Paths of the files that were edited
        """
        pattern = expand(action.pattern, props)
        targets: dict[str, Resource] = {}
        for glob in action.files:
            for resource in tree.glob(expand(glob, props)):
                if resource.is_file:
                    targets.setdefault(resource.path, resource)

        if not targets:
            logger.debug("No files match %s, skipping %s", action.files, action.kind.value)
            return []

        snippet = self._load_snippet(action, tree, props)
        for path, resource in targets.items():
            text = splice(_decode(resource), action.kind, pattern, snippet, path)
            tree.put(path, text, mode=resource.mode)
            logger.debug("Applied %s at %r in %s", action.kind.value, pattern, path)
        return list(targets)

    def apply(
        self,
        tree: ResourceTree,
        actions: Iterable[TransformAction],
        props: Mapping[str, Any],
    ) -> ResourceTree:
        """Apply ``actions`` in order, each seeing the previous one's output."""
        for action in actions:
            self.apply_action(tree, action, props)
        return tree
