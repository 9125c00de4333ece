"""Core data models for the ScaffoldKit generator engine."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

if TYPE_CHECKING:
    from .resources import ResourceTree

# Nested string-keyed mapping with scalar, mapping or list-of-mapping values
Properties = dict[str, Any]

DEFAULT_FILE_MODE = 0o644
DEFAULT_DIRECTORY_MODE = 0o755


class ResourceKind(str, Enum):
    """Kind of entry in a resource tree."""

    FILE = "file"
    DIRECTORY = "directory"


@dataclass(frozen=True)
class Resource:
    """A single file or directory in a resource tree."""

    path: str
    kind: ResourceKind
    content: bytes | None = None
    mode: int = DEFAULT_FILE_MODE

    @property
    def is_file(self) -> bool:
        return self.kind == ResourceKind.FILE

    @property
    def is_directory(self) -> bool:
        return self.kind == ResourceKind.DIRECTORY

    def text(self, encoding: str = "utf-8") -> str:
        """Decode file content as text."""
        return (self.content or b"").decode(encoding)


class TransformKind(str, Enum):
    """Splice operation performed at an anchor."""

    INSERT_BEFORE = "insertBefore"
    INSERT_AFTER = "insertAfter"
    REPLACE = "replace"


class SnippetSource(BaseModel):
    """Where the text spliced by a transform comes from."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    from_file: str | None = Field(
        default=None,
        alias="fromFile",
        description="Path of a resource holding the snippet",
    )
    text: str | None = Field(default=None, description="Inline snippet text")

    @model_validator(mode="after")
    def check_single_source(self) -> SnippetSource:
        """Require exactly one snippet source."""
        if (self.from_file is None) == (self.text is None):
            msg = "Snippet must define exactly one of fromFile or text"
            raise ValueError(msg)
        return self


class TransformAction(BaseModel):
    """Anchor-based edit applied to the files matching ``files``.

    Accepts the catalog form as well::

        action: transform
        files: [Startup.cs]
        insertAfter:
          pattern: // Add any DbContext here
          fromFile: merge/dbcontext
    """

    model_config = ConfigDict(populate_by_name=True)

    kind: TransformKind = Field(..., description="Splice operation")
    files: list[str] = Field(..., min_length=1, description="Target file globs")
    pattern: str = Field(..., min_length=1, description="Literal anchor text")
    snippet: SnippetSource = Field(..., description="Snippet to splice")

    @model_validator(mode="before")
    @classmethod
    def from_catalog_form(cls, data: Any) -> Any:
        """Convert ``{insertAfter: {pattern, fromFile}}`` style entries."""
        if not isinstance(data, dict) or "kind" in data:
            return data

        kinds = [kind for kind in TransformKind if kind.value in data]
        if len(kinds) != 1:
            msg = "Transform must define exactly one of insertBefore, insertAfter or replace"
            raise ValueError(msg)

        body = dict(data[kinds[0].value] or {})
        return {
            "kind": kinds[0],
            "files": data.get("files"),
            "pattern": body.pop("pattern", None),
            "snippet": body,
        }

    @field_validator("files", mode="before")
    @classmethod
    def coerce_single_glob(cls, v: Any) -> Any:
        if isinstance(v, str):
            return [v]
        return v


class GeneratorDescriptor(BaseModel):
    """Static description of a registered generator."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., description="Unique generator name")
    category: str = Field(default="generator", description="Declared capability")
    description: str = Field(default="", description="Human-readable summary")
    required_properties: tuple[str, ...] = Field(
        default=(),
        description="Property keys that must be present",
    )
    actions: tuple[TransformAction, ...] = Field(
        default=(),
        description="Transforms run after the generator logic",
    )

    @field_validator("name")
    @classmethod
    def validate_name_format(cls, v: str) -> str:
        """Validate generator name is lowercase kebab-case."""
        if not re.match(r"^[a-z][a-z0-9]*(?:-[a-z0-9]+)*$", v):
            msg = "Generator name must be kebab-case (e.g., import-codebase)"
            raise ValueError(msg)
        return v


@dataclass
class GeneratorInvocationResult:
    """Outcome of a generator's own logic."""

    tree: ResourceTree
    derived_properties: Properties = field(default_factory=dict)


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        extra="forbid",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    def to_properties(self) -> Properties:
        """Dump back to the camelCase property shape."""
        return self.model_dump(by_alias=True, exclude_none=True)


class MavenCoords(_CamelModel):
    """Maven project coordinates."""

    group_id: str
    artifact_id: str
    version: str = "1.0.0-SNAPSHOT"


class NodejsCoords(_CamelModel):
    """Node.js package coordinates."""

    name: str
    version: str = "1.0.0"


class DotnetCoords(_CamelModel):
    """.NET project coordinates."""

    namespace: str
    assembly: str | None = None
    version: str = "1.0.0"


class SecretRef(_CamelModel):
    """Environment value read from a secret."""

    secret: str
    key: str


class ConfigMapRef(_CamelModel):
    """Environment value read from a config map."""

    config_map: str
    key: str


EnvBinding = Union[str, SecretRef, ConfigMapRef]
