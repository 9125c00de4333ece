"""Declarative generator catalog loaded from ``info.yaml`` descriptors.

Layout of a catalog::

    <catalog>/<generator-name>/info.yaml
    <catalog>/<generator-name>/files/...   copied into the project
    <catalog>/<generator-name>/merge/...   snippets for transform actions
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Literal

import jsonschema
import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .exceptions import CatalogError, DescriptorValidationError
from .models import (
    GeneratorDescriptor,
    GeneratorInvocationResult,
    Properties,
    TransformAction,
)
from .registry import Generator, GeneratorContext
from .resources import ResourceTree
from .transform import expand, render_placeholders

logger = logging.getLogger(__name__)

INFO_FILE = "info.yaml"
FILES_DIR = "files"
SCHEMA_PATH = Path(__file__).parent / "schemas" / "generator.schema.json"


class CatalogConfig(BaseModel):
    """The ``config`` block of an ``info.yaml``."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    base: str | None = Field(default=None, description="Generator applied first")
    transform_files: list[str] = Field(
        default_factory=list,
        alias="transformFiles",
        description="Globs of files whose placeholders are expanded",
    )
    more_actions: list[TransformAction] = Field(
        default_factory=list,
        alias="moreActions",
        description="Anchor transforms run after the files are in place",
    )
    env: dict[str, Any] = Field(
        default_factory=dict,
        alias="props.env",
        description="Environment bindings added to the properties",
    )
    source_mapping: dict[str, str] = Field(
        default_factory=dict,
        alias="extra.sourceMapping",
        description="Named source locations reported through extra",
    )


class GeneratorInfo(BaseModel):
    """Parsed ``info.yaml``."""

    type: Literal["generator"] = "generator"
    name: str = Field(..., description="Display name")
    description: str = Field(default="")
    category: str = Field(default="generator")
    requires: list[str] = Field(default_factory=list)
    config: CatalogConfig = Field(default_factory=CatalogConfig)


def _expand_values(value: Any, props: Properties) -> Any:
    if isinstance(value, str):
        return expand(value, props)
    if isinstance(value, dict):
        return {k: _expand_values(v, props) for k, v in value.items()}
    if isinstance(value, list):
        return [_expand_values(v, props) for v in value]
    return value


class CatalogGenerator(Generator):
    """Generator described entirely by catalog data."""

    def __init__(
        self,
        descriptor: GeneratorDescriptor,
        info: GeneratorInfo,
        sources: ResourceTree,
    ) -> None:
        super().__init__(descriptor, sources)
        self.info = info

    def generate(
        self,
        ctx: GeneratorContext,
        tree: ResourceTree,
        props: Properties,
        extra: Properties,
    ) -> GeneratorInvocationResult:
        config = self.info.config
        derived: Properties = {}

        if config.env:
            env = dict(props.get("env") or {})
            env.update(_expand_values(config.env, props))
            derived["env"] = env
        context = {**props, **derived}

        if config.base:
            tree = ctx.apply(config.base, tree, context, extra)

        files = self.sources.subtree(FILES_DIR)
        if len(files):
            tree = tree.merge(files)

        if config.transform_files:
            count = render_placeholders(tree, config.transform_files, context)
            logger.debug("Expanded placeholders in %d files", count)

        if config.source_mapping:
            mapping = extra.setdefault("sourceMapping", {})
            mapping.update(_expand_values(config.source_mapping, context))

        return GeneratorInvocationResult(tree, derived)


class CatalogLoader:
    """Loads and validates catalog generators."""

    def __init__(self, catalog_root: Path) -> None:
        """Initialize loader with root path.

        Args:
            catalog_root: Directory containing one folder per generator
        """
        self.root = Path(catalog_root)
        self._schema: dict[str, Any] | None = None

    def _load_schema(self) -> dict[str, Any]:
        """Load and cache the descriptor JSON schema."""
        if self._schema is None:
            try:
                with SCHEMA_PATH.open(encoding="utf-8") as f:
                    self._schema = json.load(f)
            except (json.JSONDecodeError, OSError) as e:
                msg = f"Failed to load generator schema: {e}"
                raise CatalogError(msg) from e
        return self._schema

    def discover(self) -> list[str]:
        """List generator folders that hold an ``info.yaml``."""
        if not self.root.is_dir():
            return []
        return sorted(p.parent.name for p in self.root.glob(f"*/{INFO_FILE}"))

    def load_info(self, name: str) -> GeneratorInfo:
        """Load one descriptor.

        Raises:
            CatalogError: If the file cannot be read or parsed
            DescriptorValidationError: If validation fails
        """
        info_path = self.root / name / INFO_FILE
        if not info_path.exists():
            msg = f"Generator descriptor not found: {info_path}"
            raise CatalogError(msg)

        try:
            with info_path.open(encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            msg = f"Failed to parse {info_path}: {e}"
            raise CatalogError(msg) from e
        except OSError as e:
            msg = f"Failed to read {info_path}: {e}"
            raise CatalogError(msg) from e

        try:
            jsonschema.validate(data, self._load_schema())
        except jsonschema.ValidationError as e:
            msg = f"Schema validation failed for '{name}': {e.message}"
            raise DescriptorValidationError(
                msg,
                details={"path": list(e.absolute_path), "generator": name},
            ) from e

        try:
            return GeneratorInfo.model_validate(data)
        except ValidationError as e:
            msg = f"Descriptor validation failed for '{name}': {e}"
            raise DescriptorValidationError(msg, details={"generator": name}) from e

    def load_generator(self, name: str) -> CatalogGenerator:
        info = self.load_info(name)
        try:
            descriptor = GeneratorDescriptor(
                name=name,
                category=info.category,
                description=info.description or info.name,
                required_properties=tuple(info.requires),
                actions=tuple(info.config.more_actions),
            )
        except ValidationError as e:
            msg = f"Invalid generator '{name}': {e}"
            raise DescriptorValidationError(msg, details={"generator": name}) from e

        sources = ResourceTree.from_directory(self.root / name)
        sources.delete(INFO_FILE)
        return CatalogGenerator(descriptor, info, sources)

    def load_all(self) -> list[CatalogGenerator]:
        generators = [self.load_generator(name) for name in self.discover()]
        logger.info("Loaded %d catalog generators from %s", len(generators), self.root)
        return generators
