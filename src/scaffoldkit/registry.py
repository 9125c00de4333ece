"""Generator base class, process-wide registry and invocation."""

from __future__ import annotations

import copy
import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ValidationError

from .exceptions import (
    DuplicateGeneratorError,
    InvalidPropertyShapeError,
    MissingPropertyError,
    RegistryError,
    UnknownGeneratorError,
)
from .models import GeneratorDescriptor, GeneratorInvocationResult, Properties
from .resources import ResourceTree
from .settings import EngineSettings
from .transform import TransformEngine

logger = logging.getLogger(__name__)


def derive_name(*parts: str | None) -> str:
    """Derive a resource name from its non-empty parts.

    >>> derive_name("shop", None)
    'shop'
    >>> derive_name("shop", "backend")
    'shop-backend'
    """
    return "-".join(part for part in parts if part)


class Generator(ABC):
    """A named unit of logic that turns a tree and properties into a new tree.

    Subclasses set ``descriptor`` (or receive one at construction) and may set
    ``properties_model`` to a pydantic model validating their input.
    """

    descriptor: GeneratorDescriptor
    properties_model: type[BaseModel] | None = None

    def __init__(
        self,
        descriptor: GeneratorDescriptor | None = None,
        sources: ResourceTree | None = None,
    ) -> None:
        """Initialize generator.

        Args:
            descriptor: Overrides the class-level descriptor
            sources: Files shipped with the generator (snippets, templates)
        """
        if descriptor is not None:
            self.descriptor = descriptor
        if getattr(self, "descriptor", None) is None:
            msg = f"{type(self).__name__} has no descriptor"
            raise RegistryError(msg)
        self.sources = sources or ResourceTree()

    @property
    def name(self) -> str:
        return self.descriptor.name

    def validate(self, props: Mapping[str, Any]) -> BaseModel | None:
        """Check required keys, then the properties model.

        Raises:
            MissingPropertyError: For the first absent required key
            InvalidPropertyShapeError: For a mistyped or unknown key
        """
        for key in self.descriptor.required_properties:
            if props.get(key) is None:
                raise MissingPropertyError(key, self.name)

        if self.properties_model is None:
            return None

        try:
            return self.properties_model.model_validate(dict(props))
        except ValidationError as e:
            error = e.errors()[0]
            key = ".".join(str(part) for part in error["loc"]) or "<root>"
            if error["type"] == "missing":
                raise MissingPropertyError(key, self.name) from e
            raise InvalidPropertyShapeError(key, error["msg"], self.name) from e

    @abstractmethod
    def generate(
        self,
        ctx: GeneratorContext,
        tree: ResourceTree,
        props: Properties,
        extra: Properties,
    ) -> GeneratorInvocationResult:
        """Run the generator's own logic on a private copy of the tree.

        Args:
            ctx: Invocation context, gives access to sub-generators
            tree: Working tree, owned by this invocation
            props: Raw input properties
            extra: Invocation-scoped side channel

        Returns:
            Resulting tree and the properties derived from ``props``
        """
        ...


class GeneratorContext:
    """Per-invocation handle passed to :meth:`Generator.generate`."""

    def __init__(
        self,
        registry: GeneratorRegistry,
        generator: Generator,
        config: BaseModel | None,
        depth: int = 0,
    ) -> None:
        self.registry = registry
        self.generator = generator
        self.config = config
        self.depth = depth

    @property
    def settings(self) -> EngineSettings:
        return self.registry.settings

    def apply(
        self,
        name: str,
        tree: ResourceTree,
        props: Properties,
        extra: Properties,
    ) -> ResourceTree:
        """Invoke a sub-generator; calls run in the order they are made."""
        return self.registry.invoke(name, tree, props, extra, depth=self.depth + 1)


class GeneratorRegistry:
    """Name-keyed generator registry, frozen once startup is done."""

    def __init__(self, settings: EngineSettings | None = None) -> None:
        self.settings = settings or EngineSettings()
        self._generators: dict[str, Generator] = {}
        self._frozen = False

    def __contains__(self, name: object) -> bool:
        return name in self._generators

    def __len__(self) -> int:
        return len(self._generators)

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def generators(self) -> Mapping[str, Generator]:
        return MappingProxyType(self._generators)

    def register(self, generator: Generator) -> None:
        """Add a generator.

        Raises:
            RegistryError: If the registry is frozen
            DuplicateGeneratorError: If the name is already taken
        """
        if self._frozen:
            msg = f"Registry is frozen, cannot register '{generator.name}'"
            raise RegistryError(msg, details={"name": generator.name})
        if generator.name in self._generators:
            msg = f"Generator '{generator.name}' is already registered"
            raise DuplicateGeneratorError(msg, details={"name": generator.name})
        self._generators[generator.name] = generator
        logger.debug("Registered generator %s", generator.name)

    def freeze(self) -> GeneratorRegistry:
        self._frozen = True
        return self

    def names(self) -> list[str]:
        return sorted(self._generators)

    def get(self, name: str) -> Generator:
        try:
            return self._generators[name]
        except KeyError:
            raise UnknownGeneratorError(name) from None

    def apply(
        self,
        name: str,
        tree: ResourceTree,
        properties: Properties,
        extra: Properties | None = None,
    ) -> ResourceTree:
        """Run generator ``name`` and return the resulting tree.

        ``tree`` and ``extra`` are left untouched when the invocation fails.

        Raises:
            UnknownGeneratorError: If ``name`` is not registered
            MissingPropertyError: If a required property is absent
            InvalidPropertyShapeError: If a property has the wrong shape
            ScaffoldKitError: Any error raised while generating
        """
        return self.invoke(name, tree, properties, extra if extra is not None else {})

    def invoke(
        self,
        name: str,
        tree: ResourceTree,
        properties: Properties,
        extra: Properties,
        depth: int = 0,
    ) -> ResourceTree:
        generator = self.get(name)
        props = dict(properties or {})
        config = generator.validate(props)

        indent = "  " * depth
        logger.info("%sApplying generator %s", indent, name)

        working_extra = copy.deepcopy(extra)
        ctx = GeneratorContext(self, generator, config, depth)
        try:
            result = generator.generate(ctx, tree.copy(), props, working_extra)
            context = {**props, **result.derived_properties}
            TransformEngine(generator.sources).apply(
                result.tree,
                generator.descriptor.actions,
                context,
            )
        except Exception:
            logger.debug("%sGenerator %s failed, discarding its changes", indent, name)
            raise

        extra.clear()
        extra.update(working_extra)
        return result.tree


def build_registry(
    catalog_dir: Path | None = None,
    settings: EngineSettings | None = None,
) -> GeneratorRegistry:
    """Register the built-in generators and an optional catalog, then freeze."""
    from .catalog import CatalogLoader
    from .generators import builtin_generators

    registry = GeneratorRegistry(settings)
    for generator in builtin_generators():
        registry.register(generator)

    if catalog_dir is not None:
        for generator in CatalogLoader(catalog_dir).load_all():
            registry.register(generator)

    return registry.freeze()


@lru_cache(maxsize=1)
def default_registry() -> GeneratorRegistry:
    """Process-wide registry configured from the environment."""
    settings = EngineSettings.from_env()
    return build_registry(settings.catalog_dir, settings)
