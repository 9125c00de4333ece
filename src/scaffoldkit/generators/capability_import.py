"""Capability that imports an existing codebase."""

from __future__ import annotations

from typing import cast

from ..models import GeneratorDescriptor, GeneratorInvocationResult, Properties
from ..registry import Generator, GeneratorContext, derive_name
from ..resources import ResourceTree
from .import_codebase import CodebaseProperties


class CapabilityImportGenerator(Generator):
    """Derives the service and route names, then runs ``import-codebase``.

    Optional inputs (coordinates, builder, git source, env bindings, flags)
    are forwarded only when they were given.
    """

    descriptor = GeneratorDescriptor(
        name="capability-import",
        category="capability",
        description="Import an existing codebase",
        required_properties=("application",),
    )
    properties_model = CodebaseProperties

    def generate(
        self,
        ctx: GeneratorContext,
        tree: ResourceTree,
        props: Properties,
        extra: Properties,
    ) -> GeneratorInvocationResult:
        config = cast(CodebaseProperties, ctx.config)

        app_name = derive_name(config.application, config.sub_folder_name)
        derived = {
            "serviceName": app_name,
            "routeName": app_name,
        }
        forwarded = config.model_dump(by_alias=True, exclude_none=True)
        tree = ctx.apply("import-codebase", tree, {**forwarded, **derived}, extra)
        return GeneratorInvocationResult(tree, derived)
