"""Import an uploaded codebase and describe the service built from it."""

from __future__ import annotations

import logging
from typing import cast

import yaml
from pydantic import BaseModel, ConfigDict, StrictBool
from pydantic.alias_generators import to_camel

from ..archive import extract_tree
from ..exceptions import InvalidPropertyShapeError
from ..models import (
    DotnetCoords,
    EnvBinding,
    GeneratorDescriptor,
    GeneratorInvocationResult,
    MavenCoords,
    NodejsCoords,
    Properties,
)
from ..registry import Generator, GeneratorContext
from ..resources import ResourceTree

logger = logging.getLogger(__name__)

MANIFEST_DIR = ".scaffold"
CODEBASE_KEY = "codebase"


class CodebaseProperties(BaseModel):
    """Properties describing an application imported from existing code."""

    model_config = ConfigDict(
        extra="forbid",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    application: str
    sub_folder_name: str | None = None
    maven: MavenCoords | None = None
    nodejs: NodejsCoords | None = None
    dotnet: DotnetCoords | None = None
    git_import_url: str | None = None
    git_import_branch: str | None = None
    builder_image: str | None = None
    builder_language: str | None = None
    env: dict[str, EnvBinding] | None = None
    overlay_only: StrictBool | None = None
    keep_git_folder: StrictBool | None = None


class ImportCodebaseProperties(CodebaseProperties):
    service_name: str
    route_name: str | None = None


def strip_single_root(tree: ResourceTree) -> ResourceTree:
    """Drop the top-level folder when an archive wraps everything in one."""
    top = [r for r in tree if "/" not in r.path]
    if len(top) == 1 and top[0].is_directory:
        return tree.subtree(top[0].path)
    return tree


class ImportCodebaseGenerator(Generator):
    """Merges ``extra["codebase"]`` (zip bytes) into the tree.

    The codebase is mounted below ``subFolderName`` when given. A service
    manifest is always written to ``.scaffold/<serviceName>.yaml``; with
    ``overlayOnly`` nothing else is touched.
    """

    descriptor = GeneratorDescriptor(
        name="import-codebase",
        category="import",
        description="Import an existing codebase as a deployable service",
        required_properties=("application", "serviceName"),
    )
    properties_model = ImportCodebaseProperties

    def generate(
        self,
        ctx: GeneratorContext,
        tree: ResourceTree,
        props: Properties,
        extra: Properties,
    ) -> GeneratorInvocationResult:
        config = cast(ImportCodebaseProperties, ctx.config)

        if not config.overlay_only:
            tree = self._import_archive(ctx, tree, config, extra)

        tree.put(
            f"{MANIFEST_DIR}/{config.service_name}.yaml",
            yaml.safe_dump(build_manifest(config), sort_keys=False),
        )
        return GeneratorInvocationResult(tree)

    def _import_archive(
        self,
        ctx: GeneratorContext,
        tree: ResourceTree,
        config: ImportCodebaseProperties,
        extra: Properties,
    ) -> ResourceTree:
        archive = extra.get(CODEBASE_KEY)
        if archive is None:
            if config.git_import_url:
                logger.info("No archive uploaded, %s will be built from %s",
                            config.service_name, config.git_import_url)
            return tree
        if not isinstance(archive, (bytes, bytearray)):
            raise InvalidPropertyShapeError(CODEBASE_KEY, "expected zip archive bytes", self.name)

        codebase = strip_single_root(extract_tree(bytes(archive), ctx.settings.temp_dir))
        if not config.keep_git_folder:
            codebase.delete(".git")
        logger.info("Importing %d entries for %s", len(codebase), config.service_name)
        return tree.merge(codebase.prefixed(config.sub_folder_name), detect_conflicts=True)


def build_manifest(config: ImportCodebaseProperties) -> Properties:
    """Describe the service in a stable, YAML-friendly shape."""
    manifest: Properties = {
        "application": config.application,
        "service": config.service_name,
        "route": config.route_name or config.service_name,
    }
    if config.sub_folder_name:
        manifest["subFolder"] = config.sub_folder_name

    builder = {
        "image": config.builder_image,
        "language": config.builder_language,
    }
    source = {
        "gitUrl": config.git_import_url,
        "gitBranch": config.git_import_branch,
    }
    for key, section in (("builder", builder), ("source", source)):
        section = {k: v for k, v in section.items() if v is not None}
        if section:
            manifest[key] = section

    coordinates = {
        key: coords.to_properties()
        for key, coords in (("maven", config.maven), ("nodejs", config.nodejs), ("dotnet", config.dotnet))
        if coords is not None
    }
    if coordinates:
        manifest["coordinates"] = coordinates

    if config.env:
        manifest["env"] = {
            name: value if isinstance(value, str) else value.to_properties()
            for name, value in sorted(config.env.items())
        }
    return manifest
