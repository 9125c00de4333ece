"""Tests for the built-in import generators."""

from typing import Any

import pytest
import yaml

from scaffoldkit.archive import zip_tree
from scaffoldkit.exceptions import (
    InvalidPropertyShapeError,
    MergeConflictError,
    MissingPropertyError,
)
from scaffoldkit.registry import GeneratorRegistry, build_registry
from scaffoldkit.resources import ResourceTree


@pytest.fixture
def registry() -> GeneratorRegistry:
    return build_registry()


@pytest.fixture
def codebase() -> bytes:
    tree = ResourceTree()
    tree.put("pom.xml", "<project/>")
    tree.put("src/main/java/App.java", "class App {}")
    tree.put("mvnw", "#!/bin/sh\n", mode=0o755)
    tree.put(".git/HEAD", "ref: refs/heads/main\n")
    return zip_tree("upload", tree)


def _manifest(tree: ResourceTree, service: str) -> dict[str, Any]:
    return yaml.safe_load(tree.get(f".scaffold/{service}.yaml").text())


class TestCapabilityImport:
    """Test the capability-import composite."""

    def test_imports_uploaded_codebase(self, registry: GeneratorRegistry, codebase: bytes) -> None:
        tree = registry.apply(
            "capability-import",
            ResourceTree(),
            {"application": "shop"},
            {"codebase": codebase},
        )

        assert tree.get("pom.xml").text() == "<project/>"
        assert tree.get("mvnw").mode == 0o755
        assert "src/main/java/App.java" in tree
        assert ".git" not in tree
        assert _manifest(tree, "shop") == {
            "application": "shop",
            "service": "shop",
            "route": "shop",
        }

    def test_sub_folder(self, registry: GeneratorRegistry, codebase: bytes) -> None:
        tree = registry.apply(
            "capability-import",
            ResourceTree(),
            {"application": "shop", "subFolderName": "backend", "keepGitFolder": True},
            {"codebase": codebase},
        )

        assert "backend/pom.xml" in tree
        assert "backend/.git/HEAD" in tree
        manifest = _manifest(tree, "shop-backend")
        assert manifest["service"] == "shop-backend"
        assert manifest["subFolder"] == "backend"

    def test_forwards_optional_inputs(self, registry: GeneratorRegistry) -> None:
        props = {
            "application": "shop",
            "maven": {"groupId": "org.shop", "artifactId": "api"},
            "gitImportUrl": "https://example.com/shop.git",
            "gitImportBranch": "main",
            "builderImage": "registry/java:17",
            "env": {
                "DB_HOST": {"secret": "shop-db", "key": "uri"},
                "MODE": "prod",
            },
        }

        tree = registry.apply("capability-import", ResourceTree(), props)

        manifest = _manifest(tree, "shop")
        assert manifest["builder"] == {"image": "registry/java:17"}
        assert manifest["source"] == {
            "gitUrl": "https://example.com/shop.git",
            "gitBranch": "main",
        }
        assert manifest["coordinates"]["maven"]["version"] == "1.0.0-SNAPSHOT"
        assert manifest["env"] == {
            "DB_HOST": {"secret": "shop-db", "key": "uri"},
            "MODE": "prod",
        }

    def test_overlay_only_skips_codebase(self, registry: GeneratorRegistry, codebase: bytes) -> None:
        tree = registry.apply(
            "capability-import",
            ResourceTree(),
            {"application": "shop", "overlayOnly": True},
            {"codebase": codebase},
        )

        assert "pom.xml" not in tree
        assert ".scaffold/shop.yaml" in tree

    def test_requires_application(self, registry: GeneratorRegistry) -> None:
        with pytest.raises(MissingPropertyError, match="application"):
            registry.apply("capability-import", ResourceTree(), {"subFolderName": "x"})

    def test_rejects_mistyped_flag(self, registry: GeneratorRegistry) -> None:
        with pytest.raises(InvalidPropertyShapeError) as exc_info:
            registry.apply(
                "capability-import",
                ResourceTree(),
                {"application": "shop", "overlayOnly": "yes"},
            )
        assert exc_info.value.key == "overlayOnly"

    def test_rejects_bad_coordinates(self, registry: GeneratorRegistry) -> None:
        with pytest.raises(InvalidPropertyShapeError) as exc_info:
            registry.apply(
                "capability-import",
                ResourceTree(),
                {"application": "shop", "maven": {"groupId": "org.shop"}},
            )
        assert exc_info.value.key.startswith("maven")


class TestImportCodebase:
    """Test import-codebase directly."""

    def test_requires_service_name(self, registry: GeneratorRegistry) -> None:
        with pytest.raises(MissingPropertyError) as exc_info:
            registry.apply("import-codebase", ResourceTree(), {"application": "shop"})
        assert exc_info.value.key == "serviceName"

    def test_rejects_non_archive(self, registry: GeneratorRegistry) -> None:
        with pytest.raises(InvalidPropertyShapeError, match="codebase"):
            registry.apply(
                "import-codebase",
                ResourceTree(),
                {"application": "shop", "serviceName": "shop"},
                {"codebase": "not bytes"},
            )

    def test_conflicting_file_aborts(self, registry: GeneratorRegistry, codebase: bytes) -> None:
        tree = ResourceTree()
        tree.put("pom.xml", "<project>existing</project>")

        with pytest.raises(MergeConflictError, match="pom.xml"):
            registry.apply(
                "import-codebase",
                tree,
                {"application": "shop", "serviceName": "shop"},
                {"codebase": codebase},
            )
        assert tree.get("pom.xml").text() == "<project>existing</project>"
