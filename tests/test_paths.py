"""Tests for path helpers."""

import os
import tempfile
from pathlib import Path

import pytest

from scaffoldkit.exceptions import PathTraversalError
from scaffoldkit.paths import (
    delete_directory,
    glob_match,
    join,
    normalize,
    resolve_within,
)


class TestJoin:
    """Test URL-style path joining."""

    def test_no_parts(self) -> None:
        assert join() == ""

    def test_collapses_double_separator(self) -> None:
        assert join("/a/", "/b") == "/a/b"

    def test_empty_part_still_separates(self) -> None:
        assert join("a", "", "b") == "a/b"

    def test_none_parts_ignored(self) -> None:
        assert join(None, "x") == "x"
        assert join("x", None) == "x"

    def test_url(self) -> None:
        assert join("https://host/", "/path") == "https://host/path"

    def test_inserts_missing_separator(self) -> None:
        assert join("https://host", "api", "v1") == "https://host/api/v1"

    def test_keeps_single_separator(self) -> None:
        assert join("a/", "b") == "a/b"
        assert join("a", "/b") == "a/b"


class TestNormalize:
    """Test relative path normalization."""

    def test_collapses_dots(self) -> None:
        assert normalize("src/./main/../app.py") == "src/app.py"

    def test_backslashes(self) -> None:
        assert normalize("src\\app.py") == "src/app.py"

    def test_root(self) -> None:
        assert normalize("") == ""
        assert normalize("a/..") == ""

    @pytest.mark.parametrize("path", ["../x", "a/../../x", "/etc/passwd", "C:/x"])
    def test_rejects_escaping_paths(self, path: str) -> None:
        with pytest.raises(PathTraversalError):
            normalize(path)


class TestResolveWithin:
    """Test containment of resolved paths."""

    def test_inside(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            target = resolve_within(Path(temp_dir), "a/b/../c.txt")
            assert target == Path(temp_dir).resolve() / "a" / "c.txt"

    def test_outside(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            with pytest.raises(PathTraversalError, match="outside of the target dir"):
                resolve_within(Path(temp_dir), "../../etc/passwd")

    def test_sibling_with_common_prefix(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            root = Path(temp_dir) / "out"
            with pytest.raises(PathTraversalError):
                resolve_within(root, "../out-evil/x")


class TestGlobMatch:
    """Test glob matching on normalized paths."""

    def test_double_star_matches_root_level(self) -> None:
        assert glob_match("Startup.cs", "**/*.cs")
        assert glob_match("Controllers/FruitsController.cs", "**/*.cs")

    def test_single_star_stays_in_segment(self) -> None:
        assert glob_match("Startup.cs", "*.cs")
        assert not glob_match("Controllers/FruitsController.cs", "*.cs")

    def test_literal(self) -> None:
        assert glob_match("shop.csproj", "shop.csproj")
        assert not glob_match("shopXcsproj", "shop.csproj")


class TestDeleteDirectory:
    """Test best-effort recursive deletion."""

    def test_deletes_nested_tree(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            root = Path(temp_dir) / "tree"
            (root / "a" / "b").mkdir(parents=True)
            (root / "a" / "b" / "file.txt").write_text("x")
            (root / "top.txt").write_text("y")

            delete_directory(root)

            assert not root.exists()

    def test_missing_directory_is_noop(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            delete_directory(Path(temp_dir) / "missing")

    def test_tolerates_file_removed_concurrently(
        self,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        real_unlink = os.unlink

        def racing_unlink(path: str, *args: object, **kwargs: object) -> None:
            real_unlink(path, *args, **kwargs)
            raise FileNotFoundError(path)

        with tempfile.TemporaryDirectory() as temp_dir:
            root = Path(temp_dir) / "tree"
            (root / "sub").mkdir(parents=True)
            (root / "sub" / "gone.txt").write_text("x")
            monkeypatch.setattr(os, "unlink", racing_unlink)

            delete_directory(root)
            monkeypatch.undo()

            assert not root.exists()
