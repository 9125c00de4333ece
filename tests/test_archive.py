"""Tests for the zip codec."""

import io
import os
import stat
import tempfile
import zipfile
from pathlib import Path

import pytest

from scaffoldkit.archive import extract_tree, unzip, unzip_stream, zip_directory, zip_tree
from scaffoldkit.exceptions import PathTraversalError, StorageError
from scaffoldkit.resources import ResourceTree


def _crafted_zip(entries: list[tuple[str, bytes, int]]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for name, content, mode in entries:
            info = zipfile.ZipInfo(name)
            info.external_attr = mode << 16
            archive.writestr(info, content)
    return buffer.getvalue()


@pytest.fixture
def sample_tree() -> ResourceTree:
    tree = ResourceTree()
    tree.put("README.md", "# shop\n")
    tree.put("bin/start.sh", "#!/bin/sh\nexec app\n", mode=0o755)
    tree.put("src/main/App.java", "class App {}\n", mode=0o600)
    tree.put_directory("src/test")
    return tree


class TestZip:
    """Test archive creation."""

    def test_entries_are_rooted(self) -> None:
        tree = ResourceTree()
        tree.put("a.txt", "a")
        tree.put("dir/b.txt", "b")

        data = zip_tree("myapp", tree)

        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            names = archive.namelist()
        assert names == ["myapp/", "myapp/a.txt", "myapp/dir/", "myapp/dir/b.txt"]

    def test_depth_first_order(self) -> None:
        tree = ResourceTree()
        tree.put("a/x.txt", "x")
        tree.put("a-b.txt", "y")

        with zipfile.ZipFile(io.BytesIO(zip_tree("r", tree))) as archive:
            names = archive.namelist()
        assert names == ["r/", "r/a/", "r/a/x.txt", "r/a-b.txt"]

    def test_mode_in_external_attributes(self, sample_tree: ResourceTree) -> None:
        data = zip_tree("shop", sample_tree)

        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            start = archive.getinfo("shop/bin/start.sh")
            readme = archive.getinfo("shop/README.md")
            test_dir = archive.getinfo("shop/src/test/")

        assert stat.S_IMODE(start.external_attr >> 16) == 0o755
        assert stat.S_IMODE(readme.external_attr >> 16) == 0o644
        assert stat.S_ISDIR(test_dir.external_attr >> 16)

    def test_reproducible(self, sample_tree: ResourceTree) -> None:
        assert zip_tree("shop", sample_tree) == zip_tree("shop", sample_tree.copy())

    def test_zip_directory(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            root = Path(temp_dir)
            (root / "one.txt").write_text("1")
            (root / "sub").mkdir()
            (root / "sub" / "two.txt").write_text("2")

            data = zip_directory("myapp", root)

        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            names = set(archive.namelist())
        assert names == {"myapp/", "myapp/one.txt", "myapp/sub/", "myapp/sub/two.txt"}


class TestUnzip:
    """Test safe extraction."""

    def test_round_trip(self, sample_tree: ResourceTree) -> None:
        data = zip_tree("shop", sample_tree)

        with tempfile.TemporaryDirectory() as temp_dir:
            extracted = unzip(data, Path(temp_dir))
            on_disk = ResourceTree.from_directory(Path(temp_dir) / "shop")

        assert extracted.subtree("shop") == sample_tree
        assert on_disk == sample_tree

    def test_file_and_directory_entries(self) -> None:
        data = _crafted_zip([
            ("docs/", b"", stat.S_IFDIR | 0o755),
            ("config.yaml", b"key: value\n", 0o644),
        ])

        with tempfile.TemporaryDirectory() as temp_dir:
            unzip(data, Path(temp_dir))

            config = Path(temp_dir) / "config.yaml"
            assert stat.filemode(os.stat(config).st_mode) == "-rw-r--r--"
            assert (Path(temp_dir) / "docs").is_dir()

    def test_zip_slip_rejected(self) -> None:
        data = _crafted_zip([
            ("ok.txt", b"fine", 0o644),
            ("../../etc/passwd", b"root::0:0", 0o644),
            ("after.txt", b"never", 0o644),
        ])

        with tempfile.TemporaryDirectory() as temp_dir:
            output = Path(temp_dir) / "out"
            with pytest.raises(PathTraversalError, match="outside of the target dir"):
                unzip(data, output)

            assert (output / "ok.txt").exists()
            assert not (output / "after.txt").exists()
            assert not (Path(temp_dir) / "etc").exists()

    def test_absolute_entry_rejected(self) -> None:
        data = _crafted_zip([("/tmp/evil.txt", b"x", 0o644)])

        with tempfile.TemporaryDirectory() as temp_dir:
            with pytest.raises(PathTraversalError):
                unzip(data, Path(temp_dir))

    def test_zero_mode_keeps_default_permissions(self) -> None:
        data = _crafted_zip([("plain.txt", b"x", 0)])

        with tempfile.TemporaryDirectory() as temp_dir:
            tree = unzip(data, Path(temp_dir))

        assert tree.get("plain.txt").content == b"x"
        assert tree.get("plain.txt").mode != 0

    def test_unzip_stream(self) -> None:
        data = _crafted_zip([("a.txt", b"a", 0o640)])

        with tempfile.TemporaryDirectory() as temp_dir:
            tree = unzip_stream(io.BytesIO(data), Path(temp_dir))

        assert tree.get("a.txt").mode == 0o640

    def test_corrupt_archive(self) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            with pytest.raises(StorageError, match="Invalid zip archive"):
                unzip(b"not a zip", Path(temp_dir))


class TestExtractTree:
    """Test extraction through a private scratch directory."""

    def test_returns_tree_and_cleans_up(self, sample_tree: ResourceTree) -> None:
        with tempfile.TemporaryDirectory() as temp_dir:
            tree = extract_tree(zip_tree("shop", sample_tree), Path(temp_dir))
            leftovers = list(Path(temp_dir).iterdir())

        assert tree.subtree("shop") == sample_tree
        assert leftovers == []

    def test_cleans_up_on_failure(self) -> None:
        data = _crafted_zip([("../escape.txt", b"x", 0o644)])

        with tempfile.TemporaryDirectory() as temp_dir:
            with pytest.raises(PathTraversalError):
                extract_tree(data, Path(temp_dir))
            leftovers = list(Path(temp_dir).iterdir())

        assert leftovers == []
