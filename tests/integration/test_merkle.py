"""Integration tests for Merkle tree hashing of module content.

These tests verify that the Merkle tree correctly:
1. Computes hashes for files and directories
2. Propagates hash changes up the tree when files are modified
3. Leaves out the module info file and ignored paths
4. Leaves sibling subtrees unchanged when only one branch is modified
"""

from pathlib import Path

import pytest

from modsync import INFO_FILE
from modsync.merkle import (
    EMPTY_HASH,
    MerkleNode,
    MerkleTree,
    compute_directory_hash,
    compute_file_hash,
    is_ignored,
    should_exclude,
)


class TestMerkleTreeStructure:
    """Tests for building and traversing Merkle trees."""

    @pytest.fixture
    def module_root(self, tmp_path: Path) -> Path:
        """
        Create a module directory.

        Structure:
            mod/
            ├── .modinfo
            ├── main.c
            ├── src/
            │   ├── util.c
            │   └── deep/
            │       └── deep.c
            ├── sibling/
            │   └── sib.c
            └── build/
                └── out.o
        """
        root = tmp_path / "mod"
        (root / "src" / "deep").mkdir(parents=True)
        (root / "sibling").mkdir()
        (root / "build").mkdir()

        (root / INFO_FILE).write_text("remote_url: ssh://gerrit/mod\n")
        (root / "main.c").write_text("int main(void) { return 0; }\n")
        (root / "src" / "util.c").write_text("void util(void) {}\n")
        (root / "src" / "deep" / "deep.c").write_text("void deep(void) {}\n")
        (root / "sibling" / "sib.c").write_text("void sib(void) {}\n")
        (root / "build" / "out.o").write_text("binary\n")

        return root

    def test_build_tree_structure(self, module_root: Path):
        """Tree structure matches directory structure."""
        tree = MerkleTree.build(module_root)

        assert tree.root is not None
        assert tree.root.type == "directory"
        assert tree.root.path == "."

        children = tree.root.children
        assert set(children) == {"main.c", "src", "sibling", "build"}
        assert children["src"].children["deep"].children["deep.c"].path == "src/deep/deep.c"

    def test_info_file_not_hashed(self, module_root: Path):
        """The module's own info file is not part of its content."""
        before = MerkleTree.build(module_root).hash

        (module_root / INFO_FILE).write_text("remote_url: ssh://gerrit/other\n")

        assert INFO_FILE not in MerkleTree.build(module_root).root.children
        assert MerkleTree.build(module_root).hash == before

    def test_nested_info_file_is_hashed(self, module_root: Path):
        """Only the info file at the module root is left out."""
        (module_root / "src" / INFO_FILE).write_text("nested\n")

        tree = MerkleTree.build(module_root)

        assert tree.root.children["src"].children[INFO_FILE].path == f"src/{INFO_FILE}"

    def test_ignores_exclude_files(self, module_root: Path):
        tree = MerkleTree.build(module_root, ignores=["build/*"])

        assert "build" not in tree.root.children  # Empty after ignoring
        assert set(tree.root.children) == {"main.c", "src", "sibling"}

    def test_ignored_file_changes_keep_hash(self, module_root: Path):
        before = MerkleTree.build(module_root, ignores=["**/*.o"]).hash

        (module_root / "build" / "out.o").write_text("rebuilt\n")
        (module_root / "src" / "new.o").write_text("new\n")

        assert MerkleTree.build(module_root, ignores=["**/*.o"]).hash == before

    def test_hashes_are_deterministic(self, module_root: Path):
        tree1 = MerkleTree.build(module_root)
        tree2 = MerkleTree.build(module_root)

        assert tree1.hash == tree2.hash

    def test_empty_module(self, tmp_path: Path):
        """A module holding nothing but its info file hashes as empty."""
        root = tmp_path / "empty"
        (root / "sub").mkdir(parents=True)
        (root / INFO_FILE).write_text("remote_url: x\n")

        tree = MerkleTree.build(root)

        assert tree.root is None
        assert tree.hash == EMPTY_HASH

    def test_symlinks_skipped(self, module_root: Path):
        before = MerkleTree.build(module_root).hash

        (module_root / "link.c").symlink_to(module_root / "main.c")

        assert MerkleTree.build(module_root).hash == before


class TestHashPropagation:
    """Tests for hash changes propagating up the tree."""

    @pytest.fixture
    def module_root(self, tmp_path: Path) -> Path:
        root = tmp_path / "mod"
        (root / "a" / "b").mkdir(parents=True)
        (root / "sibling").mkdir()
        (root / "a" / "b" / "leaf.c").write_text("leaf\n")
        (root / "sibling" / "sib.c").write_text("sib\n")
        return root

    def test_modified_file_changes_ancestors(self, module_root: Path):
        before = MerkleTree.build(module_root)

        (module_root / "a" / "b" / "leaf.c").write_text("changed\n")
        after = MerkleTree.build(module_root)

        assert after.hash != before.hash
        assert after.root.children["a"].hash != before.root.children["a"].hash
        assert after.root.children["sibling"].hash == before.root.children["sibling"].hash

    def test_added_file_changes_hash(self, module_root: Path):
        before = MerkleTree.build(module_root).hash

        (module_root / "sibling" / "new.c").write_text("new\n")

        assert MerkleTree.build(module_root).hash != before

    def test_deleted_file_changes_hash(self, module_root: Path):
        before = MerkleTree.build(module_root).hash

        (module_root / "sibling" / "sib.c").unlink()

        assert MerkleTree.build(module_root).hash != before

    def test_renamed_file_changes_hash(self, module_root: Path):
        """Names are part of the directory hash, not only content."""
        before = MerkleTree.build(module_root).hash

        (module_root / "sibling" / "sib.c").rename(module_root / "sibling" / "moved.c")

        assert MerkleTree.build(module_root).hash != before


class TestHashFunctions:
    """Tests for the hashing helpers."""

    def test_compute_file_hash(self, tmp_path: Path):
        a = tmp_path / "a.txt"
        b = tmp_path / "b.txt"
        a.write_text("same\n")
        b.write_text("same\n")

        assert compute_file_hash(a) == compute_file_hash(b)
        assert len(compute_file_hash(a)) == 64

    def test_directory_hash_is_order_independent(self):
        x = MerkleNode(hash="1" * 64, type="file", path="x")
        y = MerkleNode(hash="2" * 64, type="file", path="y")

        assert compute_directory_hash({"x": x, "y": y}) == compute_directory_hash({"y": y, "x": x})


class TestPatterns:
    """Tests for ignore and exclusion patterns."""

    @pytest.mark.parametrize(
        "path,ignores,expected",
        [
            ("out.o", ["*.o"], True),
            ("build/out.o", ["build/*"], True),
            ("out.o", ["**/*.o"], True),
            ("src/deep/out.o", ["**/*.o"], True),
            ("main.c", ["*.o", "build/*"], False),
            ("main.c", [], False),
        ],
    )
    def test_is_ignored(self, path: str, ignores: list[str], expected: bool):
        assert is_ignored(path, ignores) is expected

    def test_should_exclude(self):
        assert should_exclude(Path("ws/.git"), [".git", ".modsync"])
        assert should_exclude(Path("ws/.modsync"), [".git", ".modsync"])
        assert not should_exclude(Path("ws/mod"), [".git", ".modsync"])
