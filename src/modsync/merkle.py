"""Merkle tree hashing of module content for dirty detection."""

from __future__ import annotations

import fnmatch
import hashlib
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from . import INFO_FILE

EMPTY_HASH = hashlib.sha256(b"").hexdigest()


@dataclass
class MerkleNode:
    """A node in the Merkle tree representing a file or directory."""

    hash: str
    type: Literal["file", "directory"]
    path: str  # Relative posix path from module root
    children: dict[str, MerkleNode] = field(default_factory=dict)


class MerkleTree:
    """Content-addressed tree mirroring a module's directory structure."""

    def __init__(self, root: MerkleNode | None = None):
        self.root = root

    @classmethod
    def build(cls, module_root: Path, ignores: Iterable[str] = ()) -> MerkleTree:
        """
        Build a Merkle tree from the filesystem.

        The module's info file and anything matching one of ``ignores`` is
        left out, as are symlinks and empty directories.

        Args:
            module_root: Root directory of the module
            ignores: Glob patterns relative to the module root

        Returns:
            A MerkleTree instance with computed hashes
        """
        root_node = _build_node(module_root, module_root, list(ignores))
        return cls(root=root_node)

    @property
    def hash(self) -> str:
        """Root hash, or the hash of nothing for an empty tree."""
        if self.root is None:
            return EMPTY_HASH
        return self.root.hash


def compute_file_hash(filepath: Path) -> str:
    """Compute SHA256 hash of file contents."""
    h = hashlib.sha256()
    with open(filepath, "rb") as f:
        for chunk in iter(lambda: f.read(8192), b""):
            h.update(chunk)
    return h.hexdigest()


def compute_directory_hash(children: dict[str, MerkleNode]) -> str:
    """Compute directory hash from sorted child name+hash pairs."""
    h = hashlib.sha256()
    for name in sorted(children.keys()):
        h.update(f"{name}\0{children[name].hash}\n".encode())
    return h.hexdigest()


def is_ignored(relative_path: str, ignores: list[str]) -> bool:
    """Check if a module-relative posix path matches any ignore pattern.

    A pattern starting with ``**/`` also matches at the module root.
    """
    for pattern in ignores:
        if fnmatch.fnmatch(relative_path, pattern):
            return True
        if pattern.startswith("**/") and fnmatch.fnmatch(relative_path, pattern[3:]):
            return True
    return False


def should_exclude(path: Path, exclude_patterns: list[str]) -> bool:
    """Check if a path's name matches any exclusion pattern."""
    name = path.name
    for pattern in exclude_patterns:
        if fnmatch.fnmatch(name, pattern):
            return True
    return False


def _build_node(path: Path, module_root: Path, ignores: list[str]) -> MerkleNode | None:
    """Recursively build a node for a file or directory."""
    if path.is_symlink():
        return None

    relative_path = path.relative_to(module_root).as_posix()

    if path.is_file():
        if relative_path == INFO_FILE or is_ignored(relative_path, ignores):
            return None
        return MerkleNode(
            hash=compute_file_hash(path),
            type="file",
            path=relative_path,
        )

    elif path.is_dir():
        children: dict[str, MerkleNode] = {}
        for child in sorted(path.iterdir()):
            child_node = _build_node(child, module_root, ignores)
            if child_node is not None:
                children[child.name] = child_node

        if not children:
            return None  # Skip empty directories

        return MerkleNode(
            hash=compute_directory_hash(children),
            type="directory",
            path=relative_path,
            children=children,
        )

    return None

