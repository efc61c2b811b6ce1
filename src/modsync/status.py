"""Status tree data types."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

from .module_info import ModuleMetadata


@dataclass(frozen=True)
class ModuleStatus:
    """Status of one module in one revision."""

    dir: str  # Module path relative to the workspace root
    info: ModuleMetadata
    dirty: bool


@dataclass(frozen=True, eq=False)
class RevStatus:
    """
    Status of all modules in a revision, linked to the status of its parents.

    A node without ``rev`` stands for uncommitted changes of a working copy.
    Nodes without parents are boundaries of a history walk. Merges make the
    tree a DAG: a node reached via several branches is one shared object.
    Nodes compare by identity; ``same_as`` compares two trees.
    """

    rev: str | None
    modules: tuple[ModuleStatus, ...] = ()
    parents: tuple[RevStatus, ...] = ()

    def __post_init__(self) -> None:
        dirs = [m.dir for m in self.modules]
        if len(set(dirs)) != len(dirs):
            raise ValueError(f"Duplicate module directories in status of {self.rev}: {dirs}")

    @property
    def dirty(self) -> bool:
        """Check if any module of this revision is dirty."""
        return any(m.dirty for m in self.modules)

    @property
    def dirty_modules(self) -> list[ModuleStatus]:
        return [m for m in self.modules if m.dirty]

    @property
    def is_boundary(self) -> bool:
        """True for committed revisions where a history walk stopped."""
        return self.rev is not None and not self.parents

    def module(self, dir: str) -> ModuleStatus | None:
        """Find the status of the module at ``dir``."""
        for m in self.modules:
            if m.dir == dir:
                return m
        return None

    def walk(self) -> Iterator[RevStatus]:
        """Yield this node and all ancestors, each shared node once."""
        seen: set[int] = set()
        stack: list[RevStatus] = [self]
        while stack:
            node = stack.pop()
            if id(node) in seen:
                continue
            seen.add(id(node))
            yield node
            stack.extend(reversed(node.parents))

    def same_as(self, other: RevStatus) -> bool:
        """
        Check if two status trees have the same revisions, modules and shape.

        Each pair of nodes is compared once, so shared ancestors of merges
        are not compared again for every path leading to them.
        """
        seen: set[tuple[int, int]] = set()
        stack: list[tuple[RevStatus, RevStatus]] = [(self, other)]
        while stack:
            a, b = stack.pop()
            if (id(a), id(b)) in seen:
                continue
            seen.add((id(a), id(b)))
            if a.rev != b.rev or a.modules != b.modules or len(a.parents) != len(b.parents):
                return False
            stack.extend(zip(a.parents, b.parents))
        return True

    def any_dirty(self) -> bool:
        """Check if this node or any ancestor is dirty."""
        return any(node.dirty for node in self.walk())
