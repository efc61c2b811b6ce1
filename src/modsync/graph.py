"""Revision graph access used by the status builder."""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from dataclasses import dataclass
from enum import Enum
from pathlib import Path


class ChangeKind(str, Enum):
    ADDED = "added"
    MODIFIED = "modified"
    DELETED = "deleted"


@dataclass(frozen=True)
class ChangedFile:
    """A file touched by a revision, relative to the workspace root."""

    path: str
    kind: ChangeKind


class RevisionGraph(ABC):
    """Abstract base class for revision graph access.

    Revisions are identified by full sha1 strings. Every method that takes a
    ``ref`` also accepts branch names and other revision expressions.
    """

    @abstractmethod
    def resolve(self, ref: str) -> str:
        """Resolve a reference to a full sha1.

        Raises:
            ReferenceResolutionError: If ``ref`` does not name a revision
        """
        ...

    @abstractmethod
    def parents(self, rev: str) -> list[str]:
        """Parents of ``rev``, primary parent first."""
        ...

    @abstractmethod
    def changed_files(self, rev: str, against: str) -> list[ChangedFile]:
        """Files changed in ``rev`` compared to ``against``.

        Renames are reported as a deletion plus an addition.
        """
        ...

    @abstractmethod
    def reachable(self, ref: str) -> set[str]:
        """All revisions reachable from ``ref``, including itself."""
        ...

    @abstractmethod
    def reachable_non_remote(self, ref: str) -> set[str]:
        """Revisions reachable from ``ref`` but not from any remote-tracking ref."""
        ...

    @abstractmethod
    def reachable_unreferenced(self, ref: str) -> set[str]:
        """Revisions reachable from ``ref`` but not from any existing ref."""
        ...

    @abstractmethod
    def export(self, rev: str, paths: list[str]) -> AbstractContextManager[Path]:
        """
        Export the given subtrees of ``rev`` into a temporary directory.

        Used as a context manager; the directory is removed on exit. Paths
        keep their location relative to the workspace root.

        Raises:
            ExportError: If the export fails
        """
        ...

    @abstractmethod
    def tree_paths(self, rev: str) -> list[str]:
        """All file paths in the tree of ``rev``."""
        ...
