"""Dirty predicates deciding whether a module differs from its synced state."""

from abc import ABC, abstractmethod
from pathlib import Path

from .module_info import module_checksum, read_module_info


class DirtyPredicate(ABC):
    """Abstract base class for dirty checks."""

    @abstractmethod
    def is_dirty(self, module_dir: Path) -> bool:
        """Return True if the module content at ``module_dir`` was modified."""
        ...


class ChecksumDirtyCheck(DirtyPredicate):
    """Compares the checksum recorded in the info file with the content.

    A module without a recorded checksum was never synced and counts as dirty.
    """

    def is_dirty(self, module_dir: Path) -> bool:
        info = read_module_info(module_dir)
        if not info.checksum:
            return True
        return info.checksum != module_checksum(module_dir, info)
