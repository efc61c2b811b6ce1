"""Boundary policies deciding where a history walk stops."""

from abc import ABC, abstractmethod
from typing import Literal

from .graph import RevisionGraph

Mode = Literal["default", "gerrit"]


class BoundaryPolicy(ABC):
    """Computes the set of revisions a history walk recurses into.

    Revisions outside of that set become boundaries whose status is computed
    from scratch.
    """

    @abstractmethod
    def relevant_revisions(self, graph: RevisionGraph, rev: str) -> set[str]:
        """Revisions reachable from ``rev`` that are walked recursively."""
        ...


class StopRevisionPolicy(BoundaryPolicy):
    """Stops at ``stop_rev`` and all of its ancestors."""

    def __init__(self, stop_rev: str):
        self.stop_rev = stop_rev

    def relevant_revisions(self, graph: RevisionGraph, rev: str) -> set[str]:
        stop = graph.resolve(self.stop_rev)
        return graph.reachable(rev) - graph.reachable(stop)


class GerritPolicy(BoundaryPolicy):
    """Stops at any revision known to an existing ref.

    On a gerrit server there are no remote-tracking refs; revisions pushed
    for review are not referenced yet while the ref-update hook runs.
    """

    def relevant_revisions(self, graph: RevisionGraph, rev: str) -> set[str]:
        return graph.reachable_unreferenced(rev)


class RemotePolicy(BoundaryPolicy):
    """Stops at revisions reachable from a remote-tracking ref."""

    def relevant_revisions(self, graph: RevisionGraph, rev: str) -> set[str]:
        return graph.reachable_non_remote(rev)


def get_boundary_policy(stop_rev: str | None = None, mode: Mode = "default") -> BoundaryPolicy:
    """
    Factory function to get the boundary policy for a history walk.

    ``stop_rev`` takes precedence over ``mode``.

    Raises:
        ValueError: If mode is not supported
    """
    if stop_rev:
        return StopRevisionPolicy(stop_rev)
    if mode == "gerrit":
        return GerritPolicy()
    if mode == "default":
        return RemotePolicy()
    raise ValueError(f"Mode '{mode}' not supported. Use 'default' or 'gerrit'.")
