"""Workspace helpers used by sync and upload workflows."""

import logging
import posixpath
from dataclasses import dataclass
from pathlib import Path

from . import INFO_FILE
from .graph import RevisionGraph
from .status_builder import StatusBuilder

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModuleInfo:
    """A module of the workspace and where it syncs from."""

    remote_url: str  # Unique identifier of the module
    local_path: str
    target_revision: str | None
    ignores: tuple[str, ...] = ()


def modules_from_workspace(
    project_root: Path,
    builder: StatusBuilder,
    exclude_patterns: list[str] | None = None,
) -> list[ModuleInfo]:
    """Collect the modules present in the working copy at ``project_root``."""
    status = builder.fs_status(project_root, exclude_patterns)
    return [
        ModuleInfo(
            remote_url=m.info.remote_url,
            local_path=m.dir,
            target_revision=m.info.target_revision,
            ignores=m.info.ignores,
        )
        for m in status.modules
    ]


def sync_start_revision(graph: RevisionGraph, rev: str) -> str | None:
    """
    Revision a sync branch for ``rev`` should start from.

    Follows primary parents while revisions are local and leave all module
    info files alone. Returns the first revision that is remote or changes
    an info file, or None if history ends before.
    """
    local = graph.reachable_non_remote(rev)
    current = graph.resolve(rev)
    while current in local:
        parents = graph.parents(current)
        if _changes_module_info(graph, current, parents):
            break
        if not parents:
            return None
        current = parents[0]
    logger.debug("sync of %s starts at %s", rev, current[:7])
    return current


def local_revisions(graph: RevisionGraph, rev: str) -> list[str]:
    """Local revisions on the primary parent chain of ``rev``, oldest first."""
    local = graph.reachable_non_remote(rev)
    chain = []
    current: str | None = graph.resolve(rev)
    while current is not None and current in local:
        chain.append(current)
        parents = graph.parents(current)
        current = parents[0] if parents else None
    chain.reverse()
    return chain


def upload_revisions(
    builder: StatusBuilder,
    rev: str,
    local_path: str,
) -> list[str]:
    """Local revisions, oldest first, in which the module is dirty.

    These are the revisions whose module changes still need to be uploaded.
    """
    revisions = []
    for sha in local_revisions(builder.graph, rev):
        status = builder.module_status(sha, local_path)
        if status is not None and status.dirty:
            revisions.append(sha)
    return revisions


def _changes_module_info(graph: RevisionGraph, rev: str, parents: list[str]) -> bool:
    if parents:
        paths = [f.path for f in graph.changed_files(rev, parents[0])]
    else:
        paths = graph.tree_paths(rev)
    return any(posixpath.basename(p) == INFO_FILE for p in paths)
