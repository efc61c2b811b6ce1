"""Status computation for revisions, histories and working copies."""

import logging
import os
import posixpath
from pathlib import Path

from . import INFO_FILE, MODSYNC_DIR
from .boundary import Mode, get_boundary_policy
from .dirty_check import ChecksumDirtyCheck, DirtyPredicate
from .errors import ModuleAbsentError
from .graph import ChangedFile, ChangeKind, RevisionGraph
from .merkle import should_exclude
from .module_info import ModuleInfoReader, ModuleMetadataProvider
from .status import ModuleStatus, RevStatus

logger = logging.getLogger(__name__)

DEFAULT_EXCLUDE_PATTERNS = [".git", MODSYNC_DIR]


class StatusBuilder:
    """Builds status trees from a revision graph.

    The dirty check and the metadata reader default to the info file based
    implementations.
    """

    def __init__(
        self,
        graph: RevisionGraph,
        dirty_check: DirtyPredicate | None = None,
        metadata: ModuleMetadataProvider | None = None,
    ):
        self.graph = graph
        self.dirty_check = dirty_check or ChecksumDirtyCheck()
        self.metadata = metadata or ModuleInfoReader()

    def history(
        self,
        rev: str,
        stop_rev: str | None = None,
        mode: Mode = "default",
        fast: bool = False,
    ) -> RevStatus:
        """
        Status tree for ``rev`` and its ancestors.

        The walk recurses into revisions selected by the boundary policy:
        ancestors of ``stop_rev`` are excluded if given, in gerrit mode any
        revision known to an existing ref is excluded, otherwise any
        revision reachable from a remote-tracking ref. The first excluded
        revisions and root commits become leaves with a full check.

        Inside the walk a module is only checked again when one of its
        files changed compared to the primary parent; otherwise its status
        is taken over from that parent. Merge commits are diffed against
        their primary parent only, but keep all parents in the tree.

        Args:
            rev: Revision to start from
            stop_rev: Optional revision whose ancestry ends the walk
            mode: "default" or "gerrit"
            fast: If True, modules in leaf revisions are assumed to be clean
                instead of being checked. This can hide dirty modules.

        Returns:
            The root RevStatus; ancestors are reachable via ``parents``
        """
        policy = get_boundary_policy(stop_rev, mode)
        sha = self.graph.resolve(rev)
        relevant = policy.relevant_revisions(self.graph, sha)
        logger.debug("history of %s: %d relevant revisions", sha[:7], len(relevant))
        return self._build_history(sha, relevant, fast)

    def rev_status(self, rev: str) -> RevStatus:
        """Status of a single revision with a full check and no parents."""
        sha = self.graph.resolve(rev)
        return self._full_status(sha)

    def module_status(self, rev: str, local_path: str) -> ModuleStatus | None:
        """
        Status of the module at ``local_path`` in ``rev``.

        Returns None if there is no such module in this revision.
        """
        local_path = _normalize_dir(local_path)
        info_path = posixpath.join(local_path, INFO_FILE)
        if info_path not in self.graph.tree_paths(rev):
            return None
        with self.graph.export(rev, [local_path]) as export_root:
            return self._build_module_status(export_root, local_path)

    def require_module_status(self, rev: str, local_path: str) -> ModuleStatus:
        """Like module_status, but raises ModuleAbsentError if not found."""
        status = self.module_status(rev, local_path)
        if status is None:
            raise ModuleAbsentError(_normalize_dir(local_path), rev)
        return status

    def fs_status(
        self,
        root_dir: Path,
        exclude_patterns: list[str] | None = None,
    ) -> RevStatus:
        """
        Status of the current file system content of ``root_dir``.

        This can be any directory, even outside of a git working copy.
        """
        root_dir = Path(root_dir)
        if exclude_patterns is None:
            exclude_patterns = DEFAULT_EXCLUDE_PATTERNS
        modules = tuple(
            self._build_module_status(root_dir, d)
            for d in fs_module_dirs(root_dir, exclude_patterns)
        )
        return RevStatus(rev=None, modules=modules)

    def _build_history(self, rev: str, relevant: set[str], fast: bool) -> RevStatus:
        """Walk from ``rev`` towards the leaves, parents before children.

        Each revision is computed once; merges share the status objects of
        the revisions where their branches meet.
        """
        cache: dict[str, RevStatus] = {}
        parents_of: dict[str, list[str]] = {}
        stack = [rev]
        while stack:
            current = stack[-1]
            if current in cache:
                stack.pop()
                continue

            if current in relevant:
                if current not in parents_of:
                    parents_of[current] = self.graph.parents(current)
                parents = parents_of[current]
            else:
                parents = []

            if not parents:
                logger.debug("%s: leaf, full check", current[:7])
                cache[current] = self._fast_status(current) if fast else self._full_status(current)
                stack.pop()
                continue

            pending = [p for p in parents if p not in cache]
            if pending:
                stack.extend(reversed(pending))
                continue

            cache[current] = self._incremental_status(current, parents, cache)
            stack.pop()

        return cache[rev]

    def _incremental_status(
        self,
        rev: str,
        parents: list[str],
        cache: dict[str, RevStatus],
    ) -> RevStatus:
        # For merges the primary parent is the base; which parent does not
        # matter as long as the diff uses the same one.
        base = cache[parents[0]]
        changed = self.graph.changed_files(rev, parents[0])

        module_dirs = _apply_info_changes([m.dir for m in base.modules], changed)
        touched = [d for d in module_dirs if _touches(d, changed)]
        logger.debug(
            "%s: %d changed files, %d of %d modules touched",
            rev[:7], len(changed), len(touched), len(module_dirs),
        )

        fresh: dict[str, ModuleStatus] = {}
        if touched:
            # One export for all touched modules
            with self.graph.export(rev, touched) as export_root:
                for d in touched:
                    fresh[d] = self._build_module_status(export_root, d)

        inherited = {m.dir: m for m in base.modules}
        modules = tuple(fresh[d] if d in fresh else inherited[d] for d in module_dirs)
        return RevStatus(
            rev=rev,
            modules=modules,
            parents=tuple(cache[p] for p in parents),
        )

    def _full_status(self, rev: str) -> RevStatus:
        mod_dirs = self._module_dirs(rev)
        # Exporting all modules at once is much faster than one by one
        with self.graph.export(rev, mod_dirs) as export_root:
            modules = tuple(self._build_module_status(export_root, d) for d in mod_dirs)
        return RevStatus(rev=rev, modules=modules)

    def _fast_status(self, rev: str) -> RevStatus:
        """Status of ``rev`` with all modules assumed to be clean."""
        mod_dirs = self._module_dirs(rev)
        info_paths = [posixpath.join(d, INFO_FILE) for d in mod_dirs]
        with self.graph.export(rev, info_paths) as export_root:
            modules = tuple(
                ModuleStatus(dir=d, info=self.metadata.parse(export_root / d), dirty=False)
                for d in mod_dirs
            )
        return RevStatus(rev=rev, modules=modules)

    def _module_dirs(self, rev: str) -> list[str]:
        return [d for d in map(_info_file_dir, self.graph.tree_paths(rev)) if d]

    def _build_module_status(self, root_dir: Path, dir: str) -> ModuleStatus:
        module_dir = root_dir / dir
        return ModuleStatus(
            dir=dir,
            info=self.metadata.parse(module_dir),
            dirty=self.dirty_check.is_dirty(module_dir),
        )


def fs_module_dirs(root_dir: Path, exclude_patterns: list[str]) -> list[str]:
    """Module directories below ``root_dir``, sorted, relative posix paths."""
    found = []
    for dirpath, dirnames, filenames in os.walk(root_dir):
        dirnames[:] = [d for d in dirnames if not should_exclude(Path(d), exclude_patterns)]
        if INFO_FILE in filenames:
            rel = Path(dirpath).relative_to(root_dir).as_posix()
            if rel != ".":
                found.append(rel)
    return sorted(found)


def _info_file_dir(path: str) -> str | None:
    """Module directory of an info file path, None for other files.

    An info file at the workspace root does not mark a module.
    """
    if posixpath.basename(path) != INFO_FILE:
        return None
    return posixpath.dirname(path) or None


def _apply_info_changes(module_dirs: list[str], changed: list[ChangedFile]) -> list[str]:
    """Add and remove modules whose info files were added or deleted."""
    dirs = list(module_dirs)
    for f in changed:
        d = _info_file_dir(f.path)
        if d is None:
            continue
        if f.kind is ChangeKind.ADDED and d not in dirs:
            dirs.append(d)
        elif f.kind is ChangeKind.DELETED and d in dirs:
            dirs.remove(d)
    return dirs


def _touches(module_dir: str, changed: list[ChangedFile]) -> bool:
    prefix = module_dir + "/"
    return any(f.path.startswith(prefix) for f in changed)


def _normalize_dir(path: str) -> str:
    return Path(path).as_posix().strip("/")
