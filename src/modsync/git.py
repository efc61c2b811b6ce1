"""Git-backed revision graph using the git CLI."""

import io
import logging
import subprocess
import tarfile
import tempfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from .errors import ExportError, GitCommandError, ReferenceResolutionError
from .graph import ChangedFile, ChangeKind, RevisionGraph

logger = logging.getLogger(__name__)

# git diff-tree --name-status letters; type changes count as modifications
STATUS_KINDS = {
    "A": ChangeKind.ADDED,
    "M": ChangeKind.MODIFIED,
    "T": ChangeKind.MODIFIED,
    "D": ChangeKind.DELETED,
}


class GitSession(RevisionGraph):
    """Runs git commands in a working copy."""

    def __init__(self, repo_path: Path, timeout: float = 120.0):
        self.repo_path = Path(repo_path)
        self.timeout = timeout

    def execute(
        self,
        args: list[str],
        operation: str = "git",
        error_cls: type[GitCommandError] = GitCommandError,
    ) -> str:
        """Run a git command and return its stdout as text."""
        return self._run(args, operation, error_cls, text=True)

    def _run(
        self,
        args: list[str],
        operation: str,
        error_cls: type[GitCommandError],
        text: bool,
    ):
        command = ["git", *args]
        logger.debug("git %s (%s)", " ".join(args), self.repo_path)
        try:
            result = subprocess.run(
                command,
                cwd=self.repo_path,
                capture_output=True,
                text=text,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise error_cls(
                f"git {args[0]} timed out after {self.timeout}s",
                command=command,
                operation=operation,
            ) from e
        except OSError as e:
            raise error_cls(f"Cannot run git: {e}", command=command, operation=operation) from e

        if result.returncode != 0:
            stderr = result.stderr if text else result.stderr.decode("utf-8", errors="replace")
            raise error_cls(
                f"git {args[0]} failed: {stderr.strip()}",
                command=command,
                returncode=result.returncode,
                stderr=stderr,
                operation=operation,
            )
        return result.stdout

    def resolve(self, ref: str) -> str:
        try:
            out = self.execute(
                ["rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}"],
                operation="resolve",
                error_cls=ReferenceResolutionError,
            )
        except ReferenceResolutionError as e:
            # --quiet leaves stderr empty
            raise ReferenceResolutionError(
                f"Cannot resolve '{ref}' to a revision",
                command=e.command,
                returncode=e.returncode,
                stderr=e.stderr,
            ) from e
        return out.strip()

    def parents(self, rev: str) -> list[str]:
        out = self.execute(["rev-list", "--parents", "-n", "1", rev, "--"], operation="parents")
        return out.split()[1:]

    def changed_files(self, rev: str, against: str) -> list[ChangedFile]:
        out = self.execute(
            ["diff-tree", "-r", "--no-commit-id", "--no-renames", "--name-status", "-z", against, rev],
            operation="changed_files",
        )
        fields = out.split("\0")
        changed = []
        # Pairs of status letter and path
        for status, path in zip(fields[0::2], fields[1::2]):
            kind = STATUS_KINDS.get(status[:1])
            if kind is not None:
                changed.append(ChangedFile(path=path, kind=kind))
        return changed

    def reachable(self, ref: str) -> set[str]:
        return self._rev_list([ref])

    def reachable_non_remote(self, ref: str) -> set[str]:
        return self._rev_list([ref, "--not", "--remotes"])

    def reachable_unreferenced(self, ref: str) -> set[str]:
        return self._rev_list([ref, "--not", "--all"])

    def _rev_list(self, args: list[str]) -> set[str]:
        out = self.execute(["rev-list", *args, "--"], operation="reachable")
        return set(out.split())

    @contextmanager
    def export(self, rev: str, paths: list[str]) -> Iterator[Path]:
        with tempfile.TemporaryDirectory(prefix="modsync-") as tmp:
            if paths:
                data = self._run(
                    ["archive", "--format=tar", rev, *paths],
                    operation="export",
                    error_cls=ExportError,
                    text=False,
                )
                try:
                    with tarfile.open(fileobj=io.BytesIO(data)) as tar:
                        tar.extractall(tmp, filter="data")
                except tarfile.TarError as e:
                    raise ExportError(f"Cannot extract export of {rev}: {e}") from e
                logger.debug("exported %d paths of %s", len(paths), rev[:7])
            yield Path(tmp)

    def tree_paths(self, rev: str) -> list[str]:
        out = self.execute(["ls-tree", "-r", "--name-only", "-z", rev], operation="tree_paths")
        return [p for p in out.split("\0") if p]

    def toplevel(self) -> Path:
        """Root directory of the working copy."""
        return Path(self.execute(["rev-parse", "--show-toplevel"]).strip())

    def current_branch(self) -> str | None:
        """Name of the checked out branch, None when HEAD is detached."""
        name = self.execute(["rev-parse", "--abbrev-ref", "HEAD"]).strip()
        return None if name == "HEAD" else name

    def has_uncommitted_changes(self) -> bool:
        return bool(self.execute(["status", "--porcelain"]).strip())

    def commit_subject(self, rev: str) -> str:
        return self.execute(["log", "-1", "--format=%s", rev, "--"]).strip()
