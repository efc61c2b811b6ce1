"""Shared test fixtures for modsync."""

import shutil
import subprocess
import tempfile
from collections import Counter
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

import pytest
from click.testing import CliRunner

from modsync.dirty_check import DirtyPredicate
from modsync.errors import ExportError, ReferenceResolutionError
from modsync.graph import ChangedFile, ChangeKind, RevisionGraph

requires_git = pytest.mark.skipif(shutil.which("git") is None, reason="git not installed")


def info_text(name: str, target: str = "master") -> str:
    """Content of a module info file for a module called ``name``."""
    return f"remote_url: ssh://gerrit/{name}\ntarget_revision: {target}\n"


class FakeGraph(RevisionGraph):
    """In-memory revision graph.

    Commits map a name to (parents, files). Refs map names to commits;
    refs listed in ``remotes`` are remote-tracking refs.
    """

    def __init__(self) -> None:
        self.commits: dict[str, tuple[list[str], dict[str, str]]] = {}
        self.refs: dict[str, str] = {}
        self.remotes: set[str] = set()
        self.calls: Counter[str] = Counter()
        self.diffs: list[tuple[str, str]] = []
        self.exports: list[tuple[str, list[str]]] = []

    def commit(self, rev: str, parents: list[str], files: dict[str, str]) -> str:
        self.commits[rev] = (list(parents), dict(files))
        return rev

    def resolve(self, ref: str) -> str:
        self.calls["resolve"] += 1
        if ref in self.refs:
            return self.refs[ref]
        if ref in self.commits:
            return ref
        raise ReferenceResolutionError(f"unknown revision {ref}")

    def parents(self, rev: str) -> list[str]:
        self.calls["parents"] += 1
        return list(self.commits[rev][0])

    def changed_files(self, rev: str, against: str) -> list[ChangedFile]:
        self.calls["changed_files"] += 1
        self.diffs.append((rev, against))
        new = self.commits[rev][1]
        old = self.commits[against][1]
        changed = []
        for path in sorted(set(new) | set(old)):
            if path not in old:
                changed.append(ChangedFile(path, ChangeKind.ADDED))
            elif path not in new:
                changed.append(ChangedFile(path, ChangeKind.DELETED))
            elif new[path] != old[path]:
                changed.append(ChangedFile(path, ChangeKind.MODIFIED))
        return changed

    def reachable(self, ref: str) -> set[str]:
        self.calls["reachable"] += 1
        seen: set[str] = set()
        stack = [self.resolve(ref)]
        while stack:
            rev = stack.pop()
            if rev not in seen:
                seen.add(rev)
                stack.extend(self.commits[rev][0])
        return seen

    def reachable_non_remote(self, ref: str) -> set[str]:
        result = self.reachable(ref)
        for remote in self.remotes:
            result -= self.reachable(remote)
        return result

    def reachable_unreferenced(self, ref: str) -> set[str]:
        result = self.reachable(ref)
        for name in self.refs:
            result -= self.reachable(name)
        return result

    @contextmanager
    def export(self, rev: str, paths: list[str]) -> Iterator[Path]:
        self.calls["export"] += 1
        self.exports.append((rev, list(paths)))
        files = self.commits[rev][1]
        with tempfile.TemporaryDirectory() as tmp:
            for p in paths:
                matching = [f for f in files if f == p or f.startswith(p + "/")]
                if not matching:
                    raise ExportError(f"pathspec '{p}' did not match any files")
                for f in matching:
                    target = Path(tmp) / f
                    target.parent.mkdir(parents=True, exist_ok=True)
                    target.write_text(files[f])
            yield Path(tmp)

    def tree_paths(self, rev: str) -> list[str]:
        self.calls["tree_paths"] += 1
        return sorted(self.commits[rev][1])


class RecordingDirtyCheck(DirtyPredicate):
    """Dirty iff the module contains a file named ``local_change``.

    Records the module directories it was asked about.
    """

    def __init__(self) -> None:
        self.checked: list[str] = []

    def is_dirty(self, module_dir: Path) -> bool:
        self.checked.append(module_dir.name)
        return (module_dir / "local_change").exists()


class GitRepo:
    """A throwaway git repository for integration tests."""

    def __init__(self, path: Path):
        self.path = path
        path.mkdir(parents=True, exist_ok=True)
        self.git("init", "-q")
        self.git("symbolic-ref", "HEAD", "refs/heads/master")

    def git(self, *args: str) -> str:
        result = subprocess.run(
            ["git", "-c", "user.name=Test", "-c", "user.email=test@example.com", *args],
            cwd=self.path,
            capture_output=True,
            text=True,
            check=True,
        )
        return result.stdout

    def write(self, relative_path: str, content: str) -> Path:
        path = self.path / relative_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        return path

    def commit(self, message: str) -> str:
        self.git("add", "--all")
        self.git("commit", "-q", "--allow-empty", "-m", message)
        return self.git("rev-parse", "HEAD").strip()

    def mark_remote(self, rev: str, name: str = "origin/master") -> None:
        """Point a remote-tracking ref at ``rev``."""
        self.git("update-ref", f"refs/remotes/{name}", rev)


@pytest.fixture
def cli_runner():
    """Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def graph() -> FakeGraph:
    return FakeGraph()


@pytest.fixture
def dirty_check() -> RecordingDirtyCheck:
    return RecordingDirtyCheck()


@pytest.fixture
def git_repo(tmp_path: Path) -> GitRepo:
    """An empty git repository on branch master."""
    if shutil.which("git") is None:
        pytest.skip("git not installed")
    return GitRepo(tmp_path / "ws")
