"""Exceptions raised by modsync."""

from pathlib import Path


class ModsyncError(Exception):
    """Base exception for modsync errors.

    ``operation`` names the collaborator call that failed, e.g. ``"resolve"``
    or ``"export"``.
    """

    operation: str = "modsync"

    def __init__(self, message: str, operation: str | None = None):
        super().__init__(message)
        if operation is not None:
            self.operation = operation


class GitCommandError(ModsyncError):
    """A git command failed or timed out."""

    operation = "git"

    def __init__(
        self,
        message: str,
        command: list[str] | None = None,
        returncode: int | None = None,
        stderr: str = "",
        operation: str | None = None,
    ):
        super().__init__(message, operation)
        self.command = command or []
        self.returncode = returncode
        self.stderr = stderr


class ReferenceResolutionError(GitCommandError):
    """A reference could not be resolved to a revision."""

    operation = "resolve"


class ExportError(GitCommandError):
    """Exporting subtrees of a revision failed."""

    operation = "export"


class MetadataParseError(ModsyncError):
    """A module info file is missing or malformed."""

    operation = "parse"

    def __init__(self, message: str, path: Path | None = None):
        super().__init__(message)
        self.path = path


class ModuleAbsentError(ModsyncError):
    """The requested module does not exist in the revision."""

    operation = "module_status"

    def __init__(self, local_path: str, rev: str):
        super().__init__(f"No module at '{local_path}' in revision {rev}.")
        self.local_path = local_path
        self.rev = rev
