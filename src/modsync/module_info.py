"""Module info files: metadata markers at the root of each embedded module."""

import hashlib
from abc import ABC, abstractmethod
from pathlib import Path

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from . import INFO_FILE
from .errors import MetadataParseError
from .merkle import MerkleTree

INFO_HEADER = "# modsync module info - changes will make the module dirty"

# Keys in the order they are written
INFO_KEYS = ("remote_url", "target_revision", "revision_sha1", "ignores", "checksum")


class ModuleMetadata(BaseModel):
    """Metadata of one embedded module, as recorded in its info file."""

    model_config = ConfigDict(frozen=True)

    remote_url: str
    target_revision: str | None = None
    revision_sha1: str | None = None
    ignores: tuple[str, ...] = ()
    checksum: str | None = None

    @field_validator("ignores", mode="before")
    @classmethod
    def _split_ignores(cls, value):
        if value is None:
            return ()
        if isinstance(value, str):
            return tuple(s.strip() for s in value.split(",") if s.strip())
        return value


class ModuleMetadataProvider(ABC):
    """Abstract base class for module metadata providers."""

    @abstractmethod
    def parse(self, module_dir: Path) -> ModuleMetadata:
        """
        Read the metadata of the module rooted at ``module_dir``.

        Raises:
            MetadataParseError: If the info file is missing or malformed
        """
        ...


class ModuleInfoReader(ModuleMetadataProvider):
    """Reads the ``key: value`` info file format."""

    def parse(self, module_dir: Path) -> ModuleMetadata:
        return read_module_info(module_dir)


def parse_module_info(text: str, path: Path | None = None) -> ModuleMetadata:
    """Parse info file content. Unknown keys are ignored."""
    data: dict[str, str] = {}
    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition(":")
        if not sep:
            raise MetadataParseError(f"{path or INFO_FILE}:{lineno}: expected 'key: value'", path)
        key = key.strip()
        if key in INFO_KEYS:
            data[key] = value.strip()

    # Empty values mean "not set"
    data = {k: v for k, v in data.items() if v}
    try:
        return ModuleMetadata.model_validate(data)
    except ValidationError as e:
        raise MetadataParseError(f"{path or INFO_FILE}: {e}", path) from e


def format_module_info(info: ModuleMetadata) -> str:
    """Render metadata in the info file format."""
    lines = [INFO_HEADER]
    for key in INFO_KEYS:
        value = getattr(info, key)
        if key == "ignores":
            value = ",".join(value)
        lines.append(f"{key}: {value or ''}")
    return "\n".join(lines) + "\n"


def read_module_info(module_dir: Path) -> ModuleMetadata:
    """Read and parse the info file of a module directory."""
    info_path = module_dir / INFO_FILE
    try:
        text = info_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise MetadataParseError(f"Cannot read {info_path}: {e}", info_path) from e
    return parse_module_info(text, info_path)


def module_checksum(module_dir: Path, info: ModuleMetadata) -> str:
    """
    Checksum of a module's pristine state.

    Covers the metadata fields except the checksum itself and the content
    of every file not matched by an ignore pattern.
    """
    h = hashlib.sha256()
    h.update(info.remote_url.encode())
    h.update(f"\0{info.target_revision or ''}\0{info.revision_sha1 or ''}\0".encode())
    h.update(",".join(info.ignores).encode())
    h.update(MerkleTree.build(module_dir, info.ignores).hash.encode())
    return h.hexdigest()


def write_module_info(module_dir: Path, info: ModuleMetadata) -> ModuleMetadata:
    """Write the info file with a checksum of the module's current content.

    Returns the metadata as written.
    """
    module_dir.mkdir(parents=True, exist_ok=True)
    stamped = info.model_copy(update={"checksum": module_checksum(module_dir, info)})
    (module_dir / INFO_FILE).write_text(format_module_info(stamped), encoding="utf-8")
    return stamped
