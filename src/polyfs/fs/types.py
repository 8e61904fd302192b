"""Value types: EntryType, StatResult, DirectoryManifest, MetadataSnapshot, etc."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

from .utils import join_path

if TYPE_CHECKING:
    from datetime import datetime

    from .protocol import AdapterGateway
    from .utils import NormalizedPath


class EntryType(str, Enum):
    """What a backend reports at a path."""

    FILE = "file"
    DIRECTORY = "directory"
    LINK = "link"
    NONE = "none"


@dataclass(frozen=True)
class StatResult:
    """Raw per-entry facts a backend can report.

    Fields a backend cannot provide are ``None``.
    """

    type: EntryType
    size: int = 0
    mode: int | None = None
    owner: str | None = None
    group: str | None = None
    created_at: datetime | None = None
    accessed_at: datetime | None = None
    modified_at: datetime | None = None
    readable: bool = False
    writable: bool = False
    executable: bool = False


@dataclass(frozen=True)
class DirectoryManifest:
    """Ordered listing of a subtree.

    ``directories`` is parent-before-child; ``files`` is in traversal order.
    """

    root: NormalizedPath
    directories: tuple[NormalizedPath, ...] = ()
    files: tuple[NormalizedPath, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.directories and not self.files

    @property
    def entries(self) -> tuple[NormalizedPath, ...]:
        """Directories followed by files."""
        return self.directories + self.files


@dataclass(frozen=True)
class MetadataSnapshot:
    """Point-in-time facts about one path."""

    path: NormalizedPath
    exists: bool
    type: EntryType = EntryType.NONE
    is_root: bool = False
    name: str = ""
    parent: NormalizedPath | None = None
    extension: str | None = None
    name_without_extension: str | None = None
    size: int = 0
    mime_type: str | None = None
    owner: str | None = None
    group: str | None = None
    mode: int | None = None
    created_at: datetime | None = None
    accessed_at: datetime | None = None
    modified_at: datetime | None = None
    readable: bool = False
    writable: bool = False
    executable: bool = False
    md5: str | None = None
    sha1: str | None = None
    sha1_raw: bytes | None = None

    @property
    def is_file(self) -> bool:
        return self.type == EntryType.FILE

    @property
    def is_directory(self) -> bool:
        return self.type == EntryType.DIRECTORY

    @property
    def is_link(self) -> bool:
        return self.type == EntryType.LINK


@dataclass(frozen=True)
class TransferPlan:
    """Resolved parameters of one copy or move."""

    source: NormalizedPath
    target: AdapterGateway
    target_directory: NormalizedPath
    target_name: str | None = None
    replace: bool = True

    def destination_for(self, source_is_directory: bool, source_name: str) -> NormalizedPath:
        """Where the source root lands.

        A file keeps its own name unless renamed. A directory without a
        ``target_name`` merges its contents straight into ``target_directory``.
        """
        if self.target_name:
            return join_path(self.target_directory, self.target_name)
        if source_is_directory:
            return self.target_directory
        return join_path(self.target_directory, source_name)


@dataclass
class TransferReport:
    """What a copy, move or delete actually did, in order."""

    operation: str
    source: NormalizedPath
    destination: NormalizedPath | None = None
    created_directories: list[NormalizedPath] = field(default_factory=list)
    written_files: list[NormalizedPath] = field(default_factory=list)
    removed_files: list[NormalizedPath] = field(default_factory=list)
    removed_directories: list[NormalizedPath] = field(default_factory=list)

    @property
    def total(self) -> int:
        return (
            len(self.created_directories)
            + len(self.written_files)
            + len(self.removed_files)
            + len(self.removed_directories)
        )
