"""polyfs: one set of file operations over local disk and FTP.

Path normalization, subtree discovery, and copy/move/delete orchestration
that work the same on every backend, and across backends.
"""

__version__ = "0.1.0"

from polyfs._filesystem import Filesystem
from polyfs.fs.config import AdapterConfig, BackendKind
from polyfs.fs.exceptions import (
    AccessDeniedError,
    AmbiguousTargetError,
    BackendConnectionError,
    BackendIOError,
    CapabilityNotSupportedError,
    ConflictError,
    ErrorKind,
    FilesystemError,
    InvalidPathError,
    InvalidTargetError,
    NotFoundError,
    RootProtectionError,
    TransferError,
)
from polyfs.fs.permissions import Permission
from polyfs.fs.types import (
    DirectoryManifest,
    EntryType,
    MetadataSnapshot,
    TransferReport,
)
from polyfs.fs.utils import normalize_path

__all__ = [
    "AccessDeniedError",
    "AdapterConfig",
    "AmbiguousTargetError",
    "BackendConnectionError",
    "BackendIOError",
    "BackendKind",
    "CapabilityNotSupportedError",
    "ConflictError",
    "DirectoryManifest",
    "EntryType",
    "ErrorKind",
    "Filesystem",
    "FilesystemError",
    "InvalidPathError",
    "InvalidTargetError",
    "MetadataSnapshot",
    "NotFoundError",
    "Permission",
    "RootProtectionError",
    "TransferReport",
    "normalize_path",
]
