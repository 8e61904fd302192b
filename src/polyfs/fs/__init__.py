"""Filesystem layer: adapters, discovery, metadata and transfer orchestration."""

from polyfs.fs.base import BaseAdapter, ConnectionState
from polyfs.fs.config import AdapterConfig, BackendKind, create_adapter
from polyfs.fs.directories import discover, list_entries
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
from polyfs.fs.ftp import FtpAdapter
from polyfs.fs.local_disk import LocalDiskAdapter
from polyfs.fs.metadata import get_metadata
from polyfs.fs.operations import copy, delete, move, rename, write_file
from polyfs.fs.permissions import Permission
from polyfs.fs.protocol import (
    AdapterGateway,
    SupportsOwnership,
    SupportsPermissions,
    SupportsTouch,
)
from polyfs.fs.types import (
    DirectoryManifest,
    EntryType,
    MetadataSnapshot,
    StatResult,
    TransferPlan,
    TransferReport,
)
from polyfs.fs.utils import NormalizedPath, normalize_path

__all__ = [
    "AccessDeniedError",
    "AdapterConfig",
    "AdapterGateway",
    "AmbiguousTargetError",
    "BackendConnectionError",
    "BackendIOError",
    "BackendKind",
    "BaseAdapter",
    "CapabilityNotSupportedError",
    "ConflictError",
    "ConnectionState",
    "DirectoryManifest",
    "EntryType",
    "ErrorKind",
    "FilesystemError",
    "FtpAdapter",
    "InvalidPathError",
    "InvalidTargetError",
    "LocalDiskAdapter",
    "MetadataSnapshot",
    "NormalizedPath",
    "NotFoundError",
    "Permission",
    "RootProtectionError",
    "StatResult",
    "SupportsOwnership",
    "SupportsPermissions",
    "SupportsTouch",
    "TransferError",
    "TransferPlan",
    "TransferReport",
    "copy",
    "create_adapter",
    "delete",
    "discover",
    "get_metadata",
    "list_entries",
    "move",
    "normalize_path",
    "rename",
    "write_file",
]
