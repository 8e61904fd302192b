"""Custom exception hierarchy for the polyfs filesystem layer."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .types import TransferReport


class ErrorKind(str, Enum):
    """Closed set of failure categories every backend error maps onto."""

    INVALID_PATH = "invalid_path"
    NOT_FOUND = "not_found"
    PERMISSION = "permission"
    CONFLICT = "conflict"
    AMBIGUOUS_TARGET = "ambiguous_target"
    ROOT_PROTECTION = "root_protection"
    CONNECTION = "connection"
    TRANSFER = "transfer"
    INVALID_TARGET = "invalid_target"
    UNSUPPORTED = "unsupported"
    IO = "io"


class FilesystemError(Exception):
    """Base exception for all polyfs filesystem errors."""

    kind: ErrorKind = ErrorKind.IO

    def __init__(
        self,
        message: str,
        *,
        path: str | None = None,
        operation: str | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.path = path
        self.operation = operation


class InvalidPathError(FilesystemError):
    """Raised when a path is empty, relative, or climbs above the root."""

    kind = ErrorKind.INVALID_PATH


class NotFoundError(FilesystemError):
    """Raised when a file or directory path does not exist."""

    kind = ErrorKind.NOT_FOUND


class AccessDeniedError(FilesystemError):
    """Raised when the backend or the handle's read-only flag refuses access."""

    kind = ErrorKind.PERMISSION


class ConflictError(FilesystemError):
    """Raised when a target exists and replacing it is not allowed."""

    kind = ErrorKind.CONFLICT


class AmbiguousTargetError(FilesystemError):
    """Raised when a copy or move would land on its own source."""

    kind = ErrorKind.AMBIGUOUS_TARGET


class RootProtectionError(FilesystemError):
    """Raised on any attempt to delete or move the adapter root."""

    kind = ErrorKind.ROOT_PROTECTION


class BackendConnectionError(FilesystemError):
    """Raised when a backend cannot be reached or the handle is not connected."""

    kind = ErrorKind.CONNECTION


class InvalidTargetError(FilesystemError):
    """Raised when a path exists but is the wrong kind of entry for the operation."""

    kind = ErrorKind.INVALID_TARGET


class CapabilityNotSupportedError(FilesystemError):
    """Raised when a backend doesn't support a requested capability."""

    kind = ErrorKind.UNSUPPORTED


class BackendIOError(FilesystemError):
    """Raised on backend I/O failures that fit no more specific kind."""

    kind = ErrorKind.IO


class TransferError(FilesystemError):
    """Raised when a multi-step copy, move or delete stops part way.

    ``report`` lists everything that was already done before the failure;
    nothing is rolled back.
    """

    kind = ErrorKind.TRANSFER

    def __init__(
        self,
        message: str,
        *,
        report: TransferReport,
        path: str | None = None,
        operation: str | None = None,
    ) -> None:
        super().__init__(message, path=path, operation=operation)
        self.report = report
