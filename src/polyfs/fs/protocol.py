"""AdapterGateway protocol: runtime-checkable interfaces.

Split into a core protocol and opt-in capability protocols so that a
backend implements only the primitives it can honour. The discovery,
metadata and transfer layers talk to backends exclusively through these.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from datetime import datetime

    from .permissions import Permission
    from .types import EntryType, StatResult
    from .utils import NormalizedPath


@runtime_checkable
class AdapterGateway(Protocol):
    """Core interface every backend must implement.

    Paths are already normalized and relative to the backend root.
    Primitives raise the ``polyfs.fs.exceptions`` kinds, never raw
    backend exceptions.
    """

    root: str
    permission: Permission

    @property
    def read_only(self) -> bool: ...

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def connect(self) -> None:
        """Open the backend session.  No-op if already connected."""
        ...

    def close(self) -> None:
        """Release the backend session.  Idempotent."""
        ...

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def exists(self, path: NormalizedPath) -> bool: ...

    def stat_type(self, path: NormalizedPath) -> EntryType: ...

    def stat(self, path: NormalizedPath) -> StatResult: ...

    def list_directory(self, path: NormalizedPath) -> list[tuple[NormalizedPath, EntryType]]:
        """Direct children of a directory with their types, sorted by name."""
        ...

    def read_all(self, path: NormalizedPath) -> bytes: ...

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def write_all(self, path: NormalizedPath, data: bytes) -> None:
        """Create or overwrite a file.  The parent must already exist."""
        ...

    def append_all(self, path: NormalizedPath, data: bytes) -> None: ...

    def make_directory(self, path: NormalizedPath) -> None:
        """Create one directory.  The parent must already exist."""
        ...

    def remove_file(self, path: NormalizedPath) -> None: ...

    def remove_directory(self, path: NormalizedPath) -> None:
        """Remove an empty directory."""
        ...


# =====================================================================
# Capability protocols
# =====================================================================


@runtime_checkable
class SupportsPermissions(Protocol):
    """Opt-in: mode bits can be changed."""

    def change_permission(self, path: NormalizedPath, mode: int) -> None: ...


@runtime_checkable
class SupportsOwnership(Protocol):
    """Opt-in: owner and group can be changed."""

    def change_owner(self, path: NormalizedPath, owner: str) -> None: ...

    def change_group(self, path: NormalizedPath, group: str) -> None: ...


@runtime_checkable
class SupportsTouch(Protocol):
    """Opt-in: timestamps can be set, creating the file when missing."""

    def touch(
        self,
        path: NormalizedPath,
        modified: datetime | None = None,
        accessed: datetime | None = None,
    ) -> None: ...
