"""LocalDiskAdapter: direct host filesystem access under a root directory."""

from __future__ import annotations

import contextlib
import os
import shutil
import stat
import tempfile
import time
from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING

from .base import BaseAdapter
from .exceptions import (
    AccessDeniedError,
    BackendConnectionError,
    InvalidTargetError,
)
from .types import EntryType, StatResult
from .utils import join_path

if TYPE_CHECKING:
    from .config import AdapterConfig
    from .utils import NormalizedPath


def _entry_type(mode: int) -> EntryType:
    if stat.S_ISLNK(mode):
        return EntryType.LINK
    if stat.S_ISDIR(mode):
        return EntryType.DIRECTORY
    return EntryType.FILE


def _timestamp(value: float) -> datetime:
    return datetime.fromtimestamp(value, tz=UTC)


class LocalDiskAdapter(BaseAdapter):
    """Host filesystem access. No caching, no versioning.

    Virtual ``/`` maps to ``config.root``. Security: _resolve_path() ensures
    every path stays within the root. A symlink as the *last* component is
    handled as a link (stat, unlink); symlinked parents, and links that are
    followed for reading, must resolve inside the root.
    """

    kind = "local"

    def __init__(self, config: AdapterConfig) -> None:
        super().__init__(config)
        self.host_dir = Path(config.root).expanduser().resolve()
        self.root = str(self.host_dir)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def _open(self) -> None:
        if not self.host_dir.exists():
            raise BackendConnectionError(
                f"Host directory does not exist: {self.host_dir}", operation="connect"
            )
        if not self.host_dir.is_dir():
            raise BackendConnectionError(
                f"Host path is not a directory: {self.host_dir}", operation="connect"
            )

    def _release(self) -> None:
        pass

    # =========================================================================
    # Path Resolution & Security
    # =========================================================================

    def _resolve_path(self, virtual_path: NormalizedPath, follow_symlinks: bool = False) -> Path:
        """Map a virtual path to a physical path on disk.

        Validates that the result stays within the root directory.
        """
        rel = virtual_path.lstrip("/")
        if not rel:
            return self.host_dir

        candidate = self.host_dir / rel
        parent = candidate.parent.resolve()
        self._check_contained(parent, virtual_path)
        target = parent / candidate.name

        if follow_symlinks and target.is_symlink():
            resolved = target.resolve()
            self._check_contained(resolved, virtual_path)
            return resolved
        return target

    def _check_contained(self, physical: Path, virtual_path: str) -> None:
        try:
            physical.relative_to(self.host_dir)
        except ValueError:
            raise AccessDeniedError(
                f"Path traversal detected: {virtual_path} resolves outside the root",
                path=virtual_path,
            ) from None

    # =========================================================================
    # Queries
    # =========================================================================

    def _stat_type(self, path: NormalizedPath) -> EntryType:
        try:
            st = os.lstat(self._resolve_path(path))
        except (FileNotFoundError, NotADirectoryError):
            return EntryType.NONE
        return _entry_type(st.st_mode)

    def _stat(self, path: NormalizedPath) -> StatResult:
        target = self._resolve_path(path)
        st = os.lstat(target)
        entry_type = _entry_type(st.st_mode)
        return StatResult(
            type=entry_type,
            size=st.st_size if entry_type != EntryType.DIRECTORY else 0,
            mode=stat.S_IMODE(st.st_mode),
            owner=self._owner_name(target, st, entry_type),
            group=self._group_name(target, st, entry_type),
            created_at=_timestamp(getattr(st, "st_birthtime", st.st_ctime)),
            accessed_at=_timestamp(st.st_atime),
            modified_at=_timestamp(st.st_mtime),
            readable=os.access(target, os.R_OK),
            writable=os.access(target, os.W_OK),
            executable=os.access(target, os.X_OK),
        )

    @staticmethod
    def _owner_name(target: Path, st: os.stat_result, entry_type: EntryType) -> str:
        if entry_type == EntryType.LINK:
            return str(st.st_uid)
        try:
            return target.owner()
        except (KeyError, NotImplementedError):
            return str(st.st_uid)

    @staticmethod
    def _group_name(target: Path, st: os.stat_result, entry_type: EntryType) -> str:
        if entry_type == EntryType.LINK:
            return str(st.st_gid)
        try:
            return target.group()
        except (KeyError, NotImplementedError):
            return str(st.st_gid)

    def _list_directory(self, path: NormalizedPath) -> list[tuple[NormalizedPath, EntryType]]:
        resolved = self._resolve_path(path, follow_symlinks=True)
        children: list[tuple[NormalizedPath, EntryType]] = []
        with os.scandir(resolved) as entries:
            for entry in entries:
                if entry.is_symlink():
                    entry_type = EntryType.LINK
                elif entry.is_dir(follow_symlinks=False):
                    entry_type = EntryType.DIRECTORY
                else:
                    entry_type = EntryType.FILE
                children.append((join_path(path, entry.name), entry_type))
        return sorted(children)

    def _read_all(self, path: NormalizedPath) -> bytes:
        return self._resolve_path(path, follow_symlinks=True).read_bytes()

    # =========================================================================
    # Mutations
    # =========================================================================

    def _write_all(self, path: NormalizedPath, data: bytes) -> None:
        """Atomic via tempfile + replace; keeps the mode of a replaced file."""
        target = self._resolve_path(path)
        if target.is_dir() and not target.is_symlink():
            raise InvalidTargetError(
                f"Path is a directory, not a file: {path}", path=path, operation="write"
            )

        mode = stat.S_IMODE(target.stat().st_mode) if target.is_file() else self.file_mode
        fd, tmp_path = tempfile.mkstemp(
            dir=str(target.parent), prefix=f".{target.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.chmod(tmp_path, mode)
            Path(tmp_path).replace(target)
        except Exception:
            with contextlib.suppress(OSError):
                Path(tmp_path).unlink()
            raise

    def _append_all(self, path: NormalizedPath, data: bytes) -> None:
        target = self._resolve_path(path, follow_symlinks=True)
        created = not target.exists()
        with target.open("ab") as f:
            f.write(data)
        if created:
            os.chmod(target, self.file_mode)

    def _make_directory(self, path: NormalizedPath) -> None:
        target = self._resolve_path(path)
        target.mkdir(mode=self.directory_mode)
        os.chmod(target, self.directory_mode)

    def _remove_file(self, path: NormalizedPath) -> None:
        target = self._resolve_path(path)
        if target.is_dir() and not target.is_symlink():
            raise InvalidTargetError(
                f"Path is a directory, not a file: {path}", path=path, operation="remove"
            )
        target.unlink()

    def _remove_directory(self, path: NormalizedPath) -> None:
        target = self._resolve_path(path)
        if target.is_symlink():
            raise InvalidTargetError(
                f"Path is a link, not a directory: {path}", path=path, operation="rmdir"
            )
        target.rmdir()

    # =========================================================================
    # Capabilities: permissions, ownership, timestamps
    # =========================================================================

    def change_permission(self, path: NormalizedPath, mode: int) -> None:
        self._call("chmod", path, self._change_permission, mode, mutating=True)

    def change_owner(self, path: NormalizedPath, owner: str) -> None:
        self._call("chown", path, self._change_owner, owner, mutating=True)

    def change_group(self, path: NormalizedPath, group: str) -> None:
        self._call("chgrp", path, self._change_group, group, mutating=True)

    def touch(
        self,
        path: NormalizedPath,
        modified: datetime | None = None,
        accessed: datetime | None = None,
    ) -> None:
        self._call("touch", path, self._touch, modified, accessed, mutating=True)

    def _change_permission(self, path: NormalizedPath, mode: int) -> None:
        os.chmod(self._resolve_path(path, follow_symlinks=True), mode)

    def _change_owner(self, path: NormalizedPath, owner: str) -> None:
        try:
            shutil.chown(self._resolve_path(path, follow_symlinks=True), user=owner)
        except LookupError as e:
            raise InvalidTargetError(
                f"Unknown user: {owner}", path=path, operation="chown"
            ) from e

    def _change_group(self, path: NormalizedPath, group: str) -> None:
        try:
            shutil.chown(self._resolve_path(path, follow_symlinks=True), group=group)
        except LookupError as e:
            raise InvalidTargetError(
                f"Unknown group: {group}", path=path, operation="chgrp"
            ) from e

    def _touch(
        self,
        path: NormalizedPath,
        modified: datetime | None,
        accessed: datetime | None,
    ) -> None:
        target = self._resolve_path(path, follow_symlinks=True)
        if not target.exists():
            target.touch(mode=self.file_mode)
        mtime = modified.timestamp() if modified else time.time()
        atime = accessed.timestamp() if accessed else mtime
        os.utime(target, (atime, mtime))
