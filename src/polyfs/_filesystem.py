"""Main Filesystem class: raw-path facade over one adapter handle."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from polyfs.fs import operations
from polyfs.fs.config import AdapterConfig, BackendKind, create_adapter
from polyfs.fs.directories import discover, list_entries
from polyfs.fs.exceptions import InvalidTargetError, NotFoundError
from polyfs.fs.metadata import get_metadata
from polyfs.fs.types import EntryType
from polyfs.fs.utils import normalize_path

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime

    from polyfs.fs.protocol import AdapterGateway
    from polyfs.fs.types import DirectoryManifest, MetadataSnapshot, TransferReport
    from polyfs.fs.utils import NormalizedPath


class Filesystem:
    """Uniform file operations over a local or FTP backend.

    Every method takes a raw path string, normalizes it first, and then
    delegates to the discovery, metadata and transfer layers. Copy and
    move accept another ``Filesystem`` (or any gateway) as ``target`` to
    cross backends.

    Usage::

        with Filesystem.local("/srv/data") as fs:
            fs.write("/reports/q1.txt", "totals")
            fs.copy("/reports", "/", target_name="archive")
    """

    def __init__(
        self,
        config: AdapterConfig | None = None,
        *,
        adapter: AdapterGateway | None = None,
    ) -> None:
        if adapter is None:
            if config is None:
                raise ValueError("Filesystem needs a config or an adapter")
            adapter = create_adapter(config)
        self.adapter = adapter

    @classmethod
    def local(cls, root: str, **options: Any) -> Filesystem:
        """Filesystem over a host directory."""
        return cls(AdapterConfig(backend=BackendKind.LOCAL, root=root, **options))

    @classmethod
    def ftp(cls, host: str, **options: Any) -> Filesystem:
        """Filesystem over an FTP (or FTPS with ``tls=True``) server."""
        return cls(AdapterConfig(backend=BackendKind.FTP, host=host, **options))

    def __repr__(self) -> str:
        return f"Filesystem({self.adapter!r})"

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def connect(self) -> None:
        self.adapter.connect()

    def close(self) -> None:
        """Close the underlying adapter.  Safe to call more than once."""
        self.adapter.close()

    def __enter__(self) -> Filesystem:
        self.connect()
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def exists(self, path: str) -> bool:
        return self.adapter.exists(normalize_path(path))

    def get_metadata(self, path: str) -> MetadataSnapshot:
        return get_metadata(self.adapter, normalize_path(path))

    def discover(self, path: str) -> DirectoryManifest:
        return discover(self.adapter, normalize_path(path))

    def read(self, path: str) -> bytes:
        normalized = normalize_path(path)
        entry_type = self.adapter.stat_type(normalized)
        if entry_type == EntryType.NONE:
            raise NotFoundError(f"File not found: {normalized}", path=normalized, operation="read")
        if entry_type == EntryType.DIRECTORY:
            raise InvalidTargetError(
                f"Path is a directory, not a file: {normalized}",
                path=normalized,
                operation="read",
            )
        return self.adapter.read_all(normalized)

    def read_text(self, path: str, encoding: str = "utf-8") -> str:
        return self.read(path).decode(encoding)

    def get_list(
        self,
        path: str = "/",
        *,
        recursive: bool = False,
        extensions: str | Iterable[str] | None = None,
        include_files: bool = True,
        include_folders: bool = True,
        name_mask: str | None = None,
    ) -> list[NormalizedPath]:
        return list_entries(
            self.adapter,
            normalize_path(path),
            recursive=recursive,
            extensions=extensions,
            include_files=include_files,
            include_folders=include_folders,
            name_mask=name_mask,
        )

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def write(
        self,
        path: str,
        data: bytes | str | None = None,
        *,
        replace: bool = True,
        append: bool = False,
        truncate: bool = False,
    ) -> TransferReport:
        """Write *data* to a file; ``data=None`` creates a directory."""
        return operations.write_file(
            self.adapter,
            normalize_path(path),
            data,
            replace=replace,
            append=append,
            truncate=truncate,
        )

    def delete(self, path: str, *, recursive: bool = True) -> TransferReport:
        return operations.delete(self.adapter, normalize_path(path), recursive=recursive)

    def copy(
        self,
        path: str,
        target_directory: str | None = None,
        target_name: str | None = None,
        *,
        replace: bool = True,
        target: Filesystem | AdapterGateway | None = None,
    ) -> TransferReport:
        return operations.copy(
            self.adapter,
            normalize_path(path),
            self._optional_path(target_directory),
            target_name,
            replace=replace,
            target=self._gateway_of(target),
        )

    def move(
        self,
        path: str,
        target_directory: str | None = None,
        target_name: str | None = None,
        *,
        replace: bool = True,
        target: Filesystem | AdapterGateway | None = None,
    ) -> TransferReport:
        return operations.move(
            self.adapter,
            normalize_path(path),
            self._optional_path(target_directory),
            target_name,
            replace=replace,
            target=self._gateway_of(target),
        )

    def rename(self, path: str, new_name: str, *, replace: bool = False) -> TransferReport:
        return operations.rename(self.adapter, normalize_path(path), new_name, replace=replace)

    def change_permission(
        self, path: str, mode: int | str, *, recursive: bool = False
    ) -> list[NormalizedPath]:
        return operations.change_permission(
            self.adapter, normalize_path(path), mode, recursive=recursive
        )

    def change_owner(
        self, path: str, owner: str, *, recursive: bool = False
    ) -> list[NormalizedPath]:
        return operations.change_owner(
            self.adapter, normalize_path(path), owner, recursive=recursive
        )

    def change_group(
        self, path: str, group: str, *, recursive: bool = False
    ) -> list[NormalizedPath]:
        return operations.change_group(
            self.adapter, normalize_path(path), group, recursive=recursive
        )

    def touch(
        self,
        path: str,
        modified: datetime | None = None,
        accessed: datetime | None = None,
        *,
        recursive: bool = False,
    ) -> list[NormalizedPath]:
        return operations.touch(
            self.adapter, normalize_path(path), modified, accessed, recursive=recursive
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _optional_path(path: str | None) -> NormalizedPath | None:
        return normalize_path(path) if path is not None else None

    @staticmethod
    def _gateway_of(target: Filesystem | AdapterGateway | None) -> AdapterGateway | None:
        if isinstance(target, Filesystem):
            return target.adapter
        return target
