"""BaseAdapter: connection lifecycle, access gates and error translation.

Concrete backends implement the ``_``-prefixed primitives. The public
methods wrap them so every backend behaves the same way:

- a primitive on a handle that is not ``CONNECTED`` raises
  :class:`BackendConnectionError`
- a mutating primitive on a read-only handle raises
  :class:`AccessDeniedError`
- backend exceptions are translated into the ``ErrorKind`` hierarchy and
  chained to the original
"""

from __future__ import annotations

import errno
import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from enum import Enum
from typing import TYPE_CHECKING, Any, TypeVar

from .exceptions import (
    AccessDeniedError,
    BackendConnectionError,
    BackendIOError,
    ConflictError,
    FilesystemError,
    InvalidTargetError,
    NotFoundError,
)
from .permissions import Permission
from .types import EntryType

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from .config import AdapterConfig
    from .types import StatResult
    from .utils import NormalizedPath

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ConnectionState(str, Enum):
    """Lifecycle of an adapter handle.  ``CLOSED`` is terminal."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    CLOSED = "closed"


class BaseAdapter(ABC):
    """Shared handle behaviour for every backend."""

    kind: str = "base"

    #: Exception types the backend library raises; translated by ``_translate``.
    backend_errors: tuple[type[BaseException], ...] = (OSError,)

    def __init__(self, config: AdapterConfig) -> None:
        self.config = config
        self.root: str = config.root
        self.permission: Permission = config.permission
        self.directory_mode = config.directory_mode
        self.file_mode = config.file_mode
        self.state = ConnectionState.DISCONNECTED

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.config.label!r}, state={self.state.value})"

    @property
    def read_only(self) -> bool:
        return self.permission == Permission.READ_ONLY

    @property
    def is_connected(self) -> bool:
        return self.state == ConnectionState.CONNECTED

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def connect(self) -> None:
        """Open the backend session.

        A failed attempt leaves the handle ``DISCONNECTED`` so it can be
        retried; a ``CLOSED`` handle can never reconnect.
        """
        if self.state == ConnectionState.CONNECTED:
            return
        if self.state == ConnectionState.CLOSED:
            raise BackendConnectionError(
                f"Adapter is closed: {self.config.label}", operation="connect"
            )

        self.state = ConnectionState.CONNECTING
        try:
            self._open()
        except Exception as e:
            self.state = ConnectionState.DISCONNECTED
            if isinstance(e, self.backend_errors) and not isinstance(e, FilesystemError):
                raise BackendConnectionError(
                    f"Cannot connect to {self.config.label}: {e}", operation="connect"
                ) from e
            raise

        self.state = ConnectionState.CONNECTED
        logger.debug("Connected %s", self.config.label)

    def close(self) -> None:
        """Release the backend session.  Safe to call more than once."""
        if self.state != ConnectionState.CONNECTED:
            if self.state == ConnectionState.CONNECTING:
                self.state = ConnectionState.DISCONNECTED
            return
        try:
            self._release()
        except self.backend_errors:
            logger.warning("Backend close failed for %s", self.config.label, exc_info=True)
        finally:
            self.state = ConnectionState.CLOSED
        logger.debug("Closed %s", self.config.label)

    def __enter__(self) -> BaseAdapter:
        self.connect()
        return self

    def __exit__(self, *args: object) -> None:
        self.close()

    @abstractmethod
    def _open(self) -> None: ...

    @abstractmethod
    def _release(self) -> None: ...

    # ------------------------------------------------------------------
    # Gates and error translation
    # ------------------------------------------------------------------

    def _require_connected(self, operation: str, path: str | None = None) -> None:
        if self.state != ConnectionState.CONNECTED:
            raise BackendConnectionError(
                f"Adapter is {self.state.value}, not connected: {self.config.label}",
                path=path,
                operation=operation,
            )

    def _require_writable(self, operation: str, path: str | None = None) -> None:
        if self.read_only:
            raise AccessDeniedError(
                f"Adapter is read-only: {self.config.label}",
                path=path,
                operation=operation,
            )

    @contextmanager
    def _translate(self, operation: str, path: str | None = None) -> Iterator[None]:
        """Re-raise backend exceptions as ``FilesystemError`` subclasses."""
        try:
            yield
        except FilesystemError:
            raise
        except self.backend_errors as e:
            raise self._map_error(e, operation, path) from e

    def _map_error(
        self, error: BaseException, operation: str, path: str | None
    ) -> FilesystemError:
        message = f"{operation} failed for {path}: {error}"
        if isinstance(error, FileNotFoundError):
            return NotFoundError(message, path=path, operation=operation)
        if isinstance(error, PermissionError):
            return AccessDeniedError(message, path=path, operation=operation)
        if isinstance(error, FileExistsError):
            return ConflictError(message, path=path, operation=operation)
        if isinstance(error, (IsADirectoryError, NotADirectoryError)):
            return InvalidTargetError(message, path=path, operation=operation)
        if isinstance(error, OSError) and error.errno == errno.ENOTEMPTY:
            return InvalidTargetError(message, path=path, operation=operation)
        return BackendIOError(message, path=path, operation=operation)

    def _call(
        self,
        operation: str,
        path: NormalizedPath,
        func: Callable[..., T],
        *args: Any,
        mutating: bool = False,
    ) -> T:
        self._require_connected(operation, path)
        if mutating:
            self._require_writable(operation, path)
        with self._translate(operation, path):
            return func(path, *args)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def exists(self, path: NormalizedPath) -> bool:
        return self.stat_type(path) != EntryType.NONE

    def stat_type(self, path: NormalizedPath) -> EntryType:
        return self._call("stat", path, self._stat_type)

    def stat(self, path: NormalizedPath) -> StatResult:
        return self._call("stat", path, self._stat)

    def list_directory(self, path: NormalizedPath) -> list[tuple[NormalizedPath, EntryType]]:
        return self._call("list", path, self._list_directory)

    def read_all(self, path: NormalizedPath) -> bytes:
        return self._call("read", path, self._read_all)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def write_all(self, path: NormalizedPath, data: bytes) -> None:
        self._call("write", path, self._write_all, data, mutating=True)

    def append_all(self, path: NormalizedPath, data: bytes) -> None:
        self._call("append", path, self._append_all, data, mutating=True)

    def make_directory(self, path: NormalizedPath) -> None:
        self._call("mkdir", path, self._make_directory, mutating=True)

    def remove_file(self, path: NormalizedPath) -> None:
        self._call("remove", path, self._remove_file, mutating=True)

    def remove_directory(self, path: NormalizedPath) -> None:
        self._call("rmdir", path, self._remove_directory, mutating=True)

    # ------------------------------------------------------------------
    # Backend primitives
    # ------------------------------------------------------------------

    @abstractmethod
    def _stat_type(self, path: NormalizedPath) -> EntryType: ...

    @abstractmethod
    def _stat(self, path: NormalizedPath) -> StatResult: ...

    @abstractmethod
    def _list_directory(
        self, path: NormalizedPath
    ) -> list[tuple[NormalizedPath, EntryType]]: ...

    @abstractmethod
    def _read_all(self, path: NormalizedPath) -> bytes: ...

    @abstractmethod
    def _write_all(self, path: NormalizedPath, data: bytes) -> None: ...

    @abstractmethod
    def _append_all(self, path: NormalizedPath, data: bytes) -> None: ...

    @abstractmethod
    def _make_directory(self, path: NormalizedPath) -> None: ...

    @abstractmethod
    def _remove_file(self, path: NormalizedPath) -> None: ...

    @abstractmethod
    def _remove_directory(self, path: NormalizedPath) -> None: ...
