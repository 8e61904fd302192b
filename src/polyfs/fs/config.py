"""AdapterConfig, BackendKind and the adapter factory."""

from __future__ import annotations

import os
import posixpath
from dataclasses import dataclass, fields
from enum import Enum
from typing import TYPE_CHECKING, Any

from .exceptions import BackendConnectionError
from .permissions import DEFAULT_DIRECTORY_MODE, DEFAULT_FILE_MODE, Permission, parse_mode

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .base import BaseAdapter

PASSWORD_ENV_VAR = "POLYFS_FTP_PASSWORD"
DEFAULT_FTP_TIMEOUT = 900.0


class BackendKind(str, Enum):
    """Which storage backend an adapter talks to."""

    LOCAL = "local"
    FTP = "ftp"


@dataclass
class AdapterConfig:
    """Configuration for a single adapter handle."""

    backend: BackendKind = BackendKind.LOCAL
    """Storage backend to use."""

    root: str = "/"
    """Host directory (local) or remote directory (FTP) that ``/`` maps to."""

    permission: Permission = Permission.READ_WRITE
    """``READ_ONLY`` refuses every mutating primitive."""

    directory_mode: int = DEFAULT_DIRECTORY_MODE
    """Mode bits applied to directories this adapter creates."""

    file_mode: int = DEFAULT_FILE_MODE
    """Mode bits applied to files this adapter creates."""

    # FTP connection settings
    host: str = "localhost"
    port: int = 21
    username: str = "anonymous"
    password: str | None = None
    """Falls back to the ``POLYFS_FTP_PASSWORD`` environment variable."""

    timeout: float = DEFAULT_FTP_TIMEOUT
    passive: bool = True
    tls: bool = False
    """Use FTPS (explicit TLS) and protect the data channel."""

    initial_directory: str | None = None
    """Remote directory to change into right after login."""

    label: str = ""
    """Display name for the adapter."""

    def __post_init__(self) -> None:
        self.backend = BackendKind(self.backend)
        self.permission = Permission(self.permission)
        self.directory_mode = parse_mode(self.directory_mode)
        self.file_mode = parse_mode(self.file_mode)
        self.port = int(self.port)
        self.timeout = float(self.timeout)
        if self.backend == BackendKind.FTP:
            self.root = posixpath.normpath("/" + self.root.replace("\\", "/").strip("/"))
            if self.password is None:
                self.password = os.environ.get(PASSWORD_ENV_VAR, "")
        if not self.label:
            if self.backend == BackendKind.FTP:
                self.label = f"ftp://{self.host}:{self.port}{self.root}"
            else:
                self.label = f"local:{self.root}"

    @property
    def read_only(self) -> bool:
        return self.permission == Permission.READ_ONLY

    @classmethod
    def from_mapping(cls, options: Mapping[str, Any]) -> AdapterConfig:
        """Build a config from a plain dict, e.g. one loaded from a settings file.

        ``read_only`` is accepted as a boolean shortcut for ``permission``.
        Unknown keys are rejected.
        """
        known = {f.name for f in fields(cls)}
        values = dict(options)
        if "read_only" in values:
            read_only = values.pop("read_only")
            values.setdefault(
                "permission",
                Permission.READ_ONLY if read_only else Permission.READ_WRITE,
            )
        unknown = sorted(set(values) - known)
        if unknown:
            raise ValueError(f"Unknown adapter options: {', '.join(unknown)}")
        return cls(**values)


def create_adapter(config: AdapterConfig) -> BaseAdapter:
    """Instantiate the backend named by ``config.backend`` (not yet connected)."""
    if config.backend == BackendKind.LOCAL:
        from .local_disk import LocalDiskAdapter

        return LocalDiskAdapter(config)
    if config.backend == BackendKind.FTP:
        from .ftp import FtpAdapter

        return FtpAdapter(config)
    raise BackendConnectionError(f"Unsupported backend: {config.backend}")
