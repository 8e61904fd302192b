"""Shared fixtures for polyfs tests."""

from __future__ import annotations

import posixpath
from ftplib import error_perm
from typing import TYPE_CHECKING
from unittest.mock import patch

import pytest

from polyfs.fs.config import AdapterConfig, BackendKind
from polyfs.fs.exceptions import BackendIOError
from polyfs.fs.ftp import FtpAdapter
from polyfs.fs.local_disk import LocalDiskAdapter

if TYPE_CHECKING:
    from collections.abc import Iterator
    from pathlib import Path


def build_tree(root: Path, tree: dict) -> None:
    """Create files (bytes/str values) and directories (dict values) under *root*."""
    for name, value in tree.items():
        path = root / name
        if isinstance(value, dict):
            path.mkdir(parents=True, exist_ok=True)
            build_tree(path, value)
        else:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(value.encode() if isinstance(value, str) else value)


# ---------------------------------------------------------------------------
# Local disk
# ---------------------------------------------------------------------------


@pytest.fixture
def disk_root(tmp_path: Path) -> Path:
    root = tmp_path / "disk"
    root.mkdir()
    return root


@pytest.fixture
def disk(disk_root: Path) -> Iterator[LocalDiskAdapter]:
    """Connected LocalDiskAdapter rooted at a temporary directory."""
    adapter = LocalDiskAdapter(AdapterConfig(root=str(disk_root)))
    adapter.connect()
    yield adapter
    adapter.close()


@pytest.fixture
def other_root(tmp_path: Path) -> Path:
    root = tmp_path / "other"
    root.mkdir()
    return root


@pytest.fixture
def other_disk(other_root: Path) -> Iterator[LocalDiskAdapter]:
    """A second, independent local backend."""
    adapter = LocalDiskAdapter(AdapterConfig(root=str(other_root)))
    adapter.connect()
    yield adapter
    adapter.close()


# ---------------------------------------------------------------------------
# In-memory FTP server fake
# ---------------------------------------------------------------------------


def mode_to_string(mode: int, *, is_directory: bool = False) -> str:
    """Render mode bits the way ``ls -l`` does, e.g. ``drwxr-xr-x``."""
    chars = ["d" if is_directory else "-"]
    for shift in (6, 3, 0):
        bits = (mode >> shift) & 0o7
        chars.append("r" if bits & 0o4 else "-")
        chars.append("w" if bits & 0o2 else "-")
        chars.append("x" if bits & 0o1 else "-")
    return "".join(chars)


class FakeFTPServer:
    """State shared by every FakeFTP session of one test."""

    def __init__(self) -> None:
        self.dirs: set[str] = {"/"}
        self.files: dict[str, bytes] = {}
        self.modes: dict[str, int] = {}
        self.mtimes: dict[str, str] = {}
        self.password = "secret"
        self.mlsd_supported = True
        self.refuse_connections = False
        self.commands: list[str] = []
        self.sessions: list[FakeFTP] = []

    def add_dir(self, path: str) -> None:
        while path not in self.dirs:
            self.dirs.add(path)
            path = posixpath.dirname(path)

    def add_file(self, path: str, data: bytes) -> None:
        self.add_dir(posixpath.dirname(path))
        self.files[path] = data

    def children(self, path: str) -> list[str]:
        prefix = path.rstrip("/") + "/"
        names = {
            p[len(prefix):]
            for p in (*self.dirs, *self.files)
            if p.startswith(prefix) and p != prefix and "/" not in p[len(prefix):]
        }
        return sorted(names)


class FakeFTP:
    """Implements the slice of :class:`ftplib.FTP` that FtpAdapter uses."""

    def __init__(self, server: FakeFTPServer) -> None:
        self.server = server
        self.cwd_path = "/"
        self.passive: bool | None = None
        self.logged_in = False
        self.closed = False
        self.protected = False
        server.sessions.append(self)

    def _resolve(self, path: str) -> str:
        return posixpath.normpath(posixpath.join(self.cwd_path, path))

    def _log(self, command: str) -> None:
        self.server.commands.append(command)

    def connect(self, host: str = "", port: int = 0, timeout: float = -999) -> str:
        self._log(f"CONNECT {host}:{port}")
        self.timeout = timeout
        if self.server.refuse_connections:
            raise ConnectionRefusedError("Connection refused")
        return "220 Fake FTP ready"

    def login(self, user: str = "", passwd: str = "") -> str:
        self._log(f"USER {user}")
        if passwd != self.server.password:
            raise error_perm("530 Login incorrect.")
        self.logged_in = True
        return "230 Login successful."

    def prot_p(self) -> str:
        self.protected = True
        return "200 PROT now Private."

    def set_pasv(self, val: bool) -> None:
        self.passive = val

    def pwd(self) -> str:
        return self.cwd_path

    def cwd(self, dirname: str) -> str:
        path = self._resolve(dirname)
        if path not in self.server.dirs:
            raise error_perm("550 Failed to change directory.")
        self.cwd_path = path
        return "250 Directory successfully changed."

    def mlsd(self, path: str = "", facts: list[str] | None = None) -> Iterator[tuple[str, dict]]:
        self._log(f"MLSD {path}")
        if not self.server.mlsd_supported:
            raise error_perm("500 Unknown command.")
        directory = self._resolve(path)
        if directory not in self.server.dirs:
            raise error_perm("550 No such file or directory.")
        entries = [(".", {"type": "cdir"}), ("..", {"type": "pdir"})]
        for name in self.server.children(directory):
            full = posixpath.join(directory, name)
            if full in self.server.dirs:
                facts_for = {"type": "dir", "modify": "20240115103000"}
            else:
                facts_for = {
                    "type": "file",
                    "size": str(len(self.server.files[full])),
                    "modify": self.server.mtimes.get(full, "20240115103000"),
                }
            facts_for["unix.mode"] = oct(self.server.modes.get(full, 0o755))[2:]
            facts_for["unix.ownername"] = "ftpuser"
            facts_for["unix.groupname"] = "ftpgroup"
            entries.append((name, facts_for))
        return iter(entries)

    def retrlines(self, cmd: str, callback=None) -> str:
        self._log(cmd)
        directory = self._resolve(cmd.split(" ", 2)[2])
        if directory not in self.server.dirs:
            raise error_perm("550 No such file or directory.")
        for name in self.server.children(directory):
            full = posixpath.join(directory, name)
            is_dir = full in self.server.dirs
            mode = mode_to_string(self.server.modes.get(full, 0o755), is_directory=is_dir)
            size = 4096 if is_dir else len(self.server.files[full])
            callback(f"{mode}    1 ftpuser  ftpgroup {size:>8} Jan 15  2024 {name}")
        return "226 Transfer complete."

    def retrbinary(self, cmd: str, callback, blocksize: int = 8192) -> str:
        self._log(cmd)
        path = self._resolve(cmd.split(" ", 1)[1])
        if path not in self.server.files:
            raise error_perm("550 Failed to open file.")
        callback(self.server.files[path])
        return "226 Transfer complete."

    def storbinary(self, cmd: str, fp, blocksize: int = 8192) -> str:
        self._log(cmd)
        verb, raw = cmd.split(" ", 1)
        path = self._resolve(raw)
        if posixpath.dirname(path) not in self.server.dirs or path in self.server.dirs:
            raise error_perm("553 Could not create file.")
        data = fp.read()
        if verb == "APPE":
            self.server.files[path] = self.server.files.get(path, b"") + data
        else:
            self.server.files[path] = data
        return "226 Transfer complete."

    def mkd(self, dirname: str) -> str:
        self._log(f"MKD {dirname}")
        path = self._resolve(dirname)
        if path in self.server.dirs or path in self.server.files:
            raise error_perm("550 Create directory operation failed.")
        if posixpath.dirname(path) not in self.server.dirs:
            raise error_perm("550 Create directory operation failed.")
        self.server.dirs.add(path)
        return path

    def rmd(self, dirname: str) -> str:
        self._log(f"RMD {dirname}")
        path = self._resolve(dirname)
        if path not in self.server.dirs:
            raise error_perm("550 Remove directory operation failed.")
        if self.server.children(path):
            raise error_perm("550 Directory not empty.")
        self.server.dirs.discard(path)
        return "250 Remove directory operation successful."

    def delete(self, filename: str) -> str:
        self._log(f"DELE {filename}")
        path = self._resolve(filename)
        if path not in self.server.files:
            raise error_perm("550 Delete operation failed.")
        del self.server.files[path]
        return "250 Delete operation successful."

    def sendcmd(self, cmd: str) -> str:
        self._log(cmd)
        parts = cmd.split(" ")
        if parts[:2] == ["SITE", "CHMOD"]:
            path = self._resolve(parts[3])
            if path not in self.server.files and path not in self.server.dirs:
                raise error_perm("550 SITE CHMOD command failed.")
            self.server.modes[path] = int(parts[2], 8)
            return "200 SITE CHMOD command ok."
        if parts[0] == "MFMT":
            path = self._resolve(parts[2])
            self.server.mtimes[path] = parts[1]
            return f"213 Modify={parts[1]}; {path}"
        raise error_perm("500 Unknown command.")

    def quit(self) -> str:
        self._log("QUIT")
        return "221 Goodbye."

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def ftp_server() -> Iterator[FakeFTPServer]:
    """Fake FTP server patched in place of ftplib's FTP and FTP_TLS classes."""
    server = FakeFTPServer()
    server.add_dir("/srv")
    with (
        patch("polyfs.fs.ftp.FTP", new=lambda: FakeFTP(server)),
        patch("polyfs.fs.ftp.FTP_TLS", new=lambda: FakeFTP(server)),
    ):
        yield server


@pytest.fixture
def ftp_config() -> AdapterConfig:
    return AdapterConfig(
        backend=BackendKind.FTP,
        host="ftp.example.com",
        username="ftpuser",
        password="secret",
        root="/srv",
    )


@pytest.fixture
def ftp(ftp_server: FakeFTPServer, ftp_config: AdapterConfig) -> Iterator[FtpAdapter]:
    """Connected FtpAdapter talking to the fake server, rooted at /srv."""
    adapter = FtpAdapter(ftp_config)
    adapter.connect()
    yield adapter
    adapter.close()


# ---------------------------------------------------------------------------
# Recording gateway
# ---------------------------------------------------------------------------


class RecordingAdapter:
    """Wraps a gateway, records every mutating call, and can inject failures.

    ``fail_on`` holds ``(operation, path)`` pairs that raise BackendIOError
    instead of reaching the wrapped gateway.
    """

    def __init__(self, inner, fail_on: set[tuple[str, str]] | None = None) -> None:
        self.inner = inner
        self.root = inner.root
        self.permission = inner.permission
        self.calls: list[tuple[str, str]] = []
        self.fail_on = fail_on or set()

    @property
    def read_only(self) -> bool:
        return self.inner.read_only

    def _record(self, operation: str, path: str) -> None:
        if (operation, path) in self.fail_on:
            raise BackendIOError(f"injected failure: {operation} {path}", path=path)
        self.calls.append((operation, path))

    def connect(self) -> None:
        self.inner.connect()

    def close(self) -> None:
        self.inner.close()

    def exists(self, path):
        return self.inner.exists(path)

    def stat_type(self, path):
        return self.inner.stat_type(path)

    def stat(self, path):
        return self.inner.stat(path)

    def list_directory(self, path):
        return self.inner.list_directory(path)

    def read_all(self, path):
        return self.inner.read_all(path)

    def write_all(self, path, data):
        self._record("write", path)
        self.inner.write_all(path, data)

    def append_all(self, path, data):
        self._record("append", path)
        self.inner.append_all(path, data)

    def make_directory(self, path):
        self._record("mkdir", path)
        self.inner.make_directory(path)

    def remove_file(self, path):
        self._record("remove", path)
        self.inner.remove_file(path)

    def remove_directory(self, path):
        self._record("rmdir", path)
        self.inner.remove_directory(path)


@pytest.fixture
def make_tree():
    """The ``build_tree`` helper, as a fixture."""
    return build_tree


@pytest.fixture
def recording_adapter() -> type[RecordingAdapter]:
    """The RecordingAdapter class, for tests that need ``fail_on``."""
    return RecordingAdapter
