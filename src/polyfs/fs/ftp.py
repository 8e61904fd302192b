"""FtpAdapter: remote storage over FTP or FTPS via :mod:`ftplib`.

Listings prefer ``MLSD`` (machine-readable facts) and fall back to
parsing Unix-style ``LIST`` output for servers that reject it. FTP has
no creation or access times, so those snapshot fields stay ``None``.
"""

from __future__ import annotations

import io
import logging
import re
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from ftplib import FTP, FTP_TLS, all_errors, error_perm, error_proto, error_reply, error_temp
from typing import TYPE_CHECKING

from .base import BaseAdapter
from .exceptions import (
    AccessDeniedError,
    BackendConnectionError,
    BackendIOError,
    CapabilityNotSupportedError,
    ConflictError,
    FilesystemError,
    InvalidTargetError,
    NotFoundError,
)
from .permissions import mode_from_string
from .types import EntryType, StatResult
from .utils import ROOT, join_path, split_path

if TYPE_CHECKING:
    from .config import AdapterConfig
    from .utils import NormalizedPath

logger = logging.getLogger(__name__)

# Reply codes meaning "command not implemented / not understood"
_UNSUPPORTED_CODES = ("500", "501", "502", "504")

_MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}

_LIST_LINE = re.compile(
    r"^(?P<mode>[bcdlps-][rwxsStT-]{9})[+@.]?\s+"
    r"\d+\s+"
    r"(?P<owner>\S+)\s+"
    r"(?P<group>\S+)\s+"
    r"(?P<size>\d+)\s+"
    r"(?P<month>[A-Za-z]{3})\s+"
    r"(?P<day>\d{1,2})\s+"
    r"(?P<time>\d{1,2}:\d{2}|\d{4})\s+"
    r"(?P<name>.+)$"
)


def _reply_code(error: BaseException) -> str:
    return str(error)[:3]


@dataclass(frozen=True)
class _RemoteEntry:
    """One row of a remote directory listing."""

    name: str
    type: EntryType
    size: int = 0
    mode: int | None = None
    owner: str | None = None
    group: str | None = None
    modified_at: datetime | None = None
    perm: str | None = None

    def to_stat(self) -> StatResult:
        if self.mode is not None:
            readable = bool(self.mode & 0o400)
            writable = bool(self.mode & 0o200)
            executable = bool(self.mode & 0o100)
        elif self.perm is not None:
            # RFC 3659 perm fact
            readable = any(c in self.perm for c in "rle")
            writable = any(c in self.perm for c in "wacdfm")
            executable = "e" in self.perm
        else:
            # server reports no permissions; let the command itself decide
            readable = writable = True
            executable = self.type == EntryType.DIRECTORY
        return StatResult(
            type=self.type,
            size=self.size if self.type != EntryType.DIRECTORY else 0,
            mode=self.mode,
            owner=self.owner,
            group=self.group,
            modified_at=self.modified_at,
            readable=readable,
            writable=writable,
            executable=executable,
        )


def parse_mlsd_time(value: str) -> datetime | None:
    """Parse an MLSD ``modify`` fact (``YYYYMMDDHHMMSS[.sss]``, UTC)."""
    try:
        return datetime.strptime(value[:14], "%Y%m%d%H%M%S").replace(tzinfo=UTC)
    except ValueError:
        return None


def parse_mlsd_entry(name: str, facts: dict[str, str]) -> _RemoteEntry | None:
    """Build an entry from MLSD facts; ``None`` for ``.``/``..`` rows."""
    kind = facts.get("type", "").lower()
    if kind in ("cdir", "pdir") or name in (".", ".."):
        return None
    if kind == "dir":
        entry_type = EntryType.DIRECTORY
    elif kind.startswith("os.unix=sl") or kind.startswith("os.unix=symlink"):
        entry_type = EntryType.LINK
    else:
        entry_type = EntryType.FILE

    mode = facts.get("unix.mode")
    return _RemoteEntry(
        name=name,
        type=entry_type,
        size=int(facts.get("size", 0) or 0),
        mode=int(mode, 8) & 0o7777 if mode else None,
        owner=facts.get("unix.ownername") or facts.get("unix.owner"),
        group=facts.get("unix.groupname") or facts.get("unix.group"),
        modified_at=parse_mlsd_time(facts["modify"]) if "modify" in facts else None,
        perm=facts.get("perm"),
    )


def parse_list_line(line: str, now: datetime | None = None) -> _RemoteEntry | None:
    """Parse one Unix ``ls -l`` style LIST line; ``None`` when it doesn't match.

    Recent entries show a time instead of a year; the year is inferred so
    the date is not in the future.
    """
    match = _LIST_LINE.match(line.rstrip("\r\n"))
    if not match:
        return None

    mode_text = match["mode"]
    name = match["name"]
    if mode_text.startswith("d"):
        entry_type = EntryType.DIRECTORY
    elif mode_text.startswith("l"):
        entry_type = EntryType.LINK
        name = name.split(" -> ", 1)[0]
    else:
        entry_type = EntryType.FILE
    if name in (".", ".."):
        return None

    now = now or datetime.now(UTC)
    month = _MONTHS.get(match["month"].lower())
    modified_at = None
    if month is not None:
        day = int(match["day"])
        try:
            if ":" in match["time"]:
                hour, minute = (int(part) for part in match["time"].split(":"))
                modified_at = datetime(now.year, month, day, hour, minute, tzinfo=UTC)
                if modified_at > now + timedelta(days=1):
                    modified_at = modified_at.replace(year=now.year - 1)
            else:
                modified_at = datetime(int(match["time"]), month, day, tzinfo=UTC)
        except ValueError:
            modified_at = None

    return _RemoteEntry(
        name=name,
        type=entry_type,
        size=int(match["size"]),
        mode=mode_from_string(mode_text),
        owner=match["owner"],
        group=match["group"],
        modified_at=modified_at,
    )


class FtpAdapter(BaseAdapter):
    """Remote backend speaking FTP (or explicit FTPS with ``tls=True``).

    Virtual ``/`` maps to ``config.root`` on the server. Every command
    uses an absolute remote path, so the session's working directory
    (``initial_directory``) never affects which entry is addressed.
    """

    kind = "ftp"
    backend_errors = all_errors

    def __init__(self, config: AdapterConfig) -> None:
        super().__init__(config)
        self._ftp: FTP | None = None
        self._use_mlsd = True

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def _open(self) -> None:
        cfg = self.config
        ftp = FTP_TLS() if cfg.tls else FTP()
        try:
            ftp.connect(cfg.host, cfg.port, timeout=cfg.timeout)
            ftp.login(cfg.username, cfg.password or "")
            if cfg.tls:
                ftp.prot_p()
            ftp.set_pasv(cfg.passive)
            if cfg.initial_directory:
                ftp.cwd(cfg.initial_directory)
        except all_errors:
            ftp.close()
            raise
        self._ftp = ftp
        self._use_mlsd = True
        logger.debug("FTP session open on %s:%s as %s", cfg.host, cfg.port, cfg.username)

    def _release(self) -> None:
        ftp, self._ftp = self._ftp, None
        if ftp is None:
            return
        try:
            ftp.quit()
        finally:
            ftp.close()

    @property
    def ftp(self) -> FTP:
        if self._ftp is None:
            raise BackendConnectionError(f"No FTP session: {self.config.label}")
        return self._ftp

    # =========================================================================
    # Paths and errors
    # =========================================================================

    def _remote(self, path: NormalizedPath) -> str:
        if path == ROOT:
            return self.root
        if self.root == "/":
            return path
        return self.root + path

    def _map_error(
        self, error: BaseException, operation: str, path: str | None
    ) -> FilesystemError:
        message = f"{operation} failed for {path}: {error}"
        code = _reply_code(error)
        if isinstance(error, error_perm):
            text = str(error).lower()
            if code in _UNSUPPORTED_CODES:
                return CapabilityNotSupportedError(message, path=path, operation=operation)
            if code in ("530", "532"):
                return BackendConnectionError(message, path=path, operation=operation)
            if "exist" in text and "not" not in text and "no such" not in text:
                return ConflictError(message, path=path, operation=operation)
            if "permission" in text or "denied" in text or code == "553":
                return AccessDeniedError(message, path=path, operation=operation)
            if "not empty" in text:
                return InvalidTargetError(message, path=path, operation=operation)
            if code == "550":
                return NotFoundError(message, path=path, operation=operation)
            return AccessDeniedError(message, path=path, operation=operation)
        if isinstance(error, error_temp) and code == "421":
            return BackendConnectionError(message, path=path, operation=operation)
        if isinstance(error, (error_temp, error_reply, error_proto)):
            return BackendIOError(message, path=path, operation=operation)
        if isinstance(error, (OSError, EOFError)):
            return BackendConnectionError(message, path=path, operation=operation)
        return BackendIOError(message, path=path, operation=operation)

    # =========================================================================
    # Listings
    # =========================================================================

    def _entries(self, remote_dir: str) -> dict[str, _RemoteEntry]:
        """Entries of one remote directory keyed by name."""
        if self._use_mlsd:
            try:
                entries = {}
                for name, facts in self.ftp.mlsd(remote_dir):
                    entry = parse_mlsd_entry(name, facts)
                    if entry is not None:
                        entries[entry.name] = entry
                return entries
            except error_perm as e:
                if _reply_code(e) not in _UNSUPPORTED_CODES:
                    raise
                self._use_mlsd = False
                logger.debug("MLSD not supported by %s, using LIST", self.config.label)

        lines: list[str] = []
        self.ftp.retrlines(f"LIST -a {remote_dir}", lines.append)
        entries = {}
        for line in lines:
            entry = parse_list_line(line)
            if entry is None:
                logger.debug("Skipping unparsed LIST line: %r", line)
                continue
            entries[entry.name] = entry
        return entries

    def _lookup(self, path: NormalizedPath) -> _RemoteEntry | None:
        parent, name = split_path(path)
        try:
            entries = self._entries(self._remote(parent))
        except error_perm as e:
            if _reply_code(e) == "550":
                return None
            raise
        return entries.get(name)

    def _is_directory(self, remote: str) -> bool:
        """Probe a directory by changing into it and back."""
        current = self.ftp.pwd()
        try:
            self.ftp.cwd(remote)
        except error_perm:
            return False
        self.ftp.cwd(current)
        return True

    # =========================================================================
    # Queries
    # =========================================================================

    def _stat_type(self, path: NormalizedPath) -> EntryType:
        if path == ROOT:
            return EntryType.DIRECTORY if self._is_directory(self.root) else EntryType.NONE
        entry = self._lookup(path)
        return entry.type if entry else EntryType.NONE

    def _stat(self, path: NormalizedPath) -> StatResult:
        if path == ROOT:
            if not self._is_directory(self.root):
                raise NotFoundError(f"Root not found: {self.root}", path=path, operation="stat")
            return StatResult(
                type=EntryType.DIRECTORY, readable=True, writable=not self.read_only
            )
        entry = self._lookup(path)
        if entry is None:
            raise NotFoundError(f"Path not found: {path}", path=path, operation="stat")
        return entry.to_stat()

    def _list_directory(self, path: NormalizedPath) -> list[tuple[NormalizedPath, EntryType]]:
        entries = self._entries(self._remote(path))
        return [(join_path(path, name), entries[name].type) for name in sorted(entries)]

    def _read_all(self, path: NormalizedPath) -> bytes:
        buffer = io.BytesIO()
        self.ftp.retrbinary(f"RETR {self._remote(path)}", buffer.write)
        return buffer.getvalue()

    # =========================================================================
    # Mutations
    # =========================================================================

    def _write_all(self, path: NormalizedPath, data: bytes) -> None:
        if self._stat_type(path) == EntryType.DIRECTORY:
            raise InvalidTargetError(
                f"Path is a directory, not a file: {path}", path=path, operation="write"
            )
        self.ftp.storbinary(f"STOR {self._remote(path)}", io.BytesIO(data))

    def _append_all(self, path: NormalizedPath, data: bytes) -> None:
        self.ftp.storbinary(f"APPE {self._remote(path)}", io.BytesIO(data))

    def _make_directory(self, path: NormalizedPath) -> None:
        self.ftp.mkd(self._remote(path))

    def _remove_file(self, path: NormalizedPath) -> None:
        self.ftp.delete(self._remote(path))

    def _remove_directory(self, path: NormalizedPath) -> None:
        self.ftp.rmd(self._remote(path))

    # =========================================================================
    # Capabilities: permissions, timestamps
    # =========================================================================

    def change_permission(self, path: NormalizedPath, mode: int) -> None:
        self._call("chmod", path, self._change_permission, mode, mutating=True)

    def touch(
        self,
        path: NormalizedPath,
        modified: datetime | None = None,
        accessed: datetime | None = None,
    ) -> None:
        """Set the modification time with ``MFMT``.

        FTP keeps no access time, so *accessed* is ignored.
        """
        self._call("touch", path, self._touch, modified, mutating=True)

    def _change_permission(self, path: NormalizedPath, mode: int) -> None:
        self.ftp.sendcmd(f"SITE CHMOD {mode:o} {self._remote(path)}")

    def _touch(self, path: NormalizedPath, modified: datetime | None) -> None:
        if self._stat_type(path) == EntryType.NONE:
            self.ftp.storbinary(f"STOR {self._remote(path)}", io.BytesIO(b""))
        stamp = (modified or datetime.now(UTC)).astimezone(UTC)
        self.ftp.sendcmd(f"MFMT {stamp:%Y%m%d%H%M%S} {self._remote(path)}")
