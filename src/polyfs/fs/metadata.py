"""Metadata snapshots built from stat facts and file content."""

from __future__ import annotations

import hashlib
import logging
from typing import TYPE_CHECKING

from .directories import discover
from .exceptions import AccessDeniedError
from .types import EntryType, MetadataSnapshot
from .utils import ROOT, guess_mime_type, parent_path, split_extension, split_path

if TYPE_CHECKING:
    from .protocol import AdapterGateway
    from .types import StatResult
    from .utils import NormalizedPath

logger = logging.getLogger(__name__)


def compute_content_hashes(content: bytes) -> tuple[str, str, bytes]:
    """Return (md5_hex, sha1_hex, sha1_raw) for *content*."""
    sha1 = hashlib.sha1(content)
    return hashlib.md5(content).hexdigest(), sha1.hexdigest(), sha1.digest()


def directory_size(gateway: AdapterGateway, path: NormalizedPath) -> int:
    """Sum of the sizes of every file beneath *path*."""
    manifest = discover(gateway, path)
    return sum(gateway.stat(f).size for f in manifest.files)


def _read_if_allowed(
    gateway: AdapterGateway, path: NormalizedPath, st: StatResult
) -> bytes | None:
    """File content, or ``None`` when the backend will not let us read it."""
    if not st.readable:
        return None
    try:
        return gateway.read_all(path)
    except AccessDeniedError:
        logger.debug("No read access to %s; content hashes left empty", path)
        return None


def get_metadata(gateway: AdapterGateway, path: NormalizedPath) -> MetadataSnapshot:
    """Collect a point-in-time snapshot of *path*.

    A missing path yields ``exists=False`` with every dependent field
    empty; this is a query, not an error. An unreadable file still gets a
    snapshot, sized from its stat facts and without content hashes.
    """
    name = split_path(path)[1]
    entry_type = gateway.stat_type(path)
    if entry_type == EntryType.NONE:
        return MetadataSnapshot(path=path, exists=False, is_root=path == ROOT, name=name)

    st: StatResult = gateway.stat(path)

    extension = stem = mime_type = None
    md5 = sha1 = None
    sha1_raw = None
    if entry_type == EntryType.DIRECTORY:
        size = directory_size(gateway, path)
    elif entry_type == EntryType.FILE:
        stem, extension = split_extension(name)
        mime_type = guess_mime_type(name)
        content = _read_if_allowed(gateway, path, st)
        if content is None:
            size = st.size
        else:
            size = len(content)
            md5, sha1, sha1_raw = compute_content_hashes(content)
    else:
        size = st.size

    return MetadataSnapshot(
        path=path,
        exists=True,
        type=entry_type,
        is_root=path == ROOT,
        name=name,
        parent=parent_path(path),
        extension=extension,
        name_without_extension=stem,
        size=size,
        mime_type=mime_type,
        owner=st.owner,
        group=st.group,
        mode=st.mode,
        created_at=st.created_at,
        accessed_at=st.accessed_at,
        modified_at=st.modified_at,
        readable=st.readable,
        writable=st.writable,
        executable=st.executable,
        md5=md5,
        sha1=sha1,
        sha1_raw=sha1_raw,
    )
