"""Path utilities, extension and name filters, mime detection."""

from __future__ import annotations

import fnmatch
import mimetypes
import posixpath
from typing import TYPE_CHECKING, NewType

from .exceptions import InvalidPathError

if TYPE_CHECKING:
    from collections.abc import Iterable

NormalizedPath = NewType("NormalizedPath", str)

ROOT = NormalizedPath("/")

# Reserved filenames (Windows compatibility)
RESERVED_NAMES = {
    "CON", "PRN", "AUX", "NUL",
    "COM1", "COM2", "COM3", "COM4", "COM5", "COM6", "COM7", "COM8", "COM9",
    "LPT1", "LPT2", "LPT3", "LPT4", "LPT5", "LPT6", "LPT7", "LPT8", "LPT9",
}


# =============================================================================
# Path Utilities
# =============================================================================


def normalize_path(path: str) -> NormalizedPath:
    """Canonicalize a raw path into an absolute, separator-clean form.

    - Unifies ``\\`` to ``/``
    - Drops empty and ``.`` segments
    - ``..`` removes the previous segment
    - Removes trailing slash (except for root)

    Raises :class:`InvalidPathError` for an empty or relative path, a path
    containing a null byte, or a ``..`` that would climb above the root.

    Examples:
        normalize_path("/a/./b/../c") -> "/a/c"
        normalize_path("\\\\a\\\\b") -> "/a/b"
        normalize_path("/foo//bar/") -> "/foo/bar"
        normalize_path("/") -> "/"
    """
    if not isinstance(path, str) or not path:
        raise InvalidPathError("Path is empty", path=path or None)

    if "\x00" in path:
        raise InvalidPathError("Path contains null bytes", path=path)

    unified = path.replace("\\", "/")
    if not unified.startswith("/"):
        raise InvalidPathError(f"Path must be absolute: {path}", path=path)

    segments: list[str] = []
    for segment in unified.split("/"):
        if segment in ("", "."):
            continue
        if segment == "..":
            if not segments:
                raise InvalidPathError(f"Path escapes the root: {path}", path=path)
            segments.pop()
            continue
        segments.append(segment)

    return NormalizedPath("/" + "/".join(segments))


def split_path(path: NormalizedPath) -> tuple[NormalizedPath, str]:
    """Split path into (parent_dir, name).

    Examples:
        split_path("/foo/bar.txt") -> ("/foo", "bar.txt")
        split_path("/foo.txt") -> ("/", "foo.txt")
        split_path("/") -> ("/", "")
    """
    if path == ROOT:
        return ROOT, ""
    parent, name = posixpath.split(path)
    return NormalizedPath(parent), name


def parent_path(path: NormalizedPath) -> NormalizedPath | None:
    """Return the parent directory, or ``None`` for the root."""
    if path == ROOT:
        return None
    return split_path(path)[0]


def _check_segment(name: str) -> None:
    if not name or name in (".", ".."):
        raise InvalidPathError(f"Invalid name: {name!r}", path=name or None)
    if "/" in name or "\\" in name:
        raise InvalidPathError(f"Name must not contain separators: {name}", path=name)
    if "\x00" in name:
        raise InvalidPathError("Name contains null bytes", path=name)


def validate_name(name: str) -> str:
    """Check that a caller-supplied *name* is usable as a single path segment."""
    _check_segment(name)
    if len(name) > 255:
        raise InvalidPathError("Filename too long (max 255 characters)", path=name)
    base_name = name.upper().split(".")[0]
    if base_name in RESERVED_NAMES:
        raise InvalidPathError(f"Reserved filename: {name}", path=name)
    return name


def join_path(directory: NormalizedPath, name: str) -> NormalizedPath:
    """Append a single segment to a normalized directory path."""
    _check_segment(name)
    if directory == ROOT:
        return NormalizedPath("/" + name)
    return NormalizedPath(f"{directory}/{name}")


def is_within(path: NormalizedPath, ancestor: NormalizedPath) -> bool:
    """True when *path* equals *ancestor* or lies beneath it."""
    if ancestor == ROOT or path == ancestor:
        return True
    return path.startswith(ancestor + "/")


def rebase_path(
    path: NormalizedPath, old_root: NormalizedPath, new_root: NormalizedPath
) -> NormalizedPath:
    """Replace the *old_root* prefix of *path* with *new_root*.

    Examples:
        rebase_path("/src/a/b.txt", "/src", "/dst") -> "/dst/a/b.txt"
        rebase_path("/src", "/src", "/dst") -> "/dst"
    """
    if not is_within(path, old_root):
        raise InvalidPathError(f"{path} is not under {old_root}", path=path)
    if path == old_root:
        return new_root
    suffix = path[len(old_root):] if old_root != ROOT else path
    if new_root == ROOT:
        return NormalizedPath(suffix)
    return NormalizedPath(new_root + suffix)


def iter_ancestors(path: NormalizedPath) -> list[NormalizedPath]:
    """Return every ancestor of *path*, top-down, excluding the root and *path*.

    Examples:
        iter_ancestors("/a/b/c.txt") -> ["/a", "/a/b"]
    """
    parts = path.strip("/").split("/")
    return [NormalizedPath("/" + "/".join(parts[:i])) for i in range(1, len(parts))]


# =============================================================================
# Names, Extensions, Filters
# =============================================================================


def split_extension(name: str) -> tuple[str, str]:
    """Split a file name into (name_without_extension, extension).

    A leading dot does not start an extension.

    Examples:
        split_extension("report.pdf") -> ("report", "pdf")
        split_extension("archive.tar.gz") -> ("archive.tar", "gz")
        split_extension(".bashrc") -> (".bashrc", "")
    """
    stem, ext = posixpath.splitext(name)
    return stem, ext.lstrip(".")


def parse_extension_list(value: str | Iterable[str] | None) -> frozenset[str]:
    """Turn ``"pdf, .DOC"`` or ``["pdf", "doc"]`` into ``{"pdf", "doc"}``."""
    if value is None:
        return frozenset()
    items = value.split(",") if isinstance(value, str) else value
    return frozenset(item.strip().lstrip(".").lower() for item in items if item.strip())


def matches_extension(name: str, extensions: frozenset[str]) -> bool:
    """True when *extensions* is empty or contains the extension of *name*."""
    if not extensions:
        return True
    return split_extension(name)[1].lower() in extensions


def matches_name_mask(name: str, mask: str | None) -> bool:
    """Shell-style match of *name* against *mask*; ``None`` matches everything."""
    if not mask:
        return True
    return fnmatch.fnmatchcase(name, mask)


def guess_mime_type(path: str) -> str:
    """Guess MIME type from file extension."""
    mime, _ = mimetypes.guess_type(path)
    return mime or "application/octet-stream"
