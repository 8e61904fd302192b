"""Directory discovery: subtree manifests and filtered listings."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .exceptions import InvalidTargetError, NotFoundError
from .types import DirectoryManifest, EntryType
from .utils import matches_extension, matches_name_mask, parse_extension_list, split_path

if TYPE_CHECKING:
    from collections.abc import Iterable

    from .protocol import AdapterGateway
    from .utils import NormalizedPath

logger = logging.getLogger(__name__)


def discover(gateway: AdapterGateway, path: NormalizedPath) -> DirectoryManifest:
    """Enumerate the subtree at *path*.

    - missing path, or a directory gone before it is listed: empty manifest
    - file or link: ``files == (path,)``
    - directory: ``directories`` starts with *path* and lists every
      directory before its descendants; ``files`` follows traversal order

    Links are leaves: they are listed in ``files`` and never descended,
    so a link cycle cannot make the walk loop.
    """
    entry_type = gateway.stat_type(path)
    if entry_type == EntryType.NONE:
        return DirectoryManifest(root=path)
    if entry_type != EntryType.DIRECTORY:
        return DirectoryManifest(root=path, files=(path,))

    directories: list[NormalizedPath] = []
    files: list[NormalizedPath] = []
    visited: set[NormalizedPath] = set()
    stack = [path]

    while stack:
        directory = stack.pop()
        if directory in visited:
            continue
        visited.add(directory)
        directories.append(directory)

        try:
            children = gateway.list_directory(directory)
        except NotFoundError:
            if directory != path:
                raise
            logger.debug("Directory %s vanished before discovery", path)
            return DirectoryManifest(root=path)

        subdirectories: list[NormalizedPath] = []
        for child, child_type in children:
            if child_type == EntryType.DIRECTORY:
                subdirectories.append(child)
            elif child_type != EntryType.NONE:
                files.append(child)
        stack.extend(reversed(subdirectories))

    logger.debug(
        "Discovered %s: %d directories, %d files", path, len(directories), len(files)
    )
    return DirectoryManifest(root=path, directories=tuple(directories), files=tuple(files))


def list_entries(
    gateway: AdapterGateway,
    path: NormalizedPath,
    *,
    recursive: bool = False,
    extensions: str | Iterable[str] | None = None,
    include_files: bool = True,
    include_folders: bool = True,
    name_mask: str | None = None,
) -> list[NormalizedPath]:
    """List the contents of a directory, sorted.

    *extensions* (``"pdf,doc"`` or an iterable) filters files only;
    *name_mask* (shell pattern) filters both files and folders. The
    directory itself is never part of the result.
    """
    entry_type = gateway.stat_type(path)
    if entry_type == EntryType.NONE:
        raise NotFoundError(f"Directory not found: {path}", path=path, operation="list")
    if entry_type != EntryType.DIRECTORY:
        raise InvalidTargetError(f"Not a directory: {path}", path=path, operation="list")

    wanted = parse_extension_list(extensions)

    if recursive:
        manifest = discover(gateway, path)
        folders = [d for d in manifest.directories if d != path]
        leaves = list(manifest.files)
    else:
        folders = []
        leaves = []
        for child, child_type in gateway.list_directory(path):
            if child_type == EntryType.DIRECTORY:
                folders.append(child)
            elif child_type != EntryType.NONE:
                leaves.append(child)

    results: list[NormalizedPath] = []
    if include_folders:
        results.extend(f for f in folders if matches_name_mask(split_path(f)[1], name_mask))
    if include_files:
        for leaf in leaves:
            name = split_path(leaf)[1]
            if matches_extension(name, wanted) and matches_name_mask(name, name_mask):
                results.append(leaf)
    return sorted(results)
