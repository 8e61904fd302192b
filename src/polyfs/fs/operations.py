"""Standalone orchestration functions for multi-step filesystem operations.

Each function takes the gateway(s) it works on as parameters, so a copy
or move can stay on one backend or cross to another with the same code.
Sequencing rules:

- directories are created top-down before any file beneath them is written
- files are removed before directories, directories bottom-up
- the root can never be deleted or moved
- the first failure stops the operation; nothing is rolled back and the
  raised :class:`TransferError` carries a report of what was already done
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from .directories import discover
from .exceptions import (
    AccessDeniedError,
    AmbiguousTargetError,
    CapabilityNotSupportedError,
    ConflictError,
    FilesystemError,
    InvalidTargetError,
    NotFoundError,
    RootProtectionError,
    TransferError,
)
from .permissions import parse_mode
from .protocol import SupportsOwnership, SupportsPermissions, SupportsTouch
from .types import EntryType, TransferPlan, TransferReport
from .utils import (
    ROOT,
    is_within,
    iter_ancestors,
    parent_path,
    rebase_path,
    split_path,
    validate_name,
)

if TYPE_CHECKING:
    from datetime import datetime

    from .protocol import AdapterGateway
    from .types import DirectoryManifest
    from .utils import NormalizedPath

logger = logging.getLogger(__name__)


# =============================================================================
# Guards
# =============================================================================


def _require_writable(gateway: AdapterGateway, operation: str, path: NormalizedPath) -> None:
    if gateway.read_only:
        raise AccessDeniedError(
            f"Adapter is read-only, cannot {operation}: {path}", path=path, operation=operation
        )


def _require_capability(
    gateway: AdapterGateway, capability: type, operation: str, path: NormalizedPath
) -> None:
    if not isinstance(gateway, capability):
        raise CapabilityNotSupportedError(
            f"{type(gateway).__name__} does not support {operation}",
            path=path,
            operation=operation,
        )


def _ensure_parents(
    gateway: AdapterGateway, path: NormalizedPath, report: TransferReport
) -> None:
    """Create every missing ancestor of *path*, top-down."""
    for ancestor in iter_ancestors(path):
        entry_type = gateway.stat_type(ancestor)
        if entry_type == EntryType.DIRECTORY:
            continue
        if entry_type != EntryType.NONE:
            raise InvalidTargetError(
                f"Parent is not a directory: {ancestor}", path=ancestor, operation=report.operation
            )
        gateway.make_directory(ancestor)
        report.created_directories.append(ancestor)


# =============================================================================
# Write
# =============================================================================


def write_file(
    gateway: AdapterGateway,
    path: NormalizedPath,
    data: bytes | str | None = None,
    *,
    replace: bool = True,
    append: bool = False,
    truncate: bool = False,
) -> TransferReport:
    """Write a file, or create a directory when *data* is ``None``.

    Missing parent directories are created top-down. ``append`` adds to
    the end of the file (creating it when missing); ``truncate`` empties
    an existing file and ignores *data*.
    """
    if append and truncate:
        raise ValueError("append and truncate are mutually exclusive")

    _require_writable(gateway, "write", path)
    report = TransferReport(operation="write", source=path, destination=path)
    entry_type = gateway.stat_type(path)

    if truncate:
        if entry_type == EntryType.NONE:
            raise NotFoundError(
                f"Cannot truncate missing file: {path}", path=path, operation="write"
            )
        if entry_type == EntryType.DIRECTORY:
            raise InvalidTargetError(
                f"Cannot truncate a directory: {path}", path=path, operation="write"
            )
        gateway.write_all(path, b"")
        report.written_files.append(path)
        return report

    if data is None:
        if entry_type == EntryType.DIRECTORY:
            return report
        if entry_type != EntryType.NONE:
            raise InvalidTargetError(
                f"A file already exists at {path}", path=path, operation="write"
            )
        _ensure_parents(gateway, path, report)
        gateway.make_directory(path)
        report.created_directories.append(path)
        logger.debug("Created directory %s", path)
        return report

    if path == ROOT or entry_type == EntryType.DIRECTORY:
        raise InvalidTargetError(
            f"Path is a directory, not a file: {path}", path=path, operation="write"
        )
    if entry_type != EntryType.NONE and not replace and not append:
        raise ConflictError(f"File already exists: {path}", path=path, operation="write")

    payload = data.encode("utf-8") if isinstance(data, str) else data
    _ensure_parents(gateway, path, report)
    if append:
        gateway.append_all(path, payload)
    else:
        gateway.write_all(path, payload)
    report.written_files.append(path)
    logger.debug("Wrote %d bytes to %s", len(payload), path)
    return report


# =============================================================================
# Copy / Move
# =============================================================================


def _plan_transfer(
    operation: str,
    source_gateway: AdapterGateway,
    source: NormalizedPath,
    target_directory: NormalizedPath | None,
    target_name: str | None,
    replace: bool,
    target: AdapterGateway | None,
) -> tuple[TransferPlan, NormalizedPath, DirectoryManifest]:
    """Check every precondition and resolve the destination root."""
    target = target if target is not None else source_gateway
    same_backend = target is source_gateway

    source_type = source_gateway.stat_type(source)
    if source_type == EntryType.NONE:
        raise NotFoundError(f"Source not found: {source}", path=source, operation=operation)
    if target_name is not None:
        validate_name(target_name)

    if operation == "move":
        if source == ROOT:
            raise RootProtectionError("Cannot move the root", path=source, operation=operation)
        _require_writable(source_gateway, operation, source)

    if target_directory is None:
        target_directory = parent_path(source)
        if target_directory is None:
            raise AmbiguousTargetError(
                "Copying the root needs a target directory", path=source, operation=operation
            )

    _require_writable(target, operation, target_directory)
    directory_type = target.stat_type(target_directory)
    if directory_type == EntryType.NONE:
        raise InvalidTargetError(
            f"Target directory does not exist: {target_directory}",
            path=target_directory,
            operation=operation,
        )
    if directory_type != EntryType.DIRECTORY:
        raise InvalidTargetError(
            f"Target is not a directory: {target_directory}",
            path=target_directory,
            operation=operation,
        )
    if not target.stat(target_directory).writable:
        raise AccessDeniedError(
            f"Target directory is not writable: {target_directory}",
            path=target_directory,
            operation=operation,
        )

    is_directory = source_type == EntryType.DIRECTORY
    plan = TransferPlan(
        source=source,
        target=target,
        target_directory=target_directory,
        target_name=target_name,
        replace=replace,
    )
    destination = plan.destination_for(is_directory, split_path(source)[1])

    # an unnamed file going back into its own directory is refused on every target
    unnamed_file = not is_directory and target_name is None
    if destination == source and (same_backend or unnamed_file):
        raise AmbiguousTargetError(
            f"{operation} of {source} onto itself; give a different target directory or name",
            path=source,
            operation=operation,
        )
    if same_backend and is_directory and is_within(destination, source):
        raise InvalidTargetError(
            f"Cannot {operation} {source} into itself: {destination}",
            path=destination,
            operation=operation,
        )

    manifest = discover(source_gateway, source)

    if same_backend and is_directory:
        sources = set(manifest.entries)
        for entry in manifest.entries:
            if entry != source and rebase_path(entry, source, destination) in sources:
                raise InvalidTargetError(
                    f"Destination {destination} overlaps source {source}",
                    path=destination,
                    operation=operation,
                )

    if not is_directory:
        existing = target.stat_type(destination)
        if existing == EntryType.DIRECTORY:
            raise InvalidTargetError(
                f"Destination is a directory: {destination}", path=destination, operation=operation
            )
        if existing != EntryType.NONE and not replace:
            raise ConflictError(
                f"Destination exists: {destination}", path=destination, operation=operation
            )
    elif not replace:
        for entry in manifest.files:
            dest = rebase_path(entry, source, destination)
            if target.exists(dest):
                raise ConflictError(
                    f"Destination exists: {dest}", path=dest, operation=operation
                )

    return plan, destination, manifest


def _copy_tree(
    source_gateway: AdapterGateway,
    plan: TransferPlan,
    destination: NormalizedPath,
    manifest: DirectoryManifest,
    report: TransferReport,
) -> None:
    target = plan.target
    current = destination
    try:
        for directory in manifest.directories:
            current = rebase_path(directory, plan.source, destination)
            if target.stat_type(current) == EntryType.DIRECTORY:
                continue
            target.make_directory(current)
            report.created_directories.append(current)

        for path in manifest.files:
            current = rebase_path(path, plan.source, destination)
            target.write_all(current, source_gateway.read_all(path))
            report.written_files.append(current)
            logger.debug("%s %s -> %s", report.operation, path, current)
    except FilesystemError as e:
        logger.error(
            "%s failed for %s at %s: %s", report.operation, plan.source, current, e, exc_info=True
        )
        raise TransferError(
            f"{report.operation} of {plan.source} stopped at {current}: {e.message}",
            report=report,
            path=current,
            operation=report.operation,
        ) from e


def _remove_tree(
    gateway: AdapterGateway, manifest: DirectoryManifest, report: TransferReport
) -> None:
    current = manifest.root
    try:
        for path in manifest.files:
            current = path
            gateway.remove_file(path)
            report.removed_files.append(path)
        for path in reversed(manifest.directories):
            current = path
            gateway.remove_directory(path)
            report.removed_directories.append(path)
    except FilesystemError as e:
        logger.error(
            "%s failed for %s at %s: %s", report.operation, manifest.root, current, e, exc_info=True
        )
        raise TransferError(
            f"{report.operation} of {manifest.root} stopped at {current}: {e.message}",
            report=report,
            path=current,
            operation=report.operation,
        ) from e


def copy(
    source_gateway: AdapterGateway,
    source: NormalizedPath,
    target_directory: NormalizedPath | None = None,
    target_name: str | None = None,
    *,
    replace: bool = True,
    target: AdapterGateway | None = None,
) -> TransferReport:
    """Copy a file or directory tree, possibly onto another backend.

    A file lands at ``target_directory/(target_name or its name)``. A
    directory lands at ``target_directory/target_name``, or, without a
    name, has its contents merged straight into ``target_directory``.
    """
    plan, destination, manifest = _plan_transfer(
        "copy", source_gateway, source, target_directory, target_name, replace, target
    )
    report = TransferReport(operation="copy", source=source, destination=destination)
    _copy_tree(source_gateway, plan, destination, manifest, report)
    logger.info(
        "Copied %s -> %s (%d directories, %d files)",
        source,
        destination,
        len(report.created_directories),
        len(report.written_files),
    )
    return report


def move(
    source_gateway: AdapterGateway,
    source: NormalizedPath,
    target_directory: NormalizedPath | None = None,
    target_name: str | None = None,
    *,
    replace: bool = True,
    target: AdapterGateway | None = None,
) -> TransferReport:
    """Copy, then remove the source using the same manifest.

    If the copy stops part way, the source is left untouched.
    """
    plan, destination, manifest = _plan_transfer(
        "move", source_gateway, source, target_directory, target_name, replace, target
    )
    report = TransferReport(operation="move", source=source, destination=destination)
    _copy_tree(source_gateway, plan, destination, manifest, report)
    _remove_tree(source_gateway, manifest, report)
    logger.info("Moved %s -> %s (%d files)", source, destination, len(report.written_files))
    return report


def rename(
    gateway: AdapterGateway,
    path: NormalizedPath,
    new_name: str,
    *,
    replace: bool = False,
) -> TransferReport:
    """Give *path* a new name within its own parent directory."""
    parent = parent_path(path)
    if parent is None:
        raise RootProtectionError("Cannot rename the root", path=path, operation="rename")
    return move(gateway, path, parent, new_name, replace=replace)


# =============================================================================
# Delete
# =============================================================================


def delete(
    gateway: AdapterGateway, path: NormalizedPath, *, recursive: bool = True
) -> TransferReport:
    """Remove a file or a directory tree: files first, then directories bottom-up.

    With ``recursive=False`` only a file or an empty directory is removed.
    """
    if path == ROOT:
        raise RootProtectionError("Cannot delete the root", path=path, operation="delete")

    entry_type = gateway.stat_type(path)
    if entry_type == EntryType.NONE:
        raise NotFoundError(f"Path not found: {path}", path=path, operation="delete")
    _require_writable(gateway, "delete", path)

    manifest = discover(gateway, path)
    if not recursive and entry_type == EntryType.DIRECTORY and len(manifest.entries) > 1:
        raise InvalidTargetError(
            f"Directory is not empty: {path}", path=path, operation="delete"
        )

    report = TransferReport(operation="delete", source=path)
    _remove_tree(gateway, manifest, report)
    logger.info(
        "Deleted %s (%d files, %d directories)",
        path,
        len(report.removed_files),
        len(report.removed_directories),
    )
    return report


# =============================================================================
# Permissions, ownership, timestamps
# =============================================================================


def _targets(
    gateway: AdapterGateway, path: NormalizedPath, recursive: bool, operation: str
) -> list[NormalizedPath]:
    entry_type = gateway.stat_type(path)
    if entry_type == EntryType.NONE:
        raise NotFoundError(f"Path not found: {path}", path=path, operation=operation)
    if recursive and entry_type == EntryType.DIRECTORY:
        return list(discover(gateway, path).entries)
    return [path]


def change_permission(
    gateway: AdapterGateway,
    path: NormalizedPath,
    mode: int | str,
    *,
    recursive: bool = False,
) -> list[NormalizedPath]:
    """Set mode bits (``0o755`` or ``"755"``) on *path*, or its whole tree."""
    bits = parse_mode(mode)
    _require_capability(gateway, SupportsPermissions, "chmod", path)
    targets = _targets(gateway, path, recursive, "chmod")
    for target in targets:
        gateway.change_permission(target, bits)
    return targets


def change_owner(
    gateway: AdapterGateway,
    path: NormalizedPath,
    owner: str,
    *,
    recursive: bool = False,
) -> list[NormalizedPath]:
    _require_capability(gateway, SupportsOwnership, "chown", path)
    targets = _targets(gateway, path, recursive, "chown")
    for target in targets:
        gateway.change_owner(target, owner)
    return targets


def change_group(
    gateway: AdapterGateway,
    path: NormalizedPath,
    group: str,
    *,
    recursive: bool = False,
) -> list[NormalizedPath]:
    _require_capability(gateway, SupportsOwnership, "chgrp", path)
    targets = _targets(gateway, path, recursive, "chgrp")
    for target in targets:
        gateway.change_group(target, group)
    return targets


def touch(
    gateway: AdapterGateway,
    path: NormalizedPath,
    modified: datetime | None = None,
    accessed: datetime | None = None,
    *,
    recursive: bool = False,
) -> list[NormalizedPath]:
    """Set timestamps, creating *path* as an empty file when it is missing."""
    _require_capability(gateway, SupportsTouch, "touch", path)
    if gateway.stat_type(path) == EntryType.NONE:
        targets = [path]
    else:
        targets = _targets(gateway, path, recursive, "touch")
    for target in targets:
        gateway.touch(target, modified, accessed)
    return targets
