"""Permission enum and mode-bit helpers."""

from __future__ import annotations

from enum import Enum

from .exceptions import InvalidTargetError

DEFAULT_DIRECTORY_MODE = 0o755
DEFAULT_FILE_MODE = 0o644


class Permission(str, Enum):
    """Permission level for an adapter handle."""

    READ_WRITE = "read_write"
    READ_ONLY = "read_only"


def parse_mode(mode: int | str) -> int:
    """Accept ``0o755``, ``"755"``, ``"0755"`` or ``"0o755"`` and return the int.

    Only the permission bits (``0o7777``) are allowed.
    """
    if isinstance(mode, str):
        text = mode.strip().lower().removeprefix("0o")
        try:
            value = int(text, 8)
        except ValueError:
            raise InvalidTargetError(f"Invalid octal mode: {mode!r}") from None
    else:
        value = mode
    if not 0 <= value <= 0o7777:
        raise InvalidTargetError(f"Mode out of range: {oct(value)}")
    return value


def mode_from_string(text: str) -> int:
    """Parse the nine permission characters of an ``ls -l`` mode string.

    Setuid/setgid/sticky markers count as execute for the slot they occupy.
    """
    perms = text[1:10] if len(text) >= 10 else text[-9:]
    value = 0
    for index, char in enumerate(perms):
        if char in ("-", "S", "T"):
            continue
        value |= 1 << (8 - index)
    return value
