"""Tests for LocalDiskAdapter lifecycle, primitives and root containment."""

from __future__ import annotations

import os
import stat
import sys
from datetime import UTC, datetime

import pytest

from polyfs.fs.base import ConnectionState
from polyfs.fs.config import AdapterConfig
from polyfs.fs.exceptions import (
    AccessDeniedError,
    BackendConnectionError,
    ConflictError,
    InvalidTargetError,
    NotFoundError,
)
from polyfs.fs.local_disk import LocalDiskAdapter
from polyfs.fs.permissions import Permission
from polyfs.fs.protocol import (
    AdapterGateway,
    SupportsOwnership,
    SupportsPermissions,
    SupportsTouch,
)
from polyfs.fs.types import EntryType

posix_only = pytest.mark.skipif(sys.platform == "win32", reason="POSIX permissions")


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


class TestLifecycle:
    def test_connect_and_close(self, disk_root):
        adapter = LocalDiskAdapter(AdapterConfig(root=str(disk_root)))
        assert adapter.state == ConnectionState.DISCONNECTED
        adapter.connect()
        assert adapter.state == ConnectionState.CONNECTED
        adapter.close()
        assert adapter.state == ConnectionState.CLOSED

    def test_nonexistent_root_stays_disconnected(self, tmp_path):
        adapter = LocalDiskAdapter(AdapterConfig(root=str(tmp_path / "nope")))
        with pytest.raises(BackendConnectionError):
            adapter.connect()
        assert adapter.state == ConnectionState.DISCONNECTED

    def test_file_root_rejected(self, tmp_path):
        f = tmp_path / "file.txt"
        f.write_text("hi")
        adapter = LocalDiskAdapter(AdapterConfig(root=str(f)))
        with pytest.raises(BackendConnectionError):
            adapter.connect()

    def test_retry_after_failed_connect(self, tmp_path):
        root = tmp_path / "late"
        adapter = LocalDiskAdapter(AdapterConfig(root=str(root)))
        with pytest.raises(BackendConnectionError):
            adapter.connect()
        root.mkdir()
        adapter.connect()
        assert adapter.is_connected

    def test_unexpected_open_error_stays_disconnected(self, disk_root):
        class BrokenDisk(LocalDiskAdapter):
            def _open(self):
                raise TypeError("bad config value")

        adapter = BrokenDisk(AdapterConfig(root=str(disk_root)))
        with pytest.raises(TypeError):
            adapter.connect()
        assert adapter.state == ConnectionState.DISCONNECTED

    def test_connect_twice_is_noop(self, disk):
        disk.connect()
        assert disk.state == ConnectionState.CONNECTED

    def test_close_is_idempotent(self, disk):
        disk.close()
        disk.close()
        assert disk.state == ConnectionState.CLOSED

    def test_close_before_connect(self, disk_root):
        adapter = LocalDiskAdapter(AdapterConfig(root=str(disk_root)))
        adapter.close()
        assert adapter.state == ConnectionState.DISCONNECTED

    def test_closed_is_terminal(self, disk):
        disk.close()
        with pytest.raises(BackendConnectionError):
            disk.connect()

    def test_primitives_require_connection(self, disk_root):
        adapter = LocalDiskAdapter(AdapterConfig(root=str(disk_root)))
        with pytest.raises(BackendConnectionError) as exc_info:
            adapter.exists("/a.txt")
        assert exc_info.value.operation == "stat"

    def test_primitives_fail_after_close(self, disk):
        disk.close()
        with pytest.raises(BackendConnectionError):
            disk.read_all("/a.txt")

    def test_context_manager(self, disk_root):
        with LocalDiskAdapter(AdapterConfig(root=str(disk_root))) as adapter:
            assert adapter.is_connected
        assert adapter.state == ConnectionState.CLOSED


class TestProtocols:
    def test_satisfies_gateway_and_capabilities(self, disk):
        assert isinstance(disk, AdapterGateway)
        assert isinstance(disk, SupportsPermissions)
        assert isinstance(disk, SupportsOwnership)
        assert isinstance(disk, SupportsTouch)


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


class TestQueries:
    def test_stat_type(self, disk, disk_root):
        (disk_root / "d").mkdir()
        (disk_root / "f.txt").write_text("x")
        assert disk.stat_type("/") == EntryType.DIRECTORY
        assert disk.stat_type("/d") == EntryType.DIRECTORY
        assert disk.stat_type("/f.txt") == EntryType.FILE
        assert disk.stat_type("/missing") == EntryType.NONE

    def test_stat_type_under_a_file(self, disk, disk_root):
        (disk_root / "f.txt").write_text("x")
        assert disk.stat_type("/f.txt/child") == EntryType.NONE

    def test_exists(self, disk, disk_root):
        (disk_root / "f.txt").write_text("x")
        assert disk.exists("/f.txt") is True
        assert disk.exists("/nope") is False

    def test_stat(self, disk, disk_root):
        (disk_root / "f.txt").write_bytes(b"12345")
        st = disk.stat("/f.txt")
        assert st.type == EntryType.FILE
        assert st.size == 5
        assert st.readable is True
        assert st.modified_at is not None
        assert st.modified_at.tzinfo is not None
        assert st.owner

    def test_stat_missing(self, disk):
        with pytest.raises(NotFoundError):
            disk.stat("/missing")

    def test_list_directory_sorted_with_types(self, disk, disk_root):
        (disk_root / "b.txt").write_text("b")
        (disk_root / "a").mkdir()
        (disk_root / "c.txt").write_text("c")
        assert disk.list_directory("/") == [
            ("/a", EntryType.DIRECTORY),
            ("/b.txt", EntryType.FILE),
            ("/c.txt", EntryType.FILE),
        ]

    def test_list_missing_directory(self, disk):
        with pytest.raises(NotFoundError):
            disk.list_directory("/missing")

    def test_list_file_is_invalid_target(self, disk, disk_root):
        (disk_root / "f.txt").write_text("x")
        with pytest.raises(InvalidTargetError):
            disk.list_directory("/f.txt")

    def test_read_all(self, disk, disk_root):
        (disk_root / "f.bin").write_bytes(b"\x00\x01\x02")
        assert disk.read_all("/f.bin") == b"\x00\x01\x02"

    def test_read_missing(self, disk):
        with pytest.raises(NotFoundError) as exc_info:
            disk.read_all("/missing")
        assert exc_info.value.path == "/missing"
        assert isinstance(exc_info.value.__cause__, FileNotFoundError)

    def test_read_directory(self, disk, disk_root):
        (disk_root / "d").mkdir()
        with pytest.raises(InvalidTargetError):
            disk.read_all("/d")


# ---------------------------------------------------------------------------
# Mutations
# ---------------------------------------------------------------------------


class TestMutations:
    def test_write_and_overwrite(self, disk, disk_root):
        disk.write_all("/f.txt", b"v1")
        disk.write_all("/f.txt", b"v2")
        assert (disk_root / "f.txt").read_bytes() == b"v2"

    def test_write_leaves_no_temp_files(self, disk, disk_root):
        disk.write_all("/f.txt", b"data")
        assert sorted(p.name for p in disk_root.iterdir()) == ["f.txt"]

    def test_write_needs_parent(self, disk):
        with pytest.raises(NotFoundError):
            disk.write_all("/missing/f.txt", b"x")

    def test_write_over_directory(self, disk, disk_root):
        (disk_root / "d").mkdir()
        with pytest.raises(InvalidTargetError):
            disk.write_all("/d", b"x")

    def test_append(self, disk, disk_root):
        disk.append_all("/log.txt", b"one\n")
        disk.append_all("/log.txt", b"two\n")
        assert (disk_root / "log.txt").read_bytes() == b"one\ntwo\n"

    def test_make_directory(self, disk, disk_root):
        disk.make_directory("/d")
        assert (disk_root / "d").is_dir()

    def test_make_existing_directory(self, disk, disk_root):
        (disk_root / "d").mkdir()
        with pytest.raises(ConflictError):
            disk.make_directory("/d")

    def test_make_directory_needs_parent(self, disk):
        with pytest.raises(NotFoundError):
            disk.make_directory("/a/b")

    def test_remove_file(self, disk, disk_root):
        (disk_root / "f.txt").write_text("x")
        disk.remove_file("/f.txt")
        assert not (disk_root / "f.txt").exists()

    def test_remove_file_on_directory(self, disk, disk_root):
        (disk_root / "d").mkdir()
        with pytest.raises(InvalidTargetError):
            disk.remove_file("/d")

    def test_remove_non_empty_directory(self, disk, disk_root):
        (disk_root / "d").mkdir()
        (disk_root / "d" / "f.txt").write_text("x")
        with pytest.raises(InvalidTargetError):
            disk.remove_directory("/d")

    def test_remove_empty_directory(self, disk, disk_root):
        (disk_root / "d").mkdir()
        disk.remove_directory("/d")
        assert not (disk_root / "d").exists()


class TestReadOnly:
    @pytest.fixture
    def ro_disk(self, disk_root):
        (disk_root / "f.txt").write_text("x")
        config = AdapterConfig(root=str(disk_root), permission=Permission.READ_ONLY)
        with LocalDiskAdapter(config) as adapter:
            yield adapter

    def test_reads_allowed(self, ro_disk):
        assert ro_disk.read_all("/f.txt") == b"x"

    @pytest.mark.parametrize(
        ("method", "args"),
        [
            pytest.param("write_all", ("/g.txt", b"x"), id="write"),
            pytest.param("append_all", ("/f.txt", b"x"), id="append"),
            pytest.param("make_directory", ("/d",), id="mkdir"),
            pytest.param("remove_file", ("/f.txt",), id="remove"),
            pytest.param("change_permission", ("/f.txt", 0o600), id="chmod"),
            pytest.param("touch", ("/f.txt",), id="touch"),
        ],
    )
    def test_mutations_denied(self, ro_disk, disk_root, method, args):
        with pytest.raises(AccessDeniedError):
            getattr(ro_disk, method)(*args)
        assert (disk_root / "f.txt").read_text() == "x"


# ---------------------------------------------------------------------------
# Containment and links
# ---------------------------------------------------------------------------


@posix_only
class TestContainment:
    def test_symlinked_parent_escaping_root(self, disk, disk_root, tmp_path):
        outside = tmp_path / "outside"
        outside.mkdir()
        (outside / "secret.txt").write_text("secret")
        (disk_root / "escape").symlink_to(outside)
        with pytest.raises(AccessDeniedError):
            disk.read_all("/escape/secret.txt")

    def test_link_to_outside_file_not_readable(self, disk, disk_root, tmp_path):
        outside = tmp_path / "secret.txt"
        outside.write_text("secret")
        (disk_root / "link").symlink_to(outside)
        assert disk.stat_type("/link") == EntryType.LINK
        with pytest.raises(AccessDeniedError):
            disk.read_all("/link")

    def test_link_inside_root_readable(self, disk, disk_root):
        (disk_root / "real.txt").write_text("data")
        (disk_root / "alias").symlink_to(disk_root / "real.txt")
        assert disk.read_all("/alias") == b"data"

    def test_remove_link_keeps_target(self, disk, disk_root, tmp_path):
        outside = tmp_path / "keep.txt"
        outside.write_text("keep")
        (disk_root / "link").symlink_to(outside)
        disk.remove_file("/link")
        assert outside.read_text() == "keep"
        assert not (disk_root / "link").is_symlink()


# ---------------------------------------------------------------------------
# Capabilities
# ---------------------------------------------------------------------------


@posix_only
class TestCapabilities:
    def test_default_modes_applied(self, disk_root):
        config = AdapterConfig(root=str(disk_root), directory_mode="700", file_mode=0o600)
        with LocalDiskAdapter(config) as adapter:
            adapter.make_directory("/d")
            adapter.write_all("/d/f.txt", b"x")
        assert stat.S_IMODE((disk_root / "d").stat().st_mode) == 0o700
        assert stat.S_IMODE((disk_root / "d" / "f.txt").stat().st_mode) == 0o600

    def test_overwrite_keeps_mode(self, disk, disk_root):
        f = disk_root / "f.sh"
        f.write_text("old")
        os.chmod(f, 0o750)
        disk.write_all("/f.sh", b"new")
        assert stat.S_IMODE(f.stat().st_mode) == 0o750

    def test_change_permission(self, disk, disk_root):
        (disk_root / "f.txt").write_text("x")
        disk.change_permission("/f.txt", 0o640)
        assert stat.S_IMODE((disk_root / "f.txt").stat().st_mode) == 0o640

    def test_change_owner_unknown_user(self, disk, disk_root):
        (disk_root / "f.txt").write_text("x")
        with pytest.raises(InvalidTargetError):
            disk.change_owner("/f.txt", "no-such-user-polyfs")

    def test_change_group_unknown_group(self, disk, disk_root):
        (disk_root / "f.txt").write_text("x")
        with pytest.raises(InvalidTargetError):
            disk.change_group("/f.txt", "no-such-group-polyfs")

    def test_touch_sets_times(self, disk, disk_root):
        (disk_root / "f.txt").write_text("x")
        modified = datetime(2020, 5, 17, 12, 0, tzinfo=UTC)
        accessed = datetime(2021, 1, 1, 8, 30, tzinfo=UTC)
        disk.touch("/f.txt", modified, accessed)
        st = (disk_root / "f.txt").stat()
        assert st.st_mtime == modified.timestamp()
        assert st.st_atime == accessed.timestamp()

    def test_touch_creates_file(self, disk, disk_root):
        disk.touch("/new.txt")
        assert (disk_root / "new.txt").read_bytes() == b""
