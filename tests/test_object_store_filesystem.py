"""Tests for the filesystem object store.

Tests cover:
- Roundtrip: write then open returns identical bytes for every compression scheme
- Write-once: a second write is a no-op that keeps the first body
- Overwrite: a second write replaces the body
- Absence: open/delete raise ObjectNotFoundError, exists returns False
- Walk: prefix scoping, key order, early stop, resume from a starting point
- push_local_file: local file removed only after a successful write
- Sub-stores, path traversal prevention
- OTel spans: with tracing enabled, spans carry safe attributes only
"""

from __future__ import annotations

import os
import threading
from pathlib import Path
from typing import Any

import pytest

from objstore.observability.tracing import clear_test_spans, get_test_spans
from objstore.storage.errors import (
    ObjectNotFoundError,
    PathTraversalError,
    StopWalk,
    StorageBackendError,
    WalkCancelledError,
)
from objstore.storage.filesystem_store import FilesystemObjectStore
from objstore.storage.tracing import name_sha256

TEN_NAMES = [f"obj-{i:02d}" for i in range(10)]


@pytest.fixture
def store(temp_storage_dir: Path) -> FilesystemObjectStore:
    """Create a write-once FilesystemObjectStore with a temp directory."""
    return FilesystemObjectStore(str(temp_storage_dir))


@pytest.fixture
def json_store(temp_storage_dir: Path) -> FilesystemObjectStore:
    """Create a store that appends .json to every name."""
    return FilesystemObjectStore(str(temp_storage_dir), extension=".json")


@pytest.fixture
def populated(store: FilesystemObjectStore) -> FilesystemObjectStore:
    """Store holding ten objects obj-00 .. obj-09."""
    for name in TEN_NAMES:
        store.write(name, name.encode())
    return store


def _collect(store: FilesystemObjectStore, prefix: str = "", start: str = "") -> list[str]:
    seen: list[str] = []
    store.walk_from(prefix, start, seen.append)
    return seen


class TestConstruction:
    """Tests for store construction."""

    def test_file_url(self, temp_storage_dir: Path) -> None:
        store = FilesystemObjectStore(f"file://{temp_storage_dir.as_posix()}")

        assert store.base_dir == temp_storage_dir
        assert store.backend_name == "filesystem"
        assert str(store.base_url) == f"file://{temp_storage_dir.as_posix()}"

    def test_default_base_dir_from_env(
        self, temp_storage_dir: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("OBJSTORE_FILESYSTEM_BASE_DIR", str(temp_storage_dir))

        store = FilesystemObjectStore()

        assert store.base_dir == temp_storage_dir

    def test_rejects_cloud_location(self) -> None:
        with pytest.raises(StorageBackendError):
            FilesystemObjectStore("gs://bkt/root")

    def test_configuration_is_exposed(self, temp_storage_dir: Path) -> None:
        store = FilesystemObjectStore(
            str(temp_storage_dir), extension=".bin", compression="GZIP", overwrite=True
        )

        assert store.extension == ".bin"
        assert store.compression == "gzip"
        assert store.overwrite is True


class TestRoundtrip:
    """Tests for basic write/open roundtrip functionality."""

    @pytest.mark.parametrize("compression", ["", "none", "gzip", "zstd"])
    def test_write_then_open_returns_identical_bytes(
        self, temp_storage_dir: Path, compression: str
    ) -> None:
        """Write then open should return identical bytes for every scheme."""
        store = FilesystemObjectStore(str(temp_storage_dir), compression=compression)
        data = os.urandom(64 * 1024)

        assert store.write("test/blob", data) is True

        with store.open("test/blob") as reader:
            assert reader.read() == data

    def test_accepts_binary_stream(self, store: FilesystemObjectStore, tmp_path: Path) -> None:
        source = tmp_path / "source.bin"
        source.write_bytes(b"streamed body")

        with source.open("rb") as f:
            store.write("streamed", f)

        assert store.read_bytes("streamed") == b"streamed body"

    def test_empty_content(self, store: FilesystemObjectStore) -> None:
        store.write_bytes("empty", b"")

        assert store.read_bytes("empty") == b""

    def test_body_on_disk_is_compressed(self, temp_storage_dir: Path) -> None:
        store = FilesystemObjectStore(str(temp_storage_dir), compression="gzip")

        store.write("doc", b"hello " * 100)

        assert (temp_storage_dir / "doc").read_bytes()[:2] == b"\x1f\x8b"

    def test_extension_is_appended_on_disk(
        self, json_store: FilesystemObjectStore, temp_storage_dir: Path
    ) -> None:
        json_store.write("a/b", b"{}")

        assert (temp_storage_dir / "a" / "b.json").is_file()
        assert json_store.read_bytes("a/b") == b"{}"

    def test_no_staging_files_left_behind(
        self, store: FilesystemObjectStore, temp_storage_dir: Path
    ) -> None:
        store.write("x", b"1")
        store.write("x", b"2")

        leftovers = [p.name for p in temp_storage_dir.rglob(".objstore-*")]
        assert leftovers == []


class TestWriteOnce:
    """Tests for write-once and overwrite semantics."""

    def test_second_write_is_noop(self, store: FilesystemObjectStore) -> None:
        """Second write succeeds without error and keeps the first body."""
        assert store.write("doc", b"first") is True
        assert store.write("doc", b"second") is False

        assert store.read_bytes("doc") == b"first"

    def test_overwrite_store_replaces_body(self, temp_storage_dir: Path) -> None:
        store = FilesystemObjectStore(str(temp_storage_dir), overwrite=True)

        assert store.write("doc", b"first") is True
        assert store.write("doc", b"second") is True

        assert store.read_bytes("doc") == b"second"

    def test_per_call_overwrite(self, store: FilesystemObjectStore) -> None:
        store.write("doc", b"first")

        assert store.write("doc", b"second", overwrite=True) is True
        assert store.read_bytes("doc") == b"second"

    def test_concurrent_write_once_keeps_single_body(self, store: FilesystemObjectStore) -> None:
        bodies = [f"body-{i}".encode() for i in range(8)]
        results: list[bool] = []
        lock = threading.Lock()

        def writer(body: bytes) -> None:
            written = store.write("race", body)
            with lock:
                results.append(written)

        threads = [threading.Thread(target=writer, args=(b,)) for b in bodies]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert results.count(True) == 1
        assert store.read_bytes("race") in bodies


class TestAbsence:
    """Tests for operations on names that were never written."""

    def test_open_missing_raises_not_found(self, store: FilesystemObjectStore) -> None:
        with pytest.raises(ObjectNotFoundError) as exc_info:
            store.open("missing")

        assert exc_info.value.name == "missing"

    def test_exists_missing_is_false(self, store: FilesystemObjectStore) -> None:
        assert store.exists("missing") is False

    def test_exists_after_write(self, store: FilesystemObjectStore) -> None:
        store.write("present", b"x")

        assert store.exists("present") is True

    def test_directory_is_not_an_object(self, store: FilesystemObjectStore) -> None:
        store.write("dir/child", b"x")

        assert store.exists("dir") is False

    def test_delete_removes_object(self, store: FilesystemObjectStore) -> None:
        store.write("doomed", b"x")

        store.delete("doomed")

        assert store.exists("doomed") is False
        with pytest.raises(ObjectNotFoundError):
            store.open("doomed")

    def test_open_directory_raises_not_found(self, store: FilesystemObjectStore) -> None:
        store.write("dir/child", b"x")

        with pytest.raises(ObjectNotFoundError) as exc_info:
            store.open("dir")

        assert exc_info.value.name == "dir"

    def test_delete_directory_raises_not_found(self, store: FilesystemObjectStore) -> None:
        store.write("dir/child", b"x")

        with pytest.raises(ObjectNotFoundError):
            store.delete("dir")

        assert store.exists("dir/child") is True

    def test_delete_missing_raises_not_found(self, store: FilesystemObjectStore) -> None:
        with pytest.raises(ObjectNotFoundError) as exc_info:
            store.delete("missing")

        assert isinstance(exc_info.value.__cause__, FileNotFoundError)


class TestWalk:
    """Tests for walk, walk_from and list."""

    def test_walk_visits_prefix_in_key_order(self, store: FilesystemObjectStore) -> None:
        for name in ["b/1", "a/2", "ab", "a/1"]:
            store.write(name, b"x")

        seen: list[str] = []
        count = store.walk("a/", seen.append)

        assert seen == ["a/1", "a/2"]
        assert count == 2

    def test_walk_without_separator_matches_name_prefix(
        self, store: FilesystemObjectStore
    ) -> None:
        for name in ["b/1", "a/2", "ab", "a/1"]:
            store.write(name, b"x")

        assert _collect(store, "a") == ["a/1", "a/2", "ab"]

    def test_walk_everything(self, store: FilesystemObjectStore) -> None:
        for name in ["b/1", "a/2", "ab", "a/1"]:
            store.write(name, b"x")

        assert _collect(store) == ["a/1", "a/2", "ab", "b/1"]

    def test_walk_excludes_sibling_directories(self, temp_storage_dir: Path) -> None:
        (temp_storage_dir / "root").mkdir()
        (temp_storage_dir / "root-other").mkdir()
        (temp_storage_dir / "root-other" / "stray").write_bytes(b"x")
        store = FilesystemObjectStore(str(temp_storage_dir / "root"))
        store.write("mine", b"x")

        assert _collect(store) == ["mine"]

    def test_walk_with_trailing_separator_base(self, temp_storage_dir: Path) -> None:
        store = FilesystemObjectStore(f"file://{temp_storage_dir.as_posix()}/", extension=".json")
        for name in ["b", "a", "x/y"]:
            store.write(name, b"x")

        assert store.exists("a") is True
        assert store.list() == ["a", "b", "x/y"]
        assert _collect(store, "x/") == ["x/y"]
        assert _collect(store, "", "b") == ["b", "x/y"]

    def test_walk_strips_extension(self, json_store: FilesystemObjectStore) -> None:
        json_store.write("x/a", b"{}")
        json_store.write("x/b", b"{}")

        assert _collect(json_store, "x/") == ["x/a", "x/b"]

    def test_walk_missing_prefix_is_empty(self, store: FilesystemObjectStore) -> None:
        assert _collect(store, "nothing/") == []

    def test_stop_after_third_object(self, populated: FilesystemObjectStore) -> None:
        """Stopping after the 3rd of 10 objects ends the walk without error."""
        calls: list[str] = []

        def visit(name: str) -> None:
            calls.append(name)
            if len(calls) == 3:
                raise StopWalk()

        count = populated.walk("", visit)

        assert calls == TEN_NAMES[:3]
        assert count == 3

    def test_visitor_error_propagates(self, populated: FilesystemObjectStore) -> None:
        def visit(name: str) -> None:
            raise RuntimeError("visitor failed")

        with pytest.raises(RuntimeError, match="visitor failed"):
            populated.walk("", visit)

    def test_cancelled_walk(self, populated: FilesystemObjectStore) -> None:
        cancel = threading.Event()
        cancel.set()

        with pytest.raises(WalkCancelledError):
            populated.walk("", lambda name: None, cancel=cancel)

    def test_list_limits_results(self, populated: FilesystemObjectStore) -> None:
        names = populated.list("", 5)

        assert names == TEN_NAMES[:5]

    def test_list_default_returns_all(self, populated: FilesystemObjectStore) -> None:
        assert populated.list() == TEN_NAMES

    def test_walk_from_fourth_object(self, populated: FilesystemObjectStore) -> None:
        """Resuming at the 4th object visits objects 4 through 10."""
        assert _collect(populated, "", TEN_NAMES[3]) == TEN_NAMES[3:]

    def test_walk_from_within_prefix(self, store: FilesystemObjectStore) -> None:
        for name in TEN_NAMES:
            store.write(f"p/{name}", b"x")
        store.write("q/obj-00", b"x")

        seen = _collect(store, "p/", "obj-07")

        assert seen == [f"p/{name}" for name in TEN_NAMES[7:]]

    def test_walk_from_with_extension(self, json_store: FilesystemObjectStore) -> None:
        for name in TEN_NAMES:
            json_store.write(name, b"{}")

        assert _collect(json_store, "", "obj-05") == TEN_NAMES[5:]


class TestPushLocalFile:
    """Tests for push_local_file()."""

    def test_pushed_file_is_stored_and_removed(
        self, store: FilesystemObjectStore, tmp_path: Path
    ) -> None:
        local = tmp_path / "staging.bin"
        local.write_bytes(b"staged body")

        store.push_local_file(local, "pushed")

        assert not local.exists()
        assert store.read_bytes("pushed") == b"staged body"

    def test_failed_write_keeps_local_file(
        self, store: FilesystemObjectStore, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        local = tmp_path / "staging.bin"
        local.write_bytes(b"staged body")

        def failing_write(*args: Any, **kwargs: Any) -> bool:
            raise OSError("disk full")

        monkeypatch.setattr(store, "write", failing_write)

        with pytest.raises(OSError, match="disk full"):
            store.push_local_file(str(local), "pushed")

        assert local.read_bytes() == b"staged body"

    def test_missing_local_file(self, store: FilesystemObjectStore, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            store.push_local_file(tmp_path / "absent", "pushed")

        assert store.exists("pushed") is False


class TestSubStore:
    """Tests for sub_store()."""

    def test_sub_store_base_and_settings(self, temp_storage_dir: Path) -> None:
        parent = FilesystemObjectStore(
            str(temp_storage_dir), extension=".json", compression="zstd", overwrite=True
        )

        child = parent.sub_store("x")

        assert str(child.base_url) == f"{parent.base_url}/x"
        assert child.extension == ".json"
        assert child.compression == "zstd"
        assert child.overwrite is True

    def test_sub_store_objects_visible_from_parent(self, store: FilesystemObjectStore) -> None:
        child = store.sub_store("x")

        child.write("a", b"from child")

        assert store.read_bytes("x/a") == b"from child"
        assert _collect(child) == ["a"]

    def test_object_url(self, json_store: FilesystemObjectStore, temp_storage_dir: Path) -> None:
        url = json_store.object_url("a/b")

        assert url == f"file://{temp_storage_dir.as_posix()}/a/b.json"


class TestPathTraversalPrevention:
    """Tests for path traversal attack prevention."""

    @pytest.mark.parametrize("invalid_name", ["../escape", "a/../../escape", "../../etc/passwd"])
    def test_write_rejects_traversal(self, store: FilesystemObjectStore, invalid_name: str) -> None:
        with pytest.raises(PathTraversalError):
            store.write(invalid_name, b"data")

    @pytest.mark.parametrize("invalid_name", ["../escape", "a/../../escape"])
    def test_open_rejects_traversal(self, store: FilesystemObjectStore, invalid_name: str) -> None:
        with pytest.raises(PathTraversalError):
            store.open(invalid_name)

    def test_exists_and_delete_reject_traversal(self, store: FilesystemObjectStore) -> None:
        with pytest.raises(PathTraversalError):
            store.exists("../escape")
        with pytest.raises(PathTraversalError):
            store.delete("../escape")

    def test_dot_segments_inside_root_are_cleaned(self, store: FilesystemObjectStore) -> None:
        store.write("a/../b", b"x")

        assert store.read_bytes("b") == b"x"


@pytest.mark.usefixtures("otel_capture")
class TestTracing:
    """Tests for OpenTelemetry spans around store operations."""

    def _store_spans(self, operation: str) -> list[Any]:
        return [s for s in get_test_spans() if s.name == f"objstore.object_store.{operation}"]

    def test_write_emits_span(self, store: FilesystemObjectStore) -> None:
        store.write("doc", b"x")

        spans = self._store_spans("write")
        assert len(spans) == 1
        attrs = dict(spans[0].attributes or {})
        assert attrs["storage.backend"] == "filesystem"
        assert attrs["objstore.object_name_sha256"] == name_sha256("doc")
        assert attrs["objstore.object_written"] is True

    def test_skipped_write_reports_not_written(self, store: FilesystemObjectStore) -> None:
        store.write("doc", b"x")
        clear_test_spans()

        store.write("doc", b"y")

        attrs = dict(self._store_spans("write")[0].attributes or {})
        assert attrs["objstore.object_written"] is False

    def test_failed_open_records_error(self, store: FilesystemObjectStore) -> None:
        with pytest.raises(ObjectNotFoundError):
            store.open("missing")

        attrs = dict(self._store_spans("open")[0].attributes or {})
        assert attrs["error"] is True
        assert attrs["error.type"] == "ObjectNotFoundError"

    def test_walk_records_visit_count(self, populated: FilesystemObjectStore) -> None:
        clear_test_spans()

        populated.list("", 4)

        walk_attrs = dict(self._store_spans("walk_from")[0].attributes or {})
        list_attrs = dict(self._store_spans("list")[0].attributes or {})
        assert walk_attrs["objstore.walk_visit_count"] == 4
        assert list_attrs["objstore.object_count"] == 4

    def test_secret_in_name_never_appears_in_spans(
        self, store: FilesystemObjectStore, temp_storage_dir: Path
    ) -> None:
        """Raw names and local paths must never appear in span names or attributes."""
        name = "tenant/password=hunter2/report"

        store.write(name, b"x")
        store.exists(name)
        store.read_bytes(name)

        spans = get_test_spans()
        assert len(spans) >= 3
        for span in spans:
            assert "hunter2" not in span.name
            for value in dict(span.attributes or {}).values():
                assert "hunter2" not in str(value)
                assert temp_storage_dir.as_posix() not in str(value)

    def test_no_spans_when_disabled(
        self, store: FilesystemObjectStore, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.delenv("OBJSTORE_OTEL_ENABLED")
        clear_test_spans()

        store.write("doc", b"x")

        assert get_test_spans() == []
