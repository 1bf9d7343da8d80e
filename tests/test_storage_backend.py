"""
Tests for Evidence Blob Storage
===============================
Verifies:
  - LocalFSStore implements the full BlobStore interface.
  - Existing keys are never overwritten.
  - The size limit aborts a write without leaving a partial file.
  - Directory traversal is blocked.
  - Storage keys never carry the client-supplied name.
"""

import io
import re

import pytest

from caseportal.services.storage_backend import (
    BlobStore,
    LocalFSStore,
    StorePutResult,
    generate_storage_key,
)

KEY_RE = re.compile(r"^\d{13}-[0-9a-f]{16}(\.[a-z0-9]{1,10})?$")


@pytest.fixture
def tmp_store(tmp_path):
    """Create a LocalFSStore in a temporary directory."""
    return LocalFSStore(root=str(tmp_path / "store"))


# ===========================================================================
# 1. LocalFSStore: Interface compliance
# ===========================================================================


class TestLocalFSStoreInterface:
    """Verify LocalFSStore satisfies the BlobStore contract."""

    def test_is_blob_store(self, tmp_store):
        assert isinstance(tmp_store, BlobStore)

    def test_root_is_created(self, tmp_path):
        store = LocalFSStore(root=str(tmp_path / "a" / "b"))
        assert store.root.is_dir()

    def test_put_then_open(self, tmp_store):
        result = tmp_store.put_stream("k1.txt", io.BytesIO(b"hello"))
        assert result == StorePutResult(success=True, key="k1.txt", size_bytes=5)
        with tmp_store.open("k1.txt") as f:
            assert f.read() == b"hello"

    def test_size(self, tmp_store):
        tmp_store.put_stream("k2", io.BytesIO(b"abc"))
        assert tmp_store.size("k2") == 3
        assert tmp_store.size("nope") is None

    def test_open_missing_returns_none(self, tmp_store):
        assert tmp_store.open("missing") is None

    def test_delete(self, tmp_store):
        tmp_store.put_stream("k3", io.BytesIO(b"x"))
        assert tmp_store.delete("k3") is True
        assert tmp_store.delete("k3") is False
        assert tmp_store.open("k3") is None

    def test_large_stream_is_copied_in_full(self, tmp_store):
        data = bytes(range(256)) * 1024  # 256 KiB, several copy blocks
        result = tmp_store.put_stream("big.bin", io.BytesIO(data))
        assert result.size_bytes == len(data)
        with tmp_store.open("big.bin") as f:
            assert f.read() == data


# ===========================================================================
# 2. Write safety
# ===========================================================================


class TestWriteSafety:

    def test_existing_key_is_not_overwritten(self, tmp_store):
        tmp_store.put_stream("same", io.BytesIO(b"original"))
        result = tmp_store.put_stream("same", io.BytesIO(b"replacement"))
        assert result.success is False
        assert "already exists" in result.error
        with tmp_store.open("same") as f:
            assert f.read() == b"original"

    def test_limit_exceeded_leaves_nothing(self, tmp_store):
        result = tmp_store.put_stream("big", io.BytesIO(b"x" * 101), max_bytes=100)
        assert result.success is False
        assert result.limit_exceeded is True
        assert list(tmp_store.root.iterdir()) == []

    def test_exactly_at_limit_is_accepted(self, tmp_store):
        result = tmp_store.put_stream("edge", io.BytesIO(b"x" * 100), max_bytes=100)
        assert result.success is True
        assert result.size_bytes == 100

    def test_failing_stream_leaves_no_partial_file(self, tmp_store):
        class _ClosedSpool(io.BytesIO):
            def read(self, *args):
                raise ValueError("I/O operation on closed file")

        with pytest.raises(ValueError):
            tmp_store.put_stream("broken.pdf", _ClosedSpool(b"data"))
        assert list(tmp_store.root.iterdir()) == []

    @pytest.mark.parametrize("key", ["../escape", "sub/dir/file", "/etc/passwd", ".."])
    def test_traversal_blocked(self, tmp_store, key):
        with pytest.raises(ValueError):
            tmp_store.put_stream(key, io.BytesIO(b"x"))


# ===========================================================================
# 3. Key generation
# ===========================================================================


class TestGenerateStorageKey:

    def test_shape_and_extension(self):
        key = generate_storage_key("Police Report.PDF")
        assert KEY_RE.match(key)
        assert key.endswith(".pdf")

    def test_declared_name_never_appears(self):
        key = generate_storage_key("my-secret-name.txt")
        assert "secret" not in key

    def test_keys_are_unique(self):
        keys = {generate_storage_key("a.txt") for _ in range(200)}
        assert len(keys) == 200

    @pytest.mark.parametrize(
        "name",
        ["no_extension", "weird.ext with space", "archive.verylongextension", "../../x/.."],
    )
    def test_unsafe_extensions_are_dropped(self, name):
        key = generate_storage_key(name)
        assert KEY_RE.match(key)
        assert "." not in key
