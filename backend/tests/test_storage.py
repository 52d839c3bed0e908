"""Tests for the upload store and file fingerprinting."""

import hashlib
import os

import pytest

from app.ingestion.errors import StorageError
from app.ingestion.file_fingerprint import compute_bytes_hash, compute_file_hash
from app.ingestion.storage import UploadStore

pytestmark = pytest.mark.unit


def test_save_writes_bytes_under_new_id(store, upload_dir):
    data = b"PK\x03\x04 pretend workbook"

    stored = store.save(data)

    assert os.path.isdir(upload_dir)
    assert stored.path == os.path.join(os.path.abspath(upload_dir), f"{stored.upload_id}.xlsx")
    with open(stored.path, "rb") as f:
        assert f.read() == data
    assert stored.size_bytes == len(data)
    assert stored.sha256 == hashlib.sha256(data).hexdigest()


def test_identifier_is_not_derived_from_digest(store):
    first = store.save(b"same bytes")
    second = store.save(b"same bytes")

    assert first.sha256 == second.sha256
    assert first.upload_id != second.upload_id
    assert first.path != second.path


def test_write_failure_raises_storage_error(tmp_path):
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("occupied")
    store = UploadStore(str(blocker))

    with pytest.raises(StorageError):
        store.save(b"data")


def test_discard_removes_file_and_tolerates_missing(store):
    stored = store.save(b"orphan")

    store.discard(stored.path)
    assert not os.path.exists(stored.path)

    store.discard(stored.path)  # second call is a no-op


def test_file_hash_matches_bytes_hash(tmp_path):
    data = os.urandom(20_000)
    path = tmp_path / "blob.bin"
    path.write_bytes(data)

    assert compute_file_hash(str(path)) == compute_bytes_hash(data)
    assert compute_bytes_hash(data, "md5") == hashlib.md5(data).hexdigest()
