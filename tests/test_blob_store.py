"""Tests for the blob store adapter.

Coverage:
  1. store → version 1 readable through get_latest_version
  2. append_version increments the version, latest wins
  3. unknown pointer → NotFoundError
  4. None / non-bytes content → ValidationError
  5. rollback removes blobs stored in the same transaction
"""

import pytest

from bantal.core.exceptions import NotFoundError, ValidationError
from bantal.models import db
from bantal.models.blob import DocumentBlob
from bantal.services import blob_store


class TestBlobStore:
    def test_store_and_read(self):
        pointer = blob_store.store(b"hello", "text/plain")
        db.session.commit()
        latest = blob_store.get_latest_version(pointer)
        assert latest.pointer == pointer
        assert latest.version_number == 1
        assert latest.content == b"hello"
        assert latest.mime_type == "text/plain"

    def test_default_mime_type(self):
        pointer = blob_store.store(b"\x00\x01")
        assert blob_store.get_latest_version(pointer).mime_type == "application/octet-stream"

    def test_append_version(self):
        pointer = blob_store.store(b"one", "text/plain")
        assert blob_store.append_version(pointer, b"two", "text/plain") == 2
        assert blob_store.append_version(pointer, b"three", "text/markdown") == 3
        db.session.commit()

        latest = blob_store.get_latest_version(pointer)
        assert latest.content == b"three"
        assert latest.mime_type == "text/markdown"
        assert [v["version_number"] for v in blob_store.list_versions(pointer)] == [1, 2, 3]
        assert blob_store.list_versions(pointer)[0]["size"] == 3

    def test_unknown_pointer(self):
        with pytest.raises(NotFoundError):
            blob_store.get_latest_version("nope")
        with pytest.raises(NotFoundError):
            blob_store.append_version("nope", b"x")
        with pytest.raises(NotFoundError):
            blob_store.list_versions("nope")

    def test_none_content_rejected(self):
        with pytest.raises(ValidationError):
            blob_store.store(None)

    def test_str_content_rejected(self):
        with pytest.raises(ValidationError):
            blob_store.store("not bytes")

    def test_empty_content_allowed(self):
        pointer = blob_store.store(b"")
        assert blob_store.get_latest_version(pointer).content == b""

    def test_rollback_discards_blob(self):
        blob_store.store(b"temp")
        db.session.rollback()
        assert DocumentBlob.query.count() == 0
