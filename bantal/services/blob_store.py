"""
Blob store adapter — versioned file content behind an opaque pointer.

The pointer (DocumentBlob.id) is what MasterDocument.blob_pointer stores.
Versions are appended, never overwritten; reads return the highest
version number.

Writes join the caller's session and are flushed, not committed: the
caller's transaction decides whether the blob survives. A rolled-back
document creation therefore leaves no orphaned blob.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, select

from bantal.core.exceptions import NotFoundError, ValidationError
from bantal.models import db
from bantal.models.blob import DocumentBlob, DocumentBlobVersion

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"


@dataclass(frozen=True)
class BlobVersion:
    pointer: str
    version_number: int
    content: bytes
    mime_type: str
    uploaded_at: datetime | None


def _check_content(content) -> bytes:
    if content is None:
        raise ValidationError("File content is required", details={"file": "required"})
    if not isinstance(content, (bytes, bytearray, memoryview)):
        raise ValidationError("File content must be bytes", details={"file": "invalid"})
    return bytes(content)


def store(content: bytes, mime_type: str | None = None) -> str:
    """Persist new content as version 1 and return its pointer."""
    data = _check_content(content)
    blob = DocumentBlob()
    blob.versions.append(
        DocumentBlobVersion(version_number=1, content=data, mime_type=mime_type or DEFAULT_MIME_TYPE)
    )
    db.session.add(blob)
    db.session.flush()
    logger.info("Stored blob (%d bytes, %s)", len(data), mime_type or DEFAULT_MIME_TYPE,
                extra={"blob_id": blob.id})
    return blob.id


def append_version(pointer: str, content: bytes, mime_type: str | None = None) -> int:
    """Add a new version to an existing blob.

    Returns:
        The new version number.

    Raises:
        NotFoundError: Unknown pointer.
    """
    data = _check_content(content)
    blob = db.session.get(DocumentBlob, pointer)
    if blob is None:
        raise NotFoundError(resource="DocumentBlob", resource_id=pointer)

    current = db.session.execute(
        select(func.max(DocumentBlobVersion.version_number)).where(DocumentBlobVersion.blob_id == pointer)
    ).scalar() or 0
    version = DocumentBlobVersion(
        blob_id=pointer,
        version_number=current + 1,
        content=data,
        mime_type=mime_type or DEFAULT_MIME_TYPE,
    )
    db.session.add(version)
    db.session.flush()
    logger.info("Appended blob version v%d (%d bytes)", version.version_number, len(data),
                extra={"blob_id": pointer})
    return version.version_number


def get_latest_version(pointer: str) -> BlobVersion:
    """Return the newest version's bytes and mime type.

    Raises:
        NotFoundError: Unknown pointer, or a blob with no versions.
    """
    stmt = (
        select(DocumentBlobVersion)
        .where(DocumentBlobVersion.blob_id == pointer)
        .order_by(DocumentBlobVersion.version_number.desc())
        .limit(1)
    )
    row = db.session.execute(stmt).scalar_one_or_none()
    if row is None:
        raise NotFoundError(resource="DocumentBlob", resource_id=pointer)
    return BlobVersion(
        pointer=pointer,
        version_number=row.version_number,
        content=row.content,
        mime_type=row.mime_type,
        uploaded_at=row.uploaded_at,
    )


def list_versions(pointer: str) -> list[dict]:
    """Version metadata, oldest first (no content)."""
    if db.session.get(DocumentBlob, pointer) is None:
        raise NotFoundError(resource="DocumentBlob", resource_id=pointer)
    stmt = (
        select(DocumentBlobVersion)
        .where(DocumentBlobVersion.blob_id == pointer)
        .order_by(DocumentBlobVersion.version_number)
    )
    return [v.to_dict() for v in db.session.execute(stmt).scalars()]
