"""
Document type registry — lookup and seeding of DocumentType rows.

A type is addressable by its full name ("Surat Perjanjian Kerja") or its
shorthand ("SPK"); both are unique.
"""

from __future__ import annotations

import logging

from sqlalchemy import or_, select

from bantal.core.exceptions import NotFoundError
from bantal.models import db
from bantal.models.document import DocumentType

logger = logging.getLogger(__name__)

DEFAULT_DOCUMENT_TYPES = (
    {"type_name": "Surat Penawaran", "shorthand": "Pwn", "variant": "offering_letter"},
    {"type_name": "Surat Perjanjian Kerja", "shorthand": "SPK", "variant": "work_agreement"},
    {"type_name": "Surat Tagihan Non Bulanan", "shorthand": "TagNB", "variant": "non_monthly_billing"},
)


def list_types(*, include_inactive: bool = False) -> list[DocumentType]:
    stmt = select(DocumentType).order_by(DocumentType.id)
    if not include_inactive:
        stmt = stmt.where(DocumentType.is_active.is_(True))
    return list(db.session.execute(stmt).scalars())


def find_type(identifier: str) -> DocumentType:
    """Return the active DocumentType whose name or shorthand equals ``identifier``.

    Raises:
        NotFoundError: No active type matches.
    """
    ident = (identifier or "").strip()
    stmt = select(DocumentType).where(
        or_(DocumentType.type_name == ident, DocumentType.shorthand == ident),
        DocumentType.is_active.is_(True),
    )
    doc_type = db.session.execute(stmt).scalars().first()
    if doc_type is None:
        raise NotFoundError(resource="DocumentType", resource_id=ident)
    return doc_type


def seed_default_types() -> int:
    """Insert the built-in document types that are missing. Caller commits.

    Returns:
        Number of rows inserted.
    """
    existing = {t.shorthand for t in db.session.execute(select(DocumentType)).scalars()}
    created = 0
    for entry in DEFAULT_DOCUMENT_TYPES:
        if entry["shorthand"] in existing:
            continue
        db.session.add(DocumentType(**entry))
        created += 1
    if created:
        db.session.flush()
        logger.info("Seeded %d document types", created)
    return created
