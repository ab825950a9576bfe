"""
DocumentHandler — the contract every document kind implements.

A handler owns exactly one type-specific table (``model``) and knows how to:
    validate(payload)        → cleaned dict, or ValidationError naming the field
    create(master, payload)  → first version row (version 1, is_latest)
    new_version(...)         → append a version, demoting the previous latest
    finalize(master, ...)    → kind-specific post-action + result message
    serialize(row)           → dict for the unified document view

Handlers never commit; the calling service owns the transaction.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from flask import current_app
from sqlalchemy import func, select

from bantal.core.exceptions import InternalError, NotFoundError, ValidationError
from bantal.models import db
from bantal.models.identity import Identity
from bantal.models.organization import Client
from bantal.utils.helpers import blank

logger = logging.getLogger(__name__)


class DocumentHandler(ABC):
    #: DocumentType.variant this handler serves
    variant: str = ""
    #: Human label used in result messages
    display_name: str = ""
    #: SQLAlchemy model of the type-specific table
    model = None
    #: Payload keys that must be present and non-blank, checked in order
    required_fields: tuple[str, ...] = ()

    # ── Validation ──────────────────────────────────────────────────────

    def _require(self, payload: dict) -> None:
        for field in self.required_fields:
            if blank(payload.get(field)):
                raise ValidationError(f"{field} is required", details={field: "required"})

    def validate(self, payload: dict) -> dict:
        """Check required fields and parse values.

        Returns:
            Cleaned column values for ``model``.

        Raises:
            ValidationError: First missing or invalid field.
        """
        if not isinstance(payload, dict):
            raise ValidationError("Document payload must be an object")
        self._require(payload)
        return self.clean(payload)

    @abstractmethod
    def clean(self, payload: dict) -> dict:
        """Parse the (already presence-checked) payload into column values."""

    def check_references(self, data: dict) -> None:
        """Ensure referenced rows exist. Runs inside the write transaction."""
        client_id = data.get("client_id")
        if client_id is not None and db.session.get(Client, client_id) is None:
            raise NotFoundError(resource="Client", resource_id=client_id)

    # ── Persistence ─────────────────────────────────────────────────────

    @staticmethod
    def uploader_for(master) -> str:
        return master.created_by_id or current_app.config.get("SYSTEM_IDENTITY_ID", "system")

    def create(self, master, payload: dict):
        """Persist version 1 of the type-specific row for ``master``."""
        data = self.validate(payload)
        self.check_references(data)
        row = self.model(
            master_document_id=master.id,
            version_number=1,
            is_latest=True,
            uploaded_by=self.uploader_for(master),
            **data,
        )
        db.session.add(row)
        db.session.flush()
        logger.info(
            "Created %s row v1", self.variant,
            extra={"document_id": master.id, "document_type": self.variant},
        )
        return row

    def latest_row(self, master):
        """Return the is_latest row for ``master``.

        Raises:
            InternalError: A master document of this kind has no type row.
        """
        stmt = select(self.model).where(
            self.model.master_document_id == master.id,
            self.model.is_latest.is_(True),
        )
        row = db.session.execute(stmt).scalars().first()
        if row is None:
            raise InternalError(f"{self.display_name} data missing for document {master.id}")
        return row

    def new_version(self, master, payload: dict, uploaded_by: str | None = None):
        """Append a version built from the latest row overlaid with ``payload``."""
        current = self.latest_row(master)
        merged = {key: getattr(current, key) for key in self.payload_columns()}
        merged.update({k: v for k, v in (payload or {}).items() if k in self.payload_keys()})
        data = self.validate(self.to_payload(merged))
        self.check_references(data)

        next_number = (db.session.execute(
            select(func.max(self.model.version_number)).where(self.model.master_document_id == master.id)
        ).scalar() or 0) + 1
        current.is_latest = False
        db.session.flush()
        row = self.model(
            master_document_id=master.id,
            version_number=next_number,
            is_latest=True,
            uploaded_by=uploaded_by or self.uploader_for(master),
            **data,
        )
        db.session.add(row)
        db.session.flush()
        logger.info(
            "Created %s row v%d", self.variant, next_number,
            extra={"document_id": master.id, "document_type": self.variant},
        )
        return row

    def payload_columns(self) -> tuple[str, ...]:
        """Model columns that come from the payload (everything but versioning)."""
        skip = {"id", "master_document_id", "version_number", "is_latest", "uploaded_by", "created_at", "updated_at"}
        return tuple(c.key for c in self.model.__table__.columns if c.key not in skip)

    def payload_keys(self) -> tuple[str, ...]:
        return self.payload_columns()

    def to_payload(self, columns: dict) -> dict:
        """Map stored column values back to payload keys (identity by default)."""
        return dict(columns)

    # ── Lifecycle ───────────────────────────────────────────────────────

    def finalize(self, master, summary: str | None, physical_delivery: bool | None,
                 attachment_pointers: list[str]) -> dict:
        """Run the kind-specific finalize post-action. Status is set by the caller."""
        return {"message": f"{self.display_name} document has been successfully finalized"}

    def serialize(self, row) -> dict:
        return row.to_dict()


def identity_exists(identity_id) -> bool:
    return db.session.get(Identity, identity_id) is not None
