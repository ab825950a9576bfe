"""
Finalization orchestrator.

finalize_document runs as one transaction:
    1. load the master document (deactivated documents are not found)
    2. optional type check against the caller's type identifier
    3. reject a second finalize (ConflictError; status stays FINALIZED)
    4. guard the transition with the status table
    5. upload attachments to the blob store
    6. record summary / delivery / pointers and set FINALIZED
    7. run the handler's post-action (work agreement → new Project)

Any failure in 5–7 rolls back the status change and the uploads.
"""

from __future__ import annotations

import logging

from flask import current_app

from bantal.core.exceptions import ConflictError, ValidationError
from bantal.models import _utcnow
from bantal.models.document import DocumentStatus, validate_status_transition
from bantal.services import blob_store
from bantal.services.document_factory import get_factory
from bantal.services.document_service import get_document
from bantal.utils.helpers import parse_bool, transaction

logger = logging.getLogger(__name__)


def finalize_document(
    document_id: str,
    summary: str | None = None,
    physical_delivery=None,
    attachments: list[tuple[bytes, str | None]] | None = None,
    type_identifier: str | None = None,
) -> dict:
    """Finalize a document and run its type-specific post-action.

    Args:
        document_id: MasterDocument id.
        summary: Free-text finalization summary.
        physical_delivery: Whether a signed paper copy was delivered.
        attachments: ``(content, mime_type)`` pairs uploaded to the blob store.
        type_identifier: When given, must resolve to the document's own type.

    Returns:
        {"message": str, "document": dict, ...handler extras}

    Raises:
        NotFoundError: Unknown document or type identifier.
        ValidationError: Type mismatch, or too many attachments.
        ConflictError: Already finalized, or status does not allow finalizing.
    """
    attachments = list(attachments or [])
    limit = current_app.config.get("MAX_FINALIZE_ATTACHMENTS", 2)
    if len(attachments) > limit:
        raise ValidationError(
            f"At most {limit} attachments may be uploaded when finalizing",
            details={"files": f"max {limit}"},
        )

    master = get_document(document_id)
    factory = get_factory()

    if type_identifier:
        _, requested_type = factory.resolve_handler(type_identifier)
        if requested_type.id != master.document_type_id:
            raise ValidationError(
                f"Document {document_id} is not of type {type_identifier}",
                details={"document_type": "mismatch"},
            )

    if master.status == DocumentStatus.FINALIZED:
        raise ConflictError(
            "MasterDocument", "status", master.status,
            message="Document is already finalized",
        )
    if not validate_status_transition(master.status, DocumentStatus.FINALIZED):
        raise ConflictError(
            "MasterDocument", "status", master.status,
            message=f"Document in status {master.status} cannot be finalized",
        )

    handler = factory.handler_for_type(master.document_type)
    with transaction("MasterDocument"):
        pointers = [blob_store.store(content, mime) for content, mime in attachments]
        master.finalization_summary = summary
        master.physical_delivery = parse_bool(physical_delivery)
        master.attachment_pointers = pointers
        master.finalized_at = _utcnow()
        master.status = DocumentStatus.FINALIZED
        result = handler.finalize(master, summary, master.physical_delivery, pointers)

    logger.info(
        "Document finalized (%d attachments)", len(pointers),
        extra={"document_id": master.id, "document_type": handler.variant},
    )
    result["document"] = master.to_dict()
    return result
