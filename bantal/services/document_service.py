"""
Master document registry service.

Owns the MasterDocument lifecycle outside finalization:
    create_master_document   → validated master row (status DRAFT)
    create_document          → resolve type → validate → master → type row → blob,
                               all in one transaction
    get / list / detail      → registry reads (deactivated docs hidden by default)
    get_latest_index_number  → running number per type, month, year, company
    attach_file / download   → blob store pointer management
    change_status            → transition-table guarded status changes
    deactivate_document      → is_active=False (never a physical delete)

Only this service (and finalization_service) commits.
"""

from __future__ import annotations

import logging
from datetime import date

from sqlalchemy import extract, select

from bantal.core.exceptions import ConflictError, NotFoundError, ValidationError
from bantal.models import db
from bantal.models.document import (
    DocumentStatus,
    DocumentType,
    MasterDocument,
    validate_status_transition,
)
from bantal.models.identity import Identity
from bantal.models.organization import Company, Division
from bantal.services import blob_store
from bantal.services.document_factory import get_factory
from bantal.services.document_type_service import find_type
from bantal.utils.helpers import blank, parse_date_input, parse_int, transaction

logger = logging.getLogger(__name__)

# Payload keys that belong to the master record rather than the type row
MASTER_FIELDS = (
    "document_number",
    "external_number",
    "name",
    "legal_date",
    "index_number",
    "division_id",
    "company_id",
    "created_by_id",
)


def split_payload(payload: dict) -> tuple[dict, dict]:
    """Separate master-record fields from type-specific fields."""
    master = {k: payload.get(k) for k in MASTER_FIELDS if k in payload}
    specific = {k: v for k, v in payload.items() if k not in MASTER_FIELDS}
    return master, specific


def _clean_master_fields(fields: dict) -> dict:
    for required in ("document_number", "name"):
        if blank(fields.get(required)):
            raise ValidationError(f"{required} is required", details={required: "required"})
    legal_date = parse_date_input(fields.get("legal_date"), "legal_date") or date.today()
    external = fields.get("external_number")
    return {
        "document_number": str(fields["document_number"]).strip(),
        "external_number": None if blank(external) else str(external).strip(),
        "name": str(fields["name"]).strip(),
        "legal_date": legal_date,
        "index_number": parse_int(fields.get("index_number"), "index_number", minimum=0),
        "division_id": fields.get("division_id") or None,
        "company_id": fields.get("company_id") or None,
        "created_by_id": fields.get("created_by_id") or None,
    }


def _check_master_references(data: dict) -> None:
    if data["created_by_id"] and db.session.get(Identity, data["created_by_id"]) is None:
        raise NotFoundError(resource="Identity", resource_id=data["created_by_id"])
    if data["division_id"] and db.session.get(Division, data["division_id"]) is None:
        raise NotFoundError(resource="Division", resource_id=data["division_id"])
    if data["company_id"] and db.session.get(Company, data["company_id"]) is None:
        raise NotFoundError(resource="Company", resource_id=data["company_id"])


def _check_unique_numbers(data: dict) -> None:
    exists = db.session.execute(
        select(MasterDocument.id).where(MasterDocument.document_number == data["document_number"])
    ).first()
    if exists:
        raise ConflictError("MasterDocument", "document_number", data["document_number"])
    if data["external_number"]:
        exists = db.session.execute(
            select(MasterDocument.id).where(MasterDocument.external_number == data["external_number"])
        ).first()
        if exists:
            raise ConflictError("MasterDocument", "external_number", data["external_number"])


# ═════════════════════════════════════════════════════════════════════════════
# Creation
# ═════════════════════════════════════════════════════════════════════════════


def create_master_document(document_type: DocumentType, fields: dict,
                           blob_pointer: str | None = None) -> MasterDocument:
    """Add a DRAFT master document to the session (flushed, not committed).

    Args:
        document_type: Resolved DocumentType.
        fields: Master fields (see MASTER_FIELDS).
        blob_pointer: Optional blob store pointer for the initial file.

    Raises:
        ValidationError: Missing document_number / name, or malformed values.
        NotFoundError: Unknown creator, division or company.
        ConflictError: Duplicate document_number or external_number.
    """
    data = _clean_master_fields(fields)
    _check_master_references(data)
    _check_unique_numbers(data)

    master = MasterDocument(
        document_type_id=document_type.id,
        status=DocumentStatus.DRAFT,
        blob_pointer=blob_pointer,
        is_active=True,
        **data,
    )
    db.session.add(master)
    db.session.flush()
    return master


def create_document(type_identifier: str, payload: dict,
                    file_bytes: bytes | None = None, mime_type: str | None = None) -> dict:
    """Create a master document plus its type-specific row in one transaction.

    Flow: resolve handler → validate type payload → create master → handler
    create → optional blob upload. Any failure rolls everything back, so a
    rejected payload never leaves a master row behind.

    Args:
        type_identifier: DocumentType name or shorthand.
        payload: Master fields and type-specific fields in one dict.
        file_bytes: Optional initial file content.
        mime_type: Mime type of ``file_bytes``.

    Returns:
        Unified document view (master + latest type row).

    Raises:
        NotFoundError: Unknown type or referenced record.
        ValidationError: Missing/invalid master or type field.
        ConflictError: Duplicate document number.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be an object")
    handler, doc_type = get_factory().resolve_handler(type_identifier)
    master_fields, specific = split_payload(payload)

    # Validate the type payload before touching the database
    handler.validate(specific)

    with transaction("MasterDocument"):
        pointer = blob_store.store(file_bytes, mime_type) if file_bytes is not None else None
        master = create_master_document(doc_type, master_fields, blob_pointer=pointer)
        row = handler.create(master, specific)

    logger.info(
        "Created %s document %s", doc_type.shorthand, master.document_number,
        extra={"document_id": master.id, "document_type": doc_type.variant},
    )
    result = master.to_dict()
    result["details"] = handler.serialize(row)
    return result


def create_new_version(document_id: str, payload: dict, uploaded_by: str | None = None) -> dict:
    """Append a version of the type-specific row (only while not finalized)."""
    master = get_document(document_id)
    if master.status == DocumentStatus.FINALIZED:
        raise ConflictError(
            "MasterDocument", "status", master.status,
            message="Finalized documents cannot be revised",
        )
    handler = get_factory().handler_for_type(master.document_type)
    _, specific = split_payload(payload or {})
    with transaction("MasterDocument"):
        row = handler.new_version(master, specific, uploaded_by=uploaded_by)
    result = master.to_dict()
    result["details"] = handler.serialize(row)
    return result


# ═════════════════════════════════════════════════════════════════════════════
# Reads
# ═════════════════════════════════════════════════════════════════════════════


def get_document(document_id: str, *, include_inactive: bool = False) -> MasterDocument:
    """Return a master document by id.

    Raises:
        NotFoundError: Unknown id, or deactivated and include_inactive is False.
    """
    master = db.session.get(MasterDocument, document_id)
    if master is None or (not master.is_active and not include_inactive):
        raise NotFoundError(resource="MasterDocument", resource_id=document_id)
    return master


def get_document_detail(document_id: str) -> dict:
    """Master record plus the latest type-specific row."""
    master = get_document(document_id)
    handler = get_factory().handler_for_type(master.document_type)
    result = master.to_dict()
    result["details"] = handler.serialize(handler.latest_row(master))
    return result


def list_documents(filters: dict | None = None):
    """Build a query of master documents, newest first.

    Filters: type (name or shorthand), status, company_id, division_id,
    include_inactive. Returns a query so callers can paginate.
    """
    filters = filters or {}
    if filters.get("include_inactive"):
        query = MasterDocument.query
    else:
        query = MasterDocument.query_active()
    if filters.get("type"):
        doc_type = find_type(filters["type"])
        query = query.filter(MasterDocument.document_type_id == doc_type.id)
    if filters.get("status"):
        status = str(filters["status"]).upper()
        if status not in DocumentStatus.ALL:
            raise ValidationError(f"Unknown status: {filters['status']}", details={"status": "invalid"})
        query = query.filter(MasterDocument.status == status)
    if filters.get("company_id"):
        query = query.filter(MasterDocument.company_id == filters["company_id"])
    if filters.get("division_id"):
        query = query.filter(MasterDocument.division_id == filters["division_id"])
    return query.order_by(MasterDocument.created_at.desc(), MasterDocument.id)


def get_latest_index_number(shorthand: str, month: int | None = None, year: int | None = None,
                            company_id: str | None = None) -> int:
    """Return the highest index number issued for a document type.

    Filters on the legal date's month/year and on the company when given.
    No locking: two concurrent callers can read the same value; the unique
    document_number is the hard guard.

    Args:
        shorthand: DocumentType shorthand (a full type name is accepted too).
        month: 1..12, optional.
        year: Optional four-digit year.
        company_id: Optional company scope.

    Returns:
        Max index_number, or 0 when no document matches.

    Raises:
        ValidationError: Month outside 1..12.
        NotFoundError: Unknown shorthand.
    """
    month = parse_int(month, "month")
    year = parse_int(year, "year")
    if month is not None and not 1 <= month <= 12:
        raise ValidationError("Month must be between 1 and 12", details={"month": "out of range"})
    doc_type = find_type(shorthand)

    stmt = (
        select(MasterDocument.index_number)
        .where(
            MasterDocument.document_type_id == doc_type.id,
            MasterDocument.index_number.is_not(None),
        )
        .order_by(MasterDocument.index_number.desc())
        .limit(1)
    )
    if month is not None:
        stmt = stmt.where(extract("month", MasterDocument.legal_date) == month)
    if year is not None:
        stmt = stmt.where(extract("year", MasterDocument.legal_date) == year)
    if company_id:
        stmt = stmt.where(MasterDocument.company_id == company_id)

    latest = db.session.execute(stmt).scalar()
    return latest or 0


# ═════════════════════════════════════════════════════════════════════════════
# Mutations
# ═════════════════════════════════════════════════════════════════════════════


def attach_file(document_id: str, content: bytes, mime_type: str | None = None) -> dict:
    """Upload a file for a document.

    First upload stores a new blob and records its pointer; later uploads
    append a version to the same blob.

    Returns:
        {"blob_pointer": str, "version_number": int}
    """
    master = get_document(document_id)
    with transaction("MasterDocument"):
        if master.blob_pointer:
            version = blob_store.append_version(master.blob_pointer, content, mime_type)
        else:
            master.blob_pointer = blob_store.store(content, mime_type)
            version = 1
    logger.info("Attached file v%d", version, extra={"document_id": master.id, "blob_id": master.blob_pointer})
    return {"blob_pointer": master.blob_pointer, "version_number": version}


def download_document(document_id: str) -> blob_store.BlobVersion:
    """Return the latest file version for a document.

    Raises:
        NotFoundError: Unknown document, or no file attached.
    """
    master = get_document(document_id)
    if not master.blob_pointer:
        raise NotFoundError(resource="DocumentFile", resource_id=document_id)
    return blob_store.get_latest_version(master.blob_pointer)


def change_status(document_id: str, new_status: str) -> MasterDocument:
    """Move a document along the status transition table.

    FINALIZED is reachable only through finalization_service.finalize_document.

    Raises:
        ValidationError: Unknown status, or FINALIZED requested here.
        ConflictError: Transition not allowed from the current status.
    """
    status = str(new_status or "").strip().upper()
    if status not in DocumentStatus.ALL:
        raise ValidationError(f"Unknown status: {new_status}", details={"status": "invalid"})
    if status == DocumentStatus.FINALIZED:
        raise ValidationError("Use the finalize operation to finalize a document", details={"status": "use finalize"})

    master = get_document(document_id)
    if not validate_status_transition(master.status, status):
        raise ConflictError(
            "MasterDocument", "status", master.status,
            message=f"Invalid status transition: {master.status} → {status}",
        )
    old = master.status
    with transaction("MasterDocument"):
        master.status = status
    logger.info("Document status %s → %s", old, status, extra={"document_id": master.id})
    return master


def deactivate_document(document_id: str) -> MasterDocument:
    master = get_document(document_id)
    with transaction("MasterDocument"):
        master.deactivate()
    logger.info("Document deactivated", extra={"document_id": master.id})
    return master
