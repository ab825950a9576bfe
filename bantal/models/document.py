"""
Document registry models.

MasterDocument carries the fields every document shares (number, legal
date, index number, status, blob pointer). Each document kind stores its
specific fields in its own table keyed by ``master_document_id``:

    DocumentType.variant     table
    ─────────────────────    ─────────────────────────
    offering_letter          offering_letter
    work_agreement           work_agreement
    non_monthly_billing      non_monthly_billing

A type table may hold several version rows for one master document;
exactly one of them has ``is_latest=True``.
"""

from bantal.models import _iso, _money, _uuid, _utcnow, db
from bantal.models.mixins import ActiveFlagMixin, VersionedRowMixin

__all__ = [
    "DocumentStatus",
    "STATUS_TRANSITIONS",
    "VARIANTS",
    "BILLING_CADENCES",
    "validate_status_transition",
    "DocumentType",
    "MasterDocument",
    "OfferingLetter",
    "WorkAgreement",
    "NonMonthlyBilling",
]


# ── Lifecycle ────────────────────────────────────────────────────────────────

class DocumentStatus:
    DRAFT = "DRAFT"
    PENDING = "PENDING"
    SIGNED = "SIGNED"
    ACTIVE = "ACTIVE"
    ARCHIVED = "ARCHIVED"
    EXPIRED = "EXPIRED"
    CANCELLED = "CANCELLED"
    REJECTED = "REJECTED"
    FINALIZED = "FINALIZED"

    ALL = frozenset({
        DRAFT, PENDING, SIGNED, ACTIVE, ARCHIVED,
        EXPIRED, CANCELLED, REJECTED, FINALIZED,
    })


STATUS_TRANSITIONS = {
    DocumentStatus.DRAFT:     [DocumentStatus.PENDING, DocumentStatus.FINALIZED, DocumentStatus.CANCELLED],
    DocumentStatus.PENDING:   [DocumentStatus.SIGNED, DocumentStatus.FINALIZED,
                               DocumentStatus.REJECTED, DocumentStatus.CANCELLED],
    DocumentStatus.SIGNED:    [DocumentStatus.ACTIVE, DocumentStatus.FINALIZED, DocumentStatus.CANCELLED],
    DocumentStatus.ACTIVE:    [DocumentStatus.EXPIRED, DocumentStatus.ARCHIVED, DocumentStatus.CANCELLED],
    DocumentStatus.FINALIZED: [DocumentStatus.ARCHIVED],
    DocumentStatus.EXPIRED:   [DocumentStatus.ARCHIVED],
    DocumentStatus.ARCHIVED:  [],
    DocumentStatus.CANCELLED: [],
    DocumentStatus.REJECTED:  [],
}


def validate_status_transition(old_status, new_status):
    """Return True if a MasterDocument status transition is valid."""
    return new_status in STATUS_TRANSITIONS.get(old_status, [])


VARIANTS = ("offering_letter", "work_agreement", "non_monthly_billing")
BILLING_CADENCES = {"monthly", "non_monthly"}


# ═════════════════════════════════════════════════════════════════════════════
# DocumentType: catalogue of document kinds
# ═════════════════════════════════════════════════════════════════════════════

class DocumentType(db.Model):
    """
    A document kind, addressable by its full name or its shorthand.
    ``variant`` names the handler that owns the kind's specific table.
    """

    __tablename__ = "document_type"

    id = db.Column(db.Integer, primary_key=True)
    type_name = db.Column(db.String(255), nullable=False, unique=True)
    shorthand = db.Column(db.String(20), nullable=False, unique=True)
    variant = db.Column(
        db.String(40),
        nullable=False,
        comment="offering_letter | work_agreement | non_monthly_billing",
    )
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type_name": self.type_name,
            "shorthand": self.shorthand,
            "variant": self.variant,
            "is_active": self.is_active,
        }

    def __repr__(self):
        return f"<DocumentType {self.shorthand} ({self.variant})>"


# ═════════════════════════════════════════════════════════════════════════════
# MasterDocument: fields shared by all kinds
# ═════════════════════════════════════════════════════════════════════════════

class MasterDocument(ActiveFlagMixin, db.Model):
    """
    Registry row for every document regardless of kind.

    Business rules:
    - document_number is unique; external_number is unique when present.
    - Never physically deleted; deactivate() flips is_active.
    - blob_pointer references the latest uploaded file in the blob store.
    """

    __tablename__ = "master_document_list"
    __table_args__ = (
        db.Index("ix_master_doc_type_legal_date", "document_type_id", "legal_date"),
    )

    id = db.Column(db.String(36), primary_key=True, default=_uuid)
    document_number = db.Column(db.String(100), nullable=False, unique=True)
    external_number = db.Column(
        db.String(100), nullable=True, unique=True,
        comment="Number assigned by the counterparty; NULL when not provided",
    )
    document_type_id = db.Column(
        db.Integer, db.ForeignKey("document_type.id"), nullable=False, index=True,
    )
    name = db.Column(db.String(255), nullable=False)
    legal_date = db.Column(db.Date, nullable=False)
    index_number = db.Column(db.Integer, nullable=True, comment="Running number per type per month")
    status = db.Column(
        db.String(20),
        nullable=False,
        default=DocumentStatus.DRAFT,
        comment="DRAFT | PENDING | SIGNED | ACTIVE | ARCHIVED | EXPIRED | CANCELLED | REJECTED | FINALIZED",
    )
    blob_pointer = db.Column(db.String(36), nullable=True, comment="Opaque id in the blob store")

    division_id = db.Column(
        db.String(36), db.ForeignKey("master_division_list.id", ondelete="SET NULL"), nullable=True,
    )
    company_id = db.Column(
        db.String(36), db.ForeignKey("master_company_list.id", ondelete="SET NULL"),
        nullable=True, index=True,
    )
    created_by_id = db.Column(
        db.String(36), db.ForeignKey("identity.id", ondelete="SET NULL"), nullable=True,
    )

    # Finalization record
    finalization_summary = db.Column(db.Text, nullable=True)
    physical_delivery = db.Column(db.Boolean, nullable=True)
    attachment_pointers = db.Column(db.JSON, nullable=True, comment="Blob pointers uploaded at finalize")
    finalized_at = db.Column(db.DateTime(timezone=True), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow)

    document_type = db.relationship("DocumentType", lazy="joined")
    division = db.relationship("Division")
    company = db.relationship("Company")
    created_by = db.relationship("Identity")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "document_number": self.document_number,
            "external_number": self.external_number,
            "document_type_id": self.document_type_id,
            "document_type": self.document_type.type_name if self.document_type else None,
            "shorthand": self.document_type.shorthand if self.document_type else None,
            "name": self.name,
            "legal_date": _iso(self.legal_date),
            "index_number": self.index_number,
            "status": self.status,
            "blob_pointer": self.blob_pointer,
            "division_id": self.division_id,
            "company_id": self.company_id,
            "created_by_id": self.created_by_id,
            "finalization_summary": self.finalization_summary,
            "physical_delivery": self.physical_delivery,
            "attachment_pointers": self.attachment_pointers or [],
            "finalized_at": _iso(self.finalized_at),
            "is_active": self.is_active,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self):
        return f"<MasterDocument {self.document_number} [{self.status}]>"


# ═════════════════════════════════════════════════════════════════════════════
# Type-specific tables
# ═════════════════════════════════════════════════════════════════════════════

class OfferingLetter(VersionedRowMixin, db.Model):
    """Offering letter (Surat Penawaran)."""

    __tablename__ = "offering_letter"

    client_id = db.Column(db.String(36), db.ForeignKey("master_client_list.id"), nullable=False)
    description = db.Column(db.Text, nullable=False)
    offered_service = db.Column(db.Text, nullable=False)
    person_in_charge_id = db.Column(db.String(36), db.ForeignKey("identity.id"), nullable=False)

    def to_dict(self) -> dict:
        d = self.version_dict()
        d.update({
            "client_id": self.client_id,
            "description": self.description,
            "offered_service": self.offered_service,
            "person_in_charge_id": self.person_in_charge_id,
        })
        return d


class WorkAgreement(VersionedRowMixin, db.Model):
    """Work agreement (Surat Perjanjian Kerja). Finalizing one spawns a project."""

    __tablename__ = "work_agreement"

    client_id = db.Column(db.String(36), db.ForeignKey("master_client_list.id"), nullable=False)
    description = db.Column(db.Text, nullable=False)
    start_date = db.Column(db.Date, nullable=False)
    end_date = db.Column(db.Date, nullable=True)
    project_fee = db.Column(db.Numeric(19, 4), nullable=False)
    payment_installment_count = db.Column(db.Integer, nullable=False)
    is_include_vat = db.Column(db.Boolean, nullable=False, default=False)
    billing_cadence = db.Column(
        db.String(20), nullable=True,
        comment="monthly | non_monthly; NULL means classify at finalize",
    )

    def to_dict(self) -> dict:
        d = self.version_dict()
        d.update({
            "client_id": self.client_id,
            "description": self.description,
            "start_date": _iso(self.start_date),
            "end_date": _iso(self.end_date),
            "project_fee": _money(self.project_fee),
            "payment_installment": self.payment_installment_count,
            "is_include_vat": self.is_include_vat,
            "billing_cadence": self.billing_cadence,
        })
        return d


class NonMonthlyBilling(VersionedRowMixin, db.Model):
    """Non-monthly billing letter (Surat Tagihan Non Bulanan)."""

    __tablename__ = "non_monthly_billing"

    client_id = db.Column(db.String(36), db.ForeignKey("master_client_list.id"), nullable=False)
    description = db.Column(db.Text, nullable=False)
    contract_value = db.Column(db.Numeric(19, 4), nullable=True)
    dpp_other_value = db.Column(db.Numeric(19, 4), nullable=True, comment="DPP nilai lain (tax base)")
    vat_amount = db.Column(db.Numeric(19, 4), nullable=True, comment="PPN 12%")
    income_tax_amount = db.Column(db.Numeric(19, 4), nullable=True, comment="PPh 23")
    total_amount = db.Column(db.Numeric(19, 4), nullable=True)
    bank_info = db.Column(db.JSON, nullable=True)
    work_agreement_document_id = db.Column(
        db.String(36), db.ForeignKey("master_document_list.id"), nullable=True,
        comment="Master document of the work agreement being billed",
    )

    def to_dict(self) -> dict:
        d = self.version_dict()
        d.update({
            "client_id": self.client_id,
            "description": self.description,
            "contract_value": _money(self.contract_value),
            "dpp_other_value": _money(self.dpp_other_value),
            "vat_amount": _money(self.vat_amount),
            "income_tax_amount": _money(self.income_tax_amount),
            "total_amount": _money(self.total_amount),
            "bank_info": self.bank_info,
            "work_agreement_document_id": self.work_agreement_document_id,
        })
        return d
