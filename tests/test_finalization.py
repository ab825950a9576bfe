"""Tests for finalization_service.finalize_document.

Coverage:
  1. finalizing records summary / delivery / attachments and sets FINALIZED
  2. second finalize → ConflictError, status stays FINALIZED
  3. work agreement finalize creates exactly one Project (monthly / non-monthly)
  4. type identifier mismatch → ValidationError
  5. more than two attachments → ValidationError, nothing written
  6. statuses without a FINALIZED transition are rejected
  7. a failing post-action rolls back the status change and the uploads
  8. finalized documents cannot be revised
"""

from unittest.mock import patch

import pytest

import bantal.services.document_service as docs
from bantal.core.exceptions import ConflictError, NotFoundError, ValidationError
from bantal.models.blob import DocumentBlob
from bantal.models.project import Project
from bantal.services.finalization_service import finalize_document


def _make_agreement(client_id, number="SPK/010/2025", **overrides):
    payload = {
        "document_number": number,
        "name": "Data centre migration",
        "legal_date": "2025-05-02",
        "client_id": client_id,
        "description": "Move racks to the new DC",
        "start_date": "2025-01-01",
        "end_date": "2025-12-31",
        "project_fee": "240000000",
        "payment_installment": 12,
    }
    payload.update(overrides)
    return docs.create_document("SPK", payload)


def _make_offer(client_id, pic_id, number="PWN/010/2025"):
    return docs.create_document("Pwn", {
        "document_number": number,
        "name": "Offer: DC migration",
        "client_id": client_id,
        "description": "DC migration offer",
        "offered_service": "Migration",
        "person_in_charge_id": pic_id,
    })


class TestFinalizeDocument:
    def test_finalize_offer(self, customer, identity):
        offer = _make_offer(customer.id, identity.id)
        result = finalize_document(
            offer["id"], summary="Signed by client", physical_delivery="true",
            attachments=[(b"scan-1", "application/pdf")],
        )
        assert result["message"] == "Offering letter document has been successfully finalized"
        doc = result["document"]
        assert doc["status"] == "FINALIZED"
        assert doc["finalization_summary"] == "Signed by client"
        assert doc["physical_delivery"] is True
        assert len(doc["attachment_pointers"]) == 1
        assert doc["finalized_at"] is not None

    def test_finalize_twice_conflicts(self, customer, identity):
        offer = _make_offer(customer.id, identity.id)
        finalize_document(offer["id"])
        with pytest.raises(ConflictError, match="already finalized"):
            finalize_document(offer["id"])
        assert docs.get_document(offer["id"]).status == "FINALIZED"

    def test_type_mismatch(self, customer, identity):
        offer = _make_offer(customer.id, identity.id)
        with pytest.raises(ValidationError):
            finalize_document(offer["id"], type_identifier="SPK")
        assert docs.get_document(offer["id"]).status == "DRAFT"

    def test_type_match_by_name(self, customer, identity):
        offer = _make_offer(customer.id, identity.id)
        result = finalize_document(offer["id"], type_identifier="Surat Penawaran")
        assert result["document"]["status"] == "FINALIZED"

    def test_unknown_document(self):
        with pytest.raises(NotFoundError):
            finalize_document("missing")

    def test_too_many_attachments(self, customer, identity):
        offer = _make_offer(customer.id, identity.id)
        files = [(b"a", None), (b"b", None), (b"c", None)]
        with pytest.raises(ValidationError):
            finalize_document(offer["id"], attachments=files)
        assert DocumentBlob.query.count() == 0
        assert docs.get_document(offer["id"]).status == "DRAFT"

    def test_terminal_status_cannot_finalize(self, customer, identity):
        offer = _make_offer(customer.id, identity.id)
        docs.change_status(offer["id"], "CANCELLED")
        with pytest.raises(ConflictError):
            finalize_document(offer["id"])

    def test_finalize_from_pending(self, customer, identity):
        offer = _make_offer(customer.id, identity.id)
        docs.change_status(offer["id"], "PENDING")
        assert finalize_document(offer["id"])["document"]["status"] == "FINALIZED"

    def test_finalized_document_cannot_be_revised(self, customer, identity):
        offer = _make_offer(customer.id, identity.id)
        finalize_document(offer["id"])
        with pytest.raises(ConflictError):
            docs.create_new_version(offer["id"], {"description": "late edit"})

    def test_finalized_can_be_archived(self, customer, identity):
        offer = _make_offer(customer.id, identity.id)
        finalize_document(offer["id"])
        assert docs.change_status(offer["id"], "ARCHIVED").status == "ARCHIVED"


class TestWorkAgreementFinalize:
    def test_creates_one_monthly_project(self, customer):
        wa = _make_agreement(customer.id)
        result = finalize_document(wa["id"], summary="Countersigned")
        assert result["billing_cadence"] == "monthly"
        assert Project.query.count() == 1

        project = Project.query.one()
        assert project.id == result["project_id"]
        assert project.source_document_id == wa["id"]
        assert project.project_name == "Data centre migration"
        assert project.project_description == "Move racks to the new DC"
        assert float(project.project_fee) == 240000000.0
        assert project.currency == "IDR"
        assert project.creation_status == "in_progress"
        assert project.progress_status == "on_track"

    def test_non_monthly_project(self, customer):
        wa = _make_agreement(customer.id, payment_installment=3)
        result = finalize_document(wa["id"])
        assert result["billing_cadence"] == "non_monthly"
        assert Project.query.one().billing_cadence == "non_monthly"

    def test_second_finalize_creates_no_project(self, customer):
        wa = _make_agreement(customer.id)
        finalize_document(wa["id"])
        with pytest.raises(ConflictError):
            finalize_document(wa["id"])
        assert Project.query.count() == 1

    def test_post_action_failure_rolls_back(self, customer):
        wa = _make_agreement(customer.id)
        with patch(
            "bantal.services.project_service.create_from_work_agreement",
            side_effect=RuntimeError("boom"),
        ):
            with pytest.raises(RuntimeError):
                finalize_document(wa["id"], attachments=[(b"scan", "application/pdf")])

        master = docs.get_document(wa["id"])
        assert master.status == "DRAFT"
        assert master.finalized_at is None
        assert Project.query.count() == 0
        assert DocumentBlob.query.count() == 0
