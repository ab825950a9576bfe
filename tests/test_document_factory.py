"""Tests for the document type registry and the document factory.

Coverage:
  1. seed_default_types is idempotent
  2. find_type matches full name or shorthand, active types only
  3. factory.load registers every active type under both identifiers
  4. resolve_handler returns the same handler for name and shorthand
  5. unknown identifier → NotFoundError
  6. a type inserted after load resolves via reload-on-miss
  7. types with no registered handler, and deactivated types, are unknown
"""

import pytest

from bantal.core.exceptions import NotFoundError
from bantal.models import db
from bantal.models.document import DocumentType
from bantal.services import document_type_service
from bantal.services.document_factory import DocumentFactory, factory, get_factory
from bantal.services.document_handlers import HANDLERS
from bantal.services.document_handlers.offering_letter import OfferingLetterHandler
from bantal.services.document_handlers.work_agreement import WorkAgreementHandler


def _add_type(type_name, shorthand, variant, is_active=True):
    t = DocumentType(type_name=type_name, shorthand=shorthand, variant=variant, is_active=is_active)
    db.session.add(t)
    db.session.commit()
    return t


class TestDocumentTypeService:
    def test_seed_is_idempotent(self):
        assert document_type_service.seed_default_types() == 0
        assert len(document_type_service.list_types()) == 3

    def test_find_type_by_name_and_shorthand(self):
        by_name = document_type_service.find_type("Surat Perjanjian Kerja")
        by_short = document_type_service.find_type("SPK")
        assert by_name.id == by_short.id
        assert by_short.variant == "work_agreement"

    def test_find_type_unknown_raises(self):
        with pytest.raises(NotFoundError):
            document_type_service.find_type("XYZ")

    def test_inactive_type_hidden(self):
        _add_type("Surat Lama", "Old", "offering_letter", is_active=False)
        with pytest.raises(NotFoundError):
            document_type_service.find_type("Old")
        assert len(document_type_service.list_types(include_inactive=True)) == 4


class TestDocumentFactory:
    def test_get_factory_returns_module_instance(self):
        assert get_factory() is factory

    def test_load_registers_name_and_shorthand(self):
        assert factory.load() == 3
        idents = factory.registered_identifiers()
        for ident in ("Pwn", "Surat Penawaran", "SPK", "Surat Perjanjian Kerja",
                      "TagNB", "Surat Tagihan Non Bulanan"):
            assert ident in idents

    def test_resolve_by_name_and_shorthand_same_handler(self):
        h1, t1 = factory.resolve_handler("Surat Perjanjian Kerja")
        h2, t2 = factory.resolve_handler("SPK")
        assert h1 is h2
        assert isinstance(h1, WorkAgreementHandler)
        assert t1.id == t2.id

    def test_resolve_unknown_raises(self):
        with pytest.raises(NotFoundError) as exc:
            factory.resolve_handler("Surat Tidak Ada")
        assert exc.value.resource == "DocumentType"

    def test_type_added_after_load_resolves(self):
        factory.load()
        _add_type("Surat Penawaran Revisi", "PwnR", "offering_letter")
        handler, doc_type = factory.resolve_handler("PwnR")
        assert isinstance(handler, OfferingLetterHandler)
        assert doc_type.type_name == "Surat Penawaran Revisi"

    def test_type_without_handler_is_unknown(self):
        _add_type("Surat Keputusan", "SK", "decree")
        assert factory.load() == 3
        with pytest.raises(NotFoundError):
            factory.resolve_handler("SK")

    def test_type_deactivated_after_load_is_unknown(self):
        factory.load()
        doc_type = document_type_service.find_type("TagNB")
        doc_type.is_active = False
        db.session.commit()
        with pytest.raises(NotFoundError):
            factory.resolve_handler("TagNB")

    def test_custom_handler_set(self):
        f = DocumentFactory(handlers={"work_agreement": HANDLERS["work_agreement"]})
        assert f.load() == 1
        assert f.registered_identifiers() == ["SPK", "Surat Perjanjian Kerja"]

    def test_init_app_stores_extension(self, app):
        assert app.extensions["document_factory"] is factory
