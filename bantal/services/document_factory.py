"""
Document factory — resolves a type identifier (name or shorthand) to its handler.

The dispatch table is built by an explicit load step, run once from
create_app() (and after seeding), before requests are served:

    factory.load()
    handler, doc_type = factory.resolve_handler("SPK")

A lookup miss reloads from the database once, so types inserted after
start-up become resolvable without a restart. A type whose variant has no
registered handler is treated as unknown.
"""

from __future__ import annotations

import logging

from sqlalchemy import select

from bantal.core.exceptions import NotFoundError
from bantal.models import db
from bantal.models.document import DocumentType
from bantal.services.document_handlers import HANDLERS, DocumentHandler

logger = logging.getLogger(__name__)


class DocumentFactory:
    def __init__(self, handlers: dict[str, DocumentHandler] | None = None) -> None:
        self._handlers = dict(handlers if handlers is not None else HANDLERS)
        # identifier (type_name or shorthand) → DocumentType.id
        self._dispatch: dict[str, int] = {}
        self.loaded = False

    def init_app(self, app) -> None:
        """Load the dispatch table inside an app context; store on app.extensions."""
        app.extensions["document_factory"] = self
        with app.app_context():
            try:
                self.load()
            except Exception as exc:
                # First boot before tables exist; the reload-on-miss path recovers
                app.logger.warning("Document factory load skipped: %s", exc)

    def load(self) -> int:
        """Rebuild the dispatch table from active DocumentType rows.

        Returns:
            Number of document types registered.
        """
        stmt = select(DocumentType).where(DocumentType.is_active.is_(True))
        dispatch: dict[str, int] = {}
        count = 0
        for doc_type in db.session.execute(stmt).scalars():
            if doc_type.variant not in self._handlers:
                logger.warning(
                    "DocumentType %s has no handler for variant %r; skipped",
                    doc_type.shorthand, doc_type.variant,
                )
                continue
            dispatch[doc_type.type_name] = doc_type.id
            dispatch[doc_type.shorthand] = doc_type.id
            count += 1
        self._dispatch = dispatch
        self.loaded = True
        logger.info("Document factory loaded %d document types", count)
        return count

    def handler_for_variant(self, variant: str) -> DocumentHandler:
        handler = self._handlers.get(variant)
        if handler is None:
            raise NotFoundError(resource="DocumentHandler", resource_id=variant)
        return handler

    def handler_for_type(self, doc_type: DocumentType) -> DocumentHandler:
        return self.handler_for_variant(doc_type.variant)

    def resolve_handler(self, identifier: str) -> tuple[DocumentHandler, DocumentType]:
        """Return ``(handler, document_type)`` for a type name or shorthand.

        Raises:
            NotFoundError: Unknown identifier (after one reload), or a type
                whose variant has no handler.
        """
        ident = (identifier or "").strip()
        type_id = self._dispatch.get(ident)
        if type_id is None:
            self.load()
            type_id = self._dispatch.get(ident)
        if type_id is None:
            raise NotFoundError(resource="DocumentType", resource_id=ident)

        doc_type = db.session.get(DocumentType, type_id)
        if doc_type is None or not doc_type.is_active:
            # Row vanished or was deactivated since the last load
            self.load()
            raise NotFoundError(resource="DocumentType", resource_id=ident)
        return self.handler_for_type(doc_type), doc_type

    def registered_identifiers(self) -> list[str]:
        return sorted(self._dispatch)


factory = DocumentFactory()


def get_factory() -> DocumentFactory:
    return factory
