"""
Document handler registry.

Maps DocumentType.variant to the handler instance that owns the variant's
table. Adding a document kind means adding a handler module and one entry
here; the factory picks it up on its next load.
"""

from bantal.services.document_handlers.base import DocumentHandler
from bantal.services.document_handlers.non_monthly_billing import NonMonthlyBillingHandler
from bantal.services.document_handlers.offering_letter import OfferingLetterHandler
from bantal.services.document_handlers.work_agreement import WorkAgreementHandler

HANDLERS: dict[str, DocumentHandler] = {
    handler.variant: handler
    for handler in (
        OfferingLetterHandler(),
        WorkAgreementHandler(),
        NonMonthlyBillingHandler(),
    )
}

__all__ = ["DocumentHandler", "HANDLERS"]
