"""Offering letter (Surat Penawaran) handler."""

from __future__ import annotations

from bantal.core.exceptions import NotFoundError
from bantal.models.document import OfferingLetter
from bantal.services.document_handlers.base import DocumentHandler, identity_exists


class OfferingLetterHandler(DocumentHandler):
    variant = "offering_letter"
    display_name = "Offering letter"
    model = OfferingLetter
    required_fields = ("client_id", "description", "offered_service", "person_in_charge_id")

    def clean(self, payload: dict) -> dict:
        return {
            "client_id": str(payload["client_id"]).strip(),
            "description": str(payload["description"]).strip(),
            "offered_service": str(payload["offered_service"]).strip(),
            "person_in_charge_id": str(payload["person_in_charge_id"]).strip(),
        }

    def check_references(self, data: dict) -> None:
        super().check_references(data)
        if not identity_exists(data["person_in_charge_id"]):
            raise NotFoundError(resource="Identity", resource_id=data["person_in_charge_id"])
