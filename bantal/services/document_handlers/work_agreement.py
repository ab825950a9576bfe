"""Work agreement (Surat Perjanjian Kerja) handler.

Finalizing a work agreement spawns exactly one Project. Whether the
project is billed monthly or not is decided by classify_billing_cadence.
"""

from __future__ import annotations

import logging

from bantal.core.exceptions import ValidationError
from bantal.models.document import BILLING_CADENCES, WorkAgreement
from bantal.services.document_handlers.base import DocumentHandler
from bantal.utils.helpers import parse_bool, parse_date_input, parse_decimal, parse_int

logger = logging.getLogger(__name__)


def months_spanned(start_date, end_date) -> int:
    """Whole months covered by [start_date, end_date].

    2025-01-01 → 2025-12-31 is 12; 2025-01-15 → 2025-04-14 is 3.
    """
    months = (end_date.year - start_date.year) * 12 + (end_date.month - start_date.month)
    if end_date.day >= start_date.day:
        months += 1
    return max(months, 0)


def classify_billing_cadence(agreement: WorkAgreement) -> str:
    """Return "monthly" or "non_monthly" for a work agreement.

    An explicit ``billing_cadence`` wins. Otherwise the agreement is monthly
    when it has an end date, more than one installment, and exactly one
    installment per month of its term.
    """
    if agreement.billing_cadence in BILLING_CADENCES:
        return agreement.billing_cadence
    count = agreement.payment_installment_count or 0
    if agreement.end_date is None or count <= 1:
        return "non_monthly"
    if count == months_spanned(agreement.start_date, agreement.end_date):
        return "monthly"
    return "non_monthly"


class WorkAgreementHandler(DocumentHandler):
    variant = "work_agreement"
    display_name = "Work agreement"
    model = WorkAgreement
    required_fields = ("client_id", "description", "start_date", "project_fee", "payment_installment")

    def clean(self, payload: dict) -> dict:
        start_date = parse_date_input(payload["start_date"], "start_date")
        end_date = parse_date_input(payload.get("end_date"), "end_date")
        if end_date is not None and start_date > end_date:
            raise ValidationError(
                "Start date must be before end date",
                details={"start_date": "after end_date"},
            )

        cadence = payload.get("billing_cadence") or None
        if cadence is not None and cadence not in BILLING_CADENCES:
            raise ValidationError(
                f"billing_cadence must be one of {sorted(BILLING_CADENCES)}",
                details={"billing_cadence": "invalid"},
            )

        return {
            "client_id": str(payload["client_id"]).strip(),
            "description": str(payload["description"]).strip(),
            "start_date": start_date,
            "end_date": end_date,
            "project_fee": parse_decimal(payload["project_fee"], "project_fee", minimum=0, allow_equal=False),
            "payment_installment_count": parse_int(payload["payment_installment"], "payment_installment", minimum=1),
            "is_include_vat": bool(parse_bool(payload.get("is_include_vat"))),
            "billing_cadence": cadence,
        }

    def payload_keys(self) -> tuple[str, ...]:
        return tuple(
            "payment_installment" if key == "payment_installment_count" else key
            for key in self.payload_columns()
        )

    def to_payload(self, columns: dict) -> dict:
        data = dict(columns)
        if "payment_installment_count" in data:
            count = data.pop("payment_installment_count")
            data.setdefault("payment_installment", count)
        return data

    def finalize(self, master, summary, physical_delivery, attachment_pointers) -> dict:
        from bantal.services import project_service

        agreement = self.latest_row(master)
        cadence = classify_billing_cadence(agreement)
        project = project_service.create_from_work_agreement(master, agreement, cadence)
        logger.info(
            "Work agreement finalized; %s project %s created", cadence, project.id,
            extra={"document_id": master.id, "project_id": project.id},
        )
        return {
            "message": f"{self.display_name} document has been successfully finalized",
            "project_id": project.id,
            "billing_cadence": cadence,
        }
