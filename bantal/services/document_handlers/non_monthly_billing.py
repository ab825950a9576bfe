"""Non-monthly billing letter (Surat Tagihan Non Bulanan) handler.

Tax amounts are derived from the contract value when not supplied:

    DPP nilai lain  = contract value × 11/12
    PPN 12%         = DPP × 12%
    PPh 23          = contract value × 2%
    total           = contract value + PPN − PPh 23
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

from bantal.core.exceptions import NotFoundError, ValidationError
from bantal.models import db
from bantal.models.document import MasterDocument, NonMonthlyBilling
from bantal.services.document_handlers.base import DocumentHandler
from bantal.utils.helpers import parse_decimal

VAT_RATE = Decimal("0.12")
DPP_OTHER_RATIO = Decimal(11) / Decimal(12)
INCOME_TAX_RATE = Decimal("0.02")
_CENT = Decimal("0.01")

_MONEY_FIELDS = ("contract_value", "dpp_other_value", "vat_amount", "income_tax_amount", "total_amount")


def _round(value: Decimal) -> Decimal:
    return value.quantize(_CENT, rounding=ROUND_HALF_UP)


def compute_tax_breakdown(contract_value, dpp_other_value=None, vat_amount=None,
                          income_tax_amount=None, total_amount=None) -> dict:
    """Fill the missing tax amounts from the contract value.

    Supplied values are kept as-is; with no contract value nothing is derived.
    """
    result = {
        "contract_value": contract_value,
        "dpp_other_value": dpp_other_value,
        "vat_amount": vat_amount,
        "income_tax_amount": income_tax_amount,
        "total_amount": total_amount,
    }
    if contract_value is None:
        return result
    if result["dpp_other_value"] is None:
        result["dpp_other_value"] = _round(contract_value * DPP_OTHER_RATIO)
    if result["vat_amount"] is None:
        result["vat_amount"] = _round(result["dpp_other_value"] * VAT_RATE)
    if result["income_tax_amount"] is None:
        result["income_tax_amount"] = _round(contract_value * INCOME_TAX_RATE)
    if result["total_amount"] is None:
        result["total_amount"] = _round(
            contract_value + result["vat_amount"] - result["income_tax_amount"]
        )
    return result


class NonMonthlyBillingHandler(DocumentHandler):
    variant = "non_monthly_billing"
    display_name = "Non-monthly billing"
    model = NonMonthlyBilling
    required_fields = ("client_id", "description")

    def clean(self, payload: dict) -> dict:
        amounts = {
            field: parse_decimal(payload.get(field), field, minimum=0)
            for field in _MONEY_FIELDS
        }
        bank_info = payload.get("bank_info")
        if bank_info is not None and not isinstance(bank_info, dict):
            raise ValidationError("bank_info must be an object", details={"bank_info": "invalid"})

        data = {
            "client_id": str(payload["client_id"]).strip(),
            "description": str(payload["description"]).strip(),
            "bank_info": bank_info,
            "work_agreement_document_id": payload.get("work_agreement_document_id") or None,
        }
        data.update(compute_tax_breakdown(**amounts))
        return data

    def check_references(self, data: dict) -> None:
        super().check_references(data)
        ref = data.get("work_agreement_document_id")
        if ref is not None:
            master = db.session.get(MasterDocument, ref)
            if master is None or master.document_type.variant != "work_agreement":
                raise NotFoundError(resource="WorkAgreement document", resource_id=ref)
