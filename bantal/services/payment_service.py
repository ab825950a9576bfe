"""
Project payment structure service.

A payment structure is the project fee, its currency, the receiving bank
account and an ordered set of installments. update_payment_structure
replaces the installment set atomically:

    - installment percentages must total 100 (±0.01)
    - milestone triggers must reference a milestone of the same project
    - date triggers must parse as dates (the date becomes due_date)
    - event triggers support only "document_submission"
    - installments carrying an ``id`` are updated, the rest are created,
      and existing installments missing from the set are removed
"""

from __future__ import annotations

import logging
from decimal import Decimal

from bantal.core.exceptions import NotFoundError, ValidationError
from bantal.models import db
from bantal.models.project import (
    INSTALLMENT_STATUSES,
    SUPPORTED_EVENTS,
    TRIGGER_TYPES,
    PaymentInstallment,
    ProjectMilestone,
)
from bantal.services.project_service import get_project, refresh_creation_status
from bantal.utils.helpers import blank, parse_date_input, parse_decimal, parse_int, transaction

logger = logging.getLogger(__name__)

PERCENT_TOTAL = Decimal("100")
PERCENT_TOLERANCE = Decimal("0.01")
_BASIC_FIELDS = ("bank_name", "account_number", "account_name")


def _text(value):
    return None if blank(value) else str(value).strip()


def _clean_basic_info(data: dict) -> dict:
    changes = {}
    if "project_fee" in data:
        changes["project_fee"] = parse_decimal(data["project_fee"], "project_fee", minimum=0, allow_equal=False)
    if "currency" in data:
        currency = _text(data["currency"])
        if currency is None or len(currency) != 3 or not currency.isalpha():
            raise ValidationError("currency must be a 3-letter code", details={"currency": "invalid"})
        changes["currency"] = currency.upper()
    for field in _BASIC_FIELDS:
        if field in data:
            changes[field] = _text(data[field])
    return changes


def _clean_trigger(project_id: str, item: dict, position: int) -> dict:
    trigger_type = _text(item.get("trigger_type"))
    trigger_value = _text(item.get("trigger_value"))
    field = f"installments[{position}].trigger_value"
    cleaned = {"trigger_type": trigger_type, "trigger_value": trigger_value, "milestone_id": None}

    if trigger_type is None:
        return cleaned
    if trigger_type not in TRIGGER_TYPES:
        raise ValidationError(
            f"trigger_type must be one of {sorted(TRIGGER_TYPES)}",
            details={f"installments[{position}].trigger_type": "invalid"},
        )
    if trigger_type == "milestone":
        milestone = db.session.get(ProjectMilestone, trigger_value) if trigger_value else None
        if milestone is None or milestone.project_id != project_id:
            raise ValidationError(
                "Milestone trigger must reference a milestone of this project",
                details={field: "unknown milestone"},
            )
        cleaned["milestone_id"] = milestone.id
    elif trigger_type == "date":
        due = parse_date_input(trigger_value, field)
        if due is None:
            raise ValidationError("Date trigger requires a date", details={field: "required"})
        cleaned["due_date"] = due
        cleaned["trigger_value"] = due.isoformat()
    elif trigger_type == "event":
        if trigger_value not in SUPPORTED_EVENTS:
            raise ValidationError(
                f"Unsupported event trigger: {trigger_value}",
                details={field: f"one of {sorted(SUPPORTED_EVENTS)}"},
            )
    return cleaned


def _clean_installments(project, items) -> list[dict]:
    if not isinstance(items, list):
        raise ValidationError("installments must be a list", details={"installments": "invalid"})

    existing = {inst.id: inst for inst in project.installments}
    cleaned = []
    total = Decimal("0")
    for position, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError("Each installment must be an object", details={f"installments[{position}]": "invalid"})
        inst_id = item.get("id")
        if inst_id and inst_id not in existing:
            raise NotFoundError(resource="PaymentInstallment", resource_id=inst_id)

        pct = parse_decimal(item.get("percentage"), f"installments[{position}].percentage", minimum=0)
        if pct is None:
            raise ValidationError(
                "percentage is required", details={f"installments[{position}].percentage": "required"},
            )
        total += pct

        row = {
            "id": inst_id or None,
            "installment_number": parse_int(item.get("installment_number"), "installment_number", minimum=1)
            or position + 1,
            "percentage": pct,
            "amount": parse_decimal(item.get("amount"), f"installments[{position}].amount", minimum=0),
            "description": _text(item.get("description")),
            "notes": _text(item.get("notes")),
            "due_date": parse_date_input(item.get("due_date"), f"installments[{position}].due_date"),
        }
        row.update(_clean_trigger(project.id, item, position))
        cleaned.append(row)

    if cleaned and abs(total - PERCENT_TOTAL) > PERCENT_TOLERANCE:
        raise ValidationError(
            f"Installment percentages must total 100% (got {total.normalize():f}%)",
            details={"installments": "percentages must total 100"},
        )
    return cleaned


def get_payment_structure(project_id: str) -> dict:
    project = get_project(project_id)
    installments = sorted(project.installments, key=lambda i: i.installment_number)
    total = sum((Decimal(str(i.percentage)) for i in installments), Decimal("0"))
    return {
        "project_id": project.id,
        "project_fee": float(project.project_fee) if project.project_fee is not None else None,
        "currency": project.currency,
        "bank_name": project.bank_name,
        "account_number": project.account_number,
        "account_name": project.account_name,
        "installments": [i.to_dict() for i in installments],
        "total_percentage": float(total),
    }


def update_payment_structure(project_id: str, data: dict) -> dict:
    """Update fee / bank details and, when given, replace the installment set.

    Raises:
        NotFoundError: Unknown project or installment id.
        ValidationError: Percentages not totalling 100, bad trigger, bad values.
    """
    project = get_project(project_id)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be an object")

    basic = _clean_basic_info(data)
    items = _clean_installments(project, data["installments"]) if "installments" in data else None
    fee = basic.get("project_fee", project.project_fee)

    with transaction("PaymentInstallment"):
        for key, value in basic.items():
            setattr(project, key, value)

        if items is not None:
            existing = {inst.id: inst for inst in project.installments}
            keep = set()
            for row in items:
                inst_id = row.pop("id")
                if row["amount"] is None and fee is not None:
                    row["amount"] = (Decimal(str(fee)) * row["percentage"] / PERCENT_TOTAL).quantize(Decimal("0.01"))
                if inst_id:
                    inst = existing[inst_id]
                    for key, value in row.items():
                        setattr(inst, key, value)
                    keep.add(inst_id)
                else:
                    project.installments.append(PaymentInstallment(**row))
            for inst_id, inst in existing.items():
                if inst_id not in keep:
                    project.installments.remove(inst)

        db.session.flush()
        refresh_creation_status(project)

    logger.info(
        "Payment structure updated (%s installments)",
        len(project.installments), extra={"project_id": project.id},
    )
    return get_payment_structure(project.id)


def delete_installment(project_id: str, installment_id: str) -> None:
    project = get_project(project_id)
    inst = db.session.get(PaymentInstallment, installment_id)
    if inst is None or inst.project_id != project.id:
        raise NotFoundError(resource="PaymentInstallment", resource_id=installment_id)
    with transaction("PaymentInstallment"):
        project.installments.remove(inst)
        db.session.flush()
        refresh_creation_status(project)


def update_installment_status(project_id: str, installment_id: str, status: str,
                              notes: str | None = None) -> PaymentInstallment:
    if status not in INSTALLMENT_STATUSES:
        raise ValidationError(
            f"status must be one of {sorted(INSTALLMENT_STATUSES)}", details={"status": "invalid"},
        )
    project = get_project(project_id)
    inst = db.session.get(PaymentInstallment, installment_id)
    if inst is None or inst.project_id != project.id:
        raise NotFoundError(resource="PaymentInstallment", resource_id=installment_id)
    with transaction("PaymentInstallment"):
        inst.status = status
        if notes is not None:
            inst.notes = _text(notes)
    return inst
