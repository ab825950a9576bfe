"""
Project milestone service.

upsert_milestone creates when no ``id`` is given, else updates that
milestone. ``completion_percentage`` is clamped to 0..100; status and
priority must be known values.
"""

from __future__ import annotations

import logging

from sqlalchemy import select

from bantal.core.exceptions import NotFoundError, ValidationError
from bantal.models import db
from bantal.models.project import (
    MILESTONE_PRIORITIES,
    MILESTONE_STATUSES,
    PaymentInstallment,
    ProjectMilestone,
)
from bantal.services.project_service import get_project, refresh_creation_status
from bantal.utils.helpers import blank, parse_date_input, parse_int, transaction

logger = logging.getLogger(__name__)


def clamp_percentage(value) -> int:
    pct = parse_int(value, "completion_percentage")
    if pct is None:
        return 0
    return max(0, min(100, pct))


def list_milestones(project_id: str) -> list[ProjectMilestone]:
    get_project(project_id)
    stmt = (
        select(ProjectMilestone)
        .where(ProjectMilestone.project_id == project_id)
        .order_by(ProjectMilestone.order_index, ProjectMilestone.created_at)
    )
    return list(db.session.execute(stmt).scalars())


def _get_milestone(project_id: str, milestone_id: str) -> ProjectMilestone:
    ms = db.session.get(ProjectMilestone, milestone_id)
    if ms is None or ms.project_id != project_id:
        raise NotFoundError(resource="ProjectMilestone", resource_id=milestone_id)
    return ms


def upsert_milestone(project_id: str, data: dict) -> ProjectMilestone:
    """Create or update one milestone.

    Raises:
        NotFoundError: Unknown project, or ``id`` not a milestone of it.
        ValidationError: Blank name, unknown status/priority, bad date.
    """
    project = get_project(project_id)
    milestone_id = data.get("id")
    ms = _get_milestone(project_id, milestone_id) if milestone_id else None

    changes = {}
    if ms is None or "name" in data:
        if blank(data.get("name")):
            raise ValidationError("name is required", details={"name": "required"})
        changes["name"] = str(data["name"]).strip()
    if "description" in data:
        changes["description"] = None if blank(data["description"]) else str(data["description"]).strip()
    if "due_date" in data:
        changes["due_date"] = parse_date_input(data["due_date"], "due_date")
    if "status" in data:
        if data["status"] not in MILESTONE_STATUSES:
            raise ValidationError(
                f"status must be one of {sorted(MILESTONE_STATUSES)}", details={"status": "invalid"},
            )
        changes["status"] = data["status"]
    if "priority" in data:
        if data["priority"] not in MILESTONE_PRIORITIES:
            raise ValidationError(
                f"priority must be one of {sorted(MILESTONE_PRIORITIES)}", details={"priority": "invalid"},
            )
        changes["priority"] = data["priority"]
    if "completion_percentage" in data:
        changes["completion_percentage"] = clamp_percentage(data["completion_percentage"])
    if "order_index" in data:
        changes["order_index"] = parse_int(data["order_index"], "order_index", minimum=0) or 0

    with transaction("ProjectMilestone"):
        if ms is None:
            changes.setdefault("order_index", len(project.milestones))
            ms = ProjectMilestone(**changes)
            project.milestones.append(ms)
        else:
            for key, value in changes.items():
                setattr(ms, key, value)
        db.session.flush()
        refresh_creation_status(project)
    logger.info("Milestone %s saved", ms.id, extra={"project_id": project.id})
    return ms


def delete_milestone(project_id: str, milestone_id: str) -> None:
    """Delete a milestone; installments triggered by it become manual."""
    project = get_project(project_id)
    ms = _get_milestone(project_id, milestone_id)
    with transaction("ProjectMilestone"):
        linked = db.session.execute(
            select(PaymentInstallment).where(PaymentInstallment.milestone_id == ms.id)
        ).scalars()
        for inst in linked:
            inst.milestone_id = None
            inst.trigger_type = "manual"
            inst.trigger_value = None
        project.milestones.remove(ms)
        db.session.flush()
        refresh_creation_status(project)
    logger.info("Milestone %s deleted", milestone_id, extra={"project_id": project_id})
