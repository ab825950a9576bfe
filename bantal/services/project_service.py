"""
Project ("pekerjaan") service.

Projects are created only by finalizing a work agreement
(create_from_work_agreement). Afterwards the setup is filled in section by
section; every section write recomputes creation_status.
"""

from __future__ import annotations

import logging

from sqlalchemy import select

from bantal.core.exceptions import ConflictError, NotFoundError, ValidationError
from bantal.models import db
from bantal.models.project import (
    CREATION_STATUSES,
    PROGRESS_STATUSES,
    Project,
)
from bantal.services import completion
from bantal.utils.helpers import blank, transaction

logger = logging.getLogger(__name__)


def create_from_work_agreement(master, agreement, cadence: str) -> Project:
    """Add the Project spawned by a finalized work agreement (flushed, not committed).

    Raises:
        ConflictError: A project already exists for this document.
    """
    existing = db.session.execute(
        select(Project.id).where(Project.source_document_id == master.id)
    ).first()
    if existing:
        raise ConflictError("Project", "source_document_id", master.id)

    project = Project(
        project_name=master.name,
        project_description=agreement.description,
        source_document_id=master.id,
        billing_cadence=cadence,
        project_fee=agreement.project_fee,
        currency="IDR",
        team_structure={},
        creation_status="created",
        progress_status="on_track",
    )
    db.session.add(project)
    db.session.flush()
    project.creation_status = completion.next_creation_status(
        project.creation_status, completion.project_completion(project)["sections"],
    )
    return project


def get_project(project_id: str) -> Project:
    project = db.session.get(Project, project_id)
    if project is None:
        raise NotFoundError(resource="Project", resource_id=project_id)
    return project


def get_project_by_document(document_id: str) -> Project:
    project = db.session.execute(
        select(Project).where(Project.source_document_id == document_id)
    ).scalar_one_or_none()
    if project is None:
        raise NotFoundError(resource="Project", resource_id=f"document:{document_id}")
    return project


def list_projects(filters: dict | None = None):
    """Query of projects, newest first. Filters: creation_status, progress_status, cadence."""
    filters = filters or {}
    query = Project.query
    if filters.get("creation_status"):
        if filters["creation_status"] not in CREATION_STATUSES:
            raise ValidationError("Unknown creation_status", details={"creation_status": "invalid"})
        query = query.filter(Project.creation_status == filters["creation_status"])
    if filters.get("progress_status"):
        if filters["progress_status"] not in PROGRESS_STATUSES:
            raise ValidationError("Unknown progress_status", details={"progress_status": "invalid"})
        query = query.filter(Project.progress_status == filters["progress_status"])
    if filters.get("billing_cadence"):
        query = query.filter(Project.billing_cadence == filters["billing_cadence"])
    return query.order_by(Project.created_at.desc(), Project.id)


def refresh_creation_status(project: Project) -> dict:
    """Recompute section scores and update creation_status (no commit)."""
    report = completion.project_completion(project)
    new_status = completion.next_creation_status(project.creation_status, report["sections"])
    if new_status != project.creation_status:
        logger.info(
            "Project creation status %s → %s", project.creation_status, new_status,
            extra={"project_id": project.id},
        )
        project.creation_status = new_status
    report["creation_status"] = project.creation_status
    return report


def get_completion(project_id: str) -> dict:
    """Section scores, overall score and the (persisted) creation status."""
    project = get_project(project_id)
    with transaction("Project"):
        report = refresh_creation_status(project)
    report["project_id"] = project.id
    return report


def update_base_info(project_id: str, data: dict) -> Project:
    project = get_project(project_id)
    if "project_name" in data:
        if blank(data["project_name"]):
            raise ValidationError("project_name cannot be blank", details={"project_name": "required"})
        project.project_name = str(data["project_name"]).strip()
    if "project_description" in data:
        desc = data["project_description"]
        project.project_description = None if blank(desc) else str(desc).strip()
    with transaction("Project"):
        refresh_creation_status(project)
    return project


def _clean_team(team: dict) -> dict:
    if not isinstance(team, dict):
        raise ValidationError("team_structure must be an object", details={"team_structure": "invalid"})
    cleaned = {}
    for role, members in team.items():
        if role == completion.LEAD_KEY:
            if blank(members):
                raise ValidationError("project_lead cannot be blank", details={"project_lead": "required"})
            cleaned[role] = str(members).strip()
            continue
        if not isinstance(members, list) or any(blank(m) for m in members):
            raise ValidationError(
                f"Role {role!r} must be a list of member ids",
                details={role: "invalid"},
            )
        cleaned[role] = [str(m).strip() for m in members]
    return cleaned


def update_team_structure(project_id: str, team: dict) -> Project:
    """Merge role assignments into the project's team structure.

    An empty list removes a role.
    """
    project = get_project(project_id)
    cleaned = _clean_team(team)
    merged = dict(project.team_structure or {})
    for role, members in cleaned.items():
        if members == []:
            merged.pop(role, None)
        else:
            merged[role] = members
    project.team_structure = merged
    with transaction("Project"):
        refresh_creation_status(project)
    return project


def update_progress_status(project_id: str, status: str) -> Project:
    if status not in PROGRESS_STATUSES:
        raise ValidationError(
            f"progress_status must be one of {sorted(PROGRESS_STATUSES)}",
            details={"progress_status": "invalid"},
        )
    project = get_project(project_id)
    with transaction("Project"):
        project.progress_status = status
    return project
