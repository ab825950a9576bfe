"""
Project setup completion calculators.

Pure functions: no database access, no session writes. Each section
scores 0–100; the overall score is the plain mean of the four sections.

    base_info          name, description                        (50% each)
    team_structure     project lead, ≥1 populated role          (50% each)
    milestones         ≥1 exists, all named, all described,
                       all dated                                (25% each)
    payment_structure  fee>0 + currency, ≥1 installment,
                       all installments have trigger + description,
                       bank name + account number + account name (25% each)
"""

from __future__ import annotations

from decimal import Decimal

SECTIONS = ("base_info", "team_structure", "milestones", "payment_structure")
LEAD_KEY = "project_lead"


def _filled(value) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


def _percent(checks: list[bool]) -> float:
    if not checks:
        return 0.0
    return round(100.0 * sum(1 for c in checks if c) / len(checks), 2)


def base_info_completion(project) -> float:
    return _percent([
        _filled(getattr(project, "project_name", None)),
        _filled(getattr(project, "project_description", None)),
    ])


def team_structure_completion(team: dict | None) -> float:
    team = team or {}
    has_lead = _filled(team.get(LEAD_KEY))
    has_member = any(
        isinstance(members, (list, tuple)) and any(_filled(m) for m in members)
        for role, members in team.items()
        if role != LEAD_KEY
    )
    return _percent([has_lead, has_member])


def milestone_completion(milestones) -> float:
    milestones = list(milestones or [])
    if not milestones:
        return 0.0
    return _percent([
        True,
        all(_filled(m.name) for m in milestones),
        all(_filled(m.description) for m in milestones),
        all(m.due_date is not None for m in milestones),
    ])


def payment_structure_completion(project, installments) -> float:
    installments = list(installments or [])
    fee = getattr(project, "project_fee", None)
    try:
        fee_ok = fee is not None and Decimal(str(fee)) > 0
    except ArithmeticError:
        fee_ok = False
    return _percent([
        fee_ok and _filled(getattr(project, "currency", None)),
        bool(installments),
        bool(installments) and all(
            _filled(i.trigger_type) and _filled(i.description) for i in installments
        ),
        all(_filled(getattr(project, f, None)) for f in ("bank_name", "account_number", "account_name")),
    ])


def aggregate_completion(sections: dict) -> float:
    """Mean of the four section scores (missing sections count as 0)."""
    return round(sum(float(sections.get(s, 0) or 0) for s in SECTIONS) / len(SECTIONS), 2)


def next_creation_status(current: str | None, sections: dict) -> str:
    """Derive creation_status from section scores.

    completed    every section at 100
    in_progress  any progress, or a completed project that regressed
    created      nothing filled in yet
    """
    scores = [float(sections.get(s, 0) or 0) for s in SECTIONS]
    if all(score >= 100 for score in scores):
        return "completed"
    if current in ("completed", "in_progress") or any(score > 0 for score in scores):
        return "in_progress"
    return "created"


def project_completion(project) -> dict:
    """All four section scores for a Project plus the overall mean."""
    sections = {
        "base_info": base_info_completion(project),
        "team_structure": team_structure_completion(project.team_structure),
        "milestones": milestone_completion(project.milestones),
        "payment_structure": payment_structure_completion(project, project.installments),
    }
    return {
        "sections": sections,
        "overall": aggregate_completion(sections),
    }
