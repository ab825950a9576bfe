"""
Organisation master data reads — clients, client types, companies, divisions.

These records are maintained by the directory import; the API only reads
them so callers can pick valid ids for document creation.
"""

from __future__ import annotations

from sqlalchemy import func

from bantal.core.exceptions import NotFoundError, ValidationError
from bantal.models import db
from bantal.models.organization import CLIENT_STATUSES, Client, ClientType, Company, Division


def _active_or_all(model, include_inactive: bool):
    return model.query if include_inactive else model.query_active()


def _get(model, resource: str, record_id):
    record = db.session.get(model, record_id)
    if record is None:
        raise NotFoundError(resource=resource, resource_id=record_id)
    return record


# ── Clients ──────────────────────────────────────────────────────────────


def list_clients(*, include_inactive: bool = False, search: str | None = None,
                 status: str | None = None, type_id: int | None = None) -> list[Client]:
    """Clients ordered by name, with their type eagerly loaded."""
    query = _active_or_all(Client, include_inactive)
    if status:
        if status not in CLIENT_STATUSES:
            raise ValidationError(f"Unknown client status: {status}", details={"status": "invalid"})
        query = query.filter(Client.status == status)
    if type_id is not None:
        query = query.filter(Client.type_id == type_id)
    if search:
        query = query.filter(func.lower(Client.name).like(f"%{search.strip().lower()}%"))
    return query.order_by(Client.name).all()


def get_client(client_id: str) -> Client:
    return _get(Client, "Client", client_id)


def list_client_types() -> list[ClientType]:
    return ClientType.query.order_by(ClientType.name).all()


def get_client_type(type_id: int) -> ClientType:
    return _get(ClientType, "ClientType", type_id)


# ── Companies & divisions ────────────────────────────────────────────────


def list_companies(*, include_inactive: bool = False) -> list[Company]:
    return _active_or_all(Company, include_inactive).order_by(Company.code).all()


def get_company(company_id: str) -> Company:
    return _get(Company, "Company", company_id)


def list_divisions(*, include_inactive: bool = False) -> list[Division]:
    return _active_or_all(Division, include_inactive).order_by(Division.code).all()


def get_division(division_id: str) -> Division:
    return _get(Division, "Division", division_id)
