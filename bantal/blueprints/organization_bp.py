"""Organisation master-data blueprint (read-only).

  GET /api/v1/clients                    — ?search=&status=&type_id=&include_inactive=
  GET /api/v1/clients/types
  GET /api/v1/clients/types/<type_id>
  GET /api/v1/clients/<id>
  GET /api/v1/companies                  — ?include_inactive=
  GET /api/v1/companies/<id>
  GET /api/v1/divisions                  — ?include_inactive=
  GET /api/v1/divisions/<id>
"""

from flask import Blueprint, jsonify, request

from bantal.blueprints import register_error_handlers
from bantal.services import organization_service

organization_bp = Blueprint("organization", __name__, url_prefix="/api/v1")
register_error_handlers(organization_bp)


def _include_inactive() -> bool:
    return request.args.get("include_inactive", "false").lower() == "true"


def _listing(items):
    return jsonify({"items": [i.to_dict() for i in items], "total": len(items)}), 200


# ── Clients ──────────────────────────────────────────────────────────────


@organization_bp.route("/clients", methods=["GET"])
def list_clients():
    items = organization_service.list_clients(
        include_inactive=_include_inactive(),
        search=request.args.get("search"),
        status=request.args.get("status"),
        type_id=request.args.get("type_id", type=int),
    )
    return _listing(items)


@organization_bp.route("/clients/types", methods=["GET"])
def list_client_types():
    return _listing(organization_service.list_client_types())


@organization_bp.route("/clients/types/<int:type_id>", methods=["GET"])
def get_client_type(type_id):
    return jsonify(organization_service.get_client_type(type_id).to_dict()), 200


@organization_bp.route("/clients/<client_id>", methods=["GET"])
def get_client(client_id):
    return jsonify(organization_service.get_client(client_id).to_dict()), 200


# ── Companies & divisions ────────────────────────────────────────────────


@organization_bp.route("/companies", methods=["GET"])
def list_companies():
    return _listing(organization_service.list_companies(include_inactive=_include_inactive()))


@organization_bp.route("/companies/<company_id>", methods=["GET"])
def get_company(company_id):
    return jsonify(organization_service.get_company(company_id).to_dict()), 200


@organization_bp.route("/divisions", methods=["GET"])
def list_divisions():
    return _listing(organization_service.list_divisions(include_inactive=_include_inactive()))


@organization_bp.route("/divisions/<division_id>", methods=["GET"])
def get_division(division_id):
    return jsonify(organization_service.get_division(division_id).to_dict()), 200
