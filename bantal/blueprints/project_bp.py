"""Project ("pekerjaan") blueprint.

Endpoint groups:
  Projects            GET    /api/v1/projects
                      GET    /api/v1/projects/<id>
                      GET    /api/v1/projects/by-document/<document_id>
  Completion          GET    /api/v1/projects/<id>/completion
  Sections            PUT    /api/v1/projects/<id>/base-info
                      PUT    /api/v1/projects/<id>/team-structure
                      PATCH  /api/v1/projects/<id>/progress-status
  Milestones          GET    /api/v1/projects/<id>/milestones
                      POST   /api/v1/projects/<id>/milestones          (create or update by `id`)
                      DELETE /api/v1/projects/<id>/milestones/<mid>
  Payment structure   GET    /api/v1/projects/<id>/payment-structure
                      PUT    /api/v1/projects/<id>/payment-structure
                      DELETE /api/v1/projects/<id>/payment-structure/installments/<iid>
                      PATCH  /api/v1/projects/<id>/payment-structure/installments/<iid>/status
"""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request

import bantal.services.milestone_service as milestones
import bantal.services.payment_service as payments
import bantal.services.project_service as projects
from bantal.blueprints import paginate_query, register_error_handlers
from bantal.utils.errors import E, api_error

logger = logging.getLogger(__name__)

project_bp = Blueprint("project", __name__, url_prefix="/api/v1")
register_error_handlers(project_bp)


def _json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return None, api_error(E.VALIDATION_INVALID, "Request body must be a JSON object")
    return data, None


# ── Projects ─────────────────────────────────────────────────────────────────


@project_bp.route("/projects", methods=["GET"])
def list_projects():
    """Query params: creation_status, progress_status, billing_cadence, limit, offset."""
    filters = {
        "creation_status": request.args.get("creation_status"),
        "progress_status": request.args.get("progress_status"),
        "billing_cadence": request.args.get("billing_cadence"),
    }
    items, total = paginate_query(projects.list_projects(filters))
    return jsonify({"items": [p.to_dict() for p in items], "total": total}), 200


@project_bp.route("/projects/<project_id>", methods=["GET"])
def get_project(project_id):
    return jsonify(projects.get_project(project_id).to_dict()), 200


@project_bp.route("/projects/by-document/<document_id>", methods=["GET"])
def get_project_by_document(document_id):
    return jsonify(projects.get_project_by_document(document_id).to_dict()), 200


@project_bp.route("/projects/<project_id>/completion", methods=["GET"])
def get_completion(project_id):
    return jsonify(projects.get_completion(project_id)), 200


# ── Sections ─────────────────────────────────────────────────────────────────


@project_bp.route("/projects/<project_id>/base-info", methods=["PUT"])
def update_base_info(project_id):
    data, err = _json_body()
    if err:
        return err
    return jsonify(projects.update_base_info(project_id, data).to_dict()), 200


@project_bp.route("/projects/<project_id>/team-structure", methods=["PUT"])
def update_team_structure(project_id):
    """Body: {"project_lead": "<identity id>", "<role>": ["<identity id>", ...]}"""
    data, err = _json_body()
    if err:
        return err
    return jsonify(projects.update_team_structure(project_id, data).to_dict()), 200


@project_bp.route("/projects/<project_id>/progress-status", methods=["PATCH"])
def update_progress_status(project_id):
    data, err = _json_body()
    if err:
        return err
    if not data.get("progress_status"):
        return api_error(E.VALIDATION_REQUIRED, "progress_status is required")
    return jsonify(projects.update_progress_status(project_id, data["progress_status"]).to_dict()), 200


# ── Milestones ───────────────────────────────────────────────────────────────


@project_bp.route("/projects/<project_id>/milestones", methods=["GET"])
def list_milestones(project_id):
    items = milestones.list_milestones(project_id)
    return jsonify({"items": [m.to_dict() for m in items], "total": len(items)}), 200


@project_bp.route("/projects/<project_id>/milestones", methods=["POST"])
def upsert_milestone(project_id):
    data, err = _json_body()
    if err:
        return err
    is_update = bool(data.get("id"))
    ms = milestones.upsert_milestone(project_id, data)
    return jsonify(ms.to_dict()), 200 if is_update else 201


@project_bp.route("/projects/<project_id>/milestones/<milestone_id>", methods=["DELETE"])
def delete_milestone(project_id, milestone_id):
    milestones.delete_milestone(project_id, milestone_id)
    return jsonify({"deleted": milestone_id}), 200


# ── Payment structure ────────────────────────────────────────────────────────


@project_bp.route("/projects/<project_id>/payment-structure", methods=["GET"])
def get_payment_structure(project_id):
    return jsonify(payments.get_payment_structure(project_id)), 200


@project_bp.route("/projects/<project_id>/payment-structure", methods=["PUT"])
def update_payment_structure(project_id):
    """Body: {project_fee?, currency?, bank_name?, account_number?, account_name?, installments?: [...]}"""
    data, err = _json_body()
    if err:
        return err
    return jsonify(payments.update_payment_structure(project_id, data)), 200


@project_bp.route("/projects/<project_id>/payment-structure/installments/<installment_id>", methods=["DELETE"])
def delete_installment(project_id, installment_id):
    payments.delete_installment(project_id, installment_id)
    return jsonify({"deleted": installment_id}), 200


@project_bp.route(
    "/projects/<project_id>/payment-structure/installments/<installment_id>/status", methods=["PATCH"],
)
def update_installment_status(project_id, installment_id):
    data, err = _json_body()
    if err:
        return err
    if not data.get("status"):
        return api_error(E.VALIDATION_REQUIRED, "status is required")
    inst = payments.update_installment_status(project_id, installment_id, data["status"], data.get("notes"))
    return jsonify(inst.to_dict()), 200
