"""Identity blueprint.

  GET /api/v1/auth/me            — identity resolved from the SSO token
  GET /api/v1/identities         — directory listing (?search=&include_inactive=)
  GET /api/v1/identities/<id>
"""

from flask import Blueprint, g, jsonify, request

from bantal.blueprints import register_error_handlers
from bantal.services import identity_service
from bantal.utils.errors import E, api_error

identity_bp = Blueprint("identity", __name__, url_prefix="/api/v1")
register_error_handlers(identity_bp)


@identity_bp.route("/auth/me", methods=["GET"])
def me():
    identity = getattr(g, "identity", None)
    if identity is None:
        return api_error(E.UNAUTHENTICATED, "Authentication required")
    return jsonify(identity.to_dict()), 200


@identity_bp.route("/identities", methods=["GET"])
def list_identities():
    items = identity_service.list_identities(
        include_inactive=request.args.get("include_inactive", "false").lower() == "true",
        search=request.args.get("search"),
    )
    return jsonify({"items": [i.to_dict() for i in items], "total": len(items)}), 200


@identity_bp.route("/identities/<identity_id>", methods=["GET"])
def get_identity(identity_id):
    return jsonify(identity_service.find_by_id(identity_id).to_dict()), 200
