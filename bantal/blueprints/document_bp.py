"""Document registry blueprint.

Endpoint groups:
  Types             GET    /api/v1/document-types
  Create            POST   /api/v1/documents/<type>            (JSON, or multipart with `file`)
  Registry          GET    /api/v1/documents
                    GET    /api/v1/documents/<id>
                    DELETE /api/v1/documents/<id>              (deactivate)
  Versions          POST   /api/v1/documents/<id>/versions
  Index number      GET    /api/v1/documents/latest-index/<shorthand>?month&year&company_id
  Finalize          POST   /api/v1/documents/<id>/finalize     (JSON, or multipart with `files`)
                    POST   /api/v1/documents/finalize/<type>   (document_id in body)
  Status            PATCH  /api/v1/documents/<id>/status
  Files             POST   /api/v1/documents/<id>/file
                    GET    /api/v1/documents/<id>/download

Multipart requests carry the JSON body as a `payload` form field.
Service layer owns all business logic and commits.
"""

from __future__ import annotations

import io
import json
import logging

from flask import Blueprint, current_app, g, jsonify, request, send_file

import bantal.services.document_service as docs
from bantal.blueprints import paginate_query, register_error_handlers
from bantal.services import document_type_service
from bantal.services.finalization_service import finalize_document
from bantal.utils.errors import E, api_error

logger = logging.getLogger(__name__)

document_bp = Blueprint("document", __name__, url_prefix="/api/v1")
register_error_handlers(document_bp)


# ── Request helpers ──────────────────────────────────────────────────────────


def _request_payload() -> tuple[dict | None, tuple | None]:
    """Return the body as a dict from JSON or the multipart `payload` field."""
    if request.mimetype == "multipart/form-data":
        raw = request.form.get("payload")
        if raw:
            try:
                data = json.loads(raw)
            except ValueError:
                return None, api_error(E.VALIDATION_INVALID, "payload must be valid JSON")
        else:
            data = {k: v for k, v in request.form.items()}
    else:
        data = request.get_json(silent=True)
        if data is None:
            data = {}
    if not isinstance(data, dict):
        return None, api_error(E.VALIDATION_INVALID, "Request body must be a JSON object")
    return data, None


def _read_upload(storage) -> tuple[tuple[bytes, str] | None, tuple | None]:
    content = storage.read()
    limit = current_app.config.get("MAX_UPLOAD_BYTES")
    if limit and len(content) > limit:
        return None, api_error(E.PAYLOAD_TOO_LARGE, f"File exceeds {limit} bytes")
    return (content, storage.mimetype or "application/octet-stream"), None


def _current_identity_id() -> str | None:
    identity = getattr(g, "identity", None)
    return identity.id if identity is not None else None


# ═════════════════════════════════════════════════════════════════════════
# Types & registry
# ═════════════════════════════════════════════════════════════════════════


@document_bp.route("/document-types", methods=["GET"])
def list_document_types():
    types = document_type_service.list_types()
    return jsonify({"items": [t.to_dict() for t in types], "total": len(types)}), 200


@document_bp.route("/documents", methods=["GET"])
def list_documents():
    """List master documents.

    Query params: type, status, company_id, division_id, include_inactive, limit, offset
    """
    filters = {
        "type": request.args.get("type"),
        "status": request.args.get("status"),
        "company_id": request.args.get("company_id"),
        "division_id": request.args.get("division_id"),
        "include_inactive": request.args.get("include_inactive", "false").lower() == "true",
    }
    items, total = paginate_query(docs.list_documents(filters))
    return jsonify({"items": [d.to_dict() for d in items], "total": total}), 200


@document_bp.route("/documents/latest-index/<shorthand>", methods=["GET"])
def latest_index_number(shorthand):
    """Highest index number issued for a type, optionally per month/year/company."""
    latest = docs.get_latest_index_number(
        shorthand,
        month=request.args.get("month"),
        year=request.args.get("year"),
        company_id=request.args.get("company_id"),
    )
    return jsonify({"shorthand": shorthand, "latest_index_number": latest}), 200


@document_bp.route("/documents/<document_id>", methods=["GET"])
def get_document(document_id):
    return jsonify(docs.get_document_detail(document_id)), 200


@document_bp.route("/documents/<document_id>", methods=["DELETE"])
def deactivate_document(document_id):
    master = docs.deactivate_document(document_id)
    return jsonify(master.to_dict()), 200


# ═════════════════════════════════════════════════════════════════════════
# Creation
# ═════════════════════════════════════════════════════════════════════════


@document_bp.route("/documents/<type_identifier>", methods=["POST"])
def create_document(type_identifier):
    """Create a document of the given type (name or shorthand).

    Body: master fields (document_number, name, legal_date, index_number,
    external_number, division_id, company_id) plus the type's own fields.
    created_by_id defaults to the authenticated identity.
    """
    data, err = _request_payload()
    if err:
        return err
    if _current_identity_id() and not data.get("created_by_id"):
        data["created_by_id"] = _current_identity_id()

    file_bytes = mime_type = None
    upload = request.files.get("file")
    if upload is not None:
        parsed, err = _read_upload(upload)
        if err:
            return err
        file_bytes, mime_type = parsed

    result = docs.create_document(type_identifier, data, file_bytes=file_bytes, mime_type=mime_type)
    return jsonify(result), 201


@document_bp.route("/documents/<document_id>/versions", methods=["POST"])
def create_version(document_id):
    data, err = _request_payload()
    if err:
        return err
    result = docs.create_new_version(document_id, data, uploaded_by=_current_identity_id())
    return jsonify(result), 201


# ═════════════════════════════════════════════════════════════════════════
# Lifecycle
# ═════════════════════════════════════════════════════════════════════════


def _finalize(document_id, type_identifier=None):
    data, err = _request_payload()
    if err:
        return err
    document_id = document_id or data.get("document_id")
    if not document_id:
        return api_error(E.VALIDATION_REQUIRED, "document_id is required")

    attachments = []
    for upload in request.files.getlist("files"):
        parsed, err = _read_upload(upload)
        if err:
            return err
        attachments.append(parsed)

    result = finalize_document(
        document_id,
        summary=data.get("finalization_summary"),
        physical_delivery=data.get("physical_delivery"),
        attachments=attachments,
        type_identifier=type_identifier,
    )
    return jsonify(result), 200


@document_bp.route("/documents/<document_id>/finalize", methods=["POST"])
def finalize_by_id(document_id):
    """Body: {finalization_summary?, physical_delivery?}; multipart `files` (max 2)."""
    return _finalize(document_id)


@document_bp.route("/documents/finalize/<type_identifier>", methods=["POST"])
def finalize_by_type(type_identifier):
    """Body: {document_id, finalization_summary?, physical_delivery?}."""
    return _finalize(None, type_identifier=type_identifier)


@document_bp.route("/documents/<document_id>/status", methods=["PATCH"])
def change_status(document_id):
    data = request.get_json(silent=True) or {}
    if not data.get("status"):
        return api_error(E.VALIDATION_REQUIRED, "status is required")
    master = docs.change_status(document_id, data["status"])
    return jsonify(master.to_dict()), 200


# ═════════════════════════════════════════════════════════════════════════
# Files
# ═════════════════════════════════════════════════════════════════════════


@document_bp.route("/documents/<document_id>/file", methods=["POST"])
def upload_file(document_id):
    upload = request.files.get("file")
    if upload is None:
        return api_error(E.VALIDATION_REQUIRED, "file is required")
    parsed, err = _read_upload(upload)
    if err:
        return err
    content, mime_type = parsed
    return jsonify(docs.attach_file(document_id, content, mime_type)), 201


@document_bp.route("/documents/<document_id>/download", methods=["GET"])
def download_file(document_id):
    version = docs.download_document(document_id)
    return send_file(
        io.BytesIO(version.content),
        mimetype=version.mime_type,
        as_attachment=True,
        download_name=f"{document_id}-v{version.version_number}",
    )
