"""
PICA Blueprint — issue records, their status history and simple counts.

Endpoints (all under /api/v1/picas):
    GET    /                       list (relations + overdue derivation), ?status=
    GET    /status/<status>        list filtered by status
    GET    /stats                  counts per status
    GET    /<id>                   one record (relations + overdue derivation)
    GET    /by-key/<business_key>  one record by business key
    GET    /<id>/history           status history, newest first
    POST   /                       create                       [user]
    PUT    /<id>                   update (+ comment, update_date) [user]
    DELETE /<id>                   delete                       [admin]

The actor comes from the JWT middleware; routes never read roles or
organization ids from the request body.
"""

import logging

from flask import Blueprint, jsonify, request

from pica_monitor.blueprints import get_pica_service, json_body, register_error_handlers
from pica_monitor.core.exceptions import NotFoundError
from pica_monitor.middleware.jwt_auth import current_actor
from pica_monitor.utils.errors import E, api_error

logger = logging.getLogger(__name__)

pica_bp = Blueprint("pica", __name__, url_prefix="/api/v1/picas")
register_error_handlers(pica_bp)


# ═════════════════════════════════════════════════════════════════════════
# Reads
# ═════════════════════════════════════════════════════════════════════════


@pica_bp.route("", methods=["GET"])
def list_picas():
    status = request.args.get("status") or None
    items = get_pica_service().list_picas(current_actor(), status=status)
    return jsonify({"items": items, "total": len(items)}), 200


@pica_bp.route("/status/<string:status>", methods=["GET"])
def list_picas_by_status(status):
    items = get_pica_service().list_picas(current_actor(), status=status)
    return jsonify({"items": items, "total": len(items)}), 200


@pica_bp.route("/stats", methods=["GET"])
def pica_stats():
    return jsonify(get_pica_service().stats(current_actor())), 200


@pica_bp.route("/<int:pica_id>", methods=["GET"])
def get_pica(pica_id):
    return jsonify(get_pica_service().get_pica(current_actor(), pica_id)), 200


@pica_bp.route("/by-key/<string:business_key>", methods=["GET"])
def get_pica_by_key(business_key):
    return jsonify(get_pica_service().get_pica_by_business_key(current_actor(), business_key)), 200


@pica_bp.route("/<int:pica_id>/history", methods=["GET"])
def get_pica_history(pica_id):
    items = get_pica_service().get_history(current_actor(), pica_id)
    return jsonify({"items": items, "total": len(items)}), 200


# ═════════════════════════════════════════════════════════════════════════
# Writes
# ═════════════════════════════════════════════════════════════════════════


@pica_bp.route("", methods=["POST"])
def create_pica():
    data = json_body()
    if data is None:
        return api_error(E.VALIDATION_REQUIRED, "Request body must be a JSON object")
    record = get_pica_service().create_pica(current_actor(), data)
    return jsonify(record), 201


@pica_bp.route("/<int:pica_id>", methods=["PUT"])
def update_pica(pica_id):
    data = json_body()
    if data is None:
        return api_error(E.VALIDATION_REQUIRED, "Request body must be a JSON object")
    comment = data.pop("comment", None)
    update_date = data.pop("update_date", None)
    if comment is not None and not isinstance(comment, str):
        return api_error(E.VALIDATION_INVALID, "Invalid comment", details={"comment": "must be a string"})
    record = get_pica_service().update_pica(
        current_actor(), pica_id, data, comment=comment, update_date=update_date,
    )
    return jsonify(record), 200


@pica_bp.route("/<int:pica_id>", methods=["DELETE"])
def delete_pica(pica_id):
    if not get_pica_service().delete_pica(current_actor(), pica_id):
        raise NotFoundError(resource="Pica", resource_id=pica_id)
    return jsonify({"deleted": True, "id": pica_id}), 200
