"""
User Blueprint — guarded deletion of an organization's users.

Endpoints:
    DELETE /api/v1/users/<id>   admin only, same organization, never oneself
"""

from flask import Blueprint, jsonify

from pica_monitor.blueprints import get_pica_service, register_error_handlers
from pica_monitor.middleware.jwt_auth import current_actor

user_bp = Blueprint("user", __name__, url_prefix="/api/v1/users")
register_error_handlers(user_bp)


@user_bp.route("/<int:user_id>", methods=["DELETE"])
def delete_user(user_id):
    get_pica_service().delete_user(current_actor(), user_id)
    return jsonify({"deleted": True, "id": user_id}), 200
