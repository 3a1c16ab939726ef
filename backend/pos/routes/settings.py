from __future__ import annotations

from flask import Blueprint, jsonify, request, g, current_app

from ..decorators import require_auth
from ..services import settings_service
from ..errors import KNOWN_ERRORS, error_response
from ..validation import require_json_object


settings_bp = Blueprint("settings", __name__, url_prefix="/api")


@settings_bp.get("/settings")
@require_auth
def get_settings_route():
    return jsonify(settings_service.get_settings(g.current_user.id))


@settings_bp.patch("/settings")
@settings_bp.put("/settings")
@require_auth
def update_settings_route():
    try:
        payload = require_json_object(request.get_json(silent=True))
        return jsonify(settings_service.update_settings(g.current_user.id, payload))
    except KNOWN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update settings")
        return jsonify({"error": "Internal server error"}), 500
