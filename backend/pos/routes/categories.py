# Overview: Flask API routes for categories operations; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app

from ..services import category_service
from ..validation import require_json_object
from ..decorators import require_auth, current_scope
from ..errors import KNOWN_ERRORS, error_response


categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")


@categories_bp.get("")
@require_auth
def list_categories_route():
    items = [c.to_dict() for c in category_service.list_categories(current_scope())]
    return jsonify({"items": items, "count": len(items)})


@categories_bp.post("")
@require_auth
def create_category_route():
    try:
        payload = require_json_object(request.get_json(silent=True))
        category = category_service.create_category(current_scope(), payload.get("name"))
    except KNOWN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create category")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(category.to_dict()), 201


@categories_bp.delete("/<int:category_id>")
@require_auth
def delete_category_route(category_id: int):
    try:
        category_service.delete_category(current_scope(), category_id)
    except KNOWN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete category")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"ok": True}), 200
