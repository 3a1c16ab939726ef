# Overview: Flask API routes for cart operations; parses input and returns JSON responses.

# backend/pos/routes/cart.py
"""
Cart API routes.

Every route works on the authenticated user's pending lines only. Totals
returned here are previews; checkout recomputes them from stored lines.
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import cart_service
from ..validation import (
    parse_discount,
    parse_id,
    parse_money_cents,
    parse_quantity,
    require_json_object,
)
from ..decorators import require_auth, current_scope
from ..errors import KNOWN_ERRORS, error_response


cart_bp = Blueprint("cart", __name__, url_prefix="/api/cart")


def _cart_payload(scope, discount=None) -> dict:
    lines = cart_service.list_cart(scope)
    totals = cart_service.preview_totals(scope, discount)
    return {
        "items": [line.to_dict() for line in lines],
        "count": len(lines),
        "totals": totals.to_dict(),
        "currency": scope.currency,
    }


@cart_bp.get("")
@require_auth
def get_cart_route():
    return jsonify(_cart_payload(current_scope()))


@cart_bp.post("")
@require_auth
def add_item_route():
    """
    Add a product to the cart (merges into the existing line for the product).

    Body: {"product_id": int, "quantity": int = 1, "unit_price_cents": int (optional)}
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        product_id = parse_id(data.get("product_id"), field="product_id")
        quantity = parse_quantity(data.get("quantity", 1))
        unit_price_cents = None
        if data.get("unit_price_cents") is not None:
            unit_price_cents = parse_money_cents(data["unit_price_cents"], field="unit_price_cents")

        line = cart_service.add_item(current_scope(), product_id, quantity, unit_price_cents)
        return jsonify({"item": line.to_dict()}), 201

    except KNOWN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to add cart item")
        return jsonify({"error": "Internal server error"}), 500


@cart_bp.put("/<int:line_id>")
@require_auth
def set_quantity_route(line_id: int):
    """Body: {"quantity": int}. Zero or less removes the line."""
    try:
        data = require_json_object(request.get_json(silent=True))
        quantity = parse_quantity(data.get("quantity"), allow_non_positive=True)
        line = cart_service.set_quantity(current_scope(), line_id, quantity)
        if line is None:
            return jsonify({"item": None, "removed": True}), 200
        return jsonify({"item": line.to_dict()}), 200

    except KNOWN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update cart item")
        return jsonify({"error": "Internal server error"}), 500


@cart_bp.patch("/<int:line_id>")
@require_auth
def adjust_quantity_route(line_id: int):
    """Body: {"delta": int}. Applied atomically; a result of zero or less removes the line."""
    try:
        data = require_json_object(request.get_json(silent=True))
        delta = parse_quantity(data.get("delta"), field="delta", allow_non_positive=True)
        line = cart_service.adjust_quantity(current_scope(), line_id, delta)
        if line is None:
            return jsonify({"item": None, "removed": True}), 200
        return jsonify({"item": line.to_dict()}), 200

    except KNOWN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to adjust cart item")
        return jsonify({"error": "Internal server error"}), 500


@cart_bp.delete("/<int:line_id>")
@require_auth
def remove_item_route(line_id: int):
    try:
        cart_service.remove_item(current_scope(), line_id)
        return jsonify({"ok": True}), 200
    except KNOWN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to remove cart item")
        return jsonify({"error": "Internal server error"}), 500


@cart_bp.delete("")
@require_auth
def clear_cart_route():
    try:
        removed = cart_service.clear_cart(current_scope())
        return jsonify({"ok": True, "removed": removed}), 200
    except Exception:
        current_app.logger.exception("Failed to clear cart")
        return jsonify({"error": "Internal server error"}), 500


@cart_bp.post("/preview")
@require_auth
def preview_route():
    """Body: {"discount": {"kind": "percentage"|"amount", "value": ...}} (optional)"""
    try:
        data = require_json_object(request.get_json(silent=True))
        discount = parse_discount(data.get("discount"))
        return jsonify(_cart_payload(current_scope(), discount)), 200
    except KNOWN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to preview cart")
        return jsonify({"error": "Internal server error"}), 500
