# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/pos/routes/products.py
"""
Product management routes.

All product operations are scoped to the authenticated user.
"""
from flask import Blueprint, request, jsonify, current_app

from ..services import products_service
from ..services.inventory_service import restock_product
from ..models import Product
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    parse_quantity,
    require_json_object,
)
from ..decorators import require_auth, current_scope
from ..errors import KNOWN_ERRORS, error_response

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"name", "price_cents", "category", "inventory", "image_url"},
    required_on_create={"name", "price_cents", "category"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products():
    """
    List products, ordered by name.

    Query params:
    - category: str (optional) - exact category; "All" means no filter
    - search: str (optional) - substring over name and category
    - page: int (optional) - page number (1-indexed). If omitted, returns all items.
    - per_page: int (optional) - items per page (default 20, max 100)
    """
    result = products_service.list_products(
        current_scope(),
        category=request.args.get("category"),
        search=request.args.get("search"),
        page=request.args.get("page", type=int),
        per_page=request.args.get("per_page", type=int),
    )
    return jsonify(result)


@products_bp.get("/<int:product_id>")
@require_auth
def get_product_route(product_id: int):
    try:
        product = products_service.get_product(current_scope(), product_id)
        return jsonify(product.to_dict())
    except KNOWN_ERRORS as e:
        return error_response(e)


@products_bp.post("")
@require_auth
def create_product_route():
    try:
        payload = require_json_object(request.get_json(silent=True))
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
        created = products_service.create_product(current_scope(), patch=patch)
    except KNOWN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(created), 201


@products_bp.put("/<int:product_id>")
@products_bp.patch("/<int:product_id>")
@require_auth
def update_product_route(product_id: int):
    try:
        payload = require_json_object(request.get_json(silent=True))
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
        updated = products_service.update_product(current_scope(), product_id=product_id, patch=patch)
    except KNOWN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to update product")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(updated), 200


@products_bp.delete("/<int:product_id>")
@require_auth
def delete_product_route(product_id: int):
    try:
        products_service.delete_product(current_scope(), product_id=product_id)
    except KNOWN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to delete product")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify({"ok": True}), 200


@products_bp.post("/<int:product_id>/restock")
@require_auth
def restock_product_route(product_id: int):
    """Explicit restock (goods received). Body: {"quantity": int > 0}"""
    try:
        payload = require_json_object(request.get_json(silent=True))
        quantity = parse_quantity(payload.get("quantity"))
        product = restock_product(current_scope().user_id, product_id, quantity)
    except KNOWN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to restock product")
        return jsonify({"error": "Internal server error"}), 500

    return jsonify(product.to_dict()), 200
