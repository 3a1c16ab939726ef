# Overview: Flask API routes for settlement and the transaction archive.

# backend/pos/routes/transactions.py
"""
Transaction routes.

checkout is the only way a pending cart becomes a completed sale. The
request carries the payment method and an optional discount; figures the
client may have shown are never accepted as input.
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import checkout_service, receipt_service, transaction_service
from ..validation import (
    ValidationError,
    parse_discount,
    parse_money_cents,
    parse_payment_method,
    require_json_object,
)
from ..decorators import require_auth, current_scope
from ..errors import KNOWN_ERRORS, error_response


transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


def _tendered(data: dict) -> int | None:
    if data.get("amount_tendered_cents") is None:
        return None
    return parse_money_cents(data["amount_tendered_cents"], field="amount_tendered_cents")


@transactions_bp.post("/checkout")
@require_auth
def checkout_route():
    """
    Settle the cart.

    Body: {"payment_method": str, "discount": {...} (optional),
           "amount_tendered_cents": int (optional)}
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        payment_method = parse_payment_method(data.get("payment_method"))
        discount = parse_discount(data.get("discount"))
        tendered = _tendered(data)

        tx = checkout_service.checkout(current_scope(), payment_method, discount, tendered)
        return jsonify({"transaction": tx.to_dict(include_lines=True)}), 201

    except KNOWN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to checkout")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.post("/hold")
@require_auth
def hold_route():
    try:
        data = require_json_object(request.get_json(silent=True))
        discount = parse_discount(data.get("discount"))
        tx = checkout_service.hold_cart(current_scope(), discount)
        return jsonify({"transaction": tx.to_dict(include_lines=True)}), 201

    except KNOWN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to hold cart")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.post("/<int:transaction_id>/complete")
@require_auth
def complete_route(transaction_id: int):
    try:
        data = require_json_object(request.get_json(silent=True))
        payment_method = parse_payment_method(data.get("payment_method"))
        tx = checkout_service.complete_transaction(
            current_scope(), transaction_id, payment_method, _tendered(data)
        )
        return jsonify({"transaction": tx.to_dict(include_lines=True)}), 200

    except KNOWN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to complete transaction")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.post("/<int:transaction_id>/cancel")
@require_auth
def cancel_route(transaction_id: int):
    """Body: {"restock": bool = false, "reason": str (optional)}"""
    try:
        data = require_json_object(request.get_json(silent=True))

        restock = data.get("restock", False)
        if not isinstance(restock, bool):
            raise ValidationError("restock must be true or false", field="restock")

        reason = data.get("reason")
        if reason is not None and not isinstance(reason, str):
            raise ValidationError("reason must be a string", field="reason")

        tx = transaction_service.cancel_transaction(
            current_scope(),
            transaction_id,
            reason=reason[:255] if reason else None,
            restock=restock,
        )
        return jsonify({"transaction": tx.to_dict(include_lines=True)}), 200

    except KNOWN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to cancel transaction")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.post("/<int:transaction_id>/restock")
@require_auth
def restock_route(transaction_id: int):
    try:
        tx = transaction_service.restock_transaction(current_scope(), transaction_id)
        return jsonify({"transaction": tx.to_dict(include_lines=True)}), 200

    except KNOWN_ERRORS as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Failed to restock transaction")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.get("")
@require_auth
def list_route():
    """
    Query params:
    - start, end: ISO-8601 (inclusive; a date-only end covers the whole day)
    - q: id or payment method substring
    - status: active | held | completed | canceled
    - page, per_page: optional pagination
    """
    try:
        result = transaction_service.list_transactions(
            current_scope(),
            start=request.args.get("start"),
            end=request.args.get("end"),
            q=request.args.get("q"),
            status=request.args.get("status"),
            page=request.args.get("page", type=int),
            per_page=request.args.get("per_page", type=int),
        )
        return jsonify(result)
    except KNOWN_ERRORS as e:
        return error_response(e)


@transactions_bp.get("/<int:transaction_id>")
@require_auth
def get_route(transaction_id: int):
    try:
        tx = transaction_service.get_transaction(current_scope(), transaction_id)
        return jsonify({"transaction": tx.to_dict(include_lines=True)})
    except KNOWN_ERRORS as e:
        return error_response(e)


@transactions_bp.get("/<int:transaction_id>/receipt")
@require_auth
def receipt_route(transaction_id: int):
    try:
        return jsonify(receipt_service.build_receipt(current_scope(), transaction_id))
    except KNOWN_ERRORS as e:
        return error_response(e)
