# Overview: Builds the receipt document for a recorded transaction.

"""
Receipt

Combines the owner's store settings with one transaction from the archive.
Every figure comes from the transaction record itself; nothing is re-priced,
so a receipt printed a year later shows exactly what was charged.
"""

from __future__ import annotations

from ..models import User
from .scope import Scope
from .settings_service import get_settings
from .transaction_service import get_transaction


def build_receipt(scope: Scope, transaction_id: int) -> dict:
    tx = get_transaction(scope, transaction_id)
    settings = get_settings(scope.user_id)

    store = {
        "name": settings["store_name"],
        "address": settings["store_address"],
        "phone": settings["store_phone"],
        "email": settings["store_email"],
        "logo_url": settings["logo_url"] if settings["show_logo"] else None,
    }

    items = []
    for line in tx.lines:
        product = line.product
        items.append({
            "product_id": line.product_id,
            # Deleted products keep their line; the name is no longer known
            "name": product.name if product else f"Product #{line.product_id}",
            "quantity": line.quantity,
            "unit_price_cents": line.unit_price_cents,
            "line_total_cents": line.line_total_cents,
        })

    totals = {
        "subtotal_cents": tx.subtotal_cents,
        "discount_cents": tx.discount_cents or 0,
        "discount_kind": tx.discount_kind,
        "total_cents": tx.total_cents,
    }
    if settings["show_tax_on_receipt"]:
        totals["tax_rate_bps"] = tx.tax_rate_bps
        totals["tax_cents"] = tx.tax_cents

    cashier = None
    if tx.cashier_id is not None:
        cashier_user = User.query.filter_by(id=tx.cashier_id).first()
        cashier = cashier_user.full_name or cashier_user.username if cashier_user else None

    return {
        "transaction_id": tx.id,
        "status": tx.status,
        "created_at": tx.to_dict()["created_at"],
        "currency": settings["currency"],
        "store": store,
        "cashier": cashier,
        "items": items,
        "totals": totals,
        "payment": {
            "method": tx.payment_method,
            "amount_tendered_cents": tx.amount_tendered_cents,
            "change_due_cents": tx.change_due_cents,
        },
        "footer": settings["receipt_footer"],
    }
