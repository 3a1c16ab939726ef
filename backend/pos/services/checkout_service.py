# Overview: Settlement orchestrator; converts the pending cart into a transaction.

"""
Settlement

checkout(): pending cart -> [validating] -> completed, or fails with nothing
persisted. The whole pipeline is ONE unit of work:

    1. lock + read pending lines (EmptyCartError if none)
    2. price them with the pricing engine (server figures are authoritative)
    3. create the Transaction (status=completed, completed=True)
    4. per line: bind it to the transaction, guarded inventory decrement
    5. delete any remaining pending lines
    6. commit

Any failure in 1-5 (typically InsufficientInventoryError in step 4) rolls
back every write, so a half-settled transaction cannot exist.

hold_cart() parks the cart as a held transaction (lines bound, inventory
untouched); complete_transaction() later settles it with the same guarded
decrements.
"""

from __future__ import annotations

import logging

from ..extensions import db
from ..models import CartItem, Transaction
from ..models.sales import STATUS_COMPLETED, STATUS_HELD
from ..validation import ValidationError
from pos.time_utils import utcnow
from .cart_service import delete_pending_lines
from .concurrency import atomic, lock_for_update
from .inventory_service import decrement
from .pricing_service import Discount, PricingResult, compute_totals
from .scope import Scope
from .transaction_service import get_transaction, require_transition

logger = logging.getLogger(__name__)

CASH = "cash"


class EmptyCartError(Exception):
    """Checkout or hold attempted with no pending lines."""
    code = "EMPTY_CART"

    def to_dict(self) -> dict:
        return {"error": str(self), "code": self.code}


def _lock_pending_lines(user_id: int) -> list[CartItem]:
    query = db.session.query(CartItem).filter(
        CartItem.user_id == user_id,
        CartItem.transaction_id.is_(None),
    ).order_by(CartItem.id.asc())
    return lock_for_update(query, of=CartItem).populate_existing().all()


def _change_due(payment_method: str, amount_tendered_cents: int | None, total_cents: int) -> int | None:
    if amount_tendered_cents is None:
        return None
    if payment_method.lower() == CASH and amount_tendered_cents < total_cents:
        raise ValidationError(
            f"Amount tendered {amount_tendered_cents} is less than total {total_cents}",
            field="amount_tendered_cents",
        )
    return max(amount_tendered_cents - total_cents, 0)


def _new_transaction(scope: Scope, pricing: PricingResult, *, status: str) -> Transaction:
    return Transaction(
        user_id=scope.user_id,
        cashier_id=scope.cashier_id,
        created_at=utcnow(),
        subtotal_cents=pricing.subtotal_cents,
        discount_cents=pricing.discount_cents if pricing.discount_cents > 0 else None,
        discount_kind=pricing.discount_kind,
        tax_rate_bps=pricing.tax_rate_bps,
        tax_cents=pricing.tax_cents,
        total_cents=pricing.total_cents,
        status=status,
        completed=False,
    )


def _settle_lines(scope: Scope, tx: Transaction, lines: list[CartItem]) -> None:
    for line in lines:
        line.transaction_id = tx.id
        db.session.flush()
        decrement(scope.user_id, line.product_id, line.quantity)
    tx.inventory_applied = True


def _mark_completed(tx: Transaction, payment_method: str, amount_tendered_cents: int | None) -> None:
    tx.change_due_cents = _change_due(payment_method, amount_tendered_cents, tx.total_cents)
    tx.payment_method = payment_method
    tx.amount_tendered_cents = amount_tendered_cents
    tx.status = STATUS_COMPLETED
    tx.completed = True
    tx.completed_at = utcnow()


def checkout(
    scope: Scope,
    payment_method: str,
    discount: Discount | None = None,
    amount_tendered_cents: int | None = None,
) -> Transaction:
    """
    Settle the scope's cart. Returns the completed transaction.

    Raises EmptyCartError, InsufficientInventoryError, NotFoundError (a cart
    line's product was deleted), ValidationError (cash under-tendered).
    """
    with atomic("checkout"):
        lines = _lock_pending_lines(scope.user_id)
        if not lines:
            raise EmptyCartError("Cart is empty")

        pricing = compute_totals(lines, discount, scope.tax_rate_bps)

        tx = _new_transaction(scope, pricing, status=STATUS_COMPLETED)
        _mark_completed(tx, payment_method, amount_tendered_cents)
        db.session.add(tx)
        db.session.flush()

        _settle_lines(scope, tx, lines)

        # Should be empty after binding
        leftover = delete_pending_lines(scope.user_id)
        if leftover:
            logger.warning("Checkout %s removed %s unbound cart lines", tx.id, leftover)

    logger.info(
        "Settled transaction %s for user %s: %s lines, total %s cents via %s",
        tx.id, scope.user_id, len(lines), tx.total_cents, payment_method,
    )
    return tx


def hold_cart(scope: Scope, discount: Discount | None = None) -> Transaction:
    """Park the current cart as a held transaction without touching inventory."""
    with atomic("hold_cart"):
        lines = _lock_pending_lines(scope.user_id)
        if not lines:
            raise EmptyCartError("Cart is empty")

        pricing = compute_totals(lines, discount, scope.tax_rate_bps)
        tx = _new_transaction(scope, pricing, status=STATUS_HELD)
        db.session.add(tx)
        db.session.flush()

        for line in lines:
            line.transaction_id = tx.id

    logger.info("Held cart as transaction %s for user %s", tx.id, scope.user_id)
    return tx


def complete_transaction(
    scope: Scope,
    transaction_id: int,
    payment_method: str,
    amount_tendered_cents: int | None = None,
) -> Transaction:
    """
    Settle an active or held transaction: its bound lines are decremented
    from inventory with the same guarded, all-or-nothing semantics as checkout.
    Figures computed when the transaction was created are kept as they are.
    """
    with atomic("complete_transaction"):
        tx = get_transaction(scope, transaction_id, lock=True)
        require_transition(tx, STATUS_COMPLETED)

        lines = list(tx.lines)
        if not lines:
            raise EmptyCartError("Transaction has no line items")

        _mark_completed(tx, payment_method, amount_tendered_cents)
        for line in lines:
            decrement(scope.user_id, line.product_id, line.quantity)
        tx.inventory_applied = True

    logger.info("Completed transaction %s via %s", tx.id, payment_method)
    return tx
