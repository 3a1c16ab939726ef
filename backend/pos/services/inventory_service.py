# Overview: Service-layer operations for inventory; encapsulates business logic and database work.

"""
Inventory Ledger

Invariants (authoritative):
- Product.inventory is never negative. Every write goes through a single
  guarded UPDATE ("decrement if sufficient, else fail"), never through an
  unconditional subtract or a read-then-write of a stale value.
- check_available / require_available are ADVISORY (used by cart mutations).
  The authoritative check is decrement(), which re-checks inside the UPDATE
  at settlement time.
- Inventory is never restored implicitly. Restocking is an explicit
  operation (restock_product, or transaction_service.restock_transaction
  for canceled sales).

decrement() and increment() do not commit; they join the caller's unit of work.
"""

from __future__ import annotations

import logging

from sqlalchemy import update

from ..extensions import db
from ..models import Product
from ..validation import NotFoundError, ValidationError
from .concurrency import atomic

logger = logging.getLogger(__name__)


class InventoryError(Exception):
    """Base for inventory availability failures."""
    code = "INVENTORY_ERROR"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": str(self), "code": self.code, "details": self.details}


class OutOfStockError(InventoryError):
    """Advisory check failed while mutating the cart."""
    code = "OUT_OF_STOCK"


class InsufficientInventoryError(InventoryError):
    """Authoritative decrement refused: it would drive inventory negative."""
    code = "INSUFFICIENT_INVENTORY"


def get_product(user_id: int, product_id: int, *, fresh: bool = False) -> Product:
    query = db.session.query(Product).filter_by(id=product_id, user_id=user_id)
    if fresh:
        query = query.populate_existing()
    product = query.first()
    if product is None:
        raise NotFoundError("Product not found")
    return product


def check_available(user_id: int, product_id: int, quantity: int) -> bool:
    product = get_product(user_id, product_id, fresh=True)
    return product.inventory >= quantity


def require_available(user_id: int, product_id: int, quantity: int) -> Product:
    """Advisory availability check; raises OutOfStockError with guidance details."""
    product = get_product(user_id, product_id, fresh=True)
    if product.inventory < quantity:
        raise OutOfStockError(
            f"Not enough inventory. Only {product.inventory} available.",
            details={
                "product_id": product.id,
                "requested": quantity,
                "available": product.inventory,
            },
        )
    return product


def _require_positive(quantity: int) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError("quantity must be a positive integer", field="quantity")


def decrement(user_id: int, product_id: int, quantity: int) -> int:
    """
    Atomically reduce inventory by quantity, or fail leaving it unchanged.

    Returns the new on-hand count.
    """
    _require_positive(quantity)

    result = db.session.execute(
        update(Product)
        .where(
            Product.id == product_id,
            Product.user_id == user_id,
            Product.inventory >= quantity,
        )
        .values(inventory=Product.inventory - quantity)
        .execution_options(synchronize_session="fetch")
    )

    if result.rowcount != 1:
        product = get_product(user_id, product_id, fresh=True)
        raise InsufficientInventoryError(
            f"Insufficient inventory for {product.name}: {product.inventory} on hand, {quantity} required",
            details={
                "product_id": product.id,
                "requested": quantity,
                "available": product.inventory,
            },
        )

    return get_product(user_id, product_id, fresh=True).inventory


def increment(user_id: int, product_id: int, quantity: int) -> int:
    """Atomically add quantity to inventory. Returns the new on-hand count."""
    _require_positive(quantity)

    result = db.session.execute(
        update(Product)
        .where(Product.id == product_id, Product.user_id == user_id)
        .values(inventory=Product.inventory + quantity)
        .execution_options(synchronize_session="fetch")
    )
    if result.rowcount != 1:
        raise NotFoundError("Product not found")

    return get_product(user_id, product_id, fresh=True).inventory


def restock_product(user_id: int, product_id: int, quantity: int) -> Product:
    """Explicit restock (goods received, manual correction)."""
    with atomic("restock_product"):
        on_hand = increment(user_id, product_id, quantity)

    logger.info("Restocked product %s by %s (on hand %s)", product_id, quantity, on_hand)
    return get_product(user_id, product_id)
