# Overview: Service-layer operations for the cart; encapsulates business logic and database work.

"""
Cart Store

A cart is the set of PENDING line items (transaction_id IS NULL) owned by one
user. Every query here filters on the pending predicate, so lines bound to a
transaction can never be mutated through the cart.

Concurrency:
- add_item is a keyed upsert on (user_id, product_id) over pending rows:
  two rapid adds of the same product sum their quantities in the database,
  never duplicate the line and never lose an increment.
- adjust_quantity applies `quantity = quantity + delta` as one UPDATE.
- set_quantity writes an absolute value under a row lock (idempotent).
- Inventory checks here are advisory; settlement re-checks authoritatively.
"""

from __future__ import annotations

from sqlalchemy import delete, func, update
from sqlalchemy.dialects.postgresql import insert as postgresql_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from ..extensions import db
from ..models import CartItem
from ..validation import NotFoundError
from .concurrency import atomic, lock_for_update
from .inventory_service import require_available
from .pricing_service import Discount, PricingResult, compute_totals
from .scope import Scope

_UPSERT_INSERTS = {
    "sqlite": sqlite_insert,
    "postgresql": postgresql_insert,
}


def _pending(user_id: int):
    return db.session.query(CartItem).filter(
        CartItem.user_id == user_id,
        CartItem.transaction_id.is_(None),
    )


def _pending_clause(user_id: int):
    return (CartItem.user_id == user_id, CartItem.transaction_id.is_(None))


def list_cart(scope: Scope) -> list[CartItem]:
    """Pending lines, oldest first, each with its live product joined."""
    return _pending(scope.user_id).order_by(CartItem.id.asc()).populate_existing().all()


def get_line(scope: Scope, line_id: int, *, lock: bool = False) -> CartItem:
    query = _pending(scope.user_id).filter(CartItem.id == line_id).populate_existing()
    if lock:
        query = lock_for_update(query, of=CartItem)
    line = query.first()
    if line is None:
        raise NotFoundError("Cart item not found")
    return line


def _upsert_pending_line(user_id: int, product_id: int, quantity: int, unit_price_cents: int) -> int:
    values = {
        "user_id": user_id,
        "product_id": product_id,
        "transaction_id": None,
        "quantity": quantity,
        "unit_price_cents": unit_price_cents,
    }

    insert_fn = _UPSERT_INSERTS.get(db.engine.dialect.name)
    if insert_fn is not None:
        stmt = insert_fn(CartItem).values(**values)
        # Merge keeps the price frozen by the first add
        stmt = stmt.on_conflict_do_update(
            index_elements=[CartItem.user_id, CartItem.product_id],
            index_where=CartItem.transaction_id.is_(None),
            set_={
                "quantity": CartItem.quantity + stmt.excluded.quantity,
                "updated_at": func.now(),
            },
        ).returning(CartItem.id)
        return db.session.execute(stmt).scalar_one()

    result = db.session.execute(
        update(CartItem)
        .where(*_pending_clause(user_id), CartItem.product_id == product_id)
        .values(quantity=CartItem.quantity + quantity)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount:
        return _pending(user_id).filter(CartItem.product_id == product_id).one().id

    line = CartItem(**values)
    db.session.add(line)
    db.session.flush()
    return line.id


def add_item(
    scope: Scope,
    product_id: int,
    quantity: int = 1,
    unit_price_cents: int | None = None,
) -> CartItem:
    """
    Add quantity of a product to the cart.

    Merges into an existing pending line for the product (quantities sum);
    otherwise creates a line with the unit price frozen at the product's
    current price unless unit_price_cents overrides it.

    Raises NotFoundError, OutOfStockError.
    """
    product = require_available(scope.user_id, product_id, quantity)
    price = product.price_cents if unit_price_cents is None else unit_price_cents

    with atomic("cart.add_item"):
        line_id = _upsert_pending_line(scope.user_id, product.id, quantity, price)

    return get_line(scope, line_id)


def set_quantity(scope: Scope, line_id: int, quantity: int) -> CartItem | None:
    """
    Replace a line's quantity. quantity <= 0 deletes the line (returns None).

    Increasing re-checks availability for the additional units only.
    """
    if quantity <= 0:
        remove_item(scope, line_id)
        return None

    with atomic("cart.set_quantity"):
        line = get_line(scope, line_id, lock=True)
        additional = quantity - line.quantity
        if additional > 0:
            require_available(scope.user_id, line.product_id, additional)

        db.session.execute(
            update(CartItem)
            .where(*_pending_clause(scope.user_id), CartItem.id == line_id)
            .values(quantity=quantity)
            .execution_options(synchronize_session=False)
        )

    return get_line(scope, line_id)


def adjust_quantity(scope: Scope, line_id: int, delta: int) -> CartItem | None:
    """
    Apply a relative change (+1 / -1 clicks) as a single atomic UPDATE.

    A change that would bring the quantity to zero or below deletes the line
    (returns None).
    """
    line = get_line(scope, line_id)
    if delta == 0:
        return line
    if delta > 0:
        require_available(scope.user_id, line.product_id, delta)

    with atomic("cart.adjust_quantity"):
        result = db.session.execute(
            update(CartItem)
            .where(
                *_pending_clause(scope.user_id),
                CartItem.id == line_id,
                CartItem.quantity + delta > 0,
            )
            .values(quantity=CartItem.quantity + delta)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            removed = db.session.execute(
                delete(CartItem)
                .where(*_pending_clause(scope.user_id), CartItem.id == line_id)
                .execution_options(synchronize_session=False)
            )
            if removed.rowcount == 0:
                raise NotFoundError("Cart item not found")
            return None

    return get_line(scope, line_id)


def remove_item(scope: Scope, line_id: int) -> None:
    with atomic("cart.remove_item"):
        result = db.session.execute(
            delete(CartItem)
            .where(*_pending_clause(scope.user_id), CartItem.id == line_id)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise NotFoundError("Cart item not found")


def delete_pending_lines(user_id: int) -> int:
    """Delete every pending line for the owner. Joins the caller's unit of work."""
    result = db.session.execute(
        delete(CartItem)
        .where(*_pending_clause(user_id))
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


def delete_pending_lines_for_product(user_id: int, product_id: int) -> int:
    """Drop pending lines for a product being deleted. Joins the caller's unit of work."""
    result = db.session.execute(
        delete(CartItem)
        .where(*_pending_clause(user_id), CartItem.product_id == product_id)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


def clear_cart(scope: Scope) -> int:
    with atomic("cart.clear"):
        return delete_pending_lines(scope.user_id)


def preview_totals(scope: Scope, discount: Discount | None = None) -> PricingResult:
    """
    Pricing preview for the current cart (what the register displays).

    Checkout recomputes from the stored lines; this figure is never trusted
    as input.
    """
    return compute_totals(list_cart(scope), discount, scope.tax_rate_bps)
