# Overview: Service-layer operations for the transaction archive and status transitions.

"""
Transaction Archive

Read side: get / list with owner scoping, newest first.

Write side (the only writers besides settlement):
- hold:    active -> held
- cancel:  active | held | completed -> canceled (terminal)
- restock: explicit inventory restoration for a canceled transaction whose
           settlement had decremented inventory; runs at most once.

Transitions flip status/completed/timestamps only. Subtotal, discount, tax,
total and the bound lines are never rewritten after creation.
"""

from __future__ import annotations

import logging

from sqlalchemy import String, cast, or_

from ..extensions import db
from ..models import Transaction
from ..models.sales import (
    STATUS_ACTIVE,
    STATUS_CANCELED,
    STATUS_COMPLETED,
    STATUS_HELD,
    TRANSACTION_STATUSES,
)
from ..validation import NotFoundError, ValidationError
from pos.time_utils import DateWindowError, parse_date_window, utcnow
from .concurrency import atomic, lock_for_update
from .inventory_service import increment
from .scope import Scope

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    STATUS_ACTIVE: {STATUS_HELD, STATUS_COMPLETED, STATUS_CANCELED},
    STATUS_HELD: {STATUS_COMPLETED, STATUS_CANCELED},
    STATUS_COMPLETED: {STATUS_CANCELED},
    STATUS_CANCELED: set(),
}


class TransactionStateError(Exception):
    """Requested status transition is not allowed from the current status."""
    code = "INVALID_TRANSITION"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": str(self), "code": self.code, "details": self.details}


def require_transition(tx: Transaction, target: str) -> None:
    if target not in ALLOWED_TRANSITIONS.get(tx.status, set()):
        raise TransactionStateError(
            f"Cannot move transaction from {tx.status} to {target}",
            details={"transaction_id": tx.id, "status": tx.status, "target": target},
        )


def get_transaction(scope: Scope, transaction_id: int, *, lock: bool = False) -> Transaction:
    query = db.session.query(Transaction).filter_by(id=transaction_id, user_id=scope.user_id)
    if lock:
        query = lock_for_update(query, of=Transaction)
    tx = query.populate_existing().first()
    if tx is None:
        raise NotFoundError("Transaction not found")
    return tx


def list_transactions(
    scope: Scope,
    *,
    start: str | None = None,
    end: str | None = None,
    q: str | None = None,
    status: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Scoped transaction listing, newest first.

    - start/end: inclusive window over created_at (ISO-8601; a date-only end
      covers the whole day)
    - q: matches a transaction id substring or a payment method substring
    - status: one of active, held, completed, canceled
    - page/per_page: optional pagination (default 20, max 100)
    """
    try:
        start_dt, end_dt = parse_date_window(start, end)
    except DateWindowError as exc:
        raise ValidationError(f"Invalid date range: {exc}", field=exc.field)

    query = db.session.query(Transaction).filter(Transaction.user_id == scope.user_id)

    if start_dt:
        query = query.filter(Transaction.created_at >= start_dt)
    if end_dt:
        query = query.filter(Transaction.created_at <= end_dt)

    if status:
        if status not in TRANSACTION_STATUSES:
            raise ValidationError(f"status must be one of {', '.join(TRANSACTION_STATUSES)}", field="status")
        query = query.filter(Transaction.status == status)

    if q:
        term = f"%{q.strip()}%"
        query = query.filter(or_(
            cast(Transaction.id, String).like(term),
            Transaction.payment_method.ilike(term),
        ))

    query = query.order_by(Transaction.created_at.desc(), Transaction.id.desc())

    if page is None:
        rows = query.all()
        return {
            "items": [tx.to_dict() for tx in rows],
            "count": len(rows),
        }

    per_page = max(1, min(per_page or 20, 100))
    page = max(page, 1)

    total = query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1
    rows = query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [tx.to_dict() for tx in rows],
        "count": len(rows),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def hold_transaction(scope: Scope, transaction_id: int) -> Transaction:
    with atomic("transaction.hold"):
        tx = get_transaction(scope, transaction_id, lock=True)
        require_transition(tx, STATUS_HELD)
        tx.status = STATUS_HELD
        tx.completed = False

    return tx


def _restock_lines(scope: Scope, tx: Transaction) -> int:
    restored = 0
    for line in tx.lines:
        try:
            increment(scope.user_id, line.product_id, line.quantity)
        except NotFoundError:
            logger.warning(
                "Skipping restock of deleted product %s for transaction %s",
                line.product_id,
                tx.id,
            )
            continue
        restored += line.quantity
    tx.restocked_at = utcnow()
    return restored


def cancel_transaction(
    scope: Scope,
    transaction_id: int,
    *,
    reason: str | None = None,
    restock: bool = False,
) -> Transaction:
    """
    Cancel a transaction. Inventory is only restored when restock=True and
    the transaction's settlement actually decremented it.
    """
    with atomic("transaction.cancel"):
        tx = get_transaction(scope, transaction_id, lock=True)
        require_transition(tx, STATUS_CANCELED)

        tx.status = STATUS_CANCELED
        tx.completed = False
        tx.canceled_at = utcnow()
        tx.cancel_reason = reason

        if restock and tx.inventory_applied:
            units = _restock_lines(scope, tx)
            logger.info("Canceled transaction %s and restocked %s units", tx.id, units)
        else:
            logger.info("Canceled transaction %s", tx.id)

    return tx


def restock_transaction(scope: Scope, transaction_id: int) -> Transaction:
    """Explicitly restore inventory for a canceled, previously settled transaction."""
    with atomic("transaction.restock"):
        tx = get_transaction(scope, transaction_id, lock=True)

        if tx.status != STATUS_CANCELED:
            raise TransactionStateError(
                "Only canceled transactions can be restocked",
                details={"transaction_id": tx.id, "status": tx.status},
            )
        if not tx.inventory_applied:
            raise TransactionStateError(
                "Transaction never decremented inventory",
                details={"transaction_id": tx.id},
            )
        if tx.restocked_at is not None:
            raise TransactionStateError(
                "Transaction already restocked",
                details={"transaction_id": tx.id},
            )

        units = _restock_lines(scope, tx)

    logger.info("Restocked %s units for canceled transaction %s", units, tx.id)
    return tx
