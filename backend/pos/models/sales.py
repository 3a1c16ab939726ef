from __future__ import annotations

from ..extensions import db
from pos.time_utils import to_utc_z, utcnow

STATUS_ACTIVE = "active"
STATUS_HELD = "held"
STATUS_COMPLETED = "completed"
STATUS_CANCELED = "canceled"

TRANSACTION_STATUSES = (STATUS_ACTIVE, STATUS_HELD, STATUS_COMPLETED, STATUS_CANCELED)


class CartItem(db.Model):
    """
    Line item: one product + quantity + frozen unit price.

    Pending (transaction_id NULL): part of the owner's cart, mutable through
    cart_service. At most one pending line per (user, product); enforced by
    the partial unique index so merge-on-add is a keyed upsert.

    Bound (transaction_id set): part of a transaction's permanent record.
    Cart operations only ever match pending rows, so bound lines are
    unreachable for mutation.

    product_id is a plain id reference: deleting a product orphans bound
    lines rather than cascading into sales history.
    """
    __tablename__ = "cart_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_cart_items_quantity_positive"),
        db.Index(
            "uq_cart_items_pending_product",
            "user_id",
            "product_id",
            unique=True,
            sqlite_where=db.text("transaction_id IS NULL"),
            postgresql_where=db.text("transaction_id IS NULL"),
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, nullable=False, index=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=True, index=True)

    quantity = db.Column(db.Integer, nullable=False, default=1)

    # Frozen at add time; authoritative for billing
    unit_price_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    product = db.relationship(
        "Product",
        primaryjoin="foreign(CartItem.product_id) == Product.id",
        viewonly=True,
        lazy="joined",
    )
    transaction = db.relationship("Transaction", back_populates="lines")

    @property
    def line_total_cents(self) -> int:
        return self.unit_price_cents * self.quantity

    def to_dict(self, include_product: bool = True) -> dict:
        data = {
            "id": self.id,
            "user_id": self.user_id,
            "product_id": self.product_id,
            "transaction_id": self.transaction_id,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
        }
        if include_product:
            product = self.product
            data["product"] = {
                "id": product.id,
                "name": product.name,
                "category": product.category,
                "image_url": product.image_url,
                # Live price, for reference only; unit_price_cents is what bills
                "price_cents": product.price_cents,
                "inventory": product.inventory,
            } if product else None
        return data


class Transaction(db.Model):
    """
    Sale record.

    INVARIANTS (set once at creation, never rewritten):
    - total_cents = (subtotal_cents - discount_cents) + tax_cents
    - tax_cents = round((subtotal_cents - discount_cents) * tax_rate_bps / 10000)

    Status transitions only flip status/completed/timestamps:
      active|held -> completed, active -> held, active|held|completed -> canceled.
    canceled is terminal.

    inventory_applied records whether settlement decremented inventory, so a
    restock after cancellation can never run twice (restocked_at).
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.Index("ix_transactions_user_created", "user_id", "created_at"),
        db.Index("ix_transactions_user_status", "user_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    cashier_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    # Figures (all amounts in cents)
    subtotal_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=True)
    discount_kind = db.Column(db.String(16), nullable=True)  # percentage | amount
    tax_rate_bps = db.Column(db.Integer, nullable=False, default=0)
    tax_cents = db.Column(db.Integer, nullable=False)
    total_cents = db.Column(db.Integer, nullable=False)

    # Simulated payment capture: method label and tendered amount are trusted as given
    payment_method = db.Column(db.String(32), nullable=True)
    amount_tendered_cents = db.Column(db.Integer, nullable=True)
    change_due_cents = db.Column(db.Integer, nullable=True)

    # Lifecycle
    status = db.Column(db.String(16), nullable=False, default=STATUS_ACTIVE, index=True)
    completed = db.Column(db.Boolean, nullable=False, default=False)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    canceled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancel_reason = db.Column(db.String(255), nullable=True)

    inventory_applied = db.Column(db.Boolean, nullable=False, default=False)
    restocked_at = db.Column(db.DateTime(timezone=True), nullable=True)

    lines = db.relationship(
        "CartItem",
        back_populates="transaction",
        order_by="CartItem.id",
        lazy="selectin",
    )

    def to_dict(self, include_lines: bool = False) -> dict:
        data = {
            "id": self.id,
            "user_id": self.user_id,
            "cashier_id": self.cashier_id,
            "created_at": to_utc_z(self.created_at),
            "subtotal_cents": self.subtotal_cents,
            "discount_cents": self.discount_cents,
            "discount_kind": self.discount_kind,
            "tax_rate_bps": self.tax_rate_bps,
            "tax_cents": self.tax_cents,
            "total_cents": self.total_cents,
            "payment_method": self.payment_method,
            "amount_tendered_cents": self.amount_tendered_cents,
            "change_due_cents": self.change_due_cents,
            "status": self.status,
            "completed": self.completed,
            "completed_at": to_utc_z(self.completed_at) if self.completed_at else None,
            "canceled_at": to_utc_z(self.canceled_at) if self.canceled_at else None,
            "cancel_reason": self.cancel_reason,
            "inventory_applied": self.inventory_applied,
            "restocked_at": to_utc_z(self.restocked_at) if self.restocked_at else None,
        }
        if include_lines:
            data["items"] = [line.to_dict() for line in self.lines]
        return data
