from __future__ import annotations

from ..extensions import db
from pos.time_utils import to_utc_z

class Product(db.Model):
    """
    Product master data.

    SCOPE: Products belong to one user (user_id).

    INVENTORY: `inventory` is the on-hand count and the only contended value in
    the system. It is never written with a read-then-write from request data;
    inventory_service applies guarded atomic UPDATE expressions, and the CHECK
    constraint is the last line of the non-negative floor.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("inventory >= 0", name="ck_products_inventory_nonnegative"),
        db.CheckConstraint("price_cents >= 0", name="ck_products_price_nonnegative"),
        db.Index("ix_products_user_name", "user_id", "name"),
        db.Index("ix_products_user_category", "user_id", "category"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)

    # Authoritative storage in cents (frontend may only format for display)
    price_cents = db.Column(db.Integer, nullable=False)

    # Free-form category label; matched against Category.name for display only
    category = db.Column(db.String(100), nullable=False)

    inventory = db.Column(db.Integer, nullable=False, default=0)
    image_url = db.Column(db.String(500), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} inventory={self.inventory} user_id={self.user_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "price_cents": self.price_cents,
            "category": self.category,
            "inventory": self.inventory,
            "image_url": self.image_url,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class Category(db.Model):
    """
    Product category.

    user_id NULL marks a shared category visible (read-only) to every user.
    Names are unique per owner, not globally.
    """
    __tablename__ = "categories"
    __table_args__ = (
        db.UniqueConstraint("user_id", "name", name="uq_categories_user_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    name = db.Column(db.String(100), nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    @property
    def is_global(self) -> bool:
        return self.user_id is None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "is_global": self.is_global,
        }
