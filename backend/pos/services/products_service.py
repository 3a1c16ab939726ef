# backend/pos/services/products_service.py
"""
Products Service

All product operations are owner-scoped: a product outside the caller's
scope behaves exactly like a missing one (NotFoundError).

Inventory is writable on create and through explicit updates (stock
correction). Settlement never goes through here; it uses the guarded
decrement in inventory_service.
"""
from __future__ import annotations

import logging

from sqlalchemy import or_

from ..extensions import db
from ..models import Product
from ..validation import NotFoundError
from .cart_service import delete_pending_lines_for_product
from .scope import Scope

logger = logging.getLogger(__name__)

PRODUCT_MUTABLE_FIELDS = {"name", "price_cents", "category", "inventory", "image_url"}

ALL_CATEGORIES = "All"


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def list_products(
    scope: Scope,
    *,
    category: str | None = None,
    search: str | None = None,
    page: int | None = None,
    per_page: int | None = None,
) -> dict:
    """
    Owner-scoped product listing, ordered by name.

    Args:
        category: exact category filter; "All" or empty means no filter
        search: case-insensitive substring over name and category
        page: page number (1-indexed). If None, returns all items.
        per_page: items per page (default 20, max 100)

    Returns:
        Dict with 'items', 'count', and pagination metadata if paginated.
    """
    base_query = db.session.query(Product).filter(Product.user_id == scope.user_id)

    if category and category != ALL_CATEGORIES:
        base_query = base_query.filter(Product.category == category)

    if search and search.strip():
        term = f"%{search.strip()}%"
        base_query = base_query.filter(or_(
            Product.name.ilike(term),
            Product.category.ilike(term),
        ))

    base_query = base_query.order_by(Product.name.asc(), Product.id.asc())

    if page is None:
        products = base_query.all()
        return {
            "items": [p.to_dict() for p in products],
            "count": len(products),
        }

    per_page = max(1, min(per_page or 20, 100))
    page = max(page, 1)

    total = base_query.count()
    total_pages = (total + per_page - 1) // per_page if total > 0 else 1

    products = base_query.offset((page - 1) * per_page).limit(per_page).all()

    return {
        "items": [p.to_dict() for p in products],
        "count": len(products),
        "pagination": {
            "page": page,
            "per_page": per_page,
            "total": total,
            "total_pages": total_pages,
            "has_next": page < total_pages,
            "has_prev": page > 1,
        },
    }


def get_product(scope: Scope, product_id: int) -> Product:
    p = db.session.query(Product).filter_by(id=product_id, user_id=scope.user_id).first()
    if p is None:
        raise NotFoundError("Product not found")
    return p


def create_product(scope: Scope, *, patch: dict) -> dict:
    """Create product from a validated patch dict (see PRODUCT_POLICY in routes)."""
    p = Product(user_id=scope.user_id, inventory=0)
    apply_product_patch(p, patch)

    db.session.add(p)
    db.session.commit()

    logger.info("Created product %s (%s) for user %s", p.id, p.name, scope.user_id)
    return p.to_dict()


def update_product(scope: Scope, *, product_id: int, patch: dict) -> dict:
    """
    Partial update. Price changes never reach existing cart lines or
    transactions: their unit price was frozen when the line was added.
    """
    p = get_product(scope, product_id)
    apply_product_patch(p, patch)
    db.session.commit()
    return p.to_dict()


def delete_product(scope: Scope, *, product_id: int) -> None:
    """
    Hard-delete a product and any pending cart lines that reference it.

    Lines already bound to transactions keep their product_id and frozen
    price; history is never rewritten.
    """
    p = get_product(scope, product_id)

    removed = delete_pending_lines_for_product(scope.user_id, p.id)
    db.session.delete(p)
    db.session.commit()

    logger.info("Deleted product %s; removed %s pending cart lines", product_id, removed)


_IMG = "?ixlib=rb-4.0.3&auto=format&fit=crop&w=200&h=200&q=80"

SAMPLE_PRODUCTS = (
    ("Premium Coffee", 399, "Beverages", 45, "https://images.unsplash.com/photo-1553787762-b5f5721f3b8d" + _IMG),
    ("Club Sandwich", 549, "Food", 28, "https://images.unsplash.com/photo-1512152272829-e3139592d56f" + _IMG),
    ("Paper Towels", 299, "Household", 60, "https://images.unsplash.com/photo-1594311431621-0df167499096" + _IMG),
    ("Wireless Headphones", 4999, "Electronics", 12, "https://images.unsplash.com/photo-1593162711562-9e0af20c8a3b" + _IMG),
    ("Potato Chips", 149, "Food", 87, "https://images.unsplash.com/photo-1561736778-92e52a7769ef" + _IMG),
    ("Chocolate Bar", 225, "Food", 52, "https://images.unsplash.com/photo-1560624052-449f5ddf0c31" + _IMG),
    ("Bottled Water", 99, "Beverages", 124, "https://images.unsplash.com/photo-1610885634663-71f958364a6b" + _IMG),
    ("AA Batteries (4pk)", 349, "Electronics", 35, "https://images.unsplash.com/photo-1582452932537-6dbb452652c8" + _IMG),
)


def seed_sample_catalogue(user_id: int) -> int:
    """Add the sample catalogue to a user, skipping names they already have."""
    existing = {
        name for (name,) in db.session.query(Product.name).filter(Product.user_id == user_id).all()
    }
    created = 0
    for name, price_cents, category, inventory, image_url in SAMPLE_PRODUCTS:
        if name in existing:
            continue
        db.session.add(Product(
            user_id=user_id,
            name=name,
            price_cents=price_cents,
            category=category,
            inventory=inventory,
            image_url=image_url,
        ))
        created += 1
    db.session.commit()
    return created
