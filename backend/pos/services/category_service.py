# Overview: Service-layer operations for categories; shared (global) plus per-user names.

from __future__ import annotations

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Category
from ..validation import ConflictError, NotFoundError, ValidationError
from .scope import Scope

DEFAULT_CATEGORIES = ("Food", "Beverages", "Household", "Electronics")


def list_categories(scope: Scope) -> list[Category]:
    """Shared categories first, then the caller's own, each alphabetical."""
    return (
        db.session.query(Category)
        .filter(or_(Category.user_id.is_(None), Category.user_id == scope.user_id))
        .order_by(Category.user_id.isnot(None), Category.name.asc())
        .all()
    )


def create_category(scope: Scope, name: str) -> Category:
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("name is required", field="name")
    name = name.strip()
    if len(name) > 100:
        raise ValidationError("name exceeds max length 100", field="name")

    existing = db.session.query(Category).filter_by(user_id=scope.user_id, name=name).first()
    if existing:
        raise ConflictError("Category already exists")

    category = Category(user_id=scope.user_id, name=name)
    db.session.add(category)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise ConflictError("Category already exists")
    return category


def delete_category(scope: Scope, category_id: int) -> None:
    """
    Delete one of the caller's categories. Shared categories are read-only
    and report as not found. Products keep their category label.
    """
    category = db.session.query(Category).filter_by(id=category_id, user_id=scope.user_id).first()
    if category is None:
        raise NotFoundError("Category not found")

    db.session.delete(category)
    db.session.commit()


def ensure_default_categories() -> int:
    """Create the shared default categories if missing. Returns how many were added."""
    created = 0
    for name in DEFAULT_CATEGORIES:
        exists = db.session.query(Category).filter(
            Category.user_id.is_(None),
            Category.name == name,
        ).first()
        if not exists:
            db.session.add(Category(user_id=None, name=name))
            created += 1
    db.session.commit()
    return created
