import pytest

from pos.extensions import db
from pos.models import Product
from pos.services import inventory_service
from pos.services.inventory_service import InsufficientInventoryError
from pos.validation import NotFoundError, ValidationError


def on_hand(product_id):
    db.session.expire_all()
    return db.session.get(Product, product_id).inventory


class TestCheckAvailable:
    def test_boundaries(self, user_a, widget):
        assert inventory_service.check_available(user_a.id, widget.id, 5) is True
        assert inventory_service.check_available(user_a.id, widget.id, 6) is False

    def test_scoped(self, user_b, widget):
        with pytest.raises(NotFoundError):
            inventory_service.check_available(user_b.id, widget.id, 1)


class TestDecrement:
    def test_decrement(self, user_a, widget):
        assert inventory_service.decrement(user_a.id, widget.id, 2) == 3
        db.session.commit()
        assert on_hand(widget.id) == 3

    def test_decrement_to_zero(self, user_a, widget):
        assert inventory_service.decrement(user_a.id, widget.id, 5) == 0

    def test_floor(self, user_a, widget):
        with pytest.raises(InsufficientInventoryError) as exc:
            inventory_service.decrement(user_a.id, widget.id, 6)

        assert exc.value.details["available"] == 5
        assert exc.value.details["requested"] == 6
        db.session.rollback()
        assert on_hand(widget.id) == 5

    def test_stale_reader_cannot_oversell(self, user_a, widget):
        # Another sale takes 4 units after this caller last looked
        inventory_service.decrement(user_a.id, widget.id, 4)
        db.session.commit()

        with pytest.raises(InsufficientInventoryError):
            inventory_service.decrement(user_a.id, widget.id, 2)
        db.session.rollback()
        assert on_hand(widget.id) == 1

    @pytest.mark.parametrize("quantity", [0, -1, True, 1.5])
    def test_rejects_non_positive(self, user_a, widget, quantity):
        with pytest.raises(ValidationError):
            inventory_service.decrement(user_a.id, widget.id, quantity)

    def test_other_scope_cannot_decrement(self, user_b, widget):
        with pytest.raises(NotFoundError):
            inventory_service.decrement(user_b.id, widget.id, 1)
        db.session.rollback()
        assert on_hand(widget.id) == 5


class TestRestock:
    def test_restock_product(self, user_a, widget):
        product = inventory_service.restock_product(user_a.id, widget.id, 10)
        assert product.inventory == 15
        assert on_hand(widget.id) == 15

    def test_restock_unknown(self, user_a):
        with pytest.raises(NotFoundError):
            inventory_service.restock_product(user_a.id, 999_999, 1)
