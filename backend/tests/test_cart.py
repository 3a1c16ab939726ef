"""
Cart store tests: merge-on-add, quantity semantics, advisory stock checks,
owner isolation.
"""

import pytest

from pos.extensions import db
from pos.models import CartItem
from pos.services import cart_service, checkout_service
from pos.services.inventory_service import OutOfStockError
from pos.validation import NotFoundError


def pending_rows(user_id):
    return (
        db.session.query(CartItem)
        .filter(CartItem.user_id == user_id, CartItem.transaction_id.is_(None))
        .all()
    )


class TestAddItem:
    def test_merge_on_add(self, scope_a, widget):
        cart_service.add_item(scope_a, widget.id, 1)
        cart_service.add_item(scope_a, widget.id, 2)

        rows = pending_rows(scope_a.user_id)
        assert len(rows) == 1
        assert rows[0].quantity == 3

    def test_unit_price_frozen_at_add_time(self, scope_a, widget):
        line = cart_service.add_item(scope_a, widget.id, 1)
        assert line.unit_price_cents == 1000

        widget.price_cents = 1500
        db.session.commit()

        line = cart_service.get_line(scope_a, line.id)
        assert line.unit_price_cents == 1000
        assert line.to_dict()["product"]["price_cents"] == 1500

    def test_merge_keeps_first_price(self, scope_a, widget):
        cart_service.add_item(scope_a, widget.id, 1)
        line = cart_service.add_item(scope_a, widget.id, 1, unit_price_cents=1)

        assert line.quantity == 2
        assert line.unit_price_cents == 1000

    def test_price_override(self, scope_a, widget):
        line = cart_service.add_item(scope_a, widget.id, 1, unit_price_cents=750)
        assert line.unit_price_cents == 750

    def test_out_of_stock(self, scope_a, widget):
        with pytest.raises(OutOfStockError) as exc:
            cart_service.add_item(scope_a, widget.id, 6)

        assert exc.value.details == {"product_id": widget.id, "requested": 6, "available": 5}
        assert pending_rows(scope_a.user_id) == []

    def test_unknown_product(self, scope_a):
        with pytest.raises(NotFoundError):
            cart_service.add_item(scope_a, 999_999, 1)

    def test_other_users_product_is_not_found(self, scope_b, widget):
        with pytest.raises(NotFoundError):
            cart_service.add_item(scope_b, widget.id, 1)


class TestSetQuantity:
    def test_idempotent(self, scope_a, widget):
        line = cart_service.add_item(scope_a, widget.id, 1)

        cart_service.set_quantity(scope_a, line.id, 4)
        once = [(r.id, r.quantity, r.unit_price_cents) for r in pending_rows(scope_a.user_id)]
        cart_service.set_quantity(scope_a, line.id, 4)
        twice = [(r.id, r.quantity, r.unit_price_cents) for r in pending_rows(scope_a.user_id)]

        assert once == twice == [(line.id, 4, 1000)]

    def test_zero_removes_line(self, scope_a, widget):
        line = cart_service.add_item(scope_a, widget.id, 2)

        assert cart_service.set_quantity(scope_a, line.id, 0) is None
        assert cart_service.list_cart(scope_a) == []

    def test_negative_removes_line(self, scope_a, widget):
        line = cart_service.add_item(scope_a, widget.id, 2)

        assert cart_service.set_quantity(scope_a, line.id, -3) is None
        assert pending_rows(scope_a.user_id) == []

    def test_increase_checks_additional_units_only(self, scope_a, widget):
        line = cart_service.add_item(scope_a, widget.id, 3)

        # 2 more units are available (5 on hand)
        line = cart_service.set_quantity(scope_a, line.id, 5)
        assert line.quantity == 5

    def test_increase_beyond_stock(self, scope_a, widget):
        line = cart_service.add_item(scope_a, widget.id, 1)

        with pytest.raises(OutOfStockError):
            cart_service.set_quantity(scope_a, line.id, 7)

        assert cart_service.get_line(scope_a, line.id).quantity == 1

    def test_decrease_skips_stock_check(self, scope_a, widget):
        line = cart_service.add_item(scope_a, widget.id, 4)
        widget.inventory = 0
        db.session.commit()

        line = cart_service.set_quantity(scope_a, line.id, 2)
        assert line.quantity == 2


class TestAdjustQuantity:
    def test_increments_accumulate(self, scope_a, widget):
        line = cart_service.add_item(scope_a, widget.id, 1)

        cart_service.adjust_quantity(scope_a, line.id, 1)
        line = cart_service.adjust_quantity(scope_a, line.id, 1)

        assert line.quantity == 3

    def test_decrement_to_zero_removes(self, scope_a, widget):
        line = cart_service.add_item(scope_a, widget.id, 1)

        assert cart_service.adjust_quantity(scope_a, line.id, -1) is None
        assert pending_rows(scope_a.user_id) == []

    def test_unknown_line(self, scope_a):
        with pytest.raises(NotFoundError):
            cart_service.adjust_quantity(scope_a, 424242, 1)


class TestRemoveAndClear:
    def test_remove_unknown_line(self, scope_a):
        with pytest.raises(NotFoundError):
            cart_service.remove_item(scope_a, 424242)

    def test_remove_other_users_line(self, scope_a, scope_b, widget):
        line = cart_service.add_item(scope_a, widget.id, 1)

        with pytest.raises(NotFoundError):
            cart_service.remove_item(scope_b, line.id)
        assert len(pending_rows(scope_a.user_id)) == 1

    def test_clear(self, scope_a, widget, gadget):
        cart_service.add_item(scope_a, widget.id, 1)
        cart_service.add_item(scope_a, gadget.id, 2)

        assert cart_service.clear_cart(scope_a) == 2
        assert cart_service.list_cart(scope_a) == []

    def test_list_is_scoped_and_ordered(self, scope_a, scope_b, widget, gadget):
        first = cart_service.add_item(scope_a, gadget.id, 1)
        second = cart_service.add_item(scope_a, widget.id, 1)

        assert [line.id for line in cart_service.list_cart(scope_a)] == [first.id, second.id]
        assert cart_service.list_cart(scope_b) == []


class TestBoundLines:
    def test_bound_lines_are_unreachable(self, scope_a, widget):
        line = cart_service.add_item(scope_a, widget.id, 2)
        checkout_service.checkout(scope_a, "cash")

        with pytest.raises(NotFoundError):
            cart_service.set_quantity(scope_a, line.id, 1)
        with pytest.raises(NotFoundError):
            cart_service.adjust_quantity(scope_a, line.id, 1)
        with pytest.raises(NotFoundError):
            cart_service.remove_item(scope_a, line.id)

        assert cart_service.clear_cart(scope_a) == 0
        bound = db.session.get(CartItem, line.id)
        assert bound.quantity == 2
        assert bound.transaction_id is not None

    def test_readding_after_checkout_starts_new_line(self, scope_a, widget):
        old = cart_service.add_item(scope_a, widget.id, 1)
        checkout_service.checkout(scope_a, "card")

        new = cart_service.add_item(scope_a, widget.id, 1)
        assert new.id != old.id
        assert new.quantity == 1


class TestPreview:
    def test_preview_uses_scope_tax_rate(self, scope_a, widget, gadget):
        cart_service.add_item(scope_a, widget.id, 2)
        cart_service.add_item(scope_a, gadget.id, 1)

        totals = cart_service.preview_totals(scope_a)
        assert totals.subtotal_cents == 2500
        assert totals.tax_cents == 200
        assert totals.total_cents == 2700
