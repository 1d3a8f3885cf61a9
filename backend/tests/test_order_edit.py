# Overview: Pytest coverage for line-item editing with stock delta reconciliation.

import pytest

from orderdesk.errors import InsufficientStockError, NotFoundError, OrderNotEditableError, ValidationError
from orderdesk.services import order_service, return_service
from orderdesk.validation import CLEAR, OrderItemsPatch, OrderLine, ReturnLine

from conftest import pay_cash, refresh


@pytest.fixture
def open_order(db_session, ctx_a, coffee):
    """IN_PROCESS order for 2 x Coffee (stock 5 -> 3)."""
    return order_service.create_order(ctx_a, [OrderLine(coffee.id, 2)], name="Table 4")


class TestUpdateItems:
    """order_service.update_items"""

    def test_reducing_quantity_restocks_the_difference(self, ctx_a, coffee, open_order):
        order = order_service.update_items(ctx_a, open_order.id, OrderItemsPatch(items=[OrderLine(coffee.id, 1)]))

        refresh(coffee)
        assert order.total_amount_cents == 1000
        assert coffee.stock == 4
        assert [(i.product_id, i.quantity) for i in order.items] == [(coffee.id, 1)]

    def test_increase_beyond_stock_fails_without_changes(self, ctx_a, coffee, open_order):
        with pytest.raises(InsufficientStockError):
            order_service.update_items(ctx_a, open_order.id, OrderItemsPatch(items=[OrderLine(coffee.id, 6)]))

        refresh(coffee, open_order)
        assert coffee.stock == 3
        assert open_order.items[0].quantity == 2
        assert open_order.total_amount_cents == 2000

    def test_increase_up_to_remaining_stock_is_allowed(self, ctx_a, coffee, open_order):
        order = order_service.update_items(ctx_a, open_order.id, OrderItemsPatch(items=[OrderLine(coffee.id, 5)]))

        refresh(coffee)
        assert coffee.stock == 0
        assert order.total_amount_cents == 5000

    def test_replacing_products_restocks_removed_lines(self, ctx_a, coffee, bagel, open_order):
        order = order_service.update_items(ctx_a, open_order.id, OrderItemsPatch(items=[OrderLine(bagel.id, 2)]))

        refresh(coffee, bagel)
        assert coffee.stock == 5
        assert bagel.stock == 18
        assert [(i.product_id, i.quantity) for i in order.items] == [(bagel.id, 2)]
        assert order.total_amount_cents == 700

    def test_existing_lines_keep_snapshot_price(self, db_session, ctx_a, coffee, bagel, open_order):
        coffee.price_cents = 1500
        bagel.price_cents = 400
        db_session.commit()

        order = order_service.update_items(
            ctx_a, open_order.id,
            OrderItemsPatch(items=[OrderLine(coffee.id, 3), OrderLine(bagel.id, 1)]),
        )

        prices = {i.product_id: i.price_cents for i in order.items}
        assert prices == {coffee.id: 1000, bagel.id: 400}
        assert order.total_amount_cents == 3 * 1000 + 400

    def test_same_item_set_is_idempotent(self, ctx_a, coffee, open_order):
        patch = OrderItemsPatch(items=[OrderLine(coffee.id, 2)])

        order = order_service.update_items(ctx_a, open_order.id, patch)
        order = order_service.update_items(ctx_a, open_order.id, patch)

        refresh(coffee)
        assert order.total_amount_cents == 2000
        assert coffee.stock == 3

    def test_discount_and_name_patch_semantics(self, ctx_a, coffee, open_order):
        order = order_service.update_items(
            ctx_a, open_order.id,
            OrderItemsPatch(items=[OrderLine(coffee.id, 2)], discount_cents=500),
        )
        assert order.total_amount_cents == 1500
        assert order.name == "Table 4"

        # Discount left out carries over
        order = order_service.update_items(
            ctx_a, open_order.id, OrderItemsPatch(items=[OrderLine(coffee.id, 3)])
        )
        assert order.discount_cents == 500
        assert order.total_amount_cents == 2500

        order = order_service.update_items(
            ctx_a, open_order.id,
            OrderItemsPatch(items=[OrderLine(coffee.id, 3)], name=CLEAR, discount_cents=CLEAR),
        )
        assert order.discount_cents == 0
        assert order.total_amount_cents == 3000
        assert order.name == "Order"

    def test_completed_order_is_not_editable(self, ctx_a, coffee, open_order):
        pay_cash(ctx_a, open_order)

        with pytest.raises(OrderNotEditableError):
            order_service.update_items(ctx_a, open_order.id, OrderItemsPatch(items=[OrderLine(coffee.id, 1)]))

        refresh(coffee, open_order)
        assert coffee.stock == 3
        assert open_order.items[0].quantity == 2

    def test_cancelled_order_is_not_editable(self, ctx_a, coffee, open_order):
        order_service.update_status(ctx_a, open_order.id, "CANCELLED")

        with pytest.raises(OrderNotEditableError):
            order_service.update_items(ctx_a, open_order.id, OrderItemsPatch(items=[OrderLine(coffee.id, 1)]))

        refresh(coffee)
        assert coffee.stock == 5

    def test_foreign_product_is_not_found(self, ctx_a, coffee, product_b, open_order):
        with pytest.raises(NotFoundError):
            order_service.update_items(
                ctx_a, open_order.id,
                OrderItemsPatch(items=[OrderLine(coffee.id, 2), OrderLine(product_b.id, 1)]),
            )

        refresh(product_b, coffee)
        assert product_b.stock == 10
        assert coffee.stock == 3

    def test_stock_is_conserved_across_edits_and_cancel(self, ctx_a, coffee, bagel, open_order):
        for lines in (
            [OrderLine(coffee.id, 4)],
            [OrderLine(coffee.id, 1), OrderLine(bagel.id, 7)],
            [OrderLine(bagel.id, 3)],
            [OrderLine(coffee.id, 5), OrderLine(bagel.id, 1)],
        ):
            order_service.update_items(ctx_a, open_order.id, OrderItemsPatch(items=lines))
            refresh(coffee, bagel)
            assert coffee.stock >= 0
            assert bagel.stock >= 0

        order_service.update_status(ctx_a, open_order.id, "CANCELLED")

        refresh(coffee, bagel)
        assert coffee.stock == 5
        assert bagel.stock == 20


class TestEditingAfterReturns:
    """update_items and cancellation on an IN_PROCESS order that already has returns."""

    def test_line_cannot_shrink_below_returned_quantity(self, db_session, ctx_a, coffee, bagel, open_order):
        return_service.return_items(ctx_a, open_order.id, [ReturnLine(open_order.items[0].id, 1)])

        with pytest.raises(ValidationError):
            order_service.update_items(ctx_a, open_order.id, OrderItemsPatch(items=[OrderLine(bagel.id, 1)]))

        refresh(coffee, bagel)
        assert coffee.stock == 4
        assert bagel.stock == 20

        order = order_service.update_items(ctx_a, open_order.id, OrderItemsPatch(items=[OrderLine(coffee.id, 1)]))

        refresh(coffee)
        assert order.items[0].quantity == 1
        assert coffee.stock == 5

    def test_cancel_restocks_only_units_not_returned(self, ctx_a, coffee, open_order):
        return_service.return_items(ctx_a, open_order.id, [ReturnLine(open_order.items[0].id, 1)])

        order_service.update_status(ctx_a, open_order.id, "CANCELLED")

        refresh(coffee)
        assert coffee.stock == 5
