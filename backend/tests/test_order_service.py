# Overview: Pytest coverage for order creation and the status state machine.

"""
Order creation and status transitions.

Creation snapshots catalog prices and consumes stock in one transaction;
any failure leaves stock untouched. Status transitions only leave
IN_PROCESS, COMPLETED needs a completed payment, CANCELLED restocks.
"""

import pytest

from orderdesk.errors import (
    InsufficientStockError,
    InvalidStatusError,
    InvalidTransitionError,
    NotFoundError,
    PaymentNotCompletedError,
    ValidationError,
)
from orderdesk.models import Order
from orderdesk.services import order_service
from orderdesk.validation import UNSET, OrderLine

from conftest import pay_cash, refresh


class TestCreateOrder:
    """order_service.create_order"""

    def test_create_snapshots_price_and_consumes_stock(self, db_session, ctx_a, coffee):
        order = order_service.create_order(ctx_a, [OrderLine(coffee.id, 2)])

        refresh(coffee)
        assert order.total_amount_cents == 2000
        assert coffee.stock == 3
        assert order.status == "IN_PROCESS"
        assert order.payment_status == "PENDING"
        assert order.payment_method == "CASH"
        assert order.source == "POS"
        assert order.name == "Order"
        assert order.created_by_user_id == ctx_a.user_id
        assert len(order.items) == 1
        assert order.items[0].price_cents == 1000
        assert order.items[0].quantity == 2

    def test_discount_is_subtracted_and_clamped_at_zero(self, db_session, ctx_a, coffee, bagel):
        order = order_service.create_order(
            ctx_a, [OrderLine(coffee.id, 1), OrderLine(bagel.id, 2)], discount_cents=200
        )
        assert order.total_amount_cents == 1000 + 700 - 200

        order = order_service.create_order(ctx_a, [OrderLine(bagel.id, 1)], discount_cents=5000)
        assert order.total_amount_cents == 0
        assert order.discount_cents == 5000

    def test_repeated_product_lines_are_merged(self, db_session, ctx_a, coffee):
        order = order_service.create_order(ctx_a, [OrderLine(coffee.id, 1), OrderLine(coffee.id, 2)])

        refresh(coffee)
        assert len(order.items) == 1
        assert order.items[0].quantity == 3
        assert coffee.stock == 2

    def test_insufficient_stock_names_first_failing_product_and_changes_nothing(
        self, db_session, ctx_a, coffee, bagel
    ):
        with pytest.raises(InsufficientStockError) as exc:
            order_service.create_order(ctx_a, [OrderLine(bagel.id, 1), OrderLine(coffee.id, 6)])

        assert exc.value.product_name == "Coffee"
        assert "Insufficient stock for product: Coffee" in str(exc.value)

        refresh(coffee, bagel)
        assert coffee.stock == 5
        assert bagel.stock == 20
        assert db_session.query(Order).count() == 0

    def test_unknown_product_is_not_found(self, db_session, ctx_a, coffee):
        with pytest.raises(NotFoundError):
            order_service.create_order(ctx_a, [OrderLine(coffee.id, 1), OrderLine(99999, 1)])

        refresh(coffee)
        assert coffee.stock == 5

    def test_product_of_another_tenant_is_not_found(self, db_session, ctx_a, product_b):
        with pytest.raises(NotFoundError):
            order_service.create_order(ctx_a, [OrderLine(product_b.id, 1)])

        refresh(product_b)
        assert product_b.stock == 10

    def test_empty_order_is_rejected(self, db_session, ctx_a):
        with pytest.raises(ValidationError):
            order_service.create_order(ctx_a, [])

    def test_item_price_is_frozen_after_catalog_change(self, db_session, ctx_a, coffee):
        order = order_service.create_order(ctx_a, [OrderLine(coffee.id, 1)])

        coffee.price_cents = 2500
        db_session.commit()

        order = order_service.get_order(ctx_a, order.id)
        assert order.items[0].price_cents == 1000
        assert order.total_amount_cents == 1000


class TestStatusTransitions:
    """order_service.update_status"""

    def test_completion_requires_completed_payment(self, db_session, ctx_a, coffee):
        order = order_service.create_order(ctx_a, [OrderLine(coffee.id, 1)])

        with pytest.raises(PaymentNotCompletedError) as exc:
            order_service.update_status(ctx_a, order.id, "COMPLETED")

        assert "Current payment status: PENDING" in str(exc.value)
        refresh(order)
        assert order.status == "IN_PROCESS"
        assert order.completed_at is None

    def test_completion_after_payment_sets_completed_at(self, db_session, ctx_a, coffee):
        order = order_service.create_order(ctx_a, [OrderLine(coffee.id, 1)])
        order.payment_status = "COMPLETED"
        db_session.commit()

        order = order_service.update_status(ctx_a, order.id, "COMPLETED")

        assert order.status == "COMPLETED"
        assert order.completed_at is not None

    def test_cancel_restocks_every_item(self, db_session, ctx_a, coffee, bagel):
        order = order_service.create_order(ctx_a, [OrderLine(coffee.id, 2), OrderLine(bagel.id, 4)])

        order = order_service.update_status(ctx_a, order.id, "CANCELLED")

        refresh(coffee, bagel)
        assert order.status == "CANCELLED"
        assert order.cancelled_at is not None
        assert order.completed_at is None
        assert coffee.stock == 5
        assert bagel.stock == 20

    def test_same_status_or_missing_status_is_a_no_op(self, db_session, ctx_a, coffee):
        order = order_service.create_order(ctx_a, [OrderLine(coffee.id, 1)])
        version = order.version_id

        order = order_service.update_status(ctx_a, order.id, "IN_PROCESS")
        assert order.status == "IN_PROCESS"
        order = order_service.update_status(ctx_a, order.id, UNSET)
        assert order.status == "IN_PROCESS"
        assert order.version_id == version

    @pytest.mark.parametrize("target", ["COMPLETED", "IN_PROCESS"])
    def test_cancelled_order_is_terminal(self, db_session, ctx_a, coffee, target):
        order = order_service.create_order(ctx_a, [OrderLine(coffee.id, 1)])
        order_service.update_status(ctx_a, order.id, "CANCELLED")

        with pytest.raises(InvalidTransitionError):
            order_service.update_status(ctx_a, order.id, target)

        refresh(coffee)
        assert coffee.stock == 5

    def test_completed_order_cannot_be_cancelled_directly(self, db_session, ctx_a, coffee):
        order = order_service.create_order(ctx_a, [OrderLine(coffee.id, 2)])
        pay_cash(ctx_a, order)

        with pytest.raises(InvalidTransitionError):
            order_service.update_status(ctx_a, order.id, "CANCELLED")

        refresh(coffee)
        assert coffee.stock == 3

    def test_unknown_status_is_invalid(self, db_session, ctx_a, coffee):
        order = order_service.create_order(ctx_a, [OrderLine(coffee.id, 1)])

        with pytest.raises(InvalidStatusError):
            order_service.update_status(ctx_a, order.id, "SHIPPED")

    def test_order_of_another_tenant_is_not_found(self, db_session, ctx_a, ctx_b, coffee):
        order = order_service.create_order(ctx_a, [OrderLine(coffee.id, 1)])

        with pytest.raises(NotFoundError):
            order_service.update_status(ctx_b, order.id, "CANCELLED")

        refresh(order, coffee)
        assert order.status == "IN_PROCESS"
        assert coffee.stock == 4
