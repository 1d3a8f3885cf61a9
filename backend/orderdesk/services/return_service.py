# Overview: Partial returns against orders; restocks products and records the refund.

"""
Return Service

WHY: A customer can bring back part of an order, possibly in several
visits. Each return restocks the returned units and records a refund at
the snapshot price of the line. The order itself (status, total) is left
alone; returns are a parallel ledger.

INVARIANT: for every order item,
    sum(return_items.quantity) <= order_items.quantity

The prior-return sum is read after taking the order row lock, inside the
same transaction that inserts the new ReturnItems. Two concurrent returns
on one order therefore serialize and the second sees the first.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.orm import selectinload

from ..context import TenantContext
from ..errors import NotFoundError, OrderNotReturnableError, OverReturnError, ValidationError
from ..extensions import db
from ..models import OrderItem, Return, ReturnItem
from ..models.orders import ORDER_STATUS_CANCELLED
from ..validation import ReturnLine
from .concurrency import begin_write, run_with_retry
from .inventory_service import adjust_stock, load_products, returned_quantities
from .order_service import lock_order


def return_items(ctx: TenantContext, order_id: int, lines: list[ReturnLine]) -> Return:
    """
    Record a return for the given order item quantities.

    Raises:
        NotFoundError: Order (in this org) or one of its items is missing
        OrderNotReturnableError: Order is CANCELLED (already fully restocked)
        OverReturnError: A line asks for more than remains returnable
    """
    if not lines:
        raise ValidationError("Return must contain at least one item")

    def _op():
        begin_write()
        order = lock_order(ctx.org_id, order_id)

        if order.status == ORDER_STATUS_CANCELLED:
            raise OrderNotReturnableError(
                "Cancelled orders cannot be returned",
                details={"current_status": order.status},
            )

        items_by_id: dict[int, OrderItem] = {item.id: item for item in order.items}
        for line in lines:
            if line.order_item_id not in items_by_id:
                raise NotFoundError(
                    "Order item not found",
                    details={"order_item_id": line.order_item_id},
                )

        prior = returned_quantities(items_by_id.keys())
        pending: dict[int, int] = {}
        refunded = 0

        for line in lines:
            item = items_by_id[line.order_item_id]
            already = prior.get(item.id, 0) + pending.get(item.id, 0)
            available = item.quantity - already

            if line.quantity > available:
                if available <= 0:
                    message = (
                        f"Cannot return {line.quantity} items. "
                        f"Order item: {item.product.name} has already been returned"
                    )
                else:
                    message = f"Cannot return {line.quantity} items. Only {available} could be returned"
                raise OverReturnError(message, available=max(0, available))

            pending[item.id] = pending.get(item.id, 0) + line.quantity
            refunded += item.price_cents * line.quantity

        products = load_products(
            ctx.org_id,
            [items_by_id[item_id].product_id for item_id in pending],
        )

        return_doc = Return(
            org_id=ctx.org_id,
            order_id=order.id,
            refunded_amount_cents=refunded,
            created_by_user_id=ctx.user_id,
        )
        db.session.add(return_doc)

        for line in lines:
            item = items_by_id[line.order_item_id]
            return_doc.items.append(ReturnItem(
                org_id=ctx.org_id,
                order_item_id=item.id,
                quantity=line.quantity,
            ))
            adjust_stock(products[item.product_id], line.quantity)

        db.session.commit()
        return return_doc

    return_doc = run_with_retry(_op)
    current_app.logger.info(
        "Return %s recorded for order %s (org=%s refunded_cents=%s)",
        return_doc.id, order_id, ctx.org_id, return_doc.refunded_amount_cents,
    )
    return return_doc


# =============================================================================
# QUERIES
# =============================================================================

def list_returns(ctx: TenantContext, order_id: int) -> list[Return]:
    return (
        db.session.query(Return)
        .options(selectinload(Return.items).selectinload(ReturnItem.order_item))
        .filter_by(org_id=ctx.org_id, order_id=order_id)
        .order_by(Return.created_at.asc(), Return.id.asc())
        .all()
    )


def get_return(ctx: TenantContext, return_id: int) -> Return:
    return_doc = db.session.query(Return).filter_by(id=return_id, org_id=ctx.org_id).first()
    if not return_doc:
        raise NotFoundError("Return not found")
    return return_doc
