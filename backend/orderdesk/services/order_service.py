# Overview: Order lifecycle: creation, status transitions and line-item editing with stock reconciliation.

"""
Order Service

WHY: An order is the unit that consumes stock. Every flow here reads the
order, its items and the affected products and writes all of them back in
ONE transaction, so stock can never be double-spent or leaked.

LIFECYCLE:
    IN_PROCESS --> COMPLETED   (payment_status must already be COMPLETED)
    IN_PROCESS --> CANCELLED   (every unit not yet returned goes back)
COMPLETED and CANCELLED are terminal for the direct API.

LOCKING:
    1. BEGIN IMMEDIATE on SQLite (begin_write)
    2. Order row FOR UPDATE
    3. Product rows FOR UPDATE, ordered by id
"""

from __future__ import annotations

import math
from typing import Iterable

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.orm import selectinload

from ..context import TenantContext
from ..errors import (
    ConflictError,
    InvalidStatusError,
    InvalidTransitionError,
    NotFoundError,
    OrderNotEditableError,
    PaymentNotCompletedError,
    ValidationError,
)
from ..extensions import db
from ..models import Order, OrderItem, Product, User
from ..models.orders import (
    ORDER_STATUS_CANCELLED,
    ORDER_STATUS_COMPLETED,
    ORDER_STATUS_IN_PROCESS,
    PAYMENT_STATUS_COMPLETED,
    PAYMENT_STATUS_PENDING,
    SOURCE_POS,
    VALID_ORDER_STATUSES,
)
from ..validation import CLEAR, UNSET, OrderItemsPatch, OrderLine
from orderdesk.time_utils import utcnow
from .concurrency import begin_write, lock_for_update, run_with_retry
from .inventory_service import (
    adjust_stock,
    ensure_available,
    load_products,
    restock_items,
    returned_quantities,
)


DEFAULT_ORDER_NAME = "Order"
DEFAULT_PAYMENT_METHOD = "CASH"


# =============================================================================
# HELPERS
# =============================================================================

def compute_total(subtotal_cents: int, discount_cents: int) -> int:
    """Flat discount, clamped so a total is never negative."""
    return max(0, subtotal_cents - discount_cents)


def merge_lines(lines: Iterable[OrderLine]) -> dict[int, int]:
    """
    Collapse repeated product ids into one quantity per product.

    Insertion order is preserved so the first failing product in the
    request is the one named by InsufficientStockError.
    """
    merged: dict[int, int] = {}
    for line in lines:
        merged[line.product_id] = merged.get(line.product_id, 0) + line.quantity
    return merged


def lock_order(org_id: int, order_id: int) -> Order:
    order = lock_for_update(
        db.session.query(Order).filter_by(id=order_id, org_id=org_id)
    ).first()
    if not order:
        raise NotFoundError("Order not found")
    return order


def cancel_locked(order: Order, *, clear_completed: bool = True) -> Order:
    """
    Restock every line and mark the order CANCELLED.

    Caller must hold the order lock. Units that were already returned are
    back on the shelf, so only the remainder of each line is restocked.
    """
    items = list(order.items)
    products = load_products(order.org_id, [item.product_id for item in items])
    restock_items(items, products, returned_quantities(item.id for item in items))

    order.status = ORDER_STATUS_CANCELLED
    order.cancelled_at = utcnow()
    if clear_completed:
        order.completed_at = None
    return order


# =============================================================================
# ORDER CREATION
# =============================================================================

def create_order(
    ctx: TenantContext,
    lines: list[OrderLine],
    *,
    name: str | None = None,
    payment_method: str | None = None,
    discount_cents: int = 0,
    source: str = SOURCE_POS,
    external_order_id: str | None = None,
    status: str = ORDER_STATUS_IN_PROCESS,
    payment_status: str = PAYMENT_STATUS_PENDING,
    default_name: str = DEFAULT_ORDER_NAME,
) -> Order:
    """
    Create an order, snapshot catalog prices and consume stock.

    Args:
        ctx: Caller context (org scope, acting user)
        lines: Requested (product_id, quantity) pairs
        name: Display name (defaults to default_name)
        payment_method: Defaults to CASH for direct orders
        discount_cents: Flat discount subtracted from the subtotal
        source / external_order_id / status / payment_status: set by the
            webhook adapter; direct API orders use the defaults

    Returns:
        The persisted Order with items

    Raises:
        NotFoundError: A product is missing in this organization
        InsufficientStockError: First product whose stock cannot cover the request
        ConflictError: external_order_id already used for this source
    """
    if not lines:
        raise ValidationError("Order must contain at least one item")
    if discount_cents < 0:
        raise ValidationError("discount_cents must be >= 0")
    if status not in (ORDER_STATUS_IN_PROCESS, ORDER_STATUS_COMPLETED):
        raise InvalidStatusError(f"Orders cannot be created with status {status}")

    requested = merge_lines(lines)

    def _op():
        begin_write()

        if external_order_id:
            duplicate = db.session.query(Order.id).filter_by(
                org_id=ctx.org_id,
                source=source,
                external_order_id=external_order_id,
            ).first()
            if duplicate:
                raise ConflictError(
                    f"Order with externalOrderId {external_order_id} already exists for source {source}",
                    details={"order_id": duplicate.id},
                )

        products = load_products(ctx.org_id, requested.keys())

        for product_id, quantity in requested.items():
            ensure_available(products[product_id], quantity)

        subtotal = sum(products[pid].price_cents * qty for pid, qty in requested.items())
        now = utcnow()

        order = Order(
            org_id=ctx.org_id,
            name=name or default_name,
            status=status,
            total_amount_cents=compute_total(subtotal, discount_cents),
            discount_cents=discount_cents,
            payment_method=payment_method if payment_method is not None else (
                DEFAULT_PAYMENT_METHOD if source == SOURCE_POS else None
            ),
            payment_status=payment_status,
            source=source,
            external_order_id=external_order_id,
            created_by_user_id=ctx.user_id,
            completed_at=now if status == ORDER_STATUS_COMPLETED else None,
            paid_at=now if payment_status == PAYMENT_STATUS_COMPLETED else None,
        )
        db.session.add(order)

        for product_id, quantity in requested.items():
            product = products[product_id]
            order.items.append(OrderItem(
                org_id=ctx.org_id,
                product_id=product_id,
                quantity=quantity,
                price_cents=product.price_cents,
            ))
            adjust_stock(product, -quantity)

        db.session.commit()
        return order

    order = run_with_retry(_op)
    current_app.logger.info(
        "Order %s created (org=%s source=%s status=%s total_cents=%s)",
        order.id, ctx.org_id, order.source, order.status, order.total_amount_cents,
    )
    return order


# =============================================================================
# STATUS TRANSITIONS
# =============================================================================

def update_status(ctx: TenantContext, order_id: int, status) -> Order:
    """
    Apply a status transition under the order lock.

    UNSET/None or the current status is a no-op. Only IN_PROCESS orders can
    move; CANCELLED restocks, COMPLETED requires a completed payment.
    """
    def _op():
        begin_write()
        order = lock_order(ctx.org_id, order_id)

        if status is UNSET or status is None or status == order.status:
            db.session.commit()
            return order

        if order.status != ORDER_STATUS_IN_PROCESS:
            raise InvalidTransitionError(
                "Only IN_PROCESS orders can be updated",
                details={"current_status": order.status, "requested_status": status},
            )

        if status == ORDER_STATUS_CANCELLED:
            cancel_locked(order)
        elif status == ORDER_STATUS_COMPLETED:
            if order.payment_status != PAYMENT_STATUS_COMPLETED:
                raise PaymentNotCompletedError(order.payment_status)
            order.status = ORDER_STATUS_COMPLETED
            order.completed_at = utcnow()
        else:
            raise InvalidStatusError(
                "Invalid order status",
                details={"allowed": list(VALID_ORDER_STATUSES)},
            )

        db.session.commit()
        return order

    order = run_with_retry(_op)
    current_app.logger.info("Order %s is now %s (org=%s)", order.id, order.status, ctx.org_id)
    return order


# =============================================================================
# LINE-ITEM EDITING (DELTA RECONCILIATION)
# =============================================================================

def update_items(ctx: TenantContext, order_id: int, patch: OrderItemsPatch) -> Order:
    """
    Replace the item set of an IN_PROCESS order and reconcile stock.

    For every submitted product: delta = new quantity - existing quantity.
    All positive deltas are checked against locked stock before anything is
    written. Lines missing from the submission are deleted and fully
    restocked; the rest are updated/created and stock moves by -delta.

    Existing lines keep their snapshot price; new lines take the current
    catalog price. The discount is the patch value, or the order's current
    discount when the patch leaves it UNSET.

    A line that has returns cannot be removed or shrunk below the returned
    quantity (ValidationError); those units are already back in stock.
    """
    requested = merge_lines(patch.items)
    if not requested:
        raise ValidationError("Order must contain at least one item")

    def _op():
        begin_write()
        order = lock_order(ctx.org_id, order_id)

        if order.status != ORDER_STATUS_IN_PROCESS:
            raise OrderNotEditableError(
                "Only IN_PROCESS orders can be edited",
                details={"current_status": order.status},
            )

        existing: dict[int, OrderItem] = {item.product_id: item for item in order.items}
        products = load_products(ctx.org_id, set(existing) | set(requested))

        deltas = {
            product_id: quantity - (existing[product_id].quantity if product_id in existing else 0)
            for product_id, quantity in requested.items()
        }

        # A line cannot shrink below what customers already brought back
        returned = returned_quantities(item.id for item in existing.values())
        for product_id, item in existing.items():
            new_quantity = requested.get(product_id, 0)
            if new_quantity < returned.get(item.id, 0):
                raise ValidationError(
                    f"Quantity for {products[product_id].name} cannot go below "
                    f"the {returned[item.id]} already returned",
                    errors=[f"product_id {product_id}: minimum quantity is {returned[item.id]}"],
                )

        # Fail fast: nothing is mutated until every positive delta fits
        for product_id, delta in deltas.items():
            ensure_available(products[product_id], delta)

        # Removals first
        for product_id, item in existing.items():
            if product_id not in requested:
                adjust_stock(products[product_id], item.quantity)
                order.items.remove(item)

        subtotal = 0
        for product_id, quantity in requested.items():
            item = existing.get(product_id)
            if item is not None:
                item.quantity = quantity
            else:
                item = OrderItem(
                    org_id=ctx.org_id,
                    product_id=product_id,
                    quantity=quantity,
                    price_cents=products[product_id].price_cents,
                )
                order.items.append(item)

            adjust_stock(products[product_id], -deltas[product_id])
            subtotal += item.price_cents * quantity

        if patch.discount_cents is UNSET:
            discount = order.discount_cents or 0
        elif patch.discount_cents is CLEAR:
            discount = 0
        else:
            discount = patch.discount_cents

        order.total_amount_cents = compute_total(subtotal, discount)
        order.discount_cents = discount

        if patch.name is CLEAR:
            order.name = DEFAULT_ORDER_NAME
        elif patch.name is not UNSET:
            order.name = patch.name

        db.session.commit()
        return order

    order = run_with_retry(_op)
    current_app.logger.info(
        "Order %s items updated (org=%s total_cents=%s)",
        order.id, ctx.org_id, order.total_amount_cents,
    )
    return order


# =============================================================================
# QUERIES
# =============================================================================

def get_order(ctx: TenantContext, order_id: int) -> Order:
    order = (
        db.session.query(Order)
        .options(
            selectinload(Order.items).selectinload(OrderItem.product),
            selectinload(Order.created_by),
        )
        .filter_by(id=order_id, org_id=ctx.org_id)
        .first()
    )
    if not order:
        raise NotFoundError("Order not found")
    return order


def list_orders(
    ctx: TenantContext,
    page_index: int = 0,
    page_size: int = 10,
    search: str | None = None,
    status: str | None = None,
) -> dict:
    """
    Tenant-scoped order listing, newest first.

    search matches (case-insensitive) the order name, the creator's name or
    email, any item's product name, or the exact order id.
    """
    query = db.session.query(Order).filter(Order.org_id == ctx.org_id)

    if status:
        if status not in VALID_ORDER_STATUSES:
            raise ValidationError(f"status must be one of {', '.join(VALID_ORDER_STATUSES)}")
        query = query.filter(Order.status == status)

    if search:
        like = f"%{search.strip()}%"
        conditions = [
            Order.name.ilike(like),
            Order.created_by.has(or_(User.name.ilike(like), User.email.ilike(like))),
            Order.items.any(OrderItem.product.has(Product.name.ilike(like))),
        ]
        if search.strip().isdigit():
            conditions.append(Order.id == int(search.strip()))
        query = query.filter(or_(*conditions))

    total = query.count()
    orders = (
        query.options(
            selectinload(Order.items).selectinload(OrderItem.product),
            selectinload(Order.created_by),
        )
        .order_by(Order.created_at.desc(), Order.id.desc())
        .offset(page_index * page_size)
        .limit(page_size)
        .all()
    )

    return {
        "meta": {
            "total": total,
            "pageIndex": page_index,
            "pageSize": page_size,
            "pageCount": math.ceil(total / page_size) if page_size else 0,
        },
        "data": [order.to_dict() for order in orders],
    }
