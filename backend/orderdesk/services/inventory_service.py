# Overview: Inventory ledger; the only code path that changes Product.stock during order flows.

"""
Inventory invariants

- Product.stock is an integer >= 0 (enforced by a check constraint).
- Order flows change stock exclusively through adjust_stock(), inside the
  caller's transaction. Positive delta = add back, negative = consume.
- Sufficiency is NOT checked here. The calling flow computes the full set
  of deltas once, checks every positive one against the locked rows, and
  only then starts adjusting.
- Product rows are locked in id order so concurrent flows touching the
  same products acquire locks in the same sequence.
"""

from __future__ import annotations

from typing import Iterable

from sqlalchemy import func

from ..extensions import db
from ..errors import NotFoundError, InsufficientStockError
from ..models import Product, OrderItem, ReturnItem
from .concurrency import lock_for_update


def load_products(org_id: int, product_ids: Iterable[int], *, lock: bool = True) -> dict[int, Product]:
    """
    Fetch products scoped to the organization.

    Raises NotFoundError when any requested id does not resolve within the
    tenant (a product of another organization counts as missing).
    """
    wanted = sorted(set(product_ids))
    if not wanted:
        return {}

    query = db.session.query(Product).filter(
        Product.org_id == org_id,
        Product.id.in_(wanted),
    ).order_by(Product.id)
    if lock:
        query = lock_for_update(query)
    products = query.all()

    if len(products) != len(wanted):
        found = {p.id for p in products}
        missing = [pid for pid in wanted if pid not in found]
        raise NotFoundError(
            "One or more products not found",
            details={"product_ids": missing},
        )

    return {p.id: p for p in products}


def ensure_available(product: Product, quantity: int) -> None:
    """Raise InsufficientStockError if product cannot supply quantity more units."""
    if quantity > 0 and product.stock < quantity:
        raise InsufficientStockError(product.name, requested=quantity, available=product.stock)


def adjust_stock(product: Product, delta: int) -> None:
    """Apply a signed stock delta within the active transaction."""
    if delta == 0:
        return
    product.stock = product.stock + delta


def restock_items(
    order_items: Iterable[OrderItem],
    products: dict[int, Product],
    already_returned: dict[int, int] | None = None,
) -> None:
    """
    Put every line back on the shelf (one ledger call per item).

    already_returned maps order item id -> units that a return has already
    restocked; only the remainder of those lines goes back.
    """
    already_returned = already_returned or {}
    for item in order_items:
        adjust_stock(products[item.product_id], item.quantity - already_returned.get(item.id, 0))


def returned_quantities(order_item_ids: Iterable[int]) -> dict[int, int]:
    """Units per order item id that returns have already put back on the shelf."""
    ids = list(order_item_ids)
    if not ids:
        return {}
    rows = (
        db.session.query(ReturnItem.order_item_id, func.coalesce(func.sum(ReturnItem.quantity), 0))
        .filter(ReturnItem.order_item_id.in_(ids))
        .group_by(ReturnItem.order_item_id)
        .all()
    )
    return {order_item_id: int(total) for order_item_id, total in rows}
