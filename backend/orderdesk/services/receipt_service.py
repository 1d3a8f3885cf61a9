# Overview: Printable HTML receipt for one order.

"""
Receipt rendering.

Read-only consumer of order data: loads the order with its items, the
creator and the organization and renders templates/receipt.html with
Flask's Jinja2 environment. Converting the page to PDF is left to the
printing client.
"""

from __future__ import annotations

from flask import render_template

from ..context import TenantContext
from ..extensions import db
from ..models import Organization
from orderdesk.time_utils import to_utc_z
from .order_service import get_order
from .return_service import list_returns


def format_cents(cents: int | None) -> str:
    cents = cents or 0
    sign = "-" if cents < 0 else ""
    cents = abs(cents)
    return f"{sign}{cents // 100:,}.{cents % 100:02d}"


def build_receipt(ctx: TenantContext, order_id: int) -> dict:
    """Collect everything the template needs as plain values."""
    order = get_order(ctx, order_id)
    organization = db.session.get(Organization, ctx.org_id)
    returns = list_returns(ctx, order_id)

    subtotal = sum(item.line_total_cents for item in order.items)
    refunded = sum(r.refunded_amount_cents for r in returns)

    return {
        "organization": organization.name if organization else "",
        "order": order,
        "created_at": to_utc_z(order.created_at),
        "cashier": order.created_by.name if order.created_by else None,
        "lines": [
            {
                "name": item.product.name if item.product else f"Product #{item.product_id}",
                "quantity": item.quantity,
                "price": format_cents(item.price_cents),
                "total": format_cents(item.line_total_cents),
            }
            for item in order.items
        ],
        "subtotal": format_cents(subtotal),
        "discount": format_cents(order.discount_cents),
        "total": format_cents(order.total_amount_cents),
        "refunded": format_cents(refunded) if refunded else None,
    }


def render_receipt(ctx: TenantContext, order_id: int) -> str:
    return render_template("receipt.html", **build_receipt(ctx, order_id))
