# Overview: Flask API routes for order operations; parses input and returns JSON responses.

# backend/orderdesk/routes/orders.py
"""
Orders API routes

POST   /api/orders              create (stock consumed)
GET    /api/orders              list (pageIndex, pageSize, search, status)
GET    /api/orders/<id>         read
PATCH  /api/orders/<id>         status transition
PUT    /api/orders/<id>         replace line items (delta reconciliation)
POST   /api/orders/return       return items
GET    /api/orders/<id>/returns returns recorded against the order
GET    /api/orders/<id>/print   printable HTML receipt
"""

from flask import Blueprint, make_response, request

from ..decorators import require_auth
from ..responses import json_body, ok
from ..services import order_service, receipt_service, return_service
from ..validation import (
    parse_create_order,
    parse_items_patch,
    parse_pagination,
    parse_return_request,
    parse_status_patch,
)


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.post("")
@require_auth
def create_order_route(ctx):
    req = parse_create_order(json_body())
    order = order_service.create_order(
        ctx,
        req.items,
        name=req.name,
        payment_method=req.payment_method,
        discount_cents=req.discount_cents,
    )
    return ok(order.to_dict(), status=201, message="Order created successfully")


@orders_bp.get("")
@require_auth
def list_orders_route(ctx):
    page_index, page_size = parse_pagination(request.args)
    status = (request.args.get("status") or "").strip().upper() or None
    result = order_service.list_orders(
        ctx,
        page_index=page_index,
        page_size=page_size,
        search=request.args.get("search") or None,
        status=status,
    )
    return ok(result["data"], meta=result["meta"])


@orders_bp.get("/<int:order_id>")
@require_auth
def get_order_route(ctx, order_id: int):
    return ok(order_service.get_order(ctx, order_id).to_dict())


@orders_bp.patch("/<int:order_id>")
@require_auth
def update_order_status_route(ctx, order_id: int):
    patch = parse_status_patch(json_body())
    order = order_service.update_status(ctx, order_id, patch.status)
    return ok(order.to_dict(), message="Order updated successfully")


@orders_bp.put("/<int:order_id>")
@require_auth
def update_order_items_route(ctx, order_id: int):
    patch = parse_items_patch(json_body())
    order = order_service.update_items(ctx, order_id, patch)
    return ok(order.to_dict(), message="Order items updated successfully")


@orders_bp.post("/return")
@require_auth
def return_items_route(ctx):
    req = parse_return_request(json_body())
    return_doc = return_service.return_items(ctx, req.order_id, req.items)
    return ok(return_doc.to_dict(), status=201, message="Items returned successfully")


@orders_bp.get("/<int:order_id>/returns")
@require_auth
def list_returns_route(ctx, order_id: int):
    order_service.get_order(ctx, order_id)
    return ok([r.to_dict() for r in return_service.list_returns(ctx, order_id)])


@orders_bp.get("/<int:order_id>/print")
@require_auth
def print_receipt_route(ctx, order_id: int):
    html = receipt_service.render_receipt(ctx, order_id)
    response = make_response(html, 200)
    response.headers["Content-Type"] = "text/html; charset=utf-8"
    response.headers["Content-Disposition"] = f'inline; filename="receipt-{order_id}.html"'
    return response
