# Overview: Flask API routes for external channels; authenticated by the per-organization webhook secret.

from flask import Blueprint

from ..decorators import require_webhook_secret
from ..responses import json_body, ok
from ..services import webhook_service
from ..validation import parse_webhook_cancel, parse_webhook_order


webhooks_bp = Blueprint("webhooks", __name__, url_prefix="/api/webhooks")


@webhooks_bp.post("/orders")
@require_webhook_secret
def ingest_order_route(ctx):
    order = webhook_service.ingest_order(ctx, parse_webhook_order(json_body()))
    return ok(order.to_dict(), status=201, message="Order created successfully")


@webhooks_bp.post("/cancel")
@require_webhook_secret
def cancel_order_route(ctx):
    order = webhook_service.cancel_order(ctx, parse_webhook_cancel(json_body()))
    return ok(order.to_dict(), message="Order cancelled successfully")
