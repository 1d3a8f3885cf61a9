# Overview: Adapter that turns authenticated webhook payloads into order creation and cancellation.

"""
Webhook Service

WHY: External channels push orders that were already paid and fulfilled on
their side. They authenticate with a per-organization shared secret; only
its SHA-256 hash is stored on the Organization.

INGESTION: external product ids -> ProductMapping -> order_service.create_order
with status COMPLETED and the external id attached.

CANCELLATION: allowed from IN_PROCESS and from COMPLETED (unlike the direct
API). Units already returned are not restocked a second time.
"""

from __future__ import annotations

import hashlib
import secrets

from flask import current_app

from ..context import TenantContext
from ..errors import AlreadyCancelledError, NotFoundError, UnauthorizedError
from ..extensions import db
from ..models import Order, Organization
from ..models.orders import ORDER_STATUS_CANCELLED, ORDER_STATUS_COMPLETED, PAYMENT_STATUS_COMPLETED
from ..validation import OrderLine, WebhookCancelRequest, WebhookOrderRequest
from .concurrency import begin_write, lock_for_update, run_with_retry
from .order_service import cancel_locked, create_order
from .product_mapping_service import get_internal_product_id


DEFAULT_WEBHOOK_ORDER_NAME = "Webhook Order"


# =============================================================================
# SHARED SECRETS
# =============================================================================

def hash_secret(secret: str) -> str:
    return hashlib.sha256(secret.encode("utf-8")).hexdigest()


def rotate_webhook_secret(org_id: int) -> str:
    """
    Issue a new webhook secret for the organization.

    Returns the plaintext secret; it is not recoverable afterwards.
    """
    org = db.session.get(Organization, org_id)
    if not org:
        raise NotFoundError("Organization not found")

    secret = secrets.token_hex(32)
    org.webhook_secret_hash = hash_secret(secret)
    db.session.commit()

    current_app.logger.info("Webhook secret rotated for org %s", org_id)
    return secret


def resolve_organization(secret: str | None) -> TenantContext:
    """Map a presented secret to the organization context it belongs to."""
    if not secret:
        raise UnauthorizedError("Missing webhook secret")

    org = db.session.query(Organization).filter_by(
        webhook_secret_hash=hash_secret(secret),
        is_active=True,
    ).first()
    if not org:
        current_app.logger.warning("Rejected webhook call with an unknown secret")
        raise UnauthorizedError("Invalid webhook secret")

    return TenantContext(org_id=org.id)


# =============================================================================
# INGESTION
# =============================================================================

def ingest_order(ctx: TenantContext, request: WebhookOrderRequest) -> Order:
    """
    Create a COMPLETED order from external product ids.

    Raises:
        MappingNotFoundError: An external product id has no mapping for the source
        ConflictError: external_order_id already ingested for this source
        (plus everything create_order raises)
    """
    lines = [
        OrderLine(
            product_id=get_internal_product_id(ctx.org_id, line.external_product_id, request.source),
            quantity=line.quantity,
        )
        for line in request.items
    ]

    order = create_order(
        ctx,
        lines,
        name=request.name,
        discount_cents=request.discount_cents,
        source=request.source,
        external_order_id=request.external_order_id,
        status=ORDER_STATUS_COMPLETED,
        payment_status=PAYMENT_STATUS_COMPLETED,
        default_name=DEFAULT_WEBHOOK_ORDER_NAME,
    )
    current_app.logger.info(
        "Webhook order %s ingested (org=%s source=%s external_id=%s)",
        order.id, ctx.org_id, request.source, request.external_order_id,
    )
    return order


def cancel_order(ctx: TenantContext, request: WebhookCancelRequest) -> Order:
    """Cancel an externally created order and restock what is still out."""
    def _op():
        begin_write()
        order = lock_for_update(
            db.session.query(Order).filter_by(
                org_id=ctx.org_id,
                source=request.source,
                external_order_id=request.external_order_id,
            )
        ).first()
        if not order:
            raise NotFoundError(
                "Order not found",
                details={"external_order_id": request.external_order_id, "source": request.source},
            )
        if order.status == ORDER_STATUS_CANCELLED:
            raise AlreadyCancelledError("Order is already cancelled")

        cancel_locked(order, clear_completed=False)

        db.session.commit()
        return order

    order = run_with_retry(_op)
    current_app.logger.info(
        "Webhook cancelled order %s (org=%s source=%s external_id=%s)",
        order.id, ctx.org_id, request.source, request.external_order_id,
    )
    return order
