# Overview: Payment state for orders; the only writer of payment_status, payment_method and transaction_id.

"""
Payment Service

WHY: An order can only be COMPLETED once its payment has cleared. This
module drives Order.payment_status; order_service reads it when asked to
complete an order.

FLOWS:
- CASH: settled at the counter. Payment COMPLETED and the order COMPLETED
  in one step.
- CARD / WALLET: handed to an external processor. Payment goes PROCESSING
  with a transaction id; the processor reports back through
  handle_callback(), which settles (or fails) the payment.
- Refund: COMPLETED -> REFUNDED, for the full total or a smaller amount.
  Stock is not touched; returns handle that.

No gateway request signing is done here: the processor is expected to call
the callback endpoint, optionally authenticated with PAYMENT_CALLBACK_SECRET.
"""

from __future__ import annotations

import secrets

from flask import current_app

from ..context import TenantContext
from ..errors import NotFoundError, PaymentError, ValidationError
from ..extensions import db
from ..models import Order
from ..models.orders import (
    ORDER_STATUS_COMPLETED,
    ORDER_STATUS_IN_PROCESS,
    PAYMENT_STATUS_COMPLETED,
    PAYMENT_STATUS_FAILED,
    PAYMENT_STATUS_PROCESSING,
    PAYMENT_STATUS_REFUNDED,
)
from orderdesk.time_utils import to_utc_z, utcnow
from .concurrency import begin_write, lock_for_update, run_with_retry
from .order_service import lock_order


PAYMENT_METHOD_CASH = "CASH"
PAYMENT_METHOD_CARD = "CARD"
PAYMENT_METHOD_WALLET = "WALLET"
VALID_PAYMENT_METHODS = (PAYMENT_METHOD_CASH, PAYMENT_METHOD_CARD, PAYMENT_METHOD_WALLET)


def generate_transaction_id(payment_method: str) -> str:
    return f"{payment_method}-{secrets.token_hex(8).upper()}"


def payment_summary(order: Order, message: str | None = None) -> dict:
    return {
        "order_id": order.id,
        "transaction_id": order.transaction_id,
        "payment_method": order.payment_method,
        "payment_status": order.payment_status,
        "order_status": order.status,
        "amount_cents": order.total_amount_cents,
        "paid_at": to_utc_z(order.paid_at),
        "refunded_cents": order.payment_refunded_cents,
        "message": message,
    }


# =============================================================================
# INITIATE
# =============================================================================

def initiate_payment(
    ctx: TenantContext,
    order_id: int,
    payment_method: str,
    amount_cents: int,
    customer_phone: str | None = None,
) -> Order:
    """
    Start payment for an IN_PROCESS order.

    Raises:
        ValidationError: Unknown method, or WALLET without customer_phone
        NotFoundError: Order missing in this organization
        PaymentError: Order not payable, or amount differs from the order total
    """
    payment_method = (payment_method or "").strip().upper()
    if payment_method not in VALID_PAYMENT_METHODS:
        raise ValidationError(
            f"payment_method must be one of {', '.join(VALID_PAYMENT_METHODS)}"
        )
    if payment_method == PAYMENT_METHOD_WALLET and not (customer_phone or "").strip():
        raise ValidationError("customer_phone is required for WALLET payments")

    def _op():
        begin_write()
        order = lock_order(ctx.org_id, order_id)

        if order.status != ORDER_STATUS_IN_PROCESS:
            raise PaymentError(
                "Only IN_PROCESS orders can be paid",
                details={"current_status": order.status},
            )
        if order.payment_status in (PAYMENT_STATUS_COMPLETED, PAYMENT_STATUS_PROCESSING):
            raise PaymentError(
                f"Order payment is already {order.payment_status}",
                details={"payment_status": order.payment_status},
            )
        if amount_cents != order.total_amount_cents:
            raise PaymentError(
                f"Payment amount ({amount_cents}) does not match order total ({order.total_amount_cents})",
                details={"expected_cents": order.total_amount_cents},
            )

        now = utcnow()
        order.payment_method = payment_method
        order.transaction_id = generate_transaction_id(payment_method)

        if payment_method == PAYMENT_METHOD_CASH:
            order.payment_status = PAYMENT_STATUS_COMPLETED
            order.paid_at = now
            order.status = ORDER_STATUS_COMPLETED
            order.completed_at = now
        else:
            order.payment_status = PAYMENT_STATUS_PROCESSING

        db.session.commit()
        return order

    order = run_with_retry(_op)
    current_app.logger.info(
        "Payment %s initiated for order %s (org=%s method=%s status=%s)",
        order.transaction_id, order.id, ctx.org_id, payment_method, order.payment_status,
    )
    return order


# =============================================================================
# PROCESSOR CALLBACK
# =============================================================================

def handle_callback(transaction_id: str, success: bool) -> Order:
    """
    Settle a PROCESSING payment reported by the external processor.

    Success completes the payment and, if the order is still IN_PROCESS,
    the order. Failure marks the payment FAILED and leaves the order as is,
    so a new payment can be initiated.
    """
    if not transaction_id:
        raise ValidationError("transaction_id is required")

    def _op():
        begin_write()
        order = lock_for_update(
            db.session.query(Order).filter_by(transaction_id=transaction_id)
        ).first()
        if not order:
            raise NotFoundError("Transaction not found")
        if order.payment_status != PAYMENT_STATUS_PROCESSING:
            raise PaymentError(
                f"Payment is not awaiting confirmation (status: {order.payment_status})",
                details={"payment_status": order.payment_status},
            )

        if success:
            now = utcnow()
            order.payment_status = PAYMENT_STATUS_COMPLETED
            order.paid_at = now
            if order.status == ORDER_STATUS_IN_PROCESS:
                order.status = ORDER_STATUS_COMPLETED
                order.completed_at = now
        else:
            order.payment_status = PAYMENT_STATUS_FAILED

        db.session.commit()
        return order

    order = run_with_retry(_op)
    current_app.logger.info(
        "Payment callback for %s: %s (order=%s)",
        transaction_id, order.payment_status, order.id,
    )
    return order


# =============================================================================
# REFUND / VERIFY
# =============================================================================

def refund_payment(
    ctx: TenantContext,
    order_id: int,
    reason: str | None = None,
    amount_cents: int | None = None,
) -> Order:
    """
    Refund a completed payment, in full or for part of the order total.

    Raises:
        ValidationError: amount_cents is not positive
        PaymentError: Payment not COMPLETED, or amount above the order total
    """
    if amount_cents is not None and amount_cents <= 0:
        raise ValidationError("amount_cents must be > 0")

    def _op():
        begin_write()
        order = lock_order(ctx.org_id, order_id)
        if order.payment_status != PAYMENT_STATUS_COMPLETED:
            raise PaymentError(
                "Only completed payments can be refunded",
                details={"payment_status": order.payment_status},
            )
        refund = order.total_amount_cents if amount_cents is None else amount_cents
        if refund > order.total_amount_cents:
            raise PaymentError(
                "Refund amount cannot exceed order total",
                details={"total_amount_cents": order.total_amount_cents},
            )
        order.payment_status = PAYMENT_STATUS_REFUNDED
        order.payment_refunded_cents = refund
        db.session.commit()
        return order

    order = run_with_retry(_op)
    current_app.logger.info(
        "Payment for order %s refunded (org=%s amount_cents=%s reason=%s)",
        order.id, ctx.org_id, order.payment_refunded_cents, reason or "-",
    )
    return order


def get_payment_status(ctx: TenantContext, transaction_id: str) -> Order:
    order = db.session.query(Order).filter_by(
        org_id=ctx.org_id,
        transaction_id=transaction_id,
    ).first()
    if not order:
        raise NotFoundError("Transaction not found")
    return order
