# Overview: Flask API routes for payment processing; drives the payment status that gates order completion.

from flask import Blueprint, request

from ..decorators import require_auth, require_callback_secret
from ..errors import ValidationError
from ..responses import json_body, ok
from ..services import payment_service
from ..validation import coerce_int


payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


def _required_int(data: dict, *keys: str) -> int:
    for key in keys:
        if data.get(key) is not None:
            return coerce_int(data[key], keys[0])
    raise ValidationError(f"{keys[0]} is required")


@payments_bp.post("/initiate")
@require_auth
def initiate_payment_route(ctx):
    """
    Start a payment.

    Body: {order_id, payment_method: CASH|CARD|WALLET, amount_cents, customer_phone?}
    """
    data = json_body()
    order = payment_service.initiate_payment(
        ctx,
        order_id=_required_int(data, "order_id", "orderId"),
        payment_method=data.get("payment_method") or data.get("paymentMethod"),
        amount_cents=_required_int(data, "amount_cents", "amountCents", "amount"),
        customer_phone=data.get("customer_phone") or data.get("customerPhone"),
    )
    message = (
        "Payment completed" if order.payment_status == "COMPLETED"
        else "Payment initiated, awaiting confirmation"
    )
    return ok(payment_service.payment_summary(order, message), status=201, message=message)


@payments_bp.post("/callback")
@require_callback_secret
def payment_callback_route():
    """Public endpoint for the payment processor: {transaction_id, success}."""
    data = json_body()
    transaction_id = data.get("transaction_id") or data.get("transactionId")
    success = data.get("success")
    if not isinstance(success, bool):
        raise ValidationError("success must be a boolean")
    order = payment_service.handle_callback(transaction_id, success)
    return ok(payment_service.payment_summary(order))


@payments_bp.post("/refund")
@require_auth
def refund_payment_route(ctx):
    """Body: {order_id, amount_cents?, reason?}; the amount defaults to the order total."""
    data = json_body()
    amount = next(
        (data[key] for key in ("amount_cents", "amountCents", "amount") if data.get(key) is not None),
        None,
    )
    order = payment_service.refund_payment(
        ctx,
        order_id=_required_int(data, "order_id", "orderId"),
        reason=data.get("reason"),
        amount_cents=coerce_int(amount, "amount_cents") if amount is not None else None,
    )
    return ok(payment_service.payment_summary(order, "Payment refunded"), message="Payment refunded")


@payments_bp.get("/verify")
@require_auth
def verify_payment_route(ctx):
    transaction_id = request.args.get("transaction_id") or request.args.get("transactionId")
    if not transaction_id:
        raise ValidationError("transaction_id is required")
    order = payment_service.get_payment_status(ctx, transaction_id)
    return ok(payment_service.payment_summary(order))
