# Overview: Pytest coverage for payments and the payment gate on order completion.

import pytest

from orderdesk.errors import PaymentError, PaymentNotCompletedError, ValidationError
from orderdesk.services import order_service, payment_service
from orderdesk.validation import OrderLine

from conftest import refresh


@pytest.fixture
def open_order(db_session, ctx_a, coffee):
    return order_service.create_order(ctx_a, [OrderLine(coffee.id, 2)], discount_cents=250)


class TestInitiatePayment:
    """payment_service.initiate_payment"""

    def test_cash_settles_payment_and_completes_order(self, ctx_a, open_order):
        order = payment_service.initiate_payment(ctx_a, open_order.id, "CASH", 1750)

        assert order.payment_status == "COMPLETED"
        assert order.payment_method == "CASH"
        assert order.transaction_id.startswith("CASH-")
        assert order.paid_at is not None
        assert order.status == "COMPLETED"
        assert order.completed_at is not None

    def test_amount_must_match_order_total(self, ctx_a, open_order):
        with pytest.raises(PaymentError):
            payment_service.initiate_payment(ctx_a, open_order.id, "CASH", 2000)

        refresh(open_order)
        assert open_order.payment_status == "PENDING"
        assert open_order.status == "IN_PROCESS"

    def test_card_payment_waits_for_callback(self, ctx_a, open_order):
        order = payment_service.initiate_payment(ctx_a, open_order.id, "card", 1750)

        assert order.payment_status == "PROCESSING"
        assert order.status == "IN_PROCESS"

        with pytest.raises(PaymentNotCompletedError) as exc:
            order_service.update_status(ctx_a, order.id, "COMPLETED")
        assert exc.value.payment_status == "PROCESSING"

    def test_wallet_requires_customer_phone(self, ctx_a, open_order):
        with pytest.raises(ValidationError):
            payment_service.initiate_payment(ctx_a, open_order.id, "WALLET", 1750)

        order = payment_service.initiate_payment(ctx_a, open_order.id, "WALLET", 1750, customer_phone="+15550100")
        assert order.payment_status == "PROCESSING"

    def test_unknown_method_is_rejected(self, ctx_a, open_order):
        with pytest.raises(ValidationError):
            payment_service.initiate_payment(ctx_a, open_order.id, "BITCOIN", 1750)

    def test_cancelled_order_cannot_be_paid(self, ctx_a, open_order):
        order_service.update_status(ctx_a, open_order.id, "CANCELLED")

        with pytest.raises(PaymentError):
            payment_service.initiate_payment(ctx_a, open_order.id, "CASH", 1750)

    def test_processing_payment_cannot_be_started_twice(self, ctx_a, open_order):
        payment_service.initiate_payment(ctx_a, open_order.id, "CARD", 1750)

        with pytest.raises(PaymentError):
            payment_service.initiate_payment(ctx_a, open_order.id, "CASH", 1750)


class TestPaymentCallback:
    """POST /api/payments/callback"""

    def test_successful_callback_completes_order(self, client, ctx_a, open_order):
        order = payment_service.initiate_payment(ctx_a, open_order.id, "CARD", 1750)

        response = client.post("/api/payments/callback", json={
            "transaction_id": order.transaction_id,
            "success": True,
        })

        assert response.status_code == 200
        assert response.json["data"]["payment_status"] == "COMPLETED"
        assert response.json["data"]["order_status"] == "COMPLETED"

    def test_failed_callback_allows_a_new_attempt(self, client, ctx_a, open_order):
        order = payment_service.initiate_payment(ctx_a, open_order.id, "CARD", 1750)

        response = client.post("/api/payments/callback", json={
            "transactionId": order.transaction_id,
            "success": False,
        })

        assert response.status_code == 200
        refresh(open_order)
        assert open_order.payment_status == "FAILED"
        assert open_order.status == "IN_PROCESS"

        order = payment_service.initiate_payment(ctx_a, open_order.id, "CASH", 1750)
        assert order.status == "COMPLETED"

    def test_unknown_transaction_is_not_found(self, client, db_session):
        response = client.post("/api/payments/callback", json={"transaction_id": "CARD-NOPE", "success": True})
        assert response.status_code == 404

    def test_configured_callback_secret_is_enforced(self, app, client, ctx_a, open_order):
        app.config["PAYMENT_CALLBACK_SECRET"] = "cb-secret"
        order = payment_service.initiate_payment(ctx_a, open_order.id, "CARD", 1750)
        body = {"transaction_id": order.transaction_id, "success": True}

        denied = client.post("/api/payments/callback", json=body)
        allowed = client.post("/api/payments/callback", json=body, headers={"x-callback-secret": "cb-secret"})

        assert denied.status_code == 401
        assert allowed.status_code == 200


class TestRefundAndVerify:

    def test_refund_completed_payment(self, client, headers_a, ctx_a, open_order):
        payment_service.initiate_payment(ctx_a, open_order.id, "CASH", 1750)

        response = client.post("/api/payments/refund", json={"order_id": open_order.id}, headers=headers_a)

        assert response.status_code == 200
        assert response.json["data"]["payment_status"] == "REFUNDED"

    def test_full_refund_defaults_to_order_total(self, ctx_a, open_order):
        payment_service.initiate_payment(ctx_a, open_order.id, "CASH", 1750)

        order = payment_service.refund_payment(ctx_a, open_order.id, reason="Spilled")

        assert order.payment_refunded_cents == 1750

    def test_partial_refund_amount(self, client, headers_a, ctx_a, open_order):
        payment_service.initiate_payment(ctx_a, open_order.id, "CASH", 1750)

        response = client.post(
            "/api/payments/refund",
            json={"orderId": open_order.id, "amountCents": 500, "reason": "Cold coffee"},
            headers=headers_a,
        )

        assert response.status_code == 200
        assert response.json["data"]["payment_status"] == "REFUNDED"
        assert response.json["data"]["refunded_cents"] == 500

    def test_refund_cannot_exceed_total(self, ctx_a, open_order):
        payment_service.initiate_payment(ctx_a, open_order.id, "CASH", 1750)

        with pytest.raises(PaymentError):
            payment_service.refund_payment(ctx_a, open_order.id, amount_cents=1751)
        with pytest.raises(ValidationError):
            payment_service.refund_payment(ctx_a, open_order.id, amount_cents=0)

        refresh(open_order)
        assert open_order.payment_status == "COMPLETED"
        assert open_order.payment_refunded_cents is None

    def test_pending_payment_cannot_be_refunded(self, ctx_a, open_order):
        with pytest.raises(PaymentError):
            payment_service.refund_payment(ctx_a, open_order.id)

    def test_verify_is_tenant_scoped(self, client, headers_a, headers_b, ctx_a, open_order):
        order = payment_service.initiate_payment(ctx_a, open_order.id, "CARD", 1750)
        url = f"/api/payments/verify?transaction_id={order.transaction_id}"

        mine = client.get(url, headers=headers_a)
        theirs = client.get(url, headers=headers_b)

        assert mine.status_code == 200
        assert mine.json["data"]["payment_status"] == "PROCESSING"
        assert theirs.status_code == 404
