from __future__ import annotations

from ..extensions import db
from orderdesk.time_utils import to_utc_z


# =============================================================================
# ORDER STATUS (CONSTANTS)
# =============================================================================

ORDER_STATUS_IN_PROCESS = "IN_PROCESS"
ORDER_STATUS_COMPLETED = "COMPLETED"
ORDER_STATUS_CANCELLED = "CANCELLED"

VALID_ORDER_STATUSES = (
    ORDER_STATUS_IN_PROCESS,
    ORDER_STATUS_COMPLETED,
    ORDER_STATUS_CANCELLED,
)


# =============================================================================
# PAYMENT STATUS (CONSTANTS)
# =============================================================================

PAYMENT_STATUS_PENDING = "PENDING"
PAYMENT_STATUS_PROCESSING = "PROCESSING"
PAYMENT_STATUS_COMPLETED = "COMPLETED"
PAYMENT_STATUS_FAILED = "FAILED"
PAYMENT_STATUS_REFUNDED = "REFUNDED"


SOURCE_POS = "POS"
SOURCE_WEBHOOK = "WEBHOOK"


class Order(db.Model):
    """
    One purchase transaction with a status lifecycle.

    LIFECYCLE: IN_PROCESS -> COMPLETED | CANCELLED. Both are terminal for
    the direct API; webhook cancellation may also cancel a COMPLETED order.

    TOTALS: total_amount_cents = max(0, sum(item.price_cents * item.quantity) - discount_cents).
    Returns never touch the total; they are a separate refund ledger.

    CONCURRENCY: version_id gives optimistic conflict detection on top of
    the row lock taken by every mutating flow.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.UniqueConstraint(
            "external_order_id", "source", "org_id",
            name="uq_orders_external_source_org",
        ),
        db.Index("ix_orders_org_status_created", "org_id", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False, default="Order")
    status = db.Column(db.String(16), nullable=False, default=ORDER_STATUS_IN_PROCESS, index=True)

    # Amounts in cents
    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)

    # Written by payment_service; read by the COMPLETED transition
    payment_method = db.Column(db.String(32), nullable=True)
    payment_status = db.Column(db.String(16), nullable=False, default=PAYMENT_STATUS_PENDING, index=True)
    transaction_id = db.Column(db.String(128), nullable=True, unique=True)
    # Set when the payment is refunded; may be less than the total
    payment_refunded_cents = db.Column(db.Integer, nullable=True)

    # Ingestion channel
    source = db.Column(db.String(64), nullable=False, default=SOURCE_POS)
    external_order_id = db.Column(db.String(255), nullable=True)

    # Null for webhook orders
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    items = db.relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
        lazy=True,
    )
    created_by = db.relationship("User", foreign_keys=[created_by_user_id])
    organization = db.relationship("Organization")

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Order id={self.id} status={self.status} org_id={self.org_id}>"

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "org_id": self.org_id,
            "name": self.name,
            "status": self.status,
            "total_amount_cents": self.total_amount_cents,
            "discount_cents": self.discount_cents,
            "payment_method": self.payment_method,
            "payment_status": self.payment_status,
            "transaction_id": self.transaction_id,
            "payment_refunded_cents": self.payment_refunded_cents,
            "source": self.source,
            "external_order_id": self.external_order_id,
            "created_by_user_id": self.created_by_user_id,
            "created_by": self.created_by.to_summary() if self.created_by else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "completed_at": to_utc_z(self.completed_at),
            "cancelled_at": to_utc_z(self.cancelled_at),
            "paid_at": to_utc_z(self.paid_at),
            "version_id": self.version_id,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class OrderItem(db.Model):
    """
    Line item on an order.

    price_cents is the catalog price captured when the line was created and
    is never recomputed from the current product price.
    """
    __tablename__ = "order_items"
    __table_args__ = (
        db.CheckConstraint("quantity >= 1", name="ck_order_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    order_id = db.Column(
        db.Integer,
        db.ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    price_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    order = db.relationship("Order", back_populates="items")
    product = db.relationship("Product")

    @property
    def line_total_cents(self) -> int:
        return self.price_cents * self.quantity

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "product": {
                "id": self.product.id,
                "name": self.product.name,
            } if self.product else None,
            "quantity": self.quantity,
            "price_cents": self.price_cents,
            "line_total_cents": self.line_total_cents,
            "created_at": to_utc_z(self.created_at),
        }
