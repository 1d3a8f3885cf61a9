from __future__ import annotations

from ..extensions import db
from orderdesk.time_utils import to_utc_z


class Return(db.Model):
    """
    Refund record against part of an order.

    WHY: Returns are a parallel ledger. They restock products and record the
    refunded amount (at the snapshot price of each line) without changing
    the order's status or total.
    """
    __tablename__ = "returns"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)

    refunded_amount_cents = db.Column(db.Integer, nullable=False, default=0)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    order = db.relationship("Order", backref=db.backref("returns", lazy=True))
    created_by = db.relationship("User", foreign_keys=[created_by_user_id])
    items = db.relationship(
        "ReturnItem",
        back_populates="return_doc",
        cascade="all, delete-orphan",
        order_by="ReturnItem.id",
        lazy=True,
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "org_id": self.org_id,
            "order_id": self.order_id,
            "refunded_amount_cents": self.refunded_amount_cents,
            "created_by_user_id": self.created_by_user_id,
            "created_at": to_utc_z(self.created_at),
            "items": [item.to_dict() for item in self.items],
        }


class ReturnItem(db.Model):
    """Quantity returned against one order item."""
    __tablename__ = "return_items"
    __table_args__ = (
        db.CheckConstraint("quantity >= 1", name="ck_return_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    org_id = db.Column(db.Integer, db.ForeignKey("organizations.id"), nullable=False, index=True)
    return_id = db.Column(
        db.Integer,
        db.ForeignKey("returns.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    order_item_id = db.Column(db.Integer, db.ForeignKey("order_items.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)

    return_doc = db.relationship("Return", back_populates="items")
    order_item = db.relationship("OrderItem")

    def to_dict(self) -> dict:
        order_item = self.order_item
        return {
            "id": self.id,
            "return_id": self.return_id,
            "order_item_id": self.order_item_id,
            "product_id": order_item.product_id if order_item else None,
            "product_name": order_item.product.name if order_item and order_item.product else None,
            "quantity": self.quantity,
            "price_cents": order_item.price_cents if order_item else None,
        }
