from __future__ import annotations

from ..extensions import db
from stockdesk.time_utils import to_utc_z


ORDER_PENDING = "PENDING"
ORDER_APPROVED = "APPROVED"
ORDER_REJECTED = "REJECTED"
ORDER_FULFILLED = "FULFILLED"
ORDER_SHIPPED = "SHIPPED"
ORDER_DELIVERED = "DELIVERED"
ORDER_CANCELLED = "CANCELLED"

ORDER_STATUSES = (
    ORDER_PENDING,
    ORDER_APPROVED,
    ORDER_REJECTED,
    ORDER_FULFILLED,
    ORDER_SHIPPED,
    ORDER_DELIVERED,
    ORDER_CANCELLED,
)


class OrderRequest(db.Model):
    """
    Internal order placed by a USER against the company's catalog.

    LIFECYCLE: PENDING -> APPROVED/REJECTED/CANCELLED/SHIPPED, see
    services/order_service.py for the full transition table.
    Stock is deducted when the order ships, never at creation.
    """
    __tablename__ = "order_requests"
    __table_args__ = (
        db.Index("ix_order_requests_company_status", "company_id", "status"),
        db.Index("ix_order_requests_user_created", "user_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id"), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default=ORDER_PENDING, index=True)
    total_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    notes = db.Column(db.Text, nullable=True)

    approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    rejected_at = db.Column(db.DateTime(timezone=True), nullable=True)
    fulfilled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    shipped_at = db.Column(db.DateTime(timezone=True), nullable=True)
    delivered_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    user = db.relationship("User", backref=db.backref("order_requests", lazy=True))
    items = db.relationship(
        "OrderRequestItem",
        backref="order_request",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="OrderRequestItem.id",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<OrderRequest id={self.id} status={self.status} company_id={self.company_id}>"

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "user_id": self.user_id,
            "user_name": self.user.name if self.user else None,
            "company_id": self.company_id,
            "status": self.status,
            "total_amount_cents": self.total_amount_cents,
            "notes": self.notes,
            "approved_at": to_utc_z(self.approved_at),
            "rejected_at": to_utc_z(self.rejected_at),
            "fulfilled_at": to_utc_z(self.fulfilled_at),
            "shipped_at": to_utc_z(self.shipped_at),
            "delivered_at": to_utc_z(self.delivered_at),
            "cancelled_at": to_utc_z(self.cancelled_at),
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class OrderRequestItem(db.Model):
    __tablename__ = "order_request_items"
    __table_args__ = (
        db.UniqueConstraint("order_request_id", "product_id", name="uq_order_items_order_product"),
        db.CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_request_id = db.Column(db.Integer, db.ForeignKey("order_requests.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    # Price snapshot at order time
    unit_price_cents = db.Column(db.Integer, nullable=False)
    total_price_cents = db.Column(db.Integer, nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_request_id": self.order_request_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "product_sku": self.product.sku if self.product else None,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "total_price_cents": self.total_price_cents,
        }


class UserInventory(db.Model):
    """
    Stock a user has received through shipped orders.

    quantity_available = quantity_received - quantity_used; quantity_used
    grows as the user sells to customers on credit.
    """
    __tablename__ = "user_inventories"
    __table_args__ = (
        db.UniqueConstraint("user_id", "product_id", name="uq_user_inventories_user_product"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity_received = db.Column(db.Integer, nullable=False, default=0)
    quantity_used = db.Column(db.Integer, nullable=False, default=0)
    quantity_available = db.Column(db.Integer, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    user = db.relationship("User", backref=db.backref("inventory", lazy=True))
    product = db.relationship("Product")
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "product_id": self.product_id,
            "product_name": self.product.name if self.product else None,
            "product_sku": self.product.sku if self.product else None,
            "price_cents": self.product.price_cents if self.product else None,
            "quantity_received": self.quantity_received,
            "quantity_used": self.quantity_used,
            "quantity_available": self.quantity_available,
            "updated_at": to_utc_z(self.updated_at),
        }
