from __future__ import annotations

from ..extensions import db
from stitchline.time_utils import to_utc_z


# Line item types (decided once at ingestion)
ITEM_TYPE_WALLET = "wallet"
ITEM_TYPE_ACCESSORY = "accessory"

# Line item fulfillment statuses
STATUS_PENDING = "pending"
STATUS_CLAIMED = "claimed"
STATUS_IN_PROGRESS = "in_progress"
STATUS_COMPLETED = "completed"
STATUS_VOID = "void"

LINE_ITEM_STATUSES = {STATUS_PENDING, STATUS_CLAIMED, STATUS_IN_PROGRESS, STATUS_COMPLETED, STATUS_VOID}

# Order lifecycle tags
ORDER_STATUS_PENDING = "pending"
ORDER_STATUS_CANCELLED = "cancelled"


class Order(db.Model):
    """
    One row per upstream storefront order.

    IDENTITY:
    - order_number: human-facing number shown to sewers
    - source_order_id: the storefront's id; idempotent lookup key for webhooks

    AGGREGATES are computed at ingestion from per-item classification and only
    recomputed when an operator remediates an unmapped wallet.

    source_metadata is an opaque pass-through blob (statuses, tags, addresses,
    timestamps). Only cancelled_at is interpreted.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.UniqueConstraint("source_order_id", name="uq_orders_source_order_id"),
        db.UniqueConstraint("order_number", name="uq_orders_order_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_number = db.Column(db.String(64), nullable=False)
    source_order_id = db.Column(db.String(64), nullable=False, index=True)

    status = db.Column(db.String(16), nullable=False, default=ORDER_STATUS_PENDING, index=True)
    orderer_name = db.Column(db.String(255), nullable=False, default="Unknown")

    points = db.Column(db.Integer, nullable=False, default=0)
    wallet_type_summary = db.Column(db.Text, nullable=True)
    total_wallets = db.Column(db.Integer, nullable=False, default=0)
    total_accessories = db.Column(db.Integer, nullable=False, default=0)

    source_metadata = db.Column(db.JSON, nullable=False, default=dict)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    line_items = db.relationship(
        "LineItem",
        back_populates="order",
        lazy=True,
        order_by="LineItem.id",
    )

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def cancelled_at(self) -> str | None:
        return (self.source_metadata or {}).get("cancelled_at")

    def to_dict(self, include_line_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "order_number": self.order_number,
            "source_order_id": self.source_order_id,
            "status": self.status,
            "orderer_name": self.orderer_name,
            "points": self.points,
            "wallet_type_summary": self.wallet_type_summary,
            "total_wallets": self.total_wallets,
            "total_accessories": self.total_accessories,
            "source_metadata": self.source_metadata,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
        if include_line_items:
            data["line_items"] = [li.to_dict() for li in self.line_items]
        return data

    def __repr__(self) -> str:
        return f"<Order {self.order_number} source={self.source_order_id}>"


class LineItem(db.Model):
    """
    One purchased line within an Order.

    LIFECYCLE (wallets only):
        pending -> claimed -> in_progress -> completed
        pending -> void        (order cancelled before anyone claimed it)

    Every transition is a status-conditional UPDATE, so this model carries no
    version_id: the status column itself is the compare-and-swap guard.

    Accessories keep status 'pending' and points 0; they are never claimed.
    A wallet with wallet_type NULL is unresolved and waits for remediation.
    """
    __tablename__ = "order_line_items"
    __table_args__ = (
        db.Index("ix_line_items_order_status", "order_id", "status"),
        db.Index("ix_line_items_claimed_by_status", "claimed_by", "status"),
        db.Index("ix_line_items_type_status", "item_type", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    order_number = db.Column(db.String(64), nullable=False)

    item_type = db.Column(db.String(16), nullable=False)

    # Product descriptors
    source_line_item_id = db.Column(db.String(64), nullable=True)
    product_id = db.Column(db.String(64), nullable=True)
    variant_id = db.Column(db.String(64), nullable=True)
    sku = db.Column(db.String(128), nullable=True)
    product_name = db.Column(db.String(255), nullable=True)
    variant_name = db.Column(db.String(255), nullable=True)
    quantity = db.Column(db.Integer, nullable=False, default=1)
    price = db.Column(db.Numeric(10, 2), nullable=True)

    # Classification outputs
    wallet_type = db.Column(db.String(64), nullable=True, index=True)
    points = db.Column(db.Integer, nullable=False, default=0)
    wallet_attributes = db.Column(db.JSON, nullable=True)

    # Fulfillment
    status = db.Column(db.String(16), nullable=False, default=STATUS_PENDING, index=True)
    claimed_by = db.Column(db.String(64), nullable=True)
    claimed_by_name = db.Column(db.String(255), nullable=True)
    claimed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    voided_at = db.Column(db.DateTime(timezone=True), nullable=True)

    source_line_item = db.Column(db.JSON, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    order = db.relationship("Order", back_populates="line_items")

    @property
    def is_wallet(self) -> bool:
        return self.item_type == ITEM_TYPE_WALLET

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "order_number": self.order_number,
            "item_type": self.item_type,
            "source_line_item_id": self.source_line_item_id,
            "product_id": self.product_id,
            "variant_id": self.variant_id,
            "sku": self.sku,
            "product_name": self.product_name,
            "variant_name": self.variant_name,
            "quantity": self.quantity,
            "price": str(self.price) if self.price is not None else None,
            "wallet_type": self.wallet_type,
            "points": self.points,
            "wallet_attributes": self.wallet_attributes,
            "status": self.status,
            "claimed_by": self.claimed_by,
            "claimed_by_name": self.claimed_by_name,
            "claimed_at": to_utc_z(self.claimed_at),
            "completed_at": to_utc_z(self.completed_at),
            "voided_at": to_utc_z(self.voided_at),
            "created_at": to_utc_z(self.created_at),
        }

    def __repr__(self) -> str:
        return f"<LineItem {self.id} {self.item_type} {self.status}>"
