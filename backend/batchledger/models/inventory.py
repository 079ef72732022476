from __future__ import annotations

from ..extensions import db
from batchledger.time_utils import now_ts


UNIT_TYPES = ("kg", "g", "piece", "bunch", "tray", "litre", "ml")

ADJUSTMENT_REASONS = ("restock", "spoilage", "theft", "counting_error", "damage", "other")

# Reasons whose negative differences are valued as stock losses in the profit calendar
LOSS_REASONS = ("spoilage", "theft", "damage", "other")


class Item(db.Model):
    """
    Sellable product.

    MULTI-TENANT: Items are scoped to a business via business_id.

    STOCK:
    current_stock is a signed running balance. Sales always decrement it by
    the full quantity sold, even when batches run out, so it may go negative.
    Stock adjustments and stock takes clamp it back to >= 0.

    Items are never deleted; set is_active=False instead.
    """
    __tablename__ = "items"
    __table_args__ = (
        db.Index("ix_items_business_name", "business_id", "name"),
        db.Index("ix_items_business_active", "business_id", "is_active"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)
    category_id = db.Column(db.Integer, db.ForeignKey("categories.id"), nullable=True, index=True)

    name = db.Column(db.String(255), nullable=False)
    unit_type = db.Column(db.String(16), nullable=False, default="piece")

    current_stock = db.Column(db.Numeric(14, 3), nullable=False, default=0)
    current_sell_price = db.Column(db.Numeric(14, 4), nullable=False, default=0)
    min_stock_level = db.Column(db.Numeric(14, 3), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.Integer, nullable=False, default=now_ts)

    category = db.relationship("Category", backref=db.backref("items", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Item id={self.id} name={self.name!r} business_id={self.business_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "category_id": self.category_id,
            "name": self.name,
            "unit_type": self.unit_type,
            "current_stock": self.current_stock,
            "current_sell_price": self.current_sell_price,
            "min_stock_level": self.min_stock_level,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": self.created_at,
        }


class InventoryBatch(db.Model):
    """
    Priced, depletable slice of stock.

    INVARIANTS:
    - buy_price_per_unit is fixed at receipt; batches are never re-priced.
    - 0 <= quantity_remaining <= initial_quantity.
    - Batches are never deleted. Depleted batches (quantity_remaining == 0)
      simply drop out of FIFO selection.

    CONCURRENCY:
    version_id_col makes every depletion an optimistic conditional update;
    a concurrent writer raises StaleDataError and the caller retries.
    """
    __tablename__ = "inventory_batches"
    __table_args__ = (
        db.Index("ix_batches_item_received", "item_id", "received_at", "id"),
        db.Index("ix_batches_business_item", "business_id", "item_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, index=True)

    # Null for batches that did not come from a purchase breakdown
    source_breakdown_id = db.Column(
        db.Integer, db.ForeignKey("purchase_breakdowns.id"), nullable=True, unique=True
    )

    initial_quantity = db.Column(db.Numeric(14, 3), nullable=False)
    quantity_remaining = db.Column(db.Numeric(14, 3), nullable=False)
    buy_price_per_unit = db.Column(db.Numeric(14, 4), nullable=False)

    received_at = db.Column(db.Integer, nullable=False, default=now_ts, index=True)
    created_at = db.Column(db.Integer, nullable=False, default=now_ts)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    item = db.relationship("Item", backref=db.backref("batches", lazy=True))
    source_breakdown = db.relationship(
        "PurchaseBreakdown", backref=db.backref("batch", uselist=False, lazy=True)
    )
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return (
            f"<InventoryBatch id={self.id} item_id={self.item_id} "
            f"remaining={self.quantity_remaining}/{self.initial_quantity}>"
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "item_id": self.item_id,
            "source_breakdown_id": self.source_breakdown_id,
            "initial_quantity": self.initial_quantity,
            "quantity_remaining": self.quantity_remaining,
            "buy_price_per_unit": self.buy_price_per_unit,
            "received_at": self.received_at,
            "created_at": self.created_at,
        }


class StockAdjustment(db.Model):
    """
    Audit record of a stock correction.

    IMMUTABLE: rows are only ever inserted.
    difference = actual_stock - system_stock (signed).
    """
    __tablename__ = "stock_adjustments"
    __table_args__ = (
        db.Index("ix_adjustments_business_created", "business_id", "created_at"),
        db.Index("ix_adjustments_item_created", "item_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, index=True)

    system_stock = db.Column(db.Numeric(14, 3), nullable=False)
    actual_stock = db.Column(db.Numeric(14, 3), nullable=False)
    difference = db.Column(db.Numeric(14, 3), nullable=False)

    reason = db.Column(db.String(32), nullable=False, index=True)
    notes = db.Column(db.Text, nullable=True)

    adjusted_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    created_at = db.Column(db.Integer, nullable=False, default=now_ts)

    item = db.relationship("Item")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "item_id": self.item_id,
            "system_stock": self.system_stock,
            "actual_stock": self.actual_stock,
            "difference": self.difference,
            "reason": self.reason,
            "notes": self.notes,
            "adjusted_by": self.adjusted_by,
            "created_at": self.created_at,
        }
