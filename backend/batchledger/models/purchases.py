from __future__ import annotations

from ..extensions import db
from batchledger.time_utils import now_ts


PURCHASE_STATUS_PENDING = "pending"
PURCHASE_STATUS_PARTIAL = "partial"
PURCHASE_STATUS_COMPLETE = "complete"

PURCHASE_ITEM_STATUS_PENDING = "pending"
PURCHASE_ITEM_STATUS_BROKEN_DOWN = "broken_down"


class Purchase(db.Model):
    """
    Supplier transaction header.

    LIFECYCLE (derived, never set by clients):
    - pending: no line item broken down yet
    - partial: some line items broken down
    - complete: every line item broken down

    A purchase never goes back to pending once it has moved on.
    """
    __tablename__ = "purchases"
    __table_args__ = (
        db.Index("ix_purchases_business_status", "business_id", "status"),
        db.Index("ix_purchases_business_date", "business_id", "purchase_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)
    recorded_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    supplier_name = db.Column(db.String(255), nullable=True)
    purchase_date = db.Column(db.Integer, nullable=False, default=now_ts)
    total_amount = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    extra_costs = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    notes = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(16), nullable=False, default=PURCHASE_STATUS_PENDING, index=True)
    created_at = db.Column(db.Integer, nullable=False, default=now_ts)

    def __repr__(self) -> str:
        return f"<Purchase id={self.id} status={self.status} business_id={self.business_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "recorded_by": self.recorded_by,
            "supplier_name": self.supplier_name,
            "purchase_date": self.purchase_date,
            "total_amount": self.total_amount,
            "extra_costs": self.extra_costs,
            "notes": self.notes,
            "status": self.status,
            "created_at": self.created_at,
        }


class PurchaseItem(db.Model):
    """
    One line of a purchase as written on the supplier's receipt.

    quantity_note is free text ("2 crates"); the precise usable quantity is
    only known at breakdown time.
    """
    __tablename__ = "purchase_items"
    __table_args__ = (
        db.Index("ix_purchase_items_purchase_status", "purchase_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    purchase_id = db.Column(db.Integer, db.ForeignKey("purchases.id"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=True, index=True)

    item_name_snapshot = db.Column(db.String(255), nullable=False)
    quantity_note = db.Column(db.String(255), nullable=False, default="")
    amount = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    notes = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(16), nullable=False, default=PURCHASE_ITEM_STATUS_PENDING, index=True)
    created_at = db.Column(db.Integer, nullable=False, default=now_ts)

    purchase = db.relationship(
        "Purchase", backref=db.backref("items", lazy=True, order_by="PurchaseItem.id")
    )
    item = db.relationship("Item")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_id": self.purchase_id,
            "item_id": self.item_id,
            "item_name_snapshot": self.item_name_snapshot,
            "quantity_note": self.quantity_note,
            "amount": self.amount,
            "notes": self.notes,
            "status": self.status,
            "created_at": self.created_at,
        }


class PurchaseBreakdown(db.Model):
    """
    Conversion of one purchase line into usable stock plus wastage.

    One breakdown per line item (unique purchase_item_id); the batch it
    produces points back here via InventoryBatch.source_breakdown_id.
    """
    __tablename__ = "purchase_breakdowns"
    __table_args__ = (
        db.UniqueConstraint("purchase_item_id", name="uq_breakdowns_purchase_item"),
        db.Index("ix_breakdowns_item_confirmed", "item_id", "confirmed_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    purchase_item_id = db.Column(db.Integer, db.ForeignKey("purchase_items.id"), nullable=False)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False, index=True)

    usable_quantity = db.Column(db.Numeric(14, 3), nullable=False)
    wastage_quantity = db.Column(db.Numeric(14, 3), nullable=False, default=0)
    buy_price_per_unit = db.Column(db.Numeric(14, 4), nullable=False)
    notes = db.Column(db.Text, nullable=True)

    confirmed_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    confirmed_at = db.Column(db.Integer, nullable=False, default=now_ts)

    purchase_item = db.relationship(
        "PurchaseItem", backref=db.backref("breakdown", uselist=False, lazy=True)
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "purchase_item_id": self.purchase_item_id,
            "item_id": self.item_id,
            "usable_quantity": self.usable_quantity,
            "wastage_quantity": self.wastage_quantity,
            "buy_price_per_unit": self.buy_price_per_unit,
            "notes": self.notes,
            "confirmed_by": self.confirmed_by,
            "confirmed_at": self.confirmed_at,
        }
