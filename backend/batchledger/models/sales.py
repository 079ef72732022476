from __future__ import annotations

from ..extensions import db
from batchledger.time_utils import now_ts


PAYMENT_METHODS = ("cash", "mpesa", "credit", "split")

SALE_STATUS_COMPLETED = "completed"
SALE_STATUS_VOIDED = "voided"


class Sale(db.Model):
    """
    Completed POS sale.

    Only status='completed' sales count towards profit; voided sales stay
    on file for audit but are excluded from every report.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.Index("ix_sales_business_status_date", "business_id", "status", "sale_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    shift_id = db.Column(db.Integer, db.ForeignKey("shifts.id"), nullable=True, index=True)

    total_amount = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    payment_method = db.Column(db.String(16), nullable=False)
    status = db.Column(db.String(16), nullable=False, default=SALE_STATUS_COMPLETED, index=True)

    voided_reason = db.Column(db.String(255), nullable=True)
    voided_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)

    customer_name = db.Column(db.String(255), nullable=True)
    customer_phone = db.Column(db.String(64), nullable=True)

    sale_date = db.Column(db.Integer, nullable=False, default=now_ts, index=True)
    created_at = db.Column(db.Integer, nullable=False, default=now_ts)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "user_id": self.user_id,
            "shift_id": self.shift_id,
            "total_amount": self.total_amount,
            "payment_method": self.payment_method,
            "status": self.status,
            "voided_reason": self.voided_reason,
            "voided_by": self.voided_by,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "sale_date": self.sale_date,
            "created_at": self.created_at,
        }


class SaleItem(db.Model):
    """
    One priced slice of a sale line.

    A cart line that spans several batches is stored as several SaleItems,
    one per batch consumed, plus at most one batch-less SaleItem for any
    shortfall. buy_price_per_unit may be 0 when no cost was known at sale
    time; reports resolve it later and never write it back.
    """
    __tablename__ = "sale_items"
    __table_args__ = (
        db.Index("ix_sale_items_item", "item_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    item_id = db.Column(db.Integer, db.ForeignKey("items.id"), nullable=False)
    inventory_batch_id = db.Column(db.Integer, db.ForeignKey("inventory_batches.id"), nullable=True)

    quantity_sold = db.Column(db.Numeric(14, 3), nullable=False)
    sell_price_per_unit = db.Column(db.Numeric(14, 4), nullable=False)
    buy_price_per_unit = db.Column(db.Numeric(14, 4), nullable=False, default=0)
    profit = db.Column(db.Numeric(14, 2), nullable=False, default=0)

    created_at = db.Column(db.Integer, nullable=False, default=now_ts)

    sale = db.relationship("Sale", backref=db.backref("items", lazy=True, order_by="SaleItem.id"))
    item = db.relationship("Item")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sale_id": self.sale_id,
            "item_id": self.item_id,
            "inventory_batch_id": self.inventory_batch_id,
            "quantity_sold": self.quantity_sold,
            "sell_price_per_unit": self.sell_price_per_unit,
            "buy_price_per_unit": self.buy_price_per_unit,
            "profit": self.profit,
            "created_at": self.created_at,
        }
