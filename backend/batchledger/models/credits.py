from __future__ import annotations

from ..extensions import db
from batchledger.time_utils import now_ts


CREDIT_TX_DEBT = "debt"
CREDIT_TX_PAYMENT = "payment"

CREDIT_PAYMENT_METHODS = ("cash", "mpesa")


class CreditAccount(db.Model):
    """Customer tab. total_credit is the outstanding balance."""
    __tablename__ = "credit_accounts"
    __table_args__ = (
        db.Index("ix_credit_accounts_business_phone", "business_id", "customer_phone"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)
    customer_name = db.Column(db.String(255), nullable=False)
    customer_phone = db.Column(db.String(64), nullable=True)
    total_credit = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    last_transaction_at = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.Integer, nullable=False, default=now_ts)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "customer_name": self.customer_name,
            "customer_phone": self.customer_phone,
            "total_credit": self.total_credit,
            "last_transaction_at": self.last_transaction_at,
            "created_at": self.created_at,
        }


class CreditTransaction(db.Model):
    """
    Movement on a credit account.

    - debt: credit sale added to the tab (sale_id set)
    - payment: customer paid down the tab (payment_method set)
    """
    __tablename__ = "credit_transactions"
    __table_args__ = (
        db.Index("ix_credit_tx_account_created", "credit_account_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    credit_account_id = db.Column(db.Integer, db.ForeignKey("credit_accounts.id"), nullable=False, index=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True)

    type = db.Column(db.String(16), nullable=False, index=True)
    amount = db.Column(db.Numeric(14, 2), nullable=False)
    payment_method = db.Column(db.String(16), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    recorded_by = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    created_at = db.Column(db.Integer, nullable=False, default=now_ts, index=True)

    account = db.relationship("CreditAccount", backref=db.backref("transactions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "credit_account_id": self.credit_account_id,
            "sale_id": self.sale_id,
            "type": self.type,
            "amount": self.amount,
            "payment_method": self.payment_method,
            "notes": self.notes,
            "recorded_by": self.recorded_by,
            "created_at": self.created_at,
        }
