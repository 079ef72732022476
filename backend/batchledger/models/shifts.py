from __future__ import annotations

from ..extensions import db
from batchledger.time_utils import now_ts


SHIFT_STATUS_OPEN = "open"
SHIFT_STATUS_CLOSED = "closed"


class Shift(db.Model):
    """
    Cashier work session with cash accountability.

    LIFECYCLE:
    - open: expected_closing_cash grows with every cash inflow
    - closed: actual cash counted, cash_difference recorded

    IMMUTABLE: Once closed, a shift cannot be reopened or modified.
    At most one open shift per (business, user).
    """
    __tablename__ = "shifts"
    __table_args__ = (
        db.Index("ix_shifts_business_user_status", "business_id", "user_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    opening_cash = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    expected_closing_cash = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    actual_closing_cash = db.Column(db.Numeric(14, 2), nullable=True)
    cash_difference = db.Column(db.Numeric(14, 2), nullable=True)

    status = db.Column(db.String(16), nullable=False, default=SHIFT_STATUS_OPEN, index=True)
    started_at = db.Column(db.Integer, nullable=False, default=now_ts, index=True)
    ended_at = db.Column(db.Integer, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    user = db.relationship("User", backref=db.backref("shifts", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "user_id": self.user_id,
            "opening_cash": self.opening_cash,
            "expected_closing_cash": self.expected_closing_cash,
            "actual_closing_cash": self.actual_closing_cash,
            "cash_difference": self.cash_difference,
            "status": self.status,
            "started_at": self.started_at,
            "ended_at": self.ended_at,
            "version_id": self.version_id,
        }
