# Overview: Service-layer operations for supplier purchases.

from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from ..models import Purchase, PurchaseItem
from ..models.purchases import (
    PURCHASE_STATUS_PENDING,
    PURCHASE_STATUS_PARTIAL,
    PURCHASE_STATUS_COMPLETE,
    PURCHASE_ITEM_STATUS_PENDING,
)
from batchledger.time_utils import now_ts, parse_timestamp
from .concurrency import run_atomic
from .tenant_service import require_item, require_user
from ..validation import (
    ValidationError,
    NotFoundError,
    MONEY_PLACES,
    require_choice,
    to_int,
    to_non_negative_decimal,
)


PURCHASE_STATUSES = (PURCHASE_STATUS_PENDING, PURCHASE_STATUS_PARTIAL, PURCHASE_STATUS_COMPLETE)


def create_purchase(
    *,
    business_id: int,
    user_id: int,
    items: list,
    supplier_name: str | None = None,
    purchase_date=None,
    total_amount=None,
    extra_costs=None,
    notes: str | None = None,
) -> Purchase:
    """
    Record a supplier purchase with its raw line items.

    Lines stay 'pending' until each one is broken down into stock.
    total_amount defaults to the sum of line amounts.

    Each line: {"item_name", "quantity_note"?, "amount"?, "item_id"?, "notes"?}
    """
    if not isinstance(items, list) or not items:
        raise ValidationError("At least one purchase item is required")

    lines = []
    for index, raw in enumerate(items):
        if not isinstance(raw, dict):
            raise ValidationError(f"Item {index + 1}: must be an object")
        name = (raw.get("item_name") or "").strip()
        if not name:
            raise ValidationError(f"Item {index + 1}: item_name is required")
        amount = to_non_negative_decimal(raw.get("amount", 0), "amount", places=MONEY_PLACES)
        item_id = to_int(raw["item_id"], "item_id") if raw.get("item_id") is not None else None
        lines.append({
            "item_name_snapshot": name,
            "quantity_note": (raw.get("quantity_note") or "").strip(),
            "amount": amount,
            "item_id": item_id,
            "notes": raw.get("notes"),
        })

    extra = to_non_negative_decimal(extra_costs or 0, "extra_costs", places=MONEY_PLACES)
    if total_amount is None:
        total = sum((line["amount"] for line in lines), Decimal("0.00"))
    else:
        total = to_non_negative_decimal(total_amount, "total_amount", places=MONEY_PLACES)

    try:
        purchase_ts = parse_timestamp(purchase_date)
    except ValueError:
        raise ValidationError("invalid purchase_date")

    def _op():
        require_user(business_id, user_id)
        for line in lines:
            if line["item_id"] is not None:
                require_item(business_id, line["item_id"])

        now = now_ts()
        purchase = Purchase(
            business_id=business_id,
            recorded_by=user_id,
            supplier_name=(supplier_name or "").strip() or None,
            purchase_date=purchase_ts if purchase_ts is not None else now,
            total_amount=total,
            extra_costs=extra,
            notes=notes,
            status=PURCHASE_STATUS_PENDING,
            created_at=now,
        )
        db.session.add(purchase)
        db.session.flush()

        for line in lines:
            db.session.add(PurchaseItem(
                purchase_id=purchase.id,
                status=PURCHASE_ITEM_STATUS_PENDING,
                created_at=now,
                **line,
            ))
        db.session.flush()
        return purchase

    return run_atomic(_op)


def require_purchase(business_id: int, purchase_id: int) -> Purchase:
    purchase = db.session.query(Purchase).filter_by(id=purchase_id, business_id=business_id).first()
    if purchase is None:
        raise NotFoundError("Purchase not found")
    return purchase


def get_purchase(business_id: int, purchase_id: int) -> dict:
    """Purchase header with its lines and any breakdowns."""
    purchase = require_purchase(business_id, purchase_id)
    return {
        **purchase.to_dict(),
        "items": [
            {
                **line.to_dict(),
                "breakdown": line.breakdown.to_dict() if line.breakdown else None,
            }
            for line in purchase.items
        ],
    }


def list_purchases(business_id: int, *, status: str | None = None, limit: int = 200) -> list[Purchase]:
    q = db.session.query(Purchase).filter_by(business_id=business_id)
    if status is not None:
        require_choice(status, "status", PURCHASE_STATUSES)
        q = q.filter_by(status=status)
    return q.order_by(Purchase.purchase_date.desc(), Purchase.id.desc()).limit(limit).all()
