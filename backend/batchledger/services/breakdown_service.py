# backend/batchledger/services/breakdown_service.py
"""
Purchase breakdown processor.

WHY: Supplier receipts say "2 crates" and a lump amount. Stock and costing
need "46.5 kg usable at 80.00/kg". A breakdown turns one purchase line into
exactly one priced InventoryBatch plus an optional wastage write-off.

SEQUENCE (one unit of work, committed once):
1. validate input
2. insert PurchaseBreakdown
3. insert InventoryBatch (initial == remaining == usable)
4. item stock += usable
5. wastage > 0: spoilage adjustment snapshotted AFTER step 4
6. line item -> broken_down, backfill item link
7. recompute purchase status

A line item can only be broken down once.
"""
from __future__ import annotations

from decimal import Decimal

from flask import current_app

from ..extensions import db
from ..models import Purchase, PurchaseItem, PurchaseBreakdown
from ..models.purchases import (
    PURCHASE_STATUS_PENDING,
    PURCHASE_STATUS_PARTIAL,
    PURCHASE_STATUS_COMPLETE,
    PURCHASE_ITEM_STATUS_PENDING,
    PURCHASE_ITEM_STATUS_BROKEN_DOWN,
)
from batchledger.time_utils import now_ts
from .adjustment_service import record_wastage
from .batch_service import create_batch
from .concurrency import lock_for_update, run_atomic
from .tenant_service import require_item, require_user
from ..validation import (
    ConflictError,
    NotFoundError,
    QUANTITY_PLACES,
    UNIT_PRICE_PLACES,
    require_fields,
    to_non_negative_decimal,
    to_positive_decimal,
)


def next_purchase_status(current: str, pending_count: int) -> str:
    """
    Derive purchase status after a breakdown.

    complete once nothing is pending; otherwise partial. Never regresses to
    pending once a breakdown has happened.
    """
    if pending_count == 0:
        return PURCHASE_STATUS_COMPLETE
    if current in (PURCHASE_STATUS_PENDING, PURCHASE_STATUS_PARTIAL):
        return PURCHASE_STATUS_PARTIAL
    return current


def _require_line_item(business_id: int, purchase_item_id: int) -> tuple[PurchaseItem, Purchase]:
    row = (
        lock_for_update(
            db.session.query(PurchaseItem, Purchase)
            .join(Purchase, PurchaseItem.purchase_id == Purchase.id)
            .filter(PurchaseItem.id == purchase_item_id, Purchase.business_id == business_id)
        )
        .first()
    )
    if row is None:
        raise NotFoundError("Purchase item not found")
    return row


def breakdown(
    *,
    business_id: int,
    user_id: int,
    purchase_item_id,
    item_id,
    usable_quantity,
    buy_price_per_unit,
    wastage_quantity=None,
    notes: str | None = None,
    purchase_id: int | None = None,
) -> dict:
    """
    Break a pending purchase line down into a priced batch.

    Args:
        purchase_id: when given, the line item must belong to this purchase

    Returns:
        {"breakdown_id", "batch_id", "purchase_id", "purchase_status", "item_stock"}

    Raises:
        ValidationError: missing fields, usable/price <= 0, wastage < 0
        NotFoundError: line item, item or user not in this business
        ConflictError: line item already broken down
    """
    require_fields(
        {
            "purchase_item_id": purchase_item_id,
            "item_id": item_id,
            "usable_quantity": usable_quantity,
            "buy_price_per_unit": buy_price_per_unit,
        },
        ("purchase_item_id", "item_id", "usable_quantity", "buy_price_per_unit"),
    )

    usable = to_positive_decimal(usable_quantity, "usable_quantity", places=QUANTITY_PLACES)
    price = to_positive_decimal(buy_price_per_unit, "buy_price_per_unit", places=UNIT_PRICE_PLACES)
    wastage = to_non_negative_decimal(
        wastage_quantity if wastage_quantity not in (None, "") else 0,
        "wastage_quantity",
        places=QUANTITY_PLACES,
    )

    def _op():
        require_user(business_id, user_id)
        line, purchase = _require_line_item(business_id, purchase_item_id)
        if purchase_id is not None and purchase.id != purchase_id:
            raise NotFoundError("Purchase item not found")
        if line.status != PURCHASE_ITEM_STATUS_PENDING:
            raise ConflictError("Purchase item has already been broken down")

        item = require_item(business_id, item_id, lock=True)

        now = now_ts()
        record = PurchaseBreakdown(
            purchase_item_id=line.id,
            item_id=item.id,
            usable_quantity=usable,
            wastage_quantity=wastage,
            buy_price_per_unit=price,
            notes=notes,
            confirmed_by=user_id,
            confirmed_at=now,
        )
        db.session.add(record)
        db.session.flush()

        batch = create_batch(
            business_id=business_id,
            item_id=item.id,
            quantity=usable,
            buy_price_per_unit=price,
            source_breakdown_id=record.id,
            received_at=now,
            commit=False,
        )

        item.current_stock = Decimal(item.current_stock) + usable
        db.session.flush()

        wastage_adjustment = None
        if wastage > 0:
            wastage_adjustment = record_wastage(
                business_id=business_id,
                item=item,
                wastage_quantity=wastage,
                user_id=user_id,
                notes=notes,
            )

        line.status = PURCHASE_ITEM_STATUS_BROKEN_DOWN
        if line.item_id is None:
            line.item_id = item.id
        db.session.flush()

        pending_count = db.session.query(PurchaseItem).filter_by(
            purchase_id=purchase.id,
            status=PURCHASE_ITEM_STATUS_PENDING,
        ).count()
        purchase.status = next_purchase_status(purchase.status, pending_count)
        db.session.flush()

        current_app.logger.info(
            "Breakdown %s: purchase item %s -> batch %s (%s usable, %s wastage) purchase %s now %s",
            record.id, line.id, batch.id, usable, wastage, purchase.id, purchase.status,
        )

        return {
            "breakdown_id": record.id,
            "batch_id": batch.id,
            "purchase_id": purchase.id,
            "purchase_status": purchase.status,
            "wastage_adjustment_id": wastage_adjustment.id if wastage_adjustment else None,
            "item_stock": Decimal(item.current_stock),
        }

    return run_atomic(_op)
