# backend/batchledger/services/adjustment_service.py
"""
Stock adjustment recorder.

WHY: The system's belief about stock drifts from the shelf (spoilage,
theft, miscounts). Every correction is written as an immutable
StockAdjustment row carrying the before/after snapshot, so the drift is
auditable after the fact.

MODES:
1. Delta: increase/decrease by a quantity for a typed reason.
   actual = max(0, system + signed_delta)
2. Stock take: absolute counted quantities for many items at once.
   Rows are independent; a bad row is skipped and reported, it never
   aborts the rest of the count.

In both modes a zero difference writes no row.
"""
from __future__ import annotations

from decimal import Decimal

from flask import current_app

from ..extensions import db
from ..models import Item, StockAdjustment
from ..models.inventory import ADJUSTMENT_REASONS
from batchledger.time_utils import now_ts
from .concurrency import run_atomic
from .tenant_service import require_item, require_user
from ..validation import (
    ValidationError,
    NotFoundError,
    ConflictError,
    QUANTITY_PLACES,
    require_choice,
    to_decimal,
    to_int,
    to_positive_decimal,
)


ADJUSTMENT_TYPE_INCREASE = "increase"
ADJUSTMENT_TYPE_DECREASE = "decrease"
ADJUSTMENT_TYPES = (ADJUSTMENT_TYPE_INCREASE, ADJUSTMENT_TYPE_DECREASE)

ZERO = Decimal("0")


def _write_adjustment(
    *,
    business_id: int,
    item: Item,
    actual_stock: Decimal,
    reason: str,
    notes: str | None,
    user_id: int,
    clamp: bool = True,
) -> tuple[StockAdjustment | None, Decimal, Decimal]:
    """
    Core adjustment logic without validation, retry or commit.

    Snapshots the item's current stock, records the difference and moves the
    item to the new level (clamped at zero unless clamp=False).
    Returns (adjustment or None when nothing changed, system_stock, difference).
    """
    system_stock = Decimal(item.current_stock)
    difference = actual_stock - system_stock
    if difference == 0:
        return None, system_stock, ZERO

    adjustment = StockAdjustment(
        business_id=business_id,
        item_id=item.id,
        system_stock=system_stock,
        actual_stock=actual_stock,
        difference=difference,
        reason=reason,
        notes=notes,
        adjusted_by=user_id,
        created_at=now_ts(),
    )
    db.session.add(adjustment)

    item.current_stock = max(ZERO, actual_stock) if clamp else actual_stock
    db.session.flush()
    return adjustment, system_stock, difference


def record_wastage(
    *,
    business_id: int,
    item: Item,
    wastage_quantity: Decimal,
    user_id: int,
    notes: str | None = None,
) -> StockAdjustment:
    """
    Spoilage adjustment for breakdown wastage.

    Must run after the usable quantity has been added to the item so that
    system_stock is the post-receipt level. difference is exactly
    -wastage_quantity, so the level is not clamped here.
    """
    system_stock = Decimal(item.current_stock)
    adjustment, _, _ = _write_adjustment(
        business_id=business_id,
        item=item,
        actual_stock=system_stock - wastage_quantity,
        reason="spoilage",
        notes=f"Wastage from purchase breakdown: {notes}" if notes else "Wastage from purchase breakdown",
        user_id=user_id,
        clamp=False,
    )
    return adjustment


def adjust_stock(
    *,
    business_id: int,
    user_id: int,
    item_id: int,
    adjustment_type: str,
    quantity,
    reason: str,
    notes: str | None = None,
) -> dict:
    """
    Delta adjustment.

    Returns:
        {"adjustment_id", "item_id", "system_stock", "actual_stock", "difference"}
        adjustment_id is None when the adjustment changed nothing
        (e.g. decreasing an item that is already at zero).

    Raises:
        ValidationError: bad type/reason/quantity
        NotFoundError: item or user not in this business
    """
    require_choice(adjustment_type, "adjustment_type", ADJUSTMENT_TYPES)
    require_choice(reason, "reason", ADJUSTMENT_REASONS)
    qty = to_positive_decimal(quantity, "quantity", places=QUANTITY_PLACES)

    def _op():
        require_user(business_id, user_id)
        item = require_item(business_id, item_id, lock=True)

        system_stock = Decimal(item.current_stock)
        delta = qty if adjustment_type == ADJUSTMENT_TYPE_INCREASE else -qty
        actual_stock = max(ZERO, system_stock + delta)

        adjustment, system_stock, difference = _write_adjustment(
            business_id=business_id,
            item=item,
            actual_stock=actual_stock,
            reason=reason,
            notes=notes,
            user_id=user_id,
        )
        return {
            "adjustment_id": adjustment.id if adjustment else None,
            "item_id": item.id,
            "system_stock": system_stock,
            "actual_stock": actual_stock,
            "difference": difference,
        }

    return run_atomic(_op)


def _parse_take_entry(entry) -> tuple[int, Decimal, str, str | None]:
    if not isinstance(entry, dict):
        raise ValidationError("Entry must be an object")
    if entry.get("item_id") is None:
        raise ValidationError("item_id is required")
    if entry.get("actual_stock") is None:
        raise ValidationError("actual_stock is required")
    item_id = to_int(entry["item_id"], "item_id")
    actual_stock = to_decimal(entry["actual_stock"], "actual_stock", places=QUANTITY_PLACES)
    reason = require_choice(entry.get("reason"), "reason", ADJUSTMENT_REASONS)
    return item_id, actual_stock, reason, entry.get("notes")


def stock_take(*, business_id: int, user_id: int, entries: list) -> dict:
    """
    Apply absolute counted stock levels.

    Each entry: {"item_id", "actual_stock", "reason", "notes"?}

    Returns:
        {
            "processed": rows applied (including no-op rows),
            "adjustments": rows that wrote a StockAdjustment,
            "skipped": invalid rows,
            "results": per-row outcome in input order,
        }

    Invalid rows (missing fields, unknown item, bad reason) are skipped and
    reported with an "error"; the remaining rows are still applied.
    """
    if not isinstance(entries, list) or not entries:
        raise ValidationError("Items are required")

    def _op():
        require_user(business_id, user_id)

        results = []
        for index, entry in enumerate(entries):
            try:
                item_id, actual_stock, reason, notes = _parse_take_entry(entry)
                item = require_item(business_id, item_id, lock=True)
            except (ValidationError, NotFoundError, ConflictError) as exc:
                results.append({
                    "index": index,
                    "item_id": entry.get("item_id") if isinstance(entry, dict) else None,
                    "status": "skipped",
                    "error": str(exc),
                })
                continue

            adjustment, system_stock, difference = _write_adjustment(
                business_id=business_id,
                item=item,
                actual_stock=actual_stock,
                reason=reason,
                notes=notes,
                user_id=user_id,
            )
            row = {
                "index": index,
                "item_id": item.id,
                "status": "adjusted" if adjustment else "unchanged",
                "adjustment_id": adjustment.id if adjustment else None,
                "system_stock": system_stock,
                "actual_stock": actual_stock,
                "difference": difference,
            }
            if adjustment is None:
                row["note"] = "No adjustment needed"
            results.append(row)

        processed = [r for r in results if r["status"] != "skipped"]
        summary = {
            "processed": len(processed),
            "adjustments": sum(1 for r in processed if r["status"] == "adjusted"),
            "skipped": len(results) - len(processed),
            "results": results,
        }
        current_app.logger.info(
            "Stock take for business %s: %d processed, %d adjusted, %d skipped",
            business_id, summary["processed"], summary["adjustments"], summary["skipped"],
        )
        return summary

    return run_atomic(_op)


def list_adjustments(business_id: int, *, item_id: int | None = None, limit: int = 200) -> list[StockAdjustment]:
    q = db.session.query(StockAdjustment).filter_by(business_id=business_id)
    if item_id is not None:
        q = q.filter_by(item_id=item_id)
    return q.order_by(StockAdjustment.created_at.desc(), StockAdjustment.id.desc()).limit(limit).all()


def list_low_stock_items(business_id: int) -> list[Item]:
    """Active items at or below their minimum stock level."""
    return (
        db.session.query(Item)
        .filter(
            Item.business_id == business_id,
            Item.is_active.is_(True),
            Item.min_stock_level.isnot(None),
            Item.current_stock <= Item.min_stock_level,
        )
        .order_by(Item.name.asc())
        .all()
    )
