# Overview: Batch store and FIFO consumption selector.

"""
Inventory batch invariants (authoritative)

Batch store:
- Batches are append-only. Unit cost is fixed at receipt and never changes,
  which is what keeps historical costing accurate while supplier prices move.
- quantity_remaining only goes down (depletion), never below zero.
- Depleted batches are kept; they just stop being selectable.

FIFO selection (physical depletion order):
- Oldest received_at first, ties broken by id (insertion order).
- Each batch gives min(remaining, still_needed).
- Running out of batches is NOT an error. The selector reports a shortfall
  and the caller decides what to do; stock is allowed to go negative.

This is deliberately a different policy from report-time costing in
costing_service, which prices unknown lines at the *latest* batch.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from flask import current_app

from ..extensions import db
from ..models import InventoryBatch
from batchledger.time_utils import now_ts
from .concurrency import run_atomic
from .tenant_service import require_item
from ..validation import (
    NotFoundError,
    QUANTITY_PLACES,
    UNIT_PRICE_PLACES,
    to_positive_decimal,
)


ZERO = Decimal("0")


@dataclass(frozen=True)
class BatchConsumption:
    batch_id: int
    quantity: Decimal
    buy_price: Decimal

    def to_dict(self) -> dict:
        return {
            "batch_id": self.batch_id,
            "quantity": self.quantity,
            "buy_price": self.buy_price,
        }


@dataclass
class FifoSelection:
    """Result of a FIFO walk. shortfall > 0 means batches ran out."""
    item_id: int
    requested: Decimal
    consumptions: list[BatchConsumption] = field(default_factory=list)

    @property
    def fulfilled(self) -> Decimal:
        return sum((c.quantity for c in self.consumptions), ZERO)

    @property
    def shortfall(self) -> Decimal:
        return max(self.requested - self.fulfilled, ZERO)

    @property
    def is_short(self) -> bool:
        return self.shortfall > 0

    def to_dict(self) -> dict:
        return {
            "item_id": self.item_id,
            "requested": self.requested,
            "fulfilled": self.fulfilled,
            "shortfall": self.shortfall,
            "consumptions": [c.to_dict() for c in self.consumptions],
        }


def create_batch(
    *,
    business_id: int,
    item_id: int,
    quantity,
    buy_price_per_unit,
    source_breakdown_id: int | None = None,
    received_at: int | None = None,
    commit: bool = True,
) -> InventoryBatch:
    """
    Append a new batch with initial_quantity == quantity_remaining.

    Does not touch Item.current_stock; callers that receive stock (the
    breakdown processor) own that update.
    """
    qty = to_positive_decimal(quantity, "quantity", places=QUANTITY_PLACES)
    price = to_positive_decimal(buy_price_per_unit, "buy_price_per_unit", places=UNIT_PRICE_PLACES)

    def _op():
        require_item(business_id, item_id)
        ts = received_at if received_at is not None else now_ts()
        batch = InventoryBatch(
            business_id=business_id,
            item_id=item_id,
            source_breakdown_id=source_breakdown_id,
            initial_quantity=qty,
            quantity_remaining=qty,
            buy_price_per_unit=price,
            received_at=ts,
            created_at=now_ts(),
        )
        db.session.add(batch)
        db.session.flush()
        return batch

    return run_atomic(_op, commit=commit)


def list_batches(business_id: int, item_id: int, *, include_depleted: bool = False) -> list[InventoryBatch]:
    """Batches for an item in FIFO order (oldest first)."""
    require_item(business_id, item_id)
    q = db.session.query(InventoryBatch).filter_by(business_id=business_id, item_id=item_id)
    if not include_depleted:
        q = q.filter(InventoryBatch.quantity_remaining > 0)
    return q.order_by(InventoryBatch.received_at.asc(), InventoryBatch.id.asc()).all()


def select_batches_for_sale(business_id: int, item_id: int, quantity) -> FifoSelection:
    """
    Pick batches FIFO to cover `quantity` of an item.

    Read-only: nothing is depleted here. Pair with deplete_batch inside the
    same unit of work to actually consume stock.
    """
    requested = to_positive_decimal(quantity, "quantity", places=QUANTITY_PLACES)
    batches = list_batches(business_id, item_id)

    selection = FifoSelection(item_id=item_id, requested=requested)
    remaining = requested
    for batch in batches:
        if remaining <= 0:
            break
        take = min(batch.quantity_remaining, remaining)
        selection.consumptions.append(
            BatchConsumption(batch_id=batch.id, quantity=take, buy_price=batch.buy_price_per_unit)
        )
        remaining -= take

    if selection.is_short:
        current_app.logger.warning(
            "FIFO shortfall for item %s: requested %s, available %s",
            item_id, requested, selection.fulfilled,
        )
    return selection


def deplete_batch(business_id: int, batch_id: int, quantity, *, commit: bool = True) -> Decimal:
    """
    Decrement a batch's remaining quantity, bounded at zero.

    Returns the quantity actually taken. The write is guarded by the batch's
    version_id, so a concurrent depletion of the same batch fails with
    StaleDataError instead of double-spending it.
    """
    qty = to_positive_decimal(quantity, "quantity", places=QUANTITY_PLACES)

    def _op():
        batch = db.session.query(InventoryBatch).filter_by(id=batch_id, business_id=business_id).first()
        if batch is None:
            raise NotFoundError("Batch not found")
        taken = min(qty, batch.quantity_remaining)
        batch.quantity_remaining = batch.quantity_remaining - taken
        db.session.flush()
        return taken

    return run_atomic(_op, commit=commit)


def get_latest_batch(business_id: int, item_id: int) -> InventoryBatch | None:
    """Most recently received batch for an item, depleted or not."""
    return (
        db.session.query(InventoryBatch)
        .filter_by(business_id=business_id, item_id=item_id)
        .order_by(InventoryBatch.received_at.desc(), InventoryBatch.id.desc())
        .first()
    )
