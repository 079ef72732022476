# Overview: Report-time unit cost resolution for sale lines and stock losses.

"""
Cost resolution chain (report time).

A SaleItem's unit cost is the first non-zero value of:
1. its own buy_price_per_unit
2. the most recently received batch of the item (received_at desc, id desc)
3. the most recently confirmed breakdown of the item in the same business
4. zero (line reports as 100% margin)

This is latest-known pricing, NOT FIFO. Physical depletion at sale time
walks batches oldest-first in batch_service; the two policies serve
different purposes and are kept apart on purpose.

Nothing is cached or written back: every report re-evaluates the chain
against current batch/breakdown data.
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import func

from ..extensions import db
from ..models import (
    InventoryBatch,
    Purchase,
    PurchaseBreakdown,
    PurchaseItem,
    Sale,
    SaleItem,
    StockAdjustment,
)
from ..validation import UNIT_PRICE_PLACES
from .batch_service import get_latest_batch


ZERO = Decimal("0")


def as_unit_cost(value) -> Decimal:
    """Normalize a raw SQL value (Decimal, float or int on SQLite) to a unit price."""
    if value is None:
        return ZERO.quantize(UNIT_PRICE_PLACES)
    return Decimal(str(value)).quantize(UNIT_PRICE_PLACES)


def _latest_batch_price_query(business_id: int, item_id_expr):
    return (
        db.session.query(InventoryBatch.buy_price_per_unit)
        .filter(
            InventoryBatch.business_id == business_id,
            InventoryBatch.item_id == item_id_expr,
        )
        .order_by(InventoryBatch.received_at.desc(), InventoryBatch.id.desc())
        .limit(1)
    )


def _latest_breakdown_price_query(business_id: int, item_id_expr):
    return (
        db.session.query(PurchaseBreakdown.buy_price_per_unit)
        .join(PurchaseItem, PurchaseBreakdown.purchase_item_id == PurchaseItem.id)
        .join(Purchase, PurchaseItem.purchase_id == Purchase.id)
        .filter(
            Purchase.business_id == business_id,
            PurchaseBreakdown.item_id == item_id_expr,
        )
        .order_by(PurchaseBreakdown.confirmed_at.desc(), PurchaseBreakdown.id.desc())
        .limit(1)
    )


def _latest_sale_cost_query(business_id: int, item_id_expr):
    return (
        db.session.query(SaleItem.buy_price_per_unit)
        .join(Sale, SaleItem.sale_id == Sale.id)
        .filter(
            Sale.business_id == business_id,
            SaleItem.item_id == item_id_expr,
            SaleItem.buy_price_per_unit > 0,
        )
        .order_by(SaleItem.created_at.desc(), SaleItem.id.desc())
        .limit(1)
    )


def latest_batch_price(business_id: int, item_id: int) -> Decimal | None:
    batch = get_latest_batch(business_id, item_id)
    return None if batch is None else as_unit_cost(batch.buy_price_per_unit)


def latest_breakdown_price(business_id: int, item_id: int) -> Decimal | None:
    value = _latest_breakdown_price_query(business_id, item_id).scalar()
    return None if value is None else as_unit_cost(value)


def fallback_unit_cost(business_id: int, item_id: int) -> Decimal:
    """
    Cost for a line that has no batch behind it: latest batch, then latest
    breakdown, then zero. Used when pricing a FIFO shortfall at sale time.
    """
    for price in (latest_batch_price(business_id, item_id), latest_breakdown_price(business_id, item_id)):
        if price is not None and price != 0:
            return price
    return ZERO.quantize(UNIT_PRICE_PLACES)


def resolve_unit_cost(business_id: int, sale_item: SaleItem) -> Decimal:
    """Resolve one SaleItem's unit cost through the chain."""
    recorded = as_unit_cost(sale_item.buy_price_per_unit)
    if recorded != 0:
        return recorded
    return fallback_unit_cost(business_id, sale_item.item_id)


def resolved_cost_expression(business_id: int):
    """
    SQL expression evaluating the chain per SaleItem row.

    Use as a column in a query over SaleItem; the subqueries correlate on
    SaleItem.item_id.
    """
    batch_price = (
        _latest_batch_price_query(business_id, SaleItem.item_id)
        .correlate(SaleItem)
        .scalar_subquery()
    )
    breakdown_price = (
        _latest_breakdown_price_query(business_id, SaleItem.item_id)
        .correlate(SaleItem)
        .scalar_subquery()
    )
    return func.coalesce(
        func.nullif(SaleItem.buy_price_per_unit, 0),
        func.nullif(batch_price, 0),
        func.nullif(breakdown_price, 0),
        0,
    )


def loss_cost_expression(business_id: int):
    """
    Unit cost for valuing a stock loss (StockAdjustment row).

    latest batch -> latest breakdown -> latest non-zero sale cost -> 0
    """
    batch_price = (
        _latest_batch_price_query(business_id, StockAdjustment.item_id)
        .correlate(StockAdjustment)
        .scalar_subquery()
    )
    breakdown_price = (
        _latest_breakdown_price_query(business_id, StockAdjustment.item_id)
        .correlate(StockAdjustment)
        .scalar_subquery()
    )
    sale_cost = (
        _latest_sale_cost_query(business_id, StockAdjustment.item_id)
        .correlate(StockAdjustment)
        .scalar_subquery()
    )
    return func.coalesce(
        func.nullif(batch_price, 0),
        func.nullif(breakdown_price, 0),
        sale_cost,
        0,
    )
