# Overview: Profit aggregation by item/category and by local calendar day.

from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from ..models import Category, Item, Sale, SaleItem, StockAdjustment
from ..models.inventory import LOSS_REASONS
from ..models.sales import SALE_STATUS_COMPLETED
from batchledger.time_utils import local_day, months_back_start, now_ts, parse_timestamp
from .costing_service import as_unit_cost, loss_cost_expression, resolved_cost_expression
from ..validation import ValidationError, money


GROUP_BY_ITEM = "item"
GROUP_BY_CATEGORY = "category"
GROUP_BY_CHOICES = (GROUP_BY_ITEM, GROUP_BY_CATEGORY)

UNCATEGORIZED = "Uncategorized"

# Browser offsets span UTC-14 .. UTC+14
MAX_TZ_OFFSET_MINUTES = 14 * 60
MAX_MONTHS_BACK = 120

MARGIN_PLACES = Decimal("0.0001")
ZERO = Decimal("0")


def margin(profit: Decimal, revenue: Decimal) -> Decimal:
    """profit / revenue, defined as 0 when there is no revenue."""
    if revenue == 0:
        return ZERO.quantize(MARGIN_PLACES)
    return (profit / revenue).quantize(MARGIN_PLACES)


def _sale_lines_query(business_id: int, start: int | None, end: int | None):
    """Completed-sale lines with their resolved unit cost."""
    q = (
        db.session.query(
            Sale.id.label("sale_id"),
            Sale.sale_date.label("sale_date"),
            SaleItem.item_id.label("item_id"),
            SaleItem.quantity_sold.label("quantity"),
            SaleItem.sell_price_per_unit.label("sell_price"),
            resolved_cost_expression(business_id).label("unit_cost"),
            Item.name.label("item_name"),
            Item.category_id.label("category_id"),
            Category.name.label("category_name"),
        )
        .join(Sale, SaleItem.sale_id == Sale.id)
        .join(Item, SaleItem.item_id == Item.id)
        .outerjoin(Category, Item.category_id == Category.id)
        .filter(
            Sale.business_id == business_id,
            Sale.status == SALE_STATUS_COMPLETED,
        )
    )
    if start is not None:
        q = q.filter(Sale.sale_date >= start)
    if end is not None:
        q = q.filter(Sale.sale_date <= end)
    return q


def _line_amounts(row) -> tuple[Decimal, Decimal, Decimal]:
    quantity = Decimal(str(row.quantity))
    revenue = quantity * Decimal(str(row.sell_price))
    cost = quantity * as_unit_cost(row.unit_cost)
    return quantity, revenue, cost


def profit_report(business_id: int, start=None, end=None, group_by: str = GROUP_BY_ITEM) -> dict:
    """
    Revenue, cost, profit and margin per item or per category.

    Args:
        start/end: inclusive bounds on sale_date (epoch seconds or ISO strings)
        group_by: "item" or "category"; items without a category are grouped
            under "Uncategorized"

    Returns:
        {"total_sales", "total_cost", "total_profit", "margin", "group_by",
         "start", "end", "groups": [...]} with groups ordered by profit desc
    """
    if group_by not in GROUP_BY_CHOICES:
        raise ValidationError("group_by must be item or category")
    try:
        start_ts = parse_timestamp(start)
        end_ts = parse_timestamp(end)
    except ValueError:
        raise ValidationError("start and end must be timestamps or ISO-8601 dates")
    if start_ts is not None and end_ts is not None and start_ts > end_ts:
        raise ValidationError("start must be before end")

    groups: dict = {}
    for row in _sale_lines_query(business_id, start_ts, end_ts).all():
        quantity, revenue, cost = _line_amounts(row)
        if group_by == GROUP_BY_ITEM:
            key, name = row.item_id, row.item_name
        else:
            key, name = row.category_id, row.category_name or UNCATEGORIZED

        group = groups.setdefault(key, {
            "id": key,
            "name": name,
            "units_sold": ZERO,
            "revenue": ZERO,
            "cost": ZERO,
            "sale_ids": set(),
        })
        group["units_sold"] += quantity
        group["revenue"] += revenue
        group["cost"] += cost
        group["sale_ids"].add(row.sale_id)

    results = []
    for group in groups.values():
        revenue = money(group["revenue"])
        cost = money(group["cost"])
        profit = revenue - cost
        results.append({
            "id": group["id"],
            "name": group["name"],
            "units_sold": group["units_sold"],
            "transactions": len(group["sale_ids"]),
            "revenue": revenue,
            "cost": cost,
            "profit": profit,
            "margin": margin(profit, revenue),
        })
    results.sort(key=lambda g: (-g["profit"], str(g["name"])))

    total_sales = sum((g["revenue"] for g in results), money(0))
    total_cost = sum((g["cost"] for g in results), money(0))
    total_profit = total_sales - total_cost

    return {
        "total_sales": total_sales,
        "total_cost": total_cost,
        "total_profit": total_profit,
        "margin": margin(total_profit, total_sales),
        "group_by": group_by,
        "start": start_ts,
        "end": end_ts,
        "groups": results,
    }


def _stock_losses(business_id: int, start: int, end: int) -> list:
    return (
        db.session.query(
            StockAdjustment.created_at.label("created_at"),
            StockAdjustment.difference.label("difference"),
            loss_cost_expression(business_id).label("unit_cost"),
        )
        .filter(
            StockAdjustment.business_id == business_id,
            StockAdjustment.reason.in_(LOSS_REASONS),
            StockAdjustment.difference < 0,
            StockAdjustment.created_at >= start,
            StockAdjustment.created_at <= end,
        )
        .all()
    )


def _empty_day(day: str) -> dict:
    return {
        "date": day,
        "revenue": ZERO,
        "cost": ZERO,
        "stock_loss": ZERO,
        "sale_ids": set(),
    }


def daily_profit(
    business_id: int,
    months_back: int = 12,
    tz_offset_minutes: int = 0,
    *,
    now: int | None = None,
    include_stock_losses: bool = True,
) -> dict:
    """
    Profit calendar bucketed by the caller's local day.

    tz_offset_minutes follows the browser convention (minutes behind UTC,
    so UTC+3 is -180). The window starts on the first day of the month
    `months_back` months before now.

    Returns:
        {
            "daily_profits": {"YYYY-MM-DD": {"date", "profit", "revenue",
                              "cost", "stock_loss", "transactions"}},
            "stats": {"max_profit", "min_profit", "total_days_with_activity",
                      "profitable_days", "loss_days", "neutral_days"},
            "date_range": {"start", "end", "months"},
        }
    """
    if isinstance(months_back, bool) or not isinstance(months_back, int):
        raise ValidationError("months must be an integer")
    if months_back < 0 or months_back > MAX_MONTHS_BACK:
        raise ValidationError(f"months must be between 0 and {MAX_MONTHS_BACK}")
    if isinstance(tz_offset_minutes, bool) or not isinstance(tz_offset_minutes, int):
        raise ValidationError("tz must be an integer minute offset")
    if abs(tz_offset_minutes) > MAX_TZ_OFFSET_MINUTES:
        raise ValidationError(f"tz must be between -{MAX_TZ_OFFSET_MINUTES} and {MAX_TZ_OFFSET_MINUTES}")

    end = now if now is not None else now_ts()
    start = months_back_start(end, months_back)

    days: dict = {}
    for row in _sale_lines_query(business_id, start, end).all():
        _, revenue, cost = _line_amounts(row)
        key = local_day(row.sale_date, tz_offset_minutes)
        day = days.setdefault(key, _empty_day(key))
        day["revenue"] += revenue
        day["cost"] += cost
        day["sale_ids"].add(row.sale_id)

    if include_stock_losses:
        losses_by_day: dict = {}
        for row in _stock_losses(business_id, start, end):
            key = local_day(row.created_at, tz_offset_minutes)
            loss = -Decimal(str(row.difference)) * as_unit_cost(row.unit_cost)
            losses_by_day[key] = losses_by_day.get(key, ZERO) + loss
        # unpriced losses (no batch, breakdown or sale cost) are not activity
        for key, loss in losses_by_day.items():
            if loss > 0:
                days.setdefault(key, _empty_day(key))["stock_loss"] += loss

    daily_profits = {}
    for key in sorted(days):
        day = days[key]
        revenue = money(day["revenue"])
        stock_loss = money(day["stock_loss"])
        cost = money(day["cost"]) + stock_loss
        daily_profits[key] = {
            "date": key,
            "revenue": revenue,
            "cost": cost,
            "stock_loss": stock_loss,
            "profit": revenue - cost,
            "transactions": len(day["sale_ids"]),
        }

    profits = [d["profit"] for d in daily_profits.values()]
    profitable = sum(1 for p in profits if p > 0)
    losses = sum(1 for p in profits if p < 0)
    stats = {
        "max_profit": max(profits) if profits else money(0),
        "min_profit": min(profits) if profits else money(0),
        "total_days_with_activity": len(profits),
        "profitable_days": profitable,
        "loss_days": losses,
        "neutral_days": len(profits) - profitable - losses,
    }

    return {
        "daily_profits": daily_profits,
        "stats": stats,
        "date_range": {
            "start": local_day(start, tz_offset_minutes),
            "end": local_day(end, tz_offset_minutes),
            "months": months_back,
        },
    }
