# Overview: POS sale recording; consumes batches FIFO and prices every line slice.

from __future__ import annotations

from decimal import Decimal

from flask import current_app

from ..extensions import db
from ..models import Sale, SaleItem
from ..models.sales import PAYMENT_METHODS, SALE_STATUS_COMPLETED, SALE_STATUS_VOIDED
from batchledger.time_utils import now_ts, parse_timestamp
from .batch_service import deplete_batch, select_batches_for_sale
from .concurrency import run_atomic
from .costing_service import fallback_unit_cost
from .credit_service import record_debt
from .shift_service import get_current_shift, record_cash_inflow
from .tenant_service import require_item, require_user
from ..validation import (
    ConflictError,
    NotFoundError,
    ValidationError,
    QUANTITY_PLACES,
    UNIT_PRICE_PLACES,
    money,
    require_choice,
    to_int,
    to_non_negative_decimal,
    to_positive_decimal,
)


def _parse_cart(items) -> list[dict]:
    if not isinstance(items, list) or not items:
        raise ValidationError("At least one sale item is required")

    cart = []
    for index, raw in enumerate(items):
        if not isinstance(raw, dict):
            raise ValidationError(f"Item {index + 1}: must be an object")
        if raw.get("item_id") is None:
            raise ValidationError(f"Item {index + 1}: item_id is required")
        cart.append({
            "item_id": to_int(raw["item_id"], "item_id"),
            "quantity": to_positive_decimal(raw.get("quantity"), "quantity", places=QUANTITY_PLACES),
            "price": (
                to_non_negative_decimal(raw["price"], "price", places=UNIT_PRICE_PLACES)
                if raw.get("price") is not None else None
            ),
        })
    return cart


def _line_profit(quantity: Decimal, sell: Decimal, buy: Decimal) -> Decimal:
    return money((sell - buy) * quantity)


def record_sale(
    *,
    business_id: int,
    user_id: int,
    items: list,
    payment_method: str,
    customer_name: str | None = None,
    customer_phone: str | None = None,
    sale_date=None,
) -> Sale:
    """
    Record a completed sale.

    Each cart line {"item_id", "quantity", "price"?} is split FIFO across
    the item's batches: one SaleItem per batch consumed, carrying that
    batch's buy price. Any quantity the batches cannot cover becomes one
    more SaleItem with no batch, priced at the latest known cost. price
    defaults to the item's current sell price.

    Item stock always drops by the full quantity sold and may go negative.

    Cash sales add their total to the seller's open shift; credit sales add
    a debt to the customer's tab.
    """
    require_choice(payment_method, "payment_method", PAYMENT_METHODS)
    cart = _parse_cart(items)
    name = (customer_name or "").strip()
    phone = (customer_phone or "").strip() or None
    if payment_method == "credit" and not name:
        raise ValidationError("customer_name is required for credit sales")
    try:
        sale_ts = parse_timestamp(sale_date)
    except ValueError:
        raise ValidationError("invalid sale_date")

    def _op():
        require_user(business_id, user_id)
        shift = get_current_shift(business_id, user_id)
        now = now_ts()

        sale = Sale(
            business_id=business_id,
            user_id=user_id,
            shift_id=shift.id if shift else None,
            total_amount=Decimal("0.00"),
            payment_method=payment_method,
            status=SALE_STATUS_COMPLETED,
            customer_name=name or None,
            customer_phone=phone,
            sale_date=sale_ts if sale_ts is not None else now,
            created_at=now,
        )
        db.session.add(sale)
        db.session.flush()

        total = Decimal("0")
        for line in cart:
            item = require_item(business_id, line["item_id"], require_active=True, lock=True)
            quantity = line["quantity"]
            sell = line["price"] if line["price"] is not None else Decimal(item.current_sell_price)

            selection = select_batches_for_sale(business_id, item.id, quantity)
            for consumption in selection.consumptions:
                buy = Decimal(consumption.buy_price)
                db.session.add(SaleItem(
                    sale_id=sale.id,
                    item_id=item.id,
                    inventory_batch_id=consumption.batch_id,
                    quantity_sold=consumption.quantity,
                    sell_price_per_unit=sell,
                    buy_price_per_unit=buy,
                    profit=_line_profit(consumption.quantity, sell, buy),
                    created_at=now,
                ))
                deplete_batch(business_id, consumption.batch_id, consumption.quantity, commit=False)

            if selection.is_short:
                buy = fallback_unit_cost(business_id, item.id)
                db.session.add(SaleItem(
                    sale_id=sale.id,
                    item_id=item.id,
                    inventory_batch_id=None,
                    quantity_sold=selection.shortfall,
                    sell_price_per_unit=sell,
                    buy_price_per_unit=buy,
                    profit=_line_profit(selection.shortfall, sell, buy),
                    created_at=now,
                ))

            item.current_stock = Decimal(item.current_stock) - quantity
            total += quantity * sell
            db.session.flush()

        sale.total_amount = money(total)

        if payment_method == "cash" and shift is not None and sale.total_amount > 0:
            record_cash_inflow(business_id, shift.id, sale.total_amount, commit=False)
        elif payment_method == "credit" and sale.total_amount > 0:
            record_debt(
                business_id=business_id,
                user_id=user_id,
                sale_id=sale.id,
                amount=sale.total_amount,
                customer_name=name,
                customer_phone=phone,
            )
        db.session.flush()

        current_app.logger.info(
            "Sale %s recorded: %s via %s (%d lines, shift %s)",
            sale.id, sale.total_amount, payment_method, len(cart), sale.shift_id,
        )
        return sale

    return run_atomic(_op)


def require_sale(business_id: int, sale_id: int) -> Sale:
    sale = db.session.query(Sale).filter_by(id=sale_id, business_id=business_id).first()
    if sale is None:
        raise NotFoundError("Sale not found")
    return sale


def get_sale(business_id: int, sale_id: int) -> dict:
    sale = require_sale(business_id, sale_id)
    return {
        **sale.to_dict(),
        "items": [line.to_dict() for line in sale.items],
    }


def void_sale(*, business_id: int, sale_id: int, user_id: int, reason: str | None = None) -> Sale:
    """
    Mark a completed sale as voided.

    Voided sales drop out of every profit report. Batches, stock and shift
    cash are left as they are; a physical return is recorded with a stock
    adjustment.
    """
    def _op():
        require_user(business_id, user_id)
        sale = require_sale(business_id, sale_id)
        if sale.status == SALE_STATUS_VOIDED:
            raise ConflictError("Sale is already voided")
        sale.status = SALE_STATUS_VOIDED
        sale.voided_by = user_id
        sale.voided_reason = (reason or "").strip() or None
        db.session.flush()
        current_app.logger.info("Sale %s voided by user %s", sale.id, user_id)
        return sale

    return run_atomic(_op)


def list_sales(business_id: int, *, shift_id: int | None = None, limit: int = 200) -> list[Sale]:
    q = db.session.query(Sale).filter_by(business_id=business_id)
    if shift_id is not None:
        q = q.filter_by(shift_id=shift_id)
    return q.order_by(Sale.sale_date.desc(), Sale.id.desc()).limit(limit).all()
