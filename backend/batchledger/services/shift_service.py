# Overview: Shift cash reconciler; open/close shifts and track expected cash.

from __future__ import annotations

from decimal import Decimal

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import CreditAccount, CreditTransaction, Sale, Shift
from ..models.credits import CREDIT_TX_PAYMENT
from ..models.sales import SALE_STATUS_COMPLETED
from ..models.shifts import SHIFT_STATUS_OPEN, SHIFT_STATUS_CLOSED
from batchledger.time_utils import now_ts
from .concurrency import lock_for_update, run_atomic
from .tenant_service import require_user
from ..validation import (
    ConflictError,
    NotFoundError,
    MONEY_PLACES,
    money,
    require_choice,
    to_non_negative_decimal,
    to_positive_decimal,
)


SHIFT_STATUSES = (SHIFT_STATUS_OPEN, SHIFT_STATUS_CLOSED)


def _require_shift(business_id: int, shift_id: int, *, lock: bool = False) -> Shift:
    query = db.session.query(Shift).filter_by(id=shift_id, business_id=business_id)
    if lock:
        query = lock_for_update(query)
    shift = query.first()
    if shift is None:
        raise NotFoundError("Shift not found")
    return shift


def get_current_shift(business_id: int, user_id: int) -> Shift | None:
    """The user's open shift, if any."""
    return db.session.query(Shift).filter_by(
        business_id=business_id,
        user_id=user_id,
        status=SHIFT_STATUS_OPEN,
    ).first()


def open_shift(*, business_id: int, user_id: int, opening_cash) -> Shift:
    """
    Open a shift for a cashier.

    WHY: A shift is one cashier's period of cash accountability.
    expected_closing_cash starts at opening_cash and grows with each cash
    inflow until the shift is closed.

    Raises:
        ValidationError: opening_cash missing or negative
        NotFoundError: user not in this business
        ConflictError: user already has an open shift
    """
    opening = to_non_negative_decimal(opening_cash, "opening_cash", places=MONEY_PLACES)

    def _op():
        require_user(business_id, user_id)
        existing = lock_for_update(
            db.session.query(Shift).filter_by(
                business_id=business_id,
                user_id=user_id,
                status=SHIFT_STATUS_OPEN,
            )
        ).first()
        if existing is not None:
            raise ConflictError(f"User already has an open shift (shift {existing.id})")

        shift = Shift(
            business_id=business_id,
            user_id=user_id,
            opening_cash=opening,
            expected_closing_cash=opening,
            status=SHIFT_STATUS_OPEN,
            started_at=now_ts(),
        )
        db.session.add(shift)
        db.session.flush()
        current_app.logger.info(
            "Shift %s opened for user %s (business %s) with %s",
            shift.id, user_id, business_id, opening,
        )
        return shift

    return run_atomic(_op)


def close_shift(*, business_id: int, shift_id: int, actual_closing_cash) -> Shift:
    """
    Close a shift and record the cash variance.

    IMMUTABLE: Once closed, a shift cannot be reopened or modified.

    cash_difference = actual_closing_cash - expected_closing_cash
    (negative means the drawer is short).
    """
    actual = to_non_negative_decimal(actual_closing_cash, "actual_closing_cash", places=MONEY_PLACES)

    def _op():
        shift = _require_shift(business_id, shift_id, lock=True)
        if shift.status != SHIFT_STATUS_OPEN:
            raise ConflictError("Shift is already closed")

        expected = Decimal(shift.expected_closing_cash)
        shift.actual_closing_cash = actual
        shift.cash_difference = actual - expected
        shift.status = SHIFT_STATUS_CLOSED
        shift.ended_at = now_ts()
        db.session.flush()

        current_app.logger.info(
            "Shift %s closed: expected %s, counted %s, difference %s",
            shift.id, expected, actual, shift.cash_difference,
        )
        return shift

    return run_atomic(_op)


def record_cash_inflow(business_id: int, shift_id: int, amount, *, commit: bool = True) -> Shift:
    """Add a cash inflow to an open shift's expected closing cash."""
    value = to_positive_decimal(amount, "amount", places=MONEY_PLACES)

    def _op():
        shift = _require_shift(business_id, shift_id, lock=True)
        if shift.status != SHIFT_STATUS_OPEN:
            raise ConflictError("Shift is already closed")
        shift.expected_closing_cash = Decimal(shift.expected_closing_cash) + value
        db.session.flush()
        return shift

    return run_atomic(_op, commit=commit)


def add_cash_to_open_shift(business_id: int, user_id: int, amount, *, commit: bool = False) -> Shift | None:
    """
    Credit a cash inflow to the user's open shift, if they have one.

    Returns the shift, or None when the user has no open shift (the cash is
    then not tracked against any drawer).
    """
    shift = get_current_shift(business_id, user_id)
    if shift is None:
        return None
    return record_cash_inflow(business_id, shift.id, amount, commit=commit)


def list_shifts(business_id: int, *, status: str | None = None, user_id: int | None = None, limit: int = 100) -> list[Shift]:
    q = db.session.query(Shift).filter_by(business_id=business_id)
    if status is not None:
        require_choice(status, "status", SHIFT_STATUSES)
        q = q.filter_by(status=status)
    if user_id is not None:
        q = q.filter_by(user_id=user_id)
    return q.order_by(Shift.started_at.desc(), Shift.id.desc()).limit(limit).all()


def get_shift_summary(business_id: int, shift_id: int) -> dict:
    """
    Shift header plus what flowed through it.

    Returns:
        - shift details
        - completed sales count/total (all methods) and cash sales total
        - cash credit payments collected by the shift's user during the shift
    """
    shift = _require_shift(business_id, shift_id)

    sales_count, sales_total = (
        db.session.query(func.count(Sale.id), func.sum(Sale.total_amount))
        .filter(
            Sale.business_id == business_id,
            Sale.shift_id == shift.id,
            Sale.status == SALE_STATUS_COMPLETED,
        )
        .one()
    )
    cash_sales_total = (
        db.session.query(func.sum(Sale.total_amount))
        .filter(
            Sale.business_id == business_id,
            Sale.shift_id == shift.id,
            Sale.status == SALE_STATUS_COMPLETED,
            Sale.payment_method == "cash",
        )
        .scalar()
    )

    window_end = shift.ended_at if shift.ended_at is not None else now_ts()
    payments_count, payments_total = (
        db.session.query(func.count(CreditTransaction.id), func.sum(CreditTransaction.amount))
        .join(CreditAccount, CreditTransaction.credit_account_id == CreditAccount.id)
        .filter(
            CreditAccount.business_id == business_id,
            CreditTransaction.type == CREDIT_TX_PAYMENT,
            CreditTransaction.payment_method == "cash",
            CreditTransaction.recorded_by == shift.user_id,
            CreditTransaction.created_at >= shift.started_at,
            CreditTransaction.created_at <= window_end,
        )
        .one()
    )

    return {
        "shift": shift.to_dict(),
        "sales_count": sales_count,
        "sales_total": money(sales_total),
        "cash_sales_total": money(cash_sales_total),
        "cash_credit_payments_count": payments_count,
        "cash_credit_payments_total": money(payments_total),
        "is_closed": shift.status == SHIFT_STATUS_CLOSED,
        "cash_difference": shift.cash_difference,
    }
