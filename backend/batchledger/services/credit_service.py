# Overview: Customer credit accounts; debts from credit sales and payments against them.

from __future__ import annotations

from decimal import Decimal

from flask import current_app

from ..extensions import db
from ..models import CreditAccount, CreditTransaction
from ..models.credits import CREDIT_TX_DEBT, CREDIT_TX_PAYMENT, CREDIT_PAYMENT_METHODS
from batchledger.time_utils import now_ts
from .concurrency import lock_for_update, run_atomic
from .shift_service import add_cash_to_open_shift
from .tenant_service import require_user
from ..validation import (
    ValidationError,
    NotFoundError,
    MONEY_PLACES,
    require_choice,
    to_positive_decimal,
)


def require_account(business_id: int, account_id: int, *, lock: bool = False) -> CreditAccount:
    query = db.session.query(CreditAccount).filter_by(id=account_id, business_id=business_id)
    if lock:
        query = lock_for_update(query)
    account = query.first()
    if account is None:
        raise NotFoundError("Credit account not found")
    return account


def find_or_create_account(business_id: int, customer_name: str, customer_phone: str | None) -> CreditAccount:
    """
    Match a customer's tab by phone, or by name when no phone is given.

    Flushes a new account when none matches; never commits.
    """
    q = db.session.query(CreditAccount).filter_by(business_id=business_id)
    if customer_phone:
        q = q.filter_by(customer_phone=customer_phone)
    else:
        q = q.filter_by(customer_name=customer_name)
    account = lock_for_update(q).first()
    if account is not None:
        return account

    account = CreditAccount(
        business_id=business_id,
        customer_name=customer_name,
        customer_phone=customer_phone or None,
        total_credit=Decimal("0.00"),
        created_at=now_ts(),
    )
    db.session.add(account)
    db.session.flush()
    return account


def record_debt(
    *,
    business_id: int,
    user_id: int,
    sale_id: int,
    amount: Decimal,
    customer_name: str,
    customer_phone: str | None = None,
) -> CreditTransaction:
    """Add a credit sale to the customer's tab. Part of the sale's unit of work."""
    account = find_or_create_account(business_id, customer_name, customer_phone)
    now = now_ts()
    account.total_credit = Decimal(account.total_credit) + amount
    account.last_transaction_at = now

    tx = CreditTransaction(
        credit_account_id=account.id,
        sale_id=sale_id,
        type=CREDIT_TX_DEBT,
        amount=amount,
        recorded_by=user_id,
        created_at=now,
    )
    db.session.add(tx)
    db.session.flush()
    return tx


def record_payment(
    *,
    business_id: int,
    user_id: int,
    account_id: int,
    amount,
    payment_method: str,
    notes: str | None = None,
) -> dict:
    """
    Record a customer paying down their tab.

    A cash payment is physical cash in the drawer, so it is added exactly
    once to the recording user's open shift in the same unit of work.

    Returns:
        {"transaction", "account", "shift_id"} where shift_id is the shift
        credited with the cash (None for mpesa or when no shift is open)

    Raises:
        ValidationError: bad amount/method, or amount above the balance
        NotFoundError: account or user not in this business
    """
    value = to_positive_decimal(amount, "amount", places=MONEY_PLACES)
    require_choice(payment_method, "payment_method", CREDIT_PAYMENT_METHODS)

    def _op():
        require_user(business_id, user_id)
        account = require_account(business_id, account_id, lock=True)
        balance = Decimal(account.total_credit)
        if value > balance:
            raise ValidationError(f"Payment exceeds outstanding balance of {balance}")

        now = now_ts()
        tx = CreditTransaction(
            credit_account_id=account.id,
            type=CREDIT_TX_PAYMENT,
            amount=value,
            payment_method=payment_method,
            notes=notes,
            recorded_by=user_id,
            created_at=now,
        )
        db.session.add(tx)
        account.total_credit = balance - value
        account.last_transaction_at = now

        shift = None
        if payment_method == "cash":
            shift = add_cash_to_open_shift(business_id, user_id, value, commit=False)
        db.session.flush()

        current_app.logger.info(
            "Credit payment %s on account %s: %s via %s (shift %s)",
            tx.id, account.id, value, payment_method, shift.id if shift else None,
        )
        return {
            "transaction": tx.to_dict(),
            "account": account.to_dict(),
            "shift_id": shift.id if shift else None,
        }

    return run_atomic(_op)


def list_transactions(business_id: int, account_id: int) -> list[CreditTransaction]:
    account = require_account(business_id, account_id)
    return (
        db.session.query(CreditTransaction)
        .filter_by(credit_account_id=account.id)
        .order_by(CreditTransaction.created_at.desc(), CreditTransaction.id.desc())
        .all()
    )
