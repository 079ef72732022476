# Overview: Pytest coverage for shift open/close and cash reconciliation.

from decimal import Decimal

import pytest

from batchledger.models import CreditAccount
from batchledger.services import credit_service, sales_service, shift_service
from batchledger.services.batch_service import create_batch
from batchledger.validation import ConflictError, NotFoundError, ValidationError


def _cash_sale(business, user, item, quantity="2", price="100"):
    return sales_service.record_sale(
        business_id=business.id,
        user_id=user.id,
        items=[{"item_id": item.id, "quantity": quantity, "price": price}],
        payment_method="cash",
    )


class TestShiftLifecycle:

    def test_open_sets_expected_to_opening(self, db_session, business_a, user_a):
        shift = shift_service.open_shift(business_id=business_a.id, user_id=user_a.id, opening_cash="1000")
        assert shift.status == "open"
        assert shift.opening_cash == Decimal("1000")
        assert shift.expected_closing_cash == Decimal("1000")

    def test_second_open_shift_rejected(self, db_session, business_a, user_a):
        shift_service.open_shift(business_id=business_a.id, user_id=user_a.id, opening_cash="0")
        with pytest.raises(ConflictError, match="already has an open shift"):
            shift_service.open_shift(business_id=business_a.id, user_id=user_a.id, opening_cash="0")

    def test_other_user_can_open_concurrently(self, db_session, business_a, user_a, cashier_a):
        shift_service.open_shift(business_id=business_a.id, user_id=user_a.id, opening_cash="0")
        shift = shift_service.open_shift(business_id=business_a.id, user_id=cashier_a.id, opening_cash="500")
        assert shift.user_id == cashier_a.id

    def test_negative_opening_cash_rejected(self, db_session, business_a, user_a):
        with pytest.raises(ValidationError):
            shift_service.open_shift(business_id=business_a.id, user_id=user_a.id, opening_cash="-1")

    def test_close_records_difference(self, db_session, business_a, user_a):
        shift = shift_service.open_shift(business_id=business_a.id, user_id=user_a.id, opening_cash="1000")
        closed = shift_service.close_shift(business_id=business_a.id, shift_id=shift.id, actual_closing_cash="1010")
        assert closed.status == "closed"
        assert closed.actual_closing_cash == Decimal("1010")
        assert closed.cash_difference == Decimal("10")
        assert closed.ended_at is not None

    def test_closed_shift_is_immutable(self, db_session, business_a, user_a):
        shift = shift_service.open_shift(business_id=business_a.id, user_id=user_a.id, opening_cash="100")
        shift_service.close_shift(business_id=business_a.id, shift_id=shift.id, actual_closing_cash="100")

        with pytest.raises(ConflictError, match="already closed"):
            shift_service.close_shift(business_id=business_a.id, shift_id=shift.id, actual_closing_cash="100")
        with pytest.raises(ConflictError):
            shift_service.record_cash_inflow(business_a.id, shift.id, "50")

    def test_reopen_after_close(self, db_session, business_a, user_a):
        shift = shift_service.open_shift(business_id=business_a.id, user_id=user_a.id, opening_cash="100")
        shift_service.close_shift(business_id=business_a.id, shift_id=shift.id, actual_closing_cash="100")
        again = shift_service.open_shift(business_id=business_a.id, user_id=user_a.id, opening_cash="200")
        assert again.id != shift.id

    def test_unknown_shift_is_not_found(self, db_session, business_a):
        with pytest.raises(NotFoundError):
            shift_service.close_shift(business_id=business_a.id, shift_id=424242, actual_closing_cash="0")

    def test_current_shift(self, db_session, business_a, user_a):
        assert shift_service.get_current_shift(business_a.id, user_a.id) is None
        shift = shift_service.open_shift(business_id=business_a.id, user_id=user_a.id, opening_cash="0")
        assert shift_service.get_current_shift(business_a.id, user_a.id).id == shift.id

    def test_list_shifts_by_status(self, db_session, business_a, user_a, cashier_a):
        first = shift_service.open_shift(business_id=business_a.id, user_id=user_a.id, opening_cash="0")
        shift_service.close_shift(business_id=business_a.id, shift_id=first.id, actual_closing_cash="0")
        shift_service.open_shift(business_id=business_a.id, user_id=cashier_a.id, opening_cash="0")

        assert len(shift_service.list_shifts(business_a.id)) == 2
        assert [s.user_id for s in shift_service.list_shifts(business_a.id, status="open")] == [cashier_a.id]


class TestCashReconciliation:

    def test_cash_sale_and_cash_credit_payment_reconcile(self, db_session, business_a, user_a, item_a):
        """opening 1000 + cash sale 200 + cash credit payment 50 = 1250; counted 1245 -> -5."""
        shift = shift_service.open_shift(business_id=business_a.id, user_id=user_a.id, opening_cash="1000")

        _cash_sale(business_a, user_a, item_a, quantity="2", price="100")

        sales_service.record_sale(
            business_id=business_a.id,
            user_id=user_a.id,
            items=[{"item_id": item_a.id, "quantity": "1", "price": "100"}],
            payment_method="credit",
            customer_name="Wanjiru",
            customer_phone="0700000001",
        )
        account = db_session.query(CreditAccount).filter_by(customer_phone="0700000001").one()
        credit_service.record_payment(
            business_id=business_a.id,
            user_id=user_a.id,
            account_id=account.id,
            amount="50",
            payment_method="cash",
        )

        db_session.refresh(shift)
        assert shift.expected_closing_cash == Decimal("1250")

        closed = shift_service.close_shift(business_id=business_a.id, shift_id=shift.id, actual_closing_cash="1245")
        assert closed.cash_difference == Decimal("-5")

    def test_non_cash_sales_leave_expected_cash_alone(self, db_session, business_a, user_a, item_a):
        shift = shift_service.open_shift(business_id=business_a.id, user_id=user_a.id, opening_cash="300")
        sales_service.record_sale(
            business_id=business_a.id,
            user_id=user_a.id,
            items=[{"item_id": item_a.id, "quantity": "1", "price": "100"}],
            payment_method="mpesa",
        )
        db_session.refresh(shift)
        assert shift.expected_closing_cash == Decimal("300")

    def test_cash_inflow(self, db_session, business_a, user_a):
        shift = shift_service.open_shift(business_id=business_a.id, user_id=user_a.id, opening_cash="10")
        updated = shift_service.record_cash_inflow(business_a.id, shift.id, "15.50")
        assert updated.expected_closing_cash == Decimal("25.50")

    def test_cash_inflow_must_be_positive(self, db_session, business_a, user_a):
        shift = shift_service.open_shift(business_id=business_a.id, user_id=user_a.id, opening_cash="10")
        with pytest.raises(ValidationError):
            shift_service.record_cash_inflow(business_a.id, shift.id, "0")

    def test_add_cash_without_open_shift_is_noop(self, db_session, business_a, user_a):
        assert shift_service.add_cash_to_open_shift(business_a.id, user_a.id, "10", commit=True) is None


class TestShiftSummary:

    def test_summary_counts_sales_and_cash_payments(self, db_session, business_a, user_a, item_a):
        create_batch(business_id=business_a.id, item_id=item_a.id, quantity="50", buy_price_per_unit="40")
        shift = shift_service.open_shift(business_id=business_a.id, user_id=user_a.id, opening_cash="0")

        _cash_sale(business_a, user_a, item_a, quantity="1", price="100")
        voided = _cash_sale(business_a, user_a, item_a, quantity="1", price="100")
        sales_service.void_sale(business_id=business_a.id, sale_id=voided.id, user_id=user_a.id)
        sales_service.record_sale(
            business_id=business_a.id,
            user_id=user_a.id,
            items=[{"item_id": item_a.id, "quantity": "3", "price": "100"}],
            payment_method="credit",
            customer_name="Otieno",
        )
        account = db_session.query(CreditAccount).filter_by(customer_name="Otieno").one()
        credit_service.record_payment(
            business_id=business_a.id, user_id=user_a.id, account_id=account.id, amount="120", payment_method="cash",
        )
        credit_service.record_payment(
            business_id=business_a.id, user_id=user_a.id, account_id=account.id, amount="30", payment_method="mpesa",
        )

        summary = shift_service.get_shift_summary(business_a.id, shift.id)
        assert summary["sales_count"] == 2
        assert summary["sales_total"] == Decimal("400.00")
        assert summary["cash_sales_total"] == Decimal("100.00")
        assert summary["cash_credit_payments_count"] == 1
        assert summary["cash_credit_payments_total"] == Decimal("120.00")
        assert summary["is_closed"] is False
