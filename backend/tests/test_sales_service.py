# Overview: Pytest coverage for sale recording (the FIFO consumer).

from decimal import Decimal

import pytest

from batchledger.models import InventoryBatch, SaleItem
from batchledger.services import breakdown_service, sales_service, shift_service
from batchledger.services.batch_service import create_batch
from batchledger.validation import ConflictError, NotFoundError, ValidationError


@pytest.fixture
def two_batches(db_session, business_a, item_a):
    old = create_batch(business_id=business_a.id, item_id=item_a.id, quantity="10", buy_price_per_unit="50", received_at=1000)
    new = create_batch(business_id=business_a.id, item_id=item_a.id, quantity="10", buy_price_per_unit="60", received_at=2000)
    return old, new


def _sale(business, user, lines, method="cash", **kwargs):
    return sales_service.record_sale(
        business_id=business.id,
        user_id=user.id,
        items=lines,
        payment_method=method,
        **kwargs,
    )


class TestRecordSale:

    def test_one_sale_item_per_batch_consumed(self, db_session, business_a, user_a, item_a, two_batches):
        old, new = two_batches
        sale = _sale(business_a, user_a, [{"item_id": item_a.id, "quantity": "12", "price": "100"}])

        lines = db_session.query(SaleItem).filter_by(sale_id=sale.id).order_by(SaleItem.id).all()
        assert [(l.inventory_batch_id, l.quantity_sold, l.buy_price_per_unit) for l in lines] == [
            (old.id, Decimal("10"), Decimal("50")),
            (new.id, Decimal("2"), Decimal("60")),
        ]
        assert [l.profit for l in lines] == [Decimal("500"), Decimal("80")]
        assert sale.total_amount == Decimal("1200")

    def test_batches_depleted(self, db_session, business_a, user_a, item_a, two_batches):
        old, new = two_batches
        _sale(business_a, user_a, [{"item_id": item_a.id, "quantity": "12", "price": "100"}])
        db_session.refresh(old)
        db_session.refresh(new)
        assert old.quantity_remaining == Decimal("0")
        assert new.quantity_remaining == Decimal("8")

    def test_stock_decremented_by_full_quantity(self, db_session, business_a, user_a, item_a, two_batches):
        item_a.current_stock = Decimal("20")
        db_session.commit()
        _sale(business_a, user_a, [{"item_id": item_a.id, "quantity": "25", "price": "100"}])
        db_session.refresh(item_a)
        assert item_a.current_stock == Decimal("-5")

    def test_shortfall_line_priced_at_latest_batch(self, db_session, business_a, user_a, item_a, two_batches):
        sale = _sale(business_a, user_a, [{"item_id": item_a.id, "quantity": "25", "price": "100"}])

        lines = db_session.query(SaleItem).filter_by(sale_id=sale.id).order_by(SaleItem.id).all()
        assert len(lines) == 3
        shortfall = lines[-1]
        assert shortfall.inventory_batch_id is None
        assert shortfall.quantity_sold == Decimal("5")
        assert shortfall.buy_price_per_unit == Decimal("60")

    def test_shortfall_priced_from_depleted_latest_batch(self, db_session, business_a, user_a, item_a, make_purchase):
        _, purchase_lines = make_purchase(business_a, user_a, "Tomatoes")
        result = breakdown_service.breakdown(
            business_id=business_a.id,
            user_id=user_a.id,
            purchase_item_id=purchase_lines[0].id,
            item_id=item_a.id,
            usable_quantity="4",
            buy_price_per_unit="45",
        )
        # drain the breakdown's batch so the next sale has nothing to consume
        _sale(business_a, user_a, [{"item_id": item_a.id, "quantity": "4", "price": "100"}])
        assert db_session.get(InventoryBatch, result["batch_id"]).quantity_remaining == Decimal("0")

        sale = _sale(business_a, user_a, [{"item_id": item_a.id, "quantity": "1", "price": "100"}])
        line = db_session.query(SaleItem).filter_by(sale_id=sale.id).one()
        # latest batch (depleted or not) still carries the price
        assert line.buy_price_per_unit == Decimal("45")

    def test_shortfall_with_no_cost_history_is_zero(self, db_session, business_a, user_a, item_a):
        sale = _sale(business_a, user_a, [{"item_id": item_a.id, "quantity": "1", "price": "100"}])
        line = db_session.query(SaleItem).filter_by(sale_id=sale.id).one()
        assert line.buy_price_per_unit == Decimal("0")
        assert line.profit == Decimal("100")

    def test_price_defaults_to_item_sell_price(self, db_session, business_a, user_a, item_a, two_batches):
        sale = _sale(business_a, user_a, [{"item_id": item_a.id, "quantity": "1.5"}])
        assert sale.total_amount == Decimal("150")

    def test_sale_linked_to_open_shift(self, db_session, business_a, user_a, item_a, two_batches):
        shift = shift_service.open_shift(business_id=business_a.id, user_id=user_a.id, opening_cash="0")
        sale = _sale(business_a, user_a, [{"item_id": item_a.id, "quantity": "1", "price": "100"}])
        assert sale.shift_id == shift.id
        db_session.refresh(shift)
        assert shift.expected_closing_cash == Decimal("100")

    def test_sale_without_shift(self, db_session, business_a, user_a, item_a):
        sale = _sale(business_a, user_a, [{"item_id": item_a.id, "quantity": "1", "price": "100"}])
        assert sale.shift_id is None

    def test_credit_sale_requires_customer_name(self, db_session, business_a, user_a, item_a):
        with pytest.raises(ValidationError, match="customer_name"):
            _sale(business_a, user_a, [{"item_id": item_a.id, "quantity": "1", "price": "100"}], method="credit")

    @pytest.mark.parametrize("lines", [
        [],
        [{"quantity": "1"}],
        [{"item_id": 1, "quantity": "0"}],
        [{"item_id": 1, "quantity": "1", "price": "-1"}],
    ])
    def test_bad_cart_rejected(self, db_session, business_a, user_a, lines):
        with pytest.raises(ValidationError):
            _sale(business_a, user_a, lines)

    def test_bad_payment_method_rejected(self, db_session, business_a, user_a, item_a):
        with pytest.raises(ValidationError):
            _sale(business_a, user_a, [{"item_id": item_a.id, "quantity": "1"}], method="barter")

    def test_inactive_item_rejected_and_nothing_written(self, db_session, business_a, user_a, item_a, two_batches):
        item_a.is_active = False
        db_session.commit()
        with pytest.raises(ConflictError):
            _sale(business_a, user_a, [{"item_id": item_a.id, "quantity": "1", "price": "100"}])
        assert db_session.query(SaleItem).count() == 0

    def test_foreign_item_rejected(self, db_session, business_a, user_a, item_b):
        with pytest.raises(NotFoundError):
            _sale(business_a, user_a, [{"item_id": item_b.id, "quantity": "1", "price": "100"}])


class TestVoidAndRead:

    def test_void_marks_sale(self, db_session, business_a, user_a, item_a):
        sale = _sale(business_a, user_a, [{"item_id": item_a.id, "quantity": "1", "price": "100"}])
        voided = sales_service.void_sale(business_id=business_a.id, sale_id=sale.id, user_id=user_a.id, reason="typo")
        assert voided.status == "voided"
        assert voided.voided_by == user_a.id
        assert voided.voided_reason == "typo"

    def test_void_twice_conflicts(self, db_session, business_a, user_a, item_a):
        sale = _sale(business_a, user_a, [{"item_id": item_a.id, "quantity": "1", "price": "100"}])
        sales_service.void_sale(business_id=business_a.id, sale_id=sale.id, user_id=user_a.id)
        with pytest.raises(ConflictError, match="already voided"):
            sales_service.void_sale(business_id=business_a.id, sale_id=sale.id, user_id=user_a.id)

    def test_get_sale_includes_lines(self, db_session, business_a, user_a, item_a, two_batches):
        sale = _sale(business_a, user_a, [{"item_id": item_a.id, "quantity": "12", "price": "100"}])
        data = sales_service.get_sale(business_a.id, sale.id)
        assert data["status"] == "completed"
        assert len(data["items"]) == 2

    def test_get_foreign_sale_not_found(self, db_session, business_a, business_b, user_a, item_a):
        sale = _sale(business_a, user_a, [{"item_id": item_a.id, "quantity": "1", "price": "100"}])
        with pytest.raises(NotFoundError):
            sales_service.get_sale(business_b.id, sale.id)
