# Overview: Pytest coverage for delta adjustments and stock takes.

from decimal import Decimal

import pytest

from batchledger.models import StockAdjustment
from batchledger.services.adjustment_service import (
    adjust_stock,
    list_adjustments,
    list_low_stock_items,
    stock_take,
)
from batchledger.validation import NotFoundError, ValidationError


@pytest.fixture
def stocked_item(db_session, item_a):
    item_a.current_stock = Decimal("20")
    db_session.commit()
    return item_a


class TestDeltaAdjustment:

    def test_decrease_records_snapshot(self, db_session, business_a, user_a, stocked_item):
        result = adjust_stock(
            business_id=business_a.id,
            user_id=user_a.id,
            item_id=stocked_item.id,
            adjustment_type="decrease",
            quantity="3",
            reason="theft",
        )
        assert result["system_stock"] == Decimal("20")
        assert result["actual_stock"] == Decimal("17")
        assert result["difference"] == Decimal("-3")

        adjustment = db_session.get(StockAdjustment, result["adjustment_id"])
        assert adjustment.reason == "theft"
        assert adjustment.adjusted_by == user_a.id
        db_session.refresh(stocked_item)
        assert stocked_item.current_stock == Decimal("17")

    def test_increase(self, db_session, business_a, user_a, stocked_item):
        result = adjust_stock(
            business_id=business_a.id,
            user_id=user_a.id,
            item_id=stocked_item.id,
            adjustment_type="increase",
            quantity="5.5",
            reason="restock",
        )
        assert result["difference"] == Decimal("5.5")
        db_session.refresh(stocked_item)
        assert stocked_item.current_stock == Decimal("25.5")

    def test_decrease_clamps_at_zero(self, db_session, business_a, user_a, stocked_item):
        result = adjust_stock(
            business_id=business_a.id,
            user_id=user_a.id,
            item_id=stocked_item.id,
            adjustment_type="decrease",
            quantity="50",
            reason="spoilage",
        )
        assert result["actual_stock"] == Decimal("0")
        assert result["difference"] == Decimal("-20")
        db_session.refresh(stocked_item)
        assert stocked_item.current_stock == Decimal("0")

    def test_decrease_at_zero_writes_nothing(self, db_session, business_a, user_a, item_a):
        result = adjust_stock(
            business_id=business_a.id,
            user_id=user_a.id,
            item_id=item_a.id,
            adjustment_type="decrease",
            quantity="1",
            reason="damage",
        )
        assert result["adjustment_id"] is None
        assert result["difference"] == Decimal("0")
        assert db_session.query(StockAdjustment).count() == 0

    @pytest.mark.parametrize("overrides", [
        {"adjustment_type": "sideways"},
        {"reason": "mystery"},
        {"quantity": "0"},
        {"quantity": "-2"},
        {"quantity": True},
    ])
    def test_invalid_input_rejected(self, db_session, business_a, user_a, stocked_item, overrides):
        params = dict(adjustment_type="decrease", quantity="1", reason="theft")
        params.update(overrides)
        with pytest.raises(ValidationError):
            adjust_stock(business_id=business_a.id, user_id=user_a.id, item_id=stocked_item.id, **params)
        assert db_session.query(StockAdjustment).count() == 0

    def test_foreign_item_not_found(self, db_session, business_a, user_a, item_b):
        with pytest.raises(NotFoundError):
            adjust_stock(
                business_id=business_a.id,
                user_id=user_a.id,
                item_id=item_b.id,
                adjustment_type="decrease",
                quantity="1",
                reason="theft",
            )


class TestStockTake:

    def test_matching_count_writes_no_row(self, db_session, business_a, user_a, stocked_item):
        result = stock_take(
            business_id=business_a.id,
            user_id=user_a.id,
            entries=[{"item_id": stocked_item.id, "actual_stock": "20", "reason": "counting_error"}],
        )
        assert result["processed"] == 1
        assert result["adjustments"] == 0
        row = result["results"][0]
        assert row["status"] == "unchanged"
        assert row["difference"] == Decimal("0")
        assert row["note"] == "No adjustment needed"
        assert db_session.query(StockAdjustment).count() == 0

    def test_absolute_count_sets_stock(self, db_session, business_a, user_a, stocked_item, item_a2):
        result = stock_take(
            business_id=business_a.id,
            user_id=user_a.id,
            entries=[
                {"item_id": stocked_item.id, "actual_stock": "18", "reason": "counting_error"},
                {"item_id": item_a2.id, "actual_stock": "4", "reason": "restock", "notes": "found in store room"},
            ],
        )
        assert result["processed"] == 2
        assert result["adjustments"] == 2
        assert [r["difference"] for r in result["results"]] == [Decimal("-2"), Decimal("4")]

        db_session.refresh(stocked_item)
        db_session.refresh(item_a2)
        assert stocked_item.current_stock == Decimal("18")
        assert item_a2.current_stock == Decimal("4")

    def test_negative_count_clamped_to_zero(self, db_session, business_a, user_a, stocked_item):
        stock_take(
            business_id=business_a.id,
            user_id=user_a.id,
            entries=[{"item_id": stocked_item.id, "actual_stock": "-3", "reason": "counting_error"}],
        )
        db_session.refresh(stocked_item)
        assert stocked_item.current_stock == Decimal("0")

    def test_invalid_rows_skipped_rest_applied(self, db_session, business_a, user_a, stocked_item, item_a2, item_b):
        result = stock_take(
            business_id=business_a.id,
            user_id=user_a.id,
            entries=[
                {"item_id": stocked_item.id, "actual_stock": "15", "reason": "theft"},
                {"item_id": item_b.id, "actual_stock": "1", "reason": "theft"},
                {"item_id": item_a2.id, "reason": "theft"},
                {"item_id": item_a2.id, "actual_stock": "2", "reason": "not-a-reason"},
                "garbage",
                {"item_id": item_a2.id, "actual_stock": "3", "reason": "restock"},
            ],
        )
        assert result["processed"] == 2
        assert result["adjustments"] == 2
        assert result["skipped"] == 4
        assert [r["status"] for r in result["results"]] == [
            "adjusted", "skipped", "skipped", "skipped", "skipped", "adjusted",
        ]
        assert result["results"][1]["error"] == "Item not found"

        db_session.refresh(stocked_item)
        db_session.refresh(item_a2)
        assert stocked_item.current_stock == Decimal("15")
        assert item_a2.current_stock == Decimal("3")

    def test_foreign_item_stock_untouched(self, db_session, business_a, user_a, item_b):
        stock_take(
            business_id=business_a.id,
            user_id=user_a.id,
            entries=[{"item_id": item_b.id, "actual_stock": "0", "reason": "theft"}],
        )
        db_session.refresh(item_b)
        assert item_b.current_stock == Decimal("10")

    def test_empty_entries_rejected(self, db_session, business_a, user_a):
        with pytest.raises(ValidationError, match="Items are required"):
            stock_take(business_id=business_a.id, user_id=user_a.id, entries=[])


class TestQueries:

    def test_list_adjustments_newest_first(self, db_session, business_a, user_a, stocked_item):
        for qty in ("1", "2"):
            adjust_stock(
                business_id=business_a.id,
                user_id=user_a.id,
                item_id=stocked_item.id,
                adjustment_type="decrease",
                quantity=qty,
                reason="spoilage",
            )
        history = list_adjustments(business_a.id, item_id=stocked_item.id)
        assert [a.difference for a in history] == [Decimal("-2"), Decimal("-1")]

    def test_low_stock_items(self, db_session, business_a, item_a, item_a2):
        # item_a: stock 0, minimum 5 -> low; item_a2 has no minimum
        assert [i.id for i in list_low_stock_items(business_a.id)] == [item_a.id]
