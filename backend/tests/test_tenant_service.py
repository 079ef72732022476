# Overview: Pytest coverage for tenant bootstrap helpers and the CLI that wraps them.

from decimal import Decimal

import pytest

from batchledger.models import Business, Item
from batchledger.services import tenant_service
from batchledger.validation import ConflictError, NotFoundError, ValidationError


class TestBootstrap:

    def test_create_business(self, db_session):
        business = tenant_service.create_business(name="  Duka La Mama  ")
        assert business.name == "Duka La Mama"
        assert business.currency == "KES"

    def test_blank_business_name_rejected(self, db_session):
        with pytest.raises(ValidationError):
            tenant_service.create_business(name="   ")

    def test_duplicate_email_in_business_rejected(self, db_session, business_a, user_a):
        with pytest.raises(ConflictError):
            tenant_service.create_user(business_id=business_a.id, name="Dup", email="OWNER@a.test")

    def test_same_email_allowed_in_other_business(self, db_session, business_b, user_a):
        user = tenant_service.create_user(business_id=business_b.id, name="Other", email="owner@a.test")
        assert user.business_id == business_b.id

    def test_unknown_role_rejected(self, db_session, business_a):
        with pytest.raises(ValidationError):
            tenant_service.create_user(business_id=business_a.id, name="X", email="x@a.test", role="janitor")

    def test_create_item_starts_empty(self, db_session, business_a, category_a):
        item = tenant_service.create_item(
            business_id=business_a.id,
            name="Sukuma",
            unit_type="bunch",
            sell_price="20",
            min_stock_level="3",
            category_id=category_a.id,
        )
        assert item.current_stock == Decimal("0")
        assert item.current_sell_price == Decimal("20")
        assert item.min_stock_level == Decimal("3")

    def test_create_item_with_foreign_category(self, db_session, business_b, category_a):
        with pytest.raises(NotFoundError):
            tenant_service.create_item(business_id=business_b.id, name="Sukuma", category_id=category_a.id)


class TestCli:

    def test_businesses_create_and_list(self, app, db_session):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["businesses", "create", "--name", "Kibanda"])
        assert result.exit_code == 0
        assert "Created business: Kibanda" in result.output
        assert db_session.query(Business).filter_by(name="Kibanda").count() == 1

        result = runner.invoke(args=["businesses", "list"])
        assert "Kibanda" in result.output

    def test_items_create_and_low_stock(self, app, db_session, business_a):
        runner = app.test_cli_runner()
        result = runner.invoke(args=[
            "items", "create", "--business-id", str(business_a.id),
            "--name", "Mangoes", "--unit-type", "piece", "--sell-price", "30", "--min-stock", "10",
        ])
        assert result.exit_code == 0
        assert db_session.query(Item).filter_by(name="Mangoes").count() == 1

        result = runner.invoke(args=["stock", "low", "--business-id", str(business_a.id)])
        assert "Mangoes" in result.output

    def test_users_create_unknown_business_fails(self, app, db_session):
        runner = app.test_cli_runner()
        result = runner.invoke(args=[
            "users", "create", "--business-id", "999", "--name", "Ghost", "--email", "g@x.test",
        ])
        assert result.exit_code != 0
        assert "Business not found" in result.output
