# Overview: Tenant scoping helpers; every lookup is filtered by business_id.

from __future__ import annotations

from ..extensions import db
from ..models import Business, User, Category, Item
from ..models.inventory import UNIT_TYPES
from ..models.tenancy import USER_ROLES
from .concurrency import lock_for_update
from ..validation import (
    ValidationError,
    NotFoundError,
    ConflictError,
    QUANTITY_PLACES,
    UNIT_PRICE_PLACES,
    require_choice,
    to_non_negative_decimal,
)


def require_business(business_id: int) -> Business:
    business = db.session.get(Business, business_id)
    if business is None:
        raise NotFoundError("Business not found")
    return business


def require_user(business_id: int, user_id: int) -> User:
    """
    Resolve a user inside a business.

    A user from another business is reported exactly like a missing one so
    the response does not reveal that the id exists elsewhere.
    """
    user = db.session.query(User).filter_by(id=user_id, business_id=business_id).first()
    if user is None:
        raise NotFoundError("User not found")
    return user


def require_item(
    business_id: int,
    item_id: int,
    *,
    require_active: bool = False,
    lock: bool = False,
) -> Item:
    query = db.session.query(Item).filter_by(id=item_id, business_id=business_id)
    if lock:
        query = lock_for_update(query)
    item = query.first()
    if item is None:
        raise NotFoundError("Item not found")
    if require_active and not item.is_active:
        raise ConflictError("Item is inactive")
    return item


def create_business(*, name: str, currency: str = "KES", timezone: str = "UTC") -> Business:
    name = (name or "").strip()
    if not name:
        raise ValidationError("name is required")
    business = Business(name=name, currency=currency, timezone=timezone)
    db.session.add(business)
    db.session.commit()
    return business


def create_user(*, business_id: int, name: str, email: str, role: str = "cashier") -> User:
    """
    Add a staff member to a business.

    Raises:
        ValidationError: blank name/email or unknown role
        ConflictError: email already used in this business
    """
    require_business(business_id)
    require_choice(role, "role", USER_ROLES)
    name = (name or "").strip()
    email = (email or "").strip().lower()
    if not name or not email:
        raise ValidationError("name and email are required")
    if db.session.query(User).filter_by(business_id=business_id, email=email).first():
        raise ConflictError(f"User with email {email} already exists in this business")

    user = User(business_id=business_id, name=name, email=email, role=role)
    db.session.add(user)
    db.session.commit()
    return user


def create_item(
    *,
    business_id: int,
    name: str,
    unit_type: str = "piece",
    sell_price=0,
    min_stock_level=None,
    category_id: int | None = None,
) -> Item:
    """New item with zero stock; stock only arrives through breakdowns and adjustments."""
    require_business(business_id)
    require_choice(unit_type, "unit_type", UNIT_TYPES)
    name = (name or "").strip()
    if not name:
        raise ValidationError("name is required")
    if category_id is not None:
        category = db.session.query(Category).filter_by(id=category_id, business_id=business_id).first()
        if category is None:
            raise NotFoundError("Category not found")

    item = Item(
        business_id=business_id,
        category_id=category_id,
        name=name,
        unit_type=unit_type,
        current_stock=0,
        current_sell_price=to_non_negative_decimal(sell_price, "sell_price", places=UNIT_PRICE_PLACES),
        min_stock_level=(
            to_non_negative_decimal(min_stock_level, "min_stock_level", places=QUANTITY_PLACES)
            if min_stock_level is not None else None
        ),
    )
    db.session.add(item)
    db.session.commit()
    return item
