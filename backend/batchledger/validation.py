from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any, Iterable


# Upper bound for any quantity or money value accepted from clients.
# Keeps values inside Numeric(14, x) columns.
MAX_VALUE = Decimal("9999999999")

QUANTITY_PLACES = Decimal("0.001")
UNIT_PRICE_PLACES = Decimal("0.0001")
MONEY_PLACES = Decimal("0.01")


class ValidationError(ValueError):
    """400-level input problem."""


class NotFoundError(ValueError):
    """404-level missing (or foreign-tenant) reference."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., shift already closed)."""


def require_fields(payload: dict | None, fields: Iterable[str]) -> dict:
    """
    Check that every field in `fields` is present and not None/blank.

    Returns the payload so callers can chain.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    missing = []
    for f in fields:
        value = payload.get(f)
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.append(f)
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")
    return payload


def to_decimal(value: Any, field: str, *, places: Decimal | None = None) -> Decimal:
    """
    Coerce JSON input to Decimal.

    Rejects booleans, NaN/Infinity, blank strings and anything outside MAX_VALUE.
    Floats go through str() so 0.1 stays 0.1.
    """
    if value is None:
        raise ValidationError(f"{field} is required")
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    if isinstance(value, Decimal):
        dec = value
    elif isinstance(value, (int, float)):
        dec = Decimal(str(value))
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be a number")
        try:
            dec = Decimal(stripped)
        except InvalidOperation:
            raise ValidationError(f"{field} must be a number")
    else:
        raise ValidationError(f"{field} must be a number")

    if not dec.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    if abs(dec) > MAX_VALUE:
        raise ValidationError(f"{field} cannot exceed {MAX_VALUE}")
    if places is not None:
        dec = dec.quantize(places)
    return dec


def to_positive_decimal(value: Any, field: str, *, places: Decimal | None = None) -> Decimal:
    dec = to_decimal(value, field, places=places)
    if dec <= 0:
        raise ValidationError(f"{field} must be greater than 0")
    return dec


def to_non_negative_decimal(value: Any, field: str, *, places: Decimal | None = None) -> Decimal:
    dec = to_decimal(value, field, places=places)
    if dec < 0:
        raise ValidationError(f"{field} must be >= 0")
    return dec


def to_int(value: Any, field: str) -> int:
    """Strict integer coercion: rejects floats, decimals and scientific notation."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if stripped.lstrip("-").isdigit():
            return int(stripped)
    raise ValidationError(f"{field} must be an integer")


def require_choice(value: Any, field: str, choices: Iterable[str]) -> str:
    choices = tuple(choices)
    if value not in choices:
        raise ValidationError(f"Invalid {field}: {value!r} (expected one of {', '.join(choices)})")
    return value


def money(value: Any) -> Decimal:
    """Quantize an aggregate (possibly float from SQLite) to 2 decimal places."""
    if value is None:
        return Decimal("0.00")
    return Decimal(str(value)).quantize(MONEY_PLACES)
