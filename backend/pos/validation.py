from __future__ import annotations
from datetime import datetime
from decimal import Decimal, InvalidOperation
from pos.time_utils import parse_iso_datetime

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta

from pos.services.pricing_service import AmountDiscount, Discount, PercentageDiscount


# Maximum price: $9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999

# Tax rate is capped at 30% (3000 basis points)
MAX_TAX_RATE_BPS = 3000

MAX_QUANTITY = 100_000


class ValidationError(ValueError):
    """400-level input problem, optionally tied to a single field."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field

    def to_dict(self) -> dict:
        body = {"error": str(self), "code": "VALIDATION_ERROR"}
        if self.field:
            body["field"] = self.field
        return body


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate category name)."""


class NotFoundError(LookupError):
    """404-level: record absent or outside the caller's scope."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_int(key: str, value: Any) -> int:
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    # String input - must be plain digits (with optional leading minus)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be an integer", field=key)
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)", field=key)
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise ValidationError(f"{key} must be an integer (no decimals)", field=key)
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer", field=key)
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal", field=key)
    raise ValidationError(f"{key} must be an integer", field=key)


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return _coerce_int(col.key, value)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be true or false", field=col.key)

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime", field=col.key)
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime", field=col.key)
            return dt
        raise ValidationError(f"{col.key} must be a datetime", field=col.key)

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        if isinstance(value, (dict, list)):
            raise ValidationError(f"{col.key} must be a string", field=col.key)
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}", field=missing[0])

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}", field=k)
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}", field=k)

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null", field=k)
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank", field=k)

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}", field=k)

        patch[k] = val

    return patch


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    if "price_cents" in patch and patch["price_cents"] is not None:
        price = patch["price_cents"]
        if price < 0:
            raise ValidationError("price_cents must be >= 0", field="price_cents")
        if price > MAX_PRICE_CENTS:
            raise ValidationError(
                f"price_cents cannot exceed {MAX_PRICE_CENTS} (${MAX_PRICE_CENTS / 100:,.2f})",
                field="price_cents",
            )

    if "inventory" in patch and patch["inventory"] is not None:
        if patch["inventory"] < 0:
            raise ValidationError("inventory must be >= 0", field="inventory")


def enforce_rules_settings(patch: dict) -> None:
    if "tax_rate_bps" in patch:
        rate = patch["tax_rate_bps"]
        if rate < 0 or rate > MAX_TAX_RATE_BPS:
            raise ValidationError("tax_rate_bps must be between 0 and 3000 (0-30%)", field="tax_rate_bps")

    if "currency" in patch:
        currency = patch["currency"]
        if len(currency) != 3 or not currency.isalpha():
            raise ValidationError("currency must be a 3-letter code", field="currency")
        patch["currency"] = currency.upper()

    if "store_name" in patch and len(patch["store_name"]) < 2:
        raise ValidationError("store_name must be at least 2 characters", field="store_name")

    email = patch.get("store_email")
    if email and "@" not in email:
        raise ValidationError("store_email must be an email address", field="store_email")


def parse_quantity(value: Any, *, field: str = "quantity", allow_non_positive: bool = False) -> int:
    """
    Strict integer quantity parsing for cart input.

    Zero and negative values are only accepted where they mean "delete"
    (allow_non_positive=True).
    """
    if value is None:
        raise ValidationError(f"{field} is required", field=field)
    qty = _coerce_int(field, value)
    if not allow_non_positive and qty <= 0:
        raise ValidationError(f"{field} must be a positive integer", field=field)
    if abs(qty) > MAX_QUANTITY:
        raise ValidationError(f"{field} cannot exceed {MAX_QUANTITY}", field=field)
    return qty


def parse_money_cents(value: Any, *, field: str) -> int:
    cents = _coerce_int(field, value)
    if cents < 0:
        raise ValidationError(f"{field} must be >= 0", field=field)
    if cents > MAX_PRICE_CENTS:
        raise ValidationError(f"{field} cannot exceed {MAX_PRICE_CENTS}", field=field)
    return cents


def parse_payment_method(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("payment_method is required", field="payment_method")
    method = value.strip()
    if len(method) > 32:
        raise ValidationError("payment_method exceeds max length 32", field="payment_method")
    return method


def parse_discount(payload: Any) -> Discount | None:
    """
    Parse {"kind": "percentage"|"amount", "value": ...} into a Discount.

    percentage: value is a percent (0-100, decimals allowed)
    amount: value is whole cents
    A missing payload or a zero value means no discount.
    """
    if payload is None:
        return None
    if not isinstance(payload, dict):
        raise ValidationError("discount must be an object", field="discount")

    kind = payload.get("kind")
    value = payload.get("value")
    if value is None:
        raise ValidationError("discount.value is required", field="discount.value")

    if kind == "percentage":
        if isinstance(value, bool) or not isinstance(value, (int, float, str)):
            raise ValidationError("discount.value must be a number", field="discount.value")
        try:
            percent = Decimal(str(value).strip())
        except InvalidOperation:
            raise ValidationError("discount.value must be a number", field="discount.value")
        if not percent.is_finite():
            raise ValidationError("discount.value must be a number", field="discount.value")
        if percent < 0:
            raise ValidationError("discount.value must be >= 0", field="discount.value")
        if percent > 100:
            raise ValidationError("percentage discount cannot exceed 100", field="discount.value")
        if percent == 0:
            return None
        return PercentageDiscount(percent)

    if kind == "amount":
        cents = parse_money_cents(value, field="discount.value")
        if cents == 0:
            return None
        return AmountDiscount(cents)

    raise ValidationError("discount.kind must be 'percentage' or 'amount'", field="discount.kind")


def parse_id(value: Any, *, field: str) -> int:
    if value is None:
        raise ValidationError(f"{field} is required", field=field)
    ident = _coerce_int(field, value)
    if ident <= 0:
        raise ValidationError(f"{field} must be a positive integer", field=field)
    return ident


def require_json_object(payload: Any) -> dict:
    """Request body as a dict. A missing or unparsable body reads as {}."""
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload
