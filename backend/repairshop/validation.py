from __future__ import annotations
from datetime import datetime
from repairshop.money import to_cents
from repairshop.time_utils import parse_iso_datetime

import re
from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text, DateTime
from sqlalchemy.orm import DeclarativeMeta


# Maximum price: 9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999

# Ledger kinds a caller may record by hand; SALE entries only come from sales
MANUAL_TRANSACTION_TYPES = ("IN", "OUT", "ADJUST")

PAYMENT_METHODS = ("CASH", "CARD", "ONLINE", "OTHER")

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class ValidationError(ValueError):
    """400-level input problem."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field

    def to_dict(self) -> dict:
        body = {"error": str(self)}
        if self.field:
            body["details"] = [{"field": self.field, "message": str(self)}]
        return body


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate SKU)."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: payload keys clients are allowed to send (security boundary)
    - required_on_create: payload keys required for POST
    - aliases: payload key -> column key, for camelCase JSON over snake_case columns
    - money_fields: payload keys sent as currency amounts and stored as integer cents
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore
    aliases: dict[str, str] | None = None
    money_fields: set[str] | None = None

    def column_for(self, key: str) -> str:
        return (self.aliases or {}).get(key, key)


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_money(value: Any, field: str) -> int:
    # Currency amount in, integer cents out
    if isinstance(value, (dict, list)):
        raise ValidationError(f"{field} must be a number", field)
    try:
        return to_cents(value)
    except ValueError:
        raise ValidationError(f"{field} must be a number", field)


def _coerce_value(col, value: Any, field: str):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        # Already an int (but not bool which is a subclass of int)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        # String input - must be plain digits (with optional leading minus)
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                raise ValidationError(f"{field} must be an integer", field)
            # Reject scientific notation (e.g., "1e15", "1E10")
            if 'e' in stripped.lower():
                raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)", field)
            # Reject decimal points (e.g., "12.5")
            if '.' in stripped:
                raise ValidationError(f"{field} must be an integer (no decimals)", field)
            try:
                return int(stripped)
            except ValueError:
                raise ValidationError(f"{field} must be an integer", field)
        # Whole floats from JSON clients (4.0) are accepted, fractions are not
        if isinstance(value, float):
            if value.is_integer():
                return int(value)
            raise ValidationError(f"{field} must be an integer, not a decimal", field)
        raise ValidationError(f"{field} must be an integer", field)

    # Booleans
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        # fallback: truthiness
        return bool(value)

    # Datetimes (accept ISO-8601 strings; normalize to UTC)
    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{field} must be an ISO-8601 datetime", field)
            if dt is None:
                raise ValidationError(f"{field} must be an ISO-8601 datetime", field)
            return dt
        raise ValidationError(f"{field} must be a datetime", field)

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        if isinstance(value, (dict, list)):
            raise ValidationError(f"{field} must be a string", field)
        return str(value).strip()

    # Default: leave as-is
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
    Returns a cleaned patch dict keyed by column name, with only writable fields.

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
            raise ValidationError(f"Missing required fields: {', '.join(missing)}", missing[0])

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}", k)
        if policy.column_for(k) not in cols:
            raise ValidationError(f"Unknown field: {k}", k)

    patch: dict = {}

    for k, raw in payload.items():
        key = policy.column_for(k)
        col = cols[key]

        # NULL handling
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null", k)
            patch[key] = None
            continue

        if k in (policy.money_fields or set()):
            val = _coerce_money(raw, k)
        else:
            val = _coerce_value(col, raw, k)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank", k)

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}", k)

        patch[key] = val

    return patch


def _require_range(patch: dict, key: str, field: str, *, minimum: int, maximum: int | None = None) -> None:
    if key not in patch or patch[key] is None:
        return
    value = patch[key]
    if value < minimum:
        raise ValidationError(f"{field} must be >= {minimum}", field)
    if maximum is not None and value > maximum:
        raise ValidationError(f"{field} cannot exceed {maximum}", field)


def _require_price(patch: dict, key: str, field: str) -> None:
    if key not in patch or patch[key] is None:
        return
    cents = patch[key]
    if cents < 0:
        raise ValidationError(f"{field} must be >= 0", field)
    if cents > MAX_PRICE_CENTS:
        raise ValidationError(f"{field} cannot exceed {MAX_PRICE_CENTS / 100:,.2f}", field)


def enforce_rules_part(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    _require_price(patch, "real_cost_cents", "realCost")
    _require_price(patch, "selling_price_cents", "sellingPrice")
    _require_range(patch, "stock", "stock", minimum=0)
    _require_range(patch, "low_stock_threshold", "lowStockThreshold", minimum=0)


def enforce_rules_transaction(patch: dict) -> None:
    # Any integer quantity; IN/OUT sign is normalised by the ledger
    if patch.get("type") not in MANUAL_TRANSACTION_TYPES:
        raise ValidationError(f"type must be one of {', '.join(MANUAL_TRANSACTION_TYPES)}", "type")

    if patch.get("quantity") is None:
        raise ValidationError("quantity is required", "quantity")


def enforce_rules_sale(patch: dict) -> None:
    if patch.get("payment_method") not in PAYMENT_METHODS:
        raise ValidationError(f"paymentMethod must be one of {', '.join(PAYMENT_METHODS)}", "paymentMethod")

    _require_price(patch, "discount_cents", "discount")

    # Empty email is treated as "not provided"
    email = patch.get("customer_email")
    if email == "":
        patch["customer_email"] = None
    elif email is not None and not EMAIL_RE.match(email):
        raise ValidationError("customerEmail must be a valid email address", "customerEmail")


def enforce_rules_sale_item(patch: dict, index: int) -> None:
    # Every line sells at least one unit at a positive price
    if patch["quantity"] <= 0:
        raise ValidationError(f"items[{index}].quantity must be > 0", f"items[{index}].quantity")
    if patch["unit_price_cents"] <= 0:
        raise ValidationError(f"items[{index}].unitPrice must be > 0", f"items[{index}].unitPrice")
    if patch["total_price_cents"] <= 0:
        raise ValidationError(f"items[{index}].totalPrice must be > 0", f"items[{index}].totalPrice")


def parse_id_list(raw: Any, field: str) -> list[int]:
    """Normalize a JSON list of ids (ints or digit strings) to unique ints."""
    if not isinstance(raw, list):
        raise ValidationError(f"{field} must be a list", field)
    ids: list[int] = []
    for value in raw:
        if isinstance(value, bool):
            raise ValidationError(f"{field} must contain integer ids", field)
        if isinstance(value, int):
            ids.append(value)
        elif isinstance(value, str) and value.strip().isdigit():
            ids.append(int(value.strip()))
        else:
            raise ValidationError(f"{field} must contain integer ids", field)
    return list(dict.fromkeys(ids))
