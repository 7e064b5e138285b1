from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from branchstock.models.sales import PAYMENT_METHODS, PAYMENT_TYPES


# Maximum price: 9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate SKU)."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "description", "sku", "barcode", "category", "brand",
        "price_cents", "cost_price_cents", "stock", "min_stock", "max_stock",
        "unit", "branch_id", "is_active",
    },
    required_on_create={"name", "sku", "category", "price_cents", "cost_price_cents", "branch_id"},
)

# Stock moves through /stock and transfers; ownership only through transfers.
PRODUCT_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=PRODUCT_POLICY.writable_fields - {"stock", "branch_id"},
)

BRANCH_POLICY = ModelValidationPolicy(
    writable_fields={"name", "address", "phone", "email", "manager", "is_active"},
    required_on_create={"name", "address"},
)

PAYMENT_POLICY = ModelValidationPolicy(
    writable_fields={
        "amount_cents", "payment_method", "payment_type", "description",
        "reference", "customer", "notes", "branch_id", "invoice_id",
    },
    required_on_create={"amount_cents", "payment_method", "payment_type", "description", "branch_id"},
)


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
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
                raise ValidationError(f"{col.key} must be an integer")
            # Reject scientific notation (e.g., "1e15", "1E10")
            if 'e' in stripped.lower():
                raise ValidationError(f"{col.key} must be a plain integer (scientific notation not allowed)")
            # Reject decimal points (e.g., "12.5")
            if '.' in stripped:
                raise ValidationError(f"{col.key} must be an integer (no decimals)")
            try:
                return int(stripped)
            except ValueError:
                raise ValidationError(f"{col.key} must be an integer")
        # Reject floats explicitly
        if isinstance(value, float):
            raise ValidationError(f"{col.key} must be an integer, not a decimal")
        # Other types
        raise ValidationError(f"{col.key} must be an integer")

    # Booleans
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in ("true", "1"):
            return True
        if isinstance(value, str) and value.strip().lower() in ("false", "0"):
            return False
        raise ValidationError(f"{col.key} must be a boolean")

    # Strings / Text
    if isinstance(coltype, (String, Text)):
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
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        # NULL handling
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    for field in ("price_cents", "cost_price_cents"):
        if field in patch and patch[field] is not None:
            if patch[field] < 0:
                raise ValidationError(f"{field} must be >= 0")
            if patch[field] > MAX_PRICE_CENTS:
                raise ValidationError(f"{field} cannot exceed {MAX_PRICE_CENTS}")

    for field in ("stock", "min_stock", "max_stock"):
        if field in patch and patch[field] is not None and patch[field] < 0:
            raise ValidationError(f"{field} must be >= 0")

    min_stock = patch.get("min_stock")
    max_stock = patch.get("max_stock")
    if min_stock is not None and max_stock is not None and min_stock > max_stock:
        raise ValidationError("min_stock cannot exceed max_stock")

    # Empty barcode means "no barcode" so the unique index ignores it
    if patch.get("barcode") == "":
        patch["barcode"] = None


def enforce_rules_branch(patch: dict) -> None:
    if patch.get("email"):
        patch["email"] = patch["email"].lower()


def enforce_rules_payment(patch: dict) -> None:
    if "amount_cents" in patch and patch["amount_cents"] is not None:
        if patch["amount_cents"] < 0:
            raise ValidationError("amount_cents must be >= 0")
        if patch["amount_cents"] > MAX_PRICE_CENTS:
            raise ValidationError(f"amount_cents cannot exceed {MAX_PRICE_CENTS}")

    if "payment_method" in patch and patch["payment_method"] not in PAYMENT_METHODS:
        raise ValidationError(f"payment_method must be one of: {', '.join(PAYMENT_METHODS)}")

    if "payment_type" in patch and patch["payment_type"] not in PAYMENT_TYPES:
        raise ValidationError(f"payment_type must be one of: {', '.join(PAYMENT_TYPES)}")

