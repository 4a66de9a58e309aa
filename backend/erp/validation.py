from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Integer, String, Text


MAX_PRICE_CENTS = 999_999_999

# Upper bound for a single ledger movement or order line
MAX_QUANTITY = 1_000_000


class ValidationError(ValueError):
    """Malformed request input (400). Raised before any transaction opens."""

    kind = "validation"
    status_code = 400

    def to_response(self) -> tuple[dict, int]:
        return {"error": "Validation failed", "kind": self.kind, "message": str(self)}, self.status_code


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Which model columns a client may send, and which must be present on create.
    Anything outside writable_fields is rejected, which keeps server-owned
    columns (quantity, totals, order numbers) out of reach of payloads.
    """
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)


def _to_int(key: str, value: Any) -> int:
    # bool is an int subclass; JSON true/false is never a quantity
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    if isinstance(value, str):
        text = value.strip()
        digits = text[1:] if text.startswith("-") else text
        if digits.isascii() and digits.isdigit():
            return int(text)
        if "e" in text.lower():
            raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
        if "." in text:
            raise ValidationError(f"{key} must be an integer (no decimals)")
    raise ValidationError(f"{key} must be an integer")


def _to_text(column, value: Any) -> str:
    if isinstance(value, (dict, list)):
        raise ValidationError(f"{column.key} must be a string")
    text = str(value).strip()
    if not text and not column.nullable:
        raise ValidationError(f"{column.key} cannot be blank")
    limit = getattr(column.type, "length", None)
    if limit and len(text) > limit:
        raise ValidationError(f"{column.key} exceeds max length {limit}")
    return text


def validate_payload(*, model, payload: dict, policy: ModelValidationPolicy, partial: bool) -> dict:
    """
    Check a JSON body against the policy and the model's column metadata.

    Returns a normalized patch holding only the keys that were sent.
    partial=False enforces required_on_create; partial=True validates what is present.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(policy.required_on_create - payload.keys())
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    columns = {c.key: c for c in model.__mapper__.columns}
    patch: dict = {}

    for key, raw in payload.items():
        if key not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {key}")
        column = columns.get(key)
        if column is None:
            raise ValidationError(f"Unknown field: {key}")

        if raw is None:
            if not column.nullable:
                raise ValidationError(f"{key} cannot be null")
            patch[key] = None
        elif isinstance(column.type, Integer):
            patch[key] = _to_int(key, raw)
        elif isinstance(column.type, (String, Text)):
            patch[key] = _to_text(column, raw)
        else:
            patch[key] = raw

    return patch


def _check_cents(patch: dict, field: str) -> None:
    if field in patch and patch[field] is not None:
        value = patch[field]
        if value < 0:
            raise ValidationError(f"{field} must be >= 0")
        if value > MAX_PRICE_CENTS:
            raise ValidationError(f"{field} cannot exceed {MAX_PRICE_CENTS} (${MAX_PRICE_CENTS / 100:,.2f})")


def _check_quantity(patch: dict, field: str = "quantity") -> None:
    if field in patch:
        value = patch[field]
        if value is None or value <= 0:
            raise ValidationError(f"{field} must be > 0")
        if value > MAX_QUANTITY:
            raise ValidationError(f"{field} cannot exceed {MAX_QUANTITY}")


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    _check_cents(patch, "price_cents")
    _check_cents(patch, "cost_cents")
    if "minimum_quantity" in patch and patch["minimum_quantity"] is not None:
        if patch["minimum_quantity"] < 0:
            raise ValidationError("minimum_quantity must be >= 0")


def enforce_rules_inventory_in(patch: dict) -> None:
    # Stock-in requires qty > 0 and a non-negative unit price
    _check_quantity(patch)
    if "unit_price_cents" not in patch or patch["unit_price_cents"] is None:
        raise ValidationError("unit_price_cents is required for inventory in")
    _check_cents(patch, "unit_price_cents")


def enforce_rules_inventory_out(patch: dict) -> None:
    _check_quantity(patch)


def enforce_rules_order_line(patch: dict) -> None:
    _check_quantity(patch)
