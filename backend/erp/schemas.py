# Overview: Typed request objects for ledger and order operations, validated before any transaction opens.

from __future__ import annotations

from dataclasses import dataclass, field

from .models import InventoryIn, InventoryOut, Order, OrderItem, ORDER_STATUSES
from .validation import (
    ModelValidationPolicy,
    ValidationError,
    validate_payload,
    enforce_rules_inventory_in,
    enforce_rules_inventory_out,
    enforce_rules_order_line,
)


INVENTORY_IN_POLICY = ModelValidationPolicy(
    writable_fields={"product_id", "quantity", "unit_price_cents", "supplier", "invoice_number"},
    required_on_create={"product_id", "quantity", "unit_price_cents", "supplier"},
)

# PUT replaces the record's editable fields; the product cannot be changed
INVENTORY_IN_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"quantity", "unit_price_cents", "supplier", "invoice_number"},
    required_on_create={"quantity", "unit_price_cents", "supplier"},
)

INVENTORY_OUT_POLICY = ModelValidationPolicy(
    writable_fields={"product_id", "quantity", "reason"},
    required_on_create={"product_id", "quantity"},
)

INVENTORY_OUT_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields={"quantity", "reason"},
    required_on_create={"quantity"},
)

ORDER_HEADER_POLICY = ModelValidationPolicy(
    writable_fields={"customer_name", "customer_email", "customer_phone", "shipping_address"},
    required_on_create={"customer_name"},
)

ORDER_LINE_POLICY = ModelValidationPolicy(
    writable_fields={"product_id", "quantity"},
    required_on_create={"product_id", "quantity"},
)

CUSTOMER_FIELDS = ("customer_name", "customer_email", "customer_phone", "shipping_address")


@dataclass(frozen=True)
class InventoryInRequest:
    product_id: int
    quantity: int
    unit_price_cents: int
    supplier: str
    invoice_number: str | None = None

    @classmethod
    def from_payload(cls, payload: dict, *, product_id: int | None = None) -> "InventoryInRequest":
        if product_id is not None and isinstance(payload, dict):
            payload = {**payload, "product_id": product_id}
        patch = validate_payload(model=InventoryIn, payload=payload, policy=INVENTORY_IN_POLICY, partial=False)
        enforce_rules_inventory_in(patch)
        return cls(
            product_id=patch["product_id"],
            quantity=patch["quantity"],
            unit_price_cents=patch["unit_price_cents"],
            supplier=patch["supplier"],
            invoice_number=patch.get("invoice_number") or None,
        )


@dataclass(frozen=True)
class InventoryInUpdate:
    quantity: int
    unit_price_cents: int
    supplier: str
    invoice_number: str | None = None

    @classmethod
    def from_payload(cls, payload: dict) -> "InventoryInUpdate":
        patch = validate_payload(model=InventoryIn, payload=payload, policy=INVENTORY_IN_UPDATE_POLICY, partial=False)
        enforce_rules_inventory_in(patch)
        return cls(
            quantity=patch["quantity"],
            unit_price_cents=patch["unit_price_cents"],
            supplier=patch["supplier"],
            invoice_number=patch.get("invoice_number") or None,
        )


@dataclass(frozen=True)
class InventoryOutRequest:
    product_id: int
    quantity: int
    reason: str | None = None

    @classmethod
    def from_payload(cls, payload: dict, *, product_id: int | None = None) -> "InventoryOutRequest":
        if product_id is not None and isinstance(payload, dict):
            payload = {**payload, "product_id": product_id}
        patch = validate_payload(model=InventoryOut, payload=payload, policy=INVENTORY_OUT_POLICY, partial=False)
        enforce_rules_inventory_out(patch)
        return cls(
            product_id=patch["product_id"],
            quantity=patch["quantity"],
            reason=patch.get("reason") or None,
        )


@dataclass(frozen=True)
class InventoryOutUpdate:
    quantity: int
    reason: str | None = None

    @classmethod
    def from_payload(cls, payload: dict) -> "InventoryOutUpdate":
        patch = validate_payload(model=InventoryOut, payload=payload, policy=INVENTORY_OUT_UPDATE_POLICY, partial=False)
        enforce_rules_inventory_out(patch)
        return cls(quantity=patch["quantity"], reason=patch.get("reason") or None)


@dataclass(frozen=True)
class OrderLineRequest:
    product_id: int
    quantity: int


@dataclass(frozen=True)
class CreateOrderRequest:
    customer_name: str
    customer_email: str | None = None
    customer_phone: str | None = None
    shipping_address: str | None = None
    items: tuple[OrderLineRequest, ...] = field(default_factory=tuple)

    @classmethod
    def from_payload(cls, payload: dict) -> "CreateOrderRequest":
        if not isinstance(payload, dict):
            raise ValidationError("Invalid JSON payload")

        header = {k: v for k, v in payload.items() if k != "items"}
        patch = validate_payload(model=Order, payload=header, policy=ORDER_HEADER_POLICY, partial=False)

        raw_items = payload.get("items")
        if not isinstance(raw_items, list) or not raw_items:
            raise ValidationError("items must be a non-empty list")

        items = []
        for index, raw in enumerate(raw_items, start=1):
            try:
                line = validate_payload(model=OrderItem, payload=raw, policy=ORDER_LINE_POLICY, partial=False)
                enforce_rules_order_line(line)
            except ValidationError as e:
                raise ValidationError(f"items[{index}]: {e}") from e
            items.append(OrderLineRequest(product_id=line["product_id"], quantity=line["quantity"]))

        return cls(
            customer_name=patch["customer_name"],
            customer_email=patch.get("customer_email"),
            customer_phone=patch.get("customer_phone"),
            shipping_address=patch.get("shipping_address"),
            items=tuple(items),
        )


@dataclass(frozen=True)
class UpdateOrderRequest:
    """Partial header update: None means "keep the current value"."""
    customer_name: str | None = None
    customer_email: str | None = None
    customer_phone: str | None = None
    shipping_address: str | None = None

    @classmethod
    def from_payload(cls, payload: dict) -> "UpdateOrderRequest":
        if not isinstance(payload, dict):
            raise ValidationError("Invalid JSON payload")
        # Blank values (including whitespace-only) are treated as omitted
        payload = {k: (v.strip() if isinstance(v, str) else v) for k, v in payload.items()}
        payload = {k: v for k, v in payload.items() if v not in (None, "")}
        patch = validate_payload(model=Order, payload=payload, policy=ORDER_HEADER_POLICY, partial=True)
        return cls(**{k: (patch.get(k) or None) for k in CUSTOMER_FIELDS})

    def changes(self) -> dict:
        return {k: getattr(self, k) for k in CUSTOMER_FIELDS if getattr(self, k)}


def parse_order_status(payload: dict) -> str:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    status = payload.get("status")
    if not isinstance(status, str) or not status.strip():
        raise ValidationError("status is required")
    status = status.strip().lower()
    if status not in ORDER_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(ORDER_STATUSES)}")
    return status
