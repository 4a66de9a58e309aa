"""
Request object validation: every malformed payload is rejected before any
service call (and therefore before any transaction) is made.
"""

import pytest

from erp.schemas import (
    CreateOrderRequest,
    InventoryInRequest,
    InventoryInUpdate,
    InventoryOutRequest,
    UpdateOrderRequest,
    parse_order_status,
)
from erp.validation import ValidationError


class TestInventoryRequests:

    def test_inventory_in_from_payload(self):
        req = InventoryInRequest.from_payload({
            "product_id": "7", "quantity": 3, "unit_price_cents": 250, "supplier": "  Acme  ", "invoice_number": "",
        })
        assert req == InventoryInRequest(product_id=7, quantity=3, unit_price_cents=250, supplier="Acme")

    def test_path_product_id_overrides_body(self):
        req = InventoryInRequest.from_payload(
            {"product_id": 1, "quantity": 1, "unit_price_cents": 1, "supplier": "X"}, product_id=9
        )
        assert req.product_id == 9

    @pytest.mark.parametrize("payload", [
        {"quantity": 1, "unit_price_cents": 1, "supplier": "X"},
        {"product_id": 1, "quantity": 1, "unit_price_cents": 1, "supplier": ""},
        {"product_id": 1, "quantity": 1, "unit_price_cents": -5, "supplier": "X"},
        {"product_id": 1, "quantity": "1e3", "unit_price_cents": 1, "supplier": "X"},
        {"product_id": 1, "quantity": 1, "unit_price_cents": 1, "supplier": "X", "total_price_cents": 1},
    ])
    def test_inventory_in_rejections(self, payload):
        with pytest.raises(ValidationError):
            InventoryInRequest.from_payload(payload)

    def test_update_cannot_move_record_to_another_product(self):
        with pytest.raises(ValidationError):
            InventoryInUpdate.from_payload({"product_id": 2, "quantity": 1, "unit_price_cents": 1, "supplier": "X"})

    def test_inventory_out_blank_reason_is_none(self):
        req = InventoryOutRequest.from_payload({"product_id": 1, "quantity": 2, "reason": ""})
        assert req.reason is None

    def test_inventory_out_requires_positive_quantity(self):
        with pytest.raises(ValidationError):
            InventoryOutRequest.from_payload({"product_id": 1, "quantity": 0})


class TestOrderRequests:

    def test_create_order_from_payload(self):
        req = CreateOrderRequest.from_payload({
            "customer_name": "Jane",
            "items": [{"product_id": 1, "quantity": 2}, {"product_id": "3", "quantity": "4"}],
        })
        assert [(i.product_id, i.quantity) for i in req.items] == [(1, 2), (3, 4)]

    def test_empty_items_rejected(self):
        with pytest.raises(ValidationError, match="non-empty"):
            CreateOrderRequest.from_payload({"customer_name": "Jane", "items": []})

    def test_line_error_is_prefixed(self):
        with pytest.raises(ValidationError, match=r"^items\[1\]"):
            CreateOrderRequest.from_payload({"customer_name": "Jane", "items": [{"product_id": 1}]})

    def test_update_order_drops_blank_fields(self):
        req = UpdateOrderRequest.from_payload({"customer_name": "", "customer_phone": "555", "shipping_address": None})
        assert req.changes() == {"customer_phone": "555"}

    def test_update_order_whitespace_only_is_unchanged(self):
        req = UpdateOrderRequest.from_payload({"customer_name": "   ", "customer_email": "\t", "customer_phone": " 555 "})
        assert req.changes() == {"customer_phone": "555"}

    def test_update_order_rejects_unknown_fields(self):
        with pytest.raises(ValidationError):
            UpdateOrderRequest.from_payload({"total_amount_cents": 0})

    @pytest.mark.parametrize("payload,expected", [
        ({"status": "processing"}, "processing"),
        ({"status": " Shipped "}, "shipped"),
    ])
    def test_parse_order_status(self, payload, expected):
        assert parse_order_status(payload) == expected

    @pytest.mark.parametrize("payload", [{}, {"status": ""}, {"status": "lost"}, {"status": 3}])
    def test_parse_order_status_rejections(self, payload):
        with pytest.raises(ValidationError):
            parse_order_status(payload)
