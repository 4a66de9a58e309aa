"""
Inventory and order API tests through the Flask test client.

Covers the end-to-end receive -> order -> delete scenario, status codes for
ledger failures, and request validation before any write.
"""

import pytest

from erp.models import InventoryIn, InventoryOut, OrderItem, Product

from conftest import make_product, stock_in


def _quantity(db_session, product_id):
    db_session.expire_all()
    return db_session.get(Product, product_id).quantity


class TestReceiveOrderDeleteScenario:

    def test_full_scenario(self, client, db_session, admin_headers):
        product = make_product(db_session, "SKU1", price_cents=1250)
        product_id = product.id

        resp = client.post("/api/inventory/in", json={
            "product_id": product_id,
            "quantity": 10,
            "unit_price_cents": 5,
            "supplier": "Acme Supply",
        }, headers=admin_headers)
        assert resp.status_code == 201
        assert resp.json["total_price_cents"] == 50
        assert resp.json["type"] == "in"
        assert _quantity(db_session, product_id) == 10

        resp = client.post("/api/orders", json={
            "customer_name": "Jane Customer",
            "items": [{"product_id": product_id, "quantity": 4}],
        }, headers=admin_headers)
        assert resp.status_code == 201
        order = resp.json
        assert order["total_amount_cents"] == 4 * 1250
        assert order["status"] == "pending"
        assert len(order["items"]) == 1
        assert _quantity(db_session, product_id) == 6

        [out_row] = db_session.query(InventoryOut).filter_by(order_id=order["id"]).all()
        assert order["order_number"] in out_row.reason

        resp = client.delete(f"/api/orders/{order['id']}", headers=admin_headers)
        assert resp.status_code == 200
        assert "message" in resp.json
        assert _quantity(db_session, product_id) == 10
        assert db_session.query(InventoryOut).filter_by(order_id=order["id"]).count() == 0
        assert db_session.query(OrderItem).filter_by(order_id=order["id"]).count() == 0


class TestInventoryInApi:

    def test_unknown_product_is_404(self, client, db_session, admin_headers):
        resp = client.post("/api/inventory/in", json={
            "product_id": 999, "quantity": 1, "unit_price_cents": 1, "supplier": "X",
        }, headers=admin_headers)
        assert resp.status_code == 404
        assert resp.json["kind"] == "not_found"
        assert resp.json["message"]

    def test_missing_fields_rejected_before_any_write(self, client, db_session, admin_headers):
        product = make_product(db_session, "SKU1")
        resp = client.post("/api/inventory/in", json={"product_id": product.id, "quantity": 1},
                           headers=admin_headers)
        assert resp.status_code == 400
        assert resp.json["kind"] == "validation"
        assert db_session.query(InventoryIn).count() == 0

    def test_non_positive_quantity_rejected(self, client, db_session, admin_headers):
        product = make_product(db_session, "SKU1")
        resp = client.post("/api/inventory/in", json={
            "product_id": product.id, "quantity": 0, "unit_price_cents": 1, "supplier": "X",
        }, headers=admin_headers)
        assert resp.status_code == 400

    def test_update_and_delete(self, client, db_session, admin_headers):
        product = make_product(db_session, "SKU1")
        row_id = stock_in(db_session, product, 10).id

        resp = client.put(f"/api/inventory/in/{row_id}", json={
            "quantity": 3, "unit_price_cents": 20, "supplier": "Other Co",
        }, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["total_price_cents"] == 60
        assert resp.json["invoice_number"] is None
        assert _quantity(db_session, product.id) == 3

        resp = client.delete(f"/api/inventory/in/{row_id}", headers=admin_headers)
        assert resp.status_code == 200
        assert _quantity(db_session, product.id) == 0

    def test_update_missing_record_is_404(self, client, db_session, admin_headers):
        resp = client.put("/api/inventory/in/12345", json={
            "quantity": 3, "unit_price_cents": 20, "supplier": "Other Co",
        }, headers=admin_headers)
        assert resp.status_code == 404

    def test_list_and_get(self, client, db_session, admin_headers, product_a):
        resp = client.get("/api/inventory/in", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["count"] == 1
        row_id = resp.json["items"][0]["id"]

        resp = client.get(f"/api/inventory/in/{row_id}", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["product_id"] == product_a.id


class TestInventoryOutApi:

    def test_insufficient_stock_is_400(self, client, db_session, admin_headers, product_a):
        resp = client.post("/api/inventory/out", json={
            "product_id": product_a.id, "quantity": 6,
        }, headers=admin_headers)
        assert resp.status_code == 400
        assert resp.json["kind"] == "insufficient_stock"
        assert _quantity(db_session, product_a.id) == 5

    def test_create_update_delete(self, client, db_session, admin_headers, product_a):
        resp = client.post("/api/inventory/out", json={
            "product_id": product_a.id, "quantity": 2, "reason": "Damaged",
        }, headers=admin_headers)
        assert resp.status_code == 201
        row_id = resp.json["id"]
        assert _quantity(db_session, product_a.id) == 3

        resp = client.put(f"/api/inventory/out/{row_id}", json={"quantity": 6}, headers=admin_headers)
        assert resp.status_code == 400
        assert _quantity(db_session, product_a.id) == 3

        resp = client.put(f"/api/inventory/out/{row_id}", json={"quantity": 4}, headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["reason"] is None
        assert _quantity(db_session, product_a.id) == 1

        resp = client.delete(f"/api/inventory/out/{row_id}", headers=admin_headers)
        assert resp.status_code == 200
        assert _quantity(db_session, product_a.id) == 5

    def test_order_linked_row_cannot_be_deleted(self, client, db_session, admin_headers, product_a):
        resp = client.post("/api/orders", json={
            "customer_name": "Jane", "items": [{"product_id": product_a.id, "quantity": 1}],
        }, headers=admin_headers)
        out_id = db_session.query(InventoryOut).filter_by(order_id=resp.json["id"]).one().id

        resp = client.delete(f"/api/inventory/out/{out_id}", headers=admin_headers)

        assert resp.status_code == 400
        assert resp.json["kind"] == "invalid_state"


class TestInventoryReports:

    def test_status(self, client, db_session, admin_headers):
        product = make_product(db_session, "SKU1", minimum_quantity=3)
        stock_in(db_session, product, 2)

        resp = client.get("/api/inventory/status", headers=admin_headers)

        assert resp.status_code == 200
        [row] = resp.json["items"]
        assert row["status"] == "low"
        assert row["quantity"] == 2

    def test_history_with_filters(self, client, db_session, admin_headers, product_a, product_b):
        stock_in(db_session, product_b, 1)

        resp = client.get(f"/api/inventory/history?product_id={product_b.id}", headers=admin_headers)
        assert resp.status_code == 200
        assert [e["product_id"] for e in resp.json["items"]] == [product_b.id]

        resp = client.get("/api/inventory/history?start_date=2000-01-01&end_date=2000-01-02",
                          headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json["items"] == []

    def test_history_rejects_bad_dates(self, client, db_session, admin_headers):
        resp = client.get("/api/inventory/history?start_date=yesterday", headers=admin_headers)
        assert resp.status_code == 400

    @pytest.mark.parametrize("path", [
        "/api/inventory/history?product_id=abc",
        "/api/inventory/reconcile?product_id=abc",
        "/api/inventory/in?product_id=1.5",
        "/api/inventory/out?product_id=x",
    ])
    def test_non_integer_product_filter_is_400(self, client, db_session, admin_headers, product_a, path):
        resp = client.get(path, headers=admin_headers)
        assert resp.status_code == 400
        assert resp.json["message"] == "product_id must be an integer"

    def test_reconcile(self, client, db_session, manager_headers, product_a):
        resp = client.get("/api/inventory/reconcile", headers=manager_headers)
        assert resp.status_code == 200
        assert resp.json["consistent"] is True
        assert resp.json["items"][0]["ledger_quantity"] == 5
