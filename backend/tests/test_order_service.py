"""
Order fulfillment workflow tests.

Verifies:
- Order creation depletes stock for every line, all-or-nothing
- Order numbers are unique per-day sequences
- Header edits, status transitions and deletes honor the lifecycle gates
- Deleting an order restores its stock
"""

import re

import pytest

from erp.errors import NotFoundError, InsufficientStockError, InvalidStateError
from erp.models import Order, OrderItem, InventoryOut, Product, DocumentSequence
from erp.schemas import CreateOrderRequest, OrderLineRequest, UpdateOrderRequest
from erp.services import order_service
from erp.services.document_service import next_order_number

from conftest import make_product, stock_in, assert_ledger_consistent


ORDER_NUMBER_RE = re.compile(r"^ORD-\d{8}-\d{3,}$")


def _request(*lines, customer_name="Jane Customer"):
    return CreateOrderRequest(
        customer_name=customer_name,
        customer_email="jane@example.com",
        items=tuple(OrderLineRequest(product_id=p, quantity=q) for p, q in lines),
    )


def _quantity(db_session, product_id):
    db_session.expire_all()
    return db_session.get(Product, product_id).quantity


def _advance(db_session, order_id, *statuses):
    for status in statuses:
        order_service.update_order_status(db_session, order_id, status)


class TestCreateOrder:

    def test_creates_items_ledger_rows_and_total(self, db_session, product_a):
        order = order_service.create_order(db_session, _request((product_a.id, 4)))

        assert ORDER_NUMBER_RE.match(order.order_number)
        assert order.status == "pending"
        assert order.total_amount_cents == 4 * 1000
        assert _quantity(db_session, product_a.id) == 1

        [item] = order_service.list_order_items(db_session, order.id)
        assert item.unit_price_cents == 1000
        assert item.total_price_cents == 4000

        [out_row] = db_session.query(InventoryOut).filter_by(order_id=order.id).all()
        assert out_row.quantity == 4
        assert order.order_number in out_row.reason
        assert_ledger_consistent(db_session)

    def test_short_line_rolls_back_everything(self, db_session, product_a, product_b):
        with pytest.raises(InsufficientStockError) as exc:
            order_service.create_order(db_session, _request((product_a.id, 3), (product_b.id, 1)))

        assert exc.value.details["line"] == 2
        assert exc.value.details["product_id"] == product_b.id
        assert _quantity(db_session, product_a.id) == 5
        assert db_session.query(Order).count() == 0
        assert db_session.query(OrderItem).count() == 0
        assert db_session.query(InventoryOut).count() == 0
        assert_ledger_consistent(db_session)

    def test_missing_product_rolls_back_everything(self, db_session, product_a):
        with pytest.raises(NotFoundError) as exc:
            order_service.create_order(db_session, _request((product_a.id, 1), (98765, 1)))

        assert exc.value.details == {"line": 2, "product_id": 98765}
        assert _quantity(db_session, product_a.id) == 5
        assert db_session.query(Order).count() == 0

    def test_repeated_product_lines_draw_from_same_stock(self, db_session, product_a):
        with pytest.raises(InsufficientStockError) as exc:
            order_service.create_order(db_session, _request((product_a.id, 3), (product_a.id, 3)))

        assert exc.value.details["line"] == 2
        assert exc.value.details["on_hand"] == 2
        assert _quantity(db_session, product_a.id) == 5

    def test_unit_price_is_snapshotted(self, db_session, product_a):
        order = order_service.create_order(db_session, _request((product_a.id, 1)))

        product_a.price_cents = 9999
        db_session.commit()

        [item] = order_service.list_order_items(db_session, order.id)
        assert item.unit_price_cents == 1000

    def test_failed_order_does_not_consume_a_number(self, db_session, product_a, product_b):
        with pytest.raises(InsufficientStockError):
            order_service.create_order(db_session, _request((product_b.id, 1)))

        order = order_service.create_order(db_session, _request((product_a.id, 1)))
        assert order.order_number.endswith("-001")

    def test_stamps_actor(self, db_session, product_a, staff_user):
        order = order_service.create_order(db_session, _request((product_a.id, 1)), actor_id=staff_user.id)
        out_row = db_session.query(InventoryOut).filter_by(order_id=order.id).one()
        assert order.created_by_user_id == staff_user.id
        assert out_row.created_by_user_id == staff_user.id


class TestOrderNumbers:

    def test_sequence_is_per_day_and_unique(self, db_session, product_a):
        first = order_service.create_order(db_session, _request((product_a.id, 1)))
        second = order_service.create_order(db_session, _request((product_a.id, 1)))

        assert first.order_number != second.order_number
        assert first.order_number.endswith("-001")
        assert second.order_number.endswith("-002")

    def test_number_uses_given_day(self, db_session):
        from datetime import datetime

        number = next_order_number(db_session, now=datetime(2026, 10, 18, 9, 30))
        db_session.commit()

        assert number == "ORD-20261018-001"
        seq = db_session.query(DocumentSequence).filter_by(document_type="ORDER", sequence_key="20261018").one()
        assert seq.next_number == 2


class TestUpdateOrder:

    def test_partial_update_keeps_omitted_fields(self, db_session, product_a):
        order = order_service.create_order(db_session, _request((product_a.id, 1)))

        updated = order_service.update_order(
            db_session, order.id, UpdateOrderRequest(shipping_address="1 Main St")
        )

        assert updated.shipping_address == "1 Main St"
        assert updated.customer_name == "Jane Customer"
        assert updated.customer_email == "jane@example.com"

    @pytest.mark.parametrize("path", [
        ("processing", "shipped"),
        ("processing", "shipped", "delivered", "completed"),
    ])
    def test_blocked_once_shipped_or_completed(self, db_session, product_a, path):
        order = order_service.create_order(db_session, _request((product_a.id, 1)))
        _advance(db_session, order.id, *path)

        with pytest.raises(InvalidStateError):
            order_service.update_order(db_session, order.id, UpdateOrderRequest(customer_name="New Name"))

    def test_missing_order(self, db_session):
        with pytest.raises(NotFoundError):
            order_service.update_order(db_session, 404, UpdateOrderRequest(customer_name="X"))


class TestOrderStatus:

    def test_full_lifecycle(self, db_session, product_a):
        order = order_service.create_order(db_session, _request((product_a.id, 1)))

        _advance(db_session, order.id, "processing", "shipped", "delivered", "completed")

        db_session.expire_all()
        assert db_session.get(Order, order.id).status == "completed"

    def test_same_status_is_noop(self, db_session, product_a):
        order = order_service.create_order(db_session, _request((product_a.id, 1)))
        result = order_service.update_order_status(db_session, order.id, "pending")
        assert result.status == "pending"

    @pytest.mark.parametrize("path,target", [
        ((), "shipped"),
        ((), "completed"),
        (("cancelled",), "pending"),
        (("processing", "shipped"), "cancelled"),
        (("processing", "shipped", "delivered", "completed"), "pending"),
    ])
    def test_illegal_transitions_rejected(self, db_session, product_a, path, target):
        order = order_service.create_order(db_session, _request((product_a.id, 1)))
        _advance(db_session, order.id, *path)
        before = db_session.get(Order, order.id).status

        with pytest.raises(InvalidStateError):
            order_service.update_order_status(db_session, order.id, target)

        db_session.expire_all()
        assert db_session.get(Order, order.id).status == before

    def test_cancel_does_not_restore_stock(self, db_session, product_a):
        order = order_service.create_order(db_session, _request((product_a.id, 2)))
        order_service.update_order_status(db_session, order.id, "cancelled")
        assert _quantity(db_session, product_a.id) == 3

    def test_missing_order(self, db_session):
        with pytest.raises(NotFoundError):
            order_service.update_order_status(db_session, 404, "processing")


class TestDeleteOrder:

    def test_restores_stock_and_removes_rows(self, db_session, product_a):
        product_c = make_product(db_session, "SKU-C", price_cents=300)
        stock_in(db_session, product_c, 10)
        order = order_service.create_order(db_session, _request((product_a.id, 2), (product_c.id, 7)))
        order_id = order.id

        order_service.delete_order(db_session, order_id)

        assert _quantity(db_session, product_a.id) == 5
        assert _quantity(db_session, product_c.id) == 10
        assert db_session.get(Order, order_id) is None
        assert db_session.query(OrderItem).filter_by(order_id=order_id).count() == 0
        assert db_session.query(InventoryOut).filter_by(order_id=order_id).count() == 0
        assert_ledger_consistent(db_session)

    def test_cancelled_order_can_be_deleted(self, db_session, product_a):
        order = order_service.create_order(db_session, _request((product_a.id, 2)))
        order_id = order.id
        order_service.update_order_status(db_session, order_id, "cancelled")

        order_service.delete_order(db_session, order_id)

        assert _quantity(db_session, product_a.id) == 5

    def test_completed_order_cannot_be_deleted(self, db_session, product_a):
        order = order_service.create_order(db_session, _request((product_a.id, 2)))
        _advance(db_session, order.id, "processing", "shipped", "delivered", "completed")

        with pytest.raises(InvalidStateError):
            order_service.delete_order(db_session, order.id)

        assert _quantity(db_session, product_a.id) == 3
        assert db_session.query(OrderItem).filter_by(order_id=order.id).count() == 1

    def test_missing_order(self, db_session):
        with pytest.raises(NotFoundError):
            order_service.delete_order(db_session, 404)


class TestOrderReads:

    def test_list_filters_by_status(self, db_session, product_a):
        first = order_service.create_order(db_session, _request((product_a.id, 1)))
        order_service.create_order(db_session, _request((product_a.id, 1)))
        order_service.update_order_status(db_session, first.id, "processing")

        processing = order_service.list_orders(db_session, status="processing")

        assert [o.id for o in processing] == [first.id]
        assert len(order_service.list_orders(db_session)) == 2

    def test_items_of_missing_order(self, db_session):
        with pytest.raises(NotFoundError):
            order_service.list_order_items(db_session, 404)
