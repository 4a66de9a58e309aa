# Overview: Order fulfillment workflow; turns order requests into stock depletion and governs order lifecycle.

"""
Order Service - all-or-nothing order fulfillment

WHY: An order is created, priced and fulfilled against stock in ONE
transaction. Either the Order, every OrderItem, every order-linked
InventoryOut row and every Product decrement commit together, or none do.

LIFECYCLE:
    pending    -> processing | cancelled
    processing -> shipped | cancelled
    shipped    -> delivered
    delivered  -> completed
    cancelled, completed: terminal

Hard gates:
- Header edits are rejected once shipped or completed.
- Deletion is rejected once completed. Deleting restores stock;
  cancelling does not.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy.orm import Session

from ..errors import NotFoundError, InsufficientStockError, InvalidStateError
from ..models import Order, OrderItem, InventoryOut
from ..schemas import CreateOrderRequest, UpdateOrderRequest
from .concurrency import lock_for_update, unit_of_work
from .document_service import next_order_number
from .inventory_service import lock_products, record_inventory_out_inner


ORDER_STATUS_TRANSITIONS: dict[str, frozenset[str]] = {
    "pending": frozenset({"processing", "cancelled"}),
    "processing": frozenset({"shipped", "cancelled"}),
    "shipped": frozenset({"delivered"}),
    "delivered": frozenset({"completed"}),
    "cancelled": frozenset(),
    "completed": frozenset(),
}

HEADER_LOCKED_STATUSES = frozenset({"shipped", "completed"})


def _get_order(session: Session, order_id: int, *, lock: bool = False) -> Order:
    query = session.query(Order).filter_by(id=order_id)
    if lock:
        query = lock_for_update(query).populate_existing()
    order = query.first()
    if order is None:
        raise NotFoundError(f"Order {order_id} not found", details={"order_id": order_id})
    return order


def create_order(session: Session, request: CreateOrderRequest, *, actor_id: int | None = None) -> Order:
    """
    Create an order and deplete stock for every line.

    Lines are processed in request order. Unit prices are snapshotted from
    Product.price_cents. The first missing product or short line aborts the
    whole order; `details["line"]` is the 1-based index of that line.
    """
    with unit_of_work(session):
        order_number = next_order_number(session)

        # Lock every product up front, in id order
        products = lock_products(session, (line.product_id for line in request.items))

        order = Order(
            order_number=order_number,
            customer_name=request.customer_name,
            customer_email=request.customer_email,
            customer_phone=request.customer_phone,
            shipping_address=request.shipping_address,
            total_amount_cents=0,
            status="pending",
            created_by_user_id=actor_id,
        )
        session.add(order)
        session.flush()

        total = 0
        for index, line in enumerate(request.items, start=1):
            product = products.get(line.product_id)
            if product is None:
                raise NotFoundError(
                    f"Product {line.product_id} not found (line {index})",
                    details={"line": index, "product_id": line.product_id},
                )
            if product.quantity < line.quantity:
                raise InsufficientStockError(
                    f"Insufficient stock for product {product.name} (line {index})",
                    details={
                        "line": index,
                        "product_id": product.id,
                        "requested": line.quantity,
                        "on_hand": product.quantity,
                    },
                )

            line_total = product.price_cents * line.quantity
            session.add(OrderItem(
                order_id=order.id,
                product_id=product.id,
                quantity=line.quantity,
                unit_price_cents=product.price_cents,
                total_price_cents=line_total,
            ))

            record_inventory_out_inner(
                session,
                product=product,
                quantity=line.quantity,
                reason=f"Order number: {order_number}",
                actor_id=actor_id,
                order_id=order.id,
            )
            total += line_total

        order.total_amount_cents = total
        session.flush()

    current_app.logger.info(
        "order.created id=%s number=%s lines=%s total_cents=%s",
        order.id, order.order_number, len(request.items), order.total_amount_cents,
    )
    return order


def update_order(session: Session, order_id: int, request: UpdateOrderRequest) -> Order:
    """Partial customer/shipping update. Omitted or blank fields keep their value."""
    with unit_of_work(session):
        order = _get_order(session, order_id, lock=True)
        if order.status in HEADER_LOCKED_STATUSES:
            raise InvalidStateError(
                f"Cannot update order in status {order.status}",
                details={"order_id": order.id, "status": order.status},
            )

        for key, value in request.changes().items():
            setattr(order, key, value)
        session.flush()

    return order


def update_order_status(session: Session, order_id: int, new_status: str) -> Order:
    """
    Move an order along the lifecycle graph.

    Re-applying the current status is a no-op. Any edge not in
    ORDER_STATUS_TRANSITIONS raises InvalidStateError.
    """
    with unit_of_work(session):
        order = _get_order(session, order_id, lock=True)
        old_status = order.status
        if new_status == old_status:
            return order

        allowed = ORDER_STATUS_TRANSITIONS.get(old_status, frozenset())
        if new_status not in allowed:
            raise InvalidStateError(
                f"Cannot change order status from {old_status} to {new_status}",
                details={
                    "order_id": order.id,
                    "from": old_status,
                    "to": new_status,
                    "allowed": sorted(allowed),
                },
            )

        order.status = new_status
        session.flush()

    current_app.logger.info("order.status id=%s %s->%s", order_id, old_status, new_status)
    return order


def delete_order(session: Session, order_id: int) -> None:
    """
    Delete an order and return its stock.

    Every item's quantity goes back to its product; the order-linked
    InventoryOut rows, the items and the order are removed together.
    """
    with unit_of_work(session):
        order = _get_order(session, order_id, lock=True)
        if order.status == "completed":
            raise InvalidStateError(
                "Cannot delete a completed order",
                details={"order_id": order.id, "status": order.status},
            )

        items = session.query(OrderItem).filter_by(order_id=order.id).all()
        products = lock_products(session, (item.product_id for item in items))

        for item in items:
            products[item.product_id].quantity += item.quantity

        session.query(InventoryOut).filter_by(order_id=order.id).delete(synchronize_session="fetch")
        for item in items:
            session.delete(item)
        session.flush()
        session.delete(order)
        session.flush()
        order_number = order.order_number

    current_app.logger.info("order.deleted id=%s number=%s restored_lines=%s", order_id, order_number, len(items))


def list_orders(session: Session, *, status: str | None = None) -> list[Order]:
    query = session.query(Order)
    if status:
        query = query.filter(Order.status == status)
    return query.order_by(Order.created_at.desc(), Order.id.desc()).all()


def get_order(session: Session, order_id: int) -> Order:
    return _get_order(session, order_id)


def list_order_items(session: Session, order_id: int) -> list[OrderItem]:
    _get_order(session, order_id)
    return session.query(OrderItem).filter_by(order_id=order_id).order_by(OrderItem.id).all()
