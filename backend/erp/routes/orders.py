# Overview: Flask API routes for order operations; parses input and returns JSON responses.

# backend/erp/routes/orders.py
"""
Order routes.

SECURITY: All routes require authentication.
- Read operations require orders:read
- Create/update/status require orders:write
- Delete requires orders:delete

Creating an order depletes stock immediately; a failure on any line
(missing product, short stock) rejects the whole order with the failing
line in `details`.
"""
from flask import Blueprint, request, g, current_app

from ..extensions import db
from ..errors import ServiceError, internal_error_response
from ..schemas import CreateOrderRequest, UpdateOrderRequest, parse_order_status
from ..services import order_service
from ..validation import ValidationError
from ..models import ORDER_STATUSES
from ..decorators import require_auth, require_permission


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


def _failure(e: Exception, action: str):
    if isinstance(e, (ServiceError, ValidationError)):
        return e.to_response()
    current_app.logger.exception("Failed to %s", action)
    db.session.rollback()
    return internal_error_response()


def _order_with_items(order):
    return order.to_dict(items=order_service.list_order_items(db.session, order.id))


@orders_bp.get("")
@require_auth
@require_permission("orders", "read")
def list_orders_route():
    """
    List orders, newest first.

    Query params:
    - status: one of the order statuses (optional)
    """
    status = request.args.get("status")
    if status and status not in ORDER_STATUSES:
        return ValidationError(f"status must be one of: {', '.join(ORDER_STATUSES)}").to_response()
    try:
        orders = order_service.list_orders(db.session, status=status)
        return {"items": [o.to_dict() for o in orders], "count": len(orders)}
    except Exception as e:
        return _failure(e, "list orders")


@orders_bp.get("/<int:order_id>")
@require_auth
@require_permission("orders", "read")
def get_order_route(order_id: int):
    try:
        return _order_with_items(order_service.get_order(db.session, order_id))
    except Exception as e:
        return _failure(e, "get order")


@orders_bp.get("/<int:order_id>/items")
@require_auth
@require_permission("orders", "read")
def list_order_items_route(order_id: int):
    try:
        items = order_service.list_order_items(db.session, order_id)
        return {"items": [i.to_dict() for i in items], "count": len(items)}
    except Exception as e:
        return _failure(e, "list order items")


@orders_bp.post("")
@require_auth
@require_permission("orders", "write")
def create_order_route():
    """
    Create an order and deplete stock.

    Body:
    {
        "customer_name": "...",
        "customer_email": "...",      (optional)
        "customer_phone": "...",      (optional)
        "shipping_address": "...",    (optional)
        "items": [{"product_id": 1, "quantity": 2}, ...]
    }
    """
    payload = request.get_json(silent=True) or {}
    try:
        req = CreateOrderRequest.from_payload(payload)
        order = order_service.create_order(db.session, req, actor_id=g.current_user.id)
        return _order_with_items(order), 201
    except Exception as e:
        return _failure(e, "create order")


@orders_bp.put("/<int:order_id>")
@require_auth
@require_permission("orders", "write")
def update_order_route(order_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        req = UpdateOrderRequest.from_payload(payload)
        order = order_service.update_order(db.session, order_id, req)
        return _order_with_items(order), 200
    except Exception as e:
        return _failure(e, "update order")


@orders_bp.put("/<int:order_id>/status")
@require_auth
@require_permission("orders", "write")
def update_order_status_route(order_id: int):
    """Body: {"status": "processing"}"""
    payload = request.get_json(silent=True) or {}
    try:
        new_status = parse_order_status(payload)
        order = order_service.update_order_status(db.session, order_id, new_status)
        return _order_with_items(order), 200
    except Exception as e:
        return _failure(e, "update order status")


@orders_bp.delete("/<int:order_id>")
@require_auth
@require_permission("orders", "delete")
def delete_order_route(order_id: int):
    """Delete an order that is not completed and return its stock."""
    try:
        order_service.delete_order(db.session, order_id)
        return {"message": "Order deleted"}, 200
    except Exception as e:
        return _failure(e, "delete order")
