# backend/erp/routes/inventory.py
"""
Inventory ledger routes.

SECURITY: All routes require authentication.
- Read operations require inventory:read
- Create/update require inventory:write
- Delete requires inventory:delete
- Reconcile requires the admin or manager role

Time semantics:
- History filters accept ISO-8601 datetimes with Z/offsets or plain dates.
- Both bounds are inclusive; a date-only end_date covers that whole day.
"""
from flask import Blueprint, request, g, current_app

from ..extensions import db
from ..errors import ServiceError, internal_error_response
from ..schemas import InventoryInRequest, InventoryInUpdate, InventoryOutRequest, InventoryOutUpdate
from ..services import inventory_service
from ..validation import ValidationError
from ..decorators import require_auth, require_permission, require_role
from erp.time_utils import parse_range_bound


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


def _date_arg(name: str, *, upper: bool = False):
    try:
        return parse_range_bound(request.args.get(name), upper=upper)
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 date or datetime")


def _product_id_arg():
    raw = request.args.get("product_id")
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValidationError("product_id must be an integer")


def _failure(e: Exception, action: str):
    if isinstance(e, (ServiceError, ValidationError)):
        return e.to_response()
    current_app.logger.exception("Failed to %s", action)
    db.session.rollback()
    return internal_error_response()


# =============================================================================
# INVENTORY IN
# =============================================================================

@inventory_bp.get("/in")
@require_auth
@require_permission("inventory", "read")
def list_inventory_in_route():
    try:
        product_id = _product_id_arg()
        rows = inventory_service.list_inventory_in(db.session, product_id=product_id)
        return {"items": [r.to_dict() for r in rows], "count": len(rows)}
    except Exception as e:
        return _failure(e, "list inventory in records")


@inventory_bp.get("/in/<int:record_id>")
@require_auth
@require_permission("inventory", "read")
def get_inventory_in_route(record_id: int):
    try:
        return inventory_service.get_inventory_in(db.session, record_id).to_dict()
    except Exception as e:
        return _failure(e, "get inventory in record")


@inventory_bp.post("/in")
@require_auth
@require_permission("inventory", "write")
def create_inventory_in_route():
    """
    Record goods received.

    Body: {"product_id", "quantity", "unit_price_cents", "supplier", "invoice_number"?}
    """
    payload = request.get_json(silent=True) or {}
    try:
        req = InventoryInRequest.from_payload(payload)
        row = inventory_service.record_inventory_in(db.session, req, actor_id=g.current_user.id)
        return row.to_dict(), 201
    except Exception as e:
        return _failure(e, "create inventory in record")


@inventory_bp.put("/in/<int:record_id>")
@require_auth
@require_permission("inventory", "write")
def update_inventory_in_route(record_id: int):
    """Replace quantity, unit price, supplier and invoice number of a stock-in record."""
    payload = request.get_json(silent=True) or {}
    try:
        update = InventoryInUpdate.from_payload(payload)
        row = inventory_service.update_inventory_in(db.session, record_id, update)
        return row.to_dict(), 200
    except Exception as e:
        return _failure(e, "update inventory in record")


@inventory_bp.delete("/in/<int:record_id>")
@require_auth
@require_permission("inventory", "delete")
def delete_inventory_in_route(record_id: int):
    try:
        inventory_service.delete_inventory_in(db.session, record_id)
        return {"message": "Inventory in record deleted"}, 200
    except Exception as e:
        return _failure(e, "delete inventory in record")


# =============================================================================
# INVENTORY OUT
# =============================================================================

@inventory_bp.get("/out")
@require_auth
@require_permission("inventory", "read")
def list_inventory_out_route():
    try:
        product_id = _product_id_arg()
        rows = inventory_service.list_inventory_out(db.session, product_id=product_id)
        return {"items": [r.to_dict() for r in rows], "count": len(rows)}
    except Exception as e:
        return _failure(e, "list inventory out records")


@inventory_bp.get("/out/<int:record_id>")
@require_auth
@require_permission("inventory", "read")
def get_inventory_out_route(record_id: int):
    try:
        return inventory_service.get_inventory_out(db.session, record_id).to_dict()
    except Exception as e:
        return _failure(e, "get inventory out record")


@inventory_bp.post("/out")
@require_auth
@require_permission("inventory", "write")
def create_inventory_out_route():
    """
    Record a manual stock-out (damage, expiry, correction).

    Body: {"product_id", "quantity", "reason"?}
    """
    payload = request.get_json(silent=True) or {}
    try:
        req = InventoryOutRequest.from_payload(payload)
        row = inventory_service.record_inventory_out(db.session, req, actor_id=g.current_user.id)
        return row.to_dict(), 201
    except Exception as e:
        return _failure(e, "create inventory out record")


@inventory_bp.put("/out/<int:record_id>")
@require_auth
@require_permission("inventory", "write")
def update_inventory_out_route(record_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        update = InventoryOutUpdate.from_payload(payload)
        row = inventory_service.update_inventory_out(db.session, record_id, update)
        return row.to_dict(), 200
    except Exception as e:
        return _failure(e, "update inventory out record")


@inventory_bp.delete("/out/<int:record_id>")
@require_auth
@require_permission("inventory", "delete")
def delete_inventory_out_route(record_id: int):
    try:
        inventory_service.delete_inventory_out(db.session, record_id)
        return {"message": "Inventory out record deleted"}, 200
    except Exception as e:
        return _failure(e, "delete inventory out record")


# =============================================================================
# REPORTS
# =============================================================================

@inventory_bp.get("/status")
@require_auth
@require_permission("inventory", "read")
def inventory_status_route():
    """Every product with status "low" (quantity <= minimum_quantity) or "normal"."""
    try:
        items = inventory_service.get_inventory_status(db.session)
        return {"items": items, "count": len(items)}
    except Exception as e:
        return _failure(e, "get inventory status")


@inventory_bp.get("/history")
@require_auth
@require_permission("inventory", "read")
def inventory_history_route():
    """
    Merged stock-in/stock-out history, newest first.

    Query params:
    - product_id: int (optional)
    - start_date: ISO-8601 (optional, inclusive)
    - end_date: ISO-8601 (optional, inclusive)
    """
    try:
        start = _date_arg("start_date")
        end = _date_arg("end_date", upper=True)
        items = inventory_service.get_inventory_history(
            db.session,
            product_id=_product_id_arg(),
            start=start,
            end=end,
        )
        return {"items": items, "count": len(items)}
    except Exception as e:
        return _failure(e, "get inventory history")


@inventory_bp.get("/reconcile")
@require_auth
@require_role("admin", "manager")
def reconcile_route():
    """Compare each product's stored quantity with its ledger sum."""
    try:
        results = inventory_service.reconcile(
            db.session, product_id=_product_id_arg()
        )
        drift = [r for r in results if not r["consistent"]]
        return {"items": results, "count": len(results), "consistent": not drift}
    except Exception as e:
        return _failure(e, "reconcile inventory")
