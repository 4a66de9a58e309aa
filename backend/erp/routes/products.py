# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/erp/routes/products.py
"""
Product catalog routes.

SECURITY: All routes require authentication.
- Read operations require products:read
- Create/update require products:write
- Delete requires products:delete
- Per-product stock movements require inventory:write

Product.quantity is read-only here; it changes only through the ledger.
"""
from flask import Blueprint, request, g, current_app

from ..extensions import db
from ..errors import ServiceError, internal_error_response
from ..models import Product
from ..schemas import InventoryInRequest, InventoryOutRequest
from ..services import products_service, inventory_service
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    ValidationError,
)
from ..decorators import require_auth, require_permission

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"sku", "name", "description", "price_cents", "cost_cents", "unit", "minimum_quantity"},
    required_on_create={"sku", "name", "price_cents"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _failure(e: Exception, action: str):
    if isinstance(e, (ServiceError, ValidationError)):
        return e.to_response()
    current_app.logger.exception("Failed to %s", action)
    db.session.rollback()
    return internal_error_response()


@products_bp.get("")
@require_auth
@require_permission("products", "read")
def list_products():
    products = products_service.list_products(db.session)
    return {"items": [p.to_dict() for p in products], "count": len(products)}


@products_bp.get("/<int:product_id>")
@require_auth
@require_permission("products", "read")
def get_product(product_id: int):
    try:
        return inventory_service.get_product(db.session, product_id).to_dict()
    except Exception as e:
        return _failure(e, "get product")


@products_bp.post("")
@require_auth
@require_permission("products", "write")
def create_product_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
        created = products_service.create_product(db.session, patch=patch)
        return created.to_dict(), 201
    except Exception as e:
        return _failure(e, "create product")


@products_bp.put("/<int:product_id>")
@require_auth
@require_permission("products", "write")
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
        updated = products_service.update_product(db.session, product_id, patch=patch)
        return updated.to_dict(), 200
    except Exception as e:
        return _failure(e, "update product")


@products_bp.delete("/<int:product_id>")
@require_auth
@require_permission("products", "delete")
def delete_product_route(product_id: int):
    try:
        products_service.delete_product(db.session, product_id)
        return {"message": "Product deleted"}, 200
    except Exception as e:
        return _failure(e, "delete product")


@products_bp.get("/<int:product_id>/inventory")
@require_auth
@require_permission("products", "read")
def product_inventory_route(product_id: int):
    """The product with its stock-in and stock-out records."""
    try:
        return inventory_service.get_product_inventory(db.session, product_id)
    except Exception as e:
        return _failure(e, "get product inventory")


@products_bp.post("/<int:product_id>/inventory/in")
@require_auth
@require_permission("inventory", "write")
def product_inventory_in_route(product_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        req = InventoryInRequest.from_payload(payload, product_id=product_id)
        row = inventory_service.record_inventory_in(db.session, req, actor_id=g.current_user.id)
        return row.to_dict(), 201
    except Exception as e:
        return _failure(e, "create inventory in record")


@products_bp.post("/<int:product_id>/inventory/out")
@require_auth
@require_permission("inventory", "write")
def product_inventory_out_route(product_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        req = InventoryOutRequest.from_payload(payload, product_id=product_id)
        row = inventory_service.record_inventory_out(db.session, req, actor_id=g.current_user.id)
        return row.to_dict(), 201
    except Exception as e:
        return _failure(e, "create inventory out record")
