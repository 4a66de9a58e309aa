# backend/erp/services/products_service.py
"""
Product catalog service.

Catalog writes never touch Product.quantity; on-hand stock changes only
through the ledger engine (inventory_service) and the order workflow.
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy.orm import Session

from ..errors import ConflictError
from ..models import Product, InventoryIn, InventoryOut, OrderItem
from .concurrency import unit_of_work
from .inventory_service import get_product

PRODUCT_MUTABLE_FIELDS = {"sku", "name", "description", "price_cents", "cost_cents", "unit", "minimum_quantity"}


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _ensure_sku_available(session: Session, sku: str, *, exclude_id: int | None = None) -> None:
    query = session.query(Product).filter(Product.sku == sku)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first():
        raise ConflictError("SKU already exists.", details={"sku": sku})


def list_products(session: Session) -> list[Product]:
    return session.query(Product).order_by(Product.name.asc(), Product.id.asc()).all()


def create_product(session: Session, *, patch: dict) -> Product:
    """
    Create a product from a validated patch dict.

    New products start with quantity 0; stock arrives through inventory-in.
    Raises ConflictError if the SKU is taken.
    """
    with unit_of_work(session):
        _ensure_sku_available(session, patch["sku"])
        p = Product(quantity=0)
        apply_product_patch(p, patch)
        session.add(p)
        session.flush()

    current_app.logger.info("product.created id=%s sku=%s", p.id, p.sku)
    return p


def update_product(session: Session, product_id: int, *, patch: dict) -> Product:
    with unit_of_work(session):
        p = get_product(session, product_id, lock=True)
        if "sku" in patch and patch["sku"] != p.sku:
            _ensure_sku_available(session, patch["sku"], exclude_id=p.id)
        apply_product_patch(p, patch)
        session.flush()
    return p


def delete_product(session: Session, product_id: int) -> None:
    """
    Hard-delete a product that has never moved.

    Products referenced by ledger rows or order items are kept so history
    stays intact; deleting one raises ConflictError.
    """
    with unit_of_work(session):
        p = get_product(session, product_id, lock=True)
        referenced = (
            session.query(InventoryIn.id).filter_by(product_id=p.id).first()
            or session.query(InventoryOut.id).filter_by(product_id=p.id).first()
            or session.query(OrderItem.id).filter_by(product_id=p.id).first()
        )
        if referenced:
            raise ConflictError(
                "Product has inventory or order history and cannot be deleted",
                details={"product_id": p.id},
            )
        session.delete(p)
        session.flush()

    current_app.logger.info("product.deleted id=%s", product_id)
