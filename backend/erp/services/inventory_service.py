# Overview: Stock ledger engine; keeps Product.quantity and the in/out ledger consistent.

# backend/erp/services/inventory_service.py
"""
Inventory Ledger Invariants (authoritative)

Inventory model:
- Product.quantity is the stored on-hand count.
- Every change to it is paired with an InventoryIn / InventoryOut row (create,
  update or delete) inside the same DB transaction.
- At any quiescent point, for every product:
      quantity == SUM(inventory_in.quantity) - SUM(inventory_out.quantity)

Business invariants:
- On-hand quantity may never go negative. Stock-in is always allowed; any
  change that would leave quantity < 0 (stock-out, shrinking or deleting a
  stock-in whose units were already consumed) fails with
  InsufficientStockError and nothing is written.
- total_price_cents == quantity * unit_price_cents on every InventoryIn write.
- Updates reverse the record's old effect before applying the new one.
- Order-linked InventoryOut rows belong to the order lifecycle and cannot be
  edited or deleted on their own.

Concurrency:
- Each public operation is one unit_of_work(); the Product row is read with
  SELECT ... FOR UPDATE before any check-then-write on quantity.
- Product.version_id guards against lost updates that bypass the lock.

Time semantics:
- created_at is UTC-naive; API responses serialize as ISO-8601 'Z' strings.
- History date filters are inclusive on both bounds.
"""

from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..errors import NotFoundError, InsufficientStockError, InvalidStateError
from ..models import Product, InventoryIn, InventoryOut
from ..schemas import InventoryInRequest, InventoryInUpdate, InventoryOutRequest, InventoryOutUpdate
from .concurrency import lock_for_update, unit_of_work


# =============================================================================
# INTERNAL HELPERS (no commit; callers own the transaction)
# =============================================================================

def get_product(session: Session, product_id: int, *, lock: bool = False) -> Product:
    query = session.query(Product).filter_by(id=product_id)
    if lock:
        query = lock_for_update(query).populate_existing()
    product = query.first()
    if product is None:
        raise NotFoundError(f"Product {product_id} not found", details={"product_id": product_id})
    return product


def lock_products(session: Session, product_ids) -> dict[int, Product]:
    """
    Lock a set of product rows in ascending id order.

    WHY: Multi-product operations (orders) always acquire row locks in the
    same order, so two of them can never deadlock on each other.
    Missing ids are simply absent from the result.
    """
    locked: dict[int, Product] = {}
    for product_id in sorted(set(product_ids)):
        product = (
            lock_for_update(session.query(Product).filter_by(id=product_id))
            .populate_existing()
            .first()
        )
        if product is not None:
            locked[product_id] = product
    return locked


def _apply_quantity_change(product: Product, delta: int) -> None:
    """Apply a signed delta to on-hand stock, refusing to go below zero."""
    new_quantity = product.quantity + delta
    if new_quantity < 0:
        raise InsufficientStockError(
            f"Insufficient stock for product {product.name}",
            details={
                "product_id": product.id,
                "on_hand": product.quantity,
                "requested_change": delta,
            },
        )
    product.quantity = new_quantity


def _lock_record(session: Session, model, record_id: int, label: str):
    """
    Load a ledger row and lock its product before locking the row itself.

    Product-first ordering matches every other writer of that product.
    """
    record = session.get(model, record_id)
    if record is None:
        raise NotFoundError(f"{label} {record_id} not found", details={"id": record_id})

    product = get_product(session, record.product_id, lock=True)

    record = (
        lock_for_update(session.query(model).filter_by(id=record_id))
        .populate_existing()
        .first()
    )
    if record is None:
        raise NotFoundError(f"{label} {record_id} not found", details={"id": record_id})
    return record, product


def record_inventory_in_inner(
    session: Session,
    *,
    product: Product,
    quantity: int,
    unit_price_cents: int,
    supplier: str,
    invoice_number: str | None = None,
    actor_id: int | None = None,
) -> InventoryIn:
    """Core stock-in logic without locking or commit. `product` must already be locked."""
    row = InventoryIn(
        product_id=product.id,
        quantity=quantity,
        unit_price_cents=unit_price_cents,
        total_price_cents=quantity * unit_price_cents,
        supplier=supplier,
        invoice_number=invoice_number,
        created_by_user_id=actor_id,
    )
    session.add(row)
    session.flush()

    _apply_quantity_change(product, quantity)
    session.flush()
    return row


def record_inventory_out_inner(
    session: Session,
    *,
    product: Product,
    quantity: int,
    reason: str | None = None,
    actor_id: int | None = None,
    order_id: int | None = None,
) -> InventoryOut:
    """Core stock-out logic without locking or commit. `product` must already be locked."""
    if quantity > product.quantity:
        raise InsufficientStockError(
            f"Insufficient stock for product {product.name}",
            details={
                "product_id": product.id,
                "on_hand": product.quantity,
                "requested": quantity,
            },
        )

    row = InventoryOut(
        product_id=product.id,
        quantity=quantity,
        reason=reason,
        order_id=order_id,
        created_by_user_id=actor_id,
    )
    session.add(row)
    session.flush()

    _apply_quantity_change(product, -quantity)
    session.flush()
    return row


# =============================================================================
# LEDGER OPERATIONS
# =============================================================================

def record_inventory_in(
    session: Session,
    request: InventoryInRequest,
    *,
    actor_id: int | None = None,
) -> InventoryIn:
    """
    Receive stock: create an InventoryIn row and increase Product.quantity.

    No upper bound: stock-in is unconditionally allowed.
    Raises NotFoundError if the product does not exist.
    """
    with unit_of_work(session):
        product = get_product(session, request.product_id, lock=True)
        row = record_inventory_in_inner(
            session,
            product=product,
            quantity=request.quantity,
            unit_price_cents=request.unit_price_cents,
            supplier=request.supplier,
            invoice_number=request.invoice_number,
            actor_id=actor_id,
        )
        on_hand = product.quantity

    current_app.logger.info(
        "inventory.in id=%s product_id=%s quantity=%s on_hand=%s",
        row.id, request.product_id, request.quantity, on_hand,
    )
    return row


def record_inventory_out(
    session: Session,
    request: InventoryOutRequest,
    *,
    actor_id: int | None = None,
    order_id: int | None = None,
) -> InventoryOut:
    """
    Issue stock: create an InventoryOut row and decrease Product.quantity.

    Raises NotFoundError if the product does not exist and
    InsufficientStockError if quantity exceeds on-hand stock.
    """
    with unit_of_work(session):
        product = get_product(session, request.product_id, lock=True)
        row = record_inventory_out_inner(
            session,
            product=product,
            quantity=request.quantity,
            reason=request.reason,
            actor_id=actor_id,
            order_id=order_id,
        )
        on_hand = product.quantity

    current_app.logger.info(
        "inventory.out id=%s product_id=%s quantity=%s on_hand=%s",
        row.id, request.product_id, request.quantity, on_hand,
    )
    return row


def update_inventory_in(session: Session, inventory_in_id: int, update: InventoryInUpdate) -> InventoryIn:
    """
    Replace the quantity/price/supplier of a stock-in record.

    The old quantity is reversed and the new one applied as a single net
    change; the intermediate state is never written.
    """
    with unit_of_work(session):
        record, product = _lock_record(session, InventoryIn, inventory_in_id, "Inventory in record")

        # reverse old effect, apply new one
        _apply_quantity_change(product, update.quantity - record.quantity)

        record.quantity = update.quantity
        record.unit_price_cents = update.unit_price_cents
        record.total_price_cents = update.quantity * update.unit_price_cents
        record.supplier = update.supplier
        record.invoice_number = update.invoice_number
        session.flush()
        on_hand = product.quantity

    current_app.logger.info(
        "inventory.in.updated id=%s product_id=%s quantity=%s on_hand=%s",
        inventory_in_id, record.product_id, update.quantity, on_hand,
    )
    return record


def update_inventory_out(session: Session, inventory_out_id: int, update: InventoryOutUpdate) -> InventoryOut:
    """
    Replace the quantity/reason of a manual stock-out record.

    The old quantity is returned to stock first; the new quantity must fit
    in the resulting on-hand amount.
    """
    with unit_of_work(session):
        record, product = _lock_record(session, InventoryOut, inventory_out_id, "Inventory out record")
        if record.order_id is not None:
            raise InvalidStateError(
                "Order-linked inventory out records are managed through their order",
                details={"id": record.id, "order_id": record.order_id},
            )

        available = product.quantity + record.quantity
        if update.quantity > available:
            raise InsufficientStockError(
                f"Insufficient stock for product {product.name}",
                details={
                    "product_id": product.id,
                    "on_hand": available,
                    "requested": update.quantity,
                },
            )

        _apply_quantity_change(product, record.quantity - update.quantity)

        record.quantity = update.quantity
        record.reason = update.reason
        session.flush()
        on_hand = product.quantity

    current_app.logger.info(
        "inventory.out.updated id=%s product_id=%s quantity=%s on_hand=%s",
        inventory_out_id, record.product_id, update.quantity, on_hand,
    )
    return record


def delete_inventory_in(session: Session, inventory_in_id: int) -> None:
    """Reverse a stock-in record's effect on Product.quantity, then remove it."""
    with unit_of_work(session):
        record, product = _lock_record(session, InventoryIn, inventory_in_id, "Inventory in record")
        _apply_quantity_change(product, -record.quantity)
        session.delete(record)
        session.flush()
        on_hand = product.quantity

    current_app.logger.info("inventory.in.deleted id=%s on_hand=%s", inventory_in_id, on_hand)


def delete_inventory_out(session: Session, inventory_out_id: int) -> None:
    """Return a manual stock-out record's quantity to stock, then remove it."""
    with unit_of_work(session):
        record, product = _lock_record(session, InventoryOut, inventory_out_id, "Inventory out record")
        if record.order_id is not None:
            raise InvalidStateError(
                "Order-linked inventory out records are managed through their order",
                details={"id": record.id, "order_id": record.order_id},
            )
        _apply_quantity_change(product, record.quantity)
        session.delete(record)
        session.flush()
        on_hand = product.quantity

    current_app.logger.info("inventory.out.deleted id=%s on_hand=%s", inventory_out_id, on_hand)


# =============================================================================
# READS
# =============================================================================

def list_inventory_in(session: Session, *, product_id: int | None = None) -> list[InventoryIn]:
    query = session.query(InventoryIn)
    if product_id is not None:
        query = query.filter(InventoryIn.product_id == product_id)
    return query.order_by(InventoryIn.created_at.desc(), InventoryIn.id.desc()).all()


def get_inventory_in(session: Session, inventory_in_id: int) -> InventoryIn:
    record = session.get(InventoryIn, inventory_in_id)
    if record is None:
        raise NotFoundError(f"Inventory in record {inventory_in_id} not found", details={"id": inventory_in_id})
    return record


def list_inventory_out(session: Session, *, product_id: int | None = None) -> list[InventoryOut]:
    query = session.query(InventoryOut)
    if product_id is not None:
        query = query.filter(InventoryOut.product_id == product_id)
    return query.order_by(InventoryOut.created_at.desc(), InventoryOut.id.desc()).all()


def get_inventory_out(session: Session, inventory_out_id: int) -> InventoryOut:
    record = session.get(InventoryOut, inventory_out_id)
    if record is None:
        raise NotFoundError(f"Inventory out record {inventory_out_id} not found", details={"id": inventory_out_id})
    return record


def get_inventory_status(session: Session) -> list[dict]:
    """All products with a derived stock status: "low" when quantity <= minimum_quantity."""
    products = session.query(Product).order_by(Product.id).all()
    return [
        {
            "id": p.id,
            "name": p.name,
            "sku": p.sku,
            "quantity": p.quantity,
            "minimum_quantity": p.minimum_quantity,
            "unit": p.unit,
            "status": p.stock_status,
        }
        for p in products
    ]


def _history_entry(record, products: dict[int, Product]) -> dict:
    entry = record.to_dict()
    product = products.get(record.product_id)
    entry["product"] = (
        {"id": product.id, "sku": product.sku, "name": product.name} if product else None
    )
    return entry


def get_inventory_history(
    session: Session,
    *,
    product_id: int | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[dict]:
    """
    Merge stock-in and stock-out records into one list, newest first.

    Each entry carries type "in" or "out". Bounds are inclusive; either may
    be omitted.
    """
    def _filtered(model):
        query = session.query(model)
        if product_id is not None:
            query = query.filter(model.product_id == product_id)
        if start is not None:
            query = query.filter(model.created_at >= start)
        if end is not None:
            query = query.filter(model.created_at <= end)
        return query.all()

    rows = _filtered(InventoryIn) + _filtered(InventoryOut)
    rows.sort(key=lambda r: (r.created_at, r.id), reverse=True)

    product_ids = {r.product_id for r in rows}
    products = {}
    if product_ids:
        products = {p.id: p for p in session.query(Product).filter(Product.id.in_(product_ids)).all()}

    return [_history_entry(r, products) for r in rows]


def get_product_inventory(session: Session, product_id: int) -> dict:
    """Per-product view: the product plus its stock-in and stock-out records."""
    product = get_product(session, product_id)
    return {
        "product": product.to_dict(),
        "inventory_in": [r.to_dict() for r in list_inventory_in(session, product_id=product_id)],
        "inventory_out": [r.to_dict() for r in list_inventory_out(session, product_id=product_id)],
    }


def reconcile(session: Session, *, product_id: int | None = None) -> list[dict]:
    """
    Compare stored on-hand quantity with the ledger for each product.

    Returns one entry per product with `ledger_quantity` (sum in - sum out)
    and `consistent` (stored == ledger).
    """
    in_totals = dict(
        session.query(InventoryIn.product_id, func.coalesce(func.sum(InventoryIn.quantity), 0))
        .group_by(InventoryIn.product_id)
        .all()
    )
    out_totals = dict(
        session.query(InventoryOut.product_id, func.coalesce(func.sum(InventoryOut.quantity), 0))
        .group_by(InventoryOut.product_id)
        .all()
    )

    query = session.query(Product)
    if product_id is not None:
        get_product(session, product_id)
        query = query.filter(Product.id == product_id)

    results = []
    for product in query.order_by(Product.id).all():
        total_in = int(in_totals.get(product.id, 0))
        total_out = int(out_totals.get(product.id, 0))
        ledger_quantity = total_in - total_out
        results.append({
            "product_id": product.id,
            "sku": product.sku,
            "quantity": product.quantity,
            "total_in": total_in,
            "total_out": total_out,
            "ledger_quantity": ledger_quantity,
            "consistent": product.quantity == ledger_quantity,
        })
    return results
