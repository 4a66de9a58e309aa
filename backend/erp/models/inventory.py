from __future__ import annotations

from ..extensions import db
from erp.time_utils import utcnow, to_utc_z


class Product(db.Model):
    """
    Product master data.

    QUANTITY DESIGN DECISION:
    Product.quantity is the authoritative on-hand count, but it is only ever
    written by the stock ledger engine (services/inventory_service.py) in the
    same transaction as the InventoryIn / InventoryOut row that justifies it.
    Catalog updates never touch it.

    INVARIANT (at any quiescent point):
        quantity == SUM(inventory_in.quantity) - SUM(inventory_out.quantity)

    CONCURRENCY:
    - Ledger operations read the row with SELECT ... FOR UPDATE.
    - version_id is an optimistic counter; a lost update raises StaleDataError.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("quantity >= 0", name="ck_products_quantity_non_negative"),
        db.Index("ix_products_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Business key, unique across the catalog
    sku = db.Column(db.String(64), nullable=False, unique=True, index=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)

    # Authoritative storage in cents (frontend may only format for display)
    price_cents = db.Column(db.Integer, nullable=False, default=0)
    cost_cents = db.Column(db.Integer, nullable=False, default=0)

    # Unit of measure (ea, box, kg, ...)
    unit = db.Column(db.String(32), nullable=False, default="ea")

    quantity = db.Column(db.Integer, nullable=False, default=0)
    minimum_quantity = db.Column(db.Integer, nullable=False, default=0)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def stock_status(self) -> str:
        return "low" if self.quantity <= self.minimum_quantity else "normal"

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} quantity={self.quantity}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "description": self.description,
            "price_cents": self.price_cents,
            "cost_cents": self.cost_cents,
            "unit": self.unit,
            "quantity": self.quantity,
            "minimum_quantity": self.minimum_quantity,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class InventoryIn(db.Model):
    """A single stock-increasing event (goods received from a supplier)."""
    __tablename__ = "inventory_in"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_inventory_in_quantity_positive"),
        db.Index("ix_inventory_in_product_created", "product_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    # Always quantity * unit_price_cents; recomputed on every write
    total_price_cents = db.Column(db.Integer, nullable=False)

    supplier = db.Column(db.String(255), nullable=False)
    invoice_number = db.Column(db.String(64), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    # pending | approved | rejected (informational; does not gate the quantity effect)
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": "in",
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "total_price_cents": self.total_price_cents,
            "supplier": self.supplier,
            "invoice_number": self.invoice_number,
            "created_by_user_id": self.created_by_user_id,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class InventoryOut(db.Model):
    """
    A single stock-decreasing event.

    order_id distinguishes order-driven depletion (set by the order workflow)
    from manual depletion (damaged, expired, adjustments).
    """
    __tablename__ = "inventory_out"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_inventory_out_quantity_positive"),
        db.Index("ix_inventory_out_product_created", "product_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)

    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, index=True)
    reason = db.Column(db.String(255), nullable=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True, index=True)

    status = db.Column(db.String(16), nullable=False, default="pending", index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": "out",
            "product_id": self.product_id,
            "quantity": self.quantity,
            "order_id": self.order_id,
            "reason": self.reason,
            "created_by_user_id": self.created_by_user_id,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
