from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from branchstock.time_utils import to_utc_z, utcnow


MOVEMENT_TYPES = ("in", "out")
# Fits "Transfer from <branch name>: " ahead of a full transfer reason
MOVEMENT_REASON_MAX = 400


class Product(db.Model):
    """
    Product master data plus its on-hand quantity.

    OWNERSHIP: a product belongs to exactly one branch (branch_id). Moving
    stock to another branch is done by transfer_service, which moves the
    whole product record and writes the paired StockMovement entries.

    STOCK: never negative. Enforced by a CHECK constraint and by every
    service path that decrements it (transfers, invoices, /stock updates).

    CONCURRENCY: version_id is SQLAlchemy's optimistic lock. A concurrent
    writer that loaded an older version gets StaleDataError on flush, which
    concurrency.run_with_retry turns into a retry.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.UniqueConstraint("sku", name="uq_products_sku"),
        db.UniqueConstraint("barcode", name="uq_products_barcode"),
        db.CheckConstraint("stock >= 0", name="ck_products_stock_non_negative"),
        db.Index("ix_products_branch_active", "branch_id", "is_active"),
        db.Index("ix_products_category", "category"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.String(500), nullable=True)
    sku = db.Column(db.String(64), nullable=False)
    barcode = db.Column(db.String(64), nullable=True)
    category = db.Column(db.String(100), nullable=False)
    brand = db.Column(db.String(100), nullable=True)

    # Authoritative storage in cents
    price_cents = db.Column(db.Integer, nullable=False)
    cost_price_cents = db.Column(db.Integer, nullable=False)

    stock = db.Column(db.Integer, nullable=False, default=0)
    min_stock = db.Column(db.Integer, nullable=False, default=0)
    max_stock = db.Column(db.Integer, nullable=False, default=1000)
    unit = db.Column(db.String(32), nullable=False, default="piece")

    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    branch = db.relationship("Branch", backref=db.backref("products", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} stock={self.stock} branch_id={self.branch_id}>"

    @property
    def is_low_stock(self) -> bool:
        return self.stock <= self.min_stock

    def to_summary(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "sku": self.sku,
            "unit": self.unit,
            "price_cents": self.price_cents,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "sku": self.sku,
            "barcode": self.barcode,
            "category": self.category,
            "brand": self.brand,
            "price_cents": self.price_cents,
            "cost_price_cents": self.cost_price_cents,
            "stock": self.stock,
            "min_stock": self.min_stock,
            "max_stock": self.max_stock,
            "unit": self.unit,
            "branch_id": self.branch_id,
            "branch": self.branch.to_summary() if self.branch else None,
            "is_active": self.is_active,
            "is_low_stock": self.is_low_stock,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class StockMovement(db.Model):
    """
    Append-only stock ledger.

    One row per stock delta: type "in" adds quantity at branch_id, "out"
    removes it. quantity is always positive; the sign lives in type.
    Transfers write a pair (out at source, in at destination) linked through
    transfer_id. Rows are never updated or deleted (see listeners below).
    """
    __tablename__ = "stock_movements"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_stock_movements_quantity_positive"),
        db.CheckConstraint("type IN ('in', 'out')", name="ck_stock_movements_type"),
        db.Index("ix_stock_movements_product_created", "product_id", "created_at"),
        db.Index("ix_stock_movements_branch_created", "branch_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)

    # in | out
    type = db.Column(db.String(8), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(MOVEMENT_REASON_MAX), nullable=False)

    transfer_id = db.Column(db.Integer, db.ForeignKey("transfers.id"), nullable=True, index=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    product = db.relationship("Product", backref=db.backref("movements", lazy="dynamic"))
    branch = db.relationship("Branch")
    created_by = db.relationship("User", foreign_keys=[created_by_user_id])

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "branch_id": self.branch_id,
            "branch": self.branch.to_summary() if self.branch else None,
            "type": self.type,
            "quantity": self.quantity,
            "reason": self.reason,
            "transfer_id": self.transfer_id,
            "created_by": self.created_by.to_summary() if self.created_by else None,
            "created_at": to_utc_z(self.created_at),
        }


class AppendOnlyViolation(RuntimeError):
    """Raised when code tries to rewrite or remove a ledger row."""


@event.listens_for(StockMovement, "before_update")
def _refuse_movement_update(mapper, connection, target):
    raise AppendOnlyViolation(f"StockMovement {target.id} is append-only and cannot be updated")


@event.listens_for(StockMovement, "before_delete")
def _refuse_movement_delete(mapper, connection, target):
    raise AppendOnlyViolation(f"StockMovement {target.id} is append-only and cannot be deleted")
