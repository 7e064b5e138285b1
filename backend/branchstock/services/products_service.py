# backend/branchstock/services/products_service.py
"""
Products Service

Every product belongs to exactly one branch. Stock changes go through
update_stock (manual in/out), billing_service (sales) or transfer_service
(branch moves); each of them writes StockMovement rows via ledger_service.
update_product never touches stock or branch_id.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..extensions import db
from ..errors import ServiceError
from ..models import Branch, Product, MOVEMENT_REASON_MAX, MOVEMENT_TYPES
from ..validation import ConflictError
from .concurrency import lock_for_update, run_with_retry
from .ledger_service import list_movements, record_movement
from .pagination import paginate

PRODUCT_MUTABLE_FIELDS = {
    "name", "description", "sku", "barcode", "category", "brand",
    "price_cents", "cost_price_cents", "min_stock", "max_stock", "unit", "is_active",
}


class ProductError(ServiceError):
    """Raised when product operations fail."""
    pass


@dataclass(frozen=True)
class ProductFilters:
    category: Optional[str] = None
    brand: Optional[str] = None
    branch_id: Optional[int] = None
    search: Optional[str] = None


def apply_product_patch(p: Product, patch: dict) -> None:
    for k, v in patch.items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        setattr(p, k, v)


def _require_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise ProductError.not_found("Product not found")
    return product


def _ensure_unique_codes(patch: dict, exclude_id: int | None = None) -> None:
    for field, label in (("sku", "SKU"), ("barcode", "barcode")):
        value = patch.get(field)
        if not value:
            continue
        query = db.session.query(Product.id).filter(getattr(Product, field) == value)
        if exclude_id is not None:
            query = query.filter(Product.id != exclude_id)
        if query.first():
            raise ConflictError(f"Product with this {label} already exists")


def _active_products():
    return db.session.query(Product).filter(Product.is_active.is_(True))


def list_products(filters: ProductFilters | None = None, page: int = 1, limit: int = 10) -> dict:
    """Active products, newest first. Text filters are case-insensitive substrings."""
    filters = filters or ProductFilters()
    query = _active_products()

    if filters.category:
        query = query.filter(Product.category.ilike(f"%{filters.category}%"))
    if filters.brand:
        query = query.filter(Product.brand.ilike(f"%{filters.brand}%"))
    if filters.branch_id is not None:
        query = query.filter(Product.branch_id == filters.branch_id)
    if filters.search:
        pattern = f"%{filters.search}%"
        query = query.filter(db.or_(
            Product.name.ilike(pattern),
            Product.sku.ilike(pattern),
            Product.barcode.ilike(pattern),
        ))

    query = query.order_by(Product.created_at.desc(), Product.id.desc())
    rows, pagination = paginate(query, page, limit)
    return {"products": [p.to_dict() for p in rows], "pagination": pagination}


def list_products_by_branch(branch_id: int, page: int = 1, limit: int = 10) -> dict:
    return list_products(ProductFilters(branch_id=branch_id), page, limit)


def get_product(product_id: int) -> dict:
    return _require_product(product_id).to_dict()


def create_product(*, patch: dict) -> dict:
    """
    Create product using a validated patch dict.

    Raises:
        ProductError: branch missing (404)
        ConflictError: SKU or barcode already used
    """
    branch = db.session.get(Branch, patch["branch_id"])
    if branch is None or not branch.is_active:
        raise ProductError.not_found("Branch not found")

    _ensure_unique_codes(patch)

    p = Product(branch_id=branch.id, stock=patch.get("stock") or 0)
    apply_product_patch(p, patch)

    db.session.add(p)
    db.session.commit()
    return p.to_dict()


def update_product(*, product_id: int, patch: dict) -> dict:
    def _op():
        p = _require_product(product_id)
        _ensure_unique_codes(patch, exclude_id=p.id)

        min_stock = patch.get("min_stock", p.min_stock)
        max_stock = patch.get("max_stock", p.max_stock)
        if min_stock is not None and max_stock is not None and min_stock > max_stock:
            raise ProductError("min_stock cannot exceed max_stock")

        apply_product_patch(p, patch)
        db.session.commit()
        return p.to_dict()

    return run_with_retry(_op)


def delete_product(product_id: int) -> None:
    """Soft-delete only: preserve IDs and historical references."""
    p = _require_product(product_id)
    if p.is_active:
        p.is_active = False
    db.session.commit()


def search_products(term: str, *, category: str | None = None, branch_id: int | None = None) -> list[dict]:
    term = (term or "").strip()
    if not term:
        raise ProductError("Search query is required")

    pattern = f"%{term}%"
    query = _active_products().filter(db.or_(
        Product.name.ilike(pattern),
        Product.sku.ilike(pattern),
        Product.barcode.ilike(pattern),
        Product.category.ilike(pattern),
        Product.brand.ilike(pattern),
    ))
    if category:
        query = query.filter(Product.category.ilike(f"%{category}%"))
    if branch_id is not None:
        query = query.filter(Product.branch_id == branch_id)

    rows = query.order_by(Product.name.asc(), Product.id.asc()).limit(20).all()
    return [p.to_dict() for p in rows]


def list_low_stock_products(branch_id: int | None = None) -> list[dict]:
    """Active products at or below min_stock, lowest stock first."""
    query = _active_products().filter(Product.stock <= Product.min_stock)
    if branch_id is not None:
        query = query.filter(Product.branch_id == branch_id)
    rows = query.order_by(Product.stock.asc(), Product.id.asc()).all()
    return [p.to_dict() for p in rows]


def update_stock(*, product_id: int, quantity: int, type: str, reason: str, user_id: int) -> dict:
    """
    Manual stock adjustment with a ledger entry.

    "in" adds quantity, "out" removes it and fails when stock would go
    negative. Product row and movement are committed together.
    """
    if type not in MOVEMENT_TYPES:
        raise ProductError("Failed to update stock: Invalid stock movement type")
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
        raise ProductError("Failed to update stock: Quantity must be a positive integer")
    if not reason or not str(reason).strip():
        raise ProductError("Failed to update stock: Reason is required")
    if len(str(reason).strip()) > MOVEMENT_REASON_MAX:
        raise ProductError(f"Failed to update stock: Reason cannot exceed {MOVEMENT_REASON_MAX} characters")

    def _op():
        product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
        if product is None:
            raise ProductError.not_found("Failed to update stock: Product not found")

        if type == "out":
            if product.stock < quantity:
                raise ProductError("Failed to update stock: Insufficient stock")
            product.stock -= quantity
        else:
            product.stock += quantity

        record_movement(
            product_id=product.id,
            branch_id=product.branch_id,
            type=type,
            quantity=quantity,
            reason=reason,
            user_id=user_id,
        )
        db.session.commit()
        return product.to_dict()

    return run_with_retry(_op)


def list_stock_movements(product_id: int, page: int = 1, limit: int = 10) -> dict:
    _require_product(product_id)
    rows, pagination = list_movements(product_id=product_id, page=page, limit=limit)
    return {"movements": [m.to_dict() for m in rows], "pagination": pagination}
