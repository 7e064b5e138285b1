# Overview: Flask API routes for products operations; parses input and returns JSON envelopes.

# backend/branchstock/routes/products.py
"""
Product catalogue and stock routes.

Stock is never patched through PUT: use POST /<id>/stock (manual in/out with
a ledger entry) or a transfer.
"""
from flask import Blueprint, current_app, g, request

from ..decorators import require_user
from ..extensions import db
from ..models import Product
from ..responses import failure, page_args, success
from ..services import products_service
from ..services.products_service import ProductError, ProductFilters
from ..validation import (
    PRODUCT_POLICY,
    PRODUCT_UPDATE_POLICY,
    ConflictError,
    ValidationError,
    enforce_rules_product,
    validate_payload,
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_user
def list_products():
    """
    Query params:
    - category, brand, search: case-insensitive substrings
    - branch_id: int
    - page, limit
    """
    page, limit = page_args()
    filters = ProductFilters(
        category=request.args.get("category") or None,
        brand=request.args.get("brand") or None,
        branch_id=request.args.get("branch_id", type=int),
        search=request.args.get("search") or None,
    )
    try:
        return success(products_service.list_products(filters, page, limit))
    except Exception:
        current_app.logger.exception("Failed to list products")
        return failure("Internal server error", 500)


@products_bp.get("/search")
@require_user
def search_products():
    try:
        result = products_service.search_products(
            request.args.get("q", ""),
            category=request.args.get("category") or None,
            branch_id=request.args.get("branch_id", type=int),
        )
        return success(result)
    except ProductError as e:
        return failure(str(e), e.status_code)
    except Exception:
        current_app.logger.exception("Failed to search products")
        return failure("Internal server error", 500)


@products_bp.get("/low-stock")
@require_user
def low_stock_products():
    try:
        return success(products_service.list_low_stock_products(request.args.get("branch_id", type=int)))
    except Exception:
        current_app.logger.exception("Failed to list low stock products")
        return failure("Internal server error", 500)


@products_bp.get("/branch/<int:branch_id>")
@require_user
def products_by_branch(branch_id: int):
    page, limit = page_args()
    try:
        return success(products_service.list_products_by_branch(branch_id, page, limit))
    except Exception:
        current_app.logger.exception("Failed to list products by branch")
        return failure("Internal server error", 500)


@products_bp.get("/<int:product_id>")
@require_user
def get_product(product_id: int):
    try:
        return success(products_service.get_product(product_id))
    except ProductError as e:
        return failure(str(e), e.status_code)
    except Exception:
        current_app.logger.exception("Failed to get product")
        return failure("Internal server error", 500)


@products_bp.post("")
@require_user
def create_product():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)  # Handles price validation including max check
        created = products_service.create_product(patch=patch)
        return success(created, "Product created successfully", 201)
    except ValidationError as e:
        return failure(str(e), 400)
    except ConflictError as e:
        db.session.rollback()
        return failure(str(e), 409)
    except ProductError as e:
        db.session.rollback()
        return failure(str(e), e.status_code)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create product")
        return failure("Internal server error", 500)


@products_bp.put("/<int:product_id>")
@require_user
def update_product(product_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_UPDATE_POLICY, partial=True)
        enforce_rules_product(patch)
        updated = products_service.update_product(product_id=product_id, patch=patch)
        return success(updated, "Product updated successfully")
    except ValidationError as e:
        return failure(str(e), 400)
    except ConflictError as e:
        db.session.rollback()
        return failure(str(e), 409)
    except ProductError as e:
        db.session.rollback()
        return failure(str(e), e.status_code)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update product")
        return failure("Internal server error", 500)


@products_bp.delete("/<int:product_id>")
@require_user
def delete_product(product_id: int):
    try:
        products_service.delete_product(product_id)
        return success(message="Product deleted successfully")
    except ProductError as e:
        return failure(str(e), e.status_code)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to delete product")
        return failure("Internal server error", 500)


@products_bp.post("/<int:product_id>/stock")
@require_user
def update_stock(product_id: int):
    """
    Request body: {"quantity": int, "type": "in" | "out", "reason": str}
    """
    data = request.get_json(silent=True) or {}
    try:
        updated = products_service.update_stock(
            product_id=product_id,
            quantity=data.get("quantity"),
            type=data.get("type"),
            reason=data.get("reason"),
            user_id=g.current_user.id,
        )
        current_app.logger.info(
            "Stock %s of %s for product %s by user %s",
            data.get("type"), data.get("quantity"), product_id, g.current_user.id,
        )
        return success(updated, "Stock updated successfully")
    except ProductError as e:
        return failure(str(e), e.status_code)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update stock")
        return failure("Internal server error", 500)


@products_bp.get("/<int:product_id>/movements")
@require_user
def stock_movements(product_id: int):
    page, limit = page_args()
    try:
        return success(products_service.list_stock_movements(product_id, page, limit))
    except ProductError as e:
        return failure(str(e), e.status_code)
    except Exception:
        current_app.logger.exception("Failed to list stock movements")
        return failure("Internal server error", 500)
