# Overview: Service-layer operations for the stock movement ledger.

from __future__ import annotations

from ..extensions import db
from ..models import StockMovement, MOVEMENT_REASON_MAX, MOVEMENT_TYPES
from .pagination import paginate
"""
Stock Ledger Invariants (authoritative)

- Append-only: one StockMovement row per stock delta, never updated or deleted.
- quantity is positive; direction lives in type ("in" | "out").
- Movements are written inside the same DB transaction as the stock change
  they record. This module only flushes; the calling service commits.
"""


class LedgerError(ValueError):
    """Raised when a movement cannot be recorded."""


def record_movement(
    *,
    product_id: int,
    branch_id: int,
    type: str,
    quantity: int,
    reason: str,
    user_id: int,
    transfer_id: int | None = None,
) -> StockMovement:
    if type not in MOVEMENT_TYPES:
        raise LedgerError(f"Invalid movement type: {type}")
    if quantity is None or quantity <= 0:
        raise LedgerError("Movement quantity must be positive")
    if not reason or not reason.strip():
        raise LedgerError("Movement reason is required")
    if len(reason.strip()) > MOVEMENT_REASON_MAX:
        raise LedgerError(f"Movement reason cannot exceed {MOVEMENT_REASON_MAX} characters")

    movement = StockMovement(
        product_id=product_id,
        branch_id=branch_id,
        type=type,
        quantity=quantity,
        reason=reason.strip(),
        transfer_id=transfer_id,
        created_by_user_id=user_id,
    )
    db.session.add(movement)
    db.session.flush()
    return movement


def list_movements(*, product_id: int | None = None, branch_id: int | None = None, page: int = 1, limit: int = 10):
    """Newest first."""
    query = db.session.query(StockMovement)
    if product_id is not None:
        query = query.filter(StockMovement.product_id == product_id)
    if branch_id is not None:
        query = query.filter(StockMovement.branch_id == branch_id)
    query = query.order_by(StockMovement.created_at.desc(), StockMovement.id.desc())
    return paginate(query, page, limit)


def net_quantity(product_id: int, branch_id: int | None = None) -> int:
    """Sum of in minus out for a product, optionally at one branch."""
    signed = db.case((StockMovement.type == "in", StockMovement.quantity), else_=-StockMovement.quantity)
    query = db.session.query(db.func.coalesce(db.func.sum(signed), 0)).filter(
        StockMovement.product_id == product_id
    )
    if branch_id is not None:
        query = query.filter(StockMovement.branch_id == branch_id)
    return int(query.scalar() or 0)
