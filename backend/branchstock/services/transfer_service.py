# backend/branchstock/services/transfer_service.py
"""
Inter-branch transfer service.

WHY: a product is owned by exactly one branch. Moving it means decrementing
its stock, re-pointing branch_id at the destination and writing a paired
ledger entry (out at source, in at destination) so every unit is accounted
for on both sides.

LIFECYCLE:
1. pending: Transfer row written
2. completed: stock moved, movements written (same transaction as 1)
3. cancelled: only reachable from pending; nothing is moved or reversed

create_transfer performs 1 and 2 as one unit. Any failure rolls the whole
unit back: no Transfer row, no movements, no stock change.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..extensions import db
from ..errors import ServiceError
from ..models import Branch, Product, Transfer
from ..time_utils import utcnow
from .concurrency import lock_for_update, run_with_retry
from .ledger_service import record_movement
from .pagination import paginate


# Transfer status constants
TRANSFER_STATUS_PENDING = "pending"
TRANSFER_STATUS_COMPLETED = "completed"
TRANSFER_STATUS_CANCELLED = "cancelled"


class TransferError(ServiceError):
    """Raised when transfer operations fail."""
    pass


@dataclass(frozen=True)
class TransferFilters:
    product_id: Optional[int] = None
    # Matches either side of the transfer
    branch_id: Optional[int] = None
    status: Optional[str] = None
    # Case-insensitive substring
    reason: Optional[str] = None


def _validate_request(quantity, reason) -> str:
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
        raise TransferError("Quantity must be a positive integer")
    if not isinstance(reason, str) or not reason.strip():
        raise TransferError("Reason is required")
    if len(reason.strip()) > 255:
        raise TransferError("Reason cannot exceed 255 characters")
    return reason.strip()


def create_transfer(
    *,
    product_id: int,
    from_branch_id: int,
    to_branch_id: int,
    quantity: int,
    reason: str,
    notes: str | None = None,
    created_by: int,
) -> dict:
    """
    Move `quantity` units of a product from its branch to another branch.

    Preconditions, checked in order (first failure wins):
    product exists, source exists, destination exists, product belongs to
    source, stock covers quantity, source differs from destination.

    Returns:
        The completed transfer, populated.

    Raises:
        TransferError: message prefixed "Failed to create transfer: "
    """
    try:
        reason = _validate_request(quantity, reason)
        if notes is not None and len(notes) > 500:
            raise TransferError("Notes cannot exceed 500 characters")
    except TransferError as exc:
        raise exc.with_context("Failed to create transfer")

    def _op():
        # Lock the product row so concurrent transfers/sales serialize on it
        product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
        if product is None:
            raise TransferError.not_found("Product not found")

        from_branch = db.session.get(Branch, from_branch_id)
        if from_branch is None:
            raise TransferError.not_found("Source branch not found")
        to_branch = db.session.get(Branch, to_branch_id)
        if to_branch is None:
            raise TransferError.not_found("Destination branch not found")

        if product.branch_id != from_branch.id:
            raise TransferError("Product is not in the specified source branch")

        if product.stock < quantity:
            raise TransferError(f"Insufficient stock. Available: {product.stock}, Requested: {quantity}")

        if from_branch.id == to_branch.id:
            raise TransferError("Source and destination branches cannot be the same")

        transfer = Transfer(
            product_id=product.id,
            from_branch_id=from_branch.id,
            to_branch_id=to_branch.id,
            quantity=quantity,
            reason=reason,
            notes=notes,
            status=TRANSFER_STATUS_PENDING,
            created_by_user_id=created_by,
        )
        db.session.add(transfer)
        db.session.flush()  # Get ID for the movement back-references

        product.stock -= quantity
        product.branch_id = to_branch.id

        record_movement(
            product_id=product.id,
            branch_id=from_branch.id,
            type="out",
            quantity=quantity,
            reason=f"Transfer to {to_branch.name}: {reason}",
            user_id=created_by,
            transfer_id=transfer.id,
        )
        record_movement(
            product_id=product.id,
            branch_id=to_branch.id,
            type="in",
            quantity=quantity,
            reason=f"Transfer from {from_branch.name}: {reason}",
            user_id=created_by,
            transfer_id=transfer.id,
        )

        transfer.status = TRANSFER_STATUS_COMPLETED
        transfer.completed_at = utcnow()
        transfer.completed_by_user_id = created_by

        db.session.commit()
        return transfer.to_populated_dict()

    try:
        return run_with_retry(_op)
    except TransferError as exc:
        raise exc.with_context("Failed to create transfer")


def list_transfers(filters: TransferFilters | None = None, page: int = 1, limit: int = 10) -> dict:
    """Newest first. Read-only; repeated calls return the same page."""
    filters = filters or TransferFilters()
    query = db.session.query(Transfer)

    if filters.product_id is not None:
        query = query.filter(Transfer.product_id == filters.product_id)
    if filters.branch_id is not None:
        query = query.filter(db.or_(
            Transfer.from_branch_id == filters.branch_id,
            Transfer.to_branch_id == filters.branch_id,
        ))
    if filters.status:
        query = query.filter(Transfer.status == filters.status)
    if filters.reason:
        query = query.filter(Transfer.reason.ilike(f"%{filters.reason}%"))

    query = query.order_by(Transfer.created_at.desc(), Transfer.id.desc())
    rows, pagination = paginate(query, page, limit)
    return {"transfers": [t.to_populated_dict() for t in rows], "pagination": pagination}


def get_transfer(transfer_id: int) -> dict:
    transfer = db.session.get(Transfer, transfer_id)
    if transfer is None:
        raise TransferError.not_found("Transfer not found")
    return transfer.to_populated_dict()


def cancel_transfer(*, transfer_id: int, user_id: int) -> dict:
    """
    Cancel a pending transfer.

    Nothing has moved while a transfer is pending, so there is no stock or
    ledger reversal. completed_at/completed_by record who closed it.
    """
    def _op():
        transfer = lock_for_update(db.session.query(Transfer).filter_by(id=transfer_id)).first()
        if transfer is None:
            raise TransferError.not_found("Transfer not found")
        if transfer.status != TRANSFER_STATUS_PENDING:
            raise TransferError("Only pending transfers can be cancelled")

        transfer.status = TRANSFER_STATUS_CANCELLED
        transfer.completed_at = utcnow()
        transfer.completed_by_user_id = user_id
        db.session.commit()
        return transfer.to_populated_dict()

    try:
        return run_with_retry(_op)
    except TransferError as exc:
        raise exc.with_context("Failed to cancel transfer")


def get_transfer_stats(branch_id: int | None = None) -> dict:
    """Counts per status and total quantity, from one aggregate query."""
    def _count(status):
        return db.func.coalesce(db.func.sum(db.case((Transfer.status == status, 1), else_=0)), 0)

    query = db.session.query(
        db.func.count(Transfer.id),
        _count(TRANSFER_STATUS_COMPLETED),
        _count(TRANSFER_STATUS_PENDING),
        _count(TRANSFER_STATUS_CANCELLED),
        db.func.coalesce(db.func.sum(Transfer.quantity), 0),
    )
    if branch_id is not None:
        query = query.filter(db.or_(
            Transfer.from_branch_id == branch_id,
            Transfer.to_branch_id == branch_id,
        ))

    total, completed, pending, cancelled, quantity = query.one()
    return {
        "total_transfers": int(total or 0),
        "completed_transfers": int(completed or 0),
        "pending_transfers": int(pending or 0),
        "cancelled_transfers": int(cancelled or 0),
        "total_quantity": int(quantity or 0),
    }
