# backend/branchstock/routes/transfers.py
"""
Inter-branch transfer API routes.
"""
from flask import Blueprint, current_app, g, request

from ..decorators import require_user
from ..extensions import db
from ..models import TRANSFER_STATUSES
from ..responses import failure, page_args, success
from ..services import transfer_service
from ..services.transfer_service import TransferError, TransferFilters


transfers_bp = Blueprint("transfers", __name__, url_prefix="/api/transfers")


@transfers_bp.route("", methods=["POST"])
@require_user
def create_transfer():
    """
    Move stock of one product to another branch.

    Request body:
    {
        "product_id": int,
        "from_branch_id": int,
        "to_branch_id": int,
        "quantity": int,
        "reason": str,
        "notes": str (optional)
    }

    Returns:
        201: Transfer completed
        400: Invalid request or failed precondition
        404: Product or branch not found
    """
    data = request.get_json(silent=True) or {}

    try:
        transfer = transfer_service.create_transfer(
            product_id=data["product_id"],
            from_branch_id=data["from_branch_id"],
            to_branch_id=data["to_branch_id"],
            quantity=data["quantity"],
            reason=data["reason"],
            notes=data.get("notes"),
            created_by=g.current_user.id,
        )
        current_app.logger.info(
            "Transfer %s: %s x product %s from branch %s to branch %s by user %s",
            transfer["reference_number"], transfer["quantity"], transfer["product_id"],
            transfer["from_branch_id"], transfer["to_branch_id"], g.current_user.id,
        )
        return success(transfer, "Transfer completed successfully", 201)

    except KeyError as e:
        return failure(f"Missing required field: {e.args[0]}", 400)
    except TransferError as e:
        return failure(str(e), e.status_code)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create transfer")
        return failure("Internal server error", 500)


@transfers_bp.route("", methods=["GET"])
@require_user
def list_transfers():
    """
    Query params:
    - product_id, branch_id (either side), status, reason (substring)
    - page, limit
    """
    status = request.args.get("status") or None
    if status is not None and status not in TRANSFER_STATUSES:
        return failure(f"status must be one of: {', '.join(TRANSFER_STATUSES)}", 400)

    page, limit = page_args()
    filters = TransferFilters(
        product_id=request.args.get("product_id", type=int),
        branch_id=request.args.get("branch_id", type=int),
        status=status,
        reason=request.args.get("reason") or None,
    )
    try:
        return success(transfer_service.list_transfers(filters, page, limit))
    except Exception:
        current_app.logger.exception("Failed to list transfers")
        return failure("Internal server error", 500)


@transfers_bp.route("/stats", methods=["GET"])
@require_user
def transfer_stats():
    try:
        return success(transfer_service.get_transfer_stats(request.args.get("branch_id", type=int)))
    except Exception:
        current_app.logger.exception("Failed to get transfer stats")
        return failure("Internal server error", 500)


@transfers_bp.route("/<int:transfer_id>", methods=["GET"])
@require_user
def get_transfer(transfer_id: int):
    try:
        return success(transfer_service.get_transfer(transfer_id))
    except TransferError as e:
        return failure(str(e), e.status_code)
    except Exception:
        current_app.logger.exception("Failed to get transfer")
        return failure("Internal server error", 500)


@transfers_bp.route("/<int:transfer_id>/cancel", methods=["PUT"])
@require_user
def cancel_transfer(transfer_id: int):
    try:
        transfer = transfer_service.cancel_transfer(transfer_id=transfer_id, user_id=g.current_user.id)
        current_app.logger.info("Transfer %s cancelled by user %s", transfer["reference_number"], g.current_user.id)
        return success(transfer, "Transfer cancelled successfully")
    except TransferError as e:
        return failure(str(e), e.status_code)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to cancel transfer")
        return failure("Internal server error", 500)
