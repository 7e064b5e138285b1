# Overview: Flask API routes for branch management; parses input and returns JSON envelopes.

from flask import Blueprint, current_app, request

from ..decorators import require_user
from ..extensions import db
from ..models import Branch
from ..responses import failure, page_args, success
from ..services import branch_service
from ..services.branch_service import BranchError
from ..validation import (
    BRANCH_POLICY,
    ConflictError,
    ValidationError,
    enforce_rules_branch,
    validate_payload,
)

branches_bp = Blueprint("branches", __name__, url_prefix="/api/branches")


@branches_bp.get("")
@require_user
def list_branches():
    page, limit = page_args()
    try:
        return success(branch_service.list_branches(page, limit))
    except Exception:
        current_app.logger.exception("Failed to list branches")
        return failure("Internal server error", 500)


@branches_bp.get("/search")
@require_user
def search_branches():
    try:
        return success(branch_service.search_branches(request.args.get("q", "")))
    except BranchError as e:
        return failure(str(e), e.status_code)
    except Exception:
        current_app.logger.exception("Failed to search branches")
        return failure("Internal server error", 500)


@branches_bp.get("/<int:branch_id>")
@require_user
def get_branch(branch_id: int):
    try:
        return success(branch_service.get_branch(branch_id))
    except BranchError as e:
        return failure(str(e), e.status_code)
    except Exception:
        current_app.logger.exception("Failed to get branch")
        return failure("Internal server error", 500)


@branches_bp.post("")
@require_user
def create_branch():
    """
    Create a branch.

    Request body: {"name": str, "address": str, "phone"?, "email"?, "manager"?}
    """
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Branch, payload=payload, policy=BRANCH_POLICY, partial=False)
        enforce_rules_branch(patch)
        created = branch_service.create_branch(patch=patch)
        return success(created, "Branch created successfully", 201)
    except ValidationError as e:
        return failure(str(e), 400)
    except ConflictError as e:
        db.session.rollback()
        return failure(str(e), 409)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create branch")
        return failure("Internal server error", 500)


@branches_bp.put("/<int:branch_id>")
@require_user
def update_branch(branch_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Branch, payload=payload, policy=BRANCH_POLICY, partial=True)
        enforce_rules_branch(patch)
        updated = branch_service.update_branch(branch_id=branch_id, patch=patch)
        return success(updated, "Branch updated successfully")
    except ValidationError as e:
        return failure(str(e), 400)
    except ConflictError as e:
        db.session.rollback()
        return failure(str(e), 409)
    except BranchError as e:
        db.session.rollback()
        return failure(str(e), e.status_code)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update branch")
        return failure("Internal server error", 500)


@branches_bp.delete("/<int:branch_id>")
@require_user
def delete_branch(branch_id: int):
    try:
        branch_service.delete_branch(branch_id)
        return success(message="Branch deleted successfully")
    except BranchError as e:
        return failure(str(e), e.status_code)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to delete branch")
        return failure("Internal server error", 500)
