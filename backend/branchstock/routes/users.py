# Overview: Flask API routes for user accounts; parses input and returns JSON envelopes.

from flask import Blueprint, current_app, request

from ..decorators import require_user
from ..extensions import db
from ..responses import failure, page_args, success
from ..services import user_service
from ..services.user_service import UserError, UserFilters
from ..validation import ConflictError

users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("")
@require_user
def list_users():
    page, limit = page_args()
    filters = UserFilters(
        role=request.args.get("role") or None,
        branch_id=request.args.get("branch_id", type=int),
    )
    try:
        return success(user_service.list_users(filters, page, limit))
    except Exception:
        current_app.logger.exception("Failed to list users")
        return failure("Internal server error", 500)


@users_bp.get("/search")
@require_user
def search_users():
    try:
        result = user_service.search_users(
            request.args.get("q", ""),
            role=request.args.get("role") or None,
            branch_id=request.args.get("branch_id", type=int),
        )
        return success(result)
    except UserError as e:
        return failure(str(e), e.status_code)
    except Exception:
        current_app.logger.exception("Failed to search users")
        return failure("Internal server error", 500)


@users_bp.get("/<int:user_id>")
@require_user
def get_user(user_id: int):
    try:
        return success(user_service.get_user(user_id))
    except UserError as e:
        return failure(str(e), e.status_code)
    except Exception:
        current_app.logger.exception("Failed to get user")
        return failure("Internal server error", 500)


@users_bp.post("")
@require_user
def create_user():
    """
    Request body: {"name": str, "email": str, "password": str, "role"?: "admin" | "user", "branch_id"?: int}
    """
    data = request.get_json(silent=True) or {}
    try:
        created = user_service.create_user(data)
        return success(created, "User created successfully", 201)
    except ConflictError as e:
        db.session.rollback()
        return failure(str(e), 409)
    except UserError as e:
        db.session.rollback()
        return failure(str(e), e.status_code)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create user")
        return failure("Internal server error", 500)


@users_bp.put("/<int:user_id>")
@require_user
def update_user(user_id: int):
    data = request.get_json(silent=True) or {}
    try:
        updated = user_service.update_user(user_id=user_id, data=data)
        return success(updated, "User updated successfully")
    except ConflictError as e:
        db.session.rollback()
        return failure(str(e), 409)
    except UserError as e:
        db.session.rollback()
        return failure(str(e), e.status_code)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update user")
        return failure("Internal server error", 500)


@users_bp.delete("/<int:user_id>")
@require_user
def delete_user(user_id: int):
    try:
        user_service.delete_user(user_id)
        return success(message="User deleted successfully")
    except UserError as e:
        return failure(str(e), e.status_code)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to delete user")
        return failure("Internal server error", 500)
