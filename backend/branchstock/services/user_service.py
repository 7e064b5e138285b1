# backend/branchstock/services/user_service.py
"""
User accounts.

WHY: every stock movement, transfer, invoice and payment is attributed to a
user. Login itself happens upstream; this service provisions accounts and
keeps a bcrypt hash so credentials never live in plain text.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import bcrypt
from flask import current_app

from ..extensions import db
from ..errors import ServiceError
from ..models import Branch, User, USER_ROLES
from ..validation import ConflictError
from .pagination import paginate

USER_MUTABLE_FIELDS = {"name", "email", "role", "branch_id", "is_active"}
MIN_PASSWORD_LENGTH = 8
MIN_NAME_LENGTH = 3


class UserError(ServiceError):
    """Raised when user operations fail."""
    pass


@dataclass(frozen=True)
class UserFilters:
    role: Optional[str] = None
    branch_id: Optional[int] = None


def hash_password(password: str) -> str:
    """Hash password using bcrypt (cost from BCRYPT_ROUNDS, 12 by default)."""
    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
    return hashed.decode("utf-8")  # Store as string in database


def _require_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if user is None or not user.is_active:
        raise UserError.not_found("User not found")
    return user


def _validate_password(password) -> None:
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        raise UserError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")


def _validate_fields(data: dict) -> None:
    if "email" in data and (not isinstance(data["email"], str) or "@" not in data["email"]):
        raise UserError("Invalid email format")
    if "name" in data and (not isinstance(data["name"], str) or len(data["name"].strip()) < MIN_NAME_LENGTH):
        raise UserError(f"Name must be at least {MIN_NAME_LENGTH} characters long")
    if "role" in data and data["role"] not in USER_ROLES:
        raise UserError("Invalid role")
    if data.get("branch_id") is not None:
        branch = db.session.get(Branch, data["branch_id"])
        if branch is None or not branch.is_active:
            raise UserError.not_found("Branch not found")


def _ensure_unique_email(email: str, exclude_id: int | None = None) -> None:
    query = db.session.query(User.id).filter(User.email == email.lower())
    if exclude_id is not None:
        query = query.filter(User.id != exclude_id)
    if query.first():
        raise ConflictError("User with this email already exists")


def list_users(filters: UserFilters | None = None, page: int = 1, limit: int = 10) -> dict:
    filters = filters or UserFilters()
    query = db.session.query(User).filter(User.is_active.is_(True))
    if filters.role:
        query = query.filter(User.role == filters.role)
    if filters.branch_id is not None:
        query = query.filter(User.branch_id == filters.branch_id)
    query = query.order_by(User.created_at.desc(), User.id.desc())
    rows, pagination = paginate(query, page, limit)
    return {"users": [u.to_dict() for u in rows], "pagination": pagination}


def get_user(user_id: int) -> dict:
    return _require_user(user_id).to_dict()


def create_user(data: dict) -> dict:
    """
    Create an account from a raw payload.

    Required: email, password, name. role defaults to "user".
    """
    if not isinstance(data, dict):
        raise UserError("Invalid JSON payload")
    if not data.get("email") or not data.get("password") or not data.get("name"):
        raise UserError("Email, password and name are required")
    _validate_password(data["password"])
    _validate_fields(data)

    email = data["email"].strip().lower()
    _ensure_unique_email(email)

    user = User(
        name=data["name"].strip(),
        email=email,
        password_hash=hash_password(data["password"]),
        role=data.get("role") or "user",
        branch_id=data.get("branch_id"),
        is_active=data.get("is_active", True),
    )
    db.session.add(user)
    db.session.commit()
    return user.to_dict()


def update_user(*, user_id: int, data: dict) -> dict:
    if not isinstance(data, dict):
        raise UserError("Invalid JSON payload")
    user = _require_user(user_id)

    unknown = set(data) - USER_MUTABLE_FIELDS - {"password"}
    if unknown:
        raise UserError(f"Field not allowed: {sorted(unknown)[0]}")

    _validate_fields(data)
    if data.get("email"):
        _ensure_unique_email(data["email"], exclude_id=user.id)
        data = {**data, "email": data["email"].strip().lower()}

    if "password" in data:
        _validate_password(data["password"])
        user.password_hash = hash_password(data["password"])

    for k, v in data.items():
        if k in USER_MUTABLE_FIELDS:
            setattr(user, k, v.strip() if isinstance(v, str) else v)

    db.session.commit()
    return user.to_dict()


def delete_user(user_id: int) -> None:
    user = _require_user(user_id)
    user.is_active = False
    db.session.commit()


def search_users(term: str, *, role: str | None = None, branch_id: int | None = None) -> list[dict]:
    term = (term or "").strip()
    if not term:
        raise UserError("Search query is required")

    pattern = f"%{term}%"
    query = db.session.query(User).filter(
        User.is_active.is_(True),
        db.or_(User.name.ilike(pattern), User.email.ilike(pattern)),
    )
    if role:
        query = query.filter(User.role == role)
    if branch_id is not None:
        query = query.filter(User.branch_id == branch_id)

    rows = query.order_by(User.name.asc(), User.id.asc()).limit(20).all()
    return [u.to_dict() for u in rows]


def get_active_user(user_id) -> User | None:
    """Resolve the acting user for a request; None when unknown or inactive."""
    try:
        user_id = int(user_id)
    except (TypeError, ValueError):
        return None
    user = db.session.get(User, user_id)
    if user is None or not user.is_active:
        return None
    return user
