# backend/branchstock/services/branch_service.py
"""
Branch management.

Branches are soft-deleted so invoices, payments and ledger rows keep a valid
reference. Names are unique among *active* branches only: a deactivated
branch frees its name.
"""
from __future__ import annotations

from ..extensions import db
from ..errors import ServiceError
from ..models import Branch
from ..validation import ConflictError
from .pagination import paginate

BRANCH_MUTABLE_FIELDS = {"name", "address", "phone", "email", "manager", "is_active"}


class BranchError(ServiceError):
    """Raised when branch operations fail."""
    pass


def _require_branch(branch_id: int) -> Branch:
    branch = db.session.get(Branch, branch_id)
    if branch is None or not branch.is_active:
        raise BranchError.not_found("Branch not found")
    return branch


def _ensure_unique_name(name: str, exclude_id: int | None = None) -> None:
    query = db.session.query(Branch.id).filter(
        Branch.is_active.is_(True),
        db.func.lower(Branch.name) == name.lower(),
    )
    if exclude_id is not None:
        query = query.filter(Branch.id != exclude_id)
    if query.first():
        raise ConflictError("Branch with this name already exists")


def list_branches(page: int = 1, limit: int = 10) -> dict:
    query = (
        db.session.query(Branch)
        .filter(Branch.is_active.is_(True))
        .order_by(Branch.created_at.desc(), Branch.id.desc())
    )
    rows, pagination = paginate(query, page, limit)
    return {"branches": [b.to_dict() for b in rows], "pagination": pagination}


def get_branch(branch_id: int) -> dict:
    return _require_branch(branch_id).to_dict()


def create_branch(*, patch: dict) -> dict:
    _ensure_unique_name(patch["name"])

    branch = Branch()
    for k, v in patch.items():
        if k in BRANCH_MUTABLE_FIELDS:
            setattr(branch, k, v)

    db.session.add(branch)
    db.session.commit()
    return branch.to_dict()


def update_branch(*, branch_id: int, patch: dict) -> dict:
    branch = _require_branch(branch_id)

    if patch.get("name") is not None:
        _ensure_unique_name(patch["name"], exclude_id=branch.id)

    for k, v in patch.items():
        if k in BRANCH_MUTABLE_FIELDS:
            setattr(branch, k, v)

    db.session.commit()
    return branch.to_dict()


def delete_branch(branch_id: int) -> None:
    branch = _require_branch(branch_id)
    branch.is_active = False
    db.session.commit()


def search_branches(term: str) -> list[dict]:
    """Case-insensitive match on name, address or manager. At most 20, by name."""
    term = (term or "").strip()
    if not term:
        raise BranchError("Search query is required")

    pattern = f"%{term}%"
    rows = (
        db.session.query(Branch)
        .filter(
            Branch.is_active.is_(True),
            db.or_(
                Branch.name.ilike(pattern),
                Branch.address.ilike(pattern),
                Branch.manager.ilike(pattern),
            ),
        )
        .order_by(Branch.name.asc())
        .limit(20)
        .all()
    )
    return [b.to_dict() for b in rows]
