from __future__ import annotations

from ..extensions import db
from branchstock.time_utils import to_utc_z, utcnow


class Branch(db.Model):
    """
    A physical shop location.

    Products are owned by exactly one branch (Product.branch_id); transfers
    move ownership between branches. Branches are soft-deleted (is_active)
    so historical invoices, payments and movements keep their reference.
    Name uniqueness among active branches is enforced by branch_service.
    """
    __tablename__ = "branches"
    __table_args__ = (
        db.Index("ix_branches_active_name", "is_active", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(100), nullable=False)
    address = db.Column(db.String(500), nullable=False)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    manager = db.Column(db.String(100), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def __repr__(self) -> str:
        return f"<Branch id={self.id} name={self.name!r}>"

    def to_summary(self) -> dict:
        return {"id": self.id, "name": self.name, "address": self.address}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "address": self.address,
            "phone": self.phone,
            "email": self.email,
            "manager": self.manager,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
