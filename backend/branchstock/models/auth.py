from __future__ import annotations

from ..extensions import db
from branchstock.time_utils import to_utc_z, utcnow


USER_ROLES = ("admin", "user")


class User(db.Model):
    """
    User accounts for attribution.

    Every transfer, invoice, payment and stock movement records the acting
    user. Authentication itself happens upstream; this table only keeps the
    bcrypt hash so accounts can be provisioned from the API and the CLI.
    """
    __tablename__ = "users"
    __table_args__ = (
        db.UniqueConstraint("email", name="uq_users_email"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(255), nullable=False)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    # admin | user
    role = db.Column(db.String(16), nullable=False, default="user", index=True)

    # Home branch (nullable for admins that work across branches)
    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=True, index=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True)

    last_login_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    branch = db.relationship("Branch", backref=db.backref("users", lazy=True))

    def __repr__(self) -> str:
        return f"<User id={self.id} email={self.email!r} role={self.role}>"

    def to_summary(self) -> dict:
        return {"id": self.id, "name": self.name, "email": self.email}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role,
            "branch_id": self.branch_id,
            "branch": self.branch.to_summary() if self.branch else None,
            "is_active": self.is_active,
            "last_login_at": to_utc_z(self.last_login_at) if self.last_login_at else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
