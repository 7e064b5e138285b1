from __future__ import annotations

from ..extensions import db
from branchstock.time_utils import to_utc_z, utcnow


TRANSFER_STATUSES = ("pending", "completed", "cancelled")


class Transfer(db.Model):
    """
    Inter-branch stock transfer document.

    LIFECYCLE:
    1. pending: row written, stock not yet moved
    2. completed: stock moved, paired StockMovement rows written
    3. cancelled: abandoned while pending, nothing moved

    completed and cancelled are terminal. transfer_service.create_transfer
    runs steps 1 and 2 in one transaction, so a pending row only exists when
    it was written by something other than create_transfer.
    """
    __tablename__ = "transfers"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_transfers_quantity_positive"),
        db.CheckConstraint("from_branch_id != to_branch_id", name="ck_transfers_distinct_branches"),
        db.CheckConstraint(
            "status IN ('pending', 'completed', 'cancelled')", name="ck_transfers_status"
        ),
        db.Index("ix_transfers_created", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    # Source and destination branches
    from_branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)
    to_branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(255), nullable=False)
    notes = db.Column(db.String(500), nullable=True)

    # pending | completed | cancelled
    status = db.Column(db.String(16), nullable=False, default="pending", index=True)

    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    completed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    completed_at = db.Column(db.DateTime, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    product = db.relationship("Product")
    from_branch = db.relationship("Branch", foreign_keys=[from_branch_id])
    to_branch = db.relationship("Branch", foreign_keys=[to_branch_id])
    created_by = db.relationship("User", foreign_keys=[created_by_user_id])
    completed_by = db.relationship("User", foreign_keys=[completed_by_user_id])
    movements = db.relationship("StockMovement", backref="transfer", lazy=True, order_by="StockMovement.id")

    @property
    def reference_number(self) -> str | None:
        if self.id is None:
            return None
        return f"TRF-{self.id:08d}"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "reference_number": self.reference_number,
            "product_id": self.product_id,
            "from_branch_id": self.from_branch_id,
            "to_branch_id": self.to_branch_id,
            "quantity": self.quantity,
            "reason": self.reason,
            "notes": self.notes,
            "status": self.status,
            "created_by_user_id": self.created_by_user_id,
            "completed_by_user_id": self.completed_by_user_id,
            "completed_at": to_utc_z(self.completed_at) if self.completed_at else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }

    def to_populated_dict(self) -> dict:
        data = self.to_dict()
        data.update({
            "product": self.product.to_summary() if self.product else None,
            "from_branch": self.from_branch.to_summary() if self.from_branch else None,
            "to_branch": self.to_branch.to_summary() if self.to_branch else None,
            "created_by": self.created_by.to_summary() if self.created_by else None,
            "completed_by": self.completed_by.to_summary() if self.completed_by else None,
        })
        return data


class DocumentSequence(db.Model):
    """
    Atomic document number counters.

    One row per (document_type, period_key); invoices use the calendar day
    ("20240131") as period_key so numbering restarts daily.
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("document_type", "period_key", name="uq_doc_sequences_type_period"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    document_type = db.Column(db.String(32), nullable=False, index=True)
    period_key = db.Column(db.String(16), nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "document_type": self.document_type,
            "period_key": self.period_key,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }
