from __future__ import annotations

from ..extensions import db
from branchstock.time_utils import to_utc_z, utcnow


PAYMENT_METHODS = ("cash", "card", "upi", "bank_transfer")
PAYMENT_STATUSES = ("pending", "paid", "partial", "refunded")
PAYMENT_TYPES = ("credit", "debit")


class Invoice(db.Model):
    """
    Sales invoice.

    TOTALS (all cents):
    - item.total_cents = price_cents * quantity - item.discount_cents
    - subtotal_cents = sum of item totals
    - tax_cents = round(subtotal_cents * tax_rate / 100)
    - total_cents = subtotal_cents + tax_cents - discount_cents

    invoice_number is "INV-YYYYMMDD-NNNN", allocated from DocumentSequence.
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.UniqueConstraint("invoice_number", name="uq_invoices_number"),
        db.Index("ix_invoices_branch_created", "branch_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_number = db.Column(db.String(32), nullable=False)

    customer_name = db.Column(db.String(100), nullable=False)
    customer_email = db.Column(db.String(255), nullable=True)
    customer_phone = db.Column(db.String(32), nullable=True)
    customer_address = db.Column(db.String(500), nullable=True)

    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False, default=0)

    # cash | card | upi | bank_transfer
    payment_method = db.Column(db.String(16), nullable=False, default="cash")
    # pending | paid | partial | refunded
    payment_status = db.Column(db.String(16), nullable=False, default="pending", index=True)

    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    notes = db.Column(db.String(500), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    branch = db.relationship("Branch")
    created_by = db.relationship("User", foreign_keys=[created_by_user_id])
    items = db.relationship(
        "InvoiceItem",
        backref="invoice",
        lazy=True,
        cascade="all, delete-orphan",
        order_by="InvoiceItem.id",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_number": self.invoice_number,
            "customer": {
                "name": self.customer_name,
                "email": self.customer_email,
                "phone": self.customer_phone,
                "address": self.customer_address,
            },
            "items": [item.to_dict() for item in self.items],
            "subtotal_cents": self.subtotal_cents,
            "tax_cents": self.tax_cents,
            "discount_cents": self.discount_cents,
            "total_cents": self.total_cents,
            "payment_method": self.payment_method,
            "payment_status": self.payment_status,
            "branch_id": self.branch_id,
            "branch": self.branch.to_summary() if self.branch else None,
            "created_by": self.created_by.to_summary() if self.created_by else None,
            "notes": self.notes,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class InvoiceItem(db.Model):
    __tablename__ = "invoice_items"
    __table_args__ = (
        db.CheckConstraint("quantity >= 1", name="ck_invoice_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(
        db.Integer, db.ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False, index=True
    )
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    # Unit price captured at sale time
    price_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "product": self.product.to_summary() if self.product else None,
            "quantity": self.quantity,
            "price_cents": self.price_cents,
            "discount_cents": self.discount_cents,
            "total_cents": self.total_cents,
        }


class Payment(db.Model):
    """
    Money in (credit) or out (debit) at a branch.

    Debit payments are the expense side of the profit/loss report. A payment
    may reference the invoice it settles; deleting that invoice detaches it.
    """
    __tablename__ = "payments"
    __table_args__ = (
        db.CheckConstraint("amount_cents >= 0", name="ck_payments_amount_non_negative"),
        db.Index("ix_payments_branch_created", "branch_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    amount_cents = db.Column(db.Integer, nullable=False)
    # cash | card | upi | bank_transfer
    payment_method = db.Column(db.String(16), nullable=False)
    # credit | debit
    payment_type = db.Column(db.String(8), nullable=False, index=True)

    description = db.Column(db.String(255), nullable=False)
    reference = db.Column(db.String(100), nullable=True)
    customer = db.Column(db.String(100), nullable=True)
    notes = db.Column(db.String(500), nullable=True)

    branch_id = db.Column(db.Integer, db.ForeignKey("branches.id"), nullable=False, index=True)
    created_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    invoice_id = db.Column(
        db.Integer, db.ForeignKey("invoices.id", ondelete="SET NULL"), nullable=True, index=True
    )

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    branch = db.relationship("Branch")
    created_by = db.relationship("User", foreign_keys=[created_by_user_id])
    invoice = db.relationship("Invoice", backref=db.backref("payments", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "amount_cents": self.amount_cents,
            "payment_method": self.payment_method,
            "payment_type": self.payment_type,
            "description": self.description,
            "reference": self.reference,
            "customer": self.customer,
            "notes": self.notes,
            "branch_id": self.branch_id,
            "branch": self.branch.to_summary() if self.branch else None,
            "invoice_id": self.invoice_id,
            "invoice_number": self.invoice.invoice_number if self.invoice else None,
            "created_by": self.created_by.to_summary() if self.created_by else None,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
