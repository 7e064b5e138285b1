# Overview: Service-layer operations for branch payments (money in and out).

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..extensions import db
from ..errors import ServiceError
from ..models import Branch, Invoice, Payment
from .pagination import paginate

PAYMENT_MUTABLE_FIELDS = {
    "amount_cents", "payment_method", "payment_type", "description",
    "reference", "customer", "notes", "branch_id", "invoice_id",
}


class PaymentError(ServiceError):
    """Raised when payment operations fail."""
    pass


@dataclass(frozen=True)
class PaymentFilters:
    branch_id: Optional[int] = None
    payment_method: Optional[str] = None
    payment_type: Optional[str] = None
    customer: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None


def _require_payment(payment_id: int) -> Payment:
    payment = db.session.get(Payment, payment_id)
    if payment is None:
        raise PaymentError.not_found("Payment not found")
    return payment


def _check_references(patch: dict) -> None:
    if patch.get("branch_id") is not None:
        branch = db.session.get(Branch, patch["branch_id"])
        if branch is None or not branch.is_active:
            raise PaymentError.not_found("Branch not found")
    if patch.get("invoice_id") is not None:
        if db.session.get(Invoice, patch["invoice_id"]) is None:
            raise PaymentError.not_found("Invoice not found")


def list_payments(filters: PaymentFilters | None = None, page: int = 1, limit: int = 10) -> dict:
    filters = filters or PaymentFilters()
    query = db.session.query(Payment)

    if filters.branch_id is not None:
        query = query.filter(Payment.branch_id == filters.branch_id)
    if filters.payment_method:
        query = query.filter(Payment.payment_method == filters.payment_method)
    if filters.payment_type:
        query = query.filter(Payment.payment_type == filters.payment_type)
    if filters.customer:
        query = query.filter(Payment.customer.ilike(f"%{filters.customer}%"))
    if filters.date_from is not None:
        query = query.filter(Payment.created_at >= filters.date_from)
    if filters.date_to is not None:
        query = query.filter(Payment.created_at <= filters.date_to)

    query = query.order_by(Payment.created_at.desc(), Payment.id.desc())
    rows, pagination = paginate(query, page, limit)
    return {"payments": [p.to_dict() for p in rows], "pagination": pagination}


def get_payment(payment_id: int) -> dict:
    return _require_payment(payment_id).to_dict()


def create_payment(*, patch: dict, user_id: int) -> dict:
    _check_references(patch)

    payment = Payment(created_by_user_id=user_id)
    for k, v in patch.items():
        if k in PAYMENT_MUTABLE_FIELDS:
            setattr(payment, k, v)

    db.session.add(payment)
    db.session.commit()
    return payment.to_dict()


def update_payment(*, payment_id: int, patch: dict) -> dict:
    payment = _require_payment(payment_id)
    _check_references(patch)

    for k, v in patch.items():
        if k in PAYMENT_MUTABLE_FIELDS:
            setattr(payment, k, v)

    db.session.commit()
    return payment.to_dict()


def delete_payment(payment_id: int) -> None:
    """Hard delete; payments carry no ledger history."""
    payment = _require_payment(payment_id)
    db.session.delete(payment)
    db.session.commit()
