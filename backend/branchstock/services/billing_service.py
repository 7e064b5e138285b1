# backend/branchstock/services/billing_service.py
"""
Invoicing.

WHY: an invoice is the only path through which stock leaves a branch as a
sale. Creating one allocates its number, prices its lines, decrements
stock and writes one "out" StockMovement per line, all in a single
transaction: either the whole invoice exists or none of it does.

DELETE: removing an invoice puts the sold quantities back on the products
but writes no compensating movement, so the ledger keeps the original
"out" rows. Payments that referenced the invoice are detached, not deleted.
"""
from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import ServiceError
from ..models import (
    Branch,
    DocumentSequence,
    Invoice,
    InvoiceItem,
    Payment,
    Product,
    PAYMENT_METHODS,
    PAYMENT_STATUSES,
)
from ..time_utils import to_utc_z, utcnow
from .concurrency import RETRYABLE_ERRORS, lock_for_update, run_with_retry
from .ledger_service import record_movement
from .pagination import paginate

INVOICE_DOCUMENT_TYPE = "INVOICE"
INVOICE_MUTABLE_FIELDS = {"customer", "payment_method", "payment_status", "notes"}
CUSTOMER_FIELDS = ("name", "email", "phone", "address")


class BillingError(ServiceError):
    """Raised when invoice operations fail."""
    pass


class InvoiceNumberConflict(Exception):
    """Another writer inserted the day's sequence row first; safe to retry."""
    pass


@dataclass(frozen=True)
class InvoiceFilters:
    branch_id: Optional[int] = None
    payment_status: Optional[str] = None
    customer: Optional[str] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None


def next_invoice_number(now: datetime | None = None) -> str:
    """
    Allocate "INV-YYYYMMDD-NNNN" for the day of `now`.

    Uses an UPDATE on the (INVOICE, day) DocumentSequence row so concurrent
    writers serialize on it. The first invoice of a day inserts the row; a
    concurrent insert of the same row raises InvoiceNumberConflict, which the
    caller retries. Flushes only; runs inside the caller's transaction.
    """
    day = (now or utcnow()).strftime("%Y%m%d")

    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.document_type == INVOICE_DOCUMENT_TYPE,
            DocumentSequence.period_key == day,
        )
        .values(next_number=DocumentSequence.next_number + 1)
    )
    result = db.session.execute(stmt)
    if result.rowcount:
        current = (
            db.session.query(DocumentSequence.next_number)
            .filter_by(document_type=INVOICE_DOCUMENT_TYPE, period_key=day)
            .scalar()
        )
        number = current - 1
    else:
        db.session.add(DocumentSequence(document_type=INVOICE_DOCUMENT_TYPE, period_key=day, next_number=2))
        try:
            db.session.flush()
        except IntegrityError as exc:
            raise InvoiceNumberConflict(f"Invoice sequence for {day} was created concurrently") from exc
        number = 1

    return f"INV-{day}-{number:04d}"


def _require_invoice(invoice_id: int) -> Invoice:
    invoice = db.session.get(Invoice, invoice_id)
    if invoice is None:
        raise BillingError.not_found("Invoice not found")
    return invoice


def _non_negative_int(value, field: str, default: int = 0) -> int:
    if value is None:
        return default
    if not isinstance(value, int) or isinstance(value, bool) or value < 0:
        raise BillingError(f"{field} must be a non-negative integer")
    return value


def _clean_customer(customer) -> dict:
    if not isinstance(customer, dict):
        raise BillingError("Customer details are required")
    cleaned = {}
    for key in CUSTOMER_FIELDS:
        value = customer.get(key)
        cleaned[key] = str(value).strip() if value not in (None, "") else None
    if not cleaned["name"]:
        raise BillingError("Customer name is required")
    if cleaned["email"]:
        cleaned["email"] = cleaned["email"].lower()
    return cleaned


def _apply_customer(invoice: Invoice, customer: dict) -> None:
    invoice.customer_name = customer["name"]
    invoice.customer_email = customer["email"]
    invoice.customer_phone = customer["phone"]
    invoice.customer_address = customer["address"]


def _check_choice(value, choices, field: str) -> None:
    if value not in choices:
        raise BillingError(f"{field} must be one of: {', '.join(choices)}")


def list_invoices(filters: InvoiceFilters | None = None, page: int = 1, limit: int = 10) -> dict:
    filters = filters or InvoiceFilters()
    query = db.session.query(Invoice)

    if filters.branch_id is not None:
        query = query.filter(Invoice.branch_id == filters.branch_id)
    if filters.payment_status:
        query = query.filter(Invoice.payment_status == filters.payment_status)
    if filters.customer:
        query = query.filter(Invoice.customer_name.ilike(f"%{filters.customer}%"))
    if filters.date_from is not None:
        query = query.filter(Invoice.created_at >= filters.date_from)
    if filters.date_to is not None:
        query = query.filter(Invoice.created_at <= filters.date_to)

    query = query.order_by(Invoice.created_at.desc(), Invoice.id.desc())
    rows, pagination = paginate(query, page, limit)
    return {"invoices": [i.to_dict() for i in rows], "pagination": pagination}


def get_invoice(invoice_id: int) -> dict:
    return _require_invoice(invoice_id).to_dict()


def create_invoice(payload: dict, user_id: int) -> dict:
    """
    Create an invoice and take its stock.

    payload:
        customer: {name, email?, phone?, address?}
        items: [{product_id, quantity, price_cents?, discount_cents?}]
        branch_id, payment_method, payment_status?, tax_rate?, discount_cents?, notes?

    price_cents defaults to the product's current price. Every product must
    belong to the invoicing branch and have enough stock for the combined
    quantity of all lines that reference it.
    """
    if not isinstance(payload, dict):
        raise BillingError("Failed to create invoice: Invalid JSON payload")

    try:
        customer = _clean_customer(payload.get("customer"))
        items = payload.get("items")
        if not isinstance(items, list) or not items:
            raise BillingError("Invoice must contain at least one item")

        payment_method = payload.get("payment_method") or "cash"
        _check_choice(payment_method, PAYMENT_METHODS, "payment_method")
        payment_status = payload.get("payment_status") or "pending"
        _check_choice(payment_status, PAYMENT_STATUSES, "payment_status")

        tax_rate = payload.get("tax_rate") or 0
        if isinstance(tax_rate, bool) or not isinstance(tax_rate, (int, float)) or not 0 <= tax_rate <= 100:
            raise BillingError("tax_rate must be a number between 0 and 100")
        discount_cents = _non_negative_int(payload.get("discount_cents"), "discount_cents")

        branch_id = payload.get("branch_id")
        if branch_id is None:
            raise BillingError("branch_id is required")
    except BillingError as exc:
        raise exc.with_context("Failed to create invoice")

    notes = payload.get("notes")

    def _op():
        branch = db.session.get(Branch, branch_id)
        if branch is None or not branch.is_active:
            raise BillingError.not_found("Branch not found")

        lines = []
        requested = defaultdict(int)
        products = {}
        for raw in items:
            if not isinstance(raw, dict):
                raise BillingError("Invalid invoice item")
            quantity = raw.get("quantity")
            if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity < 1:
                raise BillingError("Item quantity must be a positive integer")

            # Keys the combined-stock check, so "1" and 1 must not both get through
            product_id = raw.get("product_id")
            if not isinstance(product_id, int) or isinstance(product_id, bool):
                raise BillingError("Item product_id must be an integer")
            product = products.get(product_id)
            if product is None:
                product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
                if product is None or not product.is_active:
                    raise BillingError.not_found(f"Product with ID {product_id} not found")
                if product.branch_id != branch.id:
                    raise BillingError(f"Product {product.name} is not in branch {branch.name}")
                products[product_id] = product

            price_cents = _non_negative_int(raw.get("price_cents"), "price_cents", default=product.price_cents)
            item_discount = _non_negative_int(raw.get("discount_cents"), "discount_cents")
            if item_discount > price_cents * quantity:
                raise BillingError(f"Discount exceeds line amount for product {product.name}")

            requested[product_id] += quantity
            lines.append((product, quantity, price_cents, item_discount))

        for product_id, quantity in requested.items():
            product = products[product_id]
            if product.stock < quantity:
                raise BillingError(f"Insufficient stock for product {product.name}")

        subtotal = sum(price * qty - disc for _, qty, price, disc in lines)
        tax = int(round(subtotal * tax_rate / 100))
        if discount_cents > subtotal + tax:
            raise BillingError("Discount exceeds invoice amount")

        invoice = Invoice(
            invoice_number=next_invoice_number(),
            subtotal_cents=subtotal,
            tax_cents=tax,
            discount_cents=discount_cents,
            total_cents=subtotal + tax - discount_cents,
            payment_method=payment_method,
            payment_status=payment_status,
            branch_id=branch.id,
            created_by_user_id=user_id,
            notes=notes,
        )
        _apply_customer(invoice, customer)
        for product, qty, price, disc in lines:
            invoice.items.append(InvoiceItem(
                product_id=product.id,
                quantity=qty,
                price_cents=price,
                discount_cents=disc,
                total_cents=price * qty - disc,
            ))
        db.session.add(invoice)
        db.session.flush()

        for product, qty, _, _ in lines:
            product.stock -= qty
            record_movement(
                product_id=product.id,
                branch_id=branch.id,
                type="out",
                quantity=qty,
                reason=f"Invoice {invoice.invoice_number}",
                user_id=user_id,
            )

        db.session.commit()
        return invoice.to_dict()

    try:
        return run_with_retry(_op, retry_on=RETRYABLE_ERRORS + (InvoiceNumberConflict,))
    except BillingError as exc:
        raise exc.with_context("Failed to create invoice")


def update_invoice(*, invoice_id: int, data: dict) -> dict:
    """Only customer details, payment method/status and notes are editable."""
    if not isinstance(data, dict):
        raise BillingError("Failed to update invoice: Invalid JSON payload")
    invoice = _require_invoice(invoice_id)

    unknown = set(data) - INVOICE_MUTABLE_FIELDS
    if unknown:
        raise BillingError(f"Failed to update invoice: Field not allowed: {sorted(unknown)[0]}")

    try:
        if "customer" in data:
            if not isinstance(data["customer"], dict):
                raise BillingError("Customer details are required")
            merged = {key: getattr(invoice, f"customer_{key}") for key in CUSTOMER_FIELDS}
            merged.update(data["customer"])
            _apply_customer(invoice, _clean_customer(merged))
        if "payment_method" in data:
            _check_choice(data["payment_method"], PAYMENT_METHODS, "payment_method")
            invoice.payment_method = data["payment_method"]
        if "payment_status" in data:
            _check_choice(data["payment_status"], PAYMENT_STATUSES, "payment_status")
            invoice.payment_status = data["payment_status"]
        if "notes" in data:
            invoice.notes = data["notes"]
    except BillingError as exc:
        db.session.rollback()
        raise exc.with_context("Failed to update invoice")

    db.session.commit()
    return invoice.to_dict()


def delete_invoice(invoice_id: int) -> None:
    def _op():
        invoice = _require_invoice(invoice_id)

        for item in invoice.items:
            product = lock_for_update(db.session.query(Product).filter_by(id=item.product_id)).first()
            if product is not None:
                product.stock += item.quantity

        db.session.query(Payment).filter(Payment.invoice_id == invoice.id).update(
            {Payment.invoice_id: None}, synchronize_session="fetch"
        )
        db.session.delete(invoice)
        db.session.commit()

    run_with_retry(_op)


def invoice_document(invoice_id: int) -> dict:
    """Print-ready invoice payload; rendering to PDF happens client-side."""
    invoice = _require_invoice(invoice_id)
    data = invoice.to_dict()
    return {
        "invoice": data,
        "document": {
            "invoice_number": invoice.invoice_number,
            "customer": data["customer"],
            "items": data["items"],
            "subtotal_cents": invoice.subtotal_cents,
            "tax_cents": invoice.tax_cents,
            "discount_cents": invoice.discount_cents,
            "total_cents": invoice.total_cents,
            "created_at": to_utc_z(invoice.created_at),
            "branch": data["branch"],
        },
    }
