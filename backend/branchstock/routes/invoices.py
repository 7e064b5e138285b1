# Overview: Flask API routes for invoices; parses input and returns JSON envelopes.

from flask import Blueprint, current_app, g, request

from ..decorators import require_user
from ..extensions import db
from ..responses import failure, page_args, success
from ..services import billing_service
from ..services.billing_service import BillingError, InvoiceFilters
from branchstock.time_utils import parse_date_bound

invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


@invoices_bp.get("")
@require_user
def list_invoices():
    """
    Query params:
    - branch_id, payment_status, customer (substring)
    - date_from, date_to: ISO-8601; a date-only date_to covers the whole day
    - page, limit
    """
    page, limit = page_args()
    try:
        filters = InvoiceFilters(
            branch_id=request.args.get("branch_id", type=int),
            payment_status=request.args.get("payment_status") or None,
            customer=request.args.get("customer") or None,
            date_from=parse_date_bound(request.args.get("date_from")),
            date_to=parse_date_bound(request.args.get("date_to"), upper=True),
        )
    except ValueError:
        return failure("Dates must be ISO-8601", 400)

    try:
        return success(billing_service.list_invoices(filters, page, limit))
    except Exception:
        current_app.logger.exception("Failed to list invoices")
        return failure("Internal server error", 500)


@invoices_bp.get("/<int:invoice_id>")
@require_user
def get_invoice(invoice_id: int):
    try:
        return success(billing_service.get_invoice(invoice_id))
    except BillingError as e:
        return failure(str(e), e.status_code)
    except Exception:
        current_app.logger.exception("Failed to get invoice")
        return failure("Internal server error", 500)


@invoices_bp.post("")
@require_user
def create_invoice():
    """
    Request body:
    {
        "customer": {"name": str, "email"?, "phone"?, "address"?},
        "items": [{"product_id": int, "quantity": int, "price_cents"?: int, "discount_cents"?: int}],
        "branch_id": int,
        "payment_method": "cash" | "card" | "upi" | "bank_transfer",
        "payment_status"?: str, "tax_rate"?: number, "discount_cents"?: int, "notes"?: str
    }
    """
    payload = request.get_json(silent=True)
    try:
        invoice = billing_service.create_invoice(payload, g.current_user.id)
        current_app.logger.info(
            "Invoice %s created at branch %s total=%s by user %s",
            invoice["invoice_number"], invoice["branch_id"], invoice["total_cents"], g.current_user.id,
        )
        return success(invoice, "Invoice created successfully", 201)
    except BillingError as e:
        return failure(str(e), e.status_code)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create invoice")
        return failure("Internal server error", 500)


@invoices_bp.put("/<int:invoice_id>")
@require_user
def update_invoice(invoice_id: int):
    data = request.get_json(silent=True) or {}
    try:
        updated = billing_service.update_invoice(invoice_id=invoice_id, data=data)
        return success(updated, "Invoice updated successfully")
    except BillingError as e:
        return failure(str(e), e.status_code)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update invoice")
        return failure("Internal server error", 500)


@invoices_bp.delete("/<int:invoice_id>")
@require_user
def delete_invoice(invoice_id: int):
    try:
        billing_service.delete_invoice(invoice_id)
        current_app.logger.info("Invoice %s deleted by user %s", invoice_id, g.current_user.id)
        return success(message="Invoice deleted successfully")
    except BillingError as e:
        return failure(str(e), e.status_code)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to delete invoice")
        return failure("Internal server error", 500)


@invoices_bp.get("/<int:invoice_id>/document")
@require_user
def invoice_document(invoice_id: int):
    try:
        return success(billing_service.invoice_document(invoice_id))
    except BillingError as e:
        return failure(str(e), e.status_code)
    except Exception:
        current_app.logger.exception("Failed to build invoice document")
        return failure("Internal server error", 500)
