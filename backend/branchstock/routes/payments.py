# Overview: Flask API routes for payments; parses input and returns JSON envelopes.

from flask import Blueprint, current_app, g, request

from ..decorators import require_user
from ..extensions import db
from ..models import Payment
from ..responses import failure, page_args, success
from ..services import payment_service
from ..services.payment_service import PaymentError, PaymentFilters
from ..validation import PAYMENT_POLICY, ValidationError, enforce_rules_payment, validate_payload
from branchstock.time_utils import parse_date_bound

payments_bp = Blueprint("payments", __name__, url_prefix="/api/payments")


@payments_bp.get("")
@require_user
def list_payments():
    page, limit = page_args()
    try:
        filters = PaymentFilters(
            branch_id=request.args.get("branch_id", type=int),
            payment_method=request.args.get("payment_method") or None,
            payment_type=request.args.get("payment_type") or None,
            customer=request.args.get("customer") or None,
            date_from=parse_date_bound(request.args.get("date_from")),
            date_to=parse_date_bound(request.args.get("date_to"), upper=True),
        )
    except ValueError:
        return failure("Dates must be ISO-8601", 400)

    try:
        return success(payment_service.list_payments(filters, page, limit))
    except Exception:
        current_app.logger.exception("Failed to list payments")
        return failure("Internal server error", 500)


@payments_bp.get("/<int:payment_id>")
@require_user
def get_payment(payment_id: int):
    try:
        return success(payment_service.get_payment(payment_id))
    except PaymentError as e:
        return failure(str(e), e.status_code)
    except Exception:
        current_app.logger.exception("Failed to get payment")
        return failure("Internal server error", 500)


@payments_bp.post("")
@require_user
def create_payment():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Payment, payload=payload, policy=PAYMENT_POLICY, partial=False)
        enforce_rules_payment(patch)
        created = payment_service.create_payment(patch=patch, user_id=g.current_user.id)
        return success(created, "Payment created successfully", 201)
    except ValidationError as e:
        return failure(str(e), 400)
    except PaymentError as e:
        db.session.rollback()
        return failure(str(e), e.status_code)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to create payment")
        return failure("Internal server error", 500)


@payments_bp.put("/<int:payment_id>")
@require_user
def update_payment(payment_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Payment, payload=payload, policy=PAYMENT_POLICY, partial=True)
        enforce_rules_payment(patch)
        updated = payment_service.update_payment(payment_id=payment_id, patch=patch)
        return success(updated, "Payment updated successfully")
    except ValidationError as e:
        return failure(str(e), 400)
    except PaymentError as e:
        db.session.rollback()
        return failure(str(e), e.status_code)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to update payment")
        return failure("Internal server error", 500)


@payments_bp.delete("/<int:payment_id>")
@require_user
def delete_payment(payment_id: int):
    try:
        payment_service.delete_payment(payment_id)
        return success(message="Payment deleted successfully")
    except PaymentError as e:
        return failure(str(e), e.status_code)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to delete payment")
        return failure("Internal server error", 500)
