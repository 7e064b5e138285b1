from flask import Blueprint, current_app, request

from ..decorators import require_user
from ..responses import failure, success
from ..services import reporting_service
from ..services.reporting_service import (
    PaymentReportFilters,
    ProfitLossFilters,
    SalesReportFilters,
    StockReportFilters,
)


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/sales")
@require_user
def sales_report():
    filters = SalesReportFilters(
        date_from=request.args.get("date_from") or None,
        date_to=request.args.get("date_to") or None,
        branch_id=request.args.get("branch_id", type=int),
        period=request.args.get("period") or "monthly",
    )
    try:
        return success(reporting_service.sales_report(filters))
    except reporting_service.ReportError as exc:
        return failure(str(exc), exc.status_code)
    except Exception:
        current_app.logger.exception("Failed to get sales report")
        return failure("Internal server error", 500)


@reports_bp.get("/stock")
@require_user
def stock_report():
    filters = StockReportFilters(
        branch_id=request.args.get("branch_id", type=int),
        category=request.args.get("category") or None,
    )
    try:
        return success(reporting_service.stock_report(filters))
    except Exception:
        current_app.logger.exception("Failed to get stock report")
        return failure("Internal server error", 500)


@reports_bp.get("/profit-loss")
@require_user
def profit_loss_report():
    filters = ProfitLossFilters(
        start_date=request.args.get("start_date") or None,
        end_date=request.args.get("end_date") or None,
        branch_id=request.args.get("branch_id", type=int),
    )
    try:
        return success(reporting_service.profit_loss_report(filters))
    except reporting_service.ReportError as exc:
        return failure(str(exc), exc.status_code)
    except Exception:
        current_app.logger.exception("Failed to get profit/loss report")
        return failure("Internal server error", 500)


@reports_bp.get("/payments")
@require_user
def payment_report():
    filters = PaymentReportFilters(
        date_from=request.args.get("date_from") or None,
        date_to=request.args.get("date_to") or None,
        branch_id=request.args.get("branch_id", type=int),
    )
    try:
        return success(reporting_service.payment_report(filters))
    except reporting_service.ReportError as exc:
        return failure(str(exc), exc.status_code)
    except Exception:
        current_app.logger.exception("Failed to get payment report")
        return failure("Internal server error", 500)
