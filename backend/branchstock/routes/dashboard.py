from flask import Blueprint, current_app, request

from ..decorators import require_user
from ..responses import failure, success
from ..services import dashboard_service


dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.get("")
@require_user
def dashboard():
    """
    Query params:
    - period: daily | weekly | monthly (default) | yearly
    - branch_id: optional scope for invoices, payments and products
    """
    try:
        data = dashboard_service.get_dashboard_data(
            request.args.get("period") or "monthly",
            branch_id=request.args.get("branch_id", type=int),
        )
        return success(data)
    except Exception:
        current_app.logger.exception("Failed to get dashboard data")
        return failure("Internal server error", 500)
