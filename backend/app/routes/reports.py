from flask import Blueprint, jsonify, request

from ..decorators import require_auth, require_role
from ..errors import DomainError
from .responses import error_response
from ..services import reporting_service


reports_bp = Blueprint("reports", __name__, url_prefix="/api/reports")


@reports_bp.get("/summary")
@require_auth
@require_role("admin")
def dashboard_summary():
    return jsonify(reporting_service.dashboard_summary()), 200


@reports_bp.get("/appointments/status-counts")
@require_auth
@require_role("admin")
def appointment_status_counts():
    try:
        report = reporting_service.appointment_status_counts(
            start=request.args.get("start"),
            end=request.args.get("end"),
        )
        return jsonify(report), 200
    except DomainError as exc:
        return error_response(exc)


@reports_bp.get("/waste-batches/status-counts")
@require_auth
@require_role("admin")
def batch_status_counts():
    return jsonify(reporting_service.batch_status_counts()), 200


@reports_bp.get("/auctions")
@require_auth
@require_role("admin")
def auction_summary():
    return jsonify(reporting_service.auction_summary()), 200
