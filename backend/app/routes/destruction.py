# backend/app/routes/destruction.py
"""
Destruction task API routes.

- GET    /api/destruction/tasks                      own tasks, or all as admin (?status=)
- POST   /api/destruction/tasks                      request a destruction (starts pending)
- GET    /api/destruction/tasks/<id>                 one task (?include_records=true adds records and certificates)
- PUT    /api/destruction/tasks/<id>                 edit while pending/scheduled (admin)
- PATCH  /api/destruction/tasks/<id>/status          {"status": "scheduled" | "cancelled"} (admin)
- POST   /api/destruction/tasks/<id>/check-in        open the on-site record, task -> in_progress (admin)
- POST   /api/destruction/tasks/<id>/check-out       close it, task -> completed (admin)
- GET    /api/destruction/tasks/<id>/records         on-site records
- POST   /api/destruction/tasks/<id>/certificates    draft a certificate for a completed task (admin)
- GET    /api/destruction/tasks/<id>/certificate     the issued certificate
- PATCH  /api/destruction/certificates/<id>/status   {"status": "issued" | "revoked"} (admin)

Non-admin sessions only see the tasks they requested; others look like 404.
"""

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth, require_role
from ..errors import DomainError, NotFound
from ..services import destruction_service
from ..validation import apply_field_aliases, parse_bool_arg
from .responses import error_response, internal_error


destruction_bp = Blueprint("destruction", __name__, url_prefix="/api/destruction")

TASK_FIELD_ALIASES = {
    "customerName": "customer_name",
    "contactPhone": "contact_phone",
    "contactAddress": "contact_address",
    "scheduledDate": "scheduled_date",
    "serviceType": "service_type",
    "itemDescription": "item_description",
    "estimatedWeight": "estimated_weight",
    "specialRequirements": "special_requirements",
    "userId": "user_id",
}


def _visible(task_id: int):
    task = destruction_service.get_task(task_id)
    user = g.current_user
    if not user.is_admin and task.user_id != user.id:
        raise NotFound(f"Destruction task {task_id} not found")
    return task


@destruction_bp.get("/tasks")
@require_auth
def list_tasks_route():
    try:
        user = g.current_user
        tasks = destruction_service.list_tasks(
            user_id=None if user.is_admin else user.id,
            status=request.args.get("status") or None,
        )
        return jsonify({"items": [t.to_dict() for t in tasks], "count": len(tasks)}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to list destruction tasks")


@destruction_bp.post("/tasks")
@require_auth
def create_task_route():
    """
    Request body:
    {
        "customer_name": str, "contact_phone": str, "contact_address": str,
        "scheduled_date": ISO-8601, "service_type": str,
        "item_description": str, "estimated_weight": number (kg),
        "special_requirements": str (all three optional)
    }
    camelCase keys are accepted too; userId is ignored, the requester is the session user.
    """
    try:
        payload = apply_field_aliases(request.get_json(silent=True), TASK_FIELD_ALIASES)
        task = destruction_service.create_task(payload, user_id=g.current_user.id)
        return jsonify({"task": task.to_dict()}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to create destruction task")


@destruction_bp.get("/tasks/<int:task_id>")
@require_auth
def get_task_route(task_id: int):
    try:
        task = _visible(task_id)
        data = task.to_dict()
        if parse_bool_arg(request.args, "include_records"):
            data["records"] = [r.to_dict() for r in destruction_service.list_records(task_id)]
            data["certificates"] = [c.to_dict() for c in destruction_service.list_certificates(task_id)]
        return jsonify({"task": data}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to load destruction task")


@destruction_bp.put("/tasks/<int:task_id>")
@require_auth
@require_role("admin")
def update_task_route(task_id: int):
    try:
        payload = apply_field_aliases(request.get_json(silent=True), TASK_FIELD_ALIASES)
        task = destruction_service.update_task(task_id, payload)
        return jsonify({"task": task.to_dict()}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to update destruction task")


@destruction_bp.patch("/tasks/<int:task_id>/status")
@require_auth
@require_role("admin")
def task_status_route(task_id: int):
    try:
        data = request.get_json(silent=True) or {}
        task = destruction_service.transition_task_status(task_id, data.get("status"))
        return jsonify({"task": task.to_dict()}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to change destruction task status")


@destruction_bp.post("/tasks/<int:task_id>/check-in")
@require_auth
@require_role("admin")
def check_in_route(task_id: int):
    """
    Request body (all optional):
    {"check_in_time": ISO-8601, "witness_name": str, "staff_id": int, "vehicle_id": int, "notes": str}
    """
    try:
        record = destruction_service.check_in(
            task_id, request.get_json(silent=True), recorded_by=g.current_user.id,
        )
        return jsonify({"record": record.to_dict(), "task_status": record.task.status}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to check in")


@destruction_bp.post("/tasks/<int:task_id>/check-out")
@require_auth
@require_role("admin")
def check_out_route(task_id: int):
    """
    Request body (all optional):
    {
        "check_out_time": ISO-8601, "actual_weight": number, "item_count": int,
        "item_details": str, "witness_name": str, "witness_signature": str, "notes": str
    }
    """
    try:
        record = destruction_service.check_out(
            task_id, request.get_json(silent=True), recorded_by=g.current_user.id,
        )
        return jsonify({"record": record.to_dict(), "task_status": record.task.status}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to check out")


@destruction_bp.get("/tasks/<int:task_id>/records")
@require_auth
def list_records_route(task_id: int):
    try:
        _visible(task_id)
        records = destruction_service.list_records(task_id)
        return jsonify({"items": [r.to_dict() for r in records], "count": len(records)}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to list destruction records")


@destruction_bp.post("/tasks/<int:task_id>/certificates")
@require_auth
@require_role("admin")
def create_certificate_route(task_id: int):
    """
    Request body:
    {
        "destruction_method": str, "operator_name": str,
        "destruction_date": ISO-8601 (optional, defaults to the last check-out),
        "supervisor_name": str, "file_url": str (optional)
    }
    """
    try:
        certificate = destruction_service.create_certificate(
            task_id, request.get_json(silent=True), created_by=g.current_user.id,
        )
        return jsonify({"certificate": certificate.to_dict()}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to create certificate")


@destruction_bp.get("/tasks/<int:task_id>/certificate")
@require_auth
def issued_certificate_route(task_id: int):
    try:
        _visible(task_id)
        certificate = destruction_service.get_issued_certificate(task_id)
        return jsonify({"certificate": certificate.to_dict()}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to load certificate")


@destruction_bp.patch("/certificates/<int:certificate_id>/status")
@require_auth
@require_role("admin")
def certificate_status_route(certificate_id: int):
    try:
        data = request.get_json(silent=True) or {}
        certificate = destruction_service.set_certificate_status(certificate_id, data.get("status"))
        return jsonify({"certificate": certificate.to_dict()}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to change certificate status")
