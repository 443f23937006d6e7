# backend/app/routes/staff.py
"""
Staff API routes. Reads need a session; writes are admin-only.

Deleting a staff member, or moving them to inactive/on_leave, while an open
appointment references them answers 409 referenced_entity_in_use.
"""

from flask import Blueprint, jsonify, request

from ..decorators import require_auth, require_role
from ..errors import DomainError
from ..services import staff_service
from .responses import error_response, internal_error


staff_bp = Blueprint("staff", __name__, url_prefix="/api/staff")


@staff_bp.get("")
@require_auth
def list_staff_route():
    try:
        staff = staff_service.list_staff(status=request.args.get("status") or None)
        return jsonify({"items": [s.to_dict() for s in staff], "count": len(staff)}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to list staff")


@staff_bp.post("")
@require_auth
@require_role("admin")
def create_staff_route():
    try:
        staff = staff_service.create_staff(request.get_json(silent=True))
        return jsonify({"staff": staff.to_dict()}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to create staff member")


@staff_bp.get("/<int:staff_id>")
@require_auth
def get_staff_route(staff_id: int):
    try:
        return jsonify({"staff": staff_service.get_staff(staff_id).to_dict()}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to load staff member")


@staff_bp.put("/<int:staff_id>")
@require_auth
@require_role("admin")
def update_staff_route(staff_id: int):
    try:
        staff = staff_service.update_staff(staff_id, request.get_json(silent=True))
        return jsonify({"staff": staff.to_dict()}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to update staff member")


@staff_bp.delete("/<int:staff_id>")
@require_auth
@require_role("admin")
def delete_staff_route(staff_id: int):
    try:
        staff_service.delete_staff(staff_id)
        return jsonify({"deleted": True, "id": staff_id}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to delete staff member")
