# backend/app/routes/appointments.py
"""
Appointment API routes.

- GET    /api/appointments                 list (?status, start, end, staff_id, vehicle_id, limit)
- POST   /api/appointments                 book (always starts pending)
- GET    /api/appointments/<id>            one appointment (?include_history=true)
- GET    /api/appointments/<id>/history    status and reassignment trail
- PUT    /api/appointments/<id>            edit fields, optionally with a status change (admin)
- PATCH  /api/appointments/<id>/status     explicit transition {"status", "notes"?} (admin)
- DELETE /api/appointments/<id>            pending only (admin)

Non-admin sessions only see the appointments they booked.
"""

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth, require_role
from ..errors import DomainError, Forbidden, NotFound
from ..services import appointment_service, reporting_service
from ..services.appointment_service import ASSIGNMENT_FIELDS
from ..validation import parse_bool_arg, parse_int_arg
from .responses import error_response, internal_error


appointments_bp = Blueprint("appointments", __name__, url_prefix="/api/appointments")


def _visible(appointment_id: int):
    """Load an appointment the session may see. Others' bookings look like 404."""
    appointment = appointment_service.get_appointment(appointment_id)
    user = g.current_user
    if not user.is_admin and appointment.created_by != user.id:
        raise NotFound(f"Appointment {appointment_id} not found")
    return appointment


@appointments_bp.get("")
@require_auth
def list_appointments_route():
    try:
        user = g.current_user
        appointments = reporting_service.list_appointments(
            status=request.args.get("status") or None,
            start=request.args.get("start"),
            end=request.args.get("end"),
            staff_id=parse_int_arg(request.args, "staff_id", "staffId"),
            vehicle_id=parse_int_arg(request.args, "vehicle_id", "vehicleId"),
            created_by=None if user.is_admin else user.id,
            limit=request.args.get("limit"),
        )
        return jsonify({"items": [a.to_dict() for a in appointments], "count": len(appointments)}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to list appointments")


@appointments_bp.post("")
@require_auth
def create_appointment_route():
    """
    Request body:
    {
        "customer_name": str,
        "appointment_time": ISO-8601,
        "contact_phone": str, "contact_address": str, "notes": str,
        "document_count": int (>= 1), "service_type": str, "document_category": str,
        "staff_id": int, "vehicle_id": int (optional, admin only; 403 otherwise),
        "status": str (optional; must be a known status, the booking starts pending regardless)
    }
    """
    try:
        payload = request.get_json(silent=True)
        if not g.current_user.is_admin and isinstance(payload, dict):
            assigned = sorted(k for k in ASSIGNMENT_FIELDS if payload.get(k) is not None)
            if assigned:
                raise Forbidden(f"Only admins may set {', '.join(assigned)}")
        appointment = appointment_service.create_appointment(payload, created_by=g.current_user.id)
        return jsonify({"appointment": appointment.to_dict()}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to create appointment")


@appointments_bp.get("/<int:appointment_id>")
@require_auth
def get_appointment_route(appointment_id: int):
    try:
        appointment = _visible(appointment_id)
        data = appointment.to_dict()
        if parse_bool_arg(request.args, "include_history"):
            data["history"] = [h.to_dict() for h in appointment_service.get_history(appointment_id)]
        return jsonify({"appointment": data}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to load appointment")


@appointments_bp.get("/<int:appointment_id>/history")
@require_auth
def appointment_history_route(appointment_id: int):
    try:
        _visible(appointment_id)
        history = appointment_service.get_history(appointment_id)
        return jsonify({"items": [h.to_dict() for h in history], "count": len(history)}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to load appointment history")


@appointments_bp.put("/<int:appointment_id>")
@require_auth
@require_role("admin")
def update_appointment_route(appointment_id: int):
    """
    Error responses:
        400: invalid field or status value, or illegal transition
        404: appointment, staff member or vehicle not found
    """
    try:
        appointment = appointment_service.update_appointment(
            appointment_id,
            request.get_json(silent=True),
            updated_by=g.current_user.id,
        )
        return jsonify({"appointment": appointment.to_dict()}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to update appointment")


@appointments_bp.patch("/<int:appointment_id>/status")
@require_auth
@require_role("admin")
def update_appointment_status_route(appointment_id: int):
    try:
        data = request.get_json(silent=True) or {}
        appointment = appointment_service.update_status(
            appointment_id,
            data.get("status"),
            updated_by=g.current_user.id,
            notes=data.get("notes"),
        )
        return jsonify({"appointment": appointment.to_dict()}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to change appointment status")


@appointments_bp.delete("/<int:appointment_id>")
@require_auth
@require_role("admin")
def delete_appointment_route(appointment_id: int):
    try:
        appointment_service.delete_appointment(appointment_id)
        return jsonify({"deleted": True, "id": appointment_id}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to delete appointment")
