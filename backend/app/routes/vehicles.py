# backend/app/routes/vehicles.py
"""Vehicle API routes. Reads need a session; writes are admin-only."""

from flask import Blueprint, jsonify, request

from ..decorators import require_auth, require_role
from ..errors import DomainError
from ..services import vehicle_service
from .responses import error_response, internal_error


vehicles_bp = Blueprint("vehicles", __name__, url_prefix="/api/vehicles")


@vehicles_bp.get("")
@require_auth
def list_vehicles_route():
    try:
        vehicles = vehicle_service.list_vehicles(status=request.args.get("status") or None)
        return jsonify({"items": [v.to_dict() for v in vehicles], "count": len(vehicles)}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to list vehicles")


@vehicles_bp.post("")
@require_auth
@require_role("admin")
def create_vehicle_route():
    try:
        vehicle = vehicle_service.create_vehicle(request.get_json(silent=True))
        return jsonify({"vehicle": vehicle.to_dict()}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to register vehicle")


@vehicles_bp.get("/<int:vehicle_id>")
@require_auth
def get_vehicle_route(vehicle_id: int):
    try:
        return jsonify({"vehicle": vehicle_service.get_vehicle(vehicle_id).to_dict()}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to load vehicle")


@vehicles_bp.put("/<int:vehicle_id>")
@require_auth
@require_role("admin")
def update_vehicle_route(vehicle_id: int):
    try:
        vehicle = vehicle_service.update_vehicle(vehicle_id, request.get_json(silent=True))
        return jsonify({"vehicle": vehicle.to_dict()}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to update vehicle")


@vehicles_bp.delete("/<int:vehicle_id>")
@require_auth
@require_role("admin")
def delete_vehicle_route(vehicle_id: int):
    try:
        vehicle_service.delete_vehicle(vehicle_id)
        return jsonify({"deleted": True, "id": vehicle_id}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to delete vehicle")
