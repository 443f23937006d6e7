# backend/app/routes/service_items.py
"""
Service item (pricing) routes.

Items are never deleted: PATCH /api/service-items/<id> {"status": "retired"}
hides one from listings, {"status": "active"} brings it back.
"""

from flask import Blueprint, jsonify, request

from ..decorators import require_auth, require_role
from ..errors import DomainError
from ..services import service_item_service
from ..validation import parse_bool_arg
from .responses import error_response, internal_error


service_items_bp = Blueprint("service_items", __name__, url_prefix="/api/service-items")


@service_items_bp.get("")
@require_auth
def list_service_items_route():
    try:
        items = service_item_service.list_service_items(
            include_retired=parse_bool_arg(request.args, "include_retired"),
        )
        return jsonify({"items": [i.to_dict() for i in items], "count": len(items)}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to list service items")


@service_items_bp.post("")
@require_auth
@require_role("admin")
def create_service_item_route():
    try:
        item = service_item_service.create_service_item(request.get_json(silent=True))
        return jsonify({"service_item": item.to_dict()}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to create service item")


@service_items_bp.put("/<int:item_id>")
@require_auth
@require_role("admin")
def update_service_item_route(item_id: int):
    try:
        item = service_item_service.update_service_item(item_id, request.get_json(silent=True))
        return jsonify({"service_item": item.to_dict()}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to update service item")


@service_items_bp.patch("/<int:item_id>")
@require_auth
@require_role("admin")
def set_service_item_status_route(item_id: int):
    try:
        data = request.get_json(silent=True) or {}
        item = service_item_service.set_service_item_status(item_id, data.get("status"))
        return jsonify({"service_item": item.to_dict()}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to change service item status")
