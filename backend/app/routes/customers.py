# backend/app/routes/customers.py
"""Customer master data routes (admin only)."""

from flask import Blueprint, jsonify, request

from ..decorators import require_auth, require_role
from ..errors import DomainError
from ..services import customer_service
from .responses import error_response, internal_error


customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_auth
@require_role("admin")
def list_customers_route():
    try:
        customers = customer_service.list_customers(search=request.args.get("q"))
        return jsonify({"items": [c.to_dict() for c in customers], "count": len(customers)}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to list customers")


@customers_bp.post("")
@require_auth
@require_role("admin")
def create_customer_route():
    try:
        customer = customer_service.create_customer(request.get_json(silent=True))
        return jsonify({"customer": customer.to_dict()}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to create customer")


@customers_bp.get("/<int:customer_id>")
@require_auth
@require_role("admin")
def get_customer_route(customer_id: int):
    try:
        return jsonify({"customer": customer_service.get_customer(customer_id).to_dict()}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to load customer")


@customers_bp.put("/<int:customer_id>")
@require_auth
@require_role("admin")
def update_customer_route(customer_id: int):
    try:
        customer = customer_service.update_customer(customer_id, request.get_json(silent=True))
        return jsonify({"customer": customer.to_dict()}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to update customer")


@customers_bp.delete("/<int:customer_id>")
@require_auth
@require_role("admin")
def delete_customer_route(customer_id: int):
    try:
        customer_service.delete_customer(customer_id)
        return jsonify({"deleted": True, "id": customer_id}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to delete customer")
