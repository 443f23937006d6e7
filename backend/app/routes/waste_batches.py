# backend/app/routes/waste_batches.py
"""
Waste batch API routes.

- GET    /api/waste-batches                list (optional ?status=)
- POST   /api/waste-batches                create (starts as draft)
- GET    /api/waste-batches/<id>           one batch, with its auction if any
- PUT    /api/waste-batches/<id>           edit descriptive fields
- PATCH  /api/waste-batches/<id>           {"status": ...} lifecycle transition
- DELETE /api/waste-batches/<id>           draft/published batches without an auction

SECURITY:
- Reads need a session; writes are admin-only
- created_by comes from the session, never from the body
"""

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth, require_role
from ..errors import DomainError
from ..services import batch_service
from ..validation import apply_field_aliases
from .responses import error_response, internal_error


waste_batches_bp = Blueprint("waste_batches", __name__, url_prefix="/api/waste-batches")

BATCH_FIELD_ALIASES = {
    "wasteType": "waste_type",
    "estimatedWeight": "estimated_weight",
    "createdBy": "created_by",
}


@waste_batches_bp.get("")
@require_auth
def list_batches_route():
    try:
        batches = batch_service.list_batches(status=request.args.get("status") or None)
        return jsonify({"items": [b.to_dict() for b in batches], "count": len(batches)}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to list waste batches")


@waste_batches_bp.post("")
@require_auth
@require_role("admin")
def create_batch_route():
    """
    Request body:
    {
        "title": str,
        "waste_type": str,
        "description": str (optional),
        "estimated_weight": number (optional, kg),
        "location": str (optional),
        "category": str (optional)
    }
    camelCase keys (wasteType, estimatedWeight) are accepted; createdBy is
    ignored, the creator is the session user.
    """
    try:
        payload = apply_field_aliases(request.get_json(silent=True), BATCH_FIELD_ALIASES)
        batch = batch_service.create_batch(payload, created_by=g.current_user.id)
        return jsonify({"batch": batch.to_dict()}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to create waste batch")


@waste_batches_bp.get("/<int:batch_id>")
@require_auth
def get_batch_route(batch_id: int):
    try:
        batch = batch_service.get_batch(batch_id)
        data = batch.to_dict()
        data["auction"] = batch.auction.to_dict() if batch.auction is not None else None
        return jsonify({"batch": data}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to load waste batch")


@waste_batches_bp.put("/<int:batch_id>")
@require_auth
@require_role("admin")
def update_batch_route(batch_id: int):
    try:
        batch = batch_service.update_batch(
            batch_id, apply_field_aliases(request.get_json(silent=True), BATCH_FIELD_ALIASES),
        )
        return jsonify({"batch": batch.to_dict()}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to update waste batch")


@waste_batches_bp.patch("/<int:batch_id>")
@require_auth
@require_role("admin")
def transition_batch_route(batch_id: int):
    """
    Request body: {"status": "published" | "auction_in_progress" | "auction_ended" | "allocated"}

    Moving to auction_ended settles the auction and returns its outcome.

    Error responses:
        400: unknown status, or not a direct successor (InvalidTransition)
        404: batch not found
        503: store busy
    """
    try:
        data = request.get_json(silent=True) or {}
        batch, auction = batch_service.transition_batch_status(batch_id, data.get("status"))
        body = {"batch": batch.to_dict()}
        if auction is not None:
            body["auction"] = auction.to_dict()
        return jsonify(body), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to change waste batch status")


@waste_batches_bp.delete("/<int:batch_id>")
@require_auth
@require_role("admin")
def delete_batch_route(batch_id: int):
    try:
        batch_service.delete_batch(batch_id)
        return jsonify({"deleted": True, "id": batch_id}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to delete waste batch")
