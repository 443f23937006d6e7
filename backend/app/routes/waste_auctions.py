# backend/app/routes/waste_auctions.py
"""
Waste auction API routes.

- GET    /api/waste-auctions             list with batch summary and bid stats (?active=true)
- POST   /api/waste-auctions             create for a published batch (admin)
- GET    /api/waste-auctions/<id>        one auction with the same projection
- GET    /api/waste-auctions/<id>/bids   bids on the auction, highest first
- DELETE /api/waste-auctions/<id>        only while nobody has bid (admin)
"""

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth, require_role
from ..errors import DomainError
from ..services import auction_service, bid_service
from ..validation import apply_field_aliases, parse_bool_arg
from .responses import error_response, internal_error


waste_auctions_bp = Blueprint("waste_auctions", __name__, url_prefix="/api/waste-auctions")

AUCTION_FIELD_ALIASES = {
    "batchId": "batch_id",
    "startTime": "start_time",
    "endTime": "end_time",
    "createdBy": "created_by",
}
AUCTION_MONEY_ALIASES = {"basePrice": "base_price_cents", "reservePrice": "reserve_price_cents"}


@waste_auctions_bp.get("")
@require_auth
def list_auctions_route():
    try:
        items = auction_service.list_auctions(active_only=parse_bool_arg(request.args, "active"))
        return jsonify({"items": items, "count": len(items)}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to list waste auctions")


@waste_auctions_bp.post("")
@require_auth
@require_role("admin")
def create_auction_route():
    """
    Request body:
    {
        "batch_id": int,
        "title": str,
        "start_time": ISO-8601 (must be in the future),
        "end_time": ISO-8601 (after start_time),
        "base_price_cents": int (optional, default 0),
        "reserve_price_cents": int (optional, >= base),
        "description": str (optional)
    }
    camelCase keys are accepted too: batchId, startTime, endTime, and
    basePrice/reservePrice as decimal currency amounts.

    Error responses:
        400: validation failure or batch not published
        404: batch not found
        409: batch already has an auction
    """
    try:
        payload = apply_field_aliases(
            request.get_json(silent=True), AUCTION_FIELD_ALIASES, money=AUCTION_MONEY_ALIASES,
        )
        auction = auction_service.create_auction(payload, created_by=g.current_user.id)
        return jsonify({"auction": auction_service.get_auction_detail(auction.id)}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to create waste auction")


@waste_auctions_bp.get("/<int:auction_id>")
@require_auth
def get_auction_route(auction_id: int):
    try:
        return jsonify({"auction": auction_service.get_auction_detail(auction_id)}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to load waste auction")


@waste_auctions_bp.get("/<int:auction_id>/bids")
@require_auth
def list_auction_bids_route(auction_id: int):
    try:
        bids = bid_service.list_bids_for_auction(auction_id)
        return jsonify({"items": [b.to_dict() for b in bids], "count": len(bids)}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to list auction bids")


@waste_auctions_bp.delete("/<int:auction_id>")
@require_auth
@require_role("admin")
def delete_auction_route(auction_id: int):
    try:
        auction_service.delete_auction(auction_id)
        return jsonify({"deleted": True, "id": auction_id}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to delete waste auction")
