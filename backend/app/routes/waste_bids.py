# backend/app/routes/waste_bids.py
"""
Waste bid API routes.

- GET  /api/waste-bids?user_id=<id>      a bidder's bids (own bids, or any as admin)
- GET  /api/waste-bids?auction_id=<id>   bids on an auction
- POST /api/waste-bids                   place a bid (merchant)
- POST /api/waste-bids/<id>/cancel       withdraw an own bid while the auction is active

SECURITY: the bidder is always the session user. A body bidder_id that
names someone else is rejected with 403 rather than silently replaced.
"""

from flask import Blueprint, g, jsonify, request

from ..decorators import require_auth, require_role
from ..errors import DomainError, Forbidden, ValidationError
from ..models import WasteBid
from ..services import bid_service
from ..services.bid_service import BID_POLICY
from ..validation import apply_field_aliases, parse_int_arg, validate_payload
from .responses import error_response, internal_error


waste_bids_bp = Blueprint("waste_bids", __name__, url_prefix="/api/waste-bids")

BID_FIELD_ALIASES = {"auctionId": "auction_id", "bidderId": "bidder_id"}
BID_MONEY_ALIASES = {"bidAmount": "bid_amount_cents"}


@waste_bids_bp.get("")
@require_auth
def list_bids_route():
    try:
        user_id = parse_int_arg(request.args, "user_id", "userId")
        auction_id = parse_int_arg(request.args, "auction_id", "auctionId")

        if auction_id is not None:
            bids = bid_service.list_bids_for_auction(auction_id)
            items = [b.to_dict() for b in bids]
        elif user_id is not None:
            if user_id != g.current_user.id and not g.current_user.is_admin:
                raise Forbidden("You can only list your own bids")
            items = bid_service.list_bids_for_bidder(user_id)
        else:
            raise ValidationError("user_id or auction_id is required")

        return jsonify({"items": items, "count": len(items)}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to list bids")


@waste_bids_bp.post("")
@require_auth
@require_role("waste_disposal_merchant")
def place_bid_route():
    """
    Request body:
    {
        "auction_id": int,
        "bid_amount_cents": int,
        "bidder_id": int (optional, must be the session user),
        "notes": str (optional)
    }
    camelCase is accepted too: {"auctionId", "bidderId", "bidAmount", "notes"},
    where bidAmount is a decimal currency amount (1500.50 -> 150050 cents).

    Error responses:
        400: validation, BidTooLow, AuctionNotActive
        403: bidder_id is not the session user
        404: auction not found
        503: store busy
    """
    try:
        payload = apply_field_aliases(
            request.get_json(silent=True), BID_FIELD_ALIASES, money=BID_MONEY_ALIASES,
        )
        patch = validate_payload(model=WasteBid, payload=payload, policy=BID_POLICY, partial=False)
        bidder_id = g.current_user.id
        if patch.get("bidder_id") is not None and patch["bidder_id"] != bidder_id:
            raise Forbidden("bidder_id must match the logged-in user")

        bid = bid_service.place_bid(
            auction_id=patch["auction_id"],
            bidder_id=bidder_id,
            bid_amount_cents=patch["bid_amount_cents"],
            notes=patch.get("notes"),
        )
        return jsonify({"bid": bid.to_dict()}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to place bid")


@waste_bids_bp.post("/<int:bid_id>/cancel")
@require_auth
@require_role("waste_disposal_merchant")
def cancel_bid_route(bid_id: int):
    try:
        bid = bid_service.cancel_bid(bid_id, bidder_id=g.current_user.id)
        return jsonify({"bid": bid.to_dict()}), 200
    except DomainError as e:
        return error_response(e)
    except Exception:
        return internal_error("Failed to cancel bid")
