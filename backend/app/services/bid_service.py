# Overview: Service-layer bid admission, cancellation and auction settlement.

"""
Bid Service

================================================================================
INVARIANTS (per auction)
================================================================================

1. While the auction is active at most one bid is ``active``: the current high.
   Every other non-cancelled bid is ``outbid``.
2. A new bid must be strictly greater than the current high bid, or than the
   base price when there is none.
3. Admission is read-check-insert under the auction's lock, committed before
   the lock is released, so two concurrent bids can never both pass the
   floor check against the same high.
4. Settlement runs once per auction. settled_at is the guard; a second call
   raises AlreadySettled instead of picking a winner again.

Amounts among non-cancelled bids are strictly increasing in insertion order
(rule 2), so "highest amount" and "latest with the highest amount" pick the
same row.

================================================================================
"""
from __future__ import annotations

from flask import current_app

from ..errors import (
    AlreadySettled,
    AuctionNotActive,
    BidTooLow,
    Forbidden,
    InvalidTransition,
    NotFound,
)
from ..extensions import db
from ..models import WasteAuction, WasteBatch, WasteBid
from ..time_utils import as_utc_naive, to_utc_z, utcnow
from ..validation import ModelValidationPolicy, enforce_rules_bid
from .concurrency import entity_lock, lock_for_update, run_with_retry


BID_POLICY = ModelValidationPolicy(
    writable_fields={"auction_id", "bidder_id", "bid_amount_cents", "notes"},
    required_on_create={"auction_id", "bid_amount_cents"},
    server_owned_fields={"id", "status", "bid_time", "cancelled_at"},
)


def _load_auction_locked(auction_id: int) -> WasteAuction:
    auction = lock_for_update(db.session.query(WasteAuction).filter_by(id=auction_id)).first()
    if auction is None:
        raise NotFound(f"Waste auction {auction_id} not found")
    return auction


def _batch_status(auction: WasteAuction) -> str:
    # Fresh read: the batch row may be cached from earlier in this session.
    return (
        db.session.query(WasteBatch.status)
        .filter(WasteBatch.id == auction.batch_id)
        .scalar()
    )


def is_auction_active(auction: WasteAuction, *, now=None, batch_status: str | None = None) -> bool:
    """True while now is in [start_time, end_time), the batch is auctioning and nothing is settled."""
    now = now or utcnow()
    if auction.settled_at is not None:
        return False
    if batch_status is None:
        batch_status = _batch_status(auction)
    if batch_status != "auction_in_progress":
        return False
    return as_utc_naive(auction.start_time) <= now < as_utc_naive(auction.end_time)


def _non_cancelled_bids(auction_id: int) -> list[WasteBid]:
    return (
        lock_for_update(
            db.session.query(WasteBid).filter(
                WasteBid.auction_id == auction_id,
                WasteBid.status != "cancelled",
            )
        )
        .order_by(WasteBid.bid_amount_cents.desc(), WasteBid.id.desc())
        .all()
    )


def _recompute_high(auction_id: int) -> WasteBid | None:
    """
    Make the highest non-cancelled bid the single active one and mark the
    rest outbid. Returns the high bid, or None when no bid is left.
    """
    bids = _non_cancelled_bids(auction_id)
    high = bids[0] if bids else None
    for bid in bids:
        wanted = "active" if bid is high else "outbid"
        if bid.status != wanted:
            bid.status = wanted
    return high


def place_bid(
    *,
    auction_id: int,
    bidder_id: int,
    bid_amount_cents: int,
    notes: str | None = None,
) -> WasteBid:
    """
    Admit a bid on an active auction.

    Raises:
        ValidationError: amount missing, non-positive or out of range
        NotFound: auction does not exist
        AuctionNotActive: outside the bidding window, batch not auctioning, or settled
        BidTooLow: amount does not exceed the current high (or the base price)
        StoreUnavailable: lock or store timeout
    """
    enforce_rules_bid({"bid_amount_cents": bid_amount_cents})

    def _op():
        with entity_lock("waste_auction", auction_id):
            auction = _load_auction_locked(auction_id)
            now = utcnow()
            if not is_auction_active(auction, now=now):
                raise AuctionNotActive(f"Waste auction {auction_id} is not accepting bids")

            high = _recompute_high(auction_id)
            floor = high.bid_amount_cents if high is not None else auction.base_price_cents
            if bid_amount_cents <= floor:
                raise BidTooLow(f"Bid must be greater than {floor} cents")

            if high is not None:
                high.status = "outbid"

            bid = WasteBid(
                auction_id=auction_id,
                bidder_id=bidder_id,
                bid_amount_cents=bid_amount_cents,
                bid_time=now,
                notes=notes,
                status="active",
            )
            db.session.add(bid)
            db.session.commit()

        current_app.logger.info(
            "Bid %s placed on auction %s by user %s: %s cents",
            bid.id, auction_id, bidder_id, bid_amount_cents,
        )
        return bid

    return run_with_retry(_op)


def cancel_bid(bid_id: int, *, bidder_id: int) -> WasteBid:
    """
    Withdraw a bid while its auction is still active.

    Cancelling the current high bid recomputes the high among the remaining
    bids right away, so the next-highest non-cancelled bid becomes active.

    Raises:
        NotFound: bid does not exist
        Forbidden: bid belongs to someone else
        AuctionNotActive: auction is no longer active
        InvalidTransition: bid is already cancelled
    """
    existing = db.session.get(WasteBid, bid_id)
    if existing is None:
        raise NotFound(f"Bid {bid_id} not found")
    auction_id = existing.auction_id

    def _op():
        with entity_lock("waste_auction", auction_id):
            auction = _load_auction_locked(auction_id)
            bid = lock_for_update(db.session.query(WasteBid).filter_by(id=bid_id)).first()
            if bid is None:
                raise NotFound(f"Bid {bid_id} not found")
            if bid.bidder_id != bidder_id:
                raise Forbidden("Only the bidder can cancel this bid")
            now = utcnow()
            if not is_auction_active(auction, now=now):
                raise AuctionNotActive(f"Waste auction {auction_id} is not active; bids can no longer be cancelled")
            if bid.status == "cancelled":
                raise InvalidTransition(f"Bid {bid_id} is already cancelled")

            was_high = bid.status == "active"
            bid.status = "cancelled"
            bid.cancelled_at = now
            if was_high:
                _recompute_high(auction_id)
            db.session.commit()

        current_app.logger.info("Bid %s on auction %s cancelled by user %s", bid_id, auction_id, bidder_id)
        return bid

    return run_with_retry(_op)


def _settle_locked(auction: WasteAuction) -> WasteBid | None:
    """
    Pick the winner and write the outcome. Caller holds the auction lock
    and commits.

    The winner is the highest non-cancelled bid, provided it meets the
    reserve price. Every other non-cancelled bid ends up outbid. With no
    qualifying bid the auction settles without a winner.
    """
    if auction.settled_at is not None:
        raise AlreadySettled(f"Waste auction {auction.id} is already settled")

    high = _recompute_high(auction.id)
    if high is not None and auction.reserve_price_cents is not None:
        if high.bid_amount_cents < auction.reserve_price_cents:
            high.status = "outbid"
            high = None

    if high is not None:
        high.status = "winning"
        auction.winner_id = high.bidder_id
        auction.winning_bid_id = high.id
        auction.winning_bid_cents = high.bid_amount_cents
    auction.settled_at = utcnow()

    current_app.logger.info(
        "Waste auction %s settled: %s",
        auction.id,
        f"bid {high.id} by user {high.bidder_id} for {high.bid_amount_cents} cents" if high else "no winner",
    )
    return high


def settle_for_batch_end(auction_id: int) -> WasteAuction:
    """
    Settlement step of the batch -> auction_ended transition.

    Runs inside the caller's transaction (no commit). An auction that was
    already settled keeps its outcome untouched.
    """
    with entity_lock("waste_auction", auction_id):
        auction = _load_auction_locked(auction_id)
        if auction.settled_at is None:
            _settle_locked(auction)
        return auction


def settle_auction(auction_id: int) -> WasteBid | None:
    """
    Settle an auction on its own and commit. Returns the winning bid or None.

    Raises:
        NotFound: auction does not exist
        AlreadySettled: auction was settled before
    """
    def _op():
        with entity_lock("waste_auction", auction_id):
            auction = _load_auction_locked(auction_id)
            winner = _settle_locked(auction)
            db.session.commit()
            return winner

    return run_with_retry(_op)


def list_bids_for_auction(auction_id: int) -> list[WasteBid]:
    if db.session.get(WasteAuction, auction_id) is None:
        raise NotFound(f"Waste auction {auction_id} not found")
    return (
        db.session.query(WasteBid)
        .filter(WasteBid.auction_id == auction_id)
        .order_by(WasteBid.bid_amount_cents.desc(), WasteBid.bid_time.desc(), WasteBid.id.desc())
        .all()
    )


def list_bids_for_bidder(bidder_id: int) -> list[dict]:
    """A bidder's bids, latest first, with the auction and batch they target."""
    rows = (
        db.session.query(WasteBid, WasteAuction, WasteBatch)
        .join(WasteAuction, WasteBid.auction_id == WasteAuction.id)
        .join(WasteBatch, WasteAuction.batch_id == WasteBatch.id)
        .filter(WasteBid.bidder_id == bidder_id)
        .order_by(WasteBid.bid_time.desc(), WasteBid.id.desc())
        .all()
    )
    results = []
    for bid, auction, batch in rows:
        item = bid.to_dict()
        item["auction_title"] = auction.title
        item["auction_end_time"] = to_utc_z(auction.end_time)
        item["batch_id"] = batch.id
        item["batch_number"] = batch.batch_number
        item["batch_title"] = batch.title
        item["batch_status"] = batch.status
        results.append(item)
    return results
