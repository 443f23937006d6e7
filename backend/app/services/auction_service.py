# Overview: Service-layer operations for waste auctions; creation, listing projections and deletion.

from __future__ import annotations

from flask import current_app
from sqlalchemy import case, func

from ..errors import ConflictError, NotFound, ValidationError
from ..extensions import db
from ..models import WasteAuction, WasteBatch, WasteBid
from ..time_utils import as_utc_naive, utcnow
from ..validation import ModelValidationPolicy, enforce_rules_auction, validate_payload
from .bid_service import is_auction_active
from .concurrency import entity_lock, lock_for_update, run_with_retry


AUCTIONABLE_BATCH_STATUSES = ("published", "auction_in_progress")

AUCTION_POLICY = ModelValidationPolicy(
    writable_fields={
        "batch_id",
        "title",
        "description",
        "start_time",
        "end_time",
        "base_price_cents",
        "reserve_price_cents",
    },
    required_on_create={"batch_id", "title", "start_time", "end_time"},
    server_owned_fields={
        "id",
        "created_by",
        "created_at",
        "settled_at",
        "winner_id",
        "winning_bid_id",
        "winning_bid_cents",
        "version_id",
    },
)


def auction_phase(auction: WasteAuction, *, now=None) -> str:
    """scheduled before start_time, open inside the window, closed after it or once settled."""
    now = now or utcnow()
    if auction.settled_at is not None or now >= as_utc_naive(auction.end_time):
        return "closed"
    if now < as_utc_naive(auction.start_time):
        return "scheduled"
    return "open"


def get_auction(auction_id: int) -> WasteAuction:
    auction = db.session.get(WasteAuction, auction_id)
    if auction is None:
        raise NotFound(f"Waste auction {auction_id} not found")
    return auction


def create_auction(payload: dict, *, created_by: int) -> WasteAuction:
    """
    Open an auction for a published batch.

    Rules:
    - start_time in the future, end_time after start_time
    - reserve price (optional) not below the base price
    - one auction per batch
    - the batch must be published or auction_in_progress
    """
    patch = validate_payload(model=WasteAuction, payload=payload, policy=AUCTION_POLICY, partial=False)
    enforce_rules_auction(patch, now=utcnow())
    batch_id = patch["batch_id"]

    def _op():
        with entity_lock("waste_batch", batch_id):
            batch = lock_for_update(db.session.query(WasteBatch).filter_by(id=batch_id)).first()
            if batch is None:
                raise NotFound(f"Waste batch {batch_id} not found")
            if batch.status not in AUCTIONABLE_BATCH_STATUSES:
                raise ValidationError(
                    f"Waste batch is '{batch.status}'; publish it before creating an auction"
                )
            if db.session.query(WasteAuction.id).filter_by(batch_id=batch_id).first():
                raise ConflictError(f"Waste batch {batch_id} already has an auction")

            auction = WasteAuction(**patch, created_by=created_by)
            if auction.base_price_cents is None:
                auction.base_price_cents = 0
            db.session.add(auction)
            db.session.commit()

        current_app.logger.info("Created waste auction %s for batch %s", auction.id, batch_id)
        return auction

    return run_with_retry(_op)


def delete_auction(auction_id: int) -> None:
    """Remove an auction nobody has bid on yet."""
    existing = get_auction(auction_id)
    batch_id = existing.batch_id

    def _op():
        with entity_lock("waste_batch", batch_id), entity_lock("waste_auction", auction_id):
            auction = lock_for_update(db.session.query(WasteAuction).filter_by(id=auction_id)).first()
            if auction is None:
                raise NotFound(f"Waste auction {auction_id} not found")
            if db.session.query(WasteBid.id).filter_by(auction_id=auction_id).first():
                raise ConflictError("Waste auction already has bids and cannot be deleted")
            db.session.delete(auction)
            db.session.commit()
            current_app.logger.info("Deleted waste auction %s", auction_id)

    return run_with_retry(_op)


def _bid_stats_subquery():
    return (
        db.session.query(
            WasteBid.auction_id.label("auction_id"),
            func.count(WasteBid.id).label("bid_count"),
            func.max(
                case((WasteBid.status.in_(("active", "winning")), WasteBid.bid_amount_cents), else_=None)
            ).label("highest_bid_cents"),
        )
        .filter(WasteBid.status != "cancelled")
        .group_by(WasteBid.auction_id)
        .subquery()
    )


def auction_projection(auction: WasteAuction, batch: WasteBatch, *, bid_count: int, highest_bid_cents, now) -> dict:
    data = auction.to_dict()
    data["batch"] = batch.to_summary()
    data["bid_count"] = int(bid_count or 0)
    data["highest_bid_cents"] = int(highest_bid_cents) if highest_bid_cents is not None else None
    data["phase"] = auction_phase(auction, now=now)
    data["is_active"] = is_auction_active(auction, now=now, batch_status=batch.status)
    return data


def list_auctions(*, active_only: bool = False) -> list[dict]:
    """
    Auctions with their batch summary and bid stats.

    active_only keeps auctions that have not closed yet, soonest end first.
    Otherwise newest first.
    """
    now = utcnow()
    stats = _bid_stats_subquery()
    q = (
        db.session.query(WasteAuction, WasteBatch, stats.c.bid_count, stats.c.highest_bid_cents)
        .join(WasteBatch, WasteAuction.batch_id == WasteBatch.id)
        .outerjoin(stats, stats.c.auction_id == WasteAuction.id)
    )
    if active_only:
        q = q.filter(WasteAuction.settled_at.is_(None), WasteAuction.end_time > now)
        q = q.order_by(WasteAuction.end_time.asc(), WasteAuction.id.asc())
    else:
        q = q.order_by(WasteAuction.created_at.desc(), WasteAuction.id.desc())

    return [
        auction_projection(auction, batch, bid_count=count, highest_bid_cents=highest, now=now)
        for auction, batch, count, highest in q.all()
    ]


def get_auction_detail(auction_id: int) -> dict:
    auction = get_auction(auction_id)
    stats = (
        db.session.query(
            func.count(WasteBid.id),
            func.max(case((WasteBid.status.in_(("active", "winning")), WasteBid.bid_amount_cents), else_=None)),
        )
        .filter(WasteBid.auction_id == auction_id, WasteBid.status != "cancelled")
        .one()
    )
    return auction_projection(auction, auction.batch, bid_count=stats[0], highest_bid_cents=stats[1], now=utcnow())


def find_expired_unsettled(*, now=None) -> list[WasteAuction]:
    """Auctions past end_time whose batch is still auction_in_progress."""
    now = now or utcnow()
    return (
        db.session.query(WasteAuction)
        .join(WasteBatch, WasteAuction.batch_id == WasteBatch.id)
        .filter(
            WasteBatch.status == "auction_in_progress",
            WasteAuction.settled_at.is_(None),
            WasteAuction.end_time <= now,
        )
        .order_by(WasteAuction.end_time.asc())
        .all()
    )
