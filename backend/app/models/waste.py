from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


BATCH_STATUSES = ("draft", "published", "auction_in_progress", "auction_ended", "allocated")
BID_STATUSES = ("active", "outbid", "winning", "cancelled")


class WasteBatch(db.Model):
    """
    A lot of leftover material (shredded paper, metal, plastics) offered to
    disposal merchants.

    LIFECYCLE:
        draft -> published -> auction_in_progress -> auction_ended -> allocated

    Transitions only move one step forward (see lifecycle_service). Entering
    auction_ended settles the batch's auction in the same transaction.
    """
    __tablename__ = "waste_batches"
    __table_args__ = (
        db.Index("ix_waste_batches_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    batch_number = db.Column(db.String(32), nullable=False, unique=True, index=True)

    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    estimated_weight = db.Column(db.Float, nullable=True)  # kilograms
    location = db.Column(db.String(255), nullable=True)
    waste_type = db.Column(db.String(64), nullable=False)
    category = db.Column(db.String(64), nullable=True)

    status = db.Column(db.String(32), nullable=False, default="draft", index=True)

    # Acting user id from the session cookie; users live with the auth provider
    created_by = db.Column(db.Integer, nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<WasteBatch id={self.id} number={self.batch_number} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "batch_number": self.batch_number,
            "title": self.title,
            "description": self.description,
            "estimated_weight": self.estimated_weight,
            "location": self.location,
            "waste_type": self.waste_type,
            "category": self.category,
            "status": self.status,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }

    def to_summary(self) -> dict:
        return {
            "id": self.id,
            "batch_number": self.batch_number,
            "title": self.title,
            "waste_type": self.waste_type,
            "estimated_weight": self.estimated_weight,
            "location": self.location,
            "status": self.status,
        }


class WasteAuction(db.Model):
    """
    Time-boxed auction for exactly one batch.

    An auction is *active* while utcnow() is in [start_time, end_time) and its
    batch is auction_in_progress. Settlement fills in the winner fields and
    settled_at; settled_at is the guard that makes settlement run once.
    """
    __tablename__ = "waste_auctions"
    __table_args__ = (
        db.UniqueConstraint("batch_id", name="uq_waste_auctions_batch"),
        db.CheckConstraint("end_time > start_time", name="ck_waste_auctions_window"),
        db.Index("ix_waste_auctions_end_time", "end_time"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    batch_id = db.Column(db.Integer, db.ForeignKey("waste_batches.id"), nullable=False)

    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=True)
    start_time = db.Column(db.DateTime(timezone=True), nullable=False)
    end_time = db.Column(db.DateTime(timezone=True), nullable=False)

    # Money in integer cents
    base_price_cents = db.Column(db.BigInteger, nullable=False, default=0)
    reserve_price_cents = db.Column(db.BigInteger, nullable=True)

    # Settlement outcome
    settled_at = db.Column(db.DateTime(timezone=True), nullable=True)
    winner_id = db.Column(db.Integer, nullable=True)
    winning_bid_id = db.Column(db.Integer, nullable=True)
    winning_bid_cents = db.Column(db.BigInteger, nullable=True)

    created_by = db.Column(db.Integer, nullable=False, index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    batch = db.relationship("WasteBatch", backref=db.backref("auction", uselist=False, lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<WasteAuction id={self.id} batch_id={self.batch_id}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "batch_id": self.batch_id,
            "title": self.title,
            "description": self.description,
            "start_time": to_utc_z(self.start_time),
            "end_time": to_utc_z(self.end_time),
            "base_price_cents": self.base_price_cents,
            "reserve_price_cents": self.reserve_price_cents,
            "settled_at": to_utc_z(self.settled_at) if self.settled_at else None,
            "winner_id": self.winner_id,
            "winning_bid_id": self.winning_bid_id,
            "winning_bid_cents": self.winning_bid_cents,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "version_id": self.version_id,
        }


class WasteBid(db.Model):
    """
    One offer on an auction.

    STATUS:
    - active:    the current high bid (at most one per auction)
    - outbid:    superseded, or not chosen at settlement
    - winning:   chosen at settlement (at most one per auction)
    - cancelled: withdrawn by its bidder while the auction was active
    """
    __tablename__ = "waste_bids"
    __table_args__ = (
        db.Index("ix_waste_bids_auction_status", "auction_id", "status"),
        db.Index("ix_waste_bids_bidder_time", "bidder_id", "bid_time"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    auction_id = db.Column(db.Integer, db.ForeignKey("waste_auctions.id"), nullable=False, index=True)
    bidder_id = db.Column(db.Integer, nullable=False)
    bid_amount_cents = db.Column(db.BigInteger, nullable=False)
    bid_time = db.Column(db.DateTime(timezone=True), nullable=False)
    notes = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(16), nullable=False, default="active")
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    auction = db.relationship(
        "WasteAuction",
        foreign_keys=[auction_id],
        backref=db.backref("bids", lazy=True, order_by="WasteBid.id"),
    )

    def __repr__(self) -> str:
        return f"<WasteBid id={self.id} auction_id={self.auction_id} amount={self.bid_amount_cents} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "auction_id": self.auction_id,
            "bidder_id": self.bidder_id,
            "bid_amount_cents": self.bid_amount_cents,
            "bid_time": to_utc_z(self.bid_time),
            "notes": self.notes,
            "status": self.status,
            "cancelled_at": to_utc_z(self.cancelled_at) if self.cancelled_at else None,
        }
