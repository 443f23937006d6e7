# Overview: Service-layer operations for waste batches; creation, edits, deletion and status transitions.

"""
Waste batch service.

LIFECYCLE (enforced by lifecycle_service):
    draft -> published -> auction_in_progress -> auction_ended -> allocated

Entering auction_ended settles the batch's auction in the same transaction
as the status change. Locks are always taken batch first, then auction.
"""
from __future__ import annotations

import random
import time
from contextlib import ExitStack

from flask import current_app

from ..errors import ConflictError, InvalidTransition, NotFound
from ..extensions import db
from ..models import WasteAuction, WasteBatch
from ..validation import ModelValidationPolicy, enforce_rules_batch, validate_payload
from . import bid_service, lifecycle_service
from .concurrency import entity_lock, lock_for_update, run_with_retry


EDITABLE_STATUSES = ("draft", "published")

BATCH_POLICY = ModelValidationPolicy(
    writable_fields={
        "title",
        "description",
        "estimated_weight",
        "location",
        "waste_type",
        "category",
    },
    required_on_create={"title", "waste_type"},
    server_owned_fields={
        "id",
        "batch_number",
        "status",
        "created_by",
        "created_at",
        "updated_at",
        "version_id",
    },
)


def generate_batch_number() -> str:
    """WB + epoch milliseconds + three random digits, e.g. WB1718000000000042."""
    for _ in range(5):
        candidate = f"WB{int(time.time() * 1000)}{random.randint(0, 999):03d}"
        exists = db.session.query(WasteBatch.id).filter_by(batch_number=candidate).first()
        if not exists:
            return candidate
    raise ConflictError("Could not allocate a unique batch number, try again")


def get_batch(batch_id: int) -> WasteBatch:
    batch = db.session.get(WasteBatch, batch_id)
    if batch is None:
        raise NotFound(f"Waste batch {batch_id} not found")
    return batch


def list_batches(*, status: str | None = None) -> list[WasteBatch]:
    q = db.session.query(WasteBatch)
    if status is not None:
        lifecycle_service.validate_status("waste_batch", status)
        q = q.filter(WasteBatch.status == status)
    return q.order_by(WasteBatch.created_at.desc(), WasteBatch.id.desc()).all()


def create_batch(payload: dict, *, created_by: int) -> WasteBatch:
    """Create a batch in draft. status in the payload is ignored."""
    patch = validate_payload(model=WasteBatch, payload=payload, policy=BATCH_POLICY, partial=False)
    enforce_rules_batch(patch)

    def _op():
        batch = WasteBatch(
            **patch,
            batch_number=generate_batch_number(),
            status="draft",
            created_by=created_by,
        )
        db.session.add(batch)
        db.session.commit()
        current_app.logger.info("Created waste batch %s (%s)", batch.id, batch.batch_number)
        return batch

    return run_with_retry(_op)


def _load_locked(batch_id: int) -> WasteBatch:
    batch = lock_for_update(db.session.query(WasteBatch).filter_by(id=batch_id)).first()
    if batch is None:
        raise NotFound(f"Waste batch {batch_id} not found")
    return batch


def update_batch(batch_id: int, payload: dict) -> WasteBatch:
    """Edit descriptive fields. Only draft and published batches are editable."""
    patch = validate_payload(model=WasteBatch, payload=payload, policy=BATCH_POLICY, partial=True)
    enforce_rules_batch(patch)

    def _op():
        with entity_lock("waste_batch", batch_id):
            batch = _load_locked(batch_id)
            if batch.status not in EDITABLE_STATUSES:
                raise InvalidTransition(
                    f"Waste batch is '{batch.status}'; only draft or published batches can be edited"
                )
            for key, value in patch.items():
                setattr(batch, key, value)
            db.session.commit()
            return batch

    return run_with_retry(_op)


def delete_batch(batch_id: int) -> None:
    def _op():
        with entity_lock("waste_batch", batch_id):
            batch = _load_locked(batch_id)
            if batch.status not in EDITABLE_STATUSES:
                raise InvalidTransition(
                    f"Waste batch is '{batch.status}'; only draft or published batches can be deleted"
                )
            has_auction = db.session.query(WasteAuction.id).filter_by(batch_id=batch_id).first()
            if has_auction:
                raise ConflictError("Waste batch has an auction; delete the auction first")
            db.session.delete(batch)
            db.session.commit()
            current_app.logger.info("Deleted waste batch %s", batch_id)

    return run_with_retry(_op)


def transition_batch_status(batch_id: int, requested_status) -> tuple[WasteBatch, WasteAuction | None]:
    """
    Move a batch one step along its lifecycle.

    Moving to auction_ended settles the batch's auction (if it has one and
    it is not settled yet) before the commit, so the new status and the
    settlement outcome become visible together or not at all.

    Returns:
        (batch, settled auction or None)

    Raises:
        ValidationError: unknown status value
        NotFound: batch does not exist
        InvalidTransition: not a direct successor of the current status
    """
    lifecycle_service.validate_status("waste_batch", requested_status)

    def _op():
        with ExitStack() as held:
            held.enter_context(entity_lock("waste_batch", batch_id))
            batch = _load_locked(batch_id)
            new_status = lifecycle_service.transition("waste_batch", batch.status, requested_status)

            settled = None
            if new_status == "auction_ended":
                auction_id = db.session.query(WasteAuction.id).filter_by(batch_id=batch_id).scalar()
                if auction_id is not None:
                    # Held until the commit: bids wait and then see auction_ended.
                    held.enter_context(entity_lock("waste_auction", auction_id))
                    settled = bid_service.settle_for_batch_end(auction_id)

            previous = batch.status
            batch.status = new_status
            db.session.commit()

        current_app.logger.info(
            "Waste batch %s moved %s -> %s", batch_id, previous, new_status
        )
        return batch, settled

    return run_with_retry(_op)
