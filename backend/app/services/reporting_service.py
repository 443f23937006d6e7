# Overview: Service-layer read models for dashboards and listings; no writes.

from __future__ import annotations

from datetime import datetime

from sqlalchemy import func

from ..errors import ValidationError
from ..extensions import db
from ..models import (
    Appointment,
    APPOINTMENT_STATUSES,
    BATCH_STATUSES,
    WasteAuction,
    WasteBatch,
    WasteBid,
)
from . import lifecycle_service
from ..time_utils import parse_iso_datetime, to_utc_z, utcnow


DEFAULT_LIMIT = 100
MAX_LIMIT = 500


def _parse_range(start: str | None, end: str | None) -> tuple[datetime | None, datetime | None]:
    try:
        start_dt = parse_iso_datetime(start) if start else None
        end_dt = parse_iso_datetime(end) if end else None
    except ValueError:
        raise ValidationError("start and end must be ISO-8601 datetimes")
    if start_dt and end_dt and end_dt < start_dt:
        raise ValidationError("end must not be before start")
    return start_dt, end_dt


def _clamp_limit(limit) -> int:
    if limit is None:
        return DEFAULT_LIMIT
    try:
        limit = int(limit)
    except (TypeError, ValueError):
        raise ValidationError("limit must be an integer")
    if limit < 1:
        raise ValidationError("limit must be >= 1")
    return min(limit, MAX_LIMIT)


def list_appointments(
    *,
    status: str | None = None,
    start: str | None = None,
    end: str | None = None,
    staff_id: int | None = None,
    vehicle_id: int | None = None,
    created_by: int | None = None,
    limit=None,
) -> list[Appointment]:
    """Appointments filtered by status, appointment_time range, staff and vehicle; soonest first."""
    start_dt, end_dt = _parse_range(start, end)
    q = db.session.query(Appointment)
    if status is not None:
        lifecycle_service.validate_status("appointment", status)
        q = q.filter(Appointment.status == status)
    if start_dt:
        q = q.filter(Appointment.appointment_time >= start_dt)
    if end_dt:
        q = q.filter(Appointment.appointment_time <= end_dt)
    if staff_id is not None:
        q = q.filter(Appointment.staff_id == staff_id)
    if vehicle_id is not None:
        q = q.filter(Appointment.vehicle_id == vehicle_id)
    if created_by is not None:
        q = q.filter(Appointment.created_by == created_by)
    return (
        q.order_by(Appointment.appointment_time.asc(), Appointment.id.asc())
        .limit(_clamp_limit(limit))
        .all()
    )


def _status_counts(column, statuses) -> dict:
    counts = {s: 0 for s in statuses}
    for status, n in db.session.query(column, func.count()).group_by(column).all():
        counts[status] = int(n)
    return counts


def appointment_status_counts(*, start: str | None = None, end: str | None = None) -> dict:
    start_dt, end_dt = _parse_range(start, end)
    q = db.session.query(Appointment.status, func.count(Appointment.id))
    if start_dt:
        q = q.filter(Appointment.appointment_time >= start_dt)
    if end_dt:
        q = q.filter(Appointment.appointment_time <= end_dt)
    counts = {s: 0 for s in APPOINTMENT_STATUSES}
    for status, n in q.group_by(Appointment.status).all():
        counts[status] = int(n)
    return {"counts": counts, "total": sum(counts.values())}


def batch_status_counts() -> dict:
    counts = _status_counts(WasteBatch.status, BATCH_STATUSES)
    return {"counts": counts, "total": sum(counts.values())}


def auction_summary() -> dict:
    """Auction totals: how many are open or scheduled, settlement outcomes, and bid volume."""
    now = utcnow()
    total = db.session.query(func.count(WasteAuction.id)).scalar() or 0
    settled = db.session.query(func.count(WasteAuction.id)).filter(WasteAuction.settled_at.isnot(None)).scalar() or 0
    with_winner = (
        db.session.query(func.count(WasteAuction.id)).filter(WasteAuction.winner_id.isnot(None)).scalar() or 0
    )
    settled_value = (
        db.session.query(func.coalesce(func.sum(WasteAuction.winning_bid_cents), 0)).scalar() or 0
    )
    open_count = (
        db.session.query(func.count(WasteAuction.id))
        .filter(
            WasteAuction.settled_at.is_(None),
            WasteAuction.start_time <= now,
            WasteAuction.end_time > now,
        )
        .scalar()
        or 0
    )
    scheduled_count = (
        db.session.query(func.count(WasteAuction.id))
        .filter(WasteAuction.settled_at.is_(None), WasteAuction.start_time > now)
        .scalar()
        or 0
    )
    bid_count = (
        db.session.query(func.count(WasteBid.id)).filter(WasteBid.status != "cancelled").scalar() or 0
    )
    return {
        "total_auctions": int(total),
        "open_auctions": int(open_count),
        "scheduled_auctions": int(scheduled_count),
        "settled_auctions": int(settled),
        "auctions_with_winner": int(with_winner),
        "settled_value_cents": int(settled_value),
        "bid_count": int(bid_count),
        "generated_at": to_utc_z(now),
    }


def dashboard_summary() -> dict:
    return {
        "appointments": appointment_status_counts(),
        "waste_batches": batch_status_counts(),
        "auctions": auction_summary(),
    }
