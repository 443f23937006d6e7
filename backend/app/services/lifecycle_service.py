# Overview: Service-layer status lifecycle engine shared by batches, appointments, service items and destruction work.

"""
Status Lifecycle Engine

================================================================================
PURPOSE: One place that knows which status changes are legal for each entity
================================================================================

STATE MACHINES:

    waste_batch:   draft -> published -> auction_in_progress -> auction_ended -> allocated
    appointment:   pending -> confirmed | cancelled
                   confirmed -> completed | cancelled
    service_item:  active -> retired
                   retired -> active
    destruction_task:        pending -> scheduled | cancelled
                             scheduled -> in_progress | cancelled
                             in_progress -> completed
    destruction_certificate: draft -> issued | revoked
                             issued -> revoked

RULES:
1. Only the listed edges are legal; anything else is InvalidTransition
2. Requesting the current status is InvalidTransition too, so replaying a
   request that already succeeded fails cleanly instead of re-applying it
3. Terminal states (no outgoing edges) reject every request
4. Unknown status values are ValidationError (400) before any lookup

The engine is pure: it validates and returns the new status. Callers load
the row under lock, apply the result, and run their own side effects
(settlement for batches, history rows for appointments, check-in records
for destruction tasks).

================================================================================
"""

from __future__ import annotations
from typing import Literal

from ..errors import InvalidTransition
from ..models import (
    BATCH_STATUSES,
    APPOINTMENT_STATUSES,
    SERVICE_ITEM_STATUSES,
    DESTRUCTION_TASK_STATUSES,
    CERTIFICATE_STATUSES,
)
from ..validation import require_status_value


EntityKind = Literal[
    "waste_batch", "appointment", "service_item", "destruction_task", "destruction_certificate",
]


TRANSITIONS: dict[str, dict[str, frozenset[str]]] = {
    "waste_batch": {
        "draft": frozenset({"published"}),
        "published": frozenset({"auction_in_progress"}),
        "auction_in_progress": frozenset({"auction_ended"}),
        "auction_ended": frozenset({"allocated"}),
        "allocated": frozenset(),
    },
    "appointment": {
        "pending": frozenset({"confirmed", "cancelled"}),
        "confirmed": frozenset({"completed", "cancelled"}),
        "completed": frozenset(),
        "cancelled": frozenset(),
    },
    "service_item": {
        "active": frozenset({"retired"}),
        "retired": frozenset({"active"}),
    },
    "destruction_task": {
        "pending": frozenset({"scheduled", "cancelled"}),
        "scheduled": frozenset({"in_progress", "cancelled"}),
        "in_progress": frozenset({"completed"}),
        "completed": frozenset(),
        "cancelled": frozenset(),
    },
    "destruction_certificate": {
        "draft": frozenset({"issued", "revoked"}),
        "issued": frozenset({"revoked"}),
        "revoked": frozenset(),
    },
}

STATUSES: dict[str, tuple[str, ...]] = {
    "waste_batch": BATCH_STATUSES,
    "appointment": APPOINTMENT_STATUSES,
    "service_item": SERVICE_ITEM_STATUSES,
    "destruction_task": DESTRUCTION_TASK_STATUSES,
    "destruction_certificate": CERTIFICATE_STATUSES,
}


def _edges(entity: str) -> dict[str, frozenset[str]]:
    try:
        return TRANSITIONS[entity]
    except KeyError:
        raise ValueError(f"Unknown lifecycle entity '{entity}'")


def validate_status(entity: str, status) -> str:
    """Raise ValidationError unless status belongs to the entity's enum."""
    return require_status_value(status, set(STATUSES[entity]))


def is_terminal(entity: str, status: str) -> bool:
    return not _edges(entity).get(status)


def allowed_next(entity: str, status: str) -> list[str]:
    """Direct successors of status, sorted for stable API output."""
    return sorted(_edges(entity).get(status, ()))


def can_transition(entity: str, from_status: str, to_status: str) -> bool:
    return to_status in _edges(entity).get(from_status, ())


def transition(entity: str, current_status: str, requested_status) -> str:
    """
    Validate one status change and return the new status.

    Raises:
        ValidationError: requested_status is not a known status for entity
        InvalidTransition: current status is terminal, or requested_status
            is not a direct successor of current_status
    """
    requested_status = validate_status(entity, requested_status)
    label = entity.replace("_", " ")

    if is_terminal(entity, current_status):
        raise InvalidTransition(
            f"Cannot change {label} status: '{current_status}' is final"
        )

    if not can_transition(entity, current_status, requested_status):
        allowed = ", ".join(allowed_next(entity, current_status))
        raise InvalidTransition(
            f"Cannot move {label} from '{current_status}' to '{requested_status}'. "
            f"Allowed next: {allowed}"
        )

    return requested_status
