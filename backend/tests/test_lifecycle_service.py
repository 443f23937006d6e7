"""
Status lifecycle engine tests.

Verifies:
- Every legal edge for batches, appointments, service items and destruction work
- Non-successors, skips, backwards moves and same-status requests are InvalidTransition
- Terminal states reject everything
- Unknown status values are ValidationError
"""

import pytest

from app.errors import InvalidTransition, ValidationError
from app.services import lifecycle_service


@pytest.mark.parametrize(
    "entity,current,requested",
    [
        ("waste_batch", "draft", "published"),
        ("waste_batch", "published", "auction_in_progress"),
        ("waste_batch", "auction_in_progress", "auction_ended"),
        ("waste_batch", "auction_ended", "allocated"),
        ("appointment", "pending", "confirmed"),
        ("appointment", "pending", "cancelled"),
        ("appointment", "confirmed", "completed"),
        ("appointment", "confirmed", "cancelled"),
        ("service_item", "active", "retired"),
        ("service_item", "retired", "active"),
        ("destruction_task", "pending", "scheduled"),
        ("destruction_task", "pending", "cancelled"),
        ("destruction_task", "scheduled", "in_progress"),
        ("destruction_task", "scheduled", "cancelled"),
        ("destruction_task", "in_progress", "completed"),
        ("destruction_certificate", "draft", "issued"),
        ("destruction_certificate", "draft", "revoked"),
        ("destruction_certificate", "issued", "revoked"),
    ],
)
def test_legal_edges(entity, current, requested):
    assert lifecycle_service.transition(entity, current, requested) == requested


@pytest.mark.parametrize(
    "entity,current,requested",
    [
        ("waste_batch", "draft", "auction_in_progress"),
        ("waste_batch", "draft", "allocated"),
        ("waste_batch", "published", "draft"),
        ("waste_batch", "auction_ended", "auction_in_progress"),
        ("waste_batch", "published", "published"),
        ("appointment", "pending", "completed"),
        ("appointment", "confirmed", "pending"),
        ("appointment", "pending", "pending"),
        ("destruction_task", "pending", "in_progress"),
        ("destruction_task", "in_progress", "cancelled"),
        ("destruction_certificate", "issued", "draft"),
    ],
)
def test_illegal_edges(entity, current, requested):
    with pytest.raises(InvalidTransition):
        lifecycle_service.transition(entity, current, requested)


@pytest.mark.parametrize(
    "entity,terminal",
    [
        ("waste_batch", "allocated"),
        ("appointment", "completed"),
        ("appointment", "cancelled"),
        ("destruction_task", "completed"),
        ("destruction_task", "cancelled"),
        ("destruction_certificate", "revoked"),
    ],
)
def test_terminal_states_reject_everything(entity, terminal):
    assert lifecycle_service.is_terminal(entity, terminal)
    for status in lifecycle_service.STATUSES[entity]:
        with pytest.raises(InvalidTransition):
            lifecycle_service.transition(entity, terminal, status)


@pytest.mark.parametrize("bad", ["archived", "", None, 3, "PUBLISHED"])
def test_unknown_status_is_validation_error(bad):
    with pytest.raises(ValidationError):
        lifecycle_service.transition("waste_batch", "draft", bad)


def test_replaying_a_transition_fails_the_second_time():
    first = lifecycle_service.transition("waste_batch", "draft", "published")
    with pytest.raises(InvalidTransition):
        lifecycle_service.transition("waste_batch", first, "published")


def test_allowed_next_is_sorted():
    assert lifecycle_service.allowed_next("appointment", "pending") == ["cancelled", "confirmed"]
    assert lifecycle_service.allowed_next("waste_batch", "allocated") == []
