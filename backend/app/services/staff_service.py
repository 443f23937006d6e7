# Overview: Service-layer operations for crew members; CRUD with reference checks against open appointments.

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, NotFound, ReferencedEntityInUse
from ..extensions import db
from ..models import Staff, STAFF_STATUSES
from ..validation import ModelValidationPolicy, require_status_value, validate_payload
from .appointment_service import clear_terminal_references, open_appointments_for
from .concurrency import entity_lock, lock_for_update, run_with_retry


# Statuses that take a staff member off the roster
UNAVAILABLE_STATUSES = ("inactive", "on_leave")

STAFF_POLICY = ModelValidationPolicy(
    writable_fields={"name", "id_card", "phone", "email", "position", "status"},
    required_on_create={"name", "id_card"},
    server_owned_fields={"id", "created_at", "version_id"},
)


def get_staff(staff_id: int) -> Staff:
    staff = db.session.get(Staff, staff_id)
    if staff is None:
        raise NotFound(f"Staff member {staff_id} not found")
    return staff


def list_staff(*, status: str | None = None) -> list[Staff]:
    q = db.session.query(Staff)
    if status is not None:
        require_status_value(status, set(STAFF_STATUSES))
        q = q.filter(Staff.status == status)
    return q.order_by(Staff.name.asc(), Staff.id.asc()).all()


def _check_id_card_free(id_card: str, *, exclude_id: int | None = None) -> None:
    q = db.session.query(Staff.id).filter(Staff.id_card == id_card)
    if exclude_id is not None:
        q = q.filter(Staff.id != exclude_id)
    if q.first():
        raise ConflictError(f"A staff member with id card {id_card} already exists")


def _ensure_not_referenced(staff_id: int, action: str) -> None:
    open_refs = open_appointments_for(staff_id=staff_id)
    if open_refs:
        numbers = ", ".join(a.appointment_number for a in open_refs[:5])
        raise ReferencedEntityInUse(
            f"Cannot {action} staff member {staff_id}: assigned to open appointments ({numbers})"
        )


def create_staff(payload: dict) -> Staff:
    patch = validate_payload(model=Staff, payload=payload, policy=STAFF_POLICY, partial=False)
    if patch.get("status") is not None:
        require_status_value(patch["status"], set(STAFF_STATUSES))

    def _op():
        _check_id_card_free(patch["id_card"])
        staff = Staff(**patch)
        db.session.add(staff)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError(f"A staff member with id card {patch['id_card']} already exists")
        current_app.logger.info("Created staff member %s", staff.id)
        return staff

    return run_with_retry(_op)


def update_staff(staff_id: int, payload: dict) -> Staff:
    """
    Edit a staff member. Moving them to inactive or on_leave while an open
    appointment still points at them is ReferencedEntityInUse.
    """
    patch = validate_payload(model=Staff, payload=payload, policy=STAFF_POLICY, partial=True)
    if "status" in patch:
        require_status_value(patch["status"], set(STAFF_STATUSES))

    def _op():
        with entity_lock("staff", staff_id):
            staff = lock_for_update(db.session.query(Staff).filter_by(id=staff_id)).first()
            if staff is None:
                raise NotFound(f"Staff member {staff_id} not found")
            if "id_card" in patch and patch["id_card"] != staff.id_card:
                _check_id_card_free(patch["id_card"], exclude_id=staff_id)
            if patch.get("status") in UNAVAILABLE_STATUSES and staff.status not in UNAVAILABLE_STATUSES:
                _ensure_not_referenced(staff_id, f"mark as {patch['status']}")
            for key, value in patch.items():
                setattr(staff, key, value)
            db.session.commit()
            return staff

    return run_with_retry(_op)


def delete_staff(staff_id: int) -> None:
    """
    Remove a staff member. Completed/cancelled appointments lose the
    reference; open ones block the delete.
    """
    def _op():
        with entity_lock("staff", staff_id):
            staff = lock_for_update(db.session.query(Staff).filter_by(id=staff_id)).first()
            if staff is None:
                raise NotFound(f"Staff member {staff_id} not found")
            _ensure_not_referenced(staff_id, "delete")
            cleared = clear_terminal_references(staff_id=staff_id)
            db.session.delete(staff)
            db.session.commit()
            current_app.logger.info(
                "Deleted staff member %s (cleared %s closed appointment references)", staff_id, cleared
            )

    return run_with_retry(_op)
