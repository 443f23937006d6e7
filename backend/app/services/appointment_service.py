# Overview: Service-layer appointment lifecycle; booking, edits, status changes, history and deletion.

"""
Appointment Service

LIFECYCLE (enforced by lifecycle_service):
    pending -> confirmed | cancelled
    confirmed -> completed | cancelled

RULES:
1. New appointments always start pending
2. Completed and cancelled appointments are frozen. The one exception is
   clearing staff_id / vehicle_id, which staff and vehicle removal relies on
3. Every status change and every staff/vehicle reassignment appends an
   AppointmentHistory row in the same transaction
4. Only pending appointments can be deleted

Lock order: appointment, then staff, then vehicle.
"""
from __future__ import annotations

import random

from flask import current_app

from ..errors import ConflictError, InvalidTransition, NotFound, ValidationError
from ..extensions import db
from ..models import (
    Appointment,
    AppointmentHistory,
    Staff,
    Vehicle,
    TERMINAL_APPOINTMENT_STATUSES,
)
from ..time_utils import utcnow
from ..validation import ModelValidationPolicy, enforce_rules_appointment, validate_payload
from . import lifecycle_service
from .concurrency import entity_lock, lock_for_update, run_with_retry


APPOINTMENT_POLICY = ModelValidationPolicy(
    writable_fields={
        "customer_name",
        "contact_phone",
        "contact_address",
        "notes",
        "document_count",
        "appointment_time",
        "service_type",
        "document_category",
        "staff_id",
        "vehicle_id",
        "estimated_completion_time",
        "processing_notes",
    },
    required_on_create={"customer_name", "appointment_time"},
    server_owned_fields={
        "id",
        "appointment_number",
        "status",
        "created_by",
        "last_updated_by",
        "created_at",
        "updated_at",
        "version_id",
    },
)

ASSIGNMENT_FIELDS = ("staff_id", "vehicle_id")


def generate_appointment_number() -> str:
    for _ in range(5):
        candidate = f"APT-{random.randint(0, 999999):06d}-{random.randint(0, 9999):04d}"
        if not db.session.query(Appointment.id).filter_by(appointment_number=candidate).first():
            return candidate
    raise ConflictError("Could not allocate a unique appointment number, try again")


def _split_status(payload: dict | None) -> tuple[dict, str | None]:
    """Pull status out of a payload and validate it against the enum."""
    payload = dict(payload or {})
    status = payload.pop("status", None)
    if status is not None:
        lifecycle_service.validate_status("appointment", status)
    return payload, status


def _record_history(appointment: Appointment, *, updated_by: int | None, notes: str | None = None) -> None:
    db.session.add(
        AppointmentHistory(
            appointment_id=appointment.id,
            status=appointment.status,
            staff_id=appointment.staff_id,
            vehicle_id=appointment.vehicle_id,
            notes=notes,
            updated_by=updated_by,
            updated_at=utcnow(),
        )
    )


def _check_staff_assignable(staff_id: int) -> None:
    staff = lock_for_update(db.session.query(Staff).filter_by(id=staff_id)).first()
    if staff is None:
        raise NotFound(f"Staff member {staff_id} not found")
    if staff.status != "active":
        raise ValidationError(f"Staff member {staff_id} is '{staff.status}' and cannot be assigned")


def _check_vehicle_assignable(vehicle_id: int) -> None:
    vehicle = lock_for_update(db.session.query(Vehicle).filter_by(id=vehicle_id)).first()
    if vehicle is None:
        raise NotFound(f"Vehicle {vehicle_id} not found")
    if vehicle.status == "maintenance":
        raise ValidationError(f"Vehicle {vehicle_id} is in maintenance and cannot be assigned")


class _AssignmentLocks:
    """Hold the staff and vehicle locks for the ids being assigned, in order."""

    def __init__(self, staff_id: int | None, vehicle_id: int | None):
        self._locks = []
        if staff_id is not None:
            self._locks.append(entity_lock("staff", staff_id))
        if vehicle_id is not None:
            self._locks.append(entity_lock("vehicle", vehicle_id))
        self._entered = []

    def __enter__(self):
        for lock in self._locks:
            lock.__enter__()
            self._entered.append(lock)
        return self

    def __exit__(self, exc_type, exc, tb):
        while self._entered:
            self._entered.pop().__exit__(exc_type, exc, tb)
        return False


def _load_locked(appointment_id: int) -> Appointment:
    appointment = lock_for_update(db.session.query(Appointment).filter_by(id=appointment_id)).first()
    if appointment is None:
        raise NotFound(f"Appointment {appointment_id} not found")
    return appointment


def get_appointment(appointment_id: int) -> Appointment:
    appointment = db.session.get(Appointment, appointment_id)
    if appointment is None:
        raise NotFound(f"Appointment {appointment_id} not found")
    return appointment


def get_history(appointment_id: int) -> list[AppointmentHistory]:
    get_appointment(appointment_id)
    return (
        db.session.query(AppointmentHistory)
        .filter(AppointmentHistory.appointment_id == appointment_id)
        .order_by(AppointmentHistory.updated_at.asc(), AppointmentHistory.id.asc())
        .all()
    )


def create_appointment(payload: dict, *, created_by: int | None) -> Appointment:
    """
    Book an appointment. It always starts pending; a status in the payload
    must still be a known value but is otherwise ignored.
    """
    payload, _ = _split_status(payload)
    patch = validate_payload(model=Appointment, payload=payload, policy=APPOINTMENT_POLICY, partial=False)
    enforce_rules_appointment(patch)
    staff_id = patch.get("staff_id")
    vehicle_id = patch.get("vehicle_id")

    def _op():
        with _AssignmentLocks(staff_id, vehicle_id):
            if staff_id is not None:
                _check_staff_assignable(staff_id)
            if vehicle_id is not None:
                _check_vehicle_assignable(vehicle_id)

            appointment = Appointment(
                **patch,
                appointment_number=generate_appointment_number(),
                status="pending",
                created_by=created_by,
                last_updated_by=created_by,
            )
            if appointment.document_count is None:
                appointment.document_count = 1
            db.session.add(appointment)
            db.session.flush()
            _record_history(appointment, updated_by=created_by, notes="Appointment created")
            db.session.commit()

        current_app.logger.info(
            "Created appointment %s (%s)", appointment.id, appointment.appointment_number
        )
        return appointment

    return run_with_retry(_op)


def _is_clearing_only(patch: dict) -> bool:
    return bool(patch) and all(k in ASSIGNMENT_FIELDS and v is None for k, v in patch.items())


def update_appointment(appointment_id: int, payload: dict, *, updated_by: int | None) -> Appointment:
    """
    Edit an appointment, optionally changing its status in the same call.

    A status equal to the current one is treated as "no status change" here;
    use update_status for an explicit transition request. A call that changes
    nothing is not committed. A terminal appointment only accepts clearing
    staff_id/vehicle_id; anything else is InvalidTransition.
    """
    payload, requested_status = _split_status(payload)
    patch = validate_payload(model=Appointment, payload=payload, policy=APPOINTMENT_POLICY, partial=True)
    enforce_rules_appointment(patch)
    new_staff = patch.get("staff_id")
    new_vehicle = patch.get("vehicle_id")

    def _op():
        with entity_lock("appointment", appointment_id):
            with _AssignmentLocks(new_staff, new_vehicle):
                appointment = _load_locked(appointment_id)

                status_change = requested_status is not None and requested_status != appointment.status
                if appointment.is_terminal:
                    if status_change:
                        lifecycle_service.transition("appointment", appointment.status, requested_status)
                    # Releasing staff or vehicle is the only write a terminal appointment takes.
                    if not _is_clearing_only(patch):
                        raise InvalidTransition(
                            f"Appointment is '{appointment.status}' and can no longer be changed"
                        )

                if not status_change and all(getattr(appointment, k) == v for k, v in patch.items()):
                    return appointment

                if new_staff is not None and new_staff != appointment.staff_id:
                    _check_staff_assignable(new_staff)
                if new_vehicle is not None and new_vehicle != appointment.vehicle_id:
                    _check_vehicle_assignable(new_vehicle)

                reassigned = any(
                    k in patch and patch[k] != getattr(appointment, k) for k in ASSIGNMENT_FIELDS
                )
                for key, value in patch.items():
                    setattr(appointment, key, value)

                note = None
                if status_change:
                    previous = appointment.status
                    appointment.status = lifecycle_service.transition(
                        "appointment", appointment.status, requested_status
                    )
                    note = f"Status {previous} -> {appointment.status}"
                elif reassigned:
                    note = "Staff or vehicle reassigned"

                appointment.last_updated_by = updated_by
                if note is not None:
                    _record_history(appointment, updated_by=updated_by, notes=note)
                db.session.commit()
                return appointment

    return run_with_retry(_op)


def update_status(
    appointment_id: int,
    requested_status,
    *,
    updated_by: int | None,
    notes: str | None = None,
) -> Appointment:
    """
    Explicit status transition.

    Raises:
        ValidationError: unknown status
        NotFound: appointment does not exist
        InvalidTransition: not a direct successor (same status included)
    """
    lifecycle_service.validate_status("appointment", requested_status)

    def _op():
        with entity_lock("appointment", appointment_id):
            appointment = _load_locked(appointment_id)
            previous = appointment.status
            appointment.status = lifecycle_service.transition("appointment", previous, requested_status)
            appointment.last_updated_by = updated_by
            _record_history(
                appointment,
                updated_by=updated_by,
                notes=notes or f"Status {previous} -> {appointment.status}",
            )
            db.session.commit()

        current_app.logger.info(
            "Appointment %s moved %s -> %s", appointment_id, previous, appointment.status
        )
        return appointment

    return run_with_retry(_op)


def delete_appointment(appointment_id: int) -> None:
    def _op():
        with entity_lock("appointment", appointment_id):
            appointment = _load_locked(appointment_id)
            if appointment.status != "pending":
                raise InvalidTransition(
                    f"Appointment is '{appointment.status}'; only pending appointments can be deleted"
                )
            db.session.delete(appointment)
            db.session.commit()
            current_app.logger.info("Deleted appointment %s", appointment_id)

    return run_with_retry(_op)


def open_appointments_for(*, staff_id: int | None = None, vehicle_id: int | None = None) -> list[Appointment]:
    """Non-terminal appointments that reference the given staff member or vehicle."""
    q = db.session.query(Appointment).filter(~Appointment.status.in_(TERMINAL_APPOINTMENT_STATUSES))
    if staff_id is not None:
        q = q.filter(Appointment.staff_id == staff_id)
    if vehicle_id is not None:
        q = q.filter(Appointment.vehicle_id == vehicle_id)
    return q.order_by(Appointment.id.asc()).all()


def clear_terminal_references(*, staff_id: int | None = None, vehicle_id: int | None = None) -> int:
    """
    Null out staff/vehicle ids on completed and cancelled appointments.
    Runs inside the caller's transaction. Returns the number of rows touched.
    """
    q = db.session.query(Appointment).filter(Appointment.status.in_(TERMINAL_APPOINTMENT_STATUSES))
    if staff_id is not None:
        q = q.filter(Appointment.staff_id == staff_id)
        field = "staff_id"
    elif vehicle_id is not None:
        q = q.filter(Appointment.vehicle_id == vehicle_id)
        field = "vehicle_id"
    else:
        return 0
    touched = 0
    for appointment in q.all():
        setattr(appointment, field, None)
        touched += 1
    return touched
