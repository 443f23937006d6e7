# Overview: Service-layer operations for collection vehicles.

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, NotFound, ReferencedEntityInUse
from ..extensions import db
from ..models import Vehicle, VEHICLE_STATUSES
from ..validation import ModelValidationPolicy, require_status_value, validate_payload
from .appointment_service import clear_terminal_references, open_appointments_for
from .concurrency import entity_lock, lock_for_update, run_with_retry


VEHICLE_POLICY = ModelValidationPolicy(
    writable_fields={"plate_number", "model", "status"},
    required_on_create={"plate_number"},
    server_owned_fields={"id", "created_at", "version_id"},
)


def get_vehicle(vehicle_id: int) -> Vehicle:
    vehicle = db.session.get(Vehicle, vehicle_id)
    if vehicle is None:
        raise NotFound(f"Vehicle {vehicle_id} not found")
    return vehicle


def list_vehicles(*, status: str | None = None) -> list[Vehicle]:
    q = db.session.query(Vehicle)
    if status is not None:
        require_status_value(status, set(VEHICLE_STATUSES))
        q = q.filter(Vehicle.status == status)
    return q.order_by(Vehicle.plate_number.asc()).all()


def _check_plate_free(plate_number: str, *, exclude_id: int | None = None) -> None:
    q = db.session.query(Vehicle.id).filter(Vehicle.plate_number == plate_number)
    if exclude_id is not None:
        q = q.filter(Vehicle.id != exclude_id)
    if q.first():
        raise ConflictError(f"Plate number {plate_number} is already registered")


def _ensure_not_referenced(vehicle_id: int, action: str) -> None:
    open_refs = open_appointments_for(vehicle_id=vehicle_id)
    if open_refs:
        numbers = ", ".join(a.appointment_number for a in open_refs[:5])
        raise ReferencedEntityInUse(
            f"Cannot {action} vehicle {vehicle_id}: assigned to open appointments ({numbers})"
        )


def create_vehicle(payload: dict) -> Vehicle:
    patch = validate_payload(model=Vehicle, payload=payload, policy=VEHICLE_POLICY, partial=False)
    if patch.get("status") is not None:
        require_status_value(patch["status"], set(VEHICLE_STATUSES))

    def _op():
        _check_plate_free(patch["plate_number"])
        vehicle = Vehicle(**patch)
        db.session.add(vehicle)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError(f"Plate number {patch['plate_number']} is already registered")
        current_app.logger.info("Registered vehicle %s (%s)", vehicle.id, vehicle.plate_number)
        return vehicle

    return run_with_retry(_op)


def update_vehicle(vehicle_id: int, payload: dict) -> Vehicle:
    """Edit a vehicle. Sending it to maintenance while booked is ReferencedEntityInUse."""
    patch = validate_payload(model=Vehicle, payload=payload, policy=VEHICLE_POLICY, partial=True)
    if "status" in patch:
        require_status_value(patch["status"], set(VEHICLE_STATUSES))

    def _op():
        with entity_lock("vehicle", vehicle_id):
            vehicle = lock_for_update(db.session.query(Vehicle).filter_by(id=vehicle_id)).first()
            if vehicle is None:
                raise NotFound(f"Vehicle {vehicle_id} not found")
            if "plate_number" in patch and patch["plate_number"] != vehicle.plate_number:
                _check_plate_free(patch["plate_number"], exclude_id=vehicle_id)
            if patch.get("status") == "maintenance" and vehicle.status != "maintenance":
                _ensure_not_referenced(vehicle_id, "send to maintenance")
            for key, value in patch.items():
                setattr(vehicle, key, value)
            db.session.commit()
            return vehicle

    return run_with_retry(_op)


def delete_vehicle(vehicle_id: int) -> None:
    def _op():
        with entity_lock("vehicle", vehicle_id):
            vehicle = lock_for_update(db.session.query(Vehicle).filter_by(id=vehicle_id)).first()
            if vehicle is None:
                raise NotFound(f"Vehicle {vehicle_id} not found")
            _ensure_not_referenced(vehicle_id, "delete")
            cleared = clear_terminal_references(vehicle_id=vehicle_id)
            db.session.delete(vehicle)
            db.session.commit()
            current_app.logger.info(
                "Deleted vehicle %s (cleared %s closed appointment references)", vehicle_id, cleared
            )

    return run_with_retry(_op)
