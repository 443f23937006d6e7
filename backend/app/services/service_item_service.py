# Overview: Service-layer operations for billable service items and their active/retired lifecycle.

from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, NotFound
from ..extensions import db
from ..models import ServiceItem
from ..validation import ModelValidationPolicy, enforce_rules_service_item, validate_payload
from . import lifecycle_service
from .concurrency import entity_lock, lock_for_update, run_with_retry


SERVICE_ITEM_POLICY = ModelValidationPolicy(
    writable_fields={"name", "unit", "price_cents", "description"},
    required_on_create={"name", "unit", "price_cents"},
    server_owned_fields={"id", "status", "created_at", "updated_at", "version_id"},
)


def get_service_item(item_id: int) -> ServiceItem:
    item = db.session.get(ServiceItem, item_id)
    if item is None:
        raise NotFound(f"Service item {item_id} not found")
    return item


def list_service_items(*, include_retired: bool = False) -> list[ServiceItem]:
    q = db.session.query(ServiceItem)
    if not include_retired:
        q = q.filter(ServiceItem.status == "active")
    return q.order_by(ServiceItem.name.asc()).all()


def _check_name_free(name: str, *, exclude_id: int | None = None) -> None:
    q = db.session.query(ServiceItem.id).filter(ServiceItem.name == name)
    if exclude_id is not None:
        q = q.filter(ServiceItem.id != exclude_id)
    if q.first():
        raise ConflictError(f"Service item '{name}' already exists")


def create_service_item(payload: dict) -> ServiceItem:
    patch = validate_payload(model=ServiceItem, payload=payload, policy=SERVICE_ITEM_POLICY, partial=False)
    enforce_rules_service_item(patch)

    def _op():
        _check_name_free(patch["name"])
        item = ServiceItem(**patch, status="active")
        db.session.add(item)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError(f"Service item '{patch['name']}' already exists")
        return item

    return run_with_retry(_op)


def update_service_item(item_id: int, payload: dict) -> ServiceItem:
    patch = validate_payload(model=ServiceItem, payload=payload, policy=SERVICE_ITEM_POLICY, partial=True)
    enforce_rules_service_item(patch)

    def _op():
        with entity_lock("service_item", item_id):
            item = lock_for_update(db.session.query(ServiceItem).filter_by(id=item_id)).first()
            if item is None:
                raise NotFound(f"Service item {item_id} not found")
            if "name" in patch and patch["name"] != item.name:
                _check_name_free(patch["name"], exclude_id=item_id)
            for key, value in patch.items():
                setattr(item, key, value)
            db.session.commit()
            return item

    return run_with_retry(_op)


def set_service_item_status(item_id: int, requested_status) -> ServiceItem:
    """Retire or reactivate an item through the lifecycle engine."""
    lifecycle_service.validate_status("service_item", requested_status)

    def _op():
        with entity_lock("service_item", item_id):
            item = lock_for_update(db.session.query(ServiceItem).filter_by(id=item_id)).first()
            if item is None:
                raise NotFound(f"Service item {item_id} not found")
            previous = item.status
            item.status = lifecycle_service.transition("service_item", previous, requested_status)
            db.session.commit()
        current_app.logger.info("Service item %s moved %s -> %s", item_id, previous, item.status)
        return item

    return run_with_retry(_op)
