# Overview: Service-layer operations for customer master data.

from __future__ import annotations

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError

from ..errors import ConflictError, NotFound
from ..extensions import db
from ..models import Customer
from ..validation import ModelValidationPolicy, validate_payload
from .concurrency import run_with_retry


CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "phone", "email", "address", "company"},
    required_on_create={"name"},
    server_owned_fields={"id", "created_at"},
)


def get_customer(customer_id: int) -> Customer:
    customer = db.session.get(Customer, customer_id)
    if customer is None:
        raise NotFound(f"Customer {customer_id} not found")
    return customer


def list_customers(*, search: str | None = None) -> list[Customer]:
    q = db.session.query(Customer)
    if search:
        like = f"%{search.strip()}%"
        q = q.filter(or_(Customer.name.ilike(like), Customer.phone.ilike(like), Customer.company.ilike(like)))
    return q.order_by(Customer.name.asc(), Customer.id.asc()).all()


def _check_unique(patch: dict, *, exclude_id: int | None = None) -> None:
    for field in ("phone", "email"):
        value = patch.get(field)
        if not value:
            continue
        q = db.session.query(Customer.id).filter(getattr(Customer, field) == value)
        if exclude_id is not None:
            q = q.filter(Customer.id != exclude_id)
        if q.first():
            raise ConflictError(f"A customer with {field} {value} already exists")


def _normalize(patch: dict) -> dict:
    # Blank phone/email mean "none"; NULLs do not collide on the unique index.
    for field in ("phone", "email"):
        if field in patch and patch[field] == "":
            patch[field] = None
    return patch


def create_customer(payload: dict) -> Customer:
    patch = _normalize(validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=False))

    def _op():
        _check_unique(patch)
        customer = Customer(**patch)
        db.session.add(customer)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError("A customer with this phone or email already exists")
        return customer

    return run_with_retry(_op)


def update_customer(customer_id: int, payload: dict) -> Customer:
    patch = _normalize(validate_payload(model=Customer, payload=payload, policy=CUSTOMER_POLICY, partial=True))

    def _op():
        customer = get_customer(customer_id)
        _check_unique(patch, exclude_id=customer_id)
        for key, value in patch.items():
            setattr(customer, key, value)
        try:
            db.session.commit()
        except IntegrityError:
            db.session.rollback()
            raise ConflictError("A customer with this phone or email already exists")
        return customer

    return run_with_retry(_op)


def delete_customer(customer_id: int) -> None:
    def _op():
        customer = get_customer(customer_id)
        db.session.delete(customer)
        db.session.commit()

    return run_with_retry(_op)
