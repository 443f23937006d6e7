# Overview: Service-layer operations for on-site destruction tasks, their check-in/out records and certificates.

"""
Destruction task service.

LIFECYCLE (enforced by lifecycle_service):
    task:        pending -> scheduled -> in_progress -> completed
                 pending | scheduled -> cancelled
    certificate: draft -> issued -> revoked (a draft may be revoked directly)

in_progress and completed are only reached through check_in / check_out,
which write the on-site record in the same commit as the status change.
A certificate can only be generated for a completed task, and a task has
at most one issued certificate at a time.

Every write takes the task's entity lock; certificate writes lock the
task they belong to.
"""
from __future__ import annotations

import random
import time

from flask import current_app

from ..errors import ConflictError, InvalidTransition, NotFound, ValidationError
from ..extensions import db
from ..models import DestructionCertificate, DestructionRecord, DestructionTask
from ..time_utils import as_utc_naive, utcnow
from ..validation import (
    ModelValidationPolicy,
    enforce_rules_destruction_record,
    enforce_rules_destruction_task,
    validate_payload,
)
from . import lifecycle_service
from .concurrency import entity_lock, lock_for_update, run_with_retry


EDITABLE_TASK_STATUSES = ("pending", "scheduled")
# Reached through check_in / check_out only
ON_SITE_STATUSES = ("in_progress", "completed")

TASK_POLICY = ModelValidationPolicy(
    writable_fields={
        "customer_name",
        "contact_phone",
        "contact_address",
        "scheduled_date",
        "service_type",
        "item_description",
        "estimated_weight",
        "special_requirements",
    },
    required_on_create={"customer_name", "contact_phone", "contact_address", "scheduled_date", "service_type"},
    server_owned_fields={"id", "task_number", "user_id", "status", "created_at", "updated_at", "version_id"},
)

_RECORD_SERVER_FIELDS = {"id", "task_id", "recorded_by", "created_at", "version_id"}

CHECK_IN_POLICY = ModelValidationPolicy(
    writable_fields={"check_in_time", "witness_name", "staff_id", "vehicle_id", "notes"},
    server_owned_fields=_RECORD_SERVER_FIELDS,
)

CHECK_OUT_POLICY = ModelValidationPolicy(
    writable_fields={
        "check_out_time",
        "actual_weight",
        "item_count",
        "item_details",
        "witness_name",
        "witness_signature",
        "notes",
    },
    server_owned_fields=_RECORD_SERVER_FIELDS,
)

CERTIFICATE_POLICY = ModelValidationPolicy(
    writable_fields={"destruction_method", "destruction_date", "operator_name", "supervisor_name", "file_url"},
    required_on_create={"destruction_method", "operator_name"},
    server_owned_fields={
        "id",
        "task_id",
        "certificate_number",
        "status",
        "issued_at",
        "revoked_at",
        "created_by",
        "created_at",
        "version_id",
    },
)


def generate_task_number() -> str:
    """DT + epoch milliseconds + three random digits."""
    for _ in range(5):
        candidate = f"DT{int(time.time() * 1000)}{random.randint(0, 999):03d}"
        if not db.session.query(DestructionTask.id).filter_by(task_number=candidate).first():
            return candidate
    raise ConflictError("Could not allocate a unique task number, try again")


def generate_certificate_number() -> str:
    """DC + year + last eight digits of epoch milliseconds + two random digits."""
    for _ in range(5):
        millis = int(time.time() * 1000) % 100_000_000
        candidate = f"DC{utcnow().year}{millis:08d}{random.randint(0, 99):02d}"
        if not db.session.query(DestructionCertificate.id).filter_by(certificate_number=candidate).first():
            return candidate
    raise ConflictError("Could not allocate a unique certificate number, try again")


# =============================================================================
# TASKS
# =============================================================================


def get_task(task_id: int) -> DestructionTask:
    task = db.session.get(DestructionTask, task_id)
    if task is None:
        raise NotFound(f"Destruction task {task_id} not found")
    return task


def list_tasks(*, user_id: int | None = None, status: str | None = None) -> list[DestructionTask]:
    """Newest first. user_id narrows to one requester's tasks."""
    q = db.session.query(DestructionTask)
    if user_id is not None:
        q = q.filter(DestructionTask.user_id == user_id)
    if status is not None:
        lifecycle_service.validate_status("destruction_task", status)
        q = q.filter(DestructionTask.status == status)
    return q.order_by(DestructionTask.created_at.desc(), DestructionTask.id.desc()).all()


def _load_task_locked(task_id: int) -> DestructionTask:
    task = lock_for_update(db.session.query(DestructionTask).filter_by(id=task_id)).first()
    if task is None:
        raise NotFound(f"Destruction task {task_id} not found")
    return task


def create_task(payload: dict, *, user_id: int) -> DestructionTask:
    """Record a destruction request. Tasks always start pending."""
    patch = validate_payload(model=DestructionTask, payload=payload, policy=TASK_POLICY, partial=False)
    enforce_rules_destruction_task(patch)

    def _op():
        task = DestructionTask(
            **patch,
            task_number=generate_task_number(),
            user_id=user_id,
            status="pending",
        )
        db.session.add(task)
        db.session.commit()
        current_app.logger.info("Destruction task %s created for user %s", task.task_number, user_id)
        return task

    return run_with_retry(_op)


def update_task(task_id: int, payload: dict) -> DestructionTask:
    patch = validate_payload(model=DestructionTask, payload=payload, policy=TASK_POLICY, partial=True)
    enforce_rules_destruction_task(patch)

    def _op():
        with entity_lock("destruction_task", task_id):
            task = _load_task_locked(task_id)
            if task.status not in EDITABLE_TASK_STATUSES:
                raise InvalidTransition(
                    f"Destruction task is '{task.status}'; only pending or scheduled tasks can be edited"
                )
            if all(getattr(task, k) == v for k, v in patch.items()):
                return task
            for key, value in patch.items():
                setattr(task, key, value)
            db.session.commit()
            return task

    return run_with_retry(_op)


def transition_task_status(task_id: int, requested_status) -> DestructionTask:
    """
    Schedule or cancel a task.

    Raises:
        ValidationError: unknown status value
        NotFound: task does not exist
        InvalidTransition: not a direct successor, or a status that only
            check_in / check_out may set
    """
    lifecycle_service.validate_status("destruction_task", requested_status)
    if requested_status in ON_SITE_STATUSES:
        raise InvalidTransition(
            f"'{requested_status}' is set by check-in/check-out, not by a status change"
        )

    def _op():
        with entity_lock("destruction_task", task_id):
            task = _load_task_locked(task_id)
            previous = task.status
            task.status = lifecycle_service.transition("destruction_task", previous, requested_status)
            db.session.commit()
        current_app.logger.info("Destruction task %s moved %s -> %s", task_id, previous, task.status)
        return task

    return run_with_retry(_op)


# =============================================================================
# ON-SITE RECORDS
# =============================================================================


def list_records(task_id: int) -> list[DestructionRecord]:
    get_task(task_id)
    return (
        db.session.query(DestructionRecord)
        .filter_by(task_id=task_id)
        .order_by(DestructionRecord.check_in_time.asc(), DestructionRecord.id.asc())
        .all()
    )


def _open_record(task_id: int) -> DestructionRecord | None:
    return lock_for_update(
        db.session.query(DestructionRecord)
        .filter(DestructionRecord.task_id == task_id, DestructionRecord.check_out_time.is_(None))
        .order_by(DestructionRecord.id.desc())
    ).first()


def check_in(task_id: int, payload: dict | None, *, recorded_by: int | None) -> DestructionRecord:
    """
    Crew arrives on site: opens a record and moves the task scheduled -> in_progress.

    check_in_time defaults to now.
    """
    patch = validate_payload(model=DestructionRecord, payload=payload, policy=CHECK_IN_POLICY, partial=True)

    def _op():
        with entity_lock("destruction_task", task_id):
            task = _load_task_locked(task_id)
            previous = task.status
            task.status = lifecycle_service.transition("destruction_task", previous, "in_progress")

            values = dict(patch)
            check_in_time = values.pop("check_in_time", None) or utcnow()
            record = DestructionRecord(
                task_id=task.id,
                check_in_time=check_in_time,
                recorded_by=recorded_by,
                **values,
            )
            db.session.add(record)
            db.session.commit()
        current_app.logger.info("Destruction task %s checked in (record %s)", task_id, record.id)
        return record

    return run_with_retry(_op)


def check_out(task_id: int, payload: dict | None, *, recorded_by: int | None) -> DestructionRecord:
    """
    Crew leaves: closes the open record and moves the task in_progress -> completed.

    Raises:
        InvalidTransition: task is not in_progress, or has no open record
        ValidationError: check_out_time earlier than check_in_time, negative weight or count
    """
    patch = validate_payload(model=DestructionRecord, payload=payload, policy=CHECK_OUT_POLICY, partial=True)
    enforce_rules_destruction_record(patch)

    def _op():
        with entity_lock("destruction_task", task_id):
            task = _load_task_locked(task_id)
            new_status = lifecycle_service.transition("destruction_task", task.status, "completed")

            record = _open_record(task_id)
            if record is None:
                raise InvalidTransition(f"Destruction task {task_id} has no open check-in")

            values = dict(patch)
            check_out_time = values.pop("check_out_time", None) or utcnow()
            if check_out_time < as_utc_naive(record.check_in_time):
                raise ValidationError("check_out_time cannot be earlier than check_in_time")

            for key, value in values.items():
                setattr(record, key, value)
            record.check_out_time = check_out_time
            if record.recorded_by is None:
                record.recorded_by = recorded_by
            task.status = new_status
            db.session.commit()
        current_app.logger.info("Destruction task %s checked out (record %s)", task_id, record.id)
        return record

    return run_with_retry(_op)


# =============================================================================
# CERTIFICATES
# =============================================================================


def list_certificates(task_id: int) -> list[DestructionCertificate]:
    get_task(task_id)
    return (
        db.session.query(DestructionCertificate)
        .filter_by(task_id=task_id)
        .order_by(DestructionCertificate.id.asc())
        .all()
    )


def get_issued_certificate(task_id: int) -> DestructionCertificate:
    """The task's current issued certificate; NotFound when there is none."""
    get_task(task_id)
    certificate = (
        db.session.query(DestructionCertificate)
        .filter_by(task_id=task_id, status="issued")
        .order_by(DestructionCertificate.issued_at.desc(), DestructionCertificate.id.desc())
        .first()
    )
    if certificate is None:
        raise NotFound(f"Destruction task {task_id} has no issued certificate")
    return certificate


def create_certificate(task_id: int, payload: dict, *, created_by: int | None) -> DestructionCertificate:
    """
    Draft a certificate for a completed task.

    destruction_date defaults to the last check-out time.
    """
    patch = validate_payload(
        model=DestructionCertificate, payload=payload, policy=CERTIFICATE_POLICY, partial=False,
    )

    def _op():
        with entity_lock("destruction_task", task_id):
            task = _load_task_locked(task_id)
            if task.status != "completed":
                raise InvalidTransition(
                    f"Destruction task is '{task.status}'; certificates need a completed task"
                )
            values = dict(patch)
            if values.get("destruction_date") is None:
                last_out = (
                    db.session.query(db.func.max(DestructionRecord.check_out_time))
                    .filter(DestructionRecord.task_id == task_id)
                    .scalar()
                )
                values["destruction_date"] = as_utc_naive(last_out) or utcnow()
            certificate = DestructionCertificate(
                **values,
                task_id=task_id,
                certificate_number=generate_certificate_number(),
                status="draft",
                created_by=created_by,
            )
            db.session.add(certificate)
            db.session.commit()
        current_app.logger.info(
            "Certificate %s drafted for destruction task %s", certificate.certificate_number, task_id
        )
        return certificate

    return run_with_retry(_op)


def set_certificate_status(certificate_id: int, requested_status) -> DestructionCertificate:
    """
    Issue or revoke a certificate.

    Raises:
        ValidationError: unknown status value
        NotFound: certificate does not exist
        InvalidTransition: not a direct successor
        ConflictError: issuing while another certificate of the task is issued
    """
    lifecycle_service.validate_status("destruction_certificate", requested_status)
    task_id = db.session.query(DestructionCertificate.task_id).filter_by(id=certificate_id).scalar()
    if task_id is None:
        raise NotFound(f"Certificate {certificate_id} not found")

    def _op():
        with entity_lock("destruction_task", task_id):
            certificate = lock_for_update(
                db.session.query(DestructionCertificate).filter_by(id=certificate_id)
            ).first()
            if certificate is None:
                raise NotFound(f"Certificate {certificate_id} not found")
            previous = certificate.status
            new_status = lifecycle_service.transition("destruction_certificate", previous, requested_status)

            now = utcnow()
            if new_status == "issued":
                other = (
                    db.session.query(DestructionCertificate.id)
                    .filter(
                        DestructionCertificate.task_id == task_id,
                        DestructionCertificate.status == "issued",
                        DestructionCertificate.id != certificate_id,
                    )
                    .first()
                )
                if other:
                    raise ConflictError(
                        f"Destruction task {task_id} already has issued certificate {other[0]}; revoke it first"
                    )
                certificate.issued_at = now
            elif new_status == "revoked":
                certificate.revoked_at = now

            certificate.status = new_status
            db.session.commit()
        current_app.logger.info("Certificate %s moved %s -> %s", certificate_id, previous, new_status)
        return certificate

    return run_with_retry(_op)
