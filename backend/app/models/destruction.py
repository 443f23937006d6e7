from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


DESTRUCTION_TASK_STATUSES = ("pending", "scheduled", "in_progress", "completed", "cancelled")
CERTIFICATE_STATUSES = ("draft", "issued", "revoked")


class DestructionTask(db.Model):
    """
    A customer's request to have material destroyed on site.

    LIFECYCLE:
        pending -> scheduled | cancelled
        scheduled -> in_progress (check-in) | cancelled
        in_progress -> completed (check-out)

    user_id is the requesting session user; non-admins only see their own tasks.
    """
    __tablename__ = "destruction_tasks"
    __table_args__ = (
        db.Index("ix_destruction_tasks_user_created", "user_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # e.g. "DT1718000000000042"
    task_number = db.Column(db.String(32), nullable=False, unique=True, index=True)
    user_id = db.Column(db.Integer, nullable=False)

    customer_name = db.Column(db.String(128), nullable=False)
    contact_phone = db.Column(db.String(32), nullable=False)
    contact_address = db.Column(db.String(255), nullable=False)
    scheduled_date = db.Column(db.DateTime(timezone=True), nullable=False)
    service_type = db.Column(db.String(64), nullable=False)
    item_description = db.Column(db.Text, nullable=True)
    estimated_weight = db.Column(db.Float, nullable=True)
    special_requirements = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    records = db.relationship(
        "DestructionRecord",
        back_populates="task",
        cascade="all, delete-orphan",
        order_by="DestructionRecord.id",
    )
    certificates = db.relationship(
        "DestructionCertificate",
        back_populates="task",
        cascade="all, delete-orphan",
        order_by="DestructionCertificate.id",
    )
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "task_number": self.task_number,
            "user_id": self.user_id,
            "customer_name": self.customer_name,
            "contact_phone": self.contact_phone,
            "contact_address": self.contact_address,
            "scheduled_date": to_utc_z(self.scheduled_date),
            "service_type": self.service_type,
            "item_description": self.item_description,
            "estimated_weight": self.estimated_weight,
            "special_requirements": self.special_requirements,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }


class DestructionRecord(db.Model):
    """
    On-site check-in/check-out of one destruction visit.

    A record is open while check_out_time is NULL; a task has at most one
    open record.
    """
    __tablename__ = "destruction_records"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    task_id = db.Column(db.Integer, db.ForeignKey("destruction_tasks.id", ondelete="CASCADE"), nullable=False, index=True)

    check_in_time = db.Column(db.DateTime(timezone=True), nullable=False)
    check_out_time = db.Column(db.DateTime(timezone=True), nullable=True)
    actual_weight = db.Column(db.Float, nullable=True)
    item_count = db.Column(db.Integer, nullable=True)
    item_details = db.Column(db.Text, nullable=True)
    witness_name = db.Column(db.String(128), nullable=True)
    witness_signature = db.Column(db.Text, nullable=True)
    # Snapshot ids, not foreign keys: the record outlives crew and fleet changes
    staff_id = db.Column(db.Integer, nullable=True)
    vehicle_id = db.Column(db.Integer, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    recorded_by = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    task = db.relationship("DestructionTask", back_populates="records")
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_open(self) -> bool:
        return self.check_out_time is None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "task_id": self.task_id,
            "check_in_time": to_utc_z(self.check_in_time),
            "check_out_time": to_utc_z(self.check_out_time),
            "actual_weight": self.actual_weight,
            "item_count": self.item_count,
            "item_details": self.item_details,
            "witness_name": self.witness_name,
            "witness_signature": self.witness_signature,
            "staff_id": self.staff_id,
            "vehicle_id": self.vehicle_id,
            "notes": self.notes,
            "recorded_by": self.recorded_by,
            "created_at": to_utc_z(self.created_at),
            "version_id": self.version_id,
        }


class DestructionCertificate(db.Model):
    """
    Proof of destruction for a completed task.

        draft -> issued | revoked
        issued -> revoked

    At most one certificate per task is issued at a time.
    """
    __tablename__ = "destruction_certificates"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    task_id = db.Column(db.Integer, db.ForeignKey("destruction_tasks.id", ondelete="CASCADE"), nullable=False, index=True)

    # e.g. "DC202612345678"
    certificate_number = db.Column(db.String(32), nullable=False, unique=True, index=True)
    destruction_method = db.Column(db.String(64), nullable=False)
    destruction_date = db.Column(db.DateTime(timezone=True), nullable=False)
    operator_name = db.Column(db.String(128), nullable=False)
    supervisor_name = db.Column(db.String(128), nullable=True)
    file_url = db.Column(db.String(500), nullable=True)

    status = db.Column(db.String(16), nullable=False, default="draft", index=True)
    issued_at = db.Column(db.DateTime(timezone=True), nullable=True)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_by = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    task = db.relationship("DestructionTask", back_populates="certificates")
    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "task_id": self.task_id,
            "certificate_number": self.certificate_number,
            "destruction_method": self.destruction_method,
            "destruction_date": to_utc_z(self.destruction_date),
            "operator_name": self.operator_name,
            "supervisor_name": self.supervisor_name,
            "file_url": self.file_url,
            "status": self.status,
            "issued_at": to_utc_z(self.issued_at),
            "revoked_at": to_utc_z(self.revoked_at),
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
            "version_id": self.version_id,
        }
