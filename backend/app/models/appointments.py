from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


APPOINTMENT_STATUSES = ("pending", "confirmed", "completed", "cancelled")
TERMINAL_APPOINTMENT_STATUSES = ("completed", "cancelled")


class Appointment(db.Model):
    """
    A document-destruction pickup booked by or for a customer.

    LIFECYCLE:
        pending -> confirmed | cancelled
        confirmed -> completed | cancelled

    completed and cancelled are terminal: the record is frozen, except that
    staff/vehicle references may be cleared when those records are removed.
    """
    __tablename__ = "appointments"
    __table_args__ = (
        db.Index("ix_appointments_status_time", "status", "appointment_time"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable tracking number (e.g., "APT-482913-0071")
    appointment_number = db.Column(db.String(32), nullable=False, unique=True, index=True)

    customer_name = db.Column(db.String(128), nullable=False)
    contact_phone = db.Column(db.String(32), nullable=True)
    contact_address = db.Column(db.String(255), nullable=True)
    notes = db.Column(db.Text, nullable=True)
    document_count = db.Column(db.Integer, nullable=False, default=1)

    appointment_time = db.Column(db.DateTime(timezone=True), nullable=False, index=True)
    service_type = db.Column(db.String(64), nullable=True)
    document_category = db.Column(db.String(64), nullable=True)

    staff_id = db.Column(db.Integer, db.ForeignKey("staff.id"), nullable=True, index=True)
    vehicle_id = db.Column(db.Integer, db.ForeignKey("vehicles.id"), nullable=True, index=True)

    status = db.Column(db.String(16), nullable=False, default="pending", index=True)
    estimated_completion_time = db.Column(db.DateTime(timezone=True), nullable=True)
    processing_notes = db.Column(db.Text, nullable=True)

    created_by = db.Column(db.Integer, nullable=True)
    last_updated_by = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    staff = db.relationship("Staff", backref=db.backref("appointments", lazy=True))
    vehicle = db.relationship("Vehicle", backref=db.backref("appointments", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_APPOINTMENT_STATUSES

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "appointment_number": self.appointment_number,
            "customer_name": self.customer_name,
            "contact_phone": self.contact_phone,
            "contact_address": self.contact_address,
            "notes": self.notes,
            "document_count": self.document_count,
            "appointment_time": to_utc_z(self.appointment_time),
            "service_type": self.service_type,
            "document_category": self.document_category,
            "staff_id": self.staff_id,
            "vehicle_id": self.vehicle_id,
            "status": self.status,
            "estimated_completion_time": to_utc_z(self.estimated_completion_time) if self.estimated_completion_time else None,
            "processing_notes": self.processing_notes,
            "created_by": self.created_by,
            "last_updated_by": self.last_updated_by,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }


class AppointmentHistory(db.Model):
    """
    Append-only trail of status changes and crew/vehicle reassignments.
    """
    __tablename__ = "appointment_history"
    __table_args__ = (
        db.Index("ix_appointment_history_appointment_time", "appointment_id", "updated_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    appointment_id = db.Column(db.Integer, db.ForeignKey("appointments.id", ondelete="CASCADE"), nullable=False)
    status = db.Column(db.String(16), nullable=False)
    # Snapshot ids, not foreign keys: history survives staff/vehicle removal
    staff_id = db.Column(db.Integer, nullable=True)
    vehicle_id = db.Column(db.Integer, nullable=True)
    notes = db.Column(db.Text, nullable=True)
    updated_by = db.Column(db.Integer, nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False)

    appointment = db.relationship(
        "Appointment",
        backref=db.backref("history", lazy=True, cascade="all, delete-orphan", order_by="AppointmentHistory.id"),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "appointment_id": self.appointment_id,
            "status": self.status,
            "staff_id": self.staff_id,
            "vehicle_id": self.vehicle_id,
            "notes": self.notes,
            "updated_by": self.updated_by,
            "updated_at": to_utc_z(self.updated_at),
        }
