from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


STAFF_STATUSES = ("active", "inactive", "on_leave")
VEHICLE_STATUSES = ("available", "in_use", "maintenance")


class Staff(db.Model):
    """Crew member who can be assigned to appointments."""
    __tablename__ = "staff"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    id_card = db.Column(db.String(32), nullable=False, unique=True, index=True)
    phone = db.Column(db.String(32), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    position = db.Column(db.String(64), nullable=True)
    status = db.Column(db.String(16), nullable=False, default="active")
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "id_card": self.id_card,
            "phone": self.phone,
            "email": self.email,
            "position": self.position,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "version_id": self.version_id,
        }


class Vehicle(db.Model):
    """Collection truck."""
    __tablename__ = "vehicles"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    plate_number = db.Column(db.String(32), nullable=False, unique=True, index=True)
    model = db.Column(db.String(64), nullable=True)
    status = db.Column(db.String(16), nullable=False, default="available")
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "plate_number": self.plate_number,
            "model": self.model,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "version_id": self.version_id,
        }


class Customer(db.Model):
    """
    Customer master data. Phone and email are each unique when present.
    """
    __tablename__ = "customers"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    phone = db.Column(db.String(32), nullable=True, unique=True)
    email = db.Column(db.String(255), nullable=True, unique=True)
    address = db.Column(db.String(255), nullable=True)
    company = db.Column(db.String(128), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "address": self.address,
            "company": self.company,
            "created_at": to_utc_z(self.created_at),
        }
