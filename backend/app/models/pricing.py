from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


SERVICE_ITEM_STATUSES = ("active", "retired")


class ServiceItem(db.Model):
    """
    Billable line on a destruction job (per box, per kilogram, per trip).

    Retiring an item hides it from checkout without deleting it, so past
    invoices keep their reference. status is an explicit lifecycle state:
        active <-> retired
    """
    __tablename__ = "service_items"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_service_items_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    unit = db.Column(db.String(32), nullable=False)
    price_cents = db.Column(db.BigInteger, nullable=False)
    description = db.Column(db.Text, nullable=True)
    status = db.Column(db.String(16), nullable=False, default="active", index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())
    version_id = db.Column(db.Integer, nullable=False, default=1)

    __mapper_args__ = {"version_id_col": version_id}

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "unit": self.unit,
            "price_cents": self.price_cents,
            "description": self.description,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
