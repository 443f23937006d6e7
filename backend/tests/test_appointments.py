"""
Appointment lifecycle and resource reference tests.

Verifies:
- Bookings always start pending; unknown status values are 400
- pending -> confirmed -> completed, then every further change fails
- History rows for status changes and reassignments
- Staff/vehicle removal is blocked by open appointments and clears closed ones
"""

import pytest
from datetime import timedelta

from app.errors import InvalidTransition, NotFound, ReferencedEntityInUse, ValidationError
from app.extensions import db
from app.models import Appointment, Staff
from app.services import appointment_service, staff_service, vehicle_service
from app.time_utils import utcnow

from conftest import ADMIN_ID, USER_ID


def _book(**overrides):
    payload = {
        "customer_name": "Harbor Logistics",
        "appointment_time": (utcnow() + timedelta(days=1)).isoformat() + "Z",
        "document_count": 12,
    }
    payload.update(overrides)
    return appointment_service.create_appointment(payload, created_by=USER_ID)


@pytest.fixture
def staff(db_session):
    return staff_service.create_staff({"name": "Lin Wei", "id_card": "ID-0001"})


@pytest.fixture
def vehicle(db_session):
    return vehicle_service.create_vehicle({"plate_number": "TRK-101", "model": "Box truck"})


class TestLifecycle:

    def test_created_pending_with_number(self, db_session):
        appt = _book()
        assert appt.status == "pending"
        assert appt.appointment_number.startswith("APT-")
        assert [h.status for h in appointment_service.get_history(appt.id)] == ["pending"]

    def test_requested_status_ignored_on_create(self, db_session):
        appt = _book(status="completed")
        assert appt.status == "pending"

    def test_invalid_status_on_create(self, db_session):
        with pytest.raises(ValidationError):
            _book(status="in_progress")

    def test_confirm_complete_then_frozen(self, db_session):
        appt = _book()
        appointment_service.update_status(appt.id, "confirmed", updated_by=ADMIN_ID)
        appointment_service.update_status(appt.id, "completed", updated_by=ADMIN_ID)

        with pytest.raises(InvalidTransition):
            appointment_service.update_status(appt.id, "cancelled", updated_by=ADMIN_ID)
        with pytest.raises(InvalidTransition):
            appointment_service.update_appointment(appt.id, {"notes": "late edit"}, updated_by=ADMIN_ID)

        appt = db.session.get(Appointment, appt.id)
        assert appt.status == "completed"
        assert appt.notes is None
        history = appointment_service.get_history(appt.id)
        assert [h.status for h in history] == ["pending", "confirmed", "completed"]
        assert history[-1].updated_by == ADMIN_ID

    def test_skip_is_invalid(self, db_session):
        appt = _book()
        with pytest.raises(InvalidTransition):
            appointment_service.update_status(appt.id, "completed", updated_by=ADMIN_ID)

    def test_same_status_request_is_invalid(self, db_session):
        appt = _book()
        with pytest.raises(InvalidTransition):
            appointment_service.update_status(appt.id, "pending", updated_by=ADMIN_ID)

    def test_update_with_status_change(self, db_session):
        appt = _book()
        appt = appointment_service.update_appointment(
            appt.id, {"status": "confirmed", "processing_notes": "Two bins"}, updated_by=ADMIN_ID,
        )
        assert appt.status == "confirmed"
        assert appt.processing_notes == "Two bins"

    def test_missing_appointment(self, db_session):
        with pytest.raises(NotFound):
            appointment_service.update_status(999, "confirmed", updated_by=ADMIN_ID)

    def test_delete_only_pending(self, db_session):
        pending = _book()
        confirmed = _book()
        appointment_service.update_status(confirmed.id, "confirmed", updated_by=ADMIN_ID)

        appointment_service.delete_appointment(pending.id)
        with pytest.raises(InvalidTransition):
            appointment_service.delete_appointment(confirmed.id)
        assert db.session.get(Appointment, pending.id) is None


class TestAssignments:

    def test_reassignment_writes_history(self, db_session, staff, vehicle):
        appt = _book()
        appointment_service.update_appointment(
            appt.id, {"staff_id": staff.id, "vehicle_id": vehicle.id}, updated_by=ADMIN_ID,
        )
        history = appointment_service.get_history(appt.id)
        assert history[-1].staff_id == staff.id
        assert history[-1].vehicle_id == vehicle.id
        assert len(history) == 2

    def test_unknown_staff_is_not_found(self, db_session):
        with pytest.raises(NotFound):
            _book(staff_id=404)

    def test_inactive_staff_cannot_be_assigned(self, db_session, staff):
        staff_service.update_staff(staff.id, {"status": "on_leave"})
        with pytest.raises(ValidationError):
            _book(staff_id=staff.id)

    def test_delete_staff_blocked_by_open_appointment(self, db_session, staff):
        _book(staff_id=staff.id)
        with pytest.raises(ReferencedEntityInUse):
            staff_service.delete_staff(staff.id)
        with pytest.raises(ReferencedEntityInUse):
            staff_service.update_staff(staff.id, {"status": "inactive"})
        assert db.session.get(Staff, staff.id).status == "active"

    def test_delete_staff_clears_closed_appointments(self, db_session, staff):
        appt = _book(staff_id=staff.id)
        appointment_service.update_status(appt.id, "cancelled", updated_by=ADMIN_ID)

        staff_service.delete_staff(staff.id)

        appt = db.session.get(Appointment, appt.id)
        assert appt.staff_id is None
        assert appt.status == "cancelled"
        # History keeps the snapshot
        assert appointment_service.get_history(appt.id)[0].staff_id is not None

    def test_vehicle_maintenance_blocked_by_open_appointment(self, db_session, vehicle):
        _book(vehicle_id=vehicle.id)
        with pytest.raises(ReferencedEntityInUse):
            vehicle_service.update_vehicle(vehicle.id, {"status": "maintenance"})
        with pytest.raises(ReferencedEntityInUse):
            vehicle_service.delete_vehicle(vehicle.id)

    def test_terminal_appointment_allows_clearing_reference_only(self, db_session, vehicle):
        appt = _book(vehicle_id=vehicle.id)
        appointment_service.update_status(appt.id, "cancelled", updated_by=ADMIN_ID)

        appointment_service.update_appointment(appt.id, {"vehicle_id": None}, updated_by=ADMIN_ID)
        assert db.session.get(Appointment, appt.id).vehicle_id is None

        with pytest.raises(InvalidTransition):
            appointment_service.update_appointment(appt.id, {"vehicle_id": vehicle.id}, updated_by=ADMIN_ID)

    @pytest.mark.parametrize("payload", [{}, {"status": "completed"}, {"status": "completed", "notes": None}])
    def test_terminal_appointment_rejects_empty_and_same_status_writes(self, db_session, payload):
        appt = _book()
        appointment_service.update_status(appt.id, "confirmed", updated_by=ADMIN_ID)
        appointment_service.update_status(appt.id, "completed", updated_by=ADMIN_ID)
        before = db.session.get(Appointment, appt.id)
        version, last_updated_by = before.version_id, before.last_updated_by

        with pytest.raises(InvalidTransition):
            appointment_service.update_appointment(appt.id, payload, updated_by=USER_ID)

        db.session.expire_all()
        after = db.session.get(Appointment, appt.id)
        assert after.version_id == version
        assert after.last_updated_by == last_updated_by
        assert after.status == "completed"

    def test_unchanged_edit_is_not_committed(self, db_session):
        appt = _book(notes="ring twice")
        version = appt.version_id

        appointment_service.update_appointment(appt.id, {"notes": "ring twice"}, updated_by=ADMIN_ID)

        db.session.expire_all()
        after = db.session.get(Appointment, appt.id)
        assert after.version_id == version
        assert after.last_updated_by != ADMIN_ID
        assert [h.status for h in appointment_service.get_history(appt.id)] == ["pending"]


class TestAppointmentRoutes:

    def _body(self, **overrides):
        body = {
            "customer_name": "Northside Clinic",
            "appointment_time": (utcnow() + timedelta(days=2)).isoformat() + "Z",
        }
        body.update(overrides)
        return body

    def test_user_books_and_sees_own(self, user_client, admin_client, db_session):
        resp = user_client.post("/api/appointments", json=self._body())
        assert resp.status_code == 200
        appt_id = resp.get_json()["appointment"]["id"]
        admin_client.post("/api/appointments", json=self._body(customer_name="Admin booking"))

        resp = user_client.get("/api/appointments")
        assert [a["id"] for a in resp.get_json()["items"]] == [appt_id]
        assert len(admin_client.get("/api/appointments").get_json()["items"]) == 2

    def test_invalid_status_is_400(self, user_client, db_session):
        resp = user_client.post("/api/appointments", json=self._body(status="done"))
        assert resp.status_code == 400

    def test_status_flow_over_http(self, admin_client, db_session):
        appt_id = admin_client.post("/api/appointments", json=self._body()).get_json()["appointment"]["id"]
        for status in ("confirmed", "completed"):
            resp = admin_client.patch(f"/api/appointments/{appt_id}/status", json={"status": status})
            assert resp.status_code == 200

        resp = admin_client.put(f"/api/appointments/{appt_id}", json={"status": "cancelled"})
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "invalid_transition"

        resp = admin_client.get(f"/api/appointments/{appt_id}?include_history=true")
        history = resp.get_json()["appointment"]["history"]
        assert [h["status"] for h in history] == ["pending", "confirmed", "completed"]

    def test_user_cannot_change_status(self, user_client, db_session):
        appt_id = user_client.post("/api/appointments", json=self._body()).get_json()["appointment"]["id"]
        resp = user_client.patch(f"/api/appointments/{appt_id}/status", json={"status": "confirmed"})
        assert resp.status_code == 403

    def test_staff_delete_conflict_is_409(self, admin_client, db_session, staff):
        admin_client.post("/api/appointments", json=self._body(staff_id=staff.id))
        resp = admin_client.delete(f"/api/staff/{staff.id}")
        assert resp.status_code == 409
        assert resp.get_json()["code"] == "referenced_entity_in_use"

    def test_duplicate_plate_is_409(self, admin_client, db_session, vehicle):
        resp = admin_client.post("/api/vehicles", json={"plate_number": "TRK-101"})
        assert resp.status_code == 409

    @pytest.mark.parametrize("field", ["staff_id", "vehicle_id"])
    def test_non_admin_cannot_assign_resources(self, user_client, db_session, staff, vehicle, field):
        target = staff.id if field == "staff_id" else vehicle.id
        resp = user_client.post("/api/appointments", json=self._body(**{field: target}))
        assert resp.status_code == 403
        assert resp.get_json()["code"] == "forbidden"
        assert db.session.query(Appointment).count() == 0

    def test_non_admin_may_send_null_assignment(self, user_client, db_session):
        resp = user_client.post("/api/appointments", json=self._body(staff_id=None))
        assert resp.status_code == 200
        assert resp.get_json()["appointment"]["staff_id"] is None
