"""
Destruction task tests.

Verifies:
- Tasks start pending and move pending -> scheduled -> in_progress -> completed
- in_progress and completed are only reachable through check-in / check-out
- Check-out closes the open record; it cannot precede check-in
- Certificates need a completed task; one issued certificate per task at a time
- Requesters only see their own tasks over HTTP
"""

from datetime import timedelta

import pytest

from app.errors import ConflictError, InvalidTransition, NotFound, ValidationError
from app.extensions import db
from app.models import DestructionRecord, DestructionTask
from app.services import destruction_service
from app.time_utils import utcnow

from conftest import ADMIN_ID, USER_ID, session_client


def _request(**overrides):
    payload = {
        "customer_name": "Harbor Logistics",
        "contact_phone": "555-0100",
        "contact_address": "12 Pier Road",
        "scheduled_date": (utcnow() + timedelta(days=2)).isoformat() + "Z",
        "service_type": "on_site_shredding",
        "estimated_weight": 150,
    }
    payload.update(overrides)
    return destruction_service.create_task(payload, user_id=USER_ID)


def _completed_task():
    task = _request()
    destruction_service.transition_task_status(task.id, "scheduled")
    destruction_service.check_in(task.id, {"witness_name": "J. Ortega"}, recorded_by=ADMIN_ID)
    destruction_service.check_out(task.id, {"actual_weight": 162.5, "item_count": 14}, recorded_by=ADMIN_ID)
    return db.session.get(DestructionTask, task.id)


def _certificate(task_id, **overrides):
    payload = {"destruction_method": "cross_cut_shredding", "operator_name": "Lin Wei"}
    payload.update(overrides)
    return destruction_service.create_certificate(task_id, payload, created_by=ADMIN_ID)


class TestTaskLifecycle:

    def test_created_pending_with_number(self, db_session):
        task = _request(status="completed")
        assert task.status == "pending"
        assert task.task_number.startswith("DT")
        assert task.user_id == USER_ID

    def test_missing_required_fields(self, db_session):
        with pytest.raises(ValidationError) as exc:
            destruction_service.create_task({"customer_name": "A"}, user_id=USER_ID)
        assert "contact_phone" in str(exc.value)

    def test_negative_weight_rejected(self, db_session):
        with pytest.raises(ValidationError):
            _request(estimated_weight=-1)

    def test_full_walk_writes_one_closed_record(self, db_session):
        task = _completed_task()
        assert task.status == "completed"

        records = destruction_service.list_records(task.id)
        assert len(records) == 1
        record = records[0]
        assert record.witness_name == "J. Ortega"
        assert record.actual_weight == 162.5
        assert record.item_count == 14
        assert record.check_out_time >= record.check_in_time
        assert record.recorded_by == ADMIN_ID

    @pytest.mark.parametrize("status", ["in_progress", "completed"])
    def test_on_site_statuses_need_check_in_out(self, db_session, status):
        task = _request()
        destruction_service.transition_task_status(task.id, "scheduled")
        with pytest.raises(InvalidTransition):
            destruction_service.transition_task_status(task.id, status)
        assert db.session.get(DestructionTask, task.id).status == "scheduled"

    def test_check_in_needs_a_scheduled_task(self, db_session):
        task = _request()
        with pytest.raises(InvalidTransition):
            destruction_service.check_in(task.id, {}, recorded_by=ADMIN_ID)
        assert db.session.query(DestructionRecord).count() == 0

    def test_in_progress_cannot_be_cancelled(self, db_session):
        task = _request()
        destruction_service.transition_task_status(task.id, "scheduled")
        destruction_service.check_in(task.id, None, recorded_by=ADMIN_ID)
        with pytest.raises(InvalidTransition):
            destruction_service.transition_task_status(task.id, "cancelled")

    def test_cancelled_is_final(self, db_session):
        task = _request()
        destruction_service.transition_task_status(task.id, "cancelled")
        with pytest.raises(InvalidTransition):
            destruction_service.transition_task_status(task.id, "scheduled")
        with pytest.raises(InvalidTransition):
            destruction_service.update_task(task.id, {"service_type": "x"})

    def test_check_out_before_check_in_time_is_rejected(self, db_session):
        task = _request()
        destruction_service.transition_task_status(task.id, "scheduled")
        check_in_time = utcnow() - timedelta(minutes=5)
        destruction_service.check_in(
            task.id, {"check_in_time": check_in_time.isoformat() + "Z"}, recorded_by=ADMIN_ID,
        )

        early = (check_in_time - timedelta(hours=1)).isoformat() + "Z"
        with pytest.raises(ValidationError):
            destruction_service.check_out(task.id, {"check_out_time": early}, recorded_by=ADMIN_ID)

        db.session.expire_all()
        assert db.session.get(DestructionTask, task.id).status == "in_progress"
        assert destruction_service.list_records(task.id)[0].check_out_time is None

    def test_list_filters_by_owner_and_status(self, db_session):
        mine = _request()
        other = destruction_service.create_task(
            {
                "customer_name": "City Clinic",
                "contact_phone": "555-0199",
                "contact_address": "1 Main St",
                "scheduled_date": (utcnow() + timedelta(days=3)).isoformat() + "Z",
                "service_type": "pickup",
            },
            user_id=ADMIN_ID,
        )
        destruction_service.transition_task_status(other.id, "scheduled")

        assert [t.id for t in destruction_service.list_tasks(user_id=USER_ID)] == [mine.id]
        assert [t.id for t in destruction_service.list_tasks(status="scheduled")] == [other.id]
        with pytest.raises(ValidationError):
            destruction_service.list_tasks(status="done")


class TestCertificates:

    def test_needs_completed_task(self, db_session):
        task = _request()
        with pytest.raises(InvalidTransition):
            _certificate(task.id)

    def test_draft_issue_revoke(self, db_session):
        task = _completed_task()
        certificate = _certificate(task.id)
        assert certificate.status == "draft"
        assert certificate.certificate_number.startswith(f"DC{utcnow().year}")
        assert certificate.destruction_date is not None

        with pytest.raises(NotFound):
            destruction_service.get_issued_certificate(task.id)

        certificate = destruction_service.set_certificate_status(certificate.id, "issued")
        assert certificate.issued_at is not None
        assert destruction_service.get_issued_certificate(task.id).id == certificate.id

        certificate = destruction_service.set_certificate_status(certificate.id, "revoked")
        assert certificate.revoked_at is not None
        with pytest.raises(InvalidTransition):
            destruction_service.set_certificate_status(certificate.id, "issued")
        with pytest.raises(NotFound):
            destruction_service.get_issued_certificate(task.id)

    def test_one_issued_certificate_per_task(self, db_session):
        task = _completed_task()
        first = _certificate(task.id)
        second = _certificate(task.id, operator_name="Sam Park")
        destruction_service.set_certificate_status(first.id, "issued")

        with pytest.raises(ConflictError):
            destruction_service.set_certificate_status(second.id, "issued")

        destruction_service.set_certificate_status(first.id, "revoked")
        destruction_service.set_certificate_status(second.id, "issued")
        assert destruction_service.get_issued_certificate(task.id).operator_name == "Sam Park"

    def test_unknown_certificate(self, db_session):
        with pytest.raises(NotFound):
            destruction_service.set_certificate_status(404, "issued")


class TestDestructionRoutes:

    def _body(self, **overrides):
        body = {
            "customerName": "Northside Clinic",
            "contactPhone": "555-0142",
            "contactAddress": "8 Elm Street",
            "scheduledDate": (utcnow() + timedelta(days=1)).isoformat() + "Z",
            "serviceType": "pickup",
            "userId": 999,
        }
        body.update(overrides)
        return body

    def test_user_requests_and_sees_own(self, app, user_client, admin_client, db_session):
        resp = user_client.post("/api/destruction/tasks", json=self._body())
        assert resp.status_code == 200
        task = resp.get_json()["task"]
        assert task["user_id"] == USER_ID
        assert task["status"] == "pending"

        admin_client.post("/api/destruction/tasks", json=self._body(customerName="Admin request"))

        assert [t["id"] for t in user_client.get("/api/destruction/tasks").get_json()["items"]] == [task["id"]]
        assert admin_client.get("/api/destruction/tasks").get_json()["count"] == 2

        stranger = session_client(app, 31, "user")
        assert stranger.get(f"/api/destruction/tasks/{task['id']}").status_code == 404

    def test_missing_fields_is_400(self, user_client, db_session):
        resp = user_client.post("/api/destruction/tasks", json={"customerName": "Only a name"})
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "validation_error"

    def test_user_cannot_run_the_lifecycle(self, user_client, db_session):
        task_id = user_client.post("/api/destruction/tasks", json=self._body()).get_json()["task"]["id"]
        assert user_client.patch(
            f"/api/destruction/tasks/{task_id}/status", json={"status": "scheduled"},
        ).status_code == 403
        assert user_client.post(f"/api/destruction/tasks/{task_id}/check-in", json={}).status_code == 403

    def test_flow_over_http(self, user_client, admin_client, db_session):
        task_id = user_client.post("/api/destruction/tasks", json=self._body()).get_json()["task"]["id"]

        resp = admin_client.patch(f"/api/destruction/tasks/{task_id}/status", json={"status": "in_progress"})
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "invalid_transition"

        assert admin_client.patch(
            f"/api/destruction/tasks/{task_id}/status", json={"status": "scheduled"},
        ).status_code == 200

        resp = admin_client.post(f"/api/destruction/tasks/{task_id}/check-in", json={"staff_id": 7})
        assert resp.status_code == 200
        assert resp.get_json()["task_status"] == "in_progress"

        resp = admin_client.post(f"/api/destruction/tasks/{task_id}/check-out", json={"actual_weight": 40})
        assert resp.get_json()["task_status"] == "completed"

        resp = admin_client.post(
            f"/api/destruction/tasks/{task_id}/certificates",
            json={"destruction_method": "pulping", "operator_name": "Lin Wei"},
        )
        assert resp.status_code == 200
        certificate_id = resp.get_json()["certificate"]["id"]

        assert user_client.get(f"/api/destruction/tasks/{task_id}/certificate").status_code == 404
        assert admin_client.patch(
            f"/api/destruction/certificates/{certificate_id}/status", json={"status": "issued"},
        ).status_code == 200

        resp = user_client.get(f"/api/destruction/tasks/{task_id}/certificate")
        assert resp.status_code == 200
        assert resp.get_json()["certificate"]["status"] == "issued"

        resp = user_client.get(f"/api/destruction/tasks/{task_id}?include_records=true")
        detail = resp.get_json()["task"]
        assert detail["status"] == "completed"
        assert [r["staff_id"] for r in detail["records"]] == [7]
        assert [c["id"] for c in detail["certificates"]] == [certificate_id]
