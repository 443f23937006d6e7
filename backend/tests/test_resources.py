"""
Staff, vehicle, customer and service item tests.

Verifies:
- Uniqueness conflicts are 409
- Unknown status values are 400
- Service items retire and reactivate through the lifecycle
"""

import pytest

from app.errors import ConflictError, InvalidTransition, ValidationError
from app.services import customer_service, service_item_service, staff_service, vehicle_service


class TestStaffAndVehicles:

    def test_duplicate_id_card(self, db_session):
        staff_service.create_staff({"name": "A", "id_card": "X-1"})
        with pytest.raises(ConflictError):
            staff_service.create_staff({"name": "B", "id_card": "X-1"})

    def test_unknown_staff_status(self, db_session):
        with pytest.raises(ValidationError):
            staff_service.create_staff({"name": "A", "id_card": "X-2", "status": "retired"})

    def test_staff_listing_by_status(self, db_session):
        staff_service.create_staff({"name": "Active", "id_card": "X-3"})
        staff_service.create_staff({"name": "Away", "id_card": "X-4", "status": "on_leave"})
        assert [s.name for s in staff_service.list_staff(status="on_leave")] == ["Away"]

    def test_unreferenced_vehicle_can_go_to_maintenance(self, db_session):
        vehicle = vehicle_service.create_vehicle({"plate_number": "TRK-9"})
        assert vehicle.status == "available"
        vehicle = vehicle_service.update_vehicle(vehicle.id, {"status": "maintenance"})
        assert vehicle.status == "maintenance"

    def test_staff_routes(self, admin_client, user_client, db_session):
        resp = admin_client.post("/api/staff", json={"name": "Sam", "id_card": "X-5", "position": "driver"})
        assert resp.status_code == 200
        staff_id = resp.get_json()["staff"]["id"]

        assert user_client.get("/api/staff").get_json()["count"] == 1
        assert admin_client.post("/api/staff", json={"name": "Sam 2", "id_card": "X-5"}).status_code == 409
        assert admin_client.delete(f"/api/staff/{staff_id}").status_code == 200
        assert admin_client.get(f"/api/staff/{staff_id}").status_code == 404


class TestCustomers:

    def test_phone_unique_blank_ignored(self, db_session):
        customer_service.create_customer({"name": "A", "phone": "555-0100", "email": ""})
        customer_service.create_customer({"name": "B", "email": ""})
        with pytest.raises(ConflictError):
            customer_service.create_customer({"name": "C", "phone": "555-0100"})

    def test_search(self, admin_client, db_session):
        admin_client.post("/api/customers", json={"name": "Harbor Logistics", "company": "Harbor"})
        admin_client.post("/api/customers", json={"name": "City Clinic"})
        resp = admin_client.get("/api/customers?search=harbor")
        assert [c["name"] for c in resp.get_json()["items"]] == ["Harbor Logistics"]


class TestServiceItems:

    def test_retire_and_reactivate(self, db_session):
        item = service_item_service.create_service_item({"name": "Shred box", "unit": "box", "price_cents": 1200})
        service_item_service.set_service_item_status(item.id, "retired")
        assert service_item_service.list_service_items() == []
        assert len(service_item_service.list_service_items(include_retired=True)) == 1

        item = service_item_service.set_service_item_status(item.id, "active")
        assert item.status == "active"
        with pytest.raises(InvalidTransition):
            service_item_service.set_service_item_status(item.id, "active")

    def test_negative_price(self, db_session):
        with pytest.raises(ValidationError):
            service_item_service.create_service_item({"name": "Bad", "unit": "kg", "price_cents": -1})

    def test_routes(self, admin_client, user_client, db_session):
        resp = admin_client.post("/api/service-items", json={"name": "Pickup", "unit": "trip", "price_cents": 5000})
        assert resp.status_code == 200
        item_id = resp.get_json()["service_item"]["id"]

        resp = admin_client.patch(f"/api/service-items/{item_id}", json={"status": "archived"})
        assert resp.status_code == 400
        resp = admin_client.patch(f"/api/service-items/{item_id}", json={"status": "retired"})
        assert resp.get_json()["service_item"]["status"] == "retired"

        assert user_client.get("/api/service-items").get_json()["count"] == 0
        assert user_client.get("/api/service-items?include_retired=true").get_json()["count"] == 1
