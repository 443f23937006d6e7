"""
Authorization tests.

Verifies:
- Protected endpoints return 401 without a usable session cookie
- user and merchant roles are denied admin operations (403)
- Only merchants place and cancel bids; admin passes every role check
- Health and version stay public
"""

import json
from urllib.parse import quote

import pytest

from conftest import USER_ID, auth_cookie


# =============================================================================
# UNAUTHENTICATED ACCESS - 401
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a session."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/waste-batches"),
            ("POST", "/api/waste-batches"),
            ("PATCH", "/api/waste-batches/1"),
            ("GET", "/api/waste-auctions"),
            ("GET", "/api/waste-bids?user_id=1"),
            ("POST", "/api/waste-bids"),
            ("GET", "/api/appointments"),
            ("POST", "/api/appointments"),
            ("GET", "/api/staff"),
            ("GET", "/api/vehicles"),
            ("GET", "/api/customers"),
            ("GET", "/api/service-items"),
            ("GET", "/api/reports/summary"),
            ("GET", "/api/destruction/tasks"),
            ("POST", "/api/destruction/tasks"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"
        assert resp.get_json()["code"] == "unauthorized"

    @pytest.mark.parametrize(
        "raw",
        [
            "not-json",
            quote(json.dumps({"state": {"isAuthenticated": False, "user": {"id": 1, "role": "admin"}}})),
            quote(json.dumps({"state": {"isAuthenticated": True, "user": {"id": "abc", "role": "admin"}}})),
            quote(json.dumps({"state": {"isAuthenticated": True, "user": {"id": 1, "role": "root"}}})),
            quote(json.dumps(["admin"])),
        ],
    )
    def test_unusable_cookie_is_401(self, app, db_session, raw):
        client = app.test_client()
        client.set_cookie(app.config["AUTH_COOKIE_NAME"], raw)
        assert client.get("/api/waste-batches").status_code == 401

    def test_numeric_string_id_is_accepted(self, app, db_session):
        raw = quote(json.dumps({"state": {"isAuthenticated": True, "user": {"id": "30", "role": "user"}}}))
        client = app.test_client()
        client.set_cookie(app.config["AUTH_COOKIE_NAME"], raw)
        assert client.get("/api/waste-batches").status_code == 200

    def test_health_is_public(self, client, db_session):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.get_json()["status"] == "healthy"
        assert client.get("/version").status_code == 200


# =============================================================================
# NON-ADMIN DENIED ADMIN OPERATIONS - 403
# =============================================================================


class TestNonAdminDenied:

    @pytest.mark.parametrize(
        "method,path",
        [
            ("POST", "/api/waste-batches"),
            ("PATCH", "/api/waste-batches/1"),
            ("DELETE", "/api/waste-batches/1"),
            ("POST", "/api/waste-auctions"),
            ("DELETE", "/api/waste-auctions/1"),
            ("POST", "/api/staff"),
            ("DELETE", "/api/vehicles/1"),
            ("GET", "/api/customers"),
            ("POST", "/api/service-items"),
            ("GET", "/api/reports/summary"),
            ("PATCH", "/api/appointments/1/status"),
        ],
    )
    def test_user_forbidden(self, user_client, db_session, method, path):
        resp = getattr(user_client, method.lower())(path, json={})
        assert resp.status_code == 403, f"{method} {path} returned {resp.status_code}"
        assert resp.get_json()["code"] == "forbidden"

    def test_merchant_cannot_create_batch(self, merchant_client, db_session):
        resp = merchant_client.post("/api/waste-batches", json={"title": "x", "waste_type": "metal"})
        assert resp.status_code == 403

    def test_user_cannot_bid(self, user_client, open_auction):
        resp = user_client.post(
            "/api/waste-bids",
            json={"auction_id": open_auction.id, "bid_amount_cents": 50000},
        )
        assert resp.status_code == 403

    def test_user_lists_own_bids_only(self, user_client, db_session):
        assert user_client.get(f"/api/waste-bids?user_id={USER_ID}").status_code == 200
        assert user_client.get("/api/waste-bids?user_id=1").status_code == 403

    def test_bids_listing_needs_a_filter(self, user_client, db_session):
        resp = user_client.get("/api/waste-bids")
        assert resp.status_code == 400


# =============================================================================
# ADMIN PASSES ROLE CHECKS
# =============================================================================


class TestAdminAccess:

    def test_admin_reads_reports_and_customers(self, admin_client, db_session):
        assert admin_client.get("/api/reports/summary").status_code == 200
        assert admin_client.get("/api/customers").status_code == 200

    def test_admin_passes_merchant_check(self, app, open_auction):
        client = app.test_client()
        client.set_cookie(app.config["AUTH_COOKIE_NAME"], auth_cookie(1, "admin"))
        resp = client.post(
            "/api/waste-bids",
            json={"auction_id": open_auction.id, "bid_amount_cents": 50000},
        )
        assert resp.status_code == 200
        assert resp.get_json()["bid"]["bidder_id"] == 1
