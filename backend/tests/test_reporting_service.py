"""
Reporting tests.

Verifies:
- Appointment listing filters and ordering
- Status counts include zero buckets and respect the time range
- Auction summary after settlement
- Report endpoints over HTTP
"""

import pytest
from datetime import timedelta

from app.errors import ValidationError
from app.services import appointment_service, bid_service, reporting_service
from app.time_utils import utcnow

from conftest import ADMIN_ID, MERCHANT_ID, USER_ID, make_batch


def _book(days_ahead, **overrides):
    payload = {
        "customer_name": f"Customer {days_ahead}",
        "appointment_time": (utcnow() + timedelta(days=days_ahead)).isoformat() + "Z",
    }
    payload.update(overrides)
    return appointment_service.create_appointment(payload, created_by=USER_ID)


class TestAppointmentListing:

    def test_soonest_first_with_status_filter(self, db_session):
        later = _book(5)
        sooner = _book(1)
        confirmed = _book(3)
        appointment_service.update_status(confirmed.id, "confirmed", updated_by=ADMIN_ID)

        assert [a.id for a in reporting_service.list_appointments()] == [sooner.id, confirmed.id, later.id]
        assert [a.id for a in reporting_service.list_appointments(status="pending")] == [sooner.id, later.id]

    def test_time_range(self, db_session):
        _book(1)
        middle = _book(4)
        _book(9)
        start = (utcnow() + timedelta(days=2)).isoformat() + "Z"
        end = (utcnow() + timedelta(days=6)).isoformat() + "Z"
        assert [a.id for a in reporting_service.list_appointments(start=start, end=end)] == [middle.id]

    def test_limit_is_clamped(self, db_session):
        for day in range(3):
            _book(day + 1)
        assert len(reporting_service.list_appointments(limit=2)) == 2
        assert len(reporting_service.list_appointments(limit=10_000)) == 3

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"status": "archived"},
            {"start": "yesterday"},
            {"start": "2026-02-01T00:00:00Z", "end": "2026-01-01T00:00:00Z"},
            {"limit": 0},
            {"limit": "ten"},
        ],
    )
    def test_bad_filters(self, db_session, kwargs):
        with pytest.raises(ValidationError):
            reporting_service.list_appointments(**kwargs)


class TestCounts:

    def test_appointment_counts_have_every_status(self, db_session):
        _book(1)
        cancelled = _book(2)
        appointment_service.update_status(cancelled.id, "cancelled", updated_by=ADMIN_ID)

        report = reporting_service.appointment_status_counts()
        assert report["counts"] == {"pending": 1, "confirmed": 0, "completed": 0, "cancelled": 1}
        assert report["total"] == 2

    def test_batch_counts(self, db_session):
        make_batch()
        make_batch()
        report = reporting_service.batch_status_counts()
        assert report["counts"]["draft"] == 2
        assert report["counts"]["allocated"] == 0
        assert report["total"] == 2

    def test_auction_summary_after_settlement(self, open_auction):
        bid_service.place_bid(auction_id=open_auction.id, bidder_id=MERCHANT_ID, bid_amount_cents=12500)
        summary = reporting_service.auction_summary()
        assert summary["open_auctions"] == 1
        assert summary["bid_count"] == 1

        bid_service.settle_auction(open_auction.id)
        summary = reporting_service.auction_summary()
        assert summary["settled_auctions"] == 1
        assert summary["auctions_with_winner"] == 1
        assert summary["settled_value_cents"] == 12500
        assert summary["open_auctions"] == 0


class TestReportRoutes:

    def test_summary(self, admin_client, db_session):
        _book(1)
        resp = admin_client.get("/api/reports/summary")
        assert resp.status_code == 200
        body = resp.get_json()
        assert body["appointments"]["total"] == 1
        assert set(body) == {"appointments", "waste_batches", "auctions"}

    def test_bad_range_is_400(self, admin_client, db_session):
        resp = admin_client.get("/api/reports/appointments/status-counts?start=nope")
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "validation_error"
