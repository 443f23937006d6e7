"""
CLI command tests.

Verifies:
- auctions close-expired ends the batch and settles once
- --dry-run leaves everything untouched
- listing commands print rows
"""

from app.extensions import db
from app.models import WasteAuction, WasteBatch
from app.services import bid_service

from conftest import MERCHANT_ID, expire_window


def _invoke(app, *args):
    return app.test_cli_runner().invoke(args=list(args))


def test_close_expired_nothing_to_do(app, db_session):
    result = _invoke(app, "auctions", "close-expired")
    assert result.exit_code == 0
    assert "No expired auctions to close." in result.output


def test_close_expired_dry_run(app, open_auction):
    expire_window(open_auction.id)

    result = _invoke(app, "auctions", "close-expired", "--dry-run")

    assert result.exit_code == 0
    assert "WOULD CLOSE" in result.output
    assert db.session.get(WasteBatch, open_auction.batch_id).status == "auction_in_progress"
    assert db.session.get(WasteAuction, open_auction.id).settled_at is None


def test_close_expired_settles(app, open_auction):
    bid_service.place_bid(auction_id=open_auction.id, bidder_id=MERCHANT_ID, bid_amount_cents=17500)
    expire_window(open_auction.id)

    result = _invoke(app, "auctions", "close-expired")

    assert result.exit_code == 0, result.output
    assert "CLOSED" in result.output
    assert f"winner user {MERCHANT_ID} at 17500 cents" in result.output
    assert "Closed 1, skipped 0." in result.output

    db.session.expire_all()
    assert db.session.get(WasteBatch, open_auction.batch_id).status == "auction_ended"
    assert db.session.get(WasteAuction, open_auction.id).winning_bid_cents == 17500

    # Second run finds nothing
    result = _invoke(app, "auctions", "close-expired")
    assert "No expired auctions to close." in result.output


def test_list_auctions(app, open_auction):
    result = _invoke(app, "auctions", "list", "--active")
    assert result.exit_code == 0
    assert "open" in result.output
    assert open_auction.batch.batch_number in result.output


def test_list_appointments_rejects_unknown_status(app, db_session):
    result = _invoke(app, "appointments", "list", "--status", "archived")
    assert result.exit_code != 0
