"""
Pytest fixtures for backend tests.

Provides the in-memory app, a per-test table wipe, session cookies for each
role, and factories for batches, auctions and appointments.
"""

import json
from datetime import timedelta
from urllib.parse import quote

import pytest

from app import create_app
from app.extensions import db
from app.models import WasteAuction
from app.services import auction_service, batch_service
from app.time_utils import utcnow


ADMIN_ID = 1
MERCHANT_ID = 20
OTHER_MERCHANT_ID = 21
USER_ID = 30


def auth_cookie(user_id: int, role: str, name: str = "Test User", authenticated: bool = True) -> str:
    """Cookie value the login frontend would write."""
    payload = {
        "state": {
            "isAuthenticated": authenticated,
            "user": {"id": user_id, "role": role, "name": name},
        }
    }
    return quote(json.dumps(payload))


def session_client(app, user_id: int, role: str):
    """Test client carrying a login cookie for the given user."""
    client = app.test_client()
    client.set_cookie(app.config["AUTH_COOKIE_NAME"], auth_cookie(user_id, role))
    return client


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'LOCK_TIMEOUT_SECONDS': 5,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture
def admin_client(app):
    return session_client(app, ADMIN_ID, "admin")


@pytest.fixture
def merchant_client(app):
    return session_client(app, MERCHANT_ID, "waste_disposal_merchant")


@pytest.fixture
def other_merchant_client(app):
    return session_client(app, OTHER_MERCHANT_ID, "waste_disposal_merchant")


@pytest.fixture
def user_client(app):
    return session_client(app, USER_ID, "user")


def make_batch(**overrides):
    payload = {"title": "Shredded office paper", "waste_type": "paper", "estimated_weight": 420.5}
    payload.update(overrides)
    return batch_service.create_batch(payload, created_by=ADMIN_ID)


def make_open_auction(*, base_price_cents=10000, reserve_price_cents=None, minutes_left=60):
    """
    A batch in auction_in_progress with an auction whose window is open now.

    Auctions must be created with a future start, so the start is moved into
    the past afterwards.
    """
    batch = make_batch()
    batch_service.transition_batch_status(batch.id, "published")
    now = utcnow()
    payload = {
        "batch_id": batch.id,
        "title": "Paper lot",
        "start_time": (now + timedelta(minutes=5)).isoformat() + "Z",
        "end_time": (now + timedelta(minutes=minutes_left)).isoformat() + "Z",
        "base_price_cents": base_price_cents,
    }
    if reserve_price_cents is not None:
        payload["reserve_price_cents"] = reserve_price_cents
    auction = auction_service.create_auction(payload, created_by=ADMIN_ID)
    batch_service.transition_batch_status(batch.id, "auction_in_progress")
    open_window(auction.id)
    return db.session.get(WasteAuction, auction.id)


def open_window(auction_id: int, *, started_minutes_ago: int = 1):
    auction = db.session.get(WasteAuction, auction_id)
    auction.start_time = utcnow() - timedelta(minutes=started_minutes_ago)
    db.session.commit()


def expire_window(auction_id: int):
    auction = db.session.get(WasteAuction, auction_id)
    now = utcnow()
    auction.start_time = now - timedelta(hours=2)
    auction.end_time = now - timedelta(minutes=1)
    db.session.commit()


@pytest.fixture
def open_auction(db_session):
    return make_open_auction()
