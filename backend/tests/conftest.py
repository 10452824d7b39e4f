"""
Pytest fixtures for lottery backend tests.

Provides test database setup and store/game/bin/pack fixtures.
"""

from datetime import datetime

import pytest
from lotto import create_app
from lotto.extensions import db
from lotto.services import bin_service, game_service, pack_service, store_service


# Fixed business clock: 2026-03-02 is a plain (non-DST) Monday in UTC
T0 = datetime(2026, 3, 2, 8, 0, 0)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


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


@pytest.fixture(scope='function')
def store(db_session):
    """Store running on UTC so business dates match UTC dates."""
    store = store_service.create_store("Main Street", code="MAIN", timezone="UTC")
    db_session.commit()
    return store


@pytest.fixture(scope='function')
def game(db_session):
    """$5 game, 150-ticket packs (serials 000-149)."""
    game = game_service.create_game("1234", "Lucky 7s", 500, tickets_per_pack=150)
    db_session.commit()
    return game


@pytest.fixture(scope='function')
def bins(db_session, store):
    """Three active bins in display order."""
    created = [bin_service.create_bin(store.id, f"Bin {i + 1}") for i in range(3)]
    db_session.commit()
    return created


def make_pack(store, game, pack_number, serial_start="000", serial_end="149"):
    return pack_service.receive_pack(store.id, game.id, pack_number, serial_start, serial_end, now=T0)


@pytest.fixture(scope='function')
def pack(db_session, store, game):
    """RECEIVED pack 0012345, serials 000-149."""
    pack = make_pack(store, game, "0012345")
    db_session.commit()
    return pack


@pytest.fixture(scope='function')
def active_pack(db_session, pack, bins):
    """Pack 0012345 ACTIVE in the first bin."""
    pack_service.activate_pack(pack.id, bins[0].id, actor_user_id=1, now=T0)
    db_session.commit()
    return pack


def barcode_for(game_code, pack_number, ticket, identifier="0123456789"):
    """Build a 24-digit ticket code: game(4) + pack(7) + ticket(3) + identifier(10)."""
    return f"{game_code}{pack_number}{ticket}{identifier}"
