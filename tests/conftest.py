"""
Shared fixtures for the auction engine tests.

Builds an in-memory store seeded with two teams and a few players, plus a
ledger and session controller wired to a broadcaster that records events.
"""

import pytest

from house_auction.auction.bid_ledger import BidLedger
from house_auction.auction.broadcaster import Broadcaster
from house_auction.auction.entity_store import SETTINGS, EntityStore
from house_auction.auction.models import Player, Team
from house_auction.auction.sale_log import SaleLog
from house_auction.auction.session_controller import AuctionSessionController
from house_auction.auction import repository


class RecordingBroadcaster(Broadcaster):
    """Broadcaster that keeps every published event"""

    def __init__(self):
        self.events = []

    def publish(self, event_name, payload):
        self.events.append((event_name, payload))

    def names(self):
        return [name for name, _ in self.events]

    def last(self, event_name):
        for name, payload in reversed(self.events):
            if name == event_name:
                return payload
        return None


@pytest.fixture
def store():
    store = EntityStore()
    repository.get_settings(store)
    store.update_one(SETTINGS, {'id': 'settings'}, patch={
        'base_price': 2500,
        'min_increment': 500,
    })
    return store


@pytest.fixture
def broadcaster():
    return RecordingBroadcaster()


@pytest.fixture
def sale_log(tmp_path):
    return SaleLog(tmp_path / "sales.jsonl")


@pytest.fixture
def ledger(store, broadcaster):
    return BidLedger(store, broadcaster)


@pytest.fixture
def controller(store, ledger, broadcaster, sale_log):
    return AuctionSessionController(store, ledger, broadcaster, sale_log)


@pytest.fixture
def teams(controller):
    """Two teams with 20000 wallets and 4 slots each"""
    falcons = controller.register_team(
        Team(name="Falcons", code="FAL-1", wallet=20000, max_players=4, logo_url="f.png")
    )
    hawks = controller.register_team(
        Team(name="Hawks", code="HAW-2", wallet=20000, max_players=4)
    )
    return falcons, hawks


@pytest.fixture
def players(controller):
    """Three unsold players with a 2000 base price"""
    return [
        controller.register_player(
            Player(name=name, house=house, strength="Batsman", batch=batch, base_price=2000)
        )
        for name, house, batch in [
            ("Arjun Mehta", "Aravali", 12),
            ("Kabir Singh", "Shivalik", 14),
            ("Rohan Das", "Nilgiri", 20),
        ]
    ]
