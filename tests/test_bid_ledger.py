"""
Unit tests for the bid ledger.

Tests:
- Raises move the bid by exactly one increment
- Lazy bid creation on the first accepted raise
- Affordability rejections carry max_allowed
- Rejections for missing, sold or paused players
- Concurrent raises on one player
- bid_updated events
"""

import threading
from datetime import datetime

import pytest

from house_auction.auction.entity_store import BIDS, SETTINGS, TEAMS
from house_auction.auction.errors import (
    BidTooHighError,
    InvalidStateError,
    NotFoundError,
    StoreFailureError,
)
from house_auction.auction.models import BidHistoryEntry, Player, Team
from house_auction.auction import repository


class TestRaises:
    """Test accepted raises"""

    def test_first_and_second_raise(self, controller, ledger, teams):
        """Verify base 2500 + increment 500 gives 3000 then 3500"""
        team = controller.register_team(
            Team(name="Titans", code="TIT-3", wallet=100000, max_players=15)
        )
        player = controller.register_player(
            Player(name="Dev Rao", house="Udaigiri", strength="Bowler", batch=9, base_price=2500)
        )
        controller.select_player(player.id)

        first = ledger.place_raise("TIT-3")
        assert first.amount == 3000
        assert first.team_id == team.id
        assert ledger.get_active_bid(player.id).current_team_id == team.id

        second = ledger.place_raise("TIT-3")
        assert second.amount == 3500
        assert [e.amount for e in ledger.get_active_bid(player.id).history] == [3000, 3500]

    def test_no_bid_until_first_raise(self, controller, ledger, store, teams, players):
        """Verify selecting a player does not create a bid"""
        controller.select_player(players[0].id)

        assert store.count(BIDS) == 0
        assert ledger.get_active_bid(players[0].id) is None

    def test_opening_amount_uses_player_base_price(self, controller, ledger, teams, players):
        """Verify the first raise starts from the player's own base price"""
        controller.select_player(players[0].id)

        result = ledger.place_raise("HAW-2")

        assert result.amount == 2000 + 500
        assert result.team_name == "Hawks"

    def test_alternating_teams(self, controller, ledger, teams, players):
        """Verify each raise is previous amount plus increment regardless of team"""
        controller.select_player(players[0].id)

        amounts = [ledger.place_raise(code).amount for code in ("FAL-1", "HAW-2", "FAL-1")]

        assert amounts == [2500, 3000, 3500]
        assert ledger.get_active_bid(players[0].id).current_team_id == teams[0].id

    def test_increment_follows_settings(self, controller, ledger, teams, players):
        """Verify a settings change applies to the next raise"""
        controller.select_player(players[0].id)
        ledger.place_raise("FAL-1")
        controller.update_settings(min_increment=1000)

        assert ledger.place_raise("HAW-2").amount == 2500 + 1000

    def test_max_allowed_reported(self, controller, ledger, teams, players):
        """Verify the result carries the team's current cap"""
        controller.select_player(players[0].id)

        result = ledger.place_raise("FAL-1")

        # 20000 wallet, 4 slots, 3 reserved at 2500
        assert result.max_allowed == 20000 - 3 * 2500


class TestRejections:
    """Test raises that must not change state"""

    def test_unknown_team_code(self, controller, ledger, teams, players):
        controller.select_player(players[0].id)

        with pytest.raises(NotFoundError):
            ledger.place_raise("NOPE")

    def test_no_current_player(self, ledger, teams):
        with pytest.raises(InvalidStateError):
            ledger.place_raise("FAL-1")

    def test_paused_auction(self, controller, ledger, teams, players):
        """Verify raises are refused while the auction is paused"""
        controller.select_player(players[0].id)
        controller.update_settings(auction_active=False)

        with pytest.raises(InvalidStateError):
            ledger.place_raise("FAL-1")

    def test_sold_player(self, controller, ledger, store, teams, players):
        """Verify a sold player cannot be bid on even if still selected"""
        controller.select_player(players[0].id)
        ledger.place_raise("FAL-1")
        controller.settle_sale()
        store.update_one(SETTINGS, {'id': 'settings'}, patch={'current_player_id': players[0].id})

        with pytest.raises(InvalidStateError):
            ledger.place_raise("HAW-2")

    def test_cap_exceeded_last_slot(self, controller, ledger, store, broadcaster):
        """Verify remaining 2000 with one slot rejects a 2500 raise with max_allowed 2000"""
        controller.register_team(Team(name="Lone", code="LONE", wallet=2000, max_players=1))
        player = controller.register_player(
            Player(name="Ishan Roy", house="Aravali", strength="Bowler", batch=3, base_price=2000)
        )
        controller.select_player(player.id)

        with pytest.raises(BidTooHighError) as exc_info:
            ledger.place_raise("LONE")

        assert exc_info.value.max_allowed == 2000
        assert exc_info.value.next_amount == 2500
        assert store.count(BIDS) == 0
        assert 'bid_updated' not in broadcaster.names()

    def test_cap_rechecked_each_raise(self, controller, ledger, teams, players):
        """Verify repeated raises by one team stop at the cap"""
        controller.set_team_wallet(teams[0].id, 10000)
        controller.select_player(players[0].id)

        # cap is 2500 for a 10000 wallet with 4 slots at base 2500
        ledger.place_raise("FAL-1")
        with pytest.raises(BidTooHighError) as exc_info:
            ledger.place_raise("FAL-1")

        assert exc_info.value.max_allowed == 2500
        assert ledger.get_active_bid(players[0].id).current_amount == 2500

    def test_full_roster_rejected_with_zero(self, controller, ledger, store, teams, players):
        """Verify a team with no open slots gets max_allowed 0"""
        controller.set_team_wallet(teams[0].id, 100000)
        store.update_one(TEAMS, {'id': teams[0].id}, patch={'max_players': 1})
        controller.select_player(players[0].id)
        ledger.place_raise("FAL-1")
        controller.settle_sale()
        controller.select_player(players[1].id)

        with pytest.raises(BidTooHighError) as exc_info:
            ledger.place_raise("FAL-1")

        assert exc_info.value.max_allowed == 0

    def test_player_changed_during_commit(self, controller, ledger, store, teams, players):
        """Verify a commit for a player that is no longer up is refused"""
        controller.select_player(players[0].id)
        player = repository.get_player(store, players[0].id)
        controller.select_player(players[1].id)

        entry = BidHistoryEntry(team_id=teams[0].id, amount=2500, at=datetime.now())

        with pytest.raises(InvalidStateError):
            ledger._commit_raise(player, None, entry)
        assert store.count(BIDS) == 0

    def test_stale_amount_commit_refused(self, controller, ledger, store, teams, players):
        """Verify a commit based on a stale amount raises StoreFailureError"""
        controller.select_player(players[0].id)
        ledger.place_raise("FAL-1")
        stale = ledger.get_active_bid(players[0].id)
        ledger.place_raise("HAW-2")

        entry = BidHistoryEntry(team_id=teams[0].id, amount=3000, at=datetime.now())

        with pytest.raises(StoreFailureError):
            ledger._commit_raise(repository.get_player(store, players[0].id), stale, entry)
        assert ledger.get_active_bid(players[0].id).current_amount == 3000
        assert ledger.get_active_bid(players[0].id).current_team_id == teams[1].id


class TestConcurrentRaises:
    """Test raises racing on the same player"""

    def test_concurrent_raises_each_apply_once(self, controller, ledger, store, players):
        """Verify racing raises from 3000 commit 3500 and 4000, never 3500 twice"""
        controller.register_team(Team(name="Rich A", code="RA", wallet=100000, max_players=15))
        controller.register_team(Team(name="Rich B", code="RB", wallet=100000, max_players=15))
        controller.select_player(players[0].id)
        ledger.place_raise("RA")
        ledger.place_raise("RB")
        assert ledger.get_active_bid(players[0].id).current_amount == 3000

        barrier = threading.Barrier(2)
        results, errors = [], []

        def raise_for(code):
            barrier.wait()
            try:
                results.append(ledger.place_raise(code).amount)
            except StoreFailureError as e:
                errors.append(e)

        threads = [threading.Thread(target=raise_for, args=(code,)) for code in ("RA", "RB")]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert not errors
        assert sorted(results) == [3500, 4000]
        bid = ledger.get_active_bid(players[0].id)
        assert bid.current_amount == 4000
        assert [e.amount for e in bid.history] == [2500, 3000, 3500, 4000]

    def test_many_concurrent_raises(self, controller, ledger, players):
        """Verify N racing raises move the bid by exactly N increments"""
        for i in range(8):
            controller.register_team(
                Team(name=f"Team {i}", code=f"T{i}", wallet=100000, max_players=15)
            )
        controller.select_player(players[1].id)

        threads = [
            threading.Thread(target=ledger.place_raise, args=(f"T{i}",)) for i in range(8)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        bid = ledger.get_active_bid(players[1].id)
        assert bid.current_amount == 2000 + 8 * 500
        assert len(bid.history) == 8


class TestBidMaintenance:
    """Test clearing and deactivating bids"""

    def test_deactivate_keeps_history(self, controller, ledger, store, teams, players):
        controller.select_player(players[0].id)
        ledger.place_raise("FAL-1")
        bid = ledger.get_active_bid(players[0].id)

        closed = ledger.deactivate_bid(bid.id)

        assert closed.active is False
        assert ledger.get_active_bid(players[0].id) is None
        assert store.find_by_id(BIDS, bid.id)['history'][0]['amount'] == 2500

    def test_deactivate_missing_bid(self, ledger):
        with pytest.raises(NotFoundError):
            ledger.deactivate_bid("missing")

    def test_clear_bids_for_player(self, controller, ledger, store, teams, players):
        controller.select_player(players[0].id)
        ledger.place_raise("FAL-1")

        assert ledger.clear_bids_for_player(players[0].id) == 1
        assert store.count(BIDS) == 0


class TestBidEvents:
    """Test bid_updated publishing"""

    def test_bid_updated_payload(self, controller, ledger, broadcaster, teams, players):
        controller.select_player(players[0].id)

        ledger.place_raise("FAL-1")

        assert broadcaster.last('bid_updated') == {
            'playerId': players[0].id,
            'amount': 2500,
            'teamName': "Falcons",
            'teamLogoUrl': "f.png",
        }

    def test_publish_failure_does_not_fail_raise(self, controller, ledger, teams, players):
        """Verify a broken broadcaster is logged, not raised"""
        class BrokenBroadcaster:
            def publish(self, event_name, payload):
                raise RuntimeError("socket gone")

        ledger.broadcaster = BrokenBroadcaster()
        controller.select_player(players[0].id)

        assert ledger.place_raise("FAL-1").amount == 2500
        assert ledger.get_active_bid(players[0].id).current_amount == 2500
