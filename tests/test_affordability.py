"""
Unit tests for the affordability cap.

Tests:
- Base-price reserve for every other open slot
- Floor at zero
- Monotonicity in wallet and slots
- Team resource summaries derived from purchases
"""

from datetime import datetime

import pytest

from house_auction.auction.affordability import (
    calculate_team_resources,
    compute_max_allowed_bid,
    max_allowed_for_team,
    team_resources,
)
from house_auction.auction.models import Purchase, Team


class TestComputeMaxAllowedBid:
    """Test the pure affordability formula"""

    def test_reserves_base_price_for_other_slots(self):
        """Verify wallet minus base price for each slot after this one"""
        assert compute_max_allowed_bid(100000, 15, 2500) == 100000 - 14 * 2500

    def test_last_slot_can_spend_everything(self):
        """Verify one remaining slot reserves nothing (2000, 1, 2500)"""
        assert compute_max_allowed_bid(2000, 1, 2500) == 2000

    def test_never_negative(self):
        """Verify the cap floors at zero when reserves exceed the wallet"""
        assert compute_max_allowed_bid(5000, 10, 2500) == 0
        assert compute_max_allowed_bid(0, 3, 2500) == 0

    def test_zero_slots_treated_as_no_reserve(self):
        """Verify zero or missing slots do not produce a negative reserve"""
        assert compute_max_allowed_bid(4000, 0, 2500) == 4000
        assert compute_max_allowed_bid(4000, None, 2500) == 4000

    @pytest.mark.parametrize("slots", [1, 2, 5, 15])
    def test_non_decreasing_in_wallet(self, slots):
        """Verify more wallet never lowers the cap"""
        caps = [compute_max_allowed_bid(wallet, slots, 2500) for wallet in range(0, 60000, 2500)]
        assert caps == sorted(caps)
        assert all(cap >= 0 for cap in caps)

    @pytest.mark.parametrize("wallet", [0, 10000, 50000, 100000])
    def test_non_increasing_in_slots(self, wallet):
        """Verify more open slots never raises the cap"""
        caps = [compute_max_allowed_bid(wallet, slots, 2500) for slots in range(0, 20)]
        assert caps == sorted(caps, reverse=True)


class TestTeamResources:
    """Test resources derived from a team's purchases"""

    def _team(self, wallet=10000, max_players=4, prices=()):
        team = Team(name="Falcons", code="FAL-1", wallet=wallet, max_players=max_players)
        team.purchases = [
            Purchase(player_id=f"p{i}", price=price, at=datetime(2026, 1, 1, 10, i))
            for i, price in enumerate(prices)
        ]
        return team

    def test_remaining_derived_from_purchases(self):
        """Verify spend comes from the purchase history"""
        team = self._team(prices=(3000, 1500))

        assert team_resources(team) == (5500, 2)
        assert max_allowed_for_team(team, 2500) == 5500 - 2500

    def test_overspent_wallet_floors_at_zero(self):
        """Verify a lowered wallet never yields negative remaining"""
        team = self._team(wallet=2000, prices=(3000,))

        assert team.remaining_wallet() == 0
        assert max_allowed_for_team(team, 2500) == 0

    def test_summary_sorted_by_remaining(self):
        """Verify summaries are ordered richest first"""
        rich = self._team(wallet=20000)
        rich.name = "Rich"
        poor = self._team(wallet=10000, prices=(4000,))
        poor.name = "Poor"

        summary = calculate_team_resources([poor, rich], 2500)

        assert [row['name'] for row in summary] == ["Rich", "Poor"]
        assert summary[1]['spent'] == 4000
        assert summary[1]['purchases'] == 1
        assert summary[1]['remaining_slots'] == 3

    def test_summary_full_roster_has_zero_cap(self):
        """Verify a full roster reports max_allowed 0"""
        full = self._team(max_players=2, prices=(1000, 1000))

        summary = calculate_team_resources([full], 2500)

        assert summary[0]['remaining_slots'] == 0
        assert summary[0]['max_allowed'] == 0
