"""
Affordability rules for team bids.

A team must always be able to fill the rest of its roster at base price, so
the most it may bid on the current player is its remaining wallet minus a
base-price reserve for every other open slot.
"""

import logging
from typing import Dict, Iterable, List, Tuple

from .models import Team

logger = logging.getLogger(__name__)


def compute_max_allowed_bid(remaining_wallet: int, remaining_slots: int, base_price: int) -> int:
    """
    Compute the spendable ceiling for the player currently up for bid.

    Algorithm:
    1. others_to_fill = max(0, remaining_slots - 1)
    2. max_allowed = remaining_wallet - others_to_fill * base_price
    3. Floor at 0

    Args:
        remaining_wallet: Wallet left after all purchases
        remaining_slots: Open roster spots, including the one being bid for
        base_price: League base price reserved per remaining slot

    Returns:
        Non-negative maximum bid
    """
    others_to_fill = max(0, (remaining_slots or 0) - 1)
    return max(0, remaining_wallet - others_to_fill * base_price)


def team_resources(team: Team) -> Tuple[int, int]:
    """Return (remaining_wallet, remaining_slots) derived from purchases."""
    return team.remaining_wallet(), team.remaining_slots()


def max_allowed_for_team(team: Team, base_price: int) -> int:
    """Affordability cap for a team at its current purchase state."""
    remaining_wallet, remaining_slots = team_resources(team)
    return compute_max_allowed_bid(remaining_wallet, remaining_slots, base_price)


def calculate_team_resources(teams: Iterable[Team], base_price: int) -> List[Dict]:
    """
    Summarize remaining budget and roster capacity for every team.

    Args:
        teams: Teams to summarize
        base_price: League base price used for the affordability cap

    Returns:
        List of team resource dicts sorted by remaining wallet descending
    """
    summary = []
    for team in teams:
        remaining_wallet, remaining_slots = team_resources(team)
        summary.append({
            'id': team.id,
            'name': team.name,
            'wallet': team.wallet,
            'max_players': team.max_players,
            'purchases': len(team.purchases),
            'spent': team.total_spent(),
            'remaining': remaining_wallet,
            'remaining_slots': remaining_slots,
            'max_allowed': (
                compute_max_allowed_bid(remaining_wallet, remaining_slots, base_price)
                if remaining_slots > 0 else 0
            ),
        })

    summary.sort(key=lambda t: t['remaining'], reverse=True)

    logger.debug(f"Calculated resources for {len(summary)} teams")
    return summary
