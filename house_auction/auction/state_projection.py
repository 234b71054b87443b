"""
Read models handed to viewers and team owners.

Each projection is assembled under one store read lock, so the settings,
current player, active bid and last sale in a snapshot always belong to the
same moment.
"""

import logging
from typing import Dict, List, Optional

from .affordability import calculate_team_resources, max_allowed_for_team
from .entity_store import EntityStore
from .models import ActiveBid, Player, Team
from . import repository

logger = logging.getLogger(__name__)


def public_player(player: Player) -> Dict:
    """Player record for viewers, with the phone number withheld."""
    data = player.to_dict()
    data.pop('phone_number', None)
    return data


def bid_view(store: EntityStore, bid: Optional[ActiveBid]) -> Optional[Dict]:
    """Current amount and leader of a bid, or None when nobody has bid."""
    if bid is None:
        return None
    team = repository.find_team(store, bid.current_team_id)
    return {
        'amount': bid.current_amount,
        'team_name': team.name if team else None,
        'team_logo_url': team.logo_url if team else None,
    }


def last_sold_view(store: EntityStore) -> Optional[Dict]:
    player = repository.find_last_sold(store)
    if player is None:
        return None
    team = repository.find_team(store, player.sold_to_team)
    return {
        'player_id': player.id,
        'player_name': player.name,
        'team_name': team.name if team else None,
        'price': player.sold_price,
    }


def build_auction_snapshot(store: EntityStore) -> Dict:
    """
    Assemble the public auction state.

    Returns:
        Dict with:
        - base_price, min_increment: current pricing
        - player: the player up for auction (or None)
        - current_bid: amount/team of the active bid (or None)
        - last_sold: most recent sale, only while no player is up
    """
    with store.consistent_read():
        settings = repository.get_settings(store)
        player = repository.find_player(store, settings.current_player_id)
        bid = repository.find_active_bid(store, player.id) if player else None

        return {
            'base_price': settings.base_price,
            'min_increment': settings.min_increment,
            'player': public_player(player) if player else None,
            'current_bid': bid_view(store, bid),
            'last_sold': last_sold_view(store) if player is None else None,
        }


def team_view(team: Team, base_price: int) -> Dict:
    """Owner-facing budget view with derived remaining wallet and slots."""
    remaining_slots = team.remaining_slots()
    return {
        'id': team.id,
        'name': team.name,
        'logo_url': team.logo_url,
        'wallet': team.wallet,
        'max_players': team.max_players,
        'remaining': team.remaining_wallet(),
        'remaining_slots': remaining_slots,
        'max_allowed': max_allowed_for_team(team, base_price) if remaining_slots > 0 else 0,
    }


def build_team_login(store: EntityStore, code: str) -> Dict:
    """
    Team view plus the auction snapshot, for an owner joining with a code.

    Raises:
        NotFoundError: If the code matches no team
    """
    with store.consistent_read():
        team = repository.get_team_by_code(store, code)
        snapshot = build_auction_snapshot(store)
        return {
            'team': team_view(team, snapshot['base_price']),
            **snapshot,
        }


def build_team_detail(store: EntityStore, team_id: str) -> Dict:
    """
    Team with its purchases resolved to player summaries.

    Raises:
        NotFoundError: If the team does not exist
    """
    with store.consistent_read():
        team = repository.get_team(store, team_id)
        settings = repository.get_settings(store)

        purchases = []
        for purchase in team.purchases:
            player = repository.find_player(store, purchase.player_id)
            purchases.append({
                'player_id': purchase.player_id,
                'player_name': player.name if player else None,
                'house': player.house if player else None,
                'strength': player.strength if player else None,
                'batch': player.batch if player else None,
                'photo_url': player.photo_url if player else None,
                'price': purchase.price,
                'at': purchase.at.isoformat(),
            })

        return {
            **team_view(team, settings.base_price),
            'spent': team.total_spent(),
            'purchases': purchases,
        }


def build_team_summaries(store: EntityStore) -> List[Dict]:
    """Resource summary for every team, richest first."""
    with store.consistent_read():
        settings = repository.get_settings(store)
        return calculate_team_resources(repository.list_teams(store), settings.base_price)
