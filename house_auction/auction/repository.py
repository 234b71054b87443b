"""
Typed reads over the entity store.

Converts store documents to model instances so the ledger, the session
controller and the state projection all read records the same way.
"""

from datetime import datetime
from typing import List, Optional

from .entity_store import BIDS, PLAYERS, SETTINGS, TEAMS, EntityStore
from .errors import NotFoundError
from .models import ActiveBid, AuctionSettings, Player, Team

SETTINGS_ID = 'settings'


def get_settings(store: EntityStore) -> AuctionSettings:
    """
    Load the settings singleton, creating it with defaults on first use.
    """
    document = store.find_by_id(SETTINGS, SETTINGS_ID)
    if document is None:
        with store.transaction():
            document = (
                store.find_by_id(SETTINGS, SETTINGS_ID)
                or store.create(SETTINGS, AuctionSettings(id=SETTINGS_ID).to_dict())
            )
    return AuctionSettings.from_dict(document)


def find_player(store: EntityStore, player_id: Optional[str]) -> Optional[Player]:
    if not player_id:
        return None
    document = store.find_by_id(PLAYERS, player_id)
    return Player.from_dict(document) if document else None


def get_player(store: EntityStore, player_id: str) -> Player:
    """
    Raises:
        NotFoundError: If the player does not exist
    """
    player = find_player(store, player_id)
    if player is None:
        raise NotFoundError(f"Player {player_id} not found")
    return player


def find_team(store: EntityStore, team_id: Optional[str]) -> Optional[Team]:
    if not team_id:
        return None
    document = store.find_by_id(TEAMS, team_id)
    return Team.from_dict(document) if document else None


def get_team(store: EntityStore, team_id: str) -> Team:
    """
    Raises:
        NotFoundError: If the team does not exist
    """
    team = find_team(store, team_id)
    if team is None:
        raise NotFoundError(f"Team {team_id} not found")
    return team


def get_team_by_code(store: EntityStore, code: str) -> Team:
    """
    Raises:
        NotFoundError: If no team uses this join code
    """
    document = store.find_one(TEAMS, {'code': code}) if code else None
    if document is None:
        raise NotFoundError("Invalid team code")
    return Team.from_dict(document)


def list_players(store: EntityStore, sold: Optional[bool] = None) -> List[Player]:
    filter = {'sold': sold} if sold is not None else None
    return [Player.from_dict(d) for d in store.find(PLAYERS, filter)]


def list_teams(store: EntityStore) -> List[Team]:
    return [Team.from_dict(d) for d in store.find(TEAMS)]


def find_active_bid(store: EntityStore, player_id: str) -> Optional[ActiveBid]:
    document = store.find_one(BIDS, {'player_id': player_id, 'active': True})
    return ActiveBid.from_dict(document) if document else None


def find_last_sold(store: EntityStore) -> Optional[Player]:
    """Most recently settled player, by settlement time."""
    sold = store.find(PLAYERS, {'sold': True}, sort_key=_sold_time, reverse=True)
    return Player.from_dict(sold[0]) if sold else None


def _sold_time(document: dict) -> datetime:
    sold_at = document.get('sold_at')
    return datetime.fromisoformat(sold_at) if sold_at else datetime.min
