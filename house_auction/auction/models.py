"""
Core records for the live auction.

These dataclasses mirror the documents kept in the entity store: players up
for auction, teams with their purchase history, the settings singleton that
carries the current-player pointer, and the active bid for that player.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional
import uuid

from .. import config


def new_id() -> str:
    """Generate a document id."""
    return uuid.uuid4().hex


def _parse_time(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _format_time(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class Player:
    """A registered player that can be put up for auction."""

    name: str
    house: str                       # One of config.HOUSES
    strength: str                    # One of config.STRENGTHS
    batch: int                       # config.MIN_BATCH..config.MAX_BATCH
    base_price: int = config.DEFAULT_PLAYER_BASE_PRICE
    id: str = field(default_factory=new_id)
    phone_number: str = ''
    total_match_played: int = 0
    total_score: int = 0
    total_wicket: int = 0
    photo_url: str = ''
    is_captain: bool = False
    is_icon: bool = False
    is_retained: bool = False
    is_traded: bool = False
    sold: bool = False
    sold_to_team: Optional[str] = None   # Team id, set only when sold
    sold_price: Optional[int] = None     # Set only when sold
    sold_at: Optional[datetime] = None   # Settlement time, drives "last sold"

    def validate(self) -> None:
        """
        Check categorical fields and the sold invariant.

        Raises:
            ValueError: If any field is outside its allowed range
        """
        if not self.name or not self.name.strip():
            raise ValueError("Player name is required")
        if self.house not in config.HOUSES:
            raise ValueError(
                f"Invalid house '{self.house}' (must be one of: {', '.join(config.HOUSES)})"
            )
        if self.strength not in config.STRENGTHS:
            raise ValueError(
                f"Invalid strength '{self.strength}' "
                f"(must be one of: {', '.join(config.STRENGTHS)})"
            )
        if not config.MIN_BATCH <= self.batch <= config.MAX_BATCH:
            raise ValueError(
                f"Invalid batch {self.batch} "
                f"(must be {config.MIN_BATCH}-{config.MAX_BATCH})"
            )
        if self.base_price <= 0:
            raise ValueError(f"Base price must be positive, got {self.base_price}")

        has_sale = self.sold_to_team is not None and self.sold_price is not None
        if self.sold != has_sale:
            raise ValueError(
                f"Player {self.id} sold flag does not match sale fields"
            )

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            'id': self.id,
            'name': self.name,
            'house': self.house,
            'strength': self.strength,
            'batch': self.batch,
            'base_price': self.base_price,
            'phone_number': self.phone_number,
            'total_match_played': self.total_match_played,
            'total_score': self.total_score,
            'total_wicket': self.total_wicket,
            'photo_url': self.photo_url,
            'is_captain': self.is_captain,
            'is_icon': self.is_icon,
            'is_retained': self.is_retained,
            'is_traded': self.is_traded,
            'sold': self.sold,
            'sold_to_team': self.sold_to_team,
            'sold_price': self.sold_price,
            'sold_at': _format_time(self.sold_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Player':
        """Create Player from dictionary."""
        return cls(
            id=data['id'],
            name=data['name'],
            house=data['house'],
            strength=data['strength'],
            batch=data['batch'],
            base_price=data.get('base_price', config.DEFAULT_PLAYER_BASE_PRICE),
            phone_number=data.get('phone_number', ''),
            total_match_played=data.get('total_match_played', 0),
            total_score=data.get('total_score', 0),
            total_wicket=data.get('total_wicket', 0),
            photo_url=data.get('photo_url', ''),
            is_captain=data.get('is_captain', False),
            is_icon=data.get('is_icon', False),
            is_retained=data.get('is_retained', False),
            is_traded=data.get('is_traded', False),
            sold=data.get('sold', False),
            sold_to_team=data.get('sold_to_team'),
            sold_price=data.get('sold_price'),
            sold_at=_parse_time(data.get('sold_at')),
        )


@dataclass
class Purchase:
    """A player bought by a team at settlement."""

    player_id: str
    price: int
    at: datetime

    def to_dict(self) -> dict:
        return {
            'player_id': self.player_id,
            'price': self.price,
            'at': self.at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Purchase':
        return cls(
            player_id=data['player_id'],
            price=data['price'],
            at=datetime.fromisoformat(data['at']),
        )


@dataclass
class Team:
    """A bidding team. Spend is always derived from purchases."""

    name: str
    code: str                                   # Join code used by the owner
    wallet: int = config.DEFAULT_TEAM_WALLET    # Total budget, never decremented
    max_players: int = config.DEFAULT_TEAM_MAX_PLAYERS
    id: str = field(default_factory=new_id)
    logo_url: Optional[str] = None
    purchases: List[Purchase] = field(default_factory=list)

    def total_spent(self) -> int:
        """Calculate total spent so far."""
        return sum(purchase.price for purchase in self.purchases)

    def remaining_wallet(self) -> int:
        """Wallet left after purchases (never negative)."""
        return max(0, self.wallet - self.total_spent())

    def remaining_slots(self) -> int:
        """Roster spots still open."""
        return max(0, self.max_players - len(self.purchases))

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            'id': self.id,
            'name': self.name,
            'code': self.code,
            'wallet': self.wallet,
            'max_players': self.max_players,
            'logo_url': self.logo_url,
            'purchases': [purchase.to_dict() for purchase in self.purchases],
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Team':
        """Create Team from dictionary."""
        return cls(
            id=data['id'],
            name=data['name'],
            code=data['code'],
            wallet=data.get('wallet', config.DEFAULT_TEAM_WALLET),
            max_players=data.get('max_players', config.DEFAULT_TEAM_MAX_PLAYERS),
            logo_url=data.get('logo_url'),
            purchases=[Purchase.from_dict(p) for p in data.get('purchases', [])],
        )


@dataclass
class AuctionSettings:
    """Global auction settings and the session pointer (singleton)."""

    base_price: int = config.DEFAULT_BASE_PRICE
    min_increment: int = config.DEFAULT_MIN_INCREMENT
    max_players_per_team: int = config.DEFAULT_MAX_PLAYERS_PER_TEAM
    current_player_id: Optional[str] = None
    auction_active: bool = True
    id: str = 'settings'

    @property
    def in_auction(self) -> bool:
        """True while a player is up for bidding."""
        return self.current_player_id is not None

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'base_price': self.base_price,
            'min_increment': self.min_increment,
            'max_players_per_team': self.max_players_per_team,
            'current_player_id': self.current_player_id,
            'auction_active': self.auction_active,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'AuctionSettings':
        return cls(
            id=data.get('id', 'settings'),
            base_price=data.get('base_price', config.DEFAULT_BASE_PRICE),
            min_increment=data.get('min_increment', config.DEFAULT_MIN_INCREMENT),
            max_players_per_team=data.get(
                'max_players_per_team', config.DEFAULT_MAX_PLAYERS_PER_TEAM
            ),
            current_player_id=data.get('current_player_id'),
            auction_active=data.get('auction_active', True),
        )


@dataclass
class BidHistoryEntry:
    """One accepted raise."""

    team_id: str
    amount: int
    at: datetime

    def to_dict(self) -> dict:
        return {
            'team_id': self.team_id,
            'amount': self.amount,
            'at': self.at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'BidHistoryEntry':
        return cls(
            team_id=data['team_id'],
            amount=data['amount'],
            at=datetime.fromisoformat(data['at']),
        )


@dataclass
class ActiveBid:
    """Live bidding record for the player currently up for auction."""

    player_id: str
    current_amount: int
    current_team_id: Optional[str] = None   # Unset until the first raise
    history: List[BidHistoryEntry] = field(default_factory=list)
    active: bool = True
    id: str = field(default_factory=new_id)

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'player_id': self.player_id,
            'current_amount': self.current_amount,
            'current_team_id': self.current_team_id,
            'history': [entry.to_dict() for entry in self.history],
            'active': self.active,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'ActiveBid':
        return cls(
            id=data['id'],
            player_id=data['player_id'],
            current_amount=data['current_amount'],
            current_team_id=data.get('current_team_id'),
            history=[BidHistoryEntry.from_dict(e) for e in data.get('history', [])],
            active=data.get('active', True),
        )
