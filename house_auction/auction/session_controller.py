"""
Drive the auction session through its transitions.

The AuctionSessionController is the only code that moves the current-player
pointer and the only code that appends to a team's purchases. It is
responsible for:
- Selecting a player for bidding (Idle/InAuction -> InAuction)
- Resetting the session (any -> Idle)
- Settling a sale atomically (InAuction -> Idle)
- Admin settings and wallet adjustments
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from .bid_ledger import BidLedger
from .broadcaster import (
    CURRENT_PLAYER_CHANGED,
    PLAYER_SOLD,
    SETTINGS_UPDATED,
    Broadcaster,
    safe_publish,
)
from .entity_store import PLAYERS, SETTINGS, TEAMS, EntityStore
from .errors import InvalidStateError, NotFoundError, StoreFailureError
from .models import AuctionSettings, Player, Purchase, Team
from .sale_log import SaleLog
from . import repository

logger = logging.getLogger(__name__)


@dataclass
class SaleResult:
    """Outcome of a settled sale."""

    player_id: str
    player_name: str
    team_id: str
    team_name: str
    price: int
    sold_at: datetime

    def to_dict(self) -> dict:
        return {
            'player_id': self.player_id,
            'player_name': self.player_name,
            'team': {'id': self.team_id, 'name': self.team_name},
            'price': self.price,
            'sold_at': self.sold_at.isoformat(),
        }


class AuctionSessionController:
    """Owns the session pointer and settles sales."""

    def __init__(
        self,
        store: EntityStore,
        ledger: BidLedger,
        broadcaster: Optional[Broadcaster] = None,
        sale_log: Optional[SaleLog] = None
    ):
        """
        Initialize the controller.

        Args:
            store: Entity store shared with the ledger
            ledger: Bid ledger that owns bid records
            broadcaster: Receives session events (optional)
            sale_log: Audit log appended after each sale (optional)
        """
        self.store = store
        self.ledger = ledger
        self.broadcaster = broadcaster
        self.sale_log = sale_log

    # ===== Session transitions =====

    def select_player(self, player_id: str) -> Player:
        """
        Put a player up for auction, discarding any stale bids.

        Valid from any state. Bids of the previously selected player and any
        leftover bids of the newly selected player are deleted, so a new round
        never starts from old state.

        Raises:
            NotFoundError: If the player does not exist
        """
        with self.store.transaction():
            player = repository.get_player(self.store, player_id)
            settings = repository.get_settings(self.store)
            previous_id = settings.current_player_id

            self.store.update_one(
                SETTINGS, {'id': settings.id},
                patch={'current_player_id': player.id}
            )
            if previous_id and previous_id != player.id:
                self.ledger.clear_bids_for_player(previous_id)
            self.ledger.clear_bids_for_player(player.id)

        logger.info(f"Current player → {player.name} ({player.id})")
        safe_publish(self.broadcaster, CURRENT_PLAYER_CHANGED, {'playerId': player.id})
        return player

    def reset(self) -> None:
        """Clear the current player and remove every active bid."""
        with self.store.transaction():
            settings = repository.get_settings(self.store)
            self.store.update_one(
                SETTINGS, {'id': settings.id},
                patch={'current_player_id': None}
            )
            self.ledger.clear_active_bids()

        logger.info("Auction session reset")
        safe_publish(self.broadcaster, CURRENT_PLAYER_CHANGED, {'playerId': None})

    def settle_sale(self) -> SaleResult:
        """
        Sell the current player to the leading team.

        All writes happen in one store transaction, in this order:
        1. Mark the player sold (team, price, time)
        2. Append the purchase to the winning team
        3. Deactivate the bid (kept for read-back)
        4. Clear the current-player pointer

        Returns:
            SaleResult for the settled player

        Raises:
            InvalidStateError: No current player, player already sold,
                               no bids placed, or winner's roster full
            NotFoundError: Current player or winning team vanished
        """
        with self.store.transaction():
            settings = repository.get_settings(self.store)
            if not settings.in_auction:
                raise InvalidStateError("No active player to sell")

            player = repository.get_player(self.store, settings.current_player_id)
            if player.sold:
                raise InvalidStateError(f"Player {player.name} is already sold")

            bid = self.ledger.get_active_bid(player.id)
            if bid is None or not bid.current_team_id:
                raise InvalidStateError("No bids placed")

            team = repository.get_team(self.store, bid.current_team_id)
            if team.remaining_slots() == 0:
                raise InvalidStateError(f"Team {team.name} roster is full")

            price = bid.current_amount
            sold_at = datetime.now()

            if self.store.update_one(
                PLAYERS, {'id': player.id, 'sold': False},
                patch={
                    'sold': True,
                    'sold_to_team': team.id,
                    'sold_price': price,
                    'sold_at': sold_at.isoformat(),
                }
            ) is None:
                raise StoreFailureError(f"Player {player.id} changed during settlement")

            self.store.update_one(
                TEAMS, {'id': team.id},
                push={'purchases': Purchase(player_id=player.id, price=price, at=sold_at).to_dict()}
            )
            self.ledger.deactivate_bid(bid.id)
            self.store.update_one(
                SETTINGS, {'id': settings.id},
                patch={'current_player_id': None}
            )

        logger.info(f"SOLD: {player.name} → {team.name} ({price})")

        result = SaleResult(
            player_id=player.id,
            player_name=player.name,
            team_id=team.id,
            team_name=team.name,
            price=price,
            sold_at=sold_at
        )
        safe_publish(self.broadcaster, PLAYER_SOLD, {
            'playerId': player.id,
            'teamName': team.name,
            'price': price,
        })
        self._log_sale(result)
        return result

    # ===== Admin updates =====

    def update_settings(
        self,
        base_price: Optional[int] = None,
        min_increment: Optional[int] = None,
        max_players_per_team: Optional[int] = None,
        auction_active: Optional[bool] = None
    ) -> AuctionSettings:
        """
        Apply a partial settings update and announce the new pricing.

        Raises:
            ValueError: If a numeric setting is not positive
        """
        patch = {}
        for key, value in (
            ('base_price', base_price),
            ('min_increment', min_increment),
            ('max_players_per_team', max_players_per_team),
        ):
            if value is None:
                continue
            if value <= 0:
                raise ValueError(f"{key} must be positive, got {value}")
            patch[key] = value
        if auction_active is not None:
            patch['auction_active'] = auction_active

        settings = repository.get_settings(self.store)
        if patch:
            document = self.store.update_one(SETTINGS, {'id': settings.id}, patch=patch)
            settings = AuctionSettings.from_dict(document)
            logger.info(f"Settings updated: {patch}")

        safe_publish(self.broadcaster, SETTINGS_UPDATED, {
            'minIncrement': settings.min_increment,
            'basePrice': settings.base_price,
        })
        return settings

    def set_team_wallet(self, team_id: str, amount: int) -> Team:
        """
        Set a team's absolute wallet.

        Raises:
            ValueError: If amount is negative
            NotFoundError: If the team does not exist
        """
        if amount < 0:
            raise ValueError(f"Wallet must be non-negative, got {amount}")

        document = self.store.update_one(TEAMS, {'id': team_id}, patch={'wallet': amount})
        if document is None:
            raise NotFoundError(f"Team {team_id} not found")

        team = Team.from_dict(document)
        logger.info(f"Wallet for {team.name} set to {amount} (spent {team.total_spent()})")
        return team

    def register_player(self, player: Player) -> Player:
        """
        Add a player to the pool.

        Raises:
            ValueError: If the player fails validation
        """
        player.validate()
        self.store.create(PLAYERS, player.to_dict())
        logger.info(f"Registered player {player.name} ({player.house}, batch {player.batch})")
        return player

    def register_team(self, team: Team) -> Team:
        """
        Add a team.

        Raises:
            ValueError: If the name or join code is missing or already taken
        """
        if not team.name or not team.code:
            raise ValueError("Team name and code are required")
        if team.max_players <= 0:
            raise ValueError(f"max_players must be positive, got {team.max_players}")

        with self.store.transaction():
            if self.store.find_one(TEAMS, {'name': team.name}):
                raise ValueError(f"Team name '{team.name}' already exists")
            if self.store.find_one(TEAMS, {'code': team.code}):
                raise ValueError("Team code already in use")
            self.store.create(TEAMS, team.to_dict())

        logger.info(f"Registered team {team.name} (wallet {team.wallet})")
        return team

    def _log_sale(self, result: SaleResult) -> None:
        if self.sale_log is None:
            return
        try:
            self.sale_log.record_sale(
                player_id=result.player_id,
                player_name=result.player_name,
                team_id=result.team_id,
                team_name=result.team_name,
                price=result.price,
                timestamp=result.sold_at
            )
        except OSError as e:
            logger.error(f"Failed to write sale log: {e}")
