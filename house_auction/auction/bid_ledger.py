"""
Bid ledger for the player currently up for auction.

The BidLedger is the only writer of bid records. It is responsible for:
- Validating raises against the team's affordability cap
- Applying each raise as exactly one global increment
- Serializing concurrent raises on the same player
- Clearing or deactivating bids when the session moves on
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from threading import Lock
from typing import Dict, Optional

from .affordability import compute_max_allowed_bid, team_resources
from .broadcaster import BID_UPDATED, Broadcaster, safe_publish
from .entity_store import BIDS, EntityStore
from .errors import BidTooHighError, InvalidStateError, NotFoundError, StoreFailureError
from .models import ActiveBid, BidHistoryEntry, Player, AuctionSettings
from . import repository

logger = logging.getLogger(__name__)


@dataclass
class RaiseResult:
    """Outcome of an accepted raise."""

    player_id: str
    amount: int
    team_id: str
    team_name: str
    team_logo_url: Optional[str]
    max_allowed: int


def opening_amount(player: Player, settings: AuctionSettings) -> int:
    """
    Amount a fresh bid starts from before its first increment.

    Bids are created lazily on the first accepted raise. Until then the
    player's own base price is the implied current amount, falling back to
    the global base price when the player has none.
    """
    return player.base_price or settings.base_price


class BidLedger:
    """Owns the active bid records and applies raises."""

    def __init__(self, store: EntityStore, broadcaster: Optional[Broadcaster] = None):
        """
        Initialize the ledger.

        Args:
            store: Entity store holding players, teams, bids and settings
            broadcaster: Receives bid_updated events (optional)
        """
        self.store = store
        self.broadcaster = broadcaster
        self._player_locks: Dict[str, Lock] = {}
        self._locks_guard = Lock()

    def get_active_bid(self, player_id: str) -> Optional[ActiveBid]:
        """Current leading amount/team for a player, if anyone has bid."""
        return repository.find_active_bid(self.store, player_id)

    def place_raise(self, team_code: str) -> RaiseResult:
        """
        Raise the bid on the current player by one increment for a team.

        Steps:
        1. Resolve the team by join code
        2. Require a current, unsold player
        3. Load the active bid (or the implied opening amount)
        4. Compute the team's affordability cap
        5. Reject if current + increment exceeds the cap
        6. Commit amount, leading team and history in one write
        7. Publish bid_updated

        Args:
            team_code: Join code of the raising team

        Returns:
            RaiseResult with the new amount and leader

        Raises:
            NotFoundError: Unknown team code
            InvalidStateError: No current player, player sold, or auction paused
            BidTooHighError: Raise would exceed the affordability cap
            StoreFailureError: The bid changed underneath the commit
        """
        team = repository.get_team_by_code(self.store, team_code)
        settings = repository.get_settings(self.store)
        player_id = self._require_open_player(settings).id

        # Concurrent raises for the same player queue here and re-read state
        with self._player_lock(player_id):
            settings = repository.get_settings(self.store)
            player = self._require_open_player(settings)
            team = repository.get_team(self.store, team.id)
            bid = self.get_active_bid(player.id)

            current_amount = bid.current_amount if bid else opening_amount(player, settings)
            next_amount = current_amount + settings.min_increment

            remaining_wallet, remaining_slots = team_resources(team)
            if remaining_slots == 0:
                logger.warning(f"Raise rejected: {team.name} roster is full")
                raise BidTooHighError(0, next_amount)

            max_allowed = compute_max_allowed_bid(
                remaining_wallet, remaining_slots, settings.base_price
            )
            if next_amount > max_allowed:
                logger.warning(
                    f"Raise rejected: {team.name} next {next_amount} > allowed {max_allowed}"
                )
                raise BidTooHighError(max_allowed, next_amount)

            entry = BidHistoryEntry(team_id=team.id, amount=next_amount, at=datetime.now())
            self._commit_raise(player, bid, entry)

        logger.info(f"Bid on {player.name}: {next_amount} by {team.name}")

        result = RaiseResult(
            player_id=player.id,
            amount=next_amount,
            team_id=team.id,
            team_name=team.name,
            team_logo_url=team.logo_url,
            max_allowed=max_allowed
        )
        safe_publish(self.broadcaster, BID_UPDATED, {
            'playerId': result.player_id,
            'amount': result.amount,
            'teamName': result.team_name,
            'teamLogoUrl': result.team_logo_url,
        })
        return result

    def clear_bids_for_player(self, player_id: str) -> int:
        """Delete every bid for a player so a new round starts clean."""
        removed = self.store.delete_many(BIDS, {'player_id': player_id})
        if removed:
            logger.info(f"Cleared {removed} bid(s) for player {player_id}")
        return removed

    def clear_active_bids(self) -> int:
        """Delete every active bid (session reset)."""
        removed = self.store.delete_many(BIDS, {'active': True})
        if removed:
            logger.info(f"Cleared {removed} active bid(s)")
        return removed

    def deactivate_bid(self, bid_id: str) -> ActiveBid:
        """
        Close a bid without deleting it, keeping its history for read-back.

        Raises:
            NotFoundError: If the bid does not exist
        """
        document = self.store.update_one(BIDS, {'id': bid_id}, patch={'active': False})
        if document is None:
            raise NotFoundError(f"Bid {bid_id} not found")
        logger.debug(f"Deactivated bid {bid_id}")
        return ActiveBid.from_dict(document)

    def _require_open_player(self, settings: AuctionSettings) -> Player:
        if not settings.current_player_id:
            raise InvalidStateError("No active player")
        if not settings.auction_active:
            raise InvalidStateError("Auction is paused")
        player = repository.find_player(self.store, settings.current_player_id)
        if player is None or player.sold:
            raise InvalidStateError("Player not available")
        return player

    def _commit_raise(
        self,
        player: Player,
        bid: Optional[ActiveBid],
        entry: BidHistoryEntry
    ) -> None:
        with self.store.transaction():
            # The session may have moved on while we computed the cap
            settings = repository.get_settings(self.store)
            if settings.current_player_id != player.id:
                raise InvalidStateError("Player is no longer up for auction")

            if bid is None:
                if self.get_active_bid(player.id) is not None:
                    raise StoreFailureError("Bid was opened concurrently, retry")
                self.store.create(BIDS, ActiveBid(
                    player_id=player.id,
                    current_amount=entry.amount,
                    current_team_id=entry.team_id,
                    history=[entry]
                ).to_dict())
                return

            updated = self.store.update_one(
                BIDS,
                {'id': bid.id, 'active': True, 'current_amount': bid.current_amount},
                patch={'current_amount': entry.amount, 'current_team_id': entry.team_id},
                push={'history': entry.to_dict()}
            )
            if updated is None:
                raise StoreFailureError("Bid changed concurrently, retry")

    def _player_lock(self, player_id: str) -> Lock:
        with self._locks_guard:
            lock = self._player_locks.get(player_id)
            if lock is None:
                lock = self._player_locks[player_id] = Lock()
            return lock
