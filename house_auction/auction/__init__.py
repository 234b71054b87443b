"""
Live auction subsystem.

This package holds the bidding and settlement engine (affordability cap, bid
ledger, session controller), the entity store it runs on, and the HTTP and
WebSocket surface that exposes it to admins, team owners and viewers.
"""

from .affordability import compute_max_allowed_bid, calculate_team_resources
from .api_server import create_app
from .bid_ledger import BidLedger, RaiseResult
from .broadcaster import Broadcaster, WebSocketBroadcaster
from .entity_store import CheckpointLock, EntityStore
from .errors import (
    AuctionError,
    BidTooHighError,
    InvalidStateError,
    NotFoundError,
    StoreFailureError,
    UnauthorizedError,
)
from .models import ActiveBid, AuctionSettings, Player, Team
from .sale_log import SaleLog, SaleRecord
from .session_controller import AuctionSessionController, SaleResult

__all__ = [
    'compute_max_allowed_bid',
    'calculate_team_resources',
    'create_app',
    'BidLedger',
    'RaiseResult',
    'Broadcaster',
    'WebSocketBroadcaster',
    'CheckpointLock',
    'EntityStore',
    'AuctionError',
    'BidTooHighError',
    'InvalidStateError',
    'NotFoundError',
    'StoreFailureError',
    'UnauthorizedError',
    'ActiveBid',
    'AuctionSettings',
    'Player',
    'Team',
    'SaleLog',
    'SaleRecord',
    'AuctionSessionController',
    'SaleResult',
]
