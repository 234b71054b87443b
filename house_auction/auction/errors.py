"""
Exceptions raised by the bidding and settlement engine.

Every rejection is raised before any record is written, so callers can map
these straight to a response without worrying about partial state.
"""

from typing import Optional


class AuctionError(Exception):
    """Base class for all auction engine errors."""

    status_code = 500


class NotFoundError(AuctionError):
    """A referenced player, team or bid does not exist."""

    status_code = 404


class InvalidStateError(AuctionError):
    """The auction session is in a state that forbids the operation."""

    status_code = 400


class BidTooHighError(AuctionError):
    """A raise would push the team past its affordability cap."""

    status_code = 400

    def __init__(self, max_allowed: int, next_amount: Optional[int] = None):
        self.max_allowed = max_allowed
        self.next_amount = next_amount
        super().__init__(
            f"Max bid reached: next amount {next_amount} exceeds allowed {max_allowed}"
        )


class UnauthorizedError(AuctionError):
    """Admin operation attempted without a valid admin credential."""

    status_code = 401


class StoreFailureError(AuctionError):
    """The entity store could not persist a write, or lost a write race."""

    status_code = 503
