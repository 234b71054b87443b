"""
FastAPI dependencies shared by the public and admin routers.
"""

import logging
import secrets
from typing import Optional

from fastapi import Header, HTTPException, Request

from .. import config
from .bid_ledger import BidLedger
from .entity_store import EntityStore
from .errors import AuctionError, BidTooHighError, UnauthorizedError
from .session_controller import AuctionSessionController

logger = logging.getLogger(__name__)


def get_store(request: Request) -> EntityStore:
    return request.app.state.store


def get_ledger(request: Request) -> BidLedger:
    return request.app.state.ledger


def get_controller(request: Request) -> AuctionSessionController:
    return request.app.state.controller


def require_admin(
    request: Request,
    x_admin_token: Optional[str] = Header(None, alias=config.ADMIN_TOKEN_HEADER)
) -> None:
    """
    Reject the request unless it carries the configured admin token.

    Raises:
        500 Internal Server Error: No admin token configured
        401 Unauthorized: Missing or wrong token
    """
    required = request.app.state.admin_token
    if not required:
        logger.error("Admin request rejected: ADMIN_TOKEN not configured")
        raise HTTPException(status_code=500, detail="ADMIN_TOKEN not configured")

    try:
        check_admin_token(x_admin_token, required)
    except UnauthorizedError as e:
        logger.warning(f"Unauthorized admin request to {request.url.path}")
        raise to_http_exception(e)


def check_admin_token(provided: Optional[str], required: str) -> None:
    """
    Raises:
        UnauthorizedError: If the provided token does not match
    """
    if not provided or not secrets.compare_digest(provided.encode(), required.encode()):
        raise UnauthorizedError("Unauthorized")


def to_http_exception(error: AuctionError) -> HTTPException:
    """Map an engine error to the HTTP error returned to the caller."""
    if isinstance(error, BidTooHighError):
        return HTTPException(
            status_code=error.status_code,
            detail={'error': 'Max bid reached', 'maxAllowed': error.max_allowed}
        )
    return HTTPException(status_code=error.status_code, detail=str(error))
