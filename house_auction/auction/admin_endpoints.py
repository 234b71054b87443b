"""
Admin endpoints for running the auction.

Every route here sits behind the admin-token check, which runs before any
state is read or written:
- GET/PUT /api/admin/settings
- POST /api/admin/current-player
- POST /api/admin/sell
- POST /api/admin/reset
- PUT /api/admin/team/{team_id}/wallet
- POST /api/admin/players, POST /api/admin/teams
- POST /api/admin/players/import
- GET /api/admin/sales
"""

import logging
from pathlib import Path
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request

from .api_serializers import (
    CurrentPlayerResponse,
    ImportRequest,
    ImportResponse,
    PlayerCreateRequest,
    PlayerView,
    SaleRecordView,
    SaleResponse,
    SelectPlayerRequest,
    SettingsResponse,
    SettingsUpdateRequest,
    TeamCreateRequest,
    TeamCreatedResponse,
    TeamDetailResponse,
    WalletUpdateRequest,
    serialize_settings,
)
from .dependencies import get_controller, get_store, require_admin, to_http_exception
from .errors import AuctionError
from .models import Team
from .session_controller import AuctionSessionController
from .entity_store import EntityStore
from .state_projection import build_team_detail, public_player
from . import repository
from .. import player_import

logger = logging.getLogger(__name__)

admin_router = APIRouter(dependencies=[Depends(require_admin)], tags=["Admin"])


@admin_router.get("/settings", response_model=SettingsResponse)
def get_settings(store: EntityStore = Depends(get_store)):
    """Current auction settings, including the session pointer."""
    return serialize_settings(repository.get_settings(store))


@admin_router.put("/settings", response_model=SettingsResponse)
def update_settings(
    request: SettingsUpdateRequest,
    controller: AuctionSessionController = Depends(get_controller)
):
    """
    Update pricing and roster defaults.

    Publishes settings_updated with the new base price and increment.
    """
    try:
        settings = controller.update_settings(**request.model_dump())
        return serialize_settings(settings)

    except (AuctionError, ValueError) as e:
        logger.warning(f"Settings update rejected: {e}")
        raise _http_error(e)

    except Exception as e:
        logger.error(f"Failed to update settings: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to update settings: {e}")


@admin_router.post("/current-player", response_model=CurrentPlayerResponse)
def set_current_player(
    request: SelectPlayerRequest,
    controller: AuctionSessionController = Depends(get_controller)
):
    """
    Put a player up for auction.

    Any earlier bids for that player are discarded.

    Raises:
        404 Not Found: If the player does not exist
    """
    try:
        player = controller.select_player(request.player_id)
        return {'ok': True, 'player': public_player(player)}

    except AuctionError as e:
        logger.warning(f"Cannot select player {request.player_id}: {e}")
        raise to_http_exception(e)

    except Exception as e:
        logger.error(f"Failed to select player: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to select player: {e}")


@admin_router.post("/sell", response_model=SaleResponse)
def sell_current_player(controller: AuctionSessionController = Depends(get_controller)):
    """
    Sell the current player to the highest bidder.

    Raises:
        400 Bad Request: No active player or no bids placed
    """
    try:
        result = controller.settle_sale()
        return {'ok': True, **result.to_dict()}

    except AuctionError as e:
        logger.warning(f"Cannot sell: {e}")
        raise to_http_exception(e)

    except Exception as e:
        logger.error(f"Failed to sell player: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to sell player: {e}")


@admin_router.post("/reset")
def reset_auction(controller: AuctionSessionController = Depends(get_controller)):
    """Clear the current player and all active bids."""
    try:
        controller.reset()
        return {'ok': True}

    except AuctionError as e:
        raise to_http_exception(e)

    except Exception as e:
        logger.error(f"Failed to reset auction: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to reset auction: {e}")


@admin_router.put("/team/{team_id}/wallet", response_model=TeamDetailResponse)
def set_team_wallet(
    team_id: str,
    request: WalletUpdateRequest,
    controller: AuctionSessionController = Depends(get_controller),
    store: EntityStore = Depends(get_store)
):
    """Set a team's absolute wallet."""
    try:
        controller.set_team_wallet(team_id, request.amount)
        return build_team_detail(store, team_id)

    except (AuctionError, ValueError) as e:
        logger.warning(f"Wallet update rejected for {team_id}: {e}")
        raise _http_error(e)

    except Exception as e:
        logger.error(f"Failed to update wallet: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to update wallet: {e}")


@admin_router.post("/players", status_code=201, response_model=PlayerView)
def create_player(
    request: PlayerCreateRequest,
    controller: AuctionSessionController = Depends(get_controller)
):
    try:
        player = controller.register_player(request.to_player())
        return public_player(player)

    except (AuctionError, ValueError) as e:
        raise _http_error(e)


@admin_router.post("/teams", status_code=201, response_model=TeamCreatedResponse)
def create_team(
    request: TeamCreateRequest,
    controller: AuctionSessionController = Depends(get_controller),
    store: EntityStore = Depends(get_store)
):
    try:
        team = controller.register_team(Team(**request.model_dump()))
        return {**build_team_detail(store, team.id), 'code': team.code}

    except (AuctionError, ValueError) as e:
        raise _http_error(e)


@admin_router.post("/players/import", response_model=ImportResponse)
def import_player_sheet(request: ImportRequest, store: EntityStore = Depends(get_store)):
    """
    Import a registration sheet into the running auction.

    Rows go through the server's own store, so they survive later commits.

    Raises:
        404 Not Found: Sheet does not exist on the server
        400 Bad Request: Sheet is missing required columns
    """
    try:
        result = player_import.import_players(
            store,
            Path(request.path),
            dry_run=request.dry_run,
            skip_existing=request.skip_existing
        )
        return result.to_dict()

    except FileNotFoundError as e:
        logger.warning(f"Import rejected: {e}")
        raise HTTPException(status_code=404, detail=str(e))

    except (AuctionError, ValueError) as e:
        logger.warning(f"Import rejected: {e}")
        raise _http_error(e)

    except Exception as e:
        logger.error(f"Failed to import players: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to import players: {e}")


@admin_router.get("/sales", response_model=List[SaleRecordView])
def list_sales(http_request: Request):
    """Settled sales in order, from the audit log."""
    sale_log = http_request.app.state.sale_log
    if sale_log is None:
        return []
    return [record.to_dict() for record in sale_log.load_all()]


def _http_error(error: Exception) -> HTTPException:
    if isinstance(error, AuctionError):
        return to_http_exception(error)
    return HTTPException(status_code=400, detail=str(error))
