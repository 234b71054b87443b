"""
FastAPI server for the live auction.

Public endpoints serve the auction snapshot and let team owners log in and
raise bids with their team code. Admin endpoints live in admin_endpoints.py.
State changes are pushed to viewers over the /ws WebSocket.
"""

import logging
from pathlib import Path
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, WebSocket, WebSocketDisconnect
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware

from .. import config
from .admin_endpoints import admin_router
from .api_serializers import (
    AuctionStateResponse,
    PlayerView,
    RaiseResponse,
    TeamCodeRequest,
    TeamDetailResponse,
    TeamLoginResponse,
    TeamSummary,
    serialize_snapshot,
)
from .bid_ledger import BidLedger
from .broadcaster import WebSocketBroadcaster
from .dependencies import get_ledger, get_store, to_http_exception
from .entity_store import CheckpointLock, EntityStore
from .errors import AuctionError
from .sale_log import SaleLog
from .session_controller import AuctionSessionController
from .state_projection import (
    build_auction_snapshot,
    build_team_detail,
    build_team_login,
    build_team_summaries,
    public_player,
)
from . import repository

logger = logging.getLogger(__name__)


def create_app(
    store: Optional[EntityStore] = None,
    broadcaster: Optional[WebSocketBroadcaster] = None,
    sale_log: Optional[SaleLog] = None,
    admin_token: Optional[str] = None
) -> FastAPI:
    """
    Build the auction API.

    Args:
        store: Entity store (default: loaded from config.CHECKPOINT_FILE)
        broadcaster: WebSocket broadcaster (default: a new one)
        sale_log: Sale audit log (default: config.SALE_LOG_FILE)
        admin_token: Admin credential (default: config.ADMIN_TOKEN)

    Returns:
        Configured FastAPI application
    """
    if store is None:
        store = EntityStore.load_checkpoint(Path(config.CHECKPOINT_FILE))
    if broadcaster is None:
        broadcaster = WebSocketBroadcaster()
    if sale_log is None:
        sale_log = SaleLog(Path(config.SALE_LOG_FILE))

    ledger = BidLedger(store, broadcaster)
    controller = AuctionSessionController(store, ledger, broadcaster, sale_log)

    app = FastAPI(
        title="House Cricket Auction API",
        description="Live bidding and settlement for the house cricket auction",
        version="1.0.0"
    )

    app.state.store = store
    app.state.broadcaster = broadcaster
    app.state.sale_log = sale_log
    app.state.ledger = ledger
    app.state.controller = controller
    app.state.admin_token = admin_token if admin_token is not None else config.ADMIN_TOKEN
    app.state.checkpoint_lock = (
        CheckpointLock(store.checkpoint_path) if store.checkpoint_path else None
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(admin_router, prefix="/api/admin")

    _register_routes(app)

    @app.on_event("startup")
    async def startup_event():
        if app.state.checkpoint_lock is not None:
            app.state.checkpoint_lock.acquire()
        await broadcaster.start()
        logger.info("Auction API server started")
        if store.checkpoint_path:
            logger.info(f"State checkpoint: {store.checkpoint_path}")
        logger.info(f"Sale log: {sale_log.filepath}")
        if not app.state.admin_token:
            logger.warning("ADMIN_TOKEN not configured; admin endpoints will refuse requests")

    @app.on_event("shutdown")
    async def shutdown_event():
        logger.info("Auction API server shutting down")
        await broadcaster.stop()
        if app.state.checkpoint_lock is not None:
            app.state.checkpoint_lock.release()

    return app


def _register_routes(app: FastAPI) -> None:

    @app.get("/api/health")
    def health_check():
        return {
            "status": "ok",
            "service": "House Cricket Auction API",
            "version": "1.0.0"
        }

    @app.get("/api/auction/state", response_model=AuctionStateResponse)
    def get_auction_state(store: EntityStore = Depends(get_store)):
        """
        Public auction snapshot.

        Returns pricing, the player up for auction, the current bid and,
        when nobody is up, the last player sold.
        """
        try:
            return build_auction_snapshot(store)

        except Exception as e:
            logger.error(f"Failed to build auction state: {e}", exc_info=True)
            raise HTTPException(status_code=500, detail=f"Failed to get state: {e}")

    @app.post("/api/auction/team/login", response_model=TeamLoginResponse)
    def team_login(request: TeamCodeRequest, store: EntityStore = Depends(get_store)):
        """
        Validate a team code and return the team's budget with the snapshot.

        Raises:
            404 Not Found: Invalid code
        """
        try:
            view = build_team_login(store, request.code)
            logger.info(f"Team login: {view['team']['name']}")
            return view

        except AuctionError as e:
            logger.warning(f"Team login rejected: {e}")
            raise to_http_exception(e)

        except Exception as e:
            logger.error(f"Failed team login: {e}", exc_info=True)
            raise HTTPException(status_code=500, detail=f"Failed team login: {e}")

    @app.post("/api/auction/bid/raise", response_model=RaiseResponse)
    def raise_bid(request: TeamCodeRequest, ledger: BidLedger = Depends(get_ledger)):
        """
        Raise the bid on the current player by one increment.

        Raises:
            404 Not Found: Invalid code
            400 Bad Request: No active player, player sold, or cap exceeded
                             (body carries maxAllowed)
            503 Service Unavailable: Lost a concurrent write, retry
        """
        try:
            result = ledger.place_raise(request.code)
            return RaiseResponse(
                current_bid={
                    'amount': result.amount,
                    'team_name': result.team_name,
                    'team_logo_url': result.team_logo_url,
                },
                max_allowed=result.max_allowed
            )

        except AuctionError as e:
            raise to_http_exception(e)

        except Exception as e:
            logger.error(f"Failed to place raise: {e}", exc_info=True)
            raise HTTPException(status_code=500, detail=f"Failed to place raise: {e}")

    @app.get("/api/players", response_model=List[PlayerView])
    def list_players(
        sold: Optional[bool] = Query(None, description="Filter by sold status"),
        store: EntityStore = Depends(get_store)
    ):
        return [public_player(p) for p in repository.list_players(store, sold=sold)]

    @app.get("/api/players/{player_id}", response_model=PlayerView)
    def get_player(player_id: str, store: EntityStore = Depends(get_store)):
        try:
            return public_player(repository.get_player(store, player_id))
        except AuctionError as e:
            raise to_http_exception(e)

    @app.get("/api/teams", response_model=List[TeamSummary])
    def list_teams(store: EntityStore = Depends(get_store)):
        """Budget and roster summary for every team."""
        return build_team_summaries(store)

    @app.get("/api/teams/{team_id}", response_model=TeamDetailResponse)
    def get_team(team_id: str, store: EntityStore = Depends(get_store)):
        try:
            return build_team_detail(store, team_id)
        except AuctionError as e:
            raise to_http_exception(e)

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket):
        """Push auction events; sends a state_sync snapshot on connect."""
        broadcaster = websocket.app.state.broadcaster
        await broadcaster.connect(websocket)
        try:
            snapshot = await run_in_threadpool(build_auction_snapshot, websocket.app.state.store)
            await websocket.send_json({
                'event': 'state_sync',
                'payload': serialize_snapshot(snapshot)
            })
            while True:
                await websocket.receive_text()
        except WebSocketDisconnect:
            broadcaster.disconnect(websocket)
