"""
Request and response models for the auction HTTP API.

Transforms engine results and read models into stable response shapes.
Field names are snake_case in Python and camelCase on the wire; request
bodies accept either.
"""

from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .. import config
from .models import AuctionSettings, Player


class ApiModel(BaseModel):
    """Base for request and response bodies."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ========== Requests ==========

class TeamCodeRequest(ApiModel):
    """Body for team login and raise."""
    code: str = Field(..., min_length=1, description="Team join code")


class SelectPlayerRequest(ApiModel):
    player_id: str = Field(..., min_length=1, description="Player to put up for auction")


class SettingsUpdateRequest(ApiModel):
    """Partial settings update; omitted fields are left unchanged."""
    base_price: Optional[int] = Field(None, gt=0)
    min_increment: Optional[int] = Field(None, gt=0)
    max_players_per_team: Optional[int] = Field(None, gt=0)
    auction_active: Optional[bool] = None


class WalletUpdateRequest(ApiModel):
    amount: int = Field(..., ge=0, description="Absolute wallet amount")


class PlayerCreateRequest(ApiModel):
    name: str = Field(..., min_length=1)
    house: str = Field(..., description=f"One of: {', '.join(config.HOUSES)}")
    strength: str = Field(..., description=f"One of: {', '.join(config.STRENGTHS)}")
    batch: int = Field(..., ge=config.MIN_BATCH, le=config.MAX_BATCH)
    base_price: int = Field(config.DEFAULT_PLAYER_BASE_PRICE, gt=0)
    phone_number: str = ''
    total_match_played: int = Field(0, ge=0)
    total_score: int = Field(0, ge=0)
    total_wicket: int = Field(0, ge=0)
    photo_url: str = ''
    is_captain: bool = False
    is_icon: bool = False
    is_retained: bool = False
    is_traded: bool = False

    def to_player(self) -> Player:
        return Player(**self.model_dump())


class TeamCreateRequest(ApiModel):
    name: str = Field(..., min_length=1)
    code: str = Field(..., min_length=1)
    wallet: int = Field(config.DEFAULT_TEAM_WALLET, ge=0)
    max_players: int = Field(config.DEFAULT_TEAM_MAX_PLAYERS, gt=0)
    logo_url: Optional[str] = None


class ImportRequest(ApiModel):
    """Body for POST /api/admin/players/import."""
    path: str = Field(..., min_length=1, description="Registration sheet on the server")
    dry_run: bool = False
    skip_existing: bool = True


# ========== Responses ==========

class PlayerView(ApiModel):
    """Player record as shown to viewers (no phone number)."""
    id: str
    name: str
    house: str
    strength: str
    batch: int
    base_price: int
    total_match_played: int = 0
    total_score: int = 0
    total_wicket: int = 0
    photo_url: str = ''
    is_captain: bool = False
    is_icon: bool = False
    is_retained: bool = False
    is_traded: bool = False
    sold: bool = False
    sold_to_team: Optional[str] = None
    sold_price: Optional[int] = None
    sold_at: Optional[str] = None


class BidView(ApiModel):
    amount: int
    team_name: Optional[str] = None
    team_logo_url: Optional[str] = None


class LastSoldView(ApiModel):
    player_id: str
    player_name: str
    team_name: Optional[str] = None
    price: Optional[int] = None


class AuctionStateResponse(ApiModel):
    """Response for GET /api/auction/state."""
    base_price: int
    min_increment: int
    player: Optional[PlayerView] = Field(None, description="Player up for auction")
    current_bid: Optional[BidView] = None
    last_sold: Optional[LastSoldView] = Field(None, description="Only while no player is up")


class TeamView(ApiModel):
    id: str
    name: str
    logo_url: Optional[str] = None
    wallet: int
    max_players: int
    remaining: int = Field(description="Wallet minus purchases")
    remaining_slots: int
    max_allowed: int = Field(description="Affordability cap for the next player")


class TeamLoginResponse(AuctionStateResponse):
    """Response for POST /api/auction/team/login."""
    team: TeamView


class RaiseResponse(ApiModel):
    """Response for POST /api/auction/bid/raise."""
    ok: bool = True
    current_bid: BidView
    max_allowed: int


class SettingsResponse(ApiModel):
    base_price: int
    min_increment: int
    max_players_per_team: int
    current_player_id: Optional[str] = None
    auction_active: bool


class TeamSummary(ApiModel):
    id: str
    name: str
    wallet: int
    max_players: int
    purchases: int
    spent: int
    remaining: int
    remaining_slots: int
    max_allowed: int


class PurchaseView(ApiModel):
    player_id: str
    player_name: Optional[str] = None
    house: Optional[str] = None
    strength: Optional[str] = None
    batch: Optional[int] = None
    photo_url: Optional[str] = None
    price: int
    at: str


class TeamDetailResponse(TeamView):
    spent: int
    purchases: List[PurchaseView]


class TeamCreatedResponse(TeamDetailResponse):
    code: str


class CurrentPlayerResponse(ApiModel):
    ok: bool = True
    player: PlayerView


class SaleTeamView(ApiModel):
    id: str
    name: str


class SaleResponse(ApiModel):
    """Response for POST /api/admin/sell."""
    ok: bool = True
    player_id: str
    player_name: str
    team: SaleTeamView
    price: int
    sold_at: str


class SaleRecordView(ApiModel):
    sale_number: int
    player_id: str
    player_name: str
    team_id: str
    team_name: str
    price: int
    timestamp: str


class ImportResponse(ApiModel):
    total: int
    imported: int
    skipped: int
    errors: List[str]


# ========== Serializer Functions ==========

def serialize_settings(settings: AuctionSettings) -> SettingsResponse:
    return SettingsResponse(
        base_price=settings.base_price,
        min_increment=settings.min_increment,
        max_players_per_team=settings.max_players_per_team,
        current_player_id=settings.current_player_id,
        auction_active=settings.auction_active
    )


def serialize_snapshot(snapshot: dict) -> dict:
    """Auction snapshot in its wire form, for pushes outside a route."""
    return AuctionStateResponse.model_validate(snapshot).model_dump(by_alias=True)
