"""
Pydantic schemas for campaigns, turns and world state.

Request models accept both snake_case and the camelCase the web client sends.
"""

from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List, Literal, Dict, Any
from datetime import datetime

Genre = Literal[
    "dark_fantasy", "space_opera", "mystery", "post_apoc", "pirate",
    "fantasy", "scifi", "horror", "adventure", "romance",
]


class CampaignCreate(BaseModel):
    """Request to create a new campaign."""
    model_config = ConfigDict(populate_by_name=True)

    title: str = Field(..., min_length=1, max_length=200)
    genre: Genre
    max_players: int = Field(6, ge=1, le=20, alias="maxPlayers")


class CampaignUpdate(BaseModel):
    """Request to change a campaign before it starts."""
    model_config = ConfigDict(populate_by_name=True)

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    genre: Optional[Genre] = None
    max_players: Optional[int] = Field(None, ge=1, le=20, alias="maxPlayers")


class CampaignResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    code: str
    title: str
    genre: str
    status: str
    max_players: int
    host_user_id: str
    start_step: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    is_host: Optional[bool] = None


class CampaignCreatedResponse(BaseModel):
    """Campaign plus its id under the key the web client reads."""
    campaign_id: str = Field(..., serialization_alias="campaignId")
    campaign: CampaignResponse


class TurnResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    campaign_code: str
    turn_index: int
    starts_at: datetime
    ends_at: datetime
    summary: str
    selected_hook_index: Optional[int] = None
    created_at: datetime


class ResolutionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    turn_id: int
    content: str
    hooks: List[str]
    memory_summary: str
    used_fallback: bool
    created_at: datetime


class WorldStateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    campaign_code: str
    facts: Dict[str, Any]
    created_at: datetime


class StartCampaignResponse(BaseModel):
    campaign: CampaignResponse
    turn: TurnResponse
    resolution: ResolutionResponse
    world_state: WorldStateResponse
    used_fallback: bool


class AdvanceTurnRequest(BaseModel):
    """Hook to follow; omit to follow the vote tally."""
    model_config = ConfigDict(populate_by_name=True)

    hook_index: Optional[int] = Field(None, ge=0, le=2, alias="hookIndex")


class AdvanceTurnResponse(BaseModel):
    previous_turn: TurnResponse
    turn: TurnResponse
    resolution: ResolutionResponse
    selected_hook_index: int
    used_fallback: bool


class GenreSuggestionResponse(BaseModel):
    genre: str
    confidence: float
    reasoning: str
    used_fallback: bool
