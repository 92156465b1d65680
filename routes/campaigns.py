"""
Campaign Routes - Create campaigns and move them through their lifecycle
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session
from typing import Optional, List

from backend.db import get_db
from backend.auth.jwt import Identity, get_current_identity, get_current_identity_optional
from backend.dependencies import get_narrator
from backend.narrative import StoryNarrator
from backend import campaign_logic
from backend.rejections import NotFound
from backend.turn_logic import latest_turn, list_turns
from routes.schemas.campaign import (
    AdvanceTurnRequest,
    AdvanceTurnResponse,
    CampaignCreate,
    CampaignCreatedResponse,
    CampaignResponse,
    CampaignUpdate,
    GenreSuggestionResponse,
    ResolutionResponse,
    StartCampaignResponse,
    TurnResponse,
    WorldStateResponse,
)
from routes.schemas.character import CharacterResponse

router = APIRouter(prefix="/api/campaigns", tags=["campaigns"])


def _campaign_response(campaign, identity: Optional[Identity] = None) -> CampaignResponse:
    response = CampaignResponse.model_validate(campaign)
    if identity is not None:
        response.is_host = campaign.host_user_id == identity.user_id
    return response


def _start_response(outcome: campaign_logic.StartOutcome) -> StartCampaignResponse:
    return StartCampaignResponse(
        campaign=_campaign_response(outcome.campaign),
        turn=TurnResponse.model_validate(outcome.turn),
        resolution=ResolutionResponse.model_validate(outcome.resolution),
        world_state=WorldStateResponse.model_validate(outcome.world_state),
        used_fallback=outcome.used_fallback,
    )


@router.post("", response_model=CampaignCreatedResponse, status_code=status.HTTP_201_CREATED)
def create_campaign(
    req: CampaignCreate,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    """
    Create a new campaign in the lobby.

    The caller becomes the host. Returns the campaign with its join code.
    """
    campaign = campaign_logic.create_campaign(
        db,
        host_user_id=identity.user_id,
        title=req.title,
        genre=req.genre,
        max_players=req.max_players,
    )
    return CampaignCreatedResponse(campaign_id=campaign.code, campaign=_campaign_response(campaign, identity))


@router.get("", response_model=List[CampaignResponse])
def list_campaigns(db: Session = Depends(get_db)):
    """The 50 most recently created campaigns."""
    return [_campaign_response(c) for c in campaign_logic.list_campaigns(db)]


@router.get("/{code}", response_model=CampaignResponse)
def get_campaign(
    code: str,
    identity: Optional[Identity] = Depends(get_current_identity_optional),
    db: Session = Depends(get_db),
):
    """Get campaign details. `is_host` is filled in when a token is sent."""
    return _campaign_response(campaign_logic.get_campaign(db, code), identity)


@router.patch("/{code}", response_model=CampaignResponse)
def update_campaign(
    code: str,
    req: CampaignUpdate,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    """Change title, genre or player cap while in lobby or character select (host only)."""
    campaign = campaign_logic.update_campaign(
        db,
        code,
        identity.user_id,
        title=req.title,
        genre=req.genre,
        max_players=req.max_players,
    )
    return _campaign_response(campaign, identity)


@router.post("/{code}/enter-character-select", response_model=CampaignResponse)
def enter_character_select(
    code: str,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    """Move the campaign from lobby to character select (host only)."""
    return _campaign_response(campaign_logic.enter_character_select(db, code, identity.user_id), identity)


@router.post("/{code}/suggest-genre", response_model=GenreSuggestionResponse)
def suggest_genre(
    code: str,
    db: Session = Depends(get_db),
    narrator: StoryNarrator = Depends(get_narrator),
):
    """Ask the narrator which genre suits the characters claimed so far."""
    result = campaign_logic.suggest_genre(db, narrator, code)
    return GenreSuggestionResponse(**result.value.model_dump(), used_fallback=result.used_fallback)


@router.post("/{code}/start", response_model=StartCampaignResponse)
def start_campaign(
    code: str,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    narrator: StoryNarrator = Depends(get_narrator),
):
    """
    Start the campaign (host only).

    Requires character select and at least one locked character. Creates turn 1
    with its opening scene and makes the campaign active.
    """
    return _start_response(campaign_logic.start_campaign(db, narrator, code, identity.user_id))


@router.post("/{code}/resume", response_model=StartCampaignResponse)
def resume_campaign_start(
    code: str,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    narrator: StoryNarrator = Depends(get_narrator),
):
    """Finish a start that was interrupted, leaving the campaign in `starting` (host only)."""
    return _start_response(campaign_logic.resume_start(db, narrator, code, identity.user_id))


@router.get("/{code}/characters", response_model=List[CharacterResponse])
def list_characters(code: str, db: Session = Depends(get_db)):
    return campaign_logic.list_characters(db, code)


@router.get("/{code}/turn", response_model=TurnResponse)
def get_current_turn(code: str, db: Session = Depends(get_db)):
    """The latest turn of the campaign."""
    campaign = campaign_logic.get_campaign(db, code)
    turn = latest_turn(db, campaign.code)
    if not turn:
        raise NotFound("Campaign has no turns yet")
    return turn


@router.get("/{code}/turns", response_model=List[TurnResponse])
def list_campaign_turns(code: str, db: Session = Depends(get_db)):
    campaign = campaign_logic.get_campaign(db, code)
    return list_turns(db, campaign.code)


@router.post("/{code}/turns", response_model=AdvanceTurnResponse, status_code=status.HTTP_201_CREATED)
def advance_turn(
    code: str,
    req: Optional[AdvanceTurnRequest] = None,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
    narrator: StoryNarrator = Depends(get_narrator),
):
    """
    Continue the story with the next turn (host only).

    Follows `hook_index` when given, otherwise the hook leading the vote.
    """
    hook_index = req.hook_index if req else None
    outcome = campaign_logic.advance_turn(db, narrator, code, identity.user_id, hook_index=hook_index)
    return AdvanceTurnResponse(
        previous_turn=TurnResponse.model_validate(outcome.previous_turn),
        turn=TurnResponse.model_validate(outcome.turn),
        resolution=ResolutionResponse.model_validate(outcome.resolution),
        selected_hook_index=outcome.selected_hook_index,
        used_fallback=outcome.used_fallback,
    )


@router.get("/{code}/world-state", response_model=WorldStateResponse)
def get_world_state(code: str, db: Session = Depends(get_db)):
    return campaign_logic.get_world_state(db, code)
