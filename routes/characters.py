"""
Character Routes - Claim, edit and lock characters
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from backend.db import get_db
from backend.auth.jwt import Identity, get_current_identity
from backend import campaign_logic
from routes.schemas.character import CharacterClaim, CharacterResponse, CharacterUpdate

router = APIRouter(prefix="/api/characters", tags=["characters"])


@router.post("/claim", response_model=CharacterResponse, status_code=status.HTTP_201_CREATED)
def claim_character(
    req: CharacterClaim,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    """
    Claim a character in a campaign for the calling user.

    Raises:
        404: Campaign not found
        409: Name already used in this campaign, or campaign full
    """
    return campaign_logic.claim_character(
        db,
        req.campaign_code,
        user_id=identity.user_id,
        name=req.name,
        archetype=req.archetype,
        avatar_url=req.avatar_url,
    )


@router.get("/{character_id}", response_model=CharacterResponse)
def get_character(character_id: int, db: Session = Depends(get_db)):
    return campaign_logic.get_character(db, character_id)


@router.patch("/{character_id}", response_model=CharacterResponse)
def update_character(
    character_id: int,
    req: CharacterUpdate,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    """Edit name, archetype or avatar. Locked characters are rejected."""
    return campaign_logic.update_character(
        db,
        character_id,
        identity.user_id,
        name=req.name,
        archetype=req.archetype,
        avatar_url=req.avatar_url,
    )


@router.post("/{character_id}/lock", response_model=CharacterResponse)
def lock_character(
    character_id: int,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    """Lock the character in. Locking an already locked character is rejected."""
    return campaign_logic.lock_character(db, character_id, identity.user_id)
