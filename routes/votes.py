"""
Vote Routes - Record and read votes
"""
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from backend.db import get_db
from backend.auth.jwt import Identity, get_current_identity
from backend.vote_logic import get_vote, record_vote
from routes.schemas.vote import VoteCreate, VoteResponse

router = APIRouter(prefix="/api/votes", tags=["votes"])


@router.post("", response_model=VoteResponse)
def submit_vote(
    req: VoteCreate,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    """
    Vote for a hook as one of your characters.

    Voting again for the same turn and character replaces the earlier vote.
    """
    return record_vote(db, req.turn_id, req.character_id, req.hook_index, identity.user_id)


@router.get("", response_model=Optional[VoteResponse])
def get_my_vote(
    turn_id: int,
    character_id: int,
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
):
    """A character's current vote on a turn, or null."""
    vote = get_vote(db, turn_id, character_id)
    if vote is None or vote.character.user_id != identity.user_id:
        return None
    return vote
