"""
Turn Routes - Scene text and vote results for a turn
"""
from datetime import datetime
from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from backend.db import get_db
from backend import turn_logic
from backend.vote_logic import list_votes, tally_votes
from routes.schemas.campaign import ResolutionResponse
from routes.schemas.vote import TallyResponse, VoteWithCharacter

router = APIRouter(prefix="/api/turns", tags=["turns"])


@router.get("/{turn_id}/resolution", response_model=ResolutionResponse)
def get_resolution(turn_id: int, db: Session = Depends(get_db)):
    turn_logic.get_turn(db, turn_id)
    return turn_logic.get_resolution(db, turn_id)


@router.get("/{turn_id}/votes", response_model=List[VoteWithCharacter])
def get_votes(turn_id: int, db: Session = Depends(get_db)):
    """Every vote on the turn with the voting character's name and archetype."""
    turn_logic.get_turn(db, turn_id)
    return list_votes(db, turn_id)


@router.get("/{turn_id}/tally", response_model=TallyResponse)
def get_tally(turn_id: int, db: Session = Depends(get_db)):
    """
    Vote counts per hook.

    `expired` only reports whether the voting window has passed; votes are
    still accepted afterwards.
    """
    turn = turn_logic.get_turn(db, turn_id)
    tally = tally_votes(db, turn_id)
    return TallyResponse(**tally, ends_at=turn.ends_at, expired=datetime.utcnow() >= turn.ends_at)
