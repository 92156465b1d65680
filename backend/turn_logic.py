"""
Turn and resolution writes.

A turn and its resolution are two separate commits. Nothing rolls back the
turn if the resolution write fails; the start sequence records which step it
reached so the gap can be resumed.
"""
import logging
from datetime import datetime, timedelta
from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backend.config import TURN_WINDOW_SECONDS
from backend.models import Turn, Resolution
from backend.narrative import StoryContent
from backend.rejections import NotFound, ResolutionAlreadyExists, TurnAlreadyExists

logger = logging.getLogger(__name__)


def next_turn_index(db: Session, campaign_code: str) -> int:
    """Return max(turn_index) + 1 for the campaign, or 1 when it has no turns."""
    current = db.query(func.max(Turn.turn_index)).filter(Turn.campaign_code == campaign_code).scalar()
    return (current or 0) + 1


def latest_turn(db: Session, campaign_code: str) -> Optional[Turn]:
    return (
        db.query(Turn)
        .filter(Turn.campaign_code == campaign_code)
        .order_by(Turn.turn_index.desc())
        .first()
    )


def list_turns(db: Session, campaign_code: str) -> List[Turn]:
    return db.query(Turn).filter(Turn.campaign_code == campaign_code).order_by(Turn.turn_index.asc()).all()


def get_turn(db: Session, turn_id: int) -> Turn:
    turn = db.query(Turn).filter(Turn.id == turn_id).first()
    if not turn:
        raise NotFound("Turn not found")
    return turn


def get_resolution(db: Session, turn_id: int) -> Resolution:
    resolution = db.query(Resolution).filter(Resolution.turn_id == turn_id).first()
    if not resolution:
        raise NotFound("Resolution not found")
    return resolution


def create_turn(
    db: Session,
    campaign_code: str,
    turn_index: int,
    now: Optional[datetime] = None,
    window_seconds: int = TURN_WINDOW_SECONDS,
) -> Turn:
    """
    Insert a turn whose voting window runs `window_seconds` from `now`.

    Raises:
        TurnAlreadyExists: The campaign already has a turn with this index
    """
    starts_at = now or datetime.utcnow()
    turn = Turn(
        campaign_code=campaign_code,
        turn_index=turn_index,
        starts_at=starts_at,
        ends_at=starts_at + timedelta(seconds=window_seconds),
        summary="",
    )
    db.add(turn)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        # Only the (campaign, index) constraint is expected here
        if db.query(Turn).filter(Turn.campaign_code == campaign_code, Turn.turn_index == turn_index).first():
            raise TurnAlreadyExists(f"Turn {turn_index} already exists for campaign {campaign_code}") from exc
        raise
    db.refresh(turn)
    logger.info(f"Created turn {turn_index} for campaign {campaign_code}")
    return turn


def write_resolution(db: Session, turn: Turn, story: StoryContent, used_fallback: bool = False) -> Resolution:
    """
    Insert the resolution for `turn` and copy its memory summary onto the turn.

    Raises:
        ResolutionAlreadyExists: The turn already has a resolution
    """
    resolution = Resolution(
        turn_id=turn.id,
        content=story.content,
        hooks=list(story.hooks),
        memory_summary=story.memory_summary,
        used_fallback=used_fallback,
    )
    turn.summary = story.memory_summary
    db.add(resolution)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if db.query(Resolution).filter(Resolution.turn_id == turn.id).first():
            raise ResolutionAlreadyExists(f"Turn {turn.turn_index} already has a resolution") from exc
        raise
    db.refresh(resolution)
    return resolution


def write_turn(
    db: Session,
    campaign_code: str,
    turn_index: int,
    story: StoryContent,
    used_fallback: bool = False,
    now: Optional[datetime] = None,
    window_seconds: int = TURN_WINDOW_SECONDS,
) -> Tuple[Turn, Resolution]:
    """Persist a turn and its resolution as two writes."""
    turn = create_turn(db, campaign_code, turn_index, now=now, window_seconds=window_seconds)
    resolution = write_resolution(db, turn, story, used_fallback=used_fallback)
    return turn, resolution
