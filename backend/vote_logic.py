"""
Vote recording and tallying.

One vote per (turn, character). Recording is a store-level upsert so
concurrent votes for the same pair converge on the last write.
"""
import logging
from datetime import datetime
from typing import Dict, List, Optional

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from backend.models import Character, Turn, Vote
from backend.rejections import CampaignRejection, NotAllowed, NotFound

logger = logging.getLogger(__name__)

HOOK_COUNT = 3

_UPSERT_DIALECTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


def _upsert_vote(db: Session, turn_id: int, character_id: int, hook_index: int) -> None:
    now = datetime.utcnow()
    dialect = db.get_bind().dialect.name
    insert = _UPSERT_DIALECTS.get(dialect)
    if insert is None:
        raise NotImplementedError(f"Vote upsert is not supported on {dialect}")

    stmt = insert(Vote).values(
        turn_id=turn_id,
        character_id=character_id,
        hook_index=hook_index,
        created_at=now,
        updated_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[Vote.turn_id, Vote.character_id],
        set_={"hook_index": stmt.excluded.hook_index, "updated_at": stmt.excluded.updated_at},
    )
    db.execute(stmt)


def record_vote(db: Session, turn_id: int, character_id: int, hook_index: int, actor_id: str) -> Vote:
    """
    Record a character's vote for one of the turn's hooks, replacing any earlier vote.

    Raises:
        CampaignRejection: Hook index out of range
        NotFound: Turn or character missing
        NotAllowed: Character belongs to another campaign or another user
    """
    if not 0 <= hook_index < HOOK_COUNT:
        raise CampaignRejection(f"hook_index must be between 0 and {HOOK_COUNT - 1}")

    turn = db.query(Turn).filter(Turn.id == turn_id).first()
    if not turn:
        raise NotFound("Turn not found")

    character = db.query(Character).filter(Character.id == character_id).first()
    if not character:
        raise NotFound("Character not found")

    if character.campaign_code != turn.campaign_code:
        raise NotAllowed("Character is not part of this campaign")
    if character.user_id != actor_id:
        raise NotAllowed("Character not found or access denied")

    _upsert_vote(db, turn_id, character_id, hook_index)
    db.commit()

    vote = db.query(Vote).filter(Vote.turn_id == turn_id, Vote.character_id == character_id).one()
    # The upsert bypasses the identity map
    db.refresh(vote)
    logger.info(f"Vote recorded: turn={turn_id} character={character_id} hook={hook_index}")
    return vote


def get_vote(db: Session, turn_id: int, character_id: int) -> Optional[Vote]:
    return db.query(Vote).filter(Vote.turn_id == turn_id, Vote.character_id == character_id).first()


def list_votes(db: Session, turn_id: int) -> List[Dict]:
    """All votes on a turn with the voter's name and archetype."""
    rows = (
        db.query(Vote, Character)
        .join(Character, Vote.character_id == Character.id)
        .filter(Vote.turn_id == turn_id)
        .order_by(Vote.created_at.asc(), Vote.id.asc())
        .all()
    )
    return [
        {
            "id": vote.id,
            "turn_id": vote.turn_id,
            "character_id": vote.character_id,
            "hook_index": vote.hook_index,
            "created_at": vote.created_at,
            "updated_at": vote.updated_at,
            "character": {"name": character.name, "archetype": character.archetype},
        }
        for vote, character in rows
    ]


def tally_votes(db: Session, turn_id: int) -> Dict:
    """
    Count votes per hook.

    The leading hook has the most votes; ties go to the lowest index and a
    turn without votes leads with hook 0.
    """
    counts = [0] * HOOK_COUNT
    for (hook_index,) in db.query(Vote.hook_index).filter(Vote.turn_id == turn_id).all():
        if 0 <= hook_index < HOOK_COUNT:
            counts[hook_index] += 1

    leading = max(range(HOOK_COUNT), key=lambda i: (counts[i], -i))
    return {"turn_id": turn_id, "counts": counts, "total": sum(counts), "leading_hook_index": leading}
