"""
Campaign lifecycle.

    lobby -> character_select -> starting -> active

Status only moves forward. Every operation checks its guards before writing
and raises a CampaignRejection when one fails.

Starting a campaign is a sequence of separate commits (status, turn 1,
resolution, world state, status). The last completed step is stored on the
campaign with each write. A campaign stuck in `starting` can be finished
with `resume_start`, which only performs the steps whose rows are missing.
"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy.orm import Session

from backend.config import STALLED_START_SECONDS, TURN_WINDOW_SECONDS
from backend.join_codes import allocate_code
from backend.models import Campaign, Character, Resolution, Turn, WorldState, GENRES
from backend.models.campaign import ACTIVE, CHARACTER_SELECT, LOBBY, STARTING
from backend.narrative import GenreSuggestion, NarrativeResult, StoryNarrator
from backend.rejections import (
    AlreadyLocked,
    CampaignAlreadyStarted,
    CampaignFull,
    CampaignRejection,
    CharacterLocked,
    InvalidState,
    NameTaken,
    NoLockedCharacters,
    NotAllowed,
    NotFound,
    ResolutionAlreadyExists,
    TurnAlreadyExists,
)
from backend.turn_logic import create_turn, latest_turn, next_turn_index, write_resolution, write_turn
from backend.vote_logic import HOOK_COUNT, tally_votes

logger = logging.getLogger(__name__)

# start_step markers, in order
STEP_STARTING = "starting"
STEP_TURN_CREATED = "turn_created"
STEP_RESOLUTION_WRITTEN = "resolution_written"
STEP_WORLD_SEEDED = "world_seeded"


@dataclass
class StartOutcome:
    campaign: Campaign
    turn: Turn
    resolution: Resolution
    world_state: WorldState
    used_fallback: bool


@dataclass
class AdvanceOutcome:
    campaign: Campaign
    previous_turn: Turn
    turn: Turn
    resolution: Resolution
    selected_hook_index: int
    used_fallback: bool


# ----------------------------------------------------------------------
# Lookups
# ----------------------------------------------------------------------

def get_campaign(db: Session, code: str) -> Campaign:
    campaign = db.query(Campaign).filter(Campaign.code == code.upper()).first()
    if not campaign:
        raise NotFound("Campaign not found")
    return campaign


def get_character(db: Session, character_id: int) -> Character:
    character = db.query(Character).filter(Character.id == character_id).first()
    if not character:
        raise NotFound("Character not found")
    return character


def list_characters(db: Session, code: str) -> List[Character]:
    campaign = get_campaign(db, code)
    return (
        db.query(Character)
        .filter(Character.campaign_code == campaign.code)
        .order_by(Character.created_at.asc(), Character.id.asc())
        .all()
    )


def get_world_state(db: Session, code: str) -> WorldState:
    campaign = get_campaign(db, code)
    world_state = db.query(WorldState).filter(WorldState.campaign_code == campaign.code).first()
    if not world_state:
        raise NotFound("World state not found")
    return world_state


def locked_characters(db: Session, code: str) -> List[Character]:
    return (
        db.query(Character)
        .filter(Character.campaign_code == code, Character.is_locked.is_(True))
        .order_by(Character.id.asc())
        .all()
    )


def list_campaigns(db: Session, limit: int = 50) -> List[Campaign]:
    return db.query(Campaign).order_by(Campaign.created_at.desc()).limit(limit).all()


def _require_host(campaign: Campaign, actor_id: Optional[str]) -> None:
    if campaign.host_user_id != actor_id:
        raise NotAllowed("Only the host can perform this action")


def _require_owner(character: Character, actor_id: Optional[str]) -> None:
    if character.user_id != actor_id:
        raise NotAllowed("Only the character's owner can perform this action")


def _name_taken(db: Session, code: str, name: str, exclude_id: Optional[int] = None) -> bool:
    query = db.query(Character.id).filter(Character.campaign_code == code, Character.name == name)
    if exclude_id is not None:
        query = query.filter(Character.id != exclude_id)
    return query.first() is not None


# ----------------------------------------------------------------------
# Campaign
# ----------------------------------------------------------------------

def create_campaign(db: Session, host_user_id: str, title: str, genre: str, max_players: int) -> Campaign:
    """Create a campaign in the lobby with a freshly allocated join code."""
    if genre not in GENRES:
        raise CampaignRejection(f"Unknown genre: {genre}")

    code = allocate_code(lambda c: db.query(Campaign.code).filter(Campaign.code == c).first() is not None)

    campaign = Campaign(
        code=code,
        title=title,
        genre=genre,
        status=LOBBY,
        max_players=max_players,
        host_user_id=host_user_id,
    )
    db.add(campaign)
    db.commit()
    db.refresh(campaign)
    logger.info(f"Campaign {campaign.code} created by {host_user_id}")
    return campaign


def update_campaign(
    db: Session,
    code: str,
    actor_id: str,
    title: Optional[str] = None,
    genre: Optional[str] = None,
    max_players: Optional[int] = None,
) -> Campaign:
    """Change title, genre or capacity before the campaign starts."""
    campaign = get_campaign(db, code)
    _require_host(campaign, actor_id)
    if campaign.status not in (LOBBY, CHARACTER_SELECT):
        raise InvalidState(f"Campaign can no longer be changed (status is {campaign.status})")
    if genre is not None and genre not in GENRES:
        raise CampaignRejection(f"Unknown genre: {genre}")

    if title is not None:
        campaign.title = title
    if genre is not None:
        campaign.genre = genre
    if max_players is not None:
        claimed = db.query(Character).filter(Character.campaign_code == campaign.code).count()
        if max_players < claimed:
            raise CampaignRejection(f"{claimed} characters are already claimed")
        campaign.max_players = max_players

    db.commit()
    db.refresh(campaign)
    return campaign


def enter_character_select(db: Session, code: str, actor_id: str) -> Campaign:
    """Move a campaign from the lobby to character selection."""
    campaign = get_campaign(db, code)
    _require_host(campaign, actor_id)
    if campaign.status != LOBBY:
        raise InvalidState(f"Campaign must be in lobby to enter character select (status is {campaign.status})")

    campaign.status = CHARACTER_SELECT
    db.commit()
    db.refresh(campaign)
    logger.info(f"Campaign {campaign.code} entered character select")
    return campaign


def suggest_genre(db: Session, narrator: StoryNarrator, code: str) -> NarrativeResult[GenreSuggestion]:
    campaign = get_campaign(db, code)
    roster = [c.roster_entry() for c in list_characters(db, campaign.code)]
    return narrator.suggest_genre(roster)


# ----------------------------------------------------------------------
# Characters
# ----------------------------------------------------------------------

def claim_character(
    db: Session,
    code: str,
    user_id: str,
    name: str,
    archetype: str,
    avatar_url: Optional[str] = None,
) -> Character:
    """
    Claim a new, unlocked character in a campaign.

    Name uniqueness is probed first; two concurrent claims of the same name can
    both pass the probe and the losing insert fails on the unique constraint.
    """
    campaign = get_campaign(db, code)

    if _name_taken(db, campaign.code, name):
        raise NameTaken(f"A character named '{name}' already exists in this campaign")

    claimed = db.query(Character).filter(Character.campaign_code == campaign.code).count()
    if claimed >= campaign.max_players:
        raise CampaignFull(f"Campaign is full ({campaign.max_players} players)")

    character = Character(
        campaign_code=campaign.code,
        user_id=user_id,
        name=name,
        archetype=archetype,
        avatar_url=avatar_url,
        is_locked=False,
    )
    db.add(character)
    db.commit()
    db.refresh(character)
    logger.info(f"Character {character.id} '{name}' claimed in {campaign.code}")
    return character


def update_character(
    db: Session,
    character_id: int,
    actor_id: str,
    name: Optional[str] = None,
    archetype: Optional[str] = None,
    avatar_url: Optional[str] = None,
) -> Character:
    """Edit an unlocked character."""
    character = get_character(db, character_id)
    _require_owner(character, actor_id)
    if character.is_locked:
        raise CharacterLocked("Character is locked and can no longer be changed")
    if name is not None and name != character.name and _name_taken(db, character.campaign_code, name, character.id):
        raise NameTaken(f"A character named '{name}' already exists in this campaign")

    if name is not None:
        character.name = name
    if archetype is not None:
        character.archetype = archetype
    if avatar_url is not None:
        character.avatar_url = avatar_url

    db.commit()
    db.refresh(character)
    return character


def lock_character(db: Session, character_id: int, actor_id: str) -> Character:
    """Lock a character. Locking twice is rejected."""
    character = get_character(db, character_id)
    _require_owner(character, actor_id)
    if character.is_locked:
        raise AlreadyLocked("Character is already locked")

    character.is_locked = True
    db.commit()
    db.refresh(character)
    logger.info(f"Character {character.id} locked in {character.campaign_code}")
    return character


# ----------------------------------------------------------------------
# Start sequence
# ----------------------------------------------------------------------

def _mark_step(campaign: Campaign, step: Optional[str]) -> None:
    campaign.start_step = step
    campaign.updated_at = datetime.utcnow()


def _complete_start(db: Session, narrator: StoryNarrator, campaign: Campaign, now: datetime) -> StartOutcome:
    """Run every start step whose result is not in the store yet, then activate."""
    code = campaign.code

    turn = db.query(Turn).filter(Turn.campaign_code == code, Turn.turn_index == 1).first()
    if turn is None:
        # The marker commits together with the turn
        _mark_step(campaign, STEP_TURN_CREATED)
        try:
            turn = create_turn(db, code, 1, now=now, window_seconds=TURN_WINDOW_SECONDS)
        except TurnAlreadyExists as exc:
            raise CampaignAlreadyStarted("Campaign has already been started") from exc

    resolution = turn.resolution
    used_fallback = False
    if resolution is None:
        roster = [c.roster_entry() for c in locked_characters(db, code)]
        result = narrator.opening_scene(roster, campaign.genre, campaign.title, turn_index=1)
        used_fallback = result.used_fallback
        _mark_step(campaign, STEP_RESOLUTION_WRITTEN)
        try:
            resolution = write_resolution(db, turn, result.value, used_fallback=used_fallback)
        except ResolutionAlreadyExists as exc:
            raise CampaignAlreadyStarted("Campaign has already been started") from exc
    else:
        used_fallback = resolution.used_fallback

    world_state = db.query(WorldState).filter(WorldState.campaign_code == code).first()
    if world_state is None:
        world_state = WorldState(
            campaign_code=code,
            facts={"genre": campaign.genre, "title": campaign.title, "turn": 1},
        )
        db.add(world_state)
        _mark_step(campaign, STEP_WORLD_SEEDED)
        db.commit()

    campaign.status = ACTIVE
    _mark_step(campaign, None)
    db.commit()
    db.refresh(campaign)
    logger.info(f"Campaign {code} is active (fallback narrative: {used_fallback})")
    return StartOutcome(
        campaign=campaign,
        turn=turn,
        resolution=resolution,
        world_state=world_state,
        used_fallback=used_fallback,
    )


def start_campaign(
    db: Session,
    narrator: StoryNarrator,
    code: str,
    actor_id: str,
    now: Optional[datetime] = None,
) -> StartOutcome:
    """
    Start a campaign: create turn 1 with its opening scene, seed the world
    state and make the campaign active.

    Guards (checked before any write): the caller is the host, the campaign is
    in character_select, and at least one character is locked.
    """
    now = now or datetime.utcnow()
    campaign = get_campaign(db, code)
    _require_host(campaign, actor_id)
    if campaign.status != CHARACTER_SELECT:
        raise InvalidState(f"Campaign must be in character select to start (status is {campaign.status})")
    if not locked_characters(db, campaign.code):
        raise NoLockedCharacters("At least one character must be locked before starting")

    # Compare-and-set so only one concurrent start gets past this point
    moved = (
        db.query(Campaign)
        .filter(Campaign.code == campaign.code, Campaign.status == CHARACTER_SELECT)
        .update(
            {"status": STARTING, "start_step": STEP_STARTING, "updated_at": datetime.utcnow()},
            synchronize_session=False,
        )
    )
    db.commit()
    if not moved:
        raise CampaignAlreadyStarted("Campaign has already been started")

    db.refresh(campaign)
    logger.info(f"Campaign {campaign.code} starting")
    return _complete_start(db, narrator, campaign, now)


def resume_start(
    db: Session,
    narrator: StoryNarrator,
    code: str,
    actor_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> StartOutcome:
    """
    Finish the start sequence of a campaign left in `starting`.

    `actor_id=None` is the supervisory path (recovery script) and skips the
    host check. The host may only resume a start that has made no progress
    for STALLED_START_SECONDS; a younger start is still running.
    """
    now = now or datetime.utcnow()
    campaign = get_campaign(db, code)
    if actor_id is not None:
        _require_host(campaign, actor_id)
    if campaign.status != STARTING:
        raise InvalidState(f"Only a campaign stuck in starting can be resumed (status is {campaign.status})")
    if actor_id is not None and campaign.updated_at > now - timedelta(seconds=STALLED_START_SECONDS):
        raise InvalidState("Start is still in progress")

    logger.warning(f"Resuming start of campaign {campaign.code} after step {campaign.start_step}")
    return _complete_start(db, narrator, campaign, now)


def find_stalled_starts(
    db: Session,
    older_than_seconds: int = STALLED_START_SECONDS,
    now: Optional[datetime] = None,
) -> List[Campaign]:
    """Campaigns in `starting` that have not progressed within the timeout."""
    cutoff = (now or datetime.utcnow()) - timedelta(seconds=older_than_seconds)
    return (
        db.query(Campaign)
        .filter(Campaign.status == STARTING, Campaign.updated_at < cutoff)
        .order_by(Campaign.updated_at.asc())
        .all()
    )


# ----------------------------------------------------------------------
# Turns
# ----------------------------------------------------------------------

def advance_turn(
    db: Session,
    narrator: StoryNarrator,
    code: str,
    actor_id: str,
    hook_index: Optional[int] = None,
    now: Optional[datetime] = None,
) -> AdvanceOutcome:
    """
    Continue the story from the latest turn.

    The hook followed is `hook_index` when given, otherwise the one leading
    the latest turn's vote tally. Status is not checked; the play screen only
    offers this once the campaign is active.
    """
    campaign = get_campaign(db, code)
    _require_host(campaign, actor_id)

    previous = latest_turn(db, campaign.code)
    if previous is None or previous.resolution is None:
        raise InvalidState("The latest turn has no resolution to continue from")

    if hook_index is None:
        hook_index = tally_votes(db, previous.id)["leading_hook_index"]
    if not 0 <= hook_index < HOOK_COUNT:
        raise CampaignRejection(f"hook_index must be between 0 and {HOOK_COUNT - 1}")

    selected_hook = previous.resolution.hooks[hook_index]
    turn_index = next_turn_index(db, campaign.code)
    history = [
        {"turn_index": t.turn_index, "summary": t.summary}
        for t in db.query(Turn).filter(Turn.campaign_code == campaign.code).order_by(Turn.turn_index.asc())
    ]
    roster = [c.roster_entry() for c in locked_characters(db, campaign.code)]

    result = narrator.continuation(roster, campaign.genre, campaign.title, history, selected_hook, turn_index)

    # Committed with the new turn, rolled back with it if the index is taken
    previous.selected_hook_index = hook_index
    turn, resolution = write_turn(
        db,
        campaign.code,
        turn_index,
        result.value,
        used_fallback=result.used_fallback,
        now=now,
    )
    logger.info(f"Campaign {campaign.code} advanced to turn {turn_index} via hook {hook_index}")
    return AdvanceOutcome(
        campaign=campaign,
        previous_turn=previous,
        turn=turn,
        resolution=resolution,
        selected_hook_index=hook_index,
        used_fallback=result.used_fallback,
    )
