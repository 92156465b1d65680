"""
Pydantic schemas for votes.
"""

from pydantic import BaseModel, Field, ConfigDict
from typing import List, Optional
from datetime import datetime


class VoteCreate(BaseModel):
    """A character's vote for one of the turn's three hooks."""
    model_config = ConfigDict(populate_by_name=True)

    turn_id: int = Field(..., alias="turnId")
    character_id: int = Field(..., alias="characterId")
    hook_index: int = Field(..., ge=0, le=2, alias="hookIndex")


class VoteResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    turn_id: int
    character_id: int
    hook_index: int
    created_at: datetime
    updated_at: datetime


class VoterInfo(BaseModel):
    name: str
    archetype: str


class VoteWithCharacter(VoteResponse):
    character: VoterInfo


class TallyResponse(BaseModel):
    turn_id: int
    counts: List[int]
    total: int
    leading_hook_index: int
    ends_at: Optional[datetime] = None
    expired: bool = False
