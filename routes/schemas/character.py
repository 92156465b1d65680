"""
Pydantic schemas for character claims.
"""

from pydantic import BaseModel, Field, ConfigDict
from typing import Optional
from datetime import datetime


class CharacterClaim(BaseModel):
    """Request to claim a character in a campaign."""
    model_config = ConfigDict(populate_by_name=True)

    campaign_code: str = Field(..., min_length=6, max_length=6, alias="campaignId")
    name: str = Field(..., min_length=1, max_length=100)
    archetype: str = Field(..., min_length=1, max_length=100)
    avatar_url: Optional[str] = Field(None, alias="avatarUrl")


class CharacterUpdate(BaseModel):
    """Request to edit an unlocked character."""
    model_config = ConfigDict(populate_by_name=True)

    name: Optional[str] = Field(None, min_length=1, max_length=100)
    archetype: Optional[str] = Field(None, min_length=1, max_length=100)
    avatar_url: Optional[str] = Field(None, alias="avatarUrl")


class CharacterResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    campaign_code: str
    user_id: str
    name: str
    archetype: str
    avatar_url: Optional[str] = None
    is_locked: bool
    created_at: datetime
    updated_at: datetime
