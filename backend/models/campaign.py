"""
Campaign and WorldState models.

A campaign is identified by its shareable 6-character code and moves through
lobby -> character_select -> starting -> active. `ended` is reserved.
"""
from sqlalchemy import Column, String, DateTime, Integer, JSON, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime
from backend.db import Base

LOBBY = "lobby"
CHARACTER_SELECT = "character_select"
STARTING = "starting"
ACTIVE = "active"
ENDED = "ended"

CAMPAIGN_STATUSES = (LOBBY, CHARACTER_SELECT, STARTING, ACTIVE, ENDED)

GENRES = (
    "dark_fantasy",
    "space_opera",
    "mystery",
    "post_apoc",
    "pirate",
    "fantasy",
    "scifi",
    "horror",
    "adventure",
    "romance",
)


class Campaign(Base):
    """One shared story, joined by code."""
    __tablename__ = "campaigns"
    __table_args__ = {'extend_existing': True}

    code = Column(String(6), primary_key=True, index=True)
    title = Column(String, nullable=False)
    genre = Column(String, nullable=False)
    status = Column(String, nullable=False, default=LOBBY, index=True)
    max_players = Column(Integer, nullable=False, default=6)
    host_user_id = Column(String, nullable=False, index=True)
    # Last completed step of the start sequence; None outside `starting`
    start_step = Column(String, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    characters = relationship("Character", back_populates="campaign", order_by="Character.id")
    turns = relationship("Turn", back_populates="campaign", order_by="Turn.turn_index")
    world_state = relationship("WorldState", back_populates="campaign", uselist=False)

    def __repr__(self):
        return f"<Campaign(code={self.code}, status={self.status}, genre={self.genre})>"


class WorldState(Base):
    """Open-ended fact bag seeded when a campaign starts."""
    __tablename__ = "world_states"
    __table_args__ = {'extend_existing': True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    campaign_code = Column(String(6), ForeignKey("campaigns.code", ondelete="CASCADE"), unique=True, nullable=False)
    facts = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    campaign = relationship("Campaign", back_populates="world_state")
