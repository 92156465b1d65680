"""
Turn and Resolution models.

Turn indexes are 1-based and unique per campaign. Each turn has at most one
resolution holding the scene text and exactly three hooks.
"""
from sqlalchemy import Column, String, DateTime, Integer, Text, JSON, Boolean, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
from backend.db import Base


class Turn(Base):
    __tablename__ = "turns"
    __table_args__ = (
        UniqueConstraint("campaign_code", "turn_index", name="uq_turn_campaign_index"),
        {'extend_existing': True},
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    campaign_code = Column(String(6), ForeignKey("campaigns.code", ondelete="CASCADE"), nullable=False, index=True)
    turn_index = Column(Integer, nullable=False)
    starts_at = Column(DateTime, nullable=False)
    ends_at = Column(DateTime, nullable=False)  # advisory: nothing closes the turn
    summary = Column(Text, nullable=False, default="")
    selected_hook_index = Column(Integer, nullable=True)  # set when the story advances past this turn
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    campaign = relationship("Campaign", back_populates="turns")
    resolution = relationship("Resolution", back_populates="turn", uselist=False)
    votes = relationship("Vote", back_populates="turn")

    def __repr__(self):
        return f"<Turn(campaign={self.campaign_code}, index={self.turn_index})>"


class Resolution(Base):
    __tablename__ = "resolutions"
    __table_args__ = {'extend_existing': True}

    id = Column(Integer, primary_key=True, autoincrement=True)
    turn_id = Column(Integer, ForeignKey("turns.id", ondelete="CASCADE"), unique=True, nullable=False)
    content = Column(Text, nullable=False)
    hooks = Column(JSON, nullable=False)
    memory_summary = Column(Text, nullable=False, default="")
    used_fallback = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    turn = relationship("Turn", back_populates="resolution")
