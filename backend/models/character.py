"""
Character model.

Names are unique within a campaign. Once locked, name, archetype and avatar
can no longer change.
"""
from sqlalchemy import Column, String, DateTime, Boolean, Integer, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from datetime import datetime
from backend.db import Base


class Character(Base):
    __tablename__ = "characters"
    __table_args__ = (
        UniqueConstraint("campaign_code", "name", name="uq_character_campaign_name"),
        {'extend_existing': True},
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    campaign_code = Column(String(6), ForeignKey("campaigns.code", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String, nullable=False, index=True)
    name = Column(String, nullable=False)
    archetype = Column(String, nullable=False)
    avatar_url = Column(String, nullable=True)
    is_locked = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    campaign = relationship("Campaign", back_populates="characters")

    def __repr__(self):
        return f"<Character(id={self.id}, name={self.name}, locked={self.is_locked})>"

    def roster_entry(self) -> dict:
        """The `{id, name, archetype}` shape the narrator works with."""
        return {"id": self.id, "name": self.name, "archetype": self.archetype}
