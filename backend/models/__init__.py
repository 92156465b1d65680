"""
ORM models for Chronicle.

Campaign is the root; characters, turns and world state belong to exactly
one campaign. A resolution belongs to one turn. Votes reference a turn and a
character.
"""

from .campaign import Campaign, WorldState, CAMPAIGN_STATUSES, GENRES
from .character import Character
from .turn import Turn, Resolution
from .vote import Vote

__all__ = [
    'Campaign',
    'WorldState',
    'Character',
    'Turn',
    'Resolution',
    'Vote',
    'CAMPAIGN_STATUSES',
    'GENRES',
]
