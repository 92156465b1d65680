"""
Pydantic schemas for guest sessions.
"""

from pydantic import BaseModel, Field, ConfigDict


class GuestSessionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    display_name: str = Field(..., min_length=1, max_length=50, alias="displayName")


class GuestSessionResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: str
    display_name: str
