# backend/dependencies.py

from fastapi import Request

from backend.narrative import StoryNarrator


def get_narrator(request: Request) -> StoryNarrator:
    """The narrator opened at startup; see the app lifespan."""
    return request.app.state.narrator
