"""Narrative generation over an OpenAI-compatible chat completions endpoint.

Every public call returns a :class:`NarrativeResult`. When the service is not
configured, unreachable, or answers with something that does not parse, the
result carries fixed fallback content and ``used_fallback=True`` instead of
raising, so callers can carry on and still see what happened.
"""

import json as _json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Generic, List, Mapping, Optional, Sequence, TypeVar

import httpx
from pydantic import BaseModel, Field, ValidationError, field_validator

from backend.config import NARRATIVE_BASE_URL, NARRATIVE_MODEL, NARRATIVE_TIMEOUT, OPENAI_API_KEY
from backend.models import GENRES

logger = logging.getLogger(__name__)

T = TypeVar("T")

FALLBACK_GENRE = "adventure"

OPENING_FALLBACK_HOOKS = [
    "Investigate the mysterious light in the distance",
    "Seek shelter and plan your next move",
    "Call out to see if anyone else is nearby",
]

CONTINUATION_FALLBACK_HOOKS = [
    "Take a bold action to advance the plot",
    "Gather more information before proceeding",
    "Work together to overcome the current challenge",
]


class NarrativeServiceError(Exception):
    """Raised internally when a completion cannot be obtained or parsed."""


class GenreSuggestion(BaseModel):
    genre: str
    confidence: float = Field(ge=0, le=1)
    reasoning: str

    @field_validator('genre')
    @classmethod
    def validate_genre(cls, v: str) -> str:
        if v not in GENRES:
            raise ValueError(f'Unknown genre: {v}')
        return v


class StoryContent(BaseModel):
    content: str = Field(min_length=1)
    hooks: List[str] = Field(min_length=3, max_length=3)
    memory_summary: str = ""


@dataclass
class NarrativeResult(Generic[T]):
    """Either generated content or the fallback that replaced it."""

    value: T
    used_fallback: bool = False
    reason: Optional[str] = None

    @classmethod
    def ok(cls, value: T) -> "NarrativeResult[T]":
        return cls(value=value)

    @classmethod
    def fallback(cls, value: T, reason: str) -> "NarrativeResult[T]":
        return cls(value=value, used_fallback=True, reason=reason)


# ----------------------------------------------------------------------
# Fallback payloads
# ----------------------------------------------------------------------

def fallback_genre(configured: bool) -> GenreSuggestion:
    if not configured:
        return GenreSuggestion(
            genre=FALLBACK_GENRE,
            confidence=0.3,
            reasoning="AI service not configured - using default adventure genre",
        )
    return GenreSuggestion(
        genre=FALLBACK_GENRE,
        confidence=0.5,
        reasoning="Fallback genre due to AI service error",
    )


def fallback_opening(genre: str, title: str) -> StoryContent:
    return StoryContent(
        content=(
            f"Welcome to your {genre} adventure: {title}!\n\n"
            "You find yourself at the beginning of an epic journey. The world around you is "
            "filled with possibilities and danger lurks in every shadow. Your choices will "
            "shape the destiny of this tale.\n\n"
            "What will you do next?"
        ),
        hooks=list(OPENING_FALLBACK_HOOKS),
        memory_summary=f"Opening scene of {title} - players begin their {genre} adventure",
    )


def fallback_continuation(genre: str, title: str, turn_index: int) -> StoryContent:
    return StoryContent(
        content=(
            f"The story continues in your {genre} adventure. The consequences of your previous "
            "choice unfold before you, presenting new challenges and opportunities.\n\n"
            "What will you do next?"
        ),
        hooks=list(CONTINUATION_FALLBACK_HOOKS),
        memory_summary=f"Turn {turn_index} continuation of {title}",
    )


# ----------------------------------------------------------------------
# Prompts
# ----------------------------------------------------------------------

def describe_roster(roster: Sequence[Mapping[str, Any]]) -> str:
    return ", ".join(f"{c['name']} ({c['archetype']})" for c in roster)


def genre_prompt(roster: Sequence[Mapping[str, Any]]) -> str:
    return (
        "You are an expert storyteller and game master. Pick the genre that best fits "
        "the story of these characters.\n\n"
        f"Characters: {describe_roster(roster)}\n\n"
        f"Available genres: {', '.join(GENRES)}\n\n"
        "Weigh how the archetypes play off each other, the conflicts they invite, and "
        "which genre tropes would make the table most excited.\n\n"
        "Respond with a JSON object containing:\n"
        "- genre: one genre name copied exactly from the list\n"
        "- confidence: a number from 0 to 1\n"
        "- reasoning: one or two sentences explaining the choice"
    )


def opening_prompt(roster: Sequence[Mapping[str, Any]], genre: str, title: str, turn_index: int) -> str:
    return (
        f"You are a master storyteller opening a {genre} story.\n\n"
        f"Campaign: {title}\n"
        f"Genre: {genre}\n"
        f"Characters: {describe_roster(roster)}\n"
        f"Turn: {turn_index}\n\n"
        "Write an opening scene of 2-3 paragraphs that introduces every character, sets "
        f"the {genre} tone and creates immediate tension. Then offer exactly three story "
        "hooks the players can vote on.\n\n"
        "Respond with a JSON object containing:\n"
        "- content: the scene text\n"
        "- hooks: an array of exactly 3 hook strings\n"
        "- memory_summary: a one-sentence summary of the scene for later turns"
    )


def continuation_prompt(
    roster: Sequence[Mapping[str, Any]],
    genre: str,
    title: str,
    previous_turns: Sequence[Mapping[str, Any]],
    selected_hook: str,
    turn_index: int,
) -> str:
    history = "\n".join(f"Turn {t['turn_index']}: {t['summary']}" for t in previous_turns)
    return (
        f"You are a master storyteller continuing a {genre} story.\n\n"
        f"Campaign: {title}\n"
        f"Genre: {genre}\n"
        f"Characters: {describe_roster(roster)}\n"
        f"Turn: {turn_index}\n\n"
        f"Previous events:\n{history}\n\n"
        f"The players chose: {selected_hook}\n\n"
        "Write the next scene (2-3 paragraphs) following from that choice, keeping the "
        f"{genre} tone and involving every character. Then offer exactly three new story "
        "hooks.\n\n"
        "Respond with a JSON object containing:\n"
        "- content: the scene text\n"
        "- hooks: an array of exactly 3 hook strings\n"
        "- memory_summary: a one-sentence summary of the scene for later turns"
    )


def _strip_fences(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
        if text.rstrip().endswith("```"):
            text = text.rstrip()[:-3]
    return text.strip()


class StoryNarrator:
    """Client for the narrative-generation service."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.api_key = OPENAI_API_KEY if api_key is None else api_key
        self.base_url = (base_url or NARRATIVE_BASE_URL).rstrip("/")
        self.model = model or NARRATIVE_MODEL
        self.client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout or NARRATIVE_TIMEOUT,
            transport=transport,
        )

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def close(self) -> None:
        self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    def _chat(self, prompt: str, temperature: float, max_tokens: int) -> str:
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        try:
            response = self.client.post(
                "/chat/completions",
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
            )
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            raise NarrativeServiceError(f"Narrative request timed out: {exc}") from exc
        except httpx.HTTPStatusError as exc:
            raise NarrativeServiceError(
                f"Narrative service returned HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise NarrativeServiceError(f"Narrative network error: {exc}") from exc

        try:
            content = response.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise NarrativeServiceError("Unexpected completion shape") from exc
        if not content:
            raise NarrativeServiceError("No response from narrative service")
        if not isinstance(content, str):
            raise NarrativeServiceError("Unexpected completion shape")
        return content

    def _generate(self, prompt: str, schema: type, temperature: float, max_tokens: int):
        raw = self._chat(prompt, temperature, max_tokens)
        try:
            return schema.model_validate(_json.loads(_strip_fences(raw)))
        except (_json.JSONDecodeError, ValidationError) as exc:
            raise NarrativeServiceError(f"Malformed narrative response: {exc}") from exc

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def suggest_genre(self, roster: Sequence[Mapping[str, Any]]) -> NarrativeResult[GenreSuggestion]:
        """Suggest the genre that best suits a roster of characters."""
        if not self.configured:
            logger.info("Narrative service not configured, using fallback genre suggestion")
            return NarrativeResult.fallback(fallback_genre(configured=False), "not configured")
        try:
            suggestion = self._generate(genre_prompt(roster), GenreSuggestion, 0.7, 500)
        except NarrativeServiceError as exc:
            logger.warning(f"Genre suggestion failed, using fallback: {exc}")
            return NarrativeResult.fallback(fallback_genre(configured=True), str(exc))
        return NarrativeResult.ok(suggestion)

    def opening_scene(
        self,
        roster: Sequence[Mapping[str, Any]],
        genre: str,
        title: str,
        turn_index: int = 1,
    ) -> NarrativeResult[StoryContent]:
        """Generate the opening scene and its three hooks."""
        if not self.configured:
            logger.info("Narrative service not configured, using fallback opening scene")
            return NarrativeResult.fallback(fallback_opening(genre, title), "not configured")
        try:
            story = self._generate(opening_prompt(roster, genre, title, turn_index), StoryContent, 0.8, 1000)
        except NarrativeServiceError as exc:
            logger.warning(f"Opening scene generation failed, using fallback: {exc}")
            return NarrativeResult.fallback(fallback_opening(genre, title), str(exc))
        return NarrativeResult.ok(story)

    def continuation(
        self,
        roster: Sequence[Mapping[str, Any]],
        genre: str,
        title: str,
        previous_turns: Sequence[Mapping[str, Any]],
        selected_hook: str,
        turn_index: int,
    ) -> NarrativeResult[StoryContent]:
        """Generate the scene that follows the chosen hook."""
        if not self.configured:
            logger.info("Narrative service not configured, using fallback continuation")
            return NarrativeResult.fallback(fallback_continuation(genre, title, turn_index), "not configured")
        prompt = continuation_prompt(roster, genre, title, previous_turns, selected_hook, turn_index)
        try:
            story = self._generate(prompt, StoryContent, 0.8, 1000)
        except NarrativeServiceError as exc:
            logger.warning(f"Continuation generation failed, using fallback: {exc}")
            return NarrativeResult.fallback(fallback_continuation(genre, title, turn_index), str(exc))
        return NarrativeResult.ok(story)
