"""
Tests for the narrative client: generated content, and the fallbacks that
replace it when the service is missing, failing or talking nonsense.
"""

import httpx

from backend.narrative import (
    CONTINUATION_FALLBACK_HOOKS,
    OPENING_FALLBACK_HOOKS,
    StoryNarrator,
    fallback_opening,
)
from conftest import completion_response, scripted_narrator

ROSTER = [
    {"id": 1, "name": "Ari", "archetype": "Mage"},
    {"id": 2, "name": "Bo", "archetype": "Rogue"},
]


def failing_narrator(handler) -> StoryNarrator:
    return StoryNarrator(api_key="test-key", base_url="http://narrator.test/v1", transport=httpx.MockTransport(handler))


# ============================================================================
# NOT CONFIGURED
# ============================================================================

def test_unconfigured_genre_suggestion_falls_back_with_low_confidence(offline_narrator):
    result = offline_narrator.suggest_genre(ROSTER)

    assert result.used_fallback
    assert result.value.genre == "adventure"
    assert result.value.confidence == 0.3
    assert result.value.reasoning == "AI service not configured - using default adventure genre"


def test_unconfigured_opening_scene_uses_fixed_hooks(offline_narrator):
    result = offline_narrator.opening_scene(ROSTER, "fantasy", "Test")

    assert result.used_fallback
    assert result.value.hooks == OPENING_FALLBACK_HOOKS
    assert result.value.content.startswith("Welcome to your fantasy adventure: Test!")
    assert result.value.memory_summary == "Opening scene of Test - players begin their fantasy adventure"


def test_unconfigured_continuation_uses_fixed_hooks(offline_narrator):
    result = offline_narrator.continuation(ROSTER, "horror", "Test", [], "Run", turn_index=3)

    assert result.used_fallback
    assert result.value.hooks == CONTINUATION_FALLBACK_HOOKS
    assert result.value.memory_summary == "Turn 3 continuation of Test"


# ============================================================================
# GENERATED CONTENT
# ============================================================================

def test_opening_scene_parses_completion(opening_story):
    requests = []
    narrator = scripted_narrator(opening_story, requests=requests)

    result = narrator.opening_scene(ROSTER, "pirate", "Salt and Steel")

    assert not result.used_fallback
    assert result.value.hooks == opening_story["hooks"]
    assert result.value.memory_summary == opening_story["memory_summary"]

    sent = requests[0]
    assert sent["model"] == narrator.model
    prompt = sent["messages"][0]["content"]
    assert "Ari (Mage), Bo (Rogue)" in prompt
    assert "Salt and Steel" in prompt


def test_completion_wrapped_in_code_fence_is_accepted(opening_story):
    import json

    fenced = "```json\n" + json.dumps(opening_story) + "\n```"
    narrator = scripted_narrator(fenced)

    result = narrator.opening_scene(ROSTER, "pirate", "Salt and Steel")

    assert not result.used_fallback
    assert result.value.content == opening_story["content"]


def test_genre_suggestion_parses_completion():
    narrator = scripted_narrator({"genre": "space_opera", "confidence": 0.8, "reasoning": "Ships."})

    result = narrator.suggest_genre(ROSTER)

    assert not result.used_fallback
    assert result.value.genre == "space_opera"
    assert result.value.confidence == 0.8


def test_continuation_prompt_includes_history_and_choice(opening_story):
    requests = []
    narrator = scripted_narrator(opening_story, requests=requests)
    history = [{"turn_index": 1, "summary": "Ari arrives at the harbour."}]

    result = narrator.continuation(ROSTER, "pirate", "Salt and Steel", history, "Follow the lantern", 2)

    assert not result.used_fallback
    prompt = requests[0]["messages"][0]["content"]
    assert "Turn 1: Ari arrives at the harbour." in prompt
    assert "The players chose: Follow the lantern" in prompt


# ============================================================================
# FAILURES
# ============================================================================

def test_wrong_number_of_hooks_falls_back(opening_story):
    narrator = scripted_narrator({**opening_story, "hooks": ["Only", "Two"]})

    result = narrator.opening_scene(ROSTER, "fantasy", "Test")

    assert result.used_fallback
    assert result.value == fallback_opening("fantasy", "Test")


def test_unknown_genre_falls_back_with_error_confidence():
    narrator = scripted_narrator({"genre": "western", "confidence": 0.9, "reasoning": "Yeehaw"})

    result = narrator.suggest_genre(ROSTER)

    assert result.used_fallback
    assert result.value.genre == "adventure"
    assert result.value.confidence == 0.5
    assert result.value.reasoning == "Fallback genre due to AI service error"


def test_non_json_completion_falls_back():
    narrator = scripted_narrator("Once upon a time...")

    result = narrator.opening_scene(ROSTER, "fantasy", "Test")

    assert result.used_fallback
    assert result.value.hooks == OPENING_FALLBACK_HOOKS


def test_http_error_falls_back():
    narrator = failing_narrator(lambda request: httpx.Response(503, json={"error": "overloaded"}))

    result = narrator.opening_scene(ROSTER, "fantasy", "Test")

    assert result.used_fallback
    assert "503" in result.reason


def test_connection_error_falls_back():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    result = failing_narrator(handler).suggest_genre(ROSTER)

    assert result.used_fallback
    assert result.value.confidence == 0.5


def test_empty_completion_falls_back():
    narrator = failing_narrator(lambda request: completion_response(""))

    result = narrator.continuation(ROSTER, "fantasy", "Test", [], "Run", 2)

    assert result.used_fallback
    assert result.value.hooks == CONTINUATION_FALLBACK_HOOKS


def test_structured_completion_content_falls_back():
    def handler(request):
        return httpx.Response(200, json={"choices": [{"message": {"content": {"content": "x"}}}]})

    result = failing_narrator(handler).opening_scene(ROSTER, "fantasy", "Test")

    assert result.used_fallback
    assert result.reason == "Unexpected completion shape"
    assert result.value.hooks == OPENING_FALLBACK_HOOKS


def test_content_parts_list_falls_back():
    parts = [{"type": "text", "text": "Rain hammers the harbour."}]
    narrator = failing_narrator(
        lambda request: httpx.Response(200, json={"choices": [{"message": {"content": parts}}]})
    )

    result = narrator.suggest_genre(ROSTER)

    assert result.used_fallback
    assert result.value.genre == "adventure"
