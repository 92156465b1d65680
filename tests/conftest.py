import json
import os

# Must be set before anything under backend/ is imported
os.environ["DATABASE_URL"] = "sqlite:///./test_chronicle.db"
os.environ["SECRET_KEY"] = "test-secret"
os.environ["OPENAI_API_KEY"] = ""

import httpx
import pytest
from fastapi.testclient import TestClient

from backend.auth.jwt import create_access_token
from backend.db import Base, SessionLocal, engine
from backend.narrative import StoryNarrator

HOST_ID = "host-user"
PLAYER_ID = "player-user"


def completion_response(payload) -> httpx.Response:
    """An OpenAI-style chat completion whose message is `payload` as JSON."""
    content = payload if isinstance(payload, str) else json.dumps(payload)
    return httpx.Response(200, json={"choices": [{"message": {"role": "assistant", "content": content}}]})


def scripted_narrator(*payloads, requests=None) -> StoryNarrator:
    """
    A configured narrator whose completions come from `payloads` in order.
    The last payload repeats. Sent requests are appended to `requests`.
    """
    queue = list(payloads)

    def handler(request: httpx.Request) -> httpx.Response:
        if requests is not None:
            requests.append(json.loads(request.content))
        payload = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(payload, httpx.Response):
            return payload
        return completion_response(payload)

    return StoryNarrator(
        api_key="test-key",
        base_url="http://narrator.test/v1",
        transport=httpx.MockTransport(handler),
    )


def auth_headers(user_id: str) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user_id)}"}


@pytest.fixture(autouse=True)
def fresh_schema():
    import backend.models  # noqa: F401  (register tables)

    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def offline_narrator():
    """Unconfigured narrator: every call returns the fallback."""
    with StoryNarrator(api_key="") as narrator:
        yield narrator


@pytest.fixture
def opening_story():
    return {
        "content": "Rain hammers the harbour as Ari steps off the ferry.",
        "hooks": ["Follow the lantern", "Bribe the harbourmaster", "Hide in the warehouse"],
        "memory_summary": "Ari arrives at a rain-soaked harbour.",
    }


@pytest.fixture
def test_client():
    from backend.app import application

    with TestClient(application) as client:
        yield client
    application.dependency_overrides.clear()


@pytest.fixture
def host_headers():
    return auth_headers(HOST_ID)


@pytest.fixture
def player_headers():
    return auth_headers(PLAYER_ID)
