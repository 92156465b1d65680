"""
HTTP tests: the full campaign flow through the API, auth, and error shapes.
"""

from backend.dependencies import get_narrator
from backend.narrative import OPENING_FALLBACK_HOOKS
from conftest import HOST_ID, PLAYER_ID, auth_headers, scripted_narrator


def create_campaign(client, headers, **overrides):
    payload = {"title": "Test", "genre": "fantasy", "maxPlayers": 4, **overrides}
    resp = client.post("/api/campaigns", headers=headers, json=payload)
    assert resp.status_code == 201, resp.text
    return resp.json()["campaignId"]


# ============================================================================
# HEALTH
# ============================================================================

def test_public_health_ok(test_client):
    resp = test_client.get("/health")
    assert resp.status_code == 200
    assert resp.json().get("status") == "ok"


def test_api_health_reports_database_and_narrator(test_client):
    resp = test_client.get("/api/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["database"] == "ok"
    assert body["narrator"] == {"configured": False}
    assert body["stalled_starts"] == 0


def test_request_id_is_echoed(test_client):
    resp = test_client.get("/health", headers={"X-Request-ID": "abc123"})
    assert resp.headers["X-Request-ID"] == "abc123"


# ============================================================================
# AUTH
# ============================================================================

def test_writes_require_bearer_token(test_client):
    resp = test_client.post("/api/campaigns", json={"title": "Test", "genre": "fantasy"})
    assert resp.status_code == 401
    assert resp.json()["error"] == "Missing or invalid authorization header"


def test_invalid_token_is_rejected(test_client):
    resp = test_client.post(
        "/api/campaigns",
        headers={"Authorization": "Bearer not-a-token"},
        json={"title": "Test", "genre": "fantasy"},
    )
    assert resp.status_code == 401


def test_guest_session_token_works(test_client):
    resp = test_client.post("/api/auth/guest", json={"displayName": "Ari"})
    assert resp.status_code == 201
    body = resp.json()
    headers = {"Authorization": f"Bearer {body['access_token']}"}

    me = test_client.get("/api/auth/me", headers=headers).json()
    assert me == {"user_id": body["user_id"], "display_name": "Ari"}

    code = create_campaign(test_client, headers)
    campaign = test_client.get(f"/api/campaigns/{code}", headers=headers).json()
    assert campaign["host_user_id"] == body["user_id"]
    assert campaign["is_host"] is True


# ============================================================================
# VALIDATION AND REJECTIONS
# ============================================================================

def test_unknown_genre_fails_validation(test_client, host_headers):
    resp = test_client.post("/api/campaigns", headers=host_headers, json={"title": "Test", "genre": "western"})
    assert resp.status_code == 422


def test_rejection_has_error_message(test_client, host_headers):
    code = create_campaign(test_client, host_headers)

    resp = test_client.post(f"/api/campaigns/{code}/start", headers=host_headers)

    assert resp.status_code == 409
    body = resp.json()
    assert "character select" in body["error"]
    assert "request_id" in body


def test_missing_campaign_is_404(test_client):
    resp = test_client.get("/api/campaigns/NOPE00")
    assert resp.status_code == 404
    assert resp.json()["error"] == "Campaign not found"


def test_non_host_cannot_enter_character_select(test_client, host_headers, player_headers):
    code = create_campaign(test_client, host_headers)

    resp = test_client.post(f"/api/campaigns/{code}/enter-character-select", headers=player_headers)

    assert resp.status_code == 403
    assert test_client.get(f"/api/campaigns/{code}").json()["status"] == "lobby"


def test_duplicate_character_name_is_conflict(test_client, host_headers, player_headers):
    code = create_campaign(test_client, host_headers)
    first = test_client.post(
        "/api/characters/claim", headers=player_headers,
        json={"campaignId": code, "name": "Ari", "archetype": "Mage"},
    )
    assert first.status_code == 201

    second = test_client.post(
        "/api/characters/claim", headers=host_headers,
        json={"campaignId": code, "name": "Ari", "archetype": "Rogue"},
    )
    assert second.status_code == 409
    assert "Ari" in second.json()["error"]

    characters = test_client.get(f"/api/campaigns/{code}/characters").json()
    assert [(c["name"], c["archetype"]) for c in characters] == [("Ari", "Mage")]


# ============================================================================
# END TO END
# ============================================================================

def test_full_campaign_flow(test_client, host_headers, player_headers):
    code = create_campaign(test_client, host_headers)
    assert test_client.get(f"/api/campaigns/{code}").json()["status"] == "lobby"

    resp = test_client.post(f"/api/campaigns/{code}/enter-character-select", headers=host_headers)
    assert resp.status_code == 200
    assert resp.json()["status"] == "character_select"

    resp = test_client.post(
        "/api/characters/claim", headers=player_headers,
        json={"campaignId": code, "name": "Ari", "archetype": "Mage"},
    )
    assert resp.status_code == 201
    character = resp.json()
    assert character["is_locked"] is False

    resp = test_client.post(f"/api/characters/{character['id']}/lock", headers=player_headers)
    assert resp.status_code == 200
    assert resp.json()["is_locked"] is True

    again = test_client.post(f"/api/characters/{character['id']}/lock", headers=player_headers)
    assert again.status_code == 409

    resp = test_client.post(f"/api/campaigns/{code}/start", headers=host_headers)
    assert resp.status_code == 200, resp.text
    started = resp.json()
    assert started["campaign"]["status"] == "active"
    assert started["turn"]["turn_index"] == 1
    assert len(started["resolution"]["hooks"]) == 3
    # No narrator configured in tests
    assert started["used_fallback"] is True
    assert started["resolution"]["hooks"] == OPENING_FALLBACK_HOOKS
    assert started["world_state"]["facts"] == {"genre": "fantasy", "title": "Test", "turn": 1}

    turn = test_client.get(f"/api/campaigns/{code}/turn").json()
    assert turn["turn_index"] == 1
    resolution = test_client.get(f"/api/turns/{turn['id']}/resolution").json()
    assert resolution["hooks"] == started["resolution"]["hooks"]

    vote = {"turnId": turn["id"], "characterId": character["id"], "hookIndex": 1}
    resp = test_client.post("/api/votes", headers=player_headers, json=vote)
    assert resp.status_code == 200
    assert resp.json()["hook_index"] == 1

    resp = test_client.post("/api/votes", headers=player_headers, json={**vote, "hookIndex": 2})
    assert resp.status_code == 200

    votes = test_client.get(f"/api/turns/{turn['id']}/votes").json()
    assert len(votes) == 1
    assert votes[0]["hook_index"] == 2
    assert votes[0]["character"] == {"name": "Ari", "archetype": "Mage"}

    mine = test_client.get(
        "/api/votes", headers=player_headers,
        params={"turn_id": turn["id"], "character_id": character["id"]},
    ).json()
    assert mine["hook_index"] == 2

    tally = test_client.get(f"/api/turns/{turn['id']}/tally").json()
    assert tally["counts"] == [0, 0, 1]
    assert tally["leading_hook_index"] == 2

    resp = test_client.post(f"/api/campaigns/{code}/turns", headers=host_headers)
    assert resp.status_code == 201, resp.text
    advanced = resp.json()
    assert advanced["turn"]["turn_index"] == 2
    assert advanced["selected_hook_index"] == 2
    assert advanced["previous_turn"]["selected_hook_index"] == 2

    turns = test_client.get(f"/api/campaigns/{code}/turns").json()
    assert [t["turn_index"] for t in turns] == [1, 2]

    world = test_client.get(f"/api/campaigns/{code}/world-state").json()
    assert world["campaign_code"] == code


def test_vote_with_out_of_range_hook_fails_validation(test_client, player_headers):
    resp = test_client.post("/api/votes", headers=player_headers, json={"turnId": 1, "characterId": 1, "hookIndex": 3})
    assert resp.status_code == 422


def test_start_uses_injected_narrator(test_client, host_headers, player_headers, opening_story):
    from backend.app import application

    application.dependency_overrides[get_narrator] = lambda: scripted_narrator(opening_story)
    code = create_campaign(test_client, host_headers)
    test_client.post(f"/api/campaigns/{code}/enter-character-select", headers=host_headers)
    character = test_client.post(
        "/api/characters/claim", headers=player_headers,
        json={"campaignId": code, "name": "Ari", "archetype": "Mage"},
    ).json()
    test_client.post(f"/api/characters/{character['id']}/lock", headers=player_headers)

    started = test_client.post(f"/api/campaigns/{code}/start", headers=host_headers).json()

    assert started["used_fallback"] is False
    assert started["resolution"]["content"] == opening_story["content"]
    assert started["turn"]["summary"] == opening_story["memory_summary"]


def test_suggest_genre_falls_back_without_narrator(test_client, host_headers):
    code = create_campaign(test_client, host_headers)

    resp = test_client.post(f"/api/campaigns/{code}/suggest-genre")

    assert resp.status_code == 200
    assert resp.json() == {
        "genre": "adventure",
        "confidence": 0.3,
        "reasoning": "AI service not configured - using default adventure genre",
        "used_fallback": True,
    }


def test_patch_campaign_genre(test_client, host_headers):
    code = create_campaign(test_client, host_headers)

    resp = test_client.patch(f"/api/campaigns/{code}", headers=host_headers, json={"genre": "pirate"})

    assert resp.status_code == 200
    assert resp.json()["genre"] == "pirate"


def test_list_campaigns(test_client, host_headers):
    first = create_campaign(test_client, host_headers, title="First")
    second = create_campaign(test_client, host_headers, title="Second")

    codes = [c["code"] for c in test_client.get("/api/campaigns").json()]

    assert set(codes) >= {first, second}


def test_host_id_comes_from_token(test_client):
    code = create_campaign(test_client, auth_headers("someone"))
    assert test_client.get(f"/api/campaigns/{code}").json()["host_user_id"] == "someone"
    assert HOST_ID != "someone" and PLAYER_ID != "someone"


def test_missing_turn_and_world_state_are_404(test_client, host_headers):
    code = create_campaign(test_client, host_headers)

    assert test_client.get("/api/turns/9999/resolution").json()["error"] == "Turn not found"
    assert test_client.get(f"/api/campaigns/{code}/world-state").status_code == 404
    assert test_client.get(f"/api/campaigns/{code}/turns").json() == []
