"""HTTP tests for the AI endpoints."""

import json

import pytest

from app.gateway.providers import ProviderError, ProviderKeyMissingError
from app.gateway.types import ProviderName

MATRIX_JSON = json.dumps(
    {
        "headline": "Hydrate Boldly",
        "tagline": "Refill the planet",
        "value_proposition": "Bottles that last a lifetime.",
        "key_messages": ["Recycled steel"],
        "call_to_action": "Shop now",
        "tone_notes": "Upbeat",
    }
)


# ── Auth boundary ────────────────────────────────────────────────


@pytest.mark.asyncio
async def test_agents_require_auth(client):
    resp = await client.post("/api/ai/agents/matrix", json={"prompt": "Eco bottles"})
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Not authenticated"


@pytest.mark.asyncio
async def test_invalid_token_rejected(client):
    resp = await client.post(
        "/api/ai/agents/matrix",
        json={"prompt": "Eco bottles"},
        headers={"Authorization": "Bearer not-a-jwt"},
    )
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Invalid or expired token"


@pytest.mark.asyncio
async def test_free_trial_header_bypasses_auth(client, providers, trial_headers):
    providers[ProviderName.OPENROUTER].content = MATRIX_JSON

    resp = await client.post("/api/ai/agents/matrix", json={"prompt": "Eco bottles"}, headers=trial_headers)

    assert resp.status_code == 200
    assert resp.json()["data"]["headline"] == "Hydrate Boldly"


@pytest.mark.asyncio
async def test_free_trial_header_must_be_true(client):
    resp = await client.post(
        "/api/ai/agents/matrix",
        json={"prompt": "Eco bottles"},
        headers={"x-free-trial": "false"},
    )
    assert resp.status_code == 401


# ── POST /api/ai/agents/{agent} ──────────────────────────────────


@pytest.mark.asyncio
async def test_agent_response_shape(client, providers, auth_headers):
    providers[ProviderName.OPENROUTER].content = MATRIX_JSON

    resp = await client.post(
        "/api/ai/agents/matrix",
        json={"prompt": "Eco bottles", "params": {"tone": "playful"}},
        headers=auth_headers,
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["fallback"] is False
    assert body["degraded"] is False
    assert body["agent"] == "matrix"
    assert body["source"] == "openrouter"
    assert json.loads(body["content"]) == body["data"]
    assert body["processingTime"] >= 0
    assert "X-Request-ID" in resp.headers


@pytest.mark.asyncio
async def test_agent_empty_prompt_is_400(client, providers, auth_headers):
    resp = await client.post("/api/ai/agents/maven", json={"prompt": "   "}, headers=auth_headers)

    assert resp.status_code == 400
    assert resp.json()["detail"] == "Prompt is required"
    assert all(not p.calls for p in providers.values())


@pytest.mark.asyncio
async def test_agent_missing_prompt_is_400(client, auth_headers):
    resp = await client.post("/api/ai/agents/matrix", json={}, headers=auth_headers)
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_unknown_agent_is_400(client, auth_headers):
    resp = await client.post("/api/ai/agents/motion", json={"prompt": "Plan"}, headers=auth_headers)

    assert resp.status_code == 400
    assert resp.json()["detail"] == "Invalid agent type"


@pytest.mark.asyncio
async def test_matrix_fallback_over_http(client, providers, auth_headers):
    providers[ProviderName.OPENROUTER].error = ProviderError("OpenRouter API error (503): down", status_code=503)

    resp = await client.post(
        "/api/ai/agents/matrix",
        json={"prompt": "Messaging for our B2B company"},
        headers=auth_headers,
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["fallback"] is True
    assert body["source"] == "fallback"
    assert body["data"]["headline"] == "Partner with Excellence, Grow with Confidence"


@pytest.mark.asyncio
async def test_maven_missing_key_structured_error(client, providers, auth_headers):
    providers[ProviderName.GEMINI].api_key = ""

    resp = await client.post("/api/ai/agents/maven", json={"prompt": "eco bottles"}, headers=auth_headers)

    assert resp.status_code == 503
    assert resp.json() == {
        "message": "Maven research service is temporarily unavailable. Please try again later.",
        "error": "API_KEY_MISSING",
        "success": False,
        "fallbackAvailable": True,
    }


# ── POST /api/ai/generate ────────────────────────────────────────


@pytest.mark.asyncio
async def test_generate_success(client, providers, auth_headers):
    openai = providers[ProviderName.OPENAI]
    openai.content = "Fresh copy"

    resp = await client.post(
        "/api/ai/generate",
        json={"prompt": "Write a tagline", "systemPrompt": "Be witty", "responseFormat": {"type": "json_object"}},
        headers=auth_headers,
    )

    assert resp.status_code == 200
    body = resp.json()
    assert body["content"] == "Fresh copy"
    assert body["fallback"] is False
    assert body["model"] == "gpt-4o"
    request = openai.calls[0]
    assert request.system == "Be witty"
    assert request.json_mode is True
    assert request.temperature == 0.7


@pytest.mark.asyncio
@pytest.mark.parametrize("response_format,json_mode", [("json", True), ("JSON ", True), ("text", False), (None, False)])
async def test_generate_string_response_format(client, providers, auth_headers, response_format, json_mode):
    openai = providers[ProviderName.OPENAI]
    openai.content = '{"tagline": "Sip sustainably"}'

    resp = await client.post(
        "/api/ai/generate",
        json={"prompt": "Write a tagline", "responseFormat": response_format},
        headers=auth_headers,
    )

    assert resp.status_code == 200
    assert resp.json()["content"] == '{"tagline": "Sip sustainably"}'
    assert openai.calls[0].json_mode is json_mode


@pytest.mark.asyncio
async def test_generate_quota_error_returns_variations(client, providers, auth_headers):
    providers[ProviderName.OPENAI].error = ProviderError(
        "OpenAI API error (429): quota", status_code=429, error_code="insufficient_quota"
    )

    resp = await client.post("/api/ai/generate", json={"prompt": "Write a tagline"}, headers=auth_headers)

    assert resp.status_code == 200
    body = resp.json()
    assert body["fallback"] is True
    assert len(json.loads(body["content"])["variations"]) == 3


@pytest.mark.asyncio
async def test_generate_missing_key_returns_variations(client, providers, auth_headers):
    providers[ProviderName.OPENAI].error = ProviderKeyMissingError("OpenAI API key is not available")

    resp = await client.post("/api/ai/generate", json={"prompt": "Write a tagline"}, headers=auth_headers)

    assert resp.json()["fallback"] is True


@pytest.mark.asyncio
async def test_generate_other_error_is_500(client, providers, auth_headers):
    providers[ProviderName.OPENAI].error = ProviderError("OpenAI API error (500): boom", status_code=500)

    resp = await client.post("/api/ai/generate", json={"prompt": "Write a tagline"}, headers=auth_headers)

    assert resp.status_code == 500
    assert resp.json() == {"message": "Error generating content", "error": "OpenAI API error (500): boom"}


@pytest.mark.asyncio
async def test_generate_requires_prompt(client, auth_headers):
    resp = await client.post("/api/ai/generate", json={}, headers=auth_headers)

    assert resp.status_code == 400
    assert resp.json()["detail"] == "Prompt is required"


# ── POST /api/ai/images ──────────────────────────────────────────


@pytest.mark.asyncio
async def test_images_success(client, providers, auth_headers):
    providers[ProviderName.OPENAI].images = [{"url": "https://img.example.com/1.png"}]

    resp = await client.post("/api/ai/images", json={"prompt": "A green bottle"}, headers=auth_headers)

    assert resp.status_code == 200
    assert resp.json() == [{"url": "https://img.example.com/1.png"}]


@pytest.mark.asyncio
async def test_images_requires_prompt(client, auth_headers):
    resp = await client.post("/api/ai/images", json={"prompt": ""}, headers=auth_headers)
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_images_failure_is_500(client, providers, auth_headers):
    providers[ProviderName.OPENAI].error = ProviderError("OpenAI API error (400): bad size", status_code=400)

    resp = await client.post("/api/ai/images", json={"prompt": "A green bottle"}, headers=auth_headers)

    assert resp.status_code == 500
    assert resp.json()["message"] == "Error generating image"


@pytest.mark.asyncio
async def test_images_rejects_bad_quality(client, auth_headers):
    resp = await client.post(
        "/api/ai/images",
        json={"prompt": "A green bottle", "quality": "ultra"},
        headers=auth_headers,
    )
    assert resp.status_code == 422


# ── Provider status & key verification ───────────────────────────


@pytest.mark.asyncio
async def test_list_providers(client, providers, auth_headers):
    providers[ProviderName.GEMINI].api_key = ""

    resp = await client.get("/api/ai/providers", headers=auth_headers)

    assert resp.status_code == 200
    by_name = {p["name"]: p for p in resp.json()}
    assert by_name["gemini"]["configured"] is False
    assert by_name["openrouter"]["configured"] is True


@pytest.mark.asyncio
async def test_verify_key_success(client, providers, auth_headers):
    providers[ProviderName.OPENAI].content = "Hello"

    resp = await client.get("/api/ai/verify-key", params={"provider": "openai"}, headers=auth_headers)

    assert resp.status_code == 200
    assert resp.json()["status"] == "success"
    assert providers[ProviderName.OPENAI].calls[0].max_tokens == 5


@pytest.mark.asyncio
async def test_verify_key_failure(client, providers, auth_headers):
    providers[ProviderName.OPENAI].error = ProviderError("OpenAI API error (401): invalid key", status_code=401)

    resp = await client.get("/api/ai/verify-key", headers=auth_headers)

    assert resp.status_code == 500
    assert "invalid key" in resp.json()["error"]


@pytest.mark.asyncio
async def test_verify_key_unknown_provider(client, auth_headers):
    resp = await client.get("/api/ai/verify-key", params={"provider": "anthropic"}, headers=auth_headers)
    assert resp.status_code == 400


# ── Health & metrics ─────────────────────────────────────────────


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/api/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


@pytest.mark.asyncio
async def test_metrics_records_agent_outcome(client, providers, auth_headers):
    providers[ProviderName.OPENROUTER].error = ProviderError("down", status_code=503)
    await client.post("/api/ai/agents/max", json={"prompt": "Plan"}, headers=auth_headers)

    resp = await client.get("/metrics")

    assert resp.status_code == 200
    assert 'agent_requests_total{agent="max",outcome="fallback"}' in resp.text
