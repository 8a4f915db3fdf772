"""Cross-cutting behaviour of the Botsy API: auth, access checks and error bodies."""

from __future__ import annotations

from fastapi.testclient import TestClient

from packages.botsy.rate_limit import RateLimiter

from .helpers import FakeAI, auth_headers, create_test_app


def test_healthz(client):
    response = client.get("/api/healthz")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_missing_bearer_token_is_unauthorized(client, company):
    response = client.get("/api/instagram/chats", params={"companyId": company})

    assert response.status_code == 401
    assert response.json() == {"success": False, "error": "Unauthorized"}


def test_invalid_token_is_unauthorized(client, company):
    response = client.get(
        "/api/messenger/chats",
        params={"companyId": company},
        headers={"Authorization": "Bearer forged"},
    )

    assert response.status_code == 401


def test_missing_company_id_is_bad_request(client, company):
    response = client.get("/api/instructions", headers=auth_headers("owner-1"))

    assert response.status_code == 400
    assert response.json()["error"] == "companyId is required"


def test_non_member_is_forbidden(client, company):
    response = client.get(
        "/api/leaderboard", params={"companyId": company}, headers=auth_headers("stranger")
    )

    assert response.status_code == 403
    assert response.json() == {"success": False, "error": "Forbidden"}


def test_unknown_route_uses_error_body(client):
    response = client.get("/api/does-not-exist")

    assert response.status_code == 404
    assert response.json()["success"] is False


def test_validation_errors_are_bad_requests(client, company):
    put = client.put(
        "/api/sync/website",
        json={"companyId": company, "syncIntervalHours": 0},
        headers=auth_headers("owner-1"),
    )

    assert put.status_code == 400
    assert put.json()["success"] is False


def test_unhandled_errors_return_generic_500():
    class ExplodingAI:
        def __call__(self, *args, **kwargs):
            raise KeyError("secret detail")

    app = create_test_app(ai_generator=ExplodingAI())
    client = TestClient(app, raise_server_exceptions=False)

    response = client.post("/api/test/ai-provider", json={"prompt": "Hei"})

    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "Internal server error"}


def test_cors_allows_configured_origin(client):
    response = client.options(
        "/api/healthz",
        headers={
            "Origin": "https://botsy.test",
            "Access-Control-Request-Method": "GET",
        },
    )

    assert response.headers["access-control-allow-origin"] == "https://botsy.test"


# ========================================================================
# AI provider test route
# ========================================================================


def test_ai_provider_test_route():
    ai = FakeAI("Hei der!")
    client = TestClient(create_test_app(ai_generator=ai))

    response = client.post("/api/test/ai-provider", json={"prompt": "Si hei"})

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["provider"] == "gemini"
    assert data["response"] == "Hei der!"
    assert data["responseTimeMs"] >= 0
    assert ai.calls[0]["max_tokens"] == 100
    assert ai.calls[0]["messages"][0].content == "Si hei"


def test_ai_provider_test_route_requires_prompt(client):
    response = client.post("/api/test/ai-provider", json={})

    assert response.status_code == 400
    assert response.json()["error"] == "prompt is required"


def test_ai_provider_failure_is_reported():
    client = TestClient(create_test_app(ai_generator=FakeAI(success=False)))

    data = client.post("/api/test/ai-provider", json={"prompt": "Hei"}).json()

    assert data["success"] is False
    assert data["error"] == "AI provider failed to respond"
    assert "provider" not in data


def test_ai_provider_route_is_rate_limited():
    client = TestClient(create_test_app(rate_limiter=RateLimiter(2, 60)))

    statuses = [
        client.post(
            "/api/test/ai-provider",
            json={"prompt": "Hei"},
            headers={"X-Forwarded-For": "10.0.0.1, 10.0.0.2"},
        ).status_code
        for _ in range(3)
    ]
    other_ip = client.post(
        "/api/test/ai-provider", json={"prompt": "Hei"}, headers={"X-Real-IP": "10.0.0.9"}
    )

    assert statuses == [200, 200, 429]
    assert other_ip.status_code == 200


def test_rate_limited_response_has_retry_after():
    client = TestClient(create_test_app(rate_limiter=RateLimiter(1, 60)))
    client.post("/api/test/ai-provider", json={"prompt": "Hei"})

    response = client.post("/api/test/ai-provider", json={"prompt": "Hei"})

    assert response.status_code == 429
    assert response.headers["retry-after"] == "60"
    assert response.json()["code"] == "RATE_LIMITED"
