from typing import Dict

from fastapi.testclient import TestClient
from main import app
from middleware.rate_limit import SimpleRateLimiter, is_ai_route


def test_rate_limit_returns_429_after_threshold(client: TestClient) -> None:
    app.state.rate_limiter = SimpleRateLimiter(max_requests=2, window_seconds=60, burst=0)

    first = client.get("/health")
    second = client.get("/health")

    assert first.status_code == 200
    assert second.status_code == 200

    blocked = client.get("/health")
    assert blocked.status_code == 429
    payload = blocked.json()
    assert payload["error"] == "rate_limit_exceeded"
    assert "Retry-After" in blocked.headers


def test_ai_routes_have_their_own_budget(client: TestClient, auth_headers: Dict[str, str]) -> None:
    app.state.ai_rate_limiter = SimpleRateLimiter(max_requests=1, window_seconds=60, burst=0)

    first = client.post("/api/chatbot/query", json={"message": "tips"}, headers=auth_headers)
    blocked = client.post("/api/chatbot/query", json={"message": "tips"}, headers=auth_headers)
    unaffected = client.get("/api/budget/status", headers=auth_headers)

    assert first.status_code == 200
    assert blocked.status_code == 429
    assert unaffected.status_code == 200


def test_is_ai_route() -> None:
    assert is_ai_route("/api/chatbot/query")
    assert is_ai_route("/api/uploads/ai-receipt/")
    assert not is_ai_route("/api/uploads/ai-receipt/confirm")
    assert not is_ai_route("/api/transactions")


def test_request_id_is_echoed(client: TestClient) -> None:
    response = client.get("/health", headers={"x-request-id": "req-123"})

    assert response.headers["x-request-id"] == "req-123"
