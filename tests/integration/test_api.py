"""Integration tests for the API.

Every external service is replaced through the DI container, so these run
without network access or API keys.
"""

import pytest
from fastapi.testclient import TestClient

from docbot.api.routes import CONFIG_UNAVAILABLE_MESSAGE
from docbot.auth.schemas import User
from docbot.auth.supabase_client import SupabaseAuthError
from docbot.chat.config_store import InMemoryChatbotConfigRepository
from docbot.chat.orchestrator import USER_MESSAGES
from docbot.core.di_container import container as di_container
from docbot.core.exceptions import ProviderError
from docbot.llm.base import RATE_LIMIT
from docbot.main import create_app

OWNER = {"Authorization": "Bearer owner-token"}
VISITOR = {"Authorization": "Bearer visitor-token"}
GUIDE = b"Hold the reset button for ten seconds. The status light blinks amber while the router restarts."


class FakeAuthClient:
    users = {
        "owner-token": User(id="owner-1", email="Owner@Example.com"),
        "visitor-token": User(id="visitor-1", email="visitor@example.com"),
    }

    def __init__(self):
        self.closed = False

    async def verify_token(self, token: str) -> User:
        if token not in self.users:
            raise SupabaseAuthError("Invalid or expired token", status_code=401)
        return self.users[token]

    def is_owner(self, user: User) -> bool:
        return (user.email or "").lower() == "owner@example.com"

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def auth_client():
    return FakeAuthClient()


@pytest.fixture
def client(
    test_config,
    mock_llm,
    fake_embedder,
    vector_index,
    chunk_repository,
    ingestion_service,
    rate_limiter,
    config_repository,
    orchestrator,
    auth_client,
):
    """Create a test client with every backend overridden."""
    test_config.rate_limit.chat_max_requests = 3
    test_config.rate_limit.documents_max_requests = 5

    with (
        di_container.config.override(test_config),
        di_container.llm.override(mock_llm),
        di_container.embedder.override(fake_embedder),
        di_container.vector_index.override(vector_index),
        di_container.chunk_repository.override(chunk_repository),
        di_container.ingestion_service.override(ingestion_service),
        di_container.rate_limiter.override(rate_limiter),
        di_container.config_repository.override(config_repository),
        di_container.orchestrator.override(orchestrator),
        di_container.auth_client.override(auth_client),
    ):
        app = create_app(test_config)
        with TestClient(app) as test_client:
            yield test_client


def upload(client, name="guide.txt", content=GUIDE, headers=OWNER):
    return client.post(
        "/api/v1/documents",
        files={"file": (name, content, "text/plain")},
        headers=headers,
    )


class TestHealth:
    def test_health_endpoint(self, client):
        response = client.get("/api/v1/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["llm_provider"] == "openai"
        assert data["vector_backend"] == "in_memory"
        assert data["missing_credentials"] == []

    def test_root(self, client):
        assert client.get("/").json()["health"] == "/api/v1/health"

    def test_request_id_is_echoed(self, client):
        response = client.get("/api/v1/chatbot/status", headers={"X-Request-ID": "req-42"})
        assert response.headers["X-Request-ID"] == "req-42"

    def test_shutdown_closes_auth_client(self, test_config, auth_client):
        with di_container.config.override(test_config), di_container.auth_client.override(auth_client):
            with TestClient(create_app(test_config)):
                pass
        assert auth_client.closed


class TestAuth:
    def test_missing_token(self, client):
        response = client.get("/api/v1/documents")

        assert response.status_code == 401
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_invalid_token(self, client):
        response = client.get("/api/v1/documents", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401

    def test_non_owner_is_forbidden(self, client):
        response = upload(client, headers=VISITOR)

        assert response.status_code == 403
        assert response.json()["detail"] == "Owner access required"


class TestDocuments:
    def test_upload(self, client):
        response = upload(client)

        assert response.status_code == 201
        data = response.json()
        assert data["document_name"] == "guide.txt"
        assert data["status"] == "indexed"
        assert data["searchable"] is True
        assert data["chunk_count"] == data["indexed_count"] == 1
        assert response.headers["X-RateLimit-Remaining"] == "4"

    def test_duplicate_upload(self, client):
        upload(client)

        response = upload(client)

        assert response.status_code == 409
        assert response.json()["error"]["code"] == "DUPLICATE_DOCUMENT"

    def test_unsupported_type(self, client):
        response = upload(client, name="table.csv", content=b"a,b")
        assert response.status_code == 415

    def test_upload_rate_limit(self, client):
        for i in range(5):
            assert upload(client, name=f"doc{i}.txt").status_code == 201

        response = upload(client, name="doc5.txt")

        assert response.status_code == 429
        assert response.json()["error"].startswith("Rate limit exceeded")
        assert response.headers["X-RateLimit-Remaining"] == "0"
        assert int(response.headers["Retry-After"]) > 0

    def test_list_and_chunks(self, client):
        upload(client)

        listing = client.get("/api/v1/documents", headers=OWNER).json()
        chunks = client.get("/api/v1/documents/guide.txt/chunks", headers=OWNER).json()

        assert listing["total"] == 1
        assert listing["documents"][0]["name"] == "guide.txt"
        assert chunks["document_name"] == "guide.txt"
        assert chunks["chunks"][0]["chunk_index"] == 0

    def test_delete(self, client):
        upload(client)

        response = client.delete("/api/v1/documents/guide.txt", headers=OWNER)

        assert response.status_code == 200
        assert response.json()["message"] == "Document 'guide.txt' deleted (1 chunks)"
        assert client.get("/api/v1/vectors/stats", headers=OWNER).json()["total_vectors"] == 0

    def test_delete_unknown(self, client):
        response = client.delete("/api/v1/documents/ghost.txt", headers=OWNER)
        assert response.status_code == 404

    def test_search(self, client):
        upload(client)

        response = client.post("/api/v1/search", json={"query": "reset button", "top_k": 3}, headers=OWNER)

        assert response.status_code == 200
        matches = response.json()["matches"]
        assert matches[0]["metadata"]["document_name"] == "guide.txt"

    def test_search_top_k_bounds(self, client):
        response = client.post("/api/v1/search", json={"query": "x", "top_k": 0}, headers=OWNER)
        assert response.status_code == 422

    def test_stats(self, client):
        upload(client)

        data = client.get("/api/v1/vectors/stats", headers=OWNER).json()

        assert data == {"total_vectors": 1, "dimension": 8}


class TestChat:
    def test_chat(self, client, mock_llm):
        upload(client)

        response = client.post(
            "/api/v1/chat",
            json={
                "message": "How do I reset the router?",
                "conversationHistory": [
                    {"role": "user", "content": "Hi"},
                    {"role": "assistant", "content": "Hello! How can I help?"},
                ],
            },
        )

        assert response.status_code == 200
        assert response.json() == {"response": "This is a mock response."}
        assert response.headers["X-RateLimit-Remaining"] == "2"
        messages = mock_llm.calls[0]["messages"]
        assert [m["role"] for m in messages] == ["system", "user", "assistant", "user"]
        assert "Hold the reset button" in messages[0]["content"]

    def test_empty_message(self, client):
        response = client.post("/api/v1/chat", json={"message": "   "})

        assert response.status_code == 400
        assert "error" in response.json()

    def test_message_too_long(self, client):
        response = client.post("/api/v1/chat", json={"message": "x" * 1001})
        assert response.status_code == 400

    def test_rate_limit_is_per_ip(self, client):
        first_ip = {"X-Forwarded-For": "203.0.113.7, 10.0.0.1"}
        for _ in range(3):
            assert client.post("/api/v1/chat", json={"message": "Hi"}, headers=first_ip).status_code == 200

        blocked = client.post("/api/v1/chat", json={"message": "Hi"}, headers=first_ip)
        other = client.post("/api/v1/chat", json={"message": "Hi"}, headers={"X-Forwarded-For": "198.51.100.2"})

        assert blocked.status_code == 429
        assert "Retry-After" in blocked.headers
        assert other.status_code == 200

    def test_provider_failure_is_friendly(self, client, mock_llm):
        mock_llm.error = ProviderError("429 from upstream: quota", provider="openai", code=RATE_LIMIT)

        response = client.post("/api/v1/chat", json={"message": "Hi"})

        assert response.status_code == 500
        assert response.json() == {"error": USER_MESSAGES[RATE_LIMIT]}

    def test_missing_configuration(self, client):
        with di_container.config_repository.override(InMemoryChatbotConfigRepository()):
            response = client.post("/api/v1/chat", json={"message": "Hi"})

        assert response.status_code == 500
        assert response.json() == {"error": CONFIG_UNAVAILABLE_MESSAGE}


    def test_signed_in_users_get_separate_buckets(self, client):
        for _ in range(3):
            assert client.post("/api/v1/chat", json={"message": "Hi"}, headers=OWNER).status_code == 200

        blocked = client.post("/api/v1/chat", json={"message": "Hi"}, headers=OWNER)
        other_user = client.post("/api/v1/chat", json={"message": "Hi"}, headers=VISITOR)

        assert blocked.status_code == 429
        assert other_user.status_code == 200
        assert other_user.headers["X-RateLimit-Remaining"] == "2"

    def test_error_replies_keep_quota_headers(self, client, mock_llm):
        invalid = client.post("/api/v1/chat", json={"message": ""})
        mock_llm.error = ProviderError("upstream down", provider="openai", code="model_unavailable")
        failed = client.post("/api/v1/chat", json={"message": "Hi"})

        assert invalid.status_code == 400
        assert invalid.headers["X-RateLimit-Remaining"] == "2"
        assert "X-RateLimit-Reset" in invalid.headers
        assert failed.status_code == 500
        assert failed.headers["X-RateLimit-Remaining"] == "1"

class TestChatbotConfig:
    def test_public_status(self, client):
        response = client.get("/api/v1/chatbot/status")

        assert response.status_code == 200
        assert response.json()["chatbot_name"] == "Acme Helper"
        assert response.json()["current_status"] == "active"

    def test_owner_reads_config(self, client):
        response = client.get("/api/v1/chatbot/config", headers=OWNER)

        assert response.status_code == 200
        assert response.json()["role"] == "customer support assistant for Acme routers"

    def test_visitor_cannot_update(self, client):
        response = client.put("/api/v1/chatbot/config", json={"chatbot_name": "Hacked"}, headers=VISITOR)
        assert response.status_code == 403

    def test_owner_updates_config(self, client):
        response = client.put(
            "/api/v1/chatbot/config",
            json={"chatbot_name": "Router Pal", "creativity_level": 70},
            headers=OWNER,
        )

        assert response.status_code == 200
        assert response.json()["updated_by"] == "owner-1"
        assert client.get("/api/v1/chatbot/status").json()["chatbot_name"] == "Router Pal"

    def test_unknown_fields_rejected(self, client):
        response = client.put("/api/v1/chatbot/config", json={"temperature": 2}, headers=OWNER)
        assert response.status_code == 422

    def test_null_for_required_field_rejected(self, client):
        response = client.put("/api/v1/chatbot/config", json={"chatbot_name": None}, headers=OWNER)

        assert response.status_code == 422
        assert client.get("/api/v1/chatbot/status").json()["chatbot_name"] == "Acme Helper"
