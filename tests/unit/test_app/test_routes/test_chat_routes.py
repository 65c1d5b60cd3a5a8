"""
test_chat_routes.py - Chat Routes 유닛 테스트
"""

import httpx
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from src.app.providers.webhook import WebhookClient
from src.app.routes.chat import api_router, router
from src.app.routes.errors import handle_policy_error
from src.app.services.chat import ChatService
from src.domain.constants import FALLBACK_REPLY
from src.domain.errors import PolicyRejectError

# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def chat_service() -> ChatService:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[{"output": "Payday is the 25th."}])

    return ChatService(
        WebhookClient(
            chat_url="http://webhook.test/chat",
            transport=httpx.MockTransport(handler),
        )
    )


@pytest.fixture
def app(chat_service: ChatService, test_config: dict) -> FastAPI:
    """테스트용 FastAPI 앱."""
    app = FastAPI()
    app.add_exception_handler(PolicyRejectError, handle_policy_error)
    app.include_router(router)
    app.include_router(api_router, prefix="/api/chat")

    app.state.config = test_config
    app.state.chat_service = chat_service
    return app


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


# =============================================================================
# Tests
# =============================================================================


class TestChatPage:
    def test_renders(self, client: TestClient):
        response = client.get("/")

        assert response.status_code == 200
        assert "text/html" in response.headers["content-type"]


class TestSendMessage:
    def test_new_session(self, client: TestClient):
        response = client.post("/api/chat/message", json={"message": "When is payday?"})

        assert response.status_code == 200
        body = response.json()
        assert body["sessionId"].startswith("session_")
        assert body["title"] == "When is payday?"
        assert body["reply"]["role"] == "assistant"
        assert body["reply"]["content"] == "Payday is the 25th."

    def test_continue_session(self, client: TestClient):
        first = client.post("/api/chat/message", json={"message": "first"}).json()
        second = client.post(
            "/api/chat/message",
            json={"message": "second", "sessionId": first["sessionId"]},
        ).json()

        assert second["sessionId"] == first["sessionId"]
        detail = client.get(f"/api/chat/sessions/{first['sessionId']}").json()
        assert [m["content"] for m in detail["messages"] if m["role"] == "user"] == ["first", "second"]

    def test_blank_message(self, client: TestClient):
        response = client.post("/api/chat/message", json={"message": "   "})

        assert response.status_code == 400
        assert response.json()["error"] == "EMPTY_MESSAGE"

    def test_missing_message_field(self, client: TestClient):
        assert client.post("/api/chat/message", json={}).status_code == 422

    def test_fallback_when_webhook_down(self, test_config: dict):
        app = FastAPI()
        app.add_exception_handler(PolicyRejectError, handle_policy_error)
        app.include_router(api_router, prefix="/api/chat")
        app.state.config = test_config
        app.state.chat_service = ChatService(WebhookClient())

        response = TestClient(app).post("/api/chat/message", json={"message": "payroll?"})

        assert response.status_code == 200
        assert response.json()["reply"]["content"] == FALLBACK_REPLY


class TestSessions:
    def test_create_and_list(self, client: TestClient):
        created = client.post("/api/chat/sessions").json()

        assert created["title"] == "New chat"
        assert created["messages"] == []

        sessions = client.get("/api/chat/sessions").json()["sessions"]
        assert [s["id"] for s in sessions] == [created["id"]]
        assert "messages" not in sessions[0]

    def test_search(self, client: TestClient):
        client.post("/api/chat/message", json={"message": "Annual leave"})
        client.post("/api/chat/message", json={"message": "Pension plan"})

        sessions = client.get("/api/chat/sessions", params={"q": "pension"}).json()["sessions"]

        assert [s["title"] for s in sessions] == ["Pension plan"]

    def test_get_unknown(self, client: TestClient):
        response = client.get("/api/chat/sessions/session_missing")

        assert response.status_code == 404
        assert response.json()["detail"]["code"] == "SESSION_NOT_FOUND"

    def test_delete(self, client: TestClient):
        session_id = client.post("/api/chat/sessions").json()["id"]

        assert client.delete(f"/api/chat/sessions/{session_id}").json() == {"success": True}
        assert client.get(f"/api/chat/sessions/{session_id}").status_code == 404
        assert client.delete(f"/api/chat/sessions/{session_id}").status_code == 404
