"""
End-to-end tests for the MindBot Relay API endpoints.

The app is assembled with its real clients and stores; only the two external
services are replaced, through an `httpx.MockTransport` that counts requests.
"""

import httpx
from fastapi.testclient import TestClient
from openai import AsyncOpenAI

from mindbot_relay.completion import FALLBACK_REPLY, CompletionClient
from mindbot_relay.config import Settings
from mindbot_relay.orchestrator import ChatOrchestrator, MoodService
from mindbot_relay.risk import RiskDetector
from mindbot_relay.sentiment import SentimentClient
from mindbot_relay.server import build_app, create_app
from mindbot_relay.store import ChatStore, InMemoryCollection, MoodStore

SENTIMENT_URL = "https://classifier.test/models/emotion"
LLM_URL = "https://llm.test/v1"


class FakeServices:
    """Serves both external APIs and records which ones were called."""

    def __init__(self) -> None:
        self.sentiment_body: object = [[{"label": "sadness", "score": 0.93}]]
        self.sentiment_content: bytes | None = None
        self.completion_body: object = {
            "choices": [{"message": {"role": "assistant", "content": "I'm here for you."}}]
        }
        self.completion_status = 200
        self.sentiment_calls = 0
        self.completion_calls = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if str(request.url) == SENTIMENT_URL:
            self.sentiment_calls += 1
            if self.sentiment_content is not None:
                return httpx.Response(200, content=self.sentiment_content)
            return httpx.Response(200, json=self.sentiment_body)
        self.completion_calls += 1
        return httpx.Response(self.completion_status, json=self.completion_body)


class BrokenCollection(InMemoryCollection):
    async def find_latest_first(self, field):
        raise ConnectionError("store unavailable")


class ReadOnlyCollection(InMemoryCollection):
    async def insert(self, document):
        raise ConnectionError("store unavailable")


# MARK: - Chat


class TestChatAPI:
    """Integration tests for POST /chat."""

    def setup_method(self):
        """Set up a fresh app with new stores and fake services for each test."""
        self.services = FakeServices()
        self.chats = InMemoryCollection()
        self.moods = InMemoryCollection()
        self.app = self.build(self.chats, self.moods)

    def build(self, chats, moods):
        http_client = httpx.AsyncClient(transport=httpx.MockTransport(self.services))
        openai_client = AsyncOpenAI(
            api_key="sk-test", base_url=LLM_URL, http_client=http_client, max_retries=0
        )
        mood_store = MoodStore(moods)
        orchestrator = ChatOrchestrator(
            risk_detector=RiskDetector(),
            sentiment=SentimentClient(http_client, api_url=SENTIMENT_URL),
            completion=CompletionClient(openai_client, model="gpt-4o-mini"),
            chat_store=ChatStore(chats),
            mood_store=mood_store,
        )
        return create_app(orchestrator, MoodService(mood_store), http_client=http_client)

    def test_chat_workflow(self):
        """Test chat -> recorded mood shows up on GET /mood."""
        with TestClient(self.app) as client:
            response = client.post("/chat", json={"message": "I feel so alone lately"})
            assert response.status_code == 200
            assert response.json() == {
                "reply": "I'm here for you.",
                "sentiment": "sadness",
                "risk": False,
            }

            moods = client.get("/mood").json()
            assert len(moods) == 1
            assert moods[0]["mood"] == "sadness"
            assert len(self.chats) == 1

    def test_chat_flags_risk(self):
        with TestClient(self.app) as client:
            response = client.post("/chat", json={"message": "I want to DIE today"})
            assert response.status_code == 200
            assert response.json()["risk"] is True

    def test_missing_message_is_rejected_without_external_calls(self):
        with TestClient(self.app) as client:
            for body in ({}, {"message": ""}, {"message": None}):
                response = client.post("/chat", json=body)
                assert response.status_code == 400
                assert response.json() == {"error": "Message is required"}

            response = client.post("/chat", content=b"not json")
            assert response.status_code == 400
            assert response.json() == {"error": "Message is required"}

        assert self.services.sentiment_calls == 0
        assert self.services.completion_calls == 0
        assert len(self.chats) == 0
        assert len(self.moods) == 0

    def test_malformed_sentiment_degrades_to_neutral(self):
        self.services.sentiment_body = {"error": "Model is currently loading"}
        with TestClient(self.app) as client:
            response = client.post("/chat", json={"message": "hello"})
            assert response.status_code == 200
            assert response.json()["sentiment"] == "neutral"

    def test_deeply_nested_sentiment_body_degrades_to_neutral(self):
        self.services.sentiment_content = b"[" * 100000
        with TestClient(self.app) as client:
            response = client.post("/chat", json={"message": "hello"})
            assert response.status_code == 200
            assert response.json() == {
                "reply": "I'm here for you.",
                "sentiment": "neutral",
                "risk": False,
            }

    def test_empty_completion_uses_fallback_reply(self):
        self.services.completion_body = {"choices": []}
        with TestClient(self.app) as client:
            response = client.post("/chat", json={"message": "hello"})
            assert response.status_code == 200
            assert response.json()["reply"] == FALLBACK_REPLY

    def test_completion_failure_returns_generic_error(self):
        self.services.completion_status = 500
        self.services.completion_body = {"error": {"message": "internal secret detail"}}
        with TestClient(self.app) as client:
            response = client.post("/chat", json={"message": "hello"})
            assert response.status_code == 500
            assert response.json() == {"error": "Chat processing failed"}

        assert self.services.completion_calls == 1
        assert len(self.chats) == 0

    def test_chat_store_failure_returns_generic_error(self):
        app = self.build(ReadOnlyCollection(), self.moods)
        with TestClient(app) as client:
            response = client.post("/chat", json={"message": "hello"})
            assert response.status_code == 500
            assert response.json() == {"error": "Chat processing failed"}

        assert len(self.moods) == 0

    def test_mood_store_failure_returns_generic_error(self):
        app = self.build(self.chats, ReadOnlyCollection())
        with TestClient(app) as client:
            response = client.post("/chat", json={"message": "hello"})
            assert response.status_code == 500
            assert response.json() == {"error": "Chat processing failed"}

        assert len(self.chats) == 1


# MARK: - Mood


class TestMoodAPI:
    """Integration tests for GET /mood and POST /mood."""

    def setup_method(self):
        self.moods = InMemoryCollection()
        self.app = self.build(self.moods)

    @staticmethod
    def build(collection):
        mood_store = MoodStore(collection)
        orchestrator = ChatOrchestrator(
            risk_detector=RiskDetector(),
            sentiment=None,
            completion=None,
            chat_store=ChatStore(InMemoryCollection()),
            mood_store=mood_store,
        )
        return create_app(orchestrator, MoodService(mood_store))

    def test_health(self):
        with TestClient(self.app) as client:
            response = client.get("/")
            assert response.status_code == 200
            assert response.json() == {"status": "ok", "service": "mindbot-relay"}

    def test_post_then_get_returns_newest_first(self):
        with TestClient(self.app) as client:
            assert client.get("/mood").json() == []

            first = client.post("/mood", json={"mood": "tired"})
            assert first.status_code == 200
            assert [m["mood"] for m in first.json()] == ["tired"]

            second = client.post("/mood", json={"mood": "happy"})
            assert second.status_code == 200
            assert [m["mood"] for m in second.json()] == ["happy", "tired"]

            listed = client.get("/mood")
            assert listed.status_code == 200
            assert listed.json() == second.json()

            record = listed.json()[0]
            assert set(record) == {"id", "mood", "timestamp"}
            assert record["mood"] == "happy"

    def test_missing_mood_leaves_collection_unchanged(self):
        with TestClient(self.app) as client:
            client.post("/mood", json={"mood": "calm"})
            before = len(client.get("/mood").json())

            response = client.post("/mood", json={})
            assert response.status_code == 400
            assert response.json() == {"error": "Mood is required"}

            response = client.post("/mood", json={"mood": ""})
            assert response.status_code == 400

            assert len(client.get("/mood").json()) == before

    def test_store_failure_returns_generic_errors(self):
        app = self.build(BrokenCollection())
        with TestClient(app) as client:
            response = client.get("/mood")
            assert response.status_code == 500
            assert response.json() == {"error": "Failed to fetch moods"}

            response = client.post("/mood", json={"mood": "happy"})
            assert response.status_code == 500
            assert response.json() == {"error": "Failed to save mood"}


def test_build_app_from_settings():
    """The production factory wires an in-memory app that serves requests."""
    app = build_app(Settings(storage_backend="memory", hf_api_key="k", openai_api_key="k"))
    with TestClient(app) as client:
        assert client.get("/").json()["status"] == "ok"
        assert client.get("/mood").json() == []


def test_shutdown_releases_storage():
    closed = []
    mood_store = MoodStore(InMemoryCollection())
    orchestrator = ChatOrchestrator(
        risk_detector=RiskDetector(),
        sentiment=None,
        completion=None,
        chat_store=ChatStore(InMemoryCollection()),
        mood_store=mood_store,
    )
    app = create_app(
        orchestrator, MoodService(mood_store), close_storage=lambda: closed.append(True)
    )

    with TestClient(app) as client:
        assert client.get("/").status_code == 200
        assert closed == []

    assert closed == [True]
