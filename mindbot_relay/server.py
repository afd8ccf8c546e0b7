"""
FastAPI server for the MindBot Relay service.

This module implements the HTTP API: `/chat` runs one message through the chat
orchestrator, and `/mood` reads or appends standalone mood entries. Every error
response has the shape `{"error": <message>}`; internal failure details are
logged, never returned.
"""

import logging
from collections.abc import AsyncGenerator, Callable, Sequence
from contextlib import asynccontextmanager
from datetime import datetime

import httpx
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from openai import AsyncOpenAI
from pydantic import BaseModel, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import __version__
from .completion import CompletionClient
from .config import Settings, get_settings
from .errors import InvalidInputError
from .models import StoredMood
from .orchestrator import ChatOrchestrator, MoodService
from .risk import RiskDetector
from .sentiment import SentimentClient
from .store import open_stores

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# Body field each route requires, used to phrase validation errors.
REQUIRED_FIELDS = {"/chat": "message", "/mood": "mood"}


# API Request/Response Schemas
class ChatRequest(BaseModel):
    """Payload for chat requests."""

    message: str = Field(..., min_length=1, description="The user's message")


class ChatResponse(BaseModel):
    """Response model for the chat endpoint."""

    reply: str = Field(..., description="The assistant's reply")
    sentiment: str = Field(..., description="Emotion label derived from the message")
    risk: bool = Field(..., description="Whether the message matched a high-risk phrase")


class MoodRequest(BaseModel):
    """Payload for mood append requests."""

    mood: str = Field(..., min_length=1, description="The mood label to record")


class MoodRecord(BaseModel):
    """A stored mood entry as returned by the API."""

    id: str
    mood: str
    timestamp: datetime

    @classmethod
    def from_stored(cls, stored: StoredMood) -> "MoodRecord":
        return cls(id=stored.id, mood=stored.mood, timestamp=stored.timestamp)


def create_app(
    chat_service: ChatOrchestrator,
    mood_service: MoodService,
    http_client: httpx.AsyncClient | None = None,
    cors_origins: Sequence[str] = ("*",),
    close_storage: Callable[[], None] | None = None,
) -> FastAPI:
    """
    Create a FastAPI application over the given collaborators.

    Args:
        chat_service: Orchestrator handling `/chat`
        mood_service: Service handling `/mood`
        http_client: Outbound HTTP client to close on shutdown, if owned by the app
        cors_origins: Origins allowed to call the API from a browser
        close_storage: Releases the storage backend connection on shutdown

    Returns:
        Configured FastAPI application
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        """Lifespan context manager for FastAPI application."""
        yield
        if http_client is not None:
            await http_client.aclose()
        if close_storage is not None:
            close_storage()

    app = FastAPI(
        title="MindBot Relay",
        description="Orchestration backend for a mental-health support chat assistant",
        version=__version__,
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(cors_origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_error(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        field = REQUIRED_FIELDS.get(request.url.path, "body")
        return JSONResponse(
            status_code=400, content={"error": str(InvalidInputError(field))}
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    @app.get("/")
    async def root() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "ok", "service": "mindbot-relay"}

    @app.post("/chat")
    async def chat(chat_request: ChatRequest) -> ChatResponse:
        """
        Classify, answer and record one user message.

        Returns:
            The reply, the derived sentiment label and the risk flag
        """
        try:
            result = await chat_service.handle_chat(chat_request.message)
        except InvalidInputError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except Exception:
            logger.exception("Chat processing failed")
            raise HTTPException(status_code=500, detail="Chat processing failed")
        return ChatResponse(reply=result.reply, sentiment=result.sentiment, risk=result.risk)

    @app.get("/mood")
    async def get_moods() -> list[MoodRecord]:
        """
        Get every recorded mood, most recent first.
        """
        try:
            moods = await mood_service.get_moods()
        except Exception:
            logger.exception("Failed to fetch moods")
            raise HTTPException(status_code=500, detail="Failed to fetch moods")
        return [MoodRecord.from_stored(mood) for mood in moods]

    @app.post("/mood")
    async def append_mood(mood_request: MoodRequest) -> list[MoodRecord]:
        """
        Record a mood.

        Returns:
            The full list of moods after the write, most recent first
        """
        try:
            moods = await mood_service.append_mood(mood_request.mood)
        except InvalidInputError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except Exception:
            logger.exception("Failed to save mood")
            raise HTTPException(status_code=500, detail="Failed to save mood")
        return [MoodRecord.from_stored(mood) for mood in moods]

    return app


def build_app(settings: Settings | None = None) -> FastAPI:
    """
    Wire the production collaborators from configuration.

    Args:
        settings: Settings to use; loaded from the environment when omitted

    Returns:
        Configured FastAPI application owning its outbound HTTP client
    """
    settings = settings or get_settings()
    http_client = httpx.AsyncClient(timeout=settings.request_timeout)
    stores = open_stores(settings)
    openai_client = AsyncOpenAI(
        api_key=settings.openai_api_key,
        base_url=settings.openai_base_url,
        http_client=http_client,
        max_retries=settings.openai_max_retries,
    )

    orchestrator = ChatOrchestrator(
        risk_detector=RiskDetector(settings.risk_phrases),
        sentiment=SentimentClient(
            http_client, api_url=settings.hf_api_url, api_key=settings.hf_api_key
        ),
        completion=CompletionClient(openai_client, model=settings.openai_model),
        chat_store=stores.chats,
        mood_store=stores.moods,
    )
    return create_app(
        orchestrator,
        MoodService(stores.moods),
        http_client=http_client,
        cors_origins=settings.cors_origins,
        close_storage=stores.close,
    )


def configure_logging(level: str) -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)


def main(
    host: str | None = None,
    port: int | None = None,
    reload: bool = False,
) -> None:
    """Main entry point for the server."""
    import uvicorn

    settings = get_settings()
    configure_logging(settings.log_level)
    logger.info(
        "Starting MindBot Relay (storage=%s, model=%s)",
        settings.storage_backend,
        settings.openai_model,
    )

    uvicorn.run(
        "mindbot_relay.server:build_app",
        factory=True,
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
        log_level=settings.log_level,
    )


if __name__ == "__main__":
    main()
